"""Setup script for Radio Memo."""

from setuptools import find_packages, setup

setup(
    name="radio-memo",
    version="0.3.0",
    description="Short-wave reception and contact log with CSV exchange",
    python_requires=">=3.11",
    packages=find_packages(include=["radio_memo", "radio_memo.*"]),
    install_requires=[
        "sqlmodel>=0.0.16",
        "sqlalchemy>=2.0",
        "platformdirs>=3.0",
        "typer>=0.9",
        "rich>=13.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "radio-memo=radio_memo.cli:main",
        ],
    },
    zip_safe=False,
)
