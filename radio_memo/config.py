"""Settings: database location and the optional JSON settings file.

The database lives in the user's data directory by default and can be
overridden via RADIO_MEMO_DB_PATH. Display/export preferences are read from a
small JSON file (RADIO_MEMO_CONFIG, else the user's config directory).
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from platformdirs import user_config_dir, user_data_dir

APP_NAME = "Radio Memo"
DB_ENV_VAR = "RADIO_MEMO_DB_PATH"
CONFIG_ENV_VAR = "RADIO_MEMO_CONFIG"

DEFAULT_PAGE_SIZE = 10
CURRENT_SCHEMA_VERSION = 3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    page_size: int = DEFAULT_PAGE_SIZE
    export_dir: Path = Path(".")
    schema_version: int = CURRENT_SCHEMA_VERSION


def _default_db_path() -> Path:
    """Return the default location of the SQLite database file."""
    data_dir = Path(user_data_dir(appname=APP_NAME, appauthor=False))
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / "radiomemo.sqlite3"


def get_db_path() -> Path:
    """Resolve the active database path, honoring RADIO_MEMO_DB_PATH if set."""
    env = os.getenv(DB_ENV_VAR)
    if env:
        p = Path(env).expanduser()
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    return _default_db_path()


def _config_path() -> Path:
    env = os.getenv(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser()
    return Path(user_config_dir(appname=APP_NAME, appauthor=False)) / "settings.json"


def get_settings() -> Settings:
    """Load settings from JSON, overriding defaults key by key.

    JSON shape example:
    { "page_size": 25, "export_dir": "~/exports", "schema_version": 2 }

    Invalid values are ignored; an unreadable or malformed file yields defaults.
    """
    p = _config_path()
    values: Dict[str, Any] = {}
    try:
        if p.exists():
            with p.open("r", encoding="utf-8") as f:
                raw = json.load(f)
            if isinstance(raw, dict):
                values = raw
    except (OSError, json.JSONDecodeError, ValueError) as e:
        logger.warning("Ignoring unreadable settings file %s: %s", p, e)
        values = {}

    settings: Dict[str, Any] = {}
    page_size = values.get("page_size")
    if isinstance(page_size, int) and not isinstance(page_size, bool) and page_size > 0:
        settings["page_size"] = page_size
    export_dir = values.get("export_dir")
    if isinstance(export_dir, str) and export_dir.strip():
        settings["export_dir"] = Path(export_dir).expanduser()
    version = values.get("schema_version")
    if isinstance(version, int) and not isinstance(version, bool) and 1 <= version <= CURRENT_SCHEMA_VERSION:
        settings["schema_version"] = version
    return Settings(**settings)
