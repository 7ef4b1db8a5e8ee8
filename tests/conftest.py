from datetime import datetime

import pytest


@pytest.fixture
def make_entry():
    """Factory for unsaved entries with sensible defaults."""
    from radio_memo.models import LogEntry

    def _make(**overrides):
        fields = dict(
            band="USB",
            frequency=7.1,
            callsign="JA1ABC",
            rst="59",
            memo="Test entry",
            timestamp=datetime(2024, 7, 4, 12, 0, 0),
        )
        fields.update(overrides)
        return LogEntry(**fields)

    return _make


@pytest.fixture
def store(tmp_path):
    """Create an opened store backed by a temporary SQLite file."""
    from radio_memo.storage import LogStore

    s = LogStore(tmp_path / "test.sqlite3")
    s.open()
    try:
        yield s
    finally:
        s.dispose()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI's default store and settings at temporary files."""
    from radio_memo import storage

    monkeypatch.setenv("RADIO_MEMO_DB_PATH", str(tmp_path / "cli.sqlite3"))
    monkeypatch.setenv("RADIO_MEMO_CONFIG", str(tmp_path / "settings.json"))
    storage.reset_store()
    try:
        yield tmp_path
    finally:
        storage.reset_store()
