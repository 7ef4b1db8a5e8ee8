"""Persistence layer: SQLite engine setup, sessions, log entry CRUD and migration.

A LogStore owns one SQLAlchemy engine bound to a SQLite file (by default the
path resolved by config.get_db_path). SQLModel/SQLAlchemy 2.x are used for
ORM-style access; schema backfill uses plain SQL so it also works on tables
created by older releases that lack the newer columns.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterable, List, NamedTuple, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine, func, select, text

from .config import get_db_path
from .errors import StorageError
from .models import LogEntry, is_missing_frequency, new_uuid

logger = logging.getLogger(__name__)

TABLE = LogEntry.__tablename__


class BackfillRule(NamedTuple):
    """Adds `column` when absent and fills rows that have no value for it."""

    column: str
    ddl: str
    default: Callable[[], str]
    blank_is_missing: bool = False


# Applied in order on every open. Keyed by column presence, never by version,
# so a partially migrated file is finished on the next run.
BACKFILL_RULES = (
    BackfillRule("uuid", "VARCHAR", new_uuid, blank_is_missing=True),
    BackfillRule("callsign", "VARCHAR", str),
    BackfillRule("rst", "VARCHAR", str),
)


def _complete(entry: LogEntry) -> LogEntry:
    """Fill optional fields so no half-populated row is ever written."""
    if not entry.uuid:
        entry.uuid = new_uuid()
    if entry.callsign is None:
        entry.callsign = ""
    if entry.rst is None:
        entry.rst = ""
    if entry.memo is None:
        entry.memo = ""
    if entry.frequency is not None and is_missing_frequency(entry.frequency):
        # SQLite stores NaN as NULL anyway; make that explicit.
        entry.frequency = None
    return entry


class LogStore:
    """Keyed, time-ordered collection of LogEntry rows in one SQLite file."""

    def __init__(self, db_path: Union[str, Path, None] = None) -> None:
        self._db_path = Path(db_path) if db_path is not None else None
        self._engine = None
        self._engine_lock = threading.Lock()

    @property
    def db_path(self) -> Path:
        if self._db_path is None:
            self._db_path = get_db_path()
        return self._db_path

    @property
    def engine(self):
        """Create (once) and return the SQLAlchemy engine bound to our SQLite DB."""
        if self._engine is None:
            with self._engine_lock:
                if self._engine is None:
                    try:
                        self._engine = create_engine(
                            f"sqlite:///{self.db_path}",
                            echo=False,
                            connect_args={
                                "check_same_thread": False,
                                "timeout": 30,  # SQLite busy timeout
                            },
                        )
                    except SQLAlchemyError as e:
                        raise StorageError(f"Failed to create database engine: {e}") from e
        return self._engine

    @contextmanager
    def session_scope(self):
        """Yield a Session bound to our engine; roll back on errors.

        Objects stay readable after commit so callers can use returned entries.
        """
        session = Session(self.engine, expire_on_commit=False)
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def open(self) -> Path:
        """Create the table when missing, then backfill older rows (idempotent)."""
        try:
            SQLModel.metadata.create_all(self.engine, tables=[LogEntry.__table__])
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create database tables: {e}") from e
        self.migrate()
        return self.db_path

    def migrate(self) -> int:
        """Apply BACKFILL_RULES and ensure uuid uniqueness.

        Only missing columns and missing values are touched; ids, timestamps and
        row order are left alone. Returns how many rows received a value.
        """
        touched = set()
        try:
            with self.engine.begin() as conn:
                existing = {row[1] for row in conn.execute(text(f"PRAGMA table_info({TABLE})"))}
                for rule in BACKFILL_RULES:
                    if rule.column not in existing:
                        conn.execute(text(f"ALTER TABLE {TABLE} ADD COLUMN {rule.column} {rule.ddl}"))
                        logger.info("Added column %s to %s", rule.column, TABLE)
                    where = f"{rule.column} IS NULL"
                    if rule.blank_is_missing:
                        where += f" OR {rule.column} = ''"
                    ids = [row[0] for row in conn.execute(text(f"SELECT id FROM {TABLE} WHERE {where} ORDER BY id"))]
                    if ids:
                        conn.execute(
                            text(f"UPDATE {TABLE} SET {rule.column} = :value WHERE id = :id"),
                            [{"value": rule.default(), "id": i} for i in ids],
                        )
                        logger.info("Backfilled %s on %d row(s)", rule.column, len(ids))
                    touched.update(ids)
                conn.execute(text(f"CREATE UNIQUE INDEX IF NOT EXISTS ix_{TABLE}_uuid ON {TABLE} (uuid)"))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to migrate database: {e}") from e
        return len(touched)

    # CRUD helpers

    def add(self, entry: LogEntry) -> LogEntry:
        """Persist a new entry and return it refreshed with its database id.

        Raises StorageError if the entry cannot be saved.
        """
        _complete(entry)
        try:
            with self.session_scope() as session:
                session.add(entry)
                session.commit()
                session.refresh(entry)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save entry: {e}") from e
        logger.debug("Stored entry id=%s uuid=%s", entry.id, entry.uuid)
        return entry

    def bulk_add(self, entries: Iterable[LogEntry]) -> int:
        """Insert many entries in one transaction, returning how many were written.

        Either every entry is committed or none is.
        """
        items = [_complete(e) for e in entries]
        if not items:
            return 0
        try:
            with self.session_scope() as session:
                session.add_all(items)
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to bulk add entries: {e}") from e
        logger.info("Bulk stored %d entries", len(items))
        return len(items)

    def get(self, entry_id: int) -> Optional[LogEntry]:
        try:
            with self.session_scope() as session:
                return session.get(LogEntry, entry_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to retrieve entry {entry_id}: {e}") from e

    def count(self) -> int:
        try:
            with self.session_scope() as session:
                return int(session.exec(select(func.count()).select_from(LogEntry)).one())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to count entries: {e}") from e

    def range_by_time_desc(self, offset: int, limit: int) -> List[LogEntry]:
        """Return up to `limit` entries starting at `offset` in display order.

        Display order is newest timestamp first; equal timestamps list the most
        recently inserted (highest id) first.
        """
        try:
            with self.session_scope() as session:
                stmt = (
                    select(LogEntry)
                    .order_by(LogEntry.timestamp.desc(), LogEntry.id.desc())
                    .offset(max(offset, 0))
                    .limit(max(limit, 0))
                )
                return list(session.exec(stmt))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list entries: {e}") from e

    def all(self) -> List[LogEntry]:
        """Return every entry in display order."""
        try:
            with self.session_scope() as session:
                stmt = select(LogEntry).order_by(LogEntry.timestamp.desc(), LogEntry.id.desc())
                return list(session.exec(stmt))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list entries: {e}") from e

    def delete(self, entry_id: int) -> bool:
        """Delete an entry by id, returning True if it existed and was removed."""
        try:
            with self.session_scope() as session:
                entry = session.get(LogEntry, entry_id)
                if not entry:
                    return False
                session.delete(entry)
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete entry {entry_id}: {e}") from e
        logger.debug("Deleted entry id=%s", entry_id)
        return True

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None


_store: Optional[LogStore] = None
_store_lock = threading.Lock()


def get_store() -> LogStore:
    """Create (once), open and return the process-wide default store."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                store = LogStore()
                store.open()
                _store = store
    return _store


def reset_store() -> None:
    """Forget the default store so the next get_store() re-reads the path."""
    global _store
    with _store_lock:
        if _store is not None:
            _store.dispose()
        _store = None
