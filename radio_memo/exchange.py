"""User-facing workflows: submit, delete, export and import.

Each workflow takes the store plus the collaborator callables it needs and
returns a small result object. Expected failures (bad form values, bad CSV,
storage or file errors) never escape: they become the result's `error` text
so the caller can show one message and carry on. Results also tell the caller
which page to render next.
"""

from __future__ import annotations

import logging
import uuid as uuidlib
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

from .config import CURRENT_SCHEMA_VERSION
from .csv_codec import dump_csv, load_csv
from .dedup import Deduplicator
from .errors import RadioMemoError
from .models import LogEntry, new_entry, now_utc
from .pagination import PaginationState, page_after_delete, page_after_insert

logger = logging.getLogger(__name__)

NOTHING_TO_EXPORT = "Nothing to export"

Deliver = Callable[[str, str], None]
ReadText = Callable[[], str]


@dataclass
class SubmitResult:
    entry: Optional[LogEntry] = None
    page: int = 1
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DeleteResult:
    deleted: bool = False
    page: int = 1
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ExportResult:
    exported: int = 0
    filename: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        if self.error:
            return self.error
        if not self.exported:
            return NOTHING_TO_EXPORT
        return f"Exported {self.exported} entries to {self.filename}"


@dataclass
class ImportResult:
    accepted: int = 0
    duplicate: int = 0
    rejected: int = 0
    page: int = 1
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        if self.error:
            return self.error
        msg = f"Imported {self.accepted} entries, skipped {self.duplicate} duplicates"
        if self.rejected:
            msg += f", ignored {self.rejected} invalid rows"
        return msg


def submit_entry(
    store,
    band: Optional[str],
    frequency: Union[str, float, None],
    timestamp: Union[str, datetime, None] = None,
    callsign: Optional[str] = None,
    rst: Optional[str] = None,
    memo: Optional[str] = None,
    page: int = 1,
) -> SubmitResult:
    """Validate form values and store a new entry; the view goes back to page 1."""
    try:
        entry = new_entry(band, frequency, timestamp, callsign=callsign, rst=rst, memo=memo)
        saved = store.add(entry)
    except RadioMemoError as e:
        logger.warning("Submit failed: %s", e)
        return SubmitResult(page=page, error=f"Could not save entry: {e}")
    logger.info("Saved entry id=%s", saved.id)
    return SubmitResult(entry=saved, page=page_after_insert())


def delete_from_view(store, entry_id: int, state: PaginationState) -> DeleteResult:
    """Delete an entry (missing ids are fine) and work out the page to show next."""
    try:
        deleted = store.delete(entry_id)
        remaining = store.range_by_time_desc((state.page - 1) * state.page_size, state.page_size)
    except RadioMemoError as e:
        logger.warning("Delete of id=%s failed: %s", entry_id, e)
        return DeleteResult(page=state.page, error=f"Could not delete entry: {e}")
    return DeleteResult(deleted=deleted, page=page_after_delete(state, len(remaining)))


def export_filename(now: Optional[datetime] = None) -> str:
    """radio_memo_<UTC instant>_<random id>.csv, unique even within one second."""
    now = now or now_utc()
    return f"radio_memo_{now:%Y%m%dT%H%M%SZ}_{uuidlib.uuid4().hex[:8]}.csv"


def export_log(
    store,
    deliver: Deliver,
    now: Optional[datetime] = None,
    schema_version: int = CURRENT_SCHEMA_VERSION,
) -> ExportResult:
    """Encode the whole store in display order and hand it to `deliver`.

    An empty store is reported as "nothing to export" and nothing is delivered.
    """
    try:
        entries = store.all()
        if not entries:
            logger.info("Export skipped: no entries")
            return ExportResult()
        text = dump_csv(entries, schema_version=schema_version)
        filename = export_filename(now)
        deliver(filename, text)
    except (RadioMemoError, OSError, ValueError) as e:
        logger.warning("Export failed: %s", e)
        return ExportResult(error=f"Export failed: {e}")
    logger.info("Exported %d entries as %s", len(entries), filename)
    return ExportResult(exported=len(entries), filename=filename)


def import_log(store, read_text: ReadText, page: int = 1) -> ImportResult:
    """Read, decode, de-duplicate and store CSV entries in one bulk write.

    A file-level format problem stops the import before anything is written.
    Row-level problems (unknown band, bad timestamp) skip only that row.
    """
    try:
        text = read_text()
        decoded = load_csv(text)
        dedup = Deduplicator.from_store(store)
        accepted = []
        duplicates = 0
        for entry in decoded.entries:
            if dedup.admit(entry).is_duplicate:
                duplicates += 1
            else:
                accepted.append(entry)
        store.bulk_add(accepted)
    except (RadioMemoError, OSError, ValueError) as e:
        logger.warning("Import failed: %s", e)
        return ImportResult(page=page, error=f"Import failed: {e}")

    if decoded.ignored_columns:
        logger.info("Ignored column(s): %s", ", ".join(decoded.ignored_columns))
    for bad in decoded.rejected:
        logger.debug("Row %d ignored: %s", bad.row, bad.reason)
    logger.info(
        "Import finished: %d accepted, %d duplicate, %d invalid",
        len(accepted),
        duplicates,
        len(decoded.rejected),
    )
    return ImportResult(
        accepted=len(accepted),
        duplicate=duplicates,
        rejected=len(decoded.rejected),
        page=page_after_insert() if accepted else page,
    )


# File collaborators backed by the local filesystem


def save_to_directory(directory: Union[str, Path]) -> Deliver:
    """Return a deliver(filename, text) that writes UTF-8 files into `directory`."""
    target = Path(directory).expanduser()

    def deliver(filename: str, text: str) -> None:
        target.mkdir(parents=True, exist_ok=True)
        (target / filename).write_text(text, encoding="utf-8", newline="")

    return deliver


def read_file(path: Union[str, Path]) -> ReadText:
    """Return a read_text() for one file; the BOM is left for the codec to strip."""
    source = Path(path).expanduser()

    def read_text() -> str:
        with source.open(encoding="utf-8", newline="") as f:
            return f.read()

    return read_text
