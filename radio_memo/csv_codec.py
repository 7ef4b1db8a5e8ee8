"""CSV import/export for log entries.

Export writes a UTF-8 byte-order mark, a header row and one row per entry with
every field wrapped in double quotes (embedded quotes doubled). Import is
deliberately tolerant: columns are found by header name so older or foreign
layouts still load, a quoted field may span lines, and a bad frequency becomes
NaN for that row only. A missing timestamp, band or frequency column rejects
the whole file.
"""

from __future__ import annotations

import csv
import io
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from .config import CURRENT_SCHEMA_VERSION
from .errors import FormatError, ValidationError
from .models import (
    Band,
    LogEntry,
    frequency_unit,
    is_missing_frequency,
    isoformat_utc,
    parse_timestamp,
)

BOM = "\ufeff"

# Column order in exported files; each schema version exports a subset.
COLUMN_ORDER = ("uuid", "timestamp", "band", "frequency", "unit", "callsign", "rst", "memo")

SCHEMA_COLUMNS = {
    1: {"timestamp", "band", "frequency", "unit", "memo"},
    2: {"uuid", "timestamp", "band", "frequency", "unit", "memo"},
    3: set(COLUMN_ORDER),
}

REQUIRED_COLUMNS = ("timestamp", "band", "frequency")
OPTIONAL_COLUMNS = ("uuid", "callsign", "rst", "memo")

_NUMBER_PREFIX = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass
class RejectedRow:
    row: int
    reason: str


@dataclass
class DecodedCsv:
    """Entries read from a CSV file plus the rows that could not be used."""

    columns: List[str]
    entries: List[LogEntry] = field(default_factory=list)
    rejected: List[RejectedRow] = field(default_factory=list)

    @property
    def ignored_columns(self) -> List[str]:
        """Header columns that import does not read (derived or unknown)."""
        known = set(REQUIRED_COLUMNS + OPTIONAL_COLUMNS)
        return [c for c in self.columns if c and c not in known]


def header_for(schema_version: int = CURRENT_SCHEMA_VERSION) -> List[str]:
    try:
        wanted = SCHEMA_COLUMNS[schema_version]
    except KeyError as e:
        raise ValueError(f"Unsupported schema version: {schema_version}") from e
    return [c for c in COLUMN_ORDER if c in wanted]


def _csv_frequency(frequency) -> str:
    if is_missing_frequency(frequency):
        return "NaN"
    return repr(float(frequency))


def _row_values(entry: LogEntry) -> Dict[str, str]:
    return {
        "uuid": entry.uuid or "",
        "timestamp": isoformat_utc(entry.timestamp),
        "band": entry.band,
        "frequency": _csv_frequency(entry.frequency),
        "unit": frequency_unit(entry.band),
        "callsign": entry.callsign or "",
        "rst": entry.rst or "",
        "memo": entry.memo or "",
    }


def dump_csv(entries: Iterable[LogEntry], schema_version: int = CURRENT_SCHEMA_VERSION) -> str:
    """Serialize entries to BOM-prefixed CSV text in the given order."""
    columns = header_for(schema_version)
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(columns)
    for entry in entries:
        values = _row_values(entry)
        writer.writerow([values[c] for c in columns])
    return BOM + buf.getvalue()


def split_records(text: str) -> List[str]:
    """Split text into logical records on CR/LF found outside quotes.

    Blank records (empty lines, the gap inside CRLF) are dropped.
    """
    records: List[str] = []
    buf: List[str] = []
    in_quotes = False
    for ch in text:
        if ch == '"':
            in_quotes = not in_quotes
            buf.append(ch)
        elif ch in "\r\n" and not in_quotes:
            if buf:
                records.append("".join(buf))
                buf = []
        else:
            buf.append(ch)
    if buf:
        records.append("".join(buf))
    return [r for r in records if r.strip()]


def split_fields(record: str) -> List[str]:
    """Split one record on commas outside quotes; unescape "" and trim."""
    fields: List[str] = []
    buf: List[str] = []
    in_quotes = False
    i = 0
    n = len(record)
    while i < n:
        ch = record[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < n and record[i + 1] == '"':
                    buf.append('"')
                    i += 2
                    continue
                in_quotes = False
            else:
                buf.append(ch)
        elif ch == '"':
            in_quotes = True
        elif ch == ",":
            fields.append("".join(buf).strip())
            buf = []
        else:
            buf.append(ch)
        i += 1
    fields.append("".join(buf).strip())
    return fields


def parse_csv(text: str) -> Tuple[List[str], List[Dict[str, str]]]:
    """Decode CSV text into (header, rows) with rows keyed by column name.

    Every row has all required and optional keys; absent columns and short
    rows read as empty strings. Header names match case-insensitively.

    Raises FormatError when there is no header, a required column is missing,
    or there is no data row.
    """
    if text.startswith(BOM):
        text = text[len(BOM):]
    records = split_records(text)
    if not records:
        raise FormatError("CSV file is empty")

    header = [h.lower() for h in split_fields(records[0])]
    index: Dict[str, int] = {}
    for i, name in enumerate(header):
        index.setdefault(name, i)

    missing = [c for c in REQUIRED_COLUMNS if c not in index]
    if missing:
        raise FormatError(f"Missing required column(s): {', '.join(missing)}", missing)
    if len(records) < 2:
        raise FormatError("CSV file has a header but no data rows")

    rows: List[Dict[str, str]] = []
    for record in records[1:]:
        cells = split_fields(record)
        row = {}
        for column in REQUIRED_COLUMNS + OPTIONAL_COLUMNS:
            pos = index.get(column)
            row[column] = cells[pos] if pos is not None and pos < len(cells) else ""
        rows.append(row)
    return header, rows


def parse_frequency(text: str) -> float:
    """Read a frequency leniently: a leading number is enough, else NaN."""
    s = (text or "").strip()
    try:
        return float(s)
    except ValueError:
        pass
    m = _NUMBER_PREFIX.match(s)
    return float(m.group(0)) if m else math.nan


def entry_from_row(row: Dict[str, str]) -> LogEntry:
    """Build an unsaved LogEntry from a decoded row.

    Raises ValidationError for an unknown band or an unreadable timestamp.
    """
    band = Band.parse(row["band"])
    timestamp = parse_timestamp(row["timestamp"])
    return LogEntry(
        uuid=row.get("uuid") or None,
        band=band.value,
        frequency=parse_frequency(row["frequency"]),
        callsign=row.get("callsign", ""),
        rst=row.get("rst", ""),
        memo=row.get("memo", ""),
        timestamp=timestamp,
    )


def load_csv(text: str) -> DecodedCsv:
    """Parse CSV text into entries; bad rows are collected, not raised.

    Raises FormatError (via parse_csv) for problems affecting the whole file.
    """
    columns, rows = parse_csv(text)
    decoded = DecodedCsv(columns=columns)
    for n, row in enumerate(rows, start=1):
        try:
            decoded.entries.append(entry_from_row(row))
        except ValidationError as e:
            decoded.rejected.append(RejectedRow(n, str(e)))
    return decoded
