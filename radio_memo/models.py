"""Data models used by Radio Memo.

We expose a single SQLModel table, LogEntry, which represents one contact or
reception event, plus the closed Band enumeration and the helpers that turn
form values into validated entries and entries into display text.
"""

from __future__ import annotations

import math
import uuid as uuidlib
from datetime import UTC, datetime
from enum import Enum
from typing import Optional, Union

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from .errors import ValidationError


class Band(str, Enum):
    """Monitored band; decides whether frequencies read in kHz or MHz."""

    AM = "AM"
    FM = "FM"
    USB = "USB"
    LSB = "LSB"
    CW = "CW"

    @classmethod
    def parse(cls, value: Union[str, "Band", None]) -> "Band":
        """Case-insensitive lookup; raises ValidationError for unknown bands."""
        if isinstance(value, Band):
            return value
        key = (value or "").strip().upper()
        try:
            return cls(key)
        except ValueError as e:
            raise ValidationError(f"Unknown band: {value!r}") from e


KHZ = "kHz"
MHZ = "MHz"

# Decimal places used when a frequency is shown in its unit.
DISPLAY_PRECISION = {KHZ: 1, MHZ: 3}


class LogEntry(SQLModel, table=True):
    """A single log entry stored in SQLite via SQLModel.

    Attributes
    - id: Surrogate primary key (autoincrement), assigned by the store.
    - uuid: Stable external identity carried through CSV export/import.
    - band: One of the Band values.
    - frequency: Numeric frequency in the band's unit; None when unparseable.
    - callsign/rst: Optional station and signal report (empty when unknown).
    - memo: Free-form notes.
    - timestamp: UTC instant of the event (naive UTC), primary sort key.
    """

    __tablename__ = "logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    uuid: Optional[str] = Field(default=None, unique=True, index=True)
    band: str = Field(index=True, description="Band name, e.g. AM or USB")
    frequency: Optional[float] = Field(default=None, description="Frequency in the band's unit")
    callsign: Optional[str] = None
    rst: Optional[str] = None
    memo: Optional[str] = None
    timestamp: datetime = Field(
        sa_type=DateTime(timezone=False), index=True, description="Event time (UTC, naive)"
    )


def now_utc() -> datetime:
    """Return the current time as a naive UTC datetime without microseconds."""
    return datetime.now(UTC).replace(tzinfo=None, microsecond=0)


def new_uuid() -> str:
    return str(uuidlib.uuid4())


def parse_timestamp(value: Union[str, datetime, None]) -> datetime:
    """Parse an ISO-8601 style UTC time into a naive UTC datetime.

    Accepts a trailing "Z" or numeric offset (converted to UTC), a space or "T"
    separator, and the display form "YYYY/MM/DD HH:MM UTC".

    Raises ValidationError when the value cannot be read as an instant.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        s = (value or "").strip()
        if not s:
            raise ValidationError("timestamp is required")
        if s.upper().endswith(" UTC"):
            s = s[:-4].rstrip()
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            dt = None
            for fmt in ("%Y/%m/%d %H:%M:%S", "%Y/%m/%d %H:%M", "%Y/%m/%d"):
                try:
                    dt = datetime.strptime(s, fmt)
                    break
                except ValueError:
                    continue
            if dt is None:
                raise ValidationError(f"Unrecognized timestamp: {value!r}")
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def isoformat_utc(dt: datetime) -> str:
    """Render a naive UTC datetime as ISO-8601 with a Z suffix."""
    return dt.isoformat() + "Z"


def frequency_unit(band: Union[str, Band]) -> str:
    """AM is tuned in kHz; everything else in MHz (unknown bands too)."""
    try:
        return KHZ if Band.parse(band) is Band.AM else MHZ
    except ValidationError:
        return MHZ


def is_missing_frequency(frequency: Optional[float]) -> bool:
    return frequency is None or math.isnan(frequency)


def format_frequency(frequency: Optional[float], band: Union[str, Band]) -> str:
    """Format a frequency to fixed precision followed by its unit."""
    unit = frequency_unit(band)
    if is_missing_frequency(frequency):
        return f"NaN {unit}"
    return f"{frequency:.{DISPLAY_PRECISION[unit]}f} {unit}"


def format_timestamp(dt: datetime) -> str:
    return dt.strftime("%Y/%m/%d %H:%M") + " UTC"


def new_entry(
    band: Union[str, Band, None],
    frequency: Union[str, float, None],
    timestamp: Union[str, datetime, None] = None,
    callsign: Optional[str] = None,
    rst: Optional[str] = None,
    memo: Optional[str] = None,
) -> LogEntry:
    """Build a validated LogEntry from submitted form values.

    The timestamp defaults to now; "now" is accepted too. The frequency must be
    a finite number. Callsigns are uppercased.

    Raises ValidationError naming the first offending field.
    """
    b = Band.parse(band)

    if isinstance(frequency, (int, float)):
        freq = float(frequency)
    else:
        text = (frequency or "").strip()
        if not text:
            raise ValidationError("frequency is required")
        try:
            freq = float(text)
        except ValueError as e:
            raise ValidationError(f"frequency must be a number: {frequency!r}") from e
    if not math.isfinite(freq):
        raise ValidationError(f"frequency must be finite: {frequency!r}")

    if timestamp is None or (isinstance(timestamp, str) and timestamp.strip().lower() in ("", "now")):
        ts = now_utc()
    else:
        ts = parse_timestamp(timestamp)

    return LogEntry(
        uuid=new_uuid(),
        band=b.value,
        frequency=freq,
        callsign=(callsign or "").strip().upper(),
        rst=(rst or "").strip(),
        memo=(memo or "").strip(),
        timestamp=ts,
    )
