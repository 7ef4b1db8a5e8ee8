"""Duplicate detection for imported entries.

A candidate is a duplicate when its uuid is already known (identity match) or,
failing that, when an entry with the same (timestamp, frequency, memo)
fingerprint is already known (content match). Band, callsign and rst are not
part of the fingerprint, so two different contacts that share those three
values are reported as duplicates; that trade keeps every check a set lookup.

Accepted entries are added to both sets right away, which also catches
duplicates inside a single import file.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Set, Tuple

from .models import LogEntry, is_missing_frequency, isoformat_utc, new_uuid

Fingerprint = Tuple[str, str, str]


class Verdict(str, Enum):
    ACCEPTED = "accepted"
    DUPLICATE_IDENTITY = "duplicate-identity"
    DUPLICATE_CONTENT = "duplicate-content"

    @property
    def is_duplicate(self) -> bool:
        return self is not Verdict.ACCEPTED


def fingerprint(entry: LogEntry) -> Fingerprint:
    """Canonical (timestamp, frequency, memo) key; NaN frequencies compare equal."""
    freq = "NaN" if is_missing_frequency(entry.frequency) else repr(float(entry.frequency))
    return (isoformat_utc(entry.timestamp), freq, entry.memo or "")


class Deduplicator:
    """Tracks known uuids and fingerprints for one import pass."""

    def __init__(
        self,
        uuids: Optional[Iterable[str]] = None,
        fingerprints: Optional[Iterable[Fingerprint]] = None,
    ) -> None:
        self.uuids: Set[str] = {u for u in (uuids or ()) if u}
        self.fingerprints: Set[Fingerprint] = set(fingerprints or ())

    @classmethod
    def from_entries(cls, entries: Iterable[LogEntry]) -> "Deduplicator":
        entries = list(entries)
        return cls(
            uuids=(e.uuid for e in entries),
            fingerprints=(fingerprint(e) for e in entries),
        )

    @classmethod
    def from_store(cls, store) -> "Deduplicator":
        """Seed from everything the store currently holds (store.all())."""
        return cls.from_entries(store.all())

    def classify(self, entry: LogEntry) -> Verdict:
        if entry.uuid and entry.uuid in self.uuids:
            return Verdict.DUPLICATE_IDENTITY
        if fingerprint(entry) in self.fingerprints:
            return Verdict.DUPLICATE_CONTENT
        return Verdict.ACCEPTED

    def remember(self, entry: LogEntry) -> None:
        if not entry.uuid:
            entry.uuid = new_uuid()
        self.uuids.add(entry.uuid)
        self.fingerprints.add(fingerprint(entry))

    def admit(self, entry: LogEntry) -> Verdict:
        """Classify `entry`; when accepted, give it a uuid if needed and record it."""
        verdict = self.classify(entry)
        if verdict is Verdict.ACCEPTED:
            self.remember(entry)
        return verdict
