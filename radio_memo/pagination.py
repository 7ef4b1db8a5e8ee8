"""Page views over the store in display order (newest first).

Nothing here keeps state between calls: the caller passes the page it wants
and gets back a Page carrying an explicit PaginationState for the next call.
The store is re-counted on every fetch, so a stale page number is clamped
instead of producing an out-of-range slice.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Protocol

from .models import LogEntry, format_frequency, format_timestamp


class PagedStore(Protocol):
    def count(self) -> int: ...

    def range_by_time_desc(self, offset: int, limit: int) -> List[LogEntry]: ...


@dataclass(frozen=True)
class PaginationState:
    """Where the view is: current page, total pages and the page size."""

    page: int
    total_pages: int
    page_size: int

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


@dataclass(frozen=True)
class DisplayRow:
    """One entry as the UI shows it (unit attached, timestamp formatted)."""

    id: int
    uuid: str
    band: str
    frequency: str
    callsign: str
    rst: str
    memo: str
    timestamp: str


def display_row(entry: LogEntry) -> DisplayRow:
    return DisplayRow(
        id=entry.id,
        uuid=entry.uuid or "",
        band=entry.band,
        frequency=format_frequency(entry.frequency, entry.band),
        callsign=entry.callsign or "",
        rst=entry.rst or "",
        memo=entry.memo or "",
        timestamp=format_timestamp(entry.timestamp),
    )


@dataclass(frozen=True)
class Page:
    state: PaginationState
    entries: List[LogEntry] = field(default_factory=list)

    @property
    def rows(self) -> List[DisplayRow]:
        return [display_row(e) for e in self.entries]


def total_pages(total: int, page_size: int) -> int:
    """ceil(total / page_size); zero for an empty store."""
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    return math.ceil(total / page_size) if total > 0 else 0


def clamp_page(page: int, pages: int) -> int:
    return min(max(page, 1), max(pages, 1))


def fetch_page(store: PagedStore, page: int = 1, page_size: int = 10) -> Page:
    """Return the requested page, clamped into range.

    If the store shrank between the count and the range read, the count is
    taken again and the page re-clamped until the slice is in range.
    """
    while True:
        pages = total_pages(store.count(), page_size)
        current = clamp_page(page, pages)
        entries = store.range_by_time_desc((current - 1) * page_size, page_size)
        if entries or current == 1:
            break
        page = current - 1
    if len(entries) > page_size:
        entries = entries[:page_size]
    return Page(PaginationState(current, pages, page_size), entries)


def step(state: PaginationState, delta: int) -> int:
    """Page to show after pressing prev (-1) or next (+1); no-op at the ends."""
    target = state.page + delta
    if target < 1 or target > max(state.total_pages, 1):
        return state.page
    return target


def page_after_delete(state: PaginationState, remaining_on_page: int) -> int:
    """Step back one page when a delete emptied a page other than the first."""
    if remaining_on_page <= 0 and state.page > 1:
        return state.page - 1
    return state.page


def page_after_insert() -> int:
    return 1
