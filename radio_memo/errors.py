"""Error taxonomy shared by the store, the CSV codec and the workflows."""

from __future__ import annotations

from typing import Iterable, List, Optional


class RadioMemoError(Exception):
    """Base class for every expected failure the UI can report."""


class ValidationError(RadioMemoError, ValueError):
    """A form or CSV field is missing or malformed."""


class StorageError(RadioMemoError, RuntimeError):
    """The underlying persistence layer failed."""


class FormatError(RadioMemoError, ValueError):
    """CSV text has no header plus data row, or lacks required columns."""

    def __init__(self, message: str, missing: Optional[Iterable[str]] = None) -> None:
        super().__init__(message)
        self.missing: List[str] = list(missing or [])
