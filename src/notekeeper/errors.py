"""Exception types raised by the notebook store and the import/export layer."""

from __future__ import annotations


class NotekeeperError(Exception):
    """Base class for every error the core reports to its caller."""


class StorageError(NotekeeperError):
    """The SQLite store could not be read or written."""


class ValidationError(NotekeeperError, ValueError):
    """Input rejected before reaching the store (empty name, bad reference)."""


class NotFoundError(NotekeeperError, LookupError):
    """No row exists for the requested id."""


class ImportFormatError(NotekeeperError):
    """The import document is not valid JSON or lacks the expected keys."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid format: {detail}")
        self.detail = detail


class ImportCancelled(NotekeeperError):
    """An import was cancelled between records."""


__all__ = [
    "ImportCancelled",
    "ImportFormatError",
    "NotFoundError",
    "NotekeeperError",
    "StorageError",
    "ValidationError",
]
