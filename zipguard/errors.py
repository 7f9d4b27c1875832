"""Exception hierarchy for archive extraction.

Every error derives from ``ExtractionError`` so callers can catch the whole
surface with one ``except`` clause. Context (entry name, limit, actual value)
is kept on the exception as well as in its message.
"""

from __future__ import annotations


class ExtractionError(Exception):
    """Base class for all extraction failures."""

    def __init__(
        self,
        message: str,
        *,
        entry: str | None = None,
        limit: int | None = None,
        actual: int | None = None,
    ) -> None:
        super().__init__(message)
        self.entry = entry
        self.limit = limit
        self.actual = actual


class ArchiveOpenError(ExtractionError):
    """The archive is missing, unreadable, or not a valid ZIP container."""


class ArchiveValidationError(ExtractionError):
    """The central directory fails the pre-flight scan.

    Too many entries, a declared size above the per-file limit, a declared
    total above the total limit, or limits that can never be satisfied.
    """


class PathSecurityError(ExtractionError):
    """An entry path escapes the destination or nests too deep."""


class SizeExceededError(ExtractionError):
    """Bytes actually decompressed exceed the per-file or total limit."""


class FilesystemError(ExtractionError):
    """Creating, writing or deleting on disk failed."""
