"""Bounded, traversal-safe zip extraction."""

from zipguard.errors import (
    ArchiveOpenError,
    ArchiveValidationError,
    ExtractionError,
    FilesystemError,
    PathSecurityError,
    SizeExceededError,
)
from zipguard.security.archive import extract_zip, validate_entries
from zipguard.staging import extract_zip_atomic
from zipguard.types import DEFAULT_LIMITS, ExtractionLimits, ExtractionReport

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_LIMITS",
    "ArchiveOpenError",
    "ArchiveValidationError",
    "ExtractionError",
    "ExtractionLimits",
    "ExtractionReport",
    "FilesystemError",
    "PathSecurityError",
    "SizeExceededError",
    "extract_zip",
    "extract_zip_atomic",
    "validate_entries",
]
