"""Shared models for the extraction engine."""

from __future__ import annotations

import zipfile
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict

MiB = 1024 * 1024

MAX_FILE_SIZE = 100 * MiB
MAX_TOTAL_SIZE = 500 * MiB
MAX_FILE_COUNT = 1000
MAX_DEPTH = 10


class ExtractionLimits(BaseModel):
    """Resource ceilings for one extraction.

    Attributes
    ----------
    max_file_size: int
        Largest uncompressed entry, in bytes.
    max_total_size: int
        Largest sum of uncompressed bytes written across the archive.
    max_file_count: int
        Most entries the archive may list.
    max_depth: int
        Most path separators allowed in an entry's relative path.

    Non-positive values are accepted here; the validator turns them into a
    rejection before anything is written.
    """

    model_config = ConfigDict(frozen=True)

    max_file_size: int = MAX_FILE_SIZE
    max_total_size: int = MAX_TOTAL_SIZE
    max_file_count: int = MAX_FILE_COUNT
    max_depth: int = MAX_DEPTH

    @classmethod
    def default(cls) -> ExtractionLimits:
        return DEFAULT_LIMITS


DEFAULT_LIMITS = ExtractionLimits()


class EntryInfo(BaseModel):
    """Read-only view of one archive entry as declared in the central directory."""

    model_config = ConfigDict(frozen=True)

    name: str
    size: int
    is_dir: bool = False
    mode: int = 0

    @classmethod
    def from_zipinfo(cls, info: zipfile.ZipInfo) -> EntryInfo:
        # Unix mode lives in the high 16 bits; zero when the creator was not Unix
        return cls(
            name=info.filename,
            size=info.file_size,
            is_dir=info.is_dir(),
            mode=(info.external_attr >> 16) & 0xFFFF,
        )


@dataclass
class ExtractionState:
    total_bytes: int = 0
    entries_processed: int = 0
    files_written: int = 0
    dirs_created: int = 0


@dataclass
class ExtractionReport:
    destination: Path
    files_written: int
    dirs_created: int
    total_bytes: int
