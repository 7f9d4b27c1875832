"""Helpers for extracting downloaded mail attachments."""

from __future__ import annotations

import os
from pathlib import Path

from zipguard.security.archive import extract_zip
from zipguard.security.fs import FileSystem
from zipguard.types import DEFAULT_LIMITS, ExtractionLimits

ZIP_MIME_TYPES = {"application/zip", "application/x-zip-compressed"}


def is_zip_file(filename: str, mime_type: str = "") -> bool:
    return Path(filename).suffix.lower() == ".zip" or mime_type in ZIP_MIME_TYPES


def extraction_dir_for(
    archive_path: str | os.PathLike[str], download_dir: str | os.PathLike[str] | None = None
) -> Path:
    """Directory named after *archive_path* minus its extension.

    Placed in *download_dir* when given, otherwise beside the archive. A name
    without an extension gets an ``_extracted`` suffix so the directory never
    collides with the archive itself.
    """
    path = Path(archive_path)
    parent = Path(download_dir) if download_dir is not None else path.parent
    name = path.stem if path.suffix else f"{path.name}_extracted"
    return parent / name


def extract_attachment(
    path: str | os.PathLike[str],
    *,
    mime_type: str = "",
    download_dir: str | os.PathLike[str] | None = None,
    limits: ExtractionLimits = DEFAULT_LIMITS,
    fs: FileSystem | None = None,
) -> Path | None:
    """Extract a saved attachment if it is a zip; return where it went.

    Returns None when the attachment is not a zip archive.
    """
    if not is_zip_file(Path(path).name, mime_type):
        return None
    dest = extraction_dir_for(path, download_dir)
    extract_zip(path, dest, limits, fs=fs)
    return dest
