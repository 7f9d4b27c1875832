"""Safe archive extraction.

Guards against common archive attacks:
- Zip Slip (../ traversal) and absolute paths
- Symlink escapes through the destination or planted parent directories
- Decompression bombs, both declared (central directory) and actual (stream)
- Entry floods and excessive nesting

Extraction is two-phase. ``validate_entries`` scans declared metadata and
rejects the archive before any byte is written. The executor then re-enforces
the size limits on the bytes actually decompressed, since declared sizes are
attacker-controlled.
"""

from __future__ import annotations

import os
import posixpath
import stat
import zipfile
import zlib
from collections.abc import Sequence
from pathlib import Path, PureWindowsPath
from typing import BinaryIO

from zipguard.errors import (
    ArchiveOpenError,
    ArchiveValidationError,
    ExtractionError,
    FilesystemError,
    PathSecurityError,
    SizeExceededError,
)
from zipguard.logging import get_logger
from zipguard.security.fs import FileSystem, OsFileSystem
from zipguard.types import (
    DEFAULT_LIMITS,
    EntryInfo,
    ExtractionLimits,
    ExtractionReport,
    ExtractionState,
)

COPY_CHUNK = 64 * 1024
DEFAULT_DIR_MODE = 0o755
DEFAULT_FILE_MODE = 0o644

log = get_logger()


def _is_within(base: Path, target: Path) -> bool:
    try:
        target.relative_to(base)
        return True
    except ValueError:
        return False


def _dir_mode(mode: int) -> int:
    perms = stat.S_IMODE(mode) & 0o777
    return (perms or DEFAULT_DIR_MODE) | stat.S_IRWXU


def _file_mode(mode: int) -> int:
    perms = stat.S_IMODE(mode) & 0o777
    return (perms or DEFAULT_FILE_MODE) | stat.S_IRUSR | stat.S_IWUSR


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


def _check_limits(limits: ExtractionLimits) -> None:
    for field, value in limits.model_dump().items():
        if value <= 0:
            raise ArchiveValidationError(
                f"invalid extraction limit {field}: {value} (must be positive)",
                limit=value,
            )


def validate_entries(entries: Sequence[EntryInfo], limits: ExtractionLimits) -> None:
    """Reject *entries* whose declared metadata breaks *limits*.

    Pure scan: reads only central-directory fields, never decompresses.
    """
    _check_limits(limits)

    if len(entries) > limits.max_file_count:
        raise ArchiveValidationError(
            f"zip contains too many files: {len(entries)} (max {limits.max_file_count})",
            limit=limits.max_file_count,
            actual=len(entries),
        )

    total = 0
    for e in entries:
        if e.size > limits.max_file_size:
            raise ArchiveValidationError(
                f"file {e.name} exceeds max size: {e.size} bytes (max {limits.max_file_size})",
                entry=e.name,
                limit=limits.max_file_size,
                actual=e.size,
            )
        total += e.size

    if total > limits.max_total_size:
        raise ArchiveValidationError(
            f"total extracted size exceeds limit: {total} bytes (max {limits.max_total_size})",
            limit=limits.max_total_size,
            actual=total,
        )


# ---------------------------------------------------------------------------
# Path safety
# ---------------------------------------------------------------------------


def sanitize_entry_path(name: str, limits: ExtractionLimits) -> str:
    """Return the normalized, relative POSIX form of entry *name*.

    Raises PathSecurityError for absolute paths, parent escapes and paths
    deeper than ``limits.max_depth`` separators.
    """
    raw = name.replace("\\", "/")
    if PureWindowsPath(raw).drive:
        raise PathSecurityError(f"invalid file path in zip: {name}", entry=name)

    clean = posixpath.normpath(raw)
    if posixpath.isabs(clean) or clean == ".." or clean.startswith("../"):
        raise PathSecurityError(f"invalid file path in zip: {name}", entry=name)

    depth = clean.count("/")
    if depth > limits.max_depth:
        raise PathSecurityError(
            f"file path too deep: {clean} (depth {depth}, max {limits.max_depth})",
            entry=name,
            limit=limits.max_depth,
            actual=depth,
        )
    return clean


def resolve_target(dest_root: Path, rel_name: str, *, is_dir: bool) -> Path:
    """Join *rel_name* onto *dest_root* and verify the result stays inside it.

    *dest_root* must already be absolute and fully resolved. Only directory
    entries may land on the root itself.
    """
    target = Path(os.path.normpath(dest_root.joinpath(*rel_name.split("/"))))
    if target == dest_root:
        if is_dir:
            return target
    elif _is_within(dest_root, target):
        return target
    raise PathSecurityError(f"path traversal detected: {rel_name}", entry=rel_name)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


def _make_dirs(fs: FileSystem, path: Path, mode: int) -> None:
    try:
        fs.make_dirs(path, mode)
    except OSError as exc:
        raise FilesystemError(f"failed to create directory {path}: {exc}") from exc


def _ensure_dir(fs: FileSystem, dest_root: Path, path: Path, mode: int, entry: str) -> None:
    """Create *path* under *dest_root* without following symlinks out of it.

    The nearest existing ancestor is checked before anything is created, and
    the finished directory is checked again afterwards.
    """
    existing = path
    while existing != dest_root and not existing.exists():
        existing = existing.parent
    if not _is_within(dest_root, existing.resolve()):
        raise PathSecurityError(f"path traversal detected: {entry}", entry=entry)

    _make_dirs(fs, path, mode)
    if not _is_within(dest_root, path.resolve()):
        raise PathSecurityError(f"path traversal detected: {entry}", entry=entry)


def _remove_partial(fs: FileSystem, path: Path, entry: str) -> None:
    try:
        fs.remove(path)
    except OSError as exc:
        raise FilesystemError(
            f"failed to remove partial file {path}: {exc}", entry=entry
        ) from exc


def _bounded_copy(src: BinaryIO, out: BinaryIO, ceiling: int) -> int:
    """Copy at most *ceiling* bytes from *src* to *out*; return bytes written."""
    written = 0
    while written < ceiling:
        chunk = src.read(min(COPY_CHUNK, ceiling - written))
        if not chunk:
            break
        out.write(chunk)
        written += len(chunk)
    return written


def _extract_file(
    zf: zipfile.ZipFile,
    info: zipfile.ZipInfo,
    entry: EntryInfo,
    target: Path,
    dest_root: Path,
    limits: ExtractionLimits,
    fs: FileSystem,
) -> int:
    _ensure_dir(fs, dest_root, target.parent, DEFAULT_DIR_MODE, entry.name)

    try:
        out = fs.open_file(target, _file_mode(entry.mode))
    except OSError as exc:
        raise FilesystemError(
            f"failed to open {target} for writing: {exc}", entry=entry.name
        ) from exc

    try:
        with out, zf.open(info) as src:
            written = _bounded_copy(src, out, limits.max_file_size + 1)
    # RuntimeError covers encrypted entries and unsupported compression methods
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError, RuntimeError) as exc:
        _remove_partial(fs, target, entry.name)
        raise ArchiveOpenError(
            f"failed to read {entry.name} from zip: {exc}", entry=entry.name
        ) from exc
    except OSError as exc:
        _remove_partial(fs, target, entry.name)
        raise FilesystemError(f"failed to write {target}: {exc}", entry=entry.name) from exc

    if written > limits.max_file_size:
        _remove_partial(fs, target, entry.name)
        raise SizeExceededError(
            f"file {entry.name} exceeds max size during extraction (max {limits.max_file_size})",
            entry=entry.name,
            limit=limits.max_file_size,
            actual=written,
        )
    return written


def _extract_entry(
    zf: zipfile.ZipFile,
    info: zipfile.ZipInfo,
    dest_root: Path,
    limits: ExtractionLimits,
    fs: FileSystem,
    state: ExtractionState,
) -> None:
    entry = EntryInfo.from_zipinfo(info)
    rel = sanitize_entry_path(entry.name, limits)
    target = resolve_target(dest_root, rel, is_dir=entry.is_dir)

    if entry.is_dir:
        _ensure_dir(fs, dest_root, target, _dir_mode(entry.mode), entry.name)
        state.dirs_created += 1
        state.entries_processed += 1
        return

    written = _extract_file(zf, info, entry, target, dest_root, limits, fs)
    state.files_written += 1
    state.entries_processed += 1
    state.total_bytes += written
    log.debug("entry extracted", extra={"entry": entry.name, "bytes": written})

    if state.total_bytes > limits.max_total_size:
        raise SizeExceededError(
            f"total extracted size exceeds limit: {state.total_bytes} bytes "
            f"(max {limits.max_total_size})",
            entry=entry.name,
            limit=limits.max_total_size,
            actual=state.total_bytes,
        )


def _open_zip(archive_path: Path) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(archive_path)
    except (zipfile.BadZipFile, OSError) as exc:
        raise ArchiveOpenError(f"failed to open zip {archive_path}: {exc}") from exc


def extract_zip(
    archive_path: str | os.PathLike[str],
    dest_dir: str | os.PathLike[str],
    limits: ExtractionLimits = DEFAULT_LIMITS,
    *,
    fs: FileSystem | None = None,
) -> ExtractionReport:
    """Extract *archive_path* into *dest_dir* within *limits*.

    Entries are processed in central-directory order and the first failure
    aborts the whole call. Entries already written stay on disk; only the
    partial file of the failing entry is removed.

    Parameters
    ----------
    archive_path: str | PathLike
        Local ZIP file, opened read-only.
    dest_dir: str | PathLike
        Destination root, created if missing and resolved to a canonical path.
    limits: ExtractionLimits
        Per-file, total, count and depth ceilings.
    fs: FileSystem | None
        Write capability; defaults to the real filesystem.

    Returns
    -------
    ExtractionReport
        Counts and bytes written.
    """
    if fs is None:
        fs = OsFileSystem()
    archive_path = Path(archive_path)

    try:
        zf = _open_zip(archive_path)
    except ArchiveOpenError as exc:
        log.warning(
            "archive rejected", extra={"archive": str(archive_path), "reason": str(exc)}
        )
        raise

    with zf:
        infos = zf.infolist()
        try:
            validate_entries([EntryInfo.from_zipinfo(i) for i in infos], limits)
        except ArchiveValidationError as exc:
            log.warning(
                "archive rejected", extra={"archive": str(archive_path), "reason": str(exc)}
            )
            raise
        log.debug("archive validated", extra={"archive": str(archive_path), "entries": len(infos)})

        dest_root = Path(os.path.abspath(dest_dir))
        try:
            fs.make_dirs(dest_root, DEFAULT_DIR_MODE)
        except OSError as exc:
            log.warning(
                "extraction aborted", extra={"archive": str(archive_path), "reason": str(exc)}
            )
            raise FilesystemError(f"failed to create destination {dest_root}: {exc}") from exc
        dest_root = dest_root.resolve()

        state = ExtractionState()
        for info in infos:
            try:
                _extract_entry(zf, info, dest_root, limits, fs, state)
            except ExtractionError as exc:
                log.warning(
                    "extraction aborted",
                    extra={
                        "archive": str(archive_path),
                        "entry": info.filename,
                        "reason": str(exc),
                    },
                )
                raise

    log.info(
        "archive extracted",
        extra={"archive": str(archive_path), "dest": str(dest_root), "bytes": state.total_bytes},
    )
    return ExtractionReport(
        destination=dest_root,
        files_written=state.files_written,
        dirs_created=state.dirs_created,
        total_bytes=state.total_bytes,
    )
