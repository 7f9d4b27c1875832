"""All-or-nothing extraction: stage into a temp dir, then rename into place.

``extract_zip`` leaves already-written entries behind when it aborts. Callers
that need atomicity use ``extract_zip_atomic`` instead; the destination either
appears complete or not at all.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from zipguard.errors import FilesystemError
from zipguard.logging import get_logger
from zipguard.security.archive import DEFAULT_DIR_MODE, extract_zip
from zipguard.security.fs import FileSystem
from zipguard.types import DEFAULT_LIMITS, ExtractionLimits, ExtractionReport

log = get_logger()


def _atomic_rename(src: Path, dst: Path) -> None:
    if dst.exists():
        raise FileExistsError(f"Extraction target already exists: {dst}")
    os.replace(src, dst)


def extract_zip_atomic(
    archive_path: str | os.PathLike[str],
    dest_dir: str | os.PathLike[str],
    limits: ExtractionLimits = DEFAULT_LIMITS,
    *,
    fs: FileSystem | None = None,
    force: bool = False,
) -> ExtractionReport:
    """Extract into a staging sibling of *dest_dir* and rename on success.

    An existing *dest_dir* raises FileExistsError unless *force* is set, in
    which case it is replaced. The staging directory never survives a failure.
    """
    dest = Path(os.path.abspath(dest_dir))
    if dest.exists() and not force:
        raise FileExistsError(f"Extraction target already exists: {dest}")
    # Same parent keeps the final os.replace on one filesystem
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        staging_root = Path(tempfile.mkdtemp(prefix=".zipguard-", dir=dest.parent))
    except OSError as exc:
        raise FilesystemError(f"failed to create staging directory for {dest}: {exc}") from exc

    try:
        # mkdtemp creates 0o700; the published directory gets the usual mode
        staging_root.chmod(DEFAULT_DIR_MODE)
        report = extract_zip(archive_path, staging_root, limits, fs=fs)
        if force and dest.exists():
            log.info("replacing existing destination", extra={"dest": str(dest)})
            shutil.rmtree(dest)
        _atomic_rename(staging_root, dest)
    except FileExistsError:
        shutil.rmtree(staging_root, ignore_errors=True)
        raise
    except OSError as exc:
        shutil.rmtree(staging_root, ignore_errors=True)
        raise FilesystemError(f"failed to publish {dest}: {exc}") from exc
    except Exception:
        shutil.rmtree(staging_root, ignore_errors=True)
        raise

    report.destination = dest.resolve()
    return report
