"""Filesystem capability used by the extractor.

The extractor never touches ``os`` directly for writes; it goes through a
``FileSystem`` passed in by the caller so failure paths can be exercised with
fakes instead of real disk faults.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import BinaryIO, Protocol

# 0 where the platform has no O_NOFOLLOW (Windows)
_NOFOLLOW = getattr(os, "O_NOFOLLOW", 0)
_BINARY = getattr(os, "O_BINARY", 0)


class FileSystem(Protocol):
    def make_dirs(self, path: Path, mode: int) -> None: ...

    def open_file(self, path: Path, mode: int) -> BinaryIO: ...

    def remove(self, path: Path) -> None: ...


class OsFileSystem:
    """Real filesystem backed by ``os``."""

    def make_dirs(self, path: Path, mode: int) -> None:
        os.makedirs(path, mode=mode, exist_ok=True)

    def open_file(self, path: Path, mode: int) -> BinaryIO:
        """Open *path* write-only, creating or truncating it.

        A symlink planted at *path* is refused rather than followed.
        """
        flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | _NOFOLLOW | _BINARY
        fd = os.open(path, flags, mode)
        return os.fdopen(fd, "wb")

    def remove(self, path: Path) -> None:
        os.remove(path)
