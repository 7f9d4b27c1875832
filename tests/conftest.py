from __future__ import annotations

import zipfile
from collections.abc import Callable
from pathlib import Path

import pytest


def write_zip(path: Path, files: dict[str, bytes | str]) -> Path:
    """Write a zip at *path* with *files* in insertion order (names kept verbatim)."""
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as z:
        for name, content in files.items():
            z.writestr(name, content)
    return path


@pytest.fixture
def make_zip(tmp_path: Path) -> Callable[..., Path]:
    counter = 0

    def _make(files: dict[str, bytes | str], name: str | None = None) -> Path:
        nonlocal counter
        counter += 1
        return write_zip(tmp_path / (name or f"archive-{counter}.zip"), files)

    return _make
