from __future__ import annotations

from pathlib import Path

import pytest

from zipguard.attachments import extract_attachment, extraction_dir_for, is_zip_file
from zipguard.errors import FilesystemError, PathSecurityError
from zipguard.security.fs import OsFileSystem
from zipguard.staging import extract_zip_atomic


@pytest.mark.parametrize(
    "filename, mime, expected",
    [
        ("archive.zip", "", True),
        ("ARCHIVE.ZIP", "", True),
        ("report.pdf", "application/zip", True),
        ("blob", "application/x-zip-compressed", True),
        ("report.pdf", "application/pdf", False),
        ("archive.zip.txt", "text/plain", False),
    ],
)
def test_is_zip_file(filename: str, mime: str, expected: bool) -> None:
    assert is_zip_file(filename, mime) is expected


def test_extraction_dir_for(tmp_path: Path) -> None:
    assert extraction_dir_for(tmp_path / "photos.zip") == tmp_path / "photos"
    assert extraction_dir_for("photos.zip", tmp_path / "dl") == tmp_path / "dl" / "photos"
    assert extraction_dir_for(tmp_path / "bundle") == tmp_path / "bundle_extracted"


def test_extract_attachment(make_zip, tmp_path: Path) -> None:
    archive = make_zip({"a.txt": "x"}, name="bundle.zip")

    dest = extract_attachment(archive)

    assert dest == tmp_path / "bundle"
    assert (dest / "a.txt").read_text() == "x"


def test_extract_attachment_without_extension(make_zip, tmp_path: Path) -> None:
    archive = make_zip({"a.txt": "x"}, name="bundle")

    dest = extract_attachment(archive, mime_type="application/zip")

    assert dest == tmp_path / "bundle_extracted"
    assert archive.is_file()
    assert (dest / "a.txt").read_text() == "x"


class _NoOpenFS(OsFileSystem):
    def open_file(self, path, mode):
        raise OSError("quota exceeded")


def test_extract_attachment_uses_given_filesystem(make_zip, tmp_path: Path) -> None:
    archive = make_zip({"a.txt": "x"}, name="bundle.zip")

    with pytest.raises(FilesystemError, match="quota exceeded"):
        extract_attachment(archive, fs=_NoOpenFS())
    assert not (tmp_path / "bundle" / "a.txt").exists()


def test_extract_attachment_skips_non_zip(tmp_path: Path) -> None:
    doc = tmp_path / "notes.pdf"
    doc.write_bytes(b"%PDF-1.7")

    assert extract_attachment(doc, mime_type="application/pdf") is None
    assert not (tmp_path / "notes").exists()


# ---------------------------------------------------------------------------
# Atomic staging
# ---------------------------------------------------------------------------


def _leftovers(parent: Path) -> list[Path]:
    return [p for p in parent.iterdir() if p.name.startswith(".zipguard-")]


def test_atomic_success(make_zip, tmp_path: Path) -> None:
    archive = make_zip({"a.txt": "x", "dir/b.txt": "y"})
    dest = tmp_path / "final"

    report = extract_zip_atomic(archive, dest)

    assert report.destination == dest.resolve()
    assert (dest / "dir" / "b.txt").read_text() == "y"
    assert _leftovers(tmp_path) == []


def test_atomic_failure_leaves_nothing(make_zip, tmp_path: Path) -> None:
    archive = make_zip({"ok.txt": "fine", "../evil.txt": "bad"})
    dest = tmp_path / "final"

    with pytest.raises(PathSecurityError):
        extract_zip_atomic(archive, dest)

    assert not dest.exists()
    assert _leftovers(tmp_path) == []


def test_atomic_refuses_existing_destination(make_zip, tmp_path: Path) -> None:
    archive = make_zip({"a.txt": "x"})
    dest = tmp_path / "final"
    dest.mkdir()

    with pytest.raises(FileExistsError):
        extract_zip_atomic(archive, dest)


def test_atomic_force_replaces(make_zip, tmp_path: Path) -> None:
    archive = make_zip({"a.txt": "x"})
    dest = tmp_path / "final"
    dest.mkdir()
    (dest / "stale.txt").write_text("old")

    extract_zip_atomic(archive, dest, force=True)

    assert (dest / "a.txt").read_text() == "x"
    assert not (dest / "stale.txt").exists()


def test_atomic_destination_under_a_file(make_zip, tmp_path: Path) -> None:
    archive = make_zip({"a.txt": "x"})
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    with pytest.raises(FilesystemError, match="staging directory") as info:
        extract_zip_atomic(archive, blocker / "sub" / "out")
    assert isinstance(info.value.__cause__, OSError)
    assert blocker.read_text() == "not a directory"


def test_atomic_publish_failure_is_wrapped(make_zip, tmp_path: Path, monkeypatch) -> None:
    archive = make_zip({"a.txt": "x"})
    dest = tmp_path / "final"

    def refuse(src, dst):
        raise PermissionError("rename refused")

    monkeypatch.setattr("zipguard.staging._atomic_rename", refuse)

    with pytest.raises(FilesystemError, match="failed to publish") as info:
        extract_zip_atomic(archive, dest)
    assert isinstance(info.value.__cause__, PermissionError)
    assert not dest.exists()
    assert _leftovers(tmp_path) == []
