"""zipguard CLI: bounded, traversal-safe zip extraction.

Commands:
- extract  ARCHIVE [--out DIR] [--atomic] [--force]
- inspect  ARCHIVE   (pre-flight scan only, writes nothing)
- limits             (print the effective limits)

Limits resolve as defaults -> --limits FILE -> ZIPGUARD_* env -> --max-* flags.
"""

from __future__ import annotations

import logging
import stat
import zipfile
from pathlib import Path

import typer
from jsonschema import ValidationError as SchemaError
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from zipguard.attachments import extraction_dir_for
from zipguard.config import load_limits
from zipguard.errors import ExtractionError
from zipguard.logging import set_level
from zipguard.security.archive import extract_zip, validate_entries
from zipguard.staging import extract_zip_atomic
from zipguard.types import EntryInfo, ExtractionLimits

app = typer.Typer(add_completion=False, help="Safely extract untrusted zip archives")
console = Console()

LimitsFile = typer.Option(None, "--limits", help="JSON limits file")
MaxFileSize = typer.Option(None, "--max-file-size", help="Max bytes per entry")
MaxTotalSize = typer.Option(None, "--max-total-size", help="Max bytes across the archive")
MaxFiles = typer.Option(None, "--max-files", help="Max number of entries")
MaxDepth = typer.Option(None, "--max-depth", help="Max path separators per entry")


def _say(msg: str) -> None:
    # soft_wrap keeps long paths on one line when stdout is not a terminal
    console.print(msg, soft_wrap=True)


def _limits(
    limits_file: str | None,
    max_file_size: int | None,
    max_total_size: int | None,
    max_files: int | None,
    max_depth: int | None,
) -> ExtractionLimits:
    try:
        return load_limits(
            limits_file,
            max_file_size=max_file_size,
            max_total_size=max_total_size,
            max_file_count=max_files,
            max_depth=max_depth,
        )
    except (OSError, ValueError, SchemaError) as exc:
        _say(f"[red]Invalid limits:[/red] {escape(str(exc))}")
        raise typer.Exit(2) from exc


def _read_entries(archive: Path) -> list[EntryInfo]:
    try:
        with zipfile.ZipFile(archive) as zf:
            return [EntryInfo.from_zipinfo(i) for i in zf.infolist()]
    except (zipfile.BadZipFile, OSError) as exc:
        _say(f"[red]failed to open zip:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc


@app.command()
def extract(
    archive: str = typer.Argument(..., help="Path to the zip archive"),
    out: str | None = typer.Option(
        None, "--out", "-o", help="Destination (default: archive name beside it)"
    ),
    atomic: bool = typer.Option(False, "--atomic", help="Stage and rename into place on success"),
    force: bool = typer.Option(
        False, "--force", help="With --atomic, replace an existing destination"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each entry to stderr"),
    limits_file: str | None = LimitsFile,
    max_file_size: int | None = MaxFileSize,
    max_total_size: int | None = MaxTotalSize,
    max_files: int | None = MaxFiles,
    max_depth: int | None = MaxDepth,
) -> None:
    if verbose:
        set_level(logging.DEBUG)
    limits = _limits(limits_file, max_file_size, max_total_size, max_files, max_depth)
    dest = Path(out) if out else extraction_dir_for(archive)

    try:
        if atomic:
            report = extract_zip_atomic(archive, dest, limits, force=force)
        else:
            report = extract_zip(archive, dest, limits)
    except (ExtractionError, FileExistsError) as exc:
        _say(f"[red]Error extracting {escape(archive)}:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    _say(f"[green]Extracted to:[/green] {escape(str(report.destination))}")
    rprint(
        f"files={report.files_written} dirs={report.dirs_created} bytes={report.total_bytes}"
    )


@app.command()
def inspect(
    archive: str = typer.Argument(..., help="Path to the zip archive"),
    limits_file: str | None = LimitsFile,
    max_file_size: int | None = MaxFileSize,
    max_total_size: int | None = MaxTotalSize,
    max_files: int | None = MaxFiles,
    max_depth: int | None = MaxDepth,
) -> None:
    limits = _limits(limits_file, max_file_size, max_total_size, max_files, max_depth)
    entries = _read_entries(Path(archive))

    table = Table(title=f"Archive Contents ({len(entries)} entries)")
    table.add_column("Name", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Dir")
    table.add_column("Mode")
    for e in entries:
        mode = stat.filemode(e.mode) if e.mode else "-"
        table.add_row(e.name, str(e.size), "yes" if e.is_dir else "", mode)
    console.print(table)

    try:
        validate_entries(entries, limits)
    except ExtractionError as exc:
        _say(f"[red]Rejected:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc
    rprint("[green]Accepted by pre-flight checks.[/green]")


@app.command()
def limits(
    limits_file: str | None = LimitsFile,
    max_file_size: int | None = MaxFileSize,
    max_total_size: int | None = MaxTotalSize,
    max_files: int | None = MaxFiles,
    max_depth: int | None = MaxDepth,
) -> None:
    effective = _limits(limits_file, max_file_size, max_total_size, max_files, max_depth)
    # plain print: rich would restyle the JSON
    print(effective.model_dump_json(indent=2))


if __name__ == "__main__":
    app()
