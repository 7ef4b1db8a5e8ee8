"""Command-line interface for Radio Memo.

Commands cover initializing/migrating the database, logging entries, paging
through the log, deleting entries, and CSV export/import.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from radio_memo.config import APP_NAME, get_settings
from radio_memo.errors import RadioMemoError
from radio_memo.exchange import (
    delete_from_view,
    export_log,
    import_log,
    read_file,
    save_to_directory,
    submit_entry,
)
from radio_memo.pagination import Page, fetch_page, step
from radio_memo.storage import LogStore, get_store

app = typer.Typer(add_completion=False, help=f"{APP_NAME} - short-wave reception and contact log")
console = Console()


def _configure_logging(verbose: bool) -> None:
    log = logging.getLogger("radio_memo")
    if not any(isinstance(h, RichHandler) for h in log.handlers):
        log.addHandler(RichHandler(console=Console(stderr=True), show_path=False))
    log.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    _configure_logging(verbose)


def _store() -> LogStore:
    """Open the default store, exiting with status 1 if that fails."""
    try:
        return get_store()
    except RadioMemoError as e:
        console.print(f"[red]Error opening database: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e


def _print_page(page: Page) -> None:
    state = page.state
    if not page.entries:
        console.print("No entries yet.")
        return
    table = Table(title=f"Log page {state.page}/{state.total_pages}", show_lines=False)
    table.add_column("ID", justify="right")
    table.add_column("UTC")
    table.add_column("Band")
    table.add_column("Frequency", justify="right")
    table.add_column("Call")
    table.add_column("RST")
    table.add_column("Memo")
    for row in page.rows:
        table.add_row(
            str(row.id),
            row.timestamp,
            row.band,
            row.frequency,
            row.callsign,
            row.rst,
            row.memo[:40],
        )
    console.print(table)
    nav = []
    if state.has_prev:
        nav.append(f"prev: --page {step(state, -1)}")
    if state.has_next:
        nav.append(f"next: --page {step(state, +1)}")
    if nav:
        console.print(" | ".join(nav))


@app.command()
def init() -> None:
    """Create (or upgrade) the database in your user data directory."""
    store = _store()
    console.print(f"Database ready at: [bold]{store.db_path}[/bold]")


@app.command()
def migrate() -> None:
    """Backfill fields missing from entries written by older versions."""
    store = _store()
    try:
        touched = store.migrate()
    except RadioMemoError as e:
        console.print(f"[red]Error migrating database: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e
    console.print(f"Migration complete; {touched} entries updated.")


@app.command()
def log(
    band: str = typer.Option(..., help="Band: AM, FM, USB, LSB or CW"),
    freq: str = typer.Option(..., help="Frequency (kHz for AM, MHz otherwise)"),
    when: Optional[str] = typer.Option("now", help="UTC time: 'now' or 'YYYY-MM-DD HH:MM[:SS]'"),
    call: Optional[str] = typer.Option(None, help="Station callsign"),
    rst: Optional[str] = typer.Option(None, help="Signal report"),
    memo: Optional[str] = typer.Option(None, help="Memo"),
) -> None:
    """Log a new reception or contact."""
    result = submit_entry(_store(), band, freq, when, callsign=call, rst=rst, memo=memo)
    if not result.ok:
        console.print(f"[red]{escape(result.error)}[/red]")
        raise typer.Exit(1)
    e = result.entry
    console.print(f"Saved entry id={e.id} ({e.band}) at {e.timestamp.isoformat()}Z")


@app.command("list")
def list_cmd(
    page: int = typer.Option(1, min=1, help="Page to show"),
    page_size: Optional[int] = typer.Option(None, min=1, help="Entries per page"),
) -> None:
    """Display one page of the log, newest first."""
    size = page_size or get_settings().page_size
    try:
        _print_page(fetch_page(_store(), page, size))
    except RadioMemoError as e:
        console.print(f"[red]Error listing entries: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e


@app.command()
def remove(
    entry_id: int = typer.Argument(..., help="Entry ID to delete"),
    page: int = typer.Option(1, min=1, help="Page currently shown"),
    page_size: Optional[int] = typer.Option(None, min=1, help="Entries per page"),
) -> None:
    """Delete an entry by id; deleting a missing id is not an error."""
    store = _store()
    size = page_size or get_settings().page_size
    try:
        state = fetch_page(store, page, size).state
    except RadioMemoError as e:
        console.print(f"[red]Error deleting entry: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e
    result = delete_from_view(store, entry_id, state)
    if not result.ok:
        console.print(f"[red]{escape(result.error)}[/red]")
        raise typer.Exit(1)
    if result.deleted:
        console.print(f"Deleted entry id={entry_id}; showing page {result.page}")
    else:
        console.print(f"Entry id={entry_id} not found")


@app.command()
def export(
    directory: Optional[Path] = typer.Option(
        None,
        "--dir",
        file_okay=False,
        help="Directory for the CSV file (default from settings)",
    ),
    version: Optional[int] = typer.Option(None, min=1, max=3, help="CSV schema version"),
) -> None:
    """Write the whole log to a new CSV file."""
    settings = get_settings()
    target = directory or settings.export_dir
    result = export_log(
        _store(),
        save_to_directory(target),
        schema_version=version or settings.schema_version,
    )
    if not result.ok:
        console.print(f"[red]{escape(result.message)}[/red]")
        raise typer.Exit(1)
    if result.exported:
        console.print(f"{result.message} (in {target})")
    else:
        console.print(result.message)


@app.command("import")
def import_cmd(
    src: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="CSV file to import",
    ),
) -> None:
    """Import entries from a CSV file, skipping ones already in the log."""
    result = import_log(_store(), read_file(src))
    if not result.ok:
        console.print(f"[red]{escape(result.message)}[/red]")
        raise typer.Exit(1)
    console.print(result.message)


def main() -> None:  # pragma: no cover - exercised via CLI
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
