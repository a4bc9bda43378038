"""Command line interface for AlumniFinder."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from alumnifinder.config import AppConfig
from alumnifinder.index.directory import Directory
from alumnifinder.index.search import Searcher
from alumnifinder.index.storage import SQLiteStateStore, StateStore
from alumnifinder.ingestion.fetcher import DatasetFetcher
from alumnifinder.messaging.gate import OutboundMessageGate
from alumnifinder.messaging.relay import RelayClient
from alumnifinder.models import Alumnus, ContactMode, ContactRequest, SearchFilters
from alumnifinder.web.app import app as web_app


console = Console()
app = typer.Typer(help="AlumniFinder - search the alumni directory and contact former students")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_state_parent(state_path: Path) -> None:
    state_path.parent.mkdir(parents=True, exist_ok=True)


def _load_directory(config: AppConfig) -> Directory:
    directory = Directory(DatasetFetcher(config.csv_url, timeout=config.timeout))
    with console.status("Loading directory..."):
        directory.load()
    return directory


def _open_store(config: AppConfig) -> SQLiteStateStore:
    resolved = config.resolve_state_path(Path.cwd())
    _ensure_state_parent(resolved)
    return SQLiteStateStore(resolved)


def _build_gate(config: AppConfig, store: StateStore) -> OutboundMessageGate:
    relay = RelayClient(config.relay_url, timeout=config.timeout)
    return OutboundMessageGate(store, relay, limit=config.daily_limit, window_ms=config.window_ms)


def _find_or_exit(directory: Directory, alumnus_id: str) -> Alumnus:
    alumnus = directory.get(alumnus_id)
    if alumnus is None:
        console.print(f"[red]No alumnus with id {alumnus_id}.[/red]")
        raise typer.Exit(code=1)
    return alumnus


@app.command()
def search(
    query: str = typer.Option("", "--query", "-q", help="Name or city"),
    bac: str = typer.Option("", help="BAC year"),
    pays: str = typer.Option("", help="Country"),
    profession: str = typer.Option("", help="Profession"),
    etudes: str = typer.Option("", help="Field of study"),
    lieu_naiss: str = typer.Option("", "--lieu-naiss", help="Place of birth"),
    limit: Optional[int] = typer.Option(None, help="Maximum number of rows to display"),
    csv_url: str = typer.Option(AppConfig().csv_url, "--csv-url", help="CSV export URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Search the directory."""
    _setup_logging(verbose)
    config = AppConfig(csv_url=csv_url)
    directory = _load_directory(config)
    if not len(directory):
        console.print("[yellow]The directory is empty or could not be loaded.[/yellow]")
        return

    filters = SearchFilters(
        query=query,
        bac=bac,
        pays=pays,
        profession=profession,
        etudes=etudes,
        lieu_naiss=lieu_naiss,
    )
    results = Searcher(directory.records).search(filters, limit=limit)
    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("BAC")
    for result in results:
        table.add_row(result.id, result.display_name, result.bac)

    console.print(table)
    console.print(f"{len(results)} results found")


@app.command()
def show(
    alumnus_id: str = typer.Argument(..., help="Record id, e.g. row-12"),
    csv_url: str = typer.Option(AppConfig().csv_url, "--csv-url", help="CSV export URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Display the public card of one alumnus."""
    _setup_logging(verbose)
    directory = _load_directory(AppConfig(csv_url=csv_url))
    alumnus = _find_or_exit(directory, alumnus_id)
    badge = f"  [dim]BAC {alumnus.bac}[/dim]" if alumnus.bac else ""
    console.print(f"[bold]{alumnus.display_name}[/bold]{badge}")


def _send(
    mode: ContactMode,
    alumnus_id: str,
    name: str,
    email: str,
    message: str,
    state: Optional[Path],
    csv_url: str,
    verbose: bool,
) -> None:
    _setup_logging(verbose)
    config = AppConfig(state_path=state if state is not None else AppConfig().state_path, csv_url=csv_url)
    try:
        request = ContactRequest(sender_name=name, sender_email=email, message=message)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    directory = _load_directory(config)
    alumnus = _find_or_exit(directory, alumnus_id)

    store = _open_store(config)
    try:
        gate = _build_gate(config, store)
        with console.status("Sending..."):
            outcome = gate.submit(alumnus, request, mode)
        gate.close()
    finally:
        store.close()

    if not outcome.ok:
        console.print(f"[red]{outcome.message}[/red]")
        raise typer.Exit(code=1)
    console.print(
        "[green]Message sent.[/green] It goes to the association's secretariat, "
        "which forwards it."
    )


@app.command()
def contact(
    alumnus_id: str = typer.Argument(..., help="Record id, e.g. row-12"),
    name: str = typer.Option(..., "--name", help="Your full name"),
    email: str = typer.Option(..., "--email", help="Your email address"),
    message: str = typer.Option(..., "--message", "-m", help="Message body"),
    state: Path = typer.Option(None, "--state", help="State database path"),
    csv_url: str = typer.Option(AppConfig().csv_url, "--csv-url", help="CSV export URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Send a message to an alumnus through the association relay."""
    _send("contact", alumnus_id, name, email, message, state, csv_url, verbose)


@app.command()
def report(
    alumnus_id: str = typer.Argument(..., help="Record id, e.g. row-12"),
    name: str = typer.Option(..., "--name", help="Your full name"),
    email: str = typer.Option(..., "--email", help="Your email address"),
    message: str = typer.Option(..., "--message", "-m", help="What is wrong with this entry"),
    state: Path = typer.Option(None, "--state", help="State database path"),
    csv_url: str = typer.Option(AppConfig().csv_url, "--csv-url", help="CSV export URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Report an error in a directory entry."""
    _send("report", alumnus_id, name, email, message, state, csv_url, verbose)


@app.command()
def quota(
    state: Path = typer.Option(None, "--state", help="State database path"),
) -> None:
    """Show how many messages can still be sent today."""
    config = AppConfig(state_path=state if state is not None else AppConfig().state_path)
    store = _open_store(config)
    try:
        remaining = _build_gate(config, store).remaining()
    finally:
        store.close()
    console.print(f"{remaining} of {config.daily_limit} messages left in the current window.")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - defensive
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    console.print(f"Starting web interface on http://{host}:{port}")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":  # pragma: no cover
    app()
