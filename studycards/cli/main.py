"""
CLI entry point for studycards.
"""

# Standard library imports
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

# Third-party imports
import typer
import uvicorn
from rich.console import Console
from rich.table import Table

# Local application imports
from studycards.api import create_app
from studycards.config import get_settings
from studycards.db.duckdb_storage import DuckDBStorage
from studycards.exceptions import StorageError
from studycards.repository import StudyRepository
from studycards.search import SearchService
from studycards.seed import seed_if_empty


console = Console()

app = typer.Typer(
    name="studycards",
    help="Studycards: folders, decks and flashcards over a REST API.",
    add_completion=False,
    rich_markup_mode="markdown",
)


# ---------------------------------------------------------------------------
# Helpers for resolving the --db path (STUDYCARDS_DB_PATH envvar)
# ---------------------------------------------------------------------------


_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the DuckDB database file. "
    "Falls back to STUDYCARDS_DB_PATH, then ~/.studycards/studycards.db.",
    envvar="STUDYCARDS_DB_PATH",
)


def _resolve_db_path(db: Optional[Path]) -> Path:
    """Resolve db path from the CLI flag, else from settings."""
    if db is not None:
        return db
    return get_settings().db_path


@contextmanager
def _open_repository(db: Optional[Path]) -> Iterator[StudyRepository]:
    """Open the persistent store for a one-shot command. Exits on failure."""
    db_path = _resolve_db_path(db)
    try:
        storage = DuckDBStorage(db_path).connect()
    except StorageError as e:
        console.print(f"[bold red]Error opening database {db_path}: {e}[/bold red]")
        raise typer.Exit(code=1)
    try:
        yield StudyRepository(storage)
    except StorageError as e:
        console.print(f"[bold red]Database error: {e}[/bold red]")
        raise typer.Exit(code=1)
    finally:
        storage.close()


# ---------------------------------------------------------------------------
# Serve
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind."),
    port: Optional[int] = typer.Option(None, "--port", help="Port to listen on."),
    db: Optional[Path] = _db_option,
):
    """
    Run the REST API under uvicorn.

    The DuckDB file is opened once at startup. If it cannot be opened within
    the configured timeout the server keeps running on seeded in-memory data.
    """
    settings = get_settings()
    overrides = {}
    if host is not None:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if db is not None:
        overrides["db_path"] = db
    if overrides:
        settings = settings.model_copy(update=overrides)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    console.print(
        f"[bold cyan]Starting studycards API on {settings.host}:{settings.port}[/bold cyan]"
    )
    uvicorn.run(
        create_app(settings=settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


# ---------------------------------------------------------------------------
# Data commands
# ---------------------------------------------------------------------------


@app.command()
def seed(db: Optional[Path] = _db_option):
    """Load the example folders, decks and cards into an empty database."""
    with _open_repository(db) as repo:
        if seed_if_empty(repo):
            console.print("[green]Seeded example data.[/green]")
        else:
            console.print("[yellow]Database already has folders; nothing seeded.[/yellow]")


@app.command()
def stats(db: Optional[Path] = _db_option):
    """Show every folder with its decks and card counts."""
    with _open_repository(db) as repo:
        folders = repo.list_folders()
        if not folders:
            console.print("[yellow]No folders yet.[/yellow]")
            return

        table = Table(title="Study Cards")
        table.add_column("Folder", style="cyan")
        table.add_column("Deck", style="magenta")
        table.add_column("Cards", justify="right", style="green")

        total_cards = 0
        for folder in folders:
            decks = repo.list_decks(folder.id)
            if not decks:
                table.add_row(folder.name, "[dim]-[/dim]", "0")
                continue
            for deck in decks:
                table.add_row(folder.name, deck.name, str(deck.card_count))
                total_cards += deck.card_count

        console.print(table)
        console.print(f"Total cards: {total_cards}")


@app.command()
def search(
    query: str = typer.Argument(..., help="Text to look for in decks and cards."),
    db: Optional[Path] = _db_option,
):
    """Search deck names/descriptions and card fronts/backs."""
    with _open_repository(db) as repo:
        result = SearchService(repo.storage).search(query)

    if not result.decks and not result.cards:
        console.print(f"[yellow]No matches for '{query}'.[/yellow]")
        return

    if result.decks:
        deck_table = Table(title="Decks")
        deck_table.add_column("Name", style="magenta")
        deck_table.add_column("Description")
        deck_table.add_column("Cards", justify="right")
        for deck in result.decks:
            deck_table.add_row(deck.name, deck.description, str(deck.card_count))
        console.print(deck_table)

    if result.cards:
        card_table = Table(title="Cards")
        card_table.add_column("Front", style="cyan")
        card_table.add_column("Back")
        for card in result.cards:
            card_table.add_row(card.front, card.back)
        console.print(card_table)


@app.command()
def recount(db: Optional[Path] = _db_option):
    """Recompute every deck's cached card count from its cards."""
    with _open_repository(db) as repo:
        before = {deck.id: deck.card_count for deck in repo.list_decks()}
        after = repo.recount_all_decks()

    fixed = [deck_id for deck_id, count in after.items() if before.get(deck_id) != count]
    console.print(
        f"[green]Recounted {len(after)} deck(s); {len(fixed)} count(s) corrected.[/green]"
    )


def main():
    app()


if __name__ == "__main__":
    main()
