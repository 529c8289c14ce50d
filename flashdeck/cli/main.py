"""
CLI entry point for flashdeck.
"""

# Standard library imports
import logging
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

# Third-party imports
import typer
from rich.console import Console
from rich.table import Table

# Local application imports
from flashdeck.config import get_settings
from flashdeck.deck_store import DeckStore
from flashdeck.exceptions import (
    DeckNotFoundError,
    FlashdeckError,
    GenerationError,
    PersistenceError,
    ValidationError,
)
from flashdeck.models import Deck
from flashdeck.session import SessionController
from flashdeck.storage import DuckDBKeyValueStore, StatePersistence
from flashdeck.storage.backup import backup_database, find_latest_backup
from flashdeck.cli._export_logic import export_to_markdown
from flashdeck.cli._generate_logic import generate_logic
from flashdeck.cli.study_ui import start_study_flow


console = Console()

app = typer.Typer(
    name="flashdeck",
    help="Flashdeck: Leitner-box flashcards in the terminal.",
    add_completion=False,
    rich_markup_mode="markdown",
)
deck_app = typer.Typer(name="deck", help="Create, rename, select and delete decks.")
card_app = typer.Typer(name="card", help="Add, edit, list and delete cards.")
generate_app = typer.Typer(
    name="generate", help="Generate a deck from an external content source."
)
export_app = typer.Typer(name="export", help="Export decks to different formats.")
app.add_typer(deck_app)
app.add_typer(card_app)
app.add_typer(generate_app)
app.add_typer(export_app)


@app.callback()
def _configure(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log debug output to stderr."
    ),
):
    """Flashdeck: Leitner-box flashcards in the terminal."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Helpers for resolving the --db path and opening the store
# ---------------------------------------------------------------------------

_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the DuckDB database file. "
    "Falls back to FLASHDECK_DB_PATH or ~/.flashdeck/flashdeck.db.",
)

_deck_option = typer.Option(  # noqa: B008
    None,
    "--deck",
    help="Deck id or exact name. Defaults to the active deck.",
)


def _resolve_db_path(db: Optional[Path]) -> Path:
    """Resolve db path from the CLI flag or settings."""
    if db is not None:
        return db
    return get_settings().db_path


@contextmanager
def _open_store(db: Optional[Path]) -> Iterator[DeckStore]:
    """
    Open the DuckDB-backed store for the duration of a command.

    Exits with code 1 if the database cannot be opened.
    """
    settings = get_settings()
    kv_store = DuckDBKeyValueStore(_resolve_db_path(db))
    try:
        persistence = StatePersistence(kv_store, key=settings.storage_key)
        try:
            store = DeckStore.load(persistence)
        except PersistenceError as e:
            console.print(f"[bold red]Database Error:[/bold red] {e}")
            raise typer.Exit(code=1) from e
        yield store
    finally:
        kv_store.close()


def _warn_if_unsaved(store: DeckStore) -> None:
    if store.last_persistence_error is not None:
        console.print(
            "[bold yellow]Warning: changes could not be saved: "
            f"{store.last_persistence_error}[/bold yellow]"
        )


def _resolve_deck(store: DeckStore, ref: Optional[str]) -> Deck:
    """
    Find a deck by id or exact name, or fall back to the active deck.

    Raises:
        DeckNotFoundError: If nothing matches.
        ValidationError: If no reference was given and no deck is active.
    """
    if ref is None:
        deck = store.active_deck
        if deck is None:
            raise ValidationError("No deck selected. Pass --deck or run 'deck use'.")
        return deck
    deck = store.get_deck(ref) or store.find_deck_by_name(ref)
    if deck is None:
        raise DeckNotFoundError(f"Deck '{ref}' not found.")
    return deck


def _fail(e: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {e}")
    raise typer.Exit(code=1) from e


# ---------------------------------------------------------------------------
# Deck commands
# ---------------------------------------------------------------------------


@deck_app.command("create")
def deck_create(
    name: str = typer.Argument(..., help="Name of the new deck."),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """Create a deck and make it the active deck."""
    with _open_store(db) as store:
        try:
            deck_id = store.create_deck(name)
        except FlashdeckError as e:
            _fail(e)
        console.print(
            f"[green]Created deck[/green] [bold]{store.get_deck(deck_id).name}[/bold] "
            f"[dim]({deck_id})[/dim]"
        )
        _warn_if_unsaved(store)


@deck_app.command("list")
def deck_list(db: Optional[Path] = _db_option):
    """List decks with their card and due counts."""
    with _open_store(db) as store:
        if not store.decks:
            console.print("[yellow]No decks yet. Create one with 'deck create'.[/yellow]")
            return
        table = Table(title="Decks")
        table.add_column("", style="green")
        table.add_column("Deck Name", style="cyan")
        table.add_column("Cards", style="magenta")
        table.add_column("Due", style="yellow")
        table.add_column("Id", style="dim")
        for deck in store.decks:
            table.add_row(
                "*" if deck.id == store.active_deck_id else "",
                deck.name,
                str(len(store.get_cards(deck.id))),
                str(store.due_count(deck.id)),
                deck.id,
            )
        console.print(table)


@deck_app.command("rename")
def deck_rename(
    deck: str = typer.Argument(..., help="Deck id or exact name."),  # noqa: B008
    name: str = typer.Argument(..., help="New name."),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """Rename a deck."""
    with _open_store(db) as store:
        try:
            target = _resolve_deck(store, deck)
            store.rename_deck(target.id, name)
        except FlashdeckError as e:
            _fail(e)
        console.print(f"[green]Renamed to[/green] [bold]{target.name}[/bold]")
        _warn_if_unsaved(store)


@deck_app.command("use")
def deck_use(
    deck: str = typer.Argument(..., help="Deck id or exact name."),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """Make a deck the active deck."""
    with _open_store(db) as store:
        try:
            target = _resolve_deck(store, deck)
            store.set_active_deck(target.id)
        except FlashdeckError as e:
            _fail(e)
        console.print(f"Active deck: [bold cyan]{target.name}[/bold cyan]")
        _warn_if_unsaved(store)


@deck_app.command("delete")
def deck_delete(
    deck: str = typer.Argument(..., help="Deck id or exact name."),  # noqa: B008
    db: Optional[Path] = _db_option,
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Bypass confirmation prompt."
    ),
):
    """Delete a deck and all of its cards."""
    with _open_store(db) as store:
        try:
            target = _resolve_deck(store, deck)
        except FlashdeckError as e:
            _fail(e)
        if not yes and not typer.confirm(f"Delete deck '{target.name}'?"):
            console.print("Delete cancelled.")
            raise typer.Exit()
        store.delete_deck(target.id)
        console.print(f"[green]Deleted deck[/green] [bold]{target.name}[/bold]")
        _warn_if_unsaved(store)


# ---------------------------------------------------------------------------
# Card commands
# ---------------------------------------------------------------------------


@card_app.command("add")
def card_add(
    front: str = typer.Argument(..., help="Question side."),  # noqa: B008
    back: str = typer.Argument(..., help="Answer side."),  # noqa: B008
    deck: Optional[str] = _deck_option,
    db: Optional[Path] = _db_option,
):
    """Add a card to a deck."""
    with _open_store(db) as store:
        try:
            target = _resolve_deck(store, deck)
            card_id = store.create_card(target.id, front, back)
        except FlashdeckError as e:
            _fail(e)
        console.print(f"[green]Card Added[/green] [dim]({card_id})[/dim]")
        _warn_if_unsaved(store)


@card_app.command("edit")
def card_edit(
    card_id: str = typer.Argument(..., help="Id of the card to edit."),  # noqa: B008
    front: str = typer.Argument(..., help="New question side."),  # noqa: B008
    back: str = typer.Argument(..., help="New answer side."),  # noqa: B008
    deck: Optional[str] = _deck_option,
    db: Optional[Path] = _db_option,
):
    """Replace the text of a card, keeping its schedule."""
    with _open_store(db) as store:
        try:
            target = _resolve_deck(store, deck)
            store.update_card(target.id, card_id, front, back)
        except FlashdeckError as e:
            _fail(e)
        console.print("[green]Card Updated[/green]")
        _warn_if_unsaved(store)


@card_app.command("delete")
def card_delete(
    card_id: str = typer.Argument(..., help="Id of the card to delete."),  # noqa: B008
    deck: Optional[str] = _deck_option,
    db: Optional[Path] = _db_option,
):
    """Delete a card. Unknown ids are ignored."""
    with _open_store(db) as store:
        try:
            target = _resolve_deck(store, deck)
        except FlashdeckError as e:
            _fail(e)
        store.delete_card(target.id, card_id)
        console.print("[green]Card Deleted[/green]")
        _warn_if_unsaved(store)


@card_app.command("list")
def card_list(
    deck: Optional[str] = _deck_option,
    search: Optional[str] = typer.Option(
        None, "--search", "-s", help="Only cards whose front or back contains this text."
    ),
    due: bool = typer.Option(False, "--due", help="Only cards that are due."),
    db: Optional[Path] = _db_option,
):
    """List the cards of a deck."""
    with _open_store(db) as store:
        try:
            target = _resolve_deck(store, deck)
        except FlashdeckError as e:
            _fail(e)
        cards = store.get_cards(target.id)
        if due:
            now = store.clock()
            cards = [card for card in cards if card.is_due(now)]
        elif search and search.strip():
            cards = [card for card in cards if card.matches(search.strip())]

        if not cards:
            console.print(f"[yellow]No cards to show in {target.name}.[/yellow]")
            return
        table = Table(title=target.name)
        table.add_column("Id", style="dim")
        table.add_column("Front", style="cyan")
        table.add_column("Back", style="magenta")
        table.add_column("Box", style="yellow")
        for card in cards:
            table.add_row(card.id, card.front, card.back, str(card.box))
        console.print(table)


# ---------------------------------------------------------------------------
# Study command
# ---------------------------------------------------------------------------


@app.command()
def study(
    deck: Optional[str] = _deck_option,
    due: bool = typer.Option(False, "--due", help="Start with only due cards."),
    search: Optional[str] = typer.Option(
        None, "--search", "-s", help="Start with a search filter."
    ),
    shuffle: bool = typer.Option(
        False,
        "--shuffle",
        help="Shuffle the cards. Rating a card restores the stored order; press s to reshuffle.",
    ),
    db: Optional[Path] = _db_option,
):
    """Starts an interactive study session for a deck."""
    db_path = _resolve_db_path(db)
    backup_path = backup_database(db_path)
    if backup_path != db_path:
        console.print(f"Database backed up to: [dim]{backup_path}[/dim]")

    with _open_store(db_path) as store:
        try:
            target = _resolve_deck(store, deck)
            store.set_active_deck(target.id)
        except FlashdeckError as e:
            _fail(e)
        session = SessionController(store)
        try:
            start_study_flow(session, due_only=due, search=search, shuffle=shuffle)
        finally:
            session.close()


# ---------------------------------------------------------------------------
# Generate commands
# ---------------------------------------------------------------------------


def _run_generation(db: Optional[Path], trigger: str, **params) -> None:
    settings = get_settings()
    with _open_store(db) as store:
        console.print(f"[cyan]Generating from {trigger}...[/cyan]")
        try:
            result = generate_logic(store, settings, trigger, **params)
        except GenerationError as e:
            console.print(f"[bold red]Generation Failed:[/bold red] {e}")
            if e.deck_id is not None:
                console.print(
                    f"[yellow]Kept partial deck with {e.created} card(s).[/yellow]"
                )
            raise typer.Exit(code=1) from e
        deck = store.get_deck(result.deck_id)
        console.print(
            f"[bold green]Generated[/bold green] [bold]{deck.name}[/bold] "
            f"with {result.created} card(s)."
        )
        if result.skipped:
            console.print(
                f"- [yellow]{result.skipped}[/yellow] incomplete pairs were skipped."
            )
        _warn_if_unsaved(store)


@generate_app.command("ai")
def generate_ai(
    topic: str = typer.Argument(..., help="Topic to generate cards about."),  # noqa: B008
    db: Optional[Path] = _db_option,
):
    """Generate a deck on any topic with the Gemini API."""
    _run_generation(db, "ai", topic=topic)


@generate_app.command("trivia")
def generate_trivia(
    category: Optional[int] = typer.Option(
        None, "--category", "-c", help="Open Trivia DB category id."
    ),
    db: Optional[Path] = _db_option,
):
    """Generate a true/false trivia deck."""
    _run_generation(db, "trivia", category=category)


@generate_app.command("geo")
def generate_geo(
    mode: str = typer.Argument(  # noqa: B008
        "capitals", help="Either 'capitals' or 'populations'."
    ),
    db: Optional[Path] = _db_option,
):
    """Generate a geography deck from REST Countries."""
    _run_generation(db, "geo", mode=mode)


# ---------------------------------------------------------------------------
# Stats command
# ---------------------------------------------------------------------------


@app.command()
def stats(db: Optional[Path] = _db_option):
    """Display statistics about decks, due cards and boxes."""
    with _open_store(db) as store:
        deck_count, card_count = store.counts()
        overall_table = Table(title="Overall Stats", show_header=False)
        overall_table.add_column("Metric", style="cyan")
        overall_table.add_column("Value", style="magenta")
        overall_table.add_row("Total Decks", str(deck_count))
        overall_table.add_row("Total Cards", str(card_count))
        console.print(overall_table)

        if not card_count:
            console.print("[yellow]No cards found.[/yellow]")
            return

        decks_table = Table(title="Decks")
        decks_table.add_column("Deck Name", style="cyan")
        decks_table.add_column("Card Count", style="magenta")
        decks_table.add_column("Due Count", style="yellow")
        decks_table.add_column("Boxes", style="green")
        for deck in store.decks:
            boxes = " / ".join(str(n) for n in store.box_distribution(deck.id))
            decks_table.add_row(
                deck.name,
                str(len(store.get_cards(deck.id))),
                str(store.due_count(deck.id)),
                boxes,
            )
        console.print(decks_table)


# ---------------------------------------------------------------------------
# Export commands
# ---------------------------------------------------------------------------


@export_app.command("md")
def export_md(
    db: Optional[Path] = _db_option,
    output_dir: Optional[Path] = typer.Option(  # noqa: B008
        None,
        "--output-dir",
        help="Directory to save exported Markdown files.",
        file_okay=False,
        dir_okay=True,
        writable=True,
        resolve_path=True,
    ),
):
    """Export every deck to its own Markdown file."""
    if output_dir is None:
        console.print(
            "[bold red]Error: --output-dir is required "
            "for Markdown export.[/bold red]"
        )
        raise typer.Exit(code=1)
    console.print(f"Exporting decks to [cyan]{output_dir}[/cyan]...")
    with _open_store(db) as store:
        try:
            written = export_to_markdown(store, output_dir)
        except IOError as e:
            console.print(f"[bold]An error occurred during export: {e}[/bold]")
            raise typer.Exit(code=1) from e
    console.print(f"[bold green]Exported {written} deck(s).[/bold green]")


# ---------------------------------------------------------------------------
# Restore command
# ---------------------------------------------------------------------------


@app.command()
def restore(
    db: Optional[Path] = _db_option,
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Bypass confirmation prompt."
    ),
):
    """Replace the database with its newest backup."""
    db_path = _resolve_db_path(db)
    backup_path = find_latest_backup(db_path)
    if backup_path is None:
        console.print(
            f"[bold red]Error: No backup files found for {db_path.name}.[/bold red]"
        )
        raise typer.Exit(code=1)

    console.print(f"Newest backup: [cyan]{backup_path.name}[/cyan]")
    if not yes and not typer.confirm(f"Overwrite {db_path.name} with it?"):
        console.print("Restore cancelled.")
        raise typer.Exit()

    try:
        shutil.copy2(backup_path, db_path)
    except OSError as e:
        _fail(e)
    console.print(
        f"[bold green]Database successfully restored from {backup_path.name}.[/bold green]"
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Console-script entry point; unexpected errors exit with status 1."""
    try:
        app()
    except Exception as e:
        console.print(f"[bold red]UNEXPECTED ERROR: {e}[/bold red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
