"""
Command-line interface for studying a deck.
"""

import logging
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.panel import Panel

from flashdeck.deck_store import StoreEvent
from flashdeck.exceptions import FlashdeckError
from flashdeck.models import Card, Rating
from flashdeck.session import SessionController

logger = logging.getLogger(__name__)
console = Console()

RATING_KEYS = {
    "1": Rating.Again,
    "2": Rating.Good,
    "3": Rating.Easy,
    "again": Rating.Again,
    "good": Rating.Good,
    "easy": Rating.Easy,
}

EMPTY_MESSAGES = {
    "no-deck": "Create or select a deck to begin.",
    "deck-empty": "This deck is empty.",
    "all-caught-up": "🎉 You are all caught up!",
    "no-matches": "No cards match your search.",
}

HELP_TEXT = (
    "[dim]Enter/f: flip  n/p: next/prev  1/2/3: again/good/easy  "
    "s: shuffle  d: due filter  /text: search  q: quit[/dim]"
)


def _report_persistence_error(event: StoreEvent) -> None:
    if event.persistence_error is not None:
        console.print(
            "[bold yellow]Warning: changes could not be saved "
            f"({event.persistence_error}). They are kept for this session.[/bold yellow]"
        )


def _describe_filter(session: SessionController) -> str:
    if session.due_filter_active:
        return " [yellow](due only)[/yellow]"
    if session.search_query:
        return f" [yellow](search: {session.search_query})[/yellow]"
    return ""


def _render(session: SessionController) -> None:
    """Print the current card, or why there is none."""
    reason = session.empty_reason
    if reason is not None:
        console.print(f"[bold yellow]{EMPTY_MESSAGES[reason]}[/bold yellow]")
        return

    card = session.current_card
    index, total = session.position
    console.rule(f"[bold]Card {index} of {total}[/bold]{_describe_filter(session)}")
    console.print(Panel(card.front, title="Front", border_style="green"))
    if session.is_revealed:
        console.print(Panel(card.back, title="Back", border_style="blue"))
        console.print("[bold]Rate: 1:Again, 2:Good, 3:Easy[/bold]")


def _report_rating(card: Card) -> None:
    if card.next_review is None:
        console.print("[green]Rated.[/green]")
        return
    due = datetime.fromtimestamp(card.next_review / 1000)
    console.print(
        f"[green]Rated.[/green] Box [bold]{card.box}[/bold], "
        f"next review on {due.strftime('%Y-%m-%d')}."
    )


def handle_command(session: SessionController, command: str) -> bool:
    """
    Apply one user command to the session.

    Returns:
        bool: False when the user asked to quit, True otherwise.
    """
    command = command.strip()
    lowered = command.lower()

    if lowered in ("q", "quit"):
        return False
    if lowered in ("", "f", "flip"):
        session.flip()
    elif lowered in ("n", "next"):
        session.next()
    elif lowered in ("p", "prev"):
        session.previous()
    elif lowered in ("s", "shuffle"):
        session.shuffle()
    elif lowered in ("d", "due"):
        active = session.toggle_due_filter()
        console.print(f"Due filter {'on' if active else 'off'}.")
    elif command.startswith("/"):
        session.set_search_query(command[1:])
    elif lowered in RATING_KEYS:
        if not session.is_revealed:
            console.print("[yellow]Reveal the answer before rating.[/yellow]")
            return True
        try:
            updated = session.rate(RATING_KEYS[lowered])
        except FlashdeckError as e:
            logger.error(f"Failed to rate card: {e}")
            console.print(f"[bold red]Error rating card: {e}[/bold red]")
            return True
        _report_rating(updated)
    elif lowered in ("h", "help", "?"):
        console.print(HELP_TEXT)
    else:
        console.print(f"[red]Unknown command '{command}'.[/red] {HELP_TEXT}")
    return True


def start_study_flow(
    session: SessionController,
    due_only: bool = False,
    search: Optional[str] = None,
    shuffle: bool = False,
) -> None:
    """
    Runs the interactive study loop until the user quits or input ends.

    Args:
        session: A SessionController for the deck to study.
        due_only: Start with the due filter on.
        search: Start with this search query.
        shuffle: Shuffle the working set before the first card. The next
            rating rebuilds it in stored order.
    """
    if due_only:
        session.set_due_filter_active(True)
    elif search:
        session.set_search_query(search)
    if shuffle:
        session.shuffle()

    deck = session.store.active_deck
    title = deck.name if deck else "no deck"
    console.print(f"[bold cyan]Studying {title}...[/bold cyan]")
    console.print(HELP_TEXT)

    unsubscribe = session.store.subscribe(_report_persistence_error)
    try:
        while True:
            _render(session)
            try:
                command = console.input("[bold]> [/bold]")
            except (EOFError, KeyboardInterrupt):
                break
            if not handle_command(session, command):
                break
    finally:
        unsubscribe()

    console.print("[bold cyan]Study session finished.[/bold cyan]")
