"""
Contains the business logic for exporting decks to Markdown.
This logic is called by the CLI commands in main.py.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Set

from flashdeck.deck_store import DeckStore

logger = logging.getLogger(__name__)


def _safe_file_stem(deck_name: str, used: Set[str], deck_id: str) -> str:
    stem = "".join(c for c in deck_name if c.isalnum() or c in (" ", "_")).strip()
    if not stem:
        stem = "unnamed_deck"
    if stem in used:
        stem = f"{stem}_{deck_id[:8]}"
    used.add(stem)
    return stem


def export_to_markdown(store: DeckStore, output_dir: Path) -> int:
    """
    Export every deck in the store to its own Markdown file under output_dir.

    Cards are written in deck order with their box and next review date.
    Write errors for individual decks are logged and do not stop the export.

    Returns:
        int: Number of files written.

    Raises:
        IOError: If the output directory cannot be created.
    """
    logger.info(f"Starting Markdown export to directory: {output_dir}")

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Could not create output directory {output_dir}: {e}")
        raise IOError(f"Failed to create output directory: {e}") from e

    decks = store.decks
    if not decks:
        logger.warning("No decks found to export.")
        return 0

    used_stems: Set[str] = set()
    exported_files = 0
    for deck in decks:
        file_path = output_dir / f"{_safe_file_stem(deck.name, used_stems, deck.id)}.md"
        cards = store.get_cards(deck.id)
        try:
            with open(file_path, "w", encoding="utf-8") as f:
                f.write(f"# Deck: {deck.name}\n\n")
                for card in cards:
                    f.write(f"**Front:** {card.front}\n\n")
                    f.write(f"**Back:** {card.back}\n\n")
                    if card.next_review is None:
                        f.write(f"**Box:** {card.box} (never reviewed)\n\n")
                    else:
                        due = datetime.fromtimestamp(card.next_review / 1000)
                        f.write(
                            f"**Box:** {card.box} (next review {due.strftime('%Y-%m-%d')})\n\n"
                        )
                    f.write("---\n\n")
            logger.info(f"Exported {len(cards)} cards to {file_path}")
            exported_files += 1
        except IOError as e:
            logger.error(f"Could not write to file {file_path}: {e}")

    logger.info(
        f"Markdown export complete. Exported {len(decks)} deck(s) to {exported_files} file(s)."
    )
    return exported_files
