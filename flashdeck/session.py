"""
This module defines the SessionController class, which drives a study session
over the active deck: which cards are in the working set, which one is shown,
whether its answer is revealed, and what happens when it is rated.
"""

import logging
import random
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union

from .deck_store import DeckStore, StoreEvent
from .exceptions import NotFoundError
from .models import Card, Rating

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    NoDeckSelected = "no-deck-selected"
    DeckSelected = "deck-selected"


class SessionController:
    """
    Transient study state layered over a DeckStore.

    The working set is a view of the active deck's cards with at most one
    filter applied (free-text search or due filter). It is rebuilt from the
    store whenever the deck, the query or the filter changes, and
    ``active_index`` is clamped each time it is rebuilt.
    """

    def __init__(
        self,
        store: DeckStore,
        clock: Optional[Callable[[], int]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.clock = clock or store.clock
        self._rng = rng or random.Random()

        self._search_query = ""
        self._due_filter_active = False
        self._working_set: List[Card] = []
        self._active_index = 0
        self._revealed = False

        self._unsubscribe = store.subscribe(self._on_store_event)
        self.recompute_working_set()

    def close(self) -> None:
        """Stop listening to the store."""
        self._unsubscribe()

    # --- Read-only views ---

    @property
    def deck_id(self) -> Optional[str]:
        return self.store.active_deck_id

    @property
    def state(self) -> SessionState:
        if self.store.active_deck is None:
            return SessionState.NoDeckSelected
        return SessionState.DeckSelected

    @property
    def search_query(self) -> str:
        return self._search_query

    @property
    def due_filter_active(self) -> bool:
        return self._due_filter_active

    @property
    def working_set(self) -> Tuple[Card, ...]:
        return tuple(self._working_set)

    @property
    def active_index(self) -> int:
        return self._active_index

    @property
    def current_card(self) -> Optional[Card]:
        if not self._working_set:
            return None
        return self._working_set[self._active_index]

    @property
    def position(self) -> Tuple[int, int]:
        """1-based position of the current card and the working set size."""
        if not self._working_set:
            return 0, 0
        return self._active_index + 1, len(self._working_set)

    @property
    def is_revealed(self) -> bool:
        return self._revealed

    @property
    def empty_reason(self) -> Optional[str]:
        """Why nothing is shown, or None when a card is available."""
        if self._working_set:
            return None
        if self.store.active_deck is None:
            return "no-deck"
        if not self.store.get_cards(self.deck_id):
            return "deck-empty"
        if self._due_filter_active:
            return "all-caught-up"
        return "no-matches"

    # --- Store notifications ---

    def _on_store_event(self, event: StoreEvent) -> None:
        if event.active_deck_changed:
            self._reset_view()
        elif event.deck_id == self.deck_id:
            self.recompute_working_set()

    def _reset_view(self) -> None:
        self._active_index = 0
        self._search_query = ""
        self._due_filter_active = False
        self._revealed = False
        self.recompute_working_set()

    # --- Operations ---

    def set_active_deck(self, deck_id: Optional[str]) -> None:
        """
        Switch to another deck, clearing search, filter and position.

        Raises:
            DeckNotFoundError: If the deck does not exist.
        """
        self.store.set_active_deck(deck_id)
        logger.debug(f"Active deck is now {deck_id}")

    def set_search_query(self, text: Optional[str]) -> None:
        """Filter by case-insensitive substring; an empty query clears it."""
        self._search_query = (text or "").strip()
        if self._search_query:
            self._due_filter_active = False
        self.recompute_working_set()

    def set_due_filter_active(self, active: bool) -> None:
        """Show only due cards; enabling it clears the search query."""
        self._due_filter_active = bool(active)
        if self._due_filter_active:
            self._search_query = ""
        self.recompute_working_set()

    def toggle_due_filter(self) -> bool:
        self.set_due_filter_active(not self._due_filter_active)
        return self._due_filter_active

    def recompute_working_set(self) -> None:
        cards = self.store.get_cards(self.deck_id)
        if self._due_filter_active:
            now = self.clock()
            working_set = [card for card in cards if card.is_due(now)]
        elif self._search_query:
            working_set = [
                card for card in cards if card.matches(self._search_query)
            ]
        else:
            working_set = list(cards)

        self._working_set = working_set
        if working_set:
            self._active_index = max(
                0, min(self._active_index, len(working_set) - 1)
            )
        else:
            self._active_index = 0
            self._revealed = False

    def advance(self, direction: int) -> None:
        """Move circularly by +1 or -1; does nothing on an empty set."""
        if direction not in (1, -1):
            raise ValueError(f"Direction must be +1 or -1, got {direction}.")
        if not self._working_set:
            return
        size = len(self._working_set)
        self._active_index = (self._active_index + direction + size) % size
        self._revealed = False

    def next(self) -> None:
        self.advance(1)

    def previous(self) -> None:
        self.advance(-1)

    def flip(self) -> bool:
        """Toggle whether the answer side is shown."""
        if self.current_card is None:
            return False
        self._revealed = not self._revealed
        return self._revealed

    def shuffle(self) -> None:
        """
        Randomly reorder the working set (Fisher-Yates) and go to its start.

        The deck's stored order is untouched, so the next recomputation
        restores insertion order.
        """
        self._rng.shuffle(self._working_set)
        self._active_index = 0
        self._revealed = False

    def rate(self, rating: Union[Rating, str]) -> Card:
        """
        Rate the displayed card and move on to the card that followed it.

        If the rated card is no longer in the working set (e.g. the due filter
        dropped it), the card now at its old position is shown.

        Raises:
            NotFoundError: If no card is displayed.
            InvalidRatingError: If the rating is not again/good/easy.
        """
        card = self.current_card
        if card is None:
            raise NotFoundError("No card is displayed.")
        previous_index = self._active_index

        updated = self.store.rate_card(self.deck_id, card.id, rating)

        size = len(self._working_set)
        if size == 0:
            self._active_index = 0
        else:
            following = previous_index
            for index, candidate in enumerate(self._working_set):
                if candidate.id == card.id:
                    following = index + 1
                    break
            self._active_index = following % size
        self._revealed = False
        return updated
