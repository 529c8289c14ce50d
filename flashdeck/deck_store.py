"""
This module defines the DeckStore class, which owns the decks, their cards and
the last active deck. Every successful mutation is persisted and then
announced to subscribers as a StoreEvent.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union

from .exceptions import (
    CardNotFoundError,
    DeckNotFoundError,
    PersistenceError,
    ValidationError,
)
from .models import Card, Deck, Rating, StoreState, now_ms
from .scheduler import BaseScheduler, LeitnerScheduler
from .storage.persistence import StatePersistence

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    DeckCreated = "deck-created"
    DeckRenamed = "deck-renamed"
    DeckDeleted = "deck-deleted"
    ActiveDeckChanged = "active-deck-changed"
    CardCreated = "card-created"
    CardUpdated = "card-updated"
    CardDeleted = "card-deleted"
    CardRated = "card-rated"


@dataclass(frozen=True)
class StoreEvent:
    """Notification emitted after a successful store mutation."""

    kind: EventKind
    deck_id: Optional[str]
    card_id: Optional[str] = None
    active_deck_changed: bool = False
    persistence_error: Optional[PersistenceError] = None


StoreListener = Callable[[StoreEvent], None]


def _require_text(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} must not be empty.")
    return text


class DeckStore:
    """
    Owns the deck/card graph and applies all mutations to it.

    Operations validate before touching state, so a failed call leaves the
    store exactly as it was. Persistence failures do not undo a mutation:
    in-memory state stays authoritative and the error travels on the event.
    """

    def __init__(
        self,
        state: Optional[StoreState] = None,
        persistence: Optional[StatePersistence] = None,
        scheduler: Optional[BaseScheduler] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Create a store around an existing state.

        Parameters:
            state (Optional[StoreState]): Initial document; a fresh empty state when omitted.
            persistence (Optional[StatePersistence]): Where to write the document after each mutation; None keeps the store in memory only.
            scheduler (Optional[BaseScheduler]): Scheduler used by rate_card; a default LeitnerScheduler when omitted.
            clock (Optional[Callable[[], int]]): Source of "now" in epoch ms.
        """
        self.scheduler = scheduler or LeitnerScheduler()
        self.state = (state or StoreState()).normalize(
            self.scheduler.max_box_index
        )
        self.persistence = persistence
        self.clock = clock or now_ms
        self.last_persistence_error: Optional[PersistenceError] = None
        self._listeners: List[StoreListener] = []

    @classmethod
    def load(
        cls,
        persistence: StatePersistence,
        scheduler: Optional[BaseScheduler] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> "DeckStore":
        """Build a store from whatever the persistence layer holds."""
        return cls(
            state=persistence.load(),
            persistence=persistence,
            scheduler=scheduler,
            clock=clock,
        )

    # --- Notification ---

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(
        self,
        kind: EventKind,
        deck_id: Optional[str],
        card_id: Optional[str] = None,
        active_deck_changed: bool = False,
    ) -> StoreEvent:
        error = self._persist()
        event = StoreEvent(
            kind=kind,
            deck_id=deck_id,
            card_id=card_id,
            active_deck_changed=active_deck_changed,
            persistence_error=error,
        )
        for listener in list(self._listeners):
            listener(event)
        return event

    def _persist(self) -> Optional[PersistenceError]:
        if self.persistence is None:
            return None
        try:
            self.persistence.save(self.state)
        except PersistenceError as e:
            logger.error(f"Failed to persist store state: {e}")
            self.last_persistence_error = e
            return e
        self.last_persistence_error = None
        return None

    # --- Queries ---

    @property
    def decks(self) -> List[Deck]:
        return list(self.state.decks)

    @property
    def active_deck_id(self) -> Optional[str]:
        return self.state.last_active_deck_id

    @property
    def active_deck(self) -> Optional[Deck]:
        return self.state.find_deck(self.state.last_active_deck_id)

    def get_deck(self, deck_id: Optional[str]) -> Optional[Deck]:
        return self.state.find_deck(deck_id)

    def find_deck_by_name(self, name: str) -> Optional[Deck]:
        target = name.strip()
        for deck in self.state.decks:
            if deck.name == target:
                return deck
        return None

    def get_cards(self, deck_id: Optional[str]) -> List[Card]:
        """Cards of a deck in insertion order; empty for an unknown deck."""
        if deck_id is None:
            return []
        return self.state.cards_by_deck_id.get(deck_id, [])

    def get_card(self, deck_id: Optional[str], card_id: str) -> Optional[Card]:
        for card in self.get_cards(deck_id):
            if card.id == card_id:
                return card
        return None

    def due_count(self, deck_id: str, now: Optional[int] = None) -> int:
        ts = self.clock() if now is None else now
        return sum(1 for card in self.get_cards(deck_id) if card.is_due(ts))

    def box_distribution(self, deck_id: str) -> List[int]:
        counts = [0] * (self.scheduler.max_box_index + 1)
        for card in self.get_cards(deck_id):
            counts[card.box] += 1
        return counts

    def _require_deck(self, deck_id: Optional[str]) -> Deck:
        if deck_id is None:
            raise ValidationError("No deck selected.")
        deck = self.state.find_deck(deck_id)
        if deck is None:
            raise DeckNotFoundError(f"Deck {deck_id} not found.")
        return deck

    def _require_card(self, deck_id: Optional[str], card_id: str) -> Card:
        self._require_deck(deck_id)
        card = self.get_card(deck_id, card_id)
        if card is None:
            raise CardNotFoundError(
                f"Card {card_id} not found in deck {deck_id}."
            )
        return card

    # --- Deck operations ---

    def create_deck(self, name: str) -> str:
        """
        Create an empty deck and make it the active deck.

        Returns:
            str: The new deck's id.

        Raises:
            ValidationError: If the name is empty after trimming.
        """
        deck = Deck(name=_require_text(name, "Deck name"), created_at=self.clock())
        self.state.decks.append(deck)
        self.state.cards_by_deck_id[deck.id] = []
        self.state.last_active_deck_id = deck.id
        logger.info(f"Created deck '{deck.name}' ({deck.id})")
        self._commit(EventKind.DeckCreated, deck.id, active_deck_changed=True)
        return deck.id

    def rename_deck(self, deck_id: str, name: str) -> None:
        new_name = _require_text(name, "Deck name")
        deck = self._require_deck(deck_id)
        deck.name = new_name
        self._commit(EventKind.DeckRenamed, deck_id)

    def delete_deck(self, deck_id: str) -> None:
        """
        Remove a deck and all of its cards. Unknown ids are ignored.

        Deleting the active deck leaves no deck selected.
        """
        deck = self.state.find_deck(deck_id)
        if deck is None:
            logger.debug(f"delete_deck: {deck_id} not found, ignoring")
            return
        self.state.decks = [d for d in self.state.decks if d.id != deck_id]
        self.state.cards_by_deck_id.pop(deck_id, None)
        was_active = self.state.last_active_deck_id == deck_id
        if was_active:
            self.state.last_active_deck_id = None
        logger.info(f"Deleted deck '{deck.name}' ({deck_id})")
        self._commit(
            EventKind.DeckDeleted, deck_id, active_deck_changed=was_active
        )

    def set_active_deck(self, deck_id: Optional[str]) -> None:
        """
        Select the active deck, or clear the selection with None.

        Raises:
            DeckNotFoundError: If the deck does not exist.
        """
        if deck_id is not None and self.state.find_deck(deck_id) is None:
            raise DeckNotFoundError(f"Deck {deck_id} not found.")
        self.state.last_active_deck_id = deck_id
        self._commit(
            EventKind.ActiveDeckChanged, deck_id, active_deck_changed=True
        )

    # --- Card operations ---

    def create_card(self, deck_id: Optional[str], front: str, back: str) -> str:
        """
        Append a new, never-reviewed card to a deck.

        Returns:
            str: The new card's id.

        Raises:
            ValidationError: If no deck is given or front/back are empty.
            DeckNotFoundError: If the deck does not exist.
        """
        if deck_id is None:
            raise ValidationError("Select a deck first.")
        front_text = _require_text(front, "Front")
        back_text = _require_text(back, "Back")
        self._require_deck(deck_id)

        card = Card(front=front_text, back=back_text, updated_at=self.clock())
        self.state.cards_by_deck_id[deck_id].append(card)
        logger.debug(f"Added card {card.id} to deck {deck_id}")
        self._commit(EventKind.CardCreated, deck_id, card.id)
        return card.id

    def update_card(
        self, deck_id: Optional[str], card_id: str, front: str, back: str
    ) -> Card:
        """
        Overwrite a card's text in place; scheduling fields are untouched.

        Raises:
            ValidationError: If front/back are empty or no deck is given.
            NotFoundError: If the deck or card does not exist.
        """
        front_text = _require_text(front, "Front")
        back_text = _require_text(back, "Back")
        card = self._require_card(deck_id, card_id)

        card.front = front_text
        card.back = back_text
        card.updated_at = self.clock()
        self._commit(EventKind.CardUpdated, deck_id, card_id)
        return card

    def delete_card(self, deck_id: Optional[str], card_id: str) -> None:
        cards = self.get_cards(deck_id)
        remaining = [card for card in cards if card.id != card_id]
        if len(remaining) == len(cards):
            logger.debug(f"delete_card: {card_id} not in deck {deck_id}")
            return
        self.state.cards_by_deck_id[deck_id] = remaining
        self._commit(EventKind.CardDeleted, deck_id, card_id)

    def rate_card(
        self, deck_id: Optional[str], card_id: str, rating: Union[Rating, str]
    ) -> Card:
        """
        Apply a rating to a card through the scheduler.

        Returns:
            Card: The updated card.

        Raises:
            NotFoundError: If the deck or card does not exist.
            InvalidRatingError: If the rating is not again/good/easy.
        """
        card = self._require_card(deck_id, card_id)
        output = self.scheduler.compute_next_state(
            card, rating, review_ts=self.clock()
        )
        card.box = output.box
        card.next_review = output.next_review
        card.updated_at = self.clock()
        self._commit(EventKind.CardRated, deck_id, card_id)
        return card

    def counts(self) -> Tuple[int, int]:
        """(number of decks, number of cards) across the store."""
        total_cards = sum(len(cards) for cards in self.state.cards_by_deck_id.values())
        return len(self.state.decks), total_cards
