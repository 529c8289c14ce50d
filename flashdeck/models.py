"""
Pydantic models for decks, cards and the persisted application document.

Timestamps are integer milliseconds since the Unix epoch, matching the JSON
document layout the store reads and writes.
"""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .exceptions import InvalidRatingError


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


class Rating(str, Enum):
    """
    Represents the user's rating of their recall performance.
    """

    Again = "again"
    Good = "good"
    Easy = "easy"

    @classmethod
    def parse(cls, value: Union["Rating", str]) -> "Rating":
        """Coerce a rating name (case-insensitive) into a Rating.

        Raises:
            InvalidRatingError: If the value is not one of again/good/easy.
        """
        if isinstance(value, Rating):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        allowed = ", ".join(r.value for r in cls)
        raise InvalidRatingError(
            f"Invalid rating: {value!r}. Must be one of: {allowed}."
        )


class _DocumentModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        extra="ignore",
    )


class Deck(_DocumentModel):
    """A named collection of cards."""

    id: str = Field(
        default_factory=new_id,
        description="Opaque unique identifier (UUIDv4 string).",
    )
    name: str = Field(
        ...,
        min_length=1,
        description="Display name, stored trimmed.",
    )
    created_at: int = Field(
        default_factory=now_ms,
        description="Creation time in epoch milliseconds.",
    )


class Card(_DocumentModel):
    """
    A single flashcard and its Leitner scheduling state.

    ``next_review`` is None for a card that was never reviewed; such a card
    is always due.
    """

    id: str = Field(
        default_factory=new_id,
        description="Opaque unique identifier (UUIDv4 string).",
    )
    front: str = Field(..., description="Prompt side of the card.")
    back: str = Field(..., description="Answer side of the card.")
    box: int = Field(
        default=0,
        description="Leitner box index into the interval table.",
    )
    next_review: Optional[int] = Field(
        default=None,
        description="Next due time in epoch ms, None if never reviewed.",
    )
    updated_at: int = Field(
        default_factory=now_ms,
        description="Last content or scheduling change in epoch ms.",
    )

    @field_validator("box", mode="before")
    @classmethod
    def default_null_box(cls, box):
        return 0 if box is None else box

    @field_validator("updated_at", mode="before")
    @classmethod
    def default_null_updated_at(cls, updated_at):
        return now_ms() if updated_at is None else updated_at

    @field_validator("box")
    @classmethod
    def clamp_negative_box(cls, box: int) -> int:
        """Boxes are never negative."""
        return max(box, 0)

    def is_due(self, now: int) -> bool:
        return self.next_review is None or self.next_review <= now

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match against front or back."""
        needle = query.lower()
        return needle in self.front.lower() or needle in self.back.lower()


class StoreState(_DocumentModel):
    """
    The persisted document: decks, their cards, and the last active deck.
    """

    decks: List[Deck] = Field(default_factory=list)
    cards_by_deck_id: Dict[str, List[Card]] = Field(default_factory=dict)
    last_active_deck_id: Optional[str] = None

    def find_deck(self, deck_id: Optional[str]) -> Optional[Deck]:
        if deck_id is None:
            return None
        for deck in self.decks:
            if deck.id == deck_id:
                return deck
        return None

    def normalize(self, max_box_index: Optional[int] = None) -> "StoreState":
        """
        Repair a freshly loaded document in place.

        Every deck gets a card list, card lists of unknown decks are dropped
        and a dangling ``last_active_deck_id`` is reset. When
        ``max_box_index`` is given, boxes are clamped into
        ``[0, max_box_index]``.
        """
        known_ids = {deck.id for deck in self.decks}
        for deck_id in list(self.cards_by_deck_id):
            if deck_id not in known_ids:
                del self.cards_by_deck_id[deck_id]
        for deck in self.decks:
            cards = self.cards_by_deck_id.setdefault(deck.id, [])
            if max_box_index is None:
                continue
            for card in cards:
                if card.box > max_box_index:
                    card.box = max_box_index
        if self.last_active_deck_id not in known_ids:
            self.last_active_deck_id = None
        return self
