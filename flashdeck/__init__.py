"""Flashdeck - A small Leitner-box flashcard library and CLI."""

from .models import Card, Deck, Rating, StoreState
from .constants import DEFAULT_INTERVALS, MAX_BOX_INDEX
from .scheduler import LeitnerScheduler, compute_review
from .deck_store import DeckStore, StoreEvent
from .session import SessionController

__all__ = [
    "Card",
    "Deck",
    "Rating",
    "StoreState",
    "DEFAULT_INTERVALS",
    "MAX_BOX_INDEX",
    "LeitnerScheduler",
    "compute_review",
    "DeckStore",
    "StoreEvent",
    "SessionController",
]
