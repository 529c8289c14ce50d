"""
Reads and writes the application document through a KeyValueStore.
"""

import json
import logging
from typing import Any, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..constants import DEFAULT_STORAGE_KEY
from ..exceptions import PersistenceError
from ..models import Card, Deck, StoreState, now_ms
from .kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class StatePersistence:
    """
    Serializes StoreState to a JSON document stored under a single key.

    Loading never raises on bad content. Decks and cards are validated one
    at a time and only the entries that cannot be repaired are dropped. A
    document that is not JSON or has no deck list yields an empty state; its
    raw text is first copied under ``<key>.corrupt-<ms>`` so the next save
    does not destroy it.
    """

    def __init__(self, kv_store: KeyValueStore, key: str = DEFAULT_STORAGE_KEY):
        self.kv_store = kv_store
        self.key = key

    def load(self) -> StoreState:
        """
        Load the persisted state. Boxes are not clamped here; the store does
        that against its own scheduler.

        Raises:
            PersistenceError: If the backend itself cannot be read.
        """
        raw = self.kv_store.get(self.key)
        if raw is None:
            logger.info(f"No stored document under '{self.key}'. Starting empty.")
            return StoreState()

        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Stored document is not valid JSON ({e}). Starting empty.")
            self._keep_corrupt_copy(raw)
            return StoreState()

        if not isinstance(document, dict) or not isinstance(
            document.get("decks"), list
        ):
            logger.warning("Stored document has no deck list. Starting empty.")
            self._keep_corrupt_copy(raw)
            return StoreState()

        decks = self._load_decks(document["decks"])
        cards_by_deck_id = document.get("cardsByDeckId")
        if not isinstance(cards_by_deck_id, dict):
            cards_by_deck_id = {}
        last_active = document.get("lastActiveDeckId")

        state = StoreState(
            decks=decks,
            cards_by_deck_id={
                deck.id: self._load_cards(deck.id, cards_by_deck_id.get(deck.id))
                for deck in decks
            },
            last_active_deck_id=last_active if isinstance(last_active, str) else None,
        )
        state.normalize()
        logger.info(f"Loaded {len(state.decks)} deck(s) from '{self.key}'.")
        return state

    def _load_decks(self, raw_decks: List[Any]) -> List[Deck]:
        decks = []
        for position, raw_deck in enumerate(raw_decks):
            try:
                decks.append(Deck.model_validate(raw_deck))
            except PydanticValidationError as e:
                logger.warning(
                    f"Dropping deck #{position} ({e.error_count()} errors)."
                )
        return decks

    def _load_cards(self, deck_id: str, raw_cards: Optional[Any]) -> List[Card]:
        if raw_cards is None:
            return []
        if not isinstance(raw_cards, list):
            logger.warning(f"Card list of deck {deck_id} is not a list. Dropping it.")
            return []
        cards = []
        for position, raw_card in enumerate(raw_cards):
            try:
                cards.append(Card.model_validate(raw_card))
            except PydanticValidationError as e:
                logger.warning(
                    f"Dropping card #{position} of deck {deck_id} "
                    f"({e.error_count()} errors)."
                )
        return cards

    def _keep_corrupt_copy(self, raw: str) -> None:
        backup_key = f"{self.key}.corrupt-{now_ms()}"
        try:
            self.kv_store.set(backup_key, raw)
        except PersistenceError as e:
            logger.error(f"Could not keep the unreadable document: {e}")
            return
        logger.warning(f"Kept the unreadable document under '{backup_key}'.")

    def dumps(self, state: StoreState) -> str:
        return state.model_dump_json(by_alias=True)

    def save(self, state: StoreState) -> None:
        """
        Write the full document.

        Raises:
            PersistenceError: If the backend rejects the write.
        """
        payload = self.dumps(state)
        try:
            self.kv_store.set(self.key, payload)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(
                f"Failed to save state: {e}", original_exception=e
            ) from e
        logger.debug(f"Saved {len(payload)} bytes under '{self.key}'.")
