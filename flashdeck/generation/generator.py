"""
This module defines the DeckGenerator class, which turns the output of a
GenerationAdapter into a new deck through the DeckStore.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Set

from ..deck_store import DeckStore
from ..exceptions import (
    GenerationError,
    GenerationInProgressError,
    ValidationError,
)
from .base import GenerationAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    deck_id: str
    created: int
    skipped: int


class DeckGenerator:
    """
    Runs generation requests, at most one in flight per trigger.

    A deck is only created once the source has answered. Pairs with an empty
    side are skipped. If a malformed item interrupts the run, a deck that
    already holds cards is kept and an empty one is deleted; a
    GenerationError is raised in both cases.
    """

    def __init__(self, store: DeckStore, adapters: Iterable[GenerationAdapter]):
        self.store = store
        self.adapters: Dict[str, GenerationAdapter] = {
            adapter.name: adapter for adapter in adapters
        }
        self._in_flight: Set[str] = set()

    @property
    def triggers(self) -> List[str]:
        return sorted(self.adapters)

    def is_pending(self, trigger: str) -> bool:
        return trigger in self._in_flight

    async def generate(self, trigger: str, **params: Any) -> GenerationResult:
        """
        Fetch cards for `trigger` and store them as a new deck.

        Raises:
            GenerationInProgressError: If the same trigger is already running.
            GenerationError: On source failure, malformed data or no usable cards.
        """
        adapter = self.adapters.get(trigger)
        if adapter is None:
            raise GenerationError(f"Unknown content source '{trigger}'.")
        if trigger in self._in_flight:
            raise GenerationInProgressError(
                f"A '{trigger}' generation is already in progress."
            )

        self._in_flight.add(trigger)
        try:
            deck_name = adapter.deck_name(**params)
            logger.info(f"Generating '{deck_name}' from {trigger}")
            items = await adapter.fetch(**params)
            return self._populate(adapter, deck_name, items, params)
        finally:
            self._in_flight.discard(trigger)

    def _populate(
        self,
        adapter: GenerationAdapter,
        deck_name: str,
        items: List[Any],
        params: Dict[str, Any],
    ) -> GenerationResult:
        deck_id = self.store.create_deck(deck_name)
        created = 0
        skipped = 0

        for item in items:
            try:
                draft = adapter.to_draft(item, **params)
            except GenerationError as e:
                kept = self._discard_if_empty(deck_id, created)
                logger.error(
                    f"{adapter.name}: malformed item after {created} card(s): {e}"
                )
                raise GenerationError(
                    f"Generation stopped after {created} card(s): {e}",
                    original_exception=e,
                    deck_id=deck_id if kept else None,
                    created=created,
                ) from e

            if not draft.front or not draft.back:
                skipped += 1
                continue
            try:
                self.store.create_card(deck_id, draft.front, draft.back)
            except ValidationError:
                skipped += 1
                continue
            created += 1

        if not self._discard_if_empty(deck_id, created):
            raise GenerationError(f"'{deck_name}' returned no usable cards.")

        logger.info(
            f"Generated deck '{deck_name}' with {created} card(s), {skipped} skipped"
        )
        return GenerationResult(deck_id=deck_id, created=created, skipped=skipped)

    def _discard_if_empty(self, deck_id: str, created: int) -> bool:
        """Delete the deck when it got no cards; returns whether it was kept."""
        if created:
            return True
        self.store.delete_deck(deck_id)
        return False
