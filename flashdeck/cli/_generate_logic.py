import asyncio
from typing import Any

from flashdeck.config import Settings
from flashdeck.deck_store import DeckStore
from flashdeck.generation import DeckGenerator, GenerationResult, build_default_adapters


def generate_logic(
    store: DeckStore, settings: Settings, trigger: str, **params: Any
) -> GenerationResult:
    """
    Run one generation request to completion and return its result.

    Parameters:
        store (DeckStore): Store that receives the generated deck.
        settings (Settings): Supplies API key, timeouts and batch sizes.
        trigger (str): Adapter name: "ai", "trivia" or "geo".
        **params: Adapter parameters such as topic, category or mode.

    Raises:
        GenerationError: If the source fails or produced no usable cards.
    """
    generator = DeckGenerator(store, build_default_adapters(settings))
    return asyncio.run(generator.generate(trigger, **params))
