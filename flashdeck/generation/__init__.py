"""Generation package for flashdeck.

Adapters for the external content sources and the DeckGenerator that turns
their output into decks.
"""

import random
from typing import List, Optional

import httpx

from ..config import Settings
from .base import CardDraft, GenerationAdapter, clean_text
from .gemini import GeminiAdapter
from .generator import DeckGenerator, GenerationResult
from .geography import GeographyAdapter
from .trivia import TriviaAdapter


def build_default_adapters(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
    rng: Optional[random.Random] = None,
) -> List[GenerationAdapter]:
    """The AI, trivia and geography adapters configured from settings."""
    timeout = settings.request_timeout
    return [
        GeminiAdapter(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            card_count=settings.ai_card_count,
            client=client,
            timeout=timeout,
        ),
        TriviaAdapter(
            amount=settings.trivia_amount, client=client, timeout=timeout
        ),
        GeographyAdapter(
            sample_size=settings.geo_sample_size,
            rng=rng,
            client=client,
            timeout=timeout,
        ),
    ]


__all__ = [
    "CardDraft",
    "DeckGenerator",
    "GeminiAdapter",
    "GenerationAdapter",
    "GenerationResult",
    "GeographyAdapter",
    "TriviaAdapter",
    "build_default_adapters",
    "clean_text",
]
