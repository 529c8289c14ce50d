"""Capital and population decks from the REST Countries API."""

import logging
import random
from typing import Any, List, Optional

import httpx

from ..exceptions import GenerationError
from .base import DEFAULT_TIMEOUT, CardDraft, GenerationAdapter, clean_text

logger = logging.getLogger(__name__)

RESTCOUNTRIES_URL = "https://restcountries.com/v3.1/all"

DECK_NAMES = {
    "capitals": "🌍 Capitals",
    "populations": "🌍 Populations",
}


class GeographyAdapter(GenerationAdapter):
    name = "geo"

    def __init__(
        self,
        sample_size: int = 10,
        rng: Optional[random.Random] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        super().__init__(client=client, timeout=timeout)
        self.sample_size = sample_size
        self._rng = rng or random.Random()

    def _mode(self, params: dict) -> str:
        mode = params.get("mode", "capitals")
        if mode not in DECK_NAMES:
            raise GenerationError(
                f"Unknown geography mode '{mode}'. Use capitals or populations."
            )
        return mode

    def deck_name(self, **params: Any) -> str:
        return DECK_NAMES[self._mode(params)]

    async def fetch(self, **params: Any) -> List[Any]:
        self._mode(params)
        countries = await self._request_json(
            "GET",
            RESTCOUNTRIES_URL,
            params={"fields": "name,capital,population"},
        )
        if not isinstance(countries, list):
            raise GenerationError("Geography API Error: unexpected payload.")
        count = min(self.sample_size, len(countries))
        return self._rng.sample(countries, count)

    def to_draft(self, item: Any, **params: Any) -> CardDraft:
        try:
            country = item["name"]["common"]
        except (KeyError, TypeError) as e:
            raise GenerationError(
                f"Malformed country record: {item!r}", original_exception=e
            ) from e

        if self._mode(params) == "capitals":
            capitals = item.get("capital") or []
            capital = capitals[0] if capitals else "N/A"
            return CardDraft(front=clean_text(country), back=clean_text(capital))

        population = item.get("population")
        if not isinstance(population, (int, float)):
            raise GenerationError(f"No population for {country}.")
        return CardDraft(
            front=f"Population of {clean_text(country)}?",
            back=f"{population / 1e6:.1f}M",
        )
