"""True/false trivia decks from the Open Trivia Database."""

import logging
from typing import Any, List, Optional

import httpx

from ..exceptions import GenerationError
from .base import DEFAULT_TIMEOUT, CardDraft, GenerationAdapter, clean_text

logger = logging.getLogger(__name__)

OPENTDB_URL = "https://opentdb.com/api.php"


class TriviaAdapter(GenerationAdapter):
    name = "trivia"

    def __init__(
        self,
        amount: int = 10,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        super().__init__(client=client, timeout=timeout)
        self.amount = amount

    def deck_name(self, **params: Any) -> str:
        return "🎯 Trivia"

    async def fetch(self, **params: Any) -> List[Any]:
        query = {"amount": self.amount, "type": "boolean"}
        category = params.get("category")
        if category is not None:
            query["category"] = category

        data = await self._request_json("GET", OPENTDB_URL, params=query)
        if not isinstance(data, dict):
            raise GenerationError("Trivia API Error: unexpected payload.")
        code = data.get("response_code", 0)
        if code != 0:
            raise GenerationError(f"Trivia API Error: response code {code}.")
        results = data.get("results")
        if not isinstance(results, list):
            raise GenerationError("Trivia API Error: no results.")
        return results

    def to_draft(self, item: Any, **params: Any) -> CardDraft:
        if not isinstance(item, dict) or "question" not in item:
            raise GenerationError(f"Malformed trivia question: {item!r}")
        return CardDraft(
            front=clean_text(item["question"]),
            back=clean_text(item.get("correct_answer")),
        )
