"""AI deck generation through the Gemini generateContent endpoint."""

import json
import logging
from typing import Any, List, Optional

import httpx

from ..exceptions import GenerationError
from .base import DEFAULT_TIMEOUT, CardDraft, GenerationAdapter, clean_text

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

PROMPT_TEMPLATE = (
    'Create {count} flashcards about "{topic}". Return strictly a JSON array '
    'of objects. Each object must have "front" and "back" keys. No markdown.'
)


def extract_json_array(text: str) -> List[Any]:
    """
    Parse the JSON array embedded in model output.

    Everything before the first '[' and after the last ']' is ignored, which
    tolerates code fences and chatter around the payload.
    """
    start = text.find("[")
    end = text.rfind("]") + 1
    if start == -1 or end == 0 or end <= start:
        raise GenerationError("AI did not return a valid JSON array.")
    try:
        cards = json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise GenerationError(
            f"AI returned malformed JSON: {e}", original_exception=e
        ) from e
    if not isinstance(cards, list):
        raise GenerationError("AI did not return a valid JSON array.")
    return cards


class GeminiAdapter(GenerationAdapter):
    """Generates cards on an arbitrary topic with a Gemini model."""

    name = "ai"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-1.5-flash",
        card_count: int = 7,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        super().__init__(client=client, timeout=timeout)
        self.api_key = api_key
        self.model = model
        self.card_count = card_count

    def _topic(self, params: dict) -> str:
        topic = (params.get("topic") or "").strip()
        if not topic:
            raise GenerationError("Enter a topic.")
        return topic

    def deck_name(self, **params: Any) -> str:
        return f"✨ {self._topic(params)}"

    async def fetch(self, **params: Any) -> List[Any]:
        topic = self._topic(params)
        if not self.api_key or "YOUR_GEMINI" in self.api_key:
            raise GenerationError(
                "Invalid API Key. Set FLASHDECK_GEMINI_API_KEY."
            )

        prompt = PROMPT_TEMPLATE.format(count=self.card_count, topic=topic)
        data = await self._request_json(
            "POST",
            f"{GEMINI_BASE_URL}/{self.model}:generateContent",
            params={"key": self.api_key},
            json={"contents": [{"parts": [{"text": prompt}]}]},
        )

        try:
            raw_text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationError(
                "AI response did not contain any text.", original_exception=e
            ) from e

        cards = extract_json_array(raw_text)
        logger.info(f"AI returned {len(cards)} candidate cards for '{topic}'")
        return cards

    def to_draft(self, item: Any, **params: Any) -> CardDraft:
        if not isinstance(item, dict) or "front" not in item or "back" not in item:
            raise GenerationError(f"Malformed AI card: {item!r}")
        return CardDraft(
            front=clean_text(item["front"]), back=clean_text(item["back"])
        )
