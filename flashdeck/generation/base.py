"""
Shared plumbing for the external content sources that generate decks.
"""

import html
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

import bleach
import httpx

from ..exceptions import GenerationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


@dataclass(frozen=True)
class CardDraft:
    """A candidate (front, back) pair produced by an adapter."""

    front: str
    back: str


def clean_text(value: Any) -> str:
    """Strip markup and HTML entities from third-party text."""
    if value is None:
        return ""
    stripped = bleach.clean(str(value), tags=[], strip=True)
    return html.unescape(stripped).strip()


class GenerationAdapter(ABC):
    """
    Abstract base class for a content source.

    ``fetch`` performs the network call and returns raw items; ``to_draft``
    turns one raw item into a CardDraft and raises GenerationError when the
    item is malformed. Keeping the two apart lets the caller keep whatever
    was created before a bad item shows up.
    """

    name: str = ""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._client = client
        self.timeout = timeout

    @abstractmethod
    def deck_name(self, **params: Any) -> str:
        """Name of the deck created for these parameters."""
        pass

    @abstractmethod
    async def fetch(self, **params: Any) -> List[Any]:
        """Retrieve raw items from the source."""
        pass

    @abstractmethod
    def to_draft(self, item: Any, **params: Any) -> CardDraft:
        """Convert one raw item; raises GenerationError if malformed."""
        pass

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request and decode the JSON body, mapping failures to GenerationError."""
        try:
            if self._client is not None:
                response = await self._client.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json()

            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"{self.name}: {url} returned {e.response.status_code}")
            raise GenerationError(
                f"API Error: {e.response.status_code}", original_exception=e
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"{self.name}: request to {url} failed: {e}")
            raise GenerationError(
                f"Request failed: {e}", original_exception=e
            ) from e
        except ValueError as e:
            raise GenerationError(
                f"{self.name} returned a response that is not JSON.",
                original_exception=e,
            ) from e
