"""Canned generation client for offline and demo operation.

Selected at configuration time when no service credential is set. It
never touches the network and always answers with the same text: one
response for image-bearing prompts and one for text-only prompts.
"""

from __future__ import annotations

import json
import logging

from sessionlens.domain.models import BinaryPayload
from sessionlens.generation.base import GenerationClient

logger = logging.getLogger(__name__)

# Empty object: normalizes to the neutral session state, and to the
# "note unchanged" fallback on the chat path.
DEFAULT_TEXT_RESPONSE = "{}"

DEFAULT_IMAGE_RESPONSE = json.dumps(
    {
        "rawText": "Hotel Deluxe\n5 Star Rating\n$299/night\nSan Francisco, CA\nwww.hoteldeluxe.com",
        "summary": "A hotel listing for Hotel Deluxe in San Francisco.",
        "category": "trip-planning",
        "entities": [
            {
                "type": "hotel",
                "title": "Hotel Deluxe",
                "attributes": {
                    "price": "$299/night",
                    "rating": "5 Star",
                    "location": "San Francisco, CA",
                    "url": "www.hoteldeluxe.com",
                },
            }
        ],
        "suggestedNotebookTitle": "San Francisco Hotels",
    }
)


class CannedGenerationClient(GenerationClient):
    """Returns fixed responses instead of calling a generation service."""

    def __init__(
        self,
        text_response: str = DEFAULT_TEXT_RESPONSE,
        image_response: str = DEFAULT_IMAGE_RESPONSE,
    ) -> None:
        super().__init__(model="canned")
        self._text_response = text_response
        self._image_response = image_response
        self.calls = 0

    @property
    def provider(self) -> str:
        return "canned"

    async def generate(
        self,
        prompt: str,
        payload: BinaryPayload | None = None,
        temperature: float | None = None,
    ) -> str:
        self.calls += 1
        logger.debug("Serving canned response (image=%s)", payload is not None)
        return self._image_response if payload is not None else self._text_response

    async def health_check(self) -> bool:
        return True
