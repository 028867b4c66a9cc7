"""Abstract base class for generation service clients.

A generation client sends one prompt, optionally with an inline binary
attachment, to an external text/vision model and returns the raw text
completion. Clients know nothing about sessions, notes or JSON shapes;
all interpretation of the returned text happens in
``sessionlens.reconcile``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from sessionlens.domain.models import BinaryPayload
from sessionlens.errors import SessionLensError

logger = logging.getLogger(__name__)


class GenerationClient(ABC):
    """Abstract interface for generation service providers.

    Implementations make exactly one outbound call per ``generate`` and
    never retry; retry policy belongs to the caller.

    Example usage::

        async with GeminiClient(api_key="...", model="gemini-2.5-flash") as client:
            text = await client.generate("Summarize this screenshot.", payload)
    """

    def __init__(self, model: str) -> None:
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    @property
    def provider(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        payload: BinaryPayload | None = None,
        temperature: float | None = None,
    ) -> str:
        """Run one completion and return its raw text.

        Args:
            prompt: The full prompt text.
            payload: Optional inline attachment (image bytes + MIME type).
            temperature: Optional per-call sampling temperature.

        Raises:
            GenerationUnavailable: On transport failure, a non-success
                status, or an empty completion.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the generation service is reachable and authenticated."""
        ...

    async def aclose(self) -> None:
        """Release any network resources held by the client."""

    async def __aenter__(self) -> GenerationClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class GenerationUnavailable(SessionLensError):
    """Raised when the generation service cannot produce a completion."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
