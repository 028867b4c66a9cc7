"""OpenAI-compatible generation client.

Works with OpenAI, OpenRouter, and any OpenAI-compatible API
by setting a custom base_url.
"""

from __future__ import annotations

import base64
import logging

from sessionlens.domain.models import BinaryPayload
from sessionlens.generation.base import GenerationClient, GenerationUnavailable

logger = logging.getLogger(__name__)


class OpenAIClient(GenerationClient):
    """Generation client using OpenAI's chat completions API.

    Also works with OpenRouter and other OpenAI-compatible endpoints.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        timeout: float = 60.0,
        temperature: float = 0.3,
        max_tokens: int = 4096,
    ) -> None:
        super().__init__(model=model)
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._client = None

    @property
    def provider(self) -> str:
        return "openai"

    async def _ensure_client(self) -> None:
        """Lazily initialize the OpenAI async client."""
        if self._client is not None:
            return
        from openai import AsyncOpenAI

        kwargs = {"api_key": self._api_key, "timeout": self._timeout, "max_retries": 0}
        if self._base_url:
            kwargs["base_url"] = self._base_url
        self._client = AsyncOpenAI(**kwargs)
        logger.info("Initialized OpenAI client (model=%s, base_url=%s)", self._model, self._base_url)

    async def generate(
        self,
        prompt: str,
        payload: BinaryPayload | None = None,
        temperature: float | None = None,
    ) -> str:
        """Run one chat completion, attaching the payload as an image part."""
        import openai

        await self._ensure_client()

        if payload is None:
            content: str | list[dict] = prompt
        else:
            b64 = base64.b64encode(payload.data).decode("ascii")
            content = [
                {
                    "type": "image_url",
                    "image_url": {
                        "url": f"data:{payload.mime_type};base64,{b64}",
                        "detail": "high",
                    },
                },
                {"type": "text", "text": prompt},
            ]

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                max_tokens=self._max_tokens,
                temperature=self._temperature if temperature is None else temperature,
                messages=[{"role": "user", "content": content}],
            )
        except openai.APIStatusError as e:
            logger.error("OpenAI API error: %d %s", e.status_code, str(e)[:200])
            raise GenerationUnavailable(
                f"OpenAI API returned {e.status_code}",
                provider=self.provider,
                status_code=e.status_code,
            ) from e
        except openai.OpenAIError as e:
            logger.error("OpenAI request failed: %s", e)
            raise GenerationUnavailable(
                f"OpenAI request failed: {e}", provider=self.provider
            ) from e

        raw_text = response.choices[0].message.content if response.choices else None
        if not raw_text or not raw_text.strip():
            logger.error("No content returned from OpenAI")
            raise GenerationUnavailable("OpenAI returned no content", provider=self.provider)

        logger.debug("OpenAI raw response: %s", raw_text[:200])
        return raw_text

    async def health_check(self) -> bool:
        """Check if the API is reachable."""
        try:
            await self._ensure_client()
            await self._client.models.list()
            return True
        except Exception as e:
            logger.warning("Health check failed: %s", e)
            return False

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
