"""Gemini generation client over the Generative Language REST API.

Uses httpx directly; a prompt and an optional inline image are sent as
parts of a single ``generateContent`` request.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import httpx

from sessionlens.domain.models import BinaryPayload
from sessionlens.generation.base import GenerationClient, GenerationUnavailable

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiClient(GenerationClient):
    """Generation client for Google's Gemini models."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str | None = None,
        timeout: float = 60.0,
        temperature: float = 0.3,
        max_output_tokens: int = 4096,
        json_output: bool = True,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(model=model)
        self._api_key = api_key
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._timeout = timeout
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._json_output = json_output
        self._client = http_client

    @property
    def provider(self) -> str:
        return "gemini"

    def _ensure_client(self) -> httpx.AsyncClient:
        """Lazily initialize the httpx async client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers={"x-goog-api-key": self._api_key},
            )
            logger.info("Initialized Gemini client (model=%s)", self._model)
        return self._client

    def _build_body(
        self, prompt: str, payload: BinaryPayload | None, temperature: float | None
    ) -> dict[str, Any]:
        parts: list[dict[str, Any]] = [{"text": prompt}]
        if payload is not None:
            parts.append(
                {
                    "inline_data": {
                        "mime_type": payload.mime_type,
                        "data": base64.b64encode(payload.data).decode("ascii"),
                    }
                }
            )

        config: dict[str, Any] = {
            "temperature": self._temperature if temperature is None else temperature,
            "maxOutputTokens": self._max_output_tokens,
        }
        if self._json_output:
            config["responseMimeType"] = "application/json"

        return {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": config,
        }

    async def generate(
        self,
        prompt: str,
        payload: BinaryPayload | None = None,
        temperature: float | None = None,
    ) -> str:
        """Send the prompt (and attachment) and return the completion text."""
        client = self._ensure_client()
        body = self._build_body(prompt, payload, temperature)
        path = f"/models/{self._model}:generateContent"

        try:
            response = await client.post(path, json=body)
        except httpx.HTTPError as e:
            logger.error("Gemini request failed: %s", e)
            raise GenerationUnavailable(
                f"Gemini request failed: {e}", provider=self.provider
            ) from e

        logger.debug("Gemini response status: %d", response.status_code)
        if response.is_error:
            logger.error(
                "Gemini API error: %d %s", response.status_code, response.text[:200]
            )
            raise GenerationUnavailable(
                f"Gemini API returned {response.status_code}",
                provider=self.provider,
                status_code=response.status_code,
            )

        try:
            text = _extract_text(response.json())
        except ValueError as e:
            raise GenerationUnavailable(
                f"Gemini returned an unreadable body: {e}", provider=self.provider
            ) from e

        if not text or not text.strip():
            logger.error("No content returned from Gemini")
            raise GenerationUnavailable("Gemini returned no content", provider=self.provider)

        logger.debug("Gemini raw response: %s", text[:200])
        return text

    async def health_check(self) -> bool:
        """Check if the API is reachable with the configured key."""
        client = self._ensure_client()
        try:
            response = await client.get(f"/models/{self._model}")
            return response.is_success
        except httpx.HTTPError as e:
            logger.warning("Health check failed: %s", e)
            return False

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _extract_text(data: Any) -> str:
    """Pull ``candidates[0].content.parts[0].text`` out of a response body."""
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content") or {}
    parts = (content.get("parts") or []) if isinstance(content, dict) else []
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return ""
    text = parts[0].get("text")
    return text if isinstance(text, str) else ""
