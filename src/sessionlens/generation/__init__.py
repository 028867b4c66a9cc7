"""Generation service clients for sessionlens.

Provides a provider-agnostic interface for sending prompts (and
screenshot bytes) to an external model and receiving raw text.

Public API:
    GenerationClient -- Abstract base class
    GenerationUnavailable -- Raised when no completion can be obtained
    CannedGenerationClient -- Offline substitute used without a credential
    GeminiClient -- Gemini REST implementation
    OpenAIClient -- OpenAI / OpenRouter implementation
    build_generation_client -- Pick the client for a Settings object
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sessionlens.generation.base import GenerationClient, GenerationUnavailable
from sessionlens.generation.canned import CannedGenerationClient

if TYPE_CHECKING:
    from sessionlens.config.settings import Settings

logger = logging.getLogger(__name__)

__all__ = [
    "CannedGenerationClient",
    "GeminiClient",
    "GenerationClient",
    "GenerationUnavailable",
    "OpenAIClient",
    "build_generation_client",
]


def build_generation_client(settings: Settings, for_analysis: bool = False) -> GenerationClient:
    """Resolve the generation client once, from configuration.

    With no credential for the configured provider the canned client is
    returned; this is a configuration-time choice, never a runtime
    fallback.
    """
    api_key = settings.generation_api_key()
    gen = settings.generation
    if not api_key:
        logger.warning(
            "No API key configured for provider %s, serving canned responses", gen.provider
        )
        return CannedGenerationClient()

    model = (gen.analyze_model or gen.model) if for_analysis else gen.model
    if gen.provider == "gemini":
        from sessionlens.generation.gemini import GeminiClient

        return GeminiClient(
            api_key=api_key,
            model=model,
            base_url=settings.generation_base_url(),
            timeout=gen.timeout,
            temperature=gen.temperature,
            max_output_tokens=gen.max_output_tokens,
        )

    from sessionlens.generation.openai import OpenAIClient

    return OpenAIClient(
        api_key=api_key,
        model=model,
        base_url=settings.generation_base_url(),
        timeout=gen.timeout,
        temperature=gen.temperature,
        max_tokens=gen.max_output_tokens,
    )


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "GeminiClient":
        from sessionlens.generation.gemini import GeminiClient
        return GeminiClient
    if name == "OpenAIClient":
        from sessionlens.generation.openai import OpenAIClient
        return OpenAIClient
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
