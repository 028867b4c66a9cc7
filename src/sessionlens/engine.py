"""The session-state reconciliation engine.

Ties together prompt assembly, the generation client and validation:

    request -> prompt -> one generation call -> normalize -> result

Regeneration and chat never fail because of the generation boundary.
When the service is unavailable or returns something unusable, the
engine answers with the documented fallback instead: the neutral state
for regeneration, an apology with the note unchanged for chat.
"""

from __future__ import annotations

import logging
import uuid

from pydantic import BaseModel, Field

from sessionlens.config.settings import Settings
from sessionlens.domain.models import (
    BinaryPayload,
    ChatExchange,
    ChatRequest,
    RegenerateRequest,
    RegenerateResponse,
    ScreenshotAnalysis,
    SessionState,
)
from sessionlens.errors import AnalysisFailed
from sessionlens.generation import build_generation_client
from sessionlens.generation.base import GenerationClient, GenerationUnavailable
from sessionlens.reconcile.chat import chat_fallback, validate_chat_response
from sessionlens.reconcile.normalize import (
    Fallback,
    normalize_screenshot_analysis,
    normalize_session_state,
)
from sessionlens.reconcile.prompts import (
    build_analyze_prompt,
    build_chat_prompt,
    build_regenerate_prompt,
)
from sessionlens.utils.imaging import resize_for_model

logger = logging.getLogger(__name__)


class EngineLimits(BaseModel):
    regenerate_raw_text_limit: int = Field(default=200, gt=0)
    chat_raw_text_limit: int = Field(default=500, gt=0)
    analyze_temperature: float | None = Field(default=0.1)
    chat_temperature: float | None = Field(default=0.7)


class SessionEngine:
    """Runs analysis, regeneration and chat against one generation client.

    Holds no per-request state, so a single engine can serve any number
    of concurrent requests.
    """

    def __init__(
        self,
        client: GenerationClient,
        limits: EngineLimits | None = None,
        analysis_client: GenerationClient | None = None,
    ) -> None:
        self._client = client
        self._analysis_client = analysis_client or client
        self._limits = limits or EngineLimits()

    @property
    def client(self) -> GenerationClient:
        return self._client

    async def aclose(self) -> None:
        await self._client.aclose()
        if self._analysis_client is not self._client:
            await self._analysis_client.aclose()

    async def regenerate(self, request: RegenerateRequest) -> RegenerateResponse:
        """Re-derive a session's state from its screens and prior state."""
        screens = [screen.to_analysis() for screen in request.screens]
        prompt = build_regenerate_prompt(
            request.previous_session,
            screens,
            raw_text_limit=self._limits.regenerate_raw_text_limit,
        )
        logger.info(
            "Regenerating session %s (%d screens, previous=%s)",
            request.session_id,
            len(screens),
            request.previous_session is not None,
        )

        try:
            raw = await self._client.generate(prompt)
        except GenerationUnavailable as e:
            logger.error(
                "Generation unavailable for session %s (%s): %s",
                request.session_id,
                e.provider,
                e,
            )
            return RegenerateResponse.from_state(request.session_id, SessionState.neutral())

        result = normalize_session_state(raw)
        if isinstance(result, Fallback):
            logger.warning(
                "Falling back to neutral state for session %s: %s",
                request.session_id,
                result.reason.value,
            )
            return RegenerateResponse.from_state(request.session_id, SessionState.neutral())

        state = result.value
        logger.info(
            "Session %s regenerated: category=%s entities=%d suggestions=%d",
            request.session_id,
            state.session_category.value,
            len(state.entities),
            len(state.suggestions),
        )
        return RegenerateResponse.from_state(request.session_id, state)

    async def chat(self, request: ChatRequest) -> ChatExchange:
        """Answer a question about, or apply an edit to, the session note."""
        prompt = build_chat_prompt(
            request.user_message,
            request.current_note,
            request.context,
            raw_text_limit=self._limits.chat_raw_text_limit,
        )
        logger.info(
            "Chat for session %s (message=%d chars, note=%d chars, screenshots=%d)",
            request.session_id,
            len(request.user_message),
            len(request.current_note),
            len(request.context.screenshots) if request.context else 0,
        )

        try:
            raw = await self._client.generate(prompt, temperature=self._limits.chat_temperature)
        except GenerationUnavailable as e:
            logger.error("Generation unavailable for chat in session %s: %s", request.session_id, e)
            return chat_fallback(request.current_note)

        result = validate_chat_response(raw, request.current_note)
        if isinstance(result, Fallback):
            return chat_fallback(request.current_note)
        return result.value

    async def analyze(
        self, image: BinaryPayload, screenshot_id: str | None = None
    ) -> ScreenshotAnalysis:
        """Analyze one screenshot into text, summary, category and entities.

        Raises:
            AnalysisFailed: If the service is unavailable or its answer
                cannot be parsed.
        """
        screenshot_id = screenshot_id or str(uuid.uuid4())
        payload = resize_for_model(image)

        try:
            raw = await self._analysis_client.generate(
                build_analyze_prompt(), payload, temperature=self._limits.analyze_temperature
            )
        except GenerationUnavailable as e:
            logger.error("Analysis of screenshot %s failed: %s", screenshot_id, e)
            raise AnalysisFailed(f"Failed to analyze image: {e}") from e

        result = normalize_screenshot_analysis(raw, screenshot_id)
        if isinstance(result, Fallback):
            raise AnalysisFailed(
                f"Failed to parse analysis response: {result.detail}", raw_response=raw
            )

        logger.info(
            "Analyzed screenshot %s: category=%s entities=%d",
            screenshot_id,
            result.value.category.value,
            len(result.value.entities),
        )
        return result.value


def build_engine(settings: Settings) -> SessionEngine:
    """Wire an engine from configuration, resolving clients once."""
    client = build_generation_client(settings)
    analysis_client = None
    if settings.generation.analyze_model and settings.generation_api_key():
        analysis_client = build_generation_client(settings, for_analysis=True)

    limits = EngineLimits(
        regenerate_raw_text_limit=settings.prompts.regenerate_raw_text_limit,
        chat_raw_text_limit=settings.prompts.chat_raw_text_limit,
        analyze_temperature=settings.generation.analyze_temperature,
        chat_temperature=settings.generation.chat_temperature,
    )
    logger.info("Engine using %s (%s)", client.provider, client.model)
    return SessionEngine(client, limits=limits, analysis_client=analysis_client)
