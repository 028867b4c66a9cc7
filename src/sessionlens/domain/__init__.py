"""Domain models for sessionlens.

This package contains the core data structures exchanged with the
browser client, the generation service and the session repository. All
models use Pydantic v2 for validation and serialization.
"""

from sessionlens.domain.models import (
    BinaryPayload,
    ChatContext,
    ChatExchange,
    ChatRequest,
    Entity,
    NextStepSuggestion,
    PreviousSession,
    QuestionSuggestion,
    RankingItem,
    RankingSuggestion,
    RegenerateRequest,
    RegenerateResponse,
    ScreenInput,
    ScreenshotAnalysis,
    ScreenshotRecord,
    SessionCategory,
    SessionDetail,
    SessionRecord,
    SessionState,
    Suggestion,
)

__all__ = [
    "BinaryPayload",
    "ChatContext",
    "ChatExchange",
    "ChatRequest",
    "Entity",
    "NextStepSuggestion",
    "PreviousSession",
    "QuestionSuggestion",
    "RankingItem",
    "RankingSuggestion",
    "RegenerateRequest",
    "RegenerateResponse",
    "ScreenInput",
    "ScreenshotAnalysis",
    "ScreenshotRecord",
    "SessionCategory",
    "SessionDetail",
    "SessionRecord",
    "SessionState",
    "Suggestion",
]
