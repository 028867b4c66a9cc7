"""Core domain models for the sessionlens system.

These models represent the data flowing through the reconciliation
engine: per-screenshot analyses produced by the vision model, the
session-level state re-derived from them, the suggestions attached to
that state, and the chat exchanges that edit a session's note.

Wire names are camelCase (the JSON contract shared with the browser
client); Python attributes are snake_case. Models accept either.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _text_or_empty(value: Any) -> Any:
    """Read a missing (null) text field as empty."""
    return "" if value is None else value


def _lenient_entities(value: Any) -> Any:
    """Keep the well-formed entities of a caller-supplied list."""
    from sessionlens.reconcile.entities import reconcile_entities

    return reconcile_entities(value)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SessionCategory(str, enum.Enum):
    """Closed set of categories a session or screenshot can fall into."""

    TRIP_PLANNING = "trip-planning"
    SHOPPING = "shopping"
    JOB_SEARCH = "job-search"
    RESEARCH = "research"
    CONTENT_WRITING = "content-writing"
    PRODUCTIVITY = "productivity"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> SessionCategory:
        """Map a free-form value onto the enum, defaulting to OTHER."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.OTHER


# ---------------------------------------------------------------------------
# Entities and per-screenshot analysis
# ---------------------------------------------------------------------------


class Entity(BaseModel):
    """Something worth tracking that appeared on a screenshot.

    ``type`` is an open vocabulary (hotel, flight, product, job, ...).
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(description="Entity kind, e.g. 'hotel' or 'product'")
    title: str | None = Field(default=None, description="Display name, if known")
    attributes: dict[str, str] = Field(
        default_factory=dict, description="Free-form string attributes (price, rating, ...)"
    )


class AnalysisBody(BaseModel):
    """The analysis fields of a screenshot as sent on the wire."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    raw_text: str = Field(default="", alias="rawText")
    summary: str = Field(default="")
    category: SessionCategory = Field(default=SessionCategory.OTHER)
    entities: list[Entity] = Field(default_factory=list)
    suggested_title: str | None = Field(default=None, alias="suggestedNotebookTitle")

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, value: Any) -> SessionCategory:
        return SessionCategory.parse(value)

    @field_validator("raw_text", "summary", mode="before")
    @classmethod
    def null_text_as_empty(cls, value: Any) -> Any:
        return _text_or_empty(value)

    @field_validator("entities", mode="before")
    @classmethod
    def drop_malformed_entities(cls, value: Any) -> Any:
        return _lenient_entities(value)


class ScreenshotAnalysis(AnalysisBody):
    """Immutable analysis of one captured screenshot.

    Created once when the screenshot is first analyzed. Re-analysis
    produces a new record rather than editing this one.
    """

    id: str = Field(description="Identifier of the analyzed screenshot")

    def body(self) -> AnalysisBody:
        return AnalysisBody.model_validate(self.model_dump(exclude={"id"}))


# ---------------------------------------------------------------------------
# Suggestions (discriminated union)
# ---------------------------------------------------------------------------


class QuestionSuggestion(BaseModel):
    """A clarifying question about what the user is optimizing for."""

    model_config = ConfigDict(frozen=True)

    type: Literal["question"] = "question"
    text: str


class RankingItem(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    entity_title: str = Field(alias="entityTitle")
    reason: str


class RankingSuggestion(BaseModel):
    """A ranking of comparable entities by some basis (price, rating, ...)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["ranking"] = "ranking"
    basis: str
    items: list[RankingItem] = Field(min_length=1)


class NextStepSuggestion(BaseModel):
    """A concrete action the user could take next."""

    model_config = ConfigDict(frozen=True)

    type: Literal["next-step"] = "next-step"
    text: str


Suggestion = Annotated[
    Union[QuestionSuggestion, RankingSuggestion, NextStepSuggestion],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------


class PreviousSession(BaseModel):
    """The part of a prior state fed back into regeneration for continuity."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    session_summary: str = Field(default="", alias="sessionSummary")
    session_category: SessionCategory = Field(
        default=SessionCategory.OTHER, alias="sessionCategory"
    )
    entities: list[Entity] = Field(default_factory=list)

    @field_validator("session_category", mode="before")
    @classmethod
    def normalize_category(cls, value: Any) -> SessionCategory:
        return SessionCategory.parse(value)

    @field_validator("session_summary", mode="before")
    @classmethod
    def null_summary_as_empty(cls, value: Any) -> Any:
        return _text_or_empty(value)

    @field_validator("entities", mode="before")
    @classmethod
    def drop_malformed_entities(cls, value: Any) -> Any:
        return _lenient_entities(value)


class SessionState(BaseModel):
    """The reconciled, durable, single-row-per-session analysis.

    Fully replaced on every regeneration; never edited field by field.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    session_summary: str = Field(default="", alias="sessionSummary")
    session_category: SessionCategory = Field(
        default=SessionCategory.OTHER, alias="sessionCategory"
    )
    entities: list[Entity] = Field(default_factory=list)
    suggested_notebook_title: str | None = Field(
        default=None, alias="suggestedNotebookTitle"
    )
    suggestions: list[Suggestion] = Field(default_factory=list)

    @classmethod
    def neutral(cls) -> SessionState:
        """The fallback state used when generation fails."""
        return cls()

    def as_previous(self) -> PreviousSession:
        return PreviousSession(
            session_summary=self.session_summary,
            session_category=self.session_category,
            entities=list(self.entities),
        )


# ---------------------------------------------------------------------------
# Regeneration request / response
# ---------------------------------------------------------------------------


class ScreenInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    analysis: AnalysisBody

    def to_analysis(self) -> ScreenshotAnalysis:
        return ScreenshotAnalysis(id=self.id, **self.analysis.model_dump())


class RegenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(min_length=1, alias="sessionId")
    previous_session: PreviousSession | None = Field(default=None, alias="previousSession")
    screens: list[ScreenInput] = Field(min_length=1)


class RegenerateResponse(SessionState):
    session_id: str = Field(alias="sessionId")

    @classmethod
    def from_state(cls, session_id: str, state: SessionState) -> RegenerateResponse:
        return cls(session_id=session_id, **dict(state))

    def to_state(self) -> SessionState:
        return SessionState(
            session_summary=self.session_summary,
            session_category=self.session_category,
            entities=list(self.entities),
            suggested_notebook_title=self.suggested_notebook_title,
            suggestions=list(self.suggestions),
        )


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ScreenshotContext(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    raw_text: str = Field(default="", alias="rawText")
    summary: str = Field(default="")

    @field_validator("raw_text", "summary", mode="before")
    @classmethod
    def null_text_as_empty(cls, value: Any) -> Any:
        return _text_or_empty(value)


class ChatContext(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    screenshots: list[ScreenshotContext] = Field(default_factory=list)
    session_name: str | None = Field(default=None, alias="sessionName")
    session_category: str | None = Field(default=None, alias="sessionCategory")


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(min_length=1, alias="sessionId")
    user_message: str = Field(min_length=1, alias="userMessage")
    current_note: str = Field(alias="currentNote")
    context: ChatContext | None = Field(default=None)


class ChatExchange(BaseModel):
    """One validated reply to a chat message.

    ``note_was_modified`` true means ``updated_note`` holds the full
    replacement note; false means ``updated_note`` is the caller's note
    echoed back unchanged.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    reply: str
    updated_note: str | None = Field(default=None, alias="updatedNote")
    note_was_modified: bool = Field(default=False, alias="noteWasModified")


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------


class SessionRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    owner_id: str = Field(alias="ownerId")
    name: str
    description: str | None = None
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")


class ScreenshotRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    session_id: str = Field(alias="sessionId")
    image_url: str | None = Field(default=None, alias="imageUrl")
    analysis: ScreenshotAnalysis
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")


class SessionDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session: SessionRecord
    screenshots: list[ScreenshotRecord] = Field(default_factory=list)
    regenerate_state: SessionState | None = Field(default=None, alias="regenerateState")


class SessionListItem(SessionRecord):
    screenshot_count: int = Field(default=0, alias="screenshotCount")
    regenerate_state: SessionState | None = Field(default=None, alias="regenerateState")


# ---------------------------------------------------------------------------
# Binary payloads
# ---------------------------------------------------------------------------


class BinaryPayload(BaseModel):
    """Inline attachment sent alongside a prompt (e.g. screenshot bytes)."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = Field(default="image/png")
