"""Parse-then-validate pipeline for untrusted generation output.

Every response from the generation service goes through the same steps:
strip any code fences, parse as a JSON object, then check each expected
field. Failures never raise out of the ``normalize_*`` functions; they
come back as a ``Fallback`` carrying the reason, and the caller decides
which safe substitute to return.

Field rules:

* absent or ``null`` -> the documented default (``None`` for optional
  strings, ``[]`` for arrays, ``False`` for booleans)
* present but of the wrong type -> the field is dropped to its default,
  the rest of the object is kept
"""

from __future__ import annotations

import enum
import json
import logging
import re
from typing import Any, Generic, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict

from sessionlens.domain.models import (
    ScreenshotAnalysis,
    SessionCategory,
    SessionState,
)
from sessionlens.errors import SessionLensError
from sessionlens.reconcile.entities import reconcile_entities
from sessionlens.reconcile.suggestions import classify_suggestions

logger = logging.getLogger(__name__)

ShapeT = TypeVar("ShapeT")

_OPEN_FENCE_RE = re.compile(r"^```[\w-]*[ \t]*\n?")
_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_BAD_ESCAPE_RE = re.compile(r'\\(?!["\\/bfnrtu])')


class FallbackReason(str, enum.Enum):
    UNAVAILABLE = "unavailable"
    MALFORMED_JSON = "malformed-json"
    NOT_AN_OBJECT = "not-an-object"
    INVALID_SHAPE = "invalid-shape"


class MalformedGenerationOutput(SessionLensError):
    """Raised when generation output cannot be parsed into the expected shape."""

    def __init__(
        self,
        message: str,
        reason: FallbackReason = FallbackReason.MALFORMED_JSON,
        raw_response: str = "",
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.raw_response = raw_response


class Validated(BaseModel, Generic[ShapeT]):
    """A generation response that passed validation."""

    model_config = ConfigDict(frozen=True)

    outcome: Literal["ok"] = "ok"
    value: ShapeT


class Fallback(BaseModel):
    """A generation response that must be replaced by a safe substitute."""

    model_config = ConfigDict(frozen=True)

    outcome: Literal["fallback"] = "fallback"
    reason: FallbackReason
    detail: str = ""

    @classmethod
    def from_error(cls, error: MalformedGenerationOutput) -> Fallback:
        return cls(reason=error.reason, detail=str(error))


NormalizeResult = Union[Validated[ShapeT], Fallback]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def strip_code_fences(text: str) -> str:
    """Remove code-fence markers surrounding the whole response.

    Only a fence that wraps the entire text is removed; fences inside
    JSON string values (a markdown note, say) are left alone.
    """
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    stripped = _OPEN_FENCE_RE.sub("", stripped, count=1)
    if stripped.endswith("```"):
        stripped = stripped[:-3]
    return stripped.strip()


def _candidates(text: str) -> list[str]:
    """Strings worth trying to parse, most literal first."""
    stripped = strip_code_fences(text)
    found = [stripped]

    # JSON embedded in prose, fenced or bare
    match = _FENCE_RE.search(stripped)
    if match:
        found.append(match.group(1).strip())
    brace_match = _OBJECT_RE.search(stripped)
    if brace_match:
        found.append(brace_match.group(0))
    return found


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse generation output as a JSON object.

    Raises:
        MalformedGenerationOutput: If the text is not JSON or not an object.
    """
    data: Any = None
    error: json.JSONDecodeError | None = None
    for candidate in _candidates(text):
        try:
            data = json.loads(candidate)
            break
        except json.JSONDecodeError as e:
            error = error or e
        # Fix invalid escape sequences by doubling lone backslashes
        try:
            data = json.loads(_BAD_ESCAPE_RE.sub(r"\\\\", candidate))
            break
        except json.JSONDecodeError:
            continue
    else:
        raise MalformedGenerationOutput(
            f"response is not valid JSON: {error}", raw_response=text
        )

    if not isinstance(data, dict):
        raise MalformedGenerationOutput(
            f"response must be a JSON object, got {type(data).__name__}",
            reason=FallbackReason.NOT_AN_OBJECT,
            raw_response=text,
        )
    return data


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def optional_str(data: dict[str, Any], key: str) -> str | None:
    """A string field that may be absent; empty or wrong-typed -> None."""
    value = data.get(key)
    if isinstance(value, str) and value:
        return value
    if value is not None and not isinstance(value, str):
        logger.debug("Dropping field %s: expected string, got %s", key, type(value).__name__)
    return None


def str_field(data: dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if isinstance(value, str):
        return value
    if value is not None:
        logger.debug("Dropping field %s: expected string, got %s", key, type(value).__name__)
    return default


def category_field(data: dict[str, Any], key: str) -> SessionCategory:
    value = data.get(key)
    category = SessionCategory.parse(value)
    if value is not None and category is SessionCategory.OTHER and value != "other":
        logger.debug("Dropping field %s: unknown category %r", key, value)
    return category


# ---------------------------------------------------------------------------
# Shape normalizers
# ---------------------------------------------------------------------------


def normalize_session_state(raw: str) -> NormalizeResult[SessionState]:
    """Normalize a regeneration response into a ``SessionState``."""
    try:
        data = parse_json_object(raw)
    except MalformedGenerationOutput as e:
        _log_malformed("regeneration", e)
        return Fallback.from_error(e)

    state = SessionState(
        session_summary=str_field(data, "sessionSummary"),
        session_category=category_field(data, "sessionCategory"),
        entities=reconcile_entities(data.get("entities")),
        suggested_notebook_title=optional_str(data, "suggestedNotebookTitle"),
        suggestions=classify_suggestions(data.get("suggestions")),
    )
    return Validated[SessionState](value=state)


def normalize_screenshot_analysis(
    raw: str, screenshot_id: str
) -> NormalizeResult[ScreenshotAnalysis]:
    """Normalize a single-screenshot analysis response."""
    try:
        data = parse_json_object(raw)
    except MalformedGenerationOutput as e:
        _log_malformed("analysis", e)
        return Fallback.from_error(e)

    analysis = ScreenshotAnalysis(
        id=screenshot_id,
        raw_text=str_field(data, "rawText"),
        summary=str_field(data, "summary"),
        category=category_field(data, "category"),
        entities=reconcile_entities(data.get("entities")),
        suggested_title=optional_str(data, "suggestedNotebookTitle"),
    )
    return Validated[ScreenshotAnalysis](value=analysis)


def _log_malformed(shape: str, error: MalformedGenerationOutput) -> None:
    logger.warning(
        "Malformed %s output (%s): %s | raw=%r",
        shape,
        error.reason.value,
        error,
        error.raw_response[:200],
    )
