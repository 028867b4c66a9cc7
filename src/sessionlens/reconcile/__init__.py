"""Validation, normalization and prompt assembly around the generation boundary.

Everything the generation service returns is untrusted. The modules in
this package turn its raw text into schema-valid domain objects, or into
a tagged ``Fallback`` when that is impossible.
"""

from sessionlens.reconcile.chat import chat_fallback, validate_chat_response
from sessionlens.reconcile.entities import reconcile_entities
from sessionlens.reconcile.normalize import (
    Fallback,
    FallbackReason,
    MalformedGenerationOutput,
    Validated,
    normalize_screenshot_analysis,
    normalize_session_state,
    parse_json_object,
    strip_code_fences,
)
from sessionlens.reconcile.prompts import (
    build_analyze_prompt,
    build_chat_prompt,
    build_regenerate_prompt,
    truncate_text,
)
from sessionlens.reconcile.suggestions import classify_suggestions

__all__ = [
    "Fallback",
    "FallbackReason",
    "MalformedGenerationOutput",
    "Validated",
    "build_analyze_prompt",
    "build_chat_prompt",
    "build_regenerate_prompt",
    "chat_fallback",
    "classify_suggestions",
    "normalize_screenshot_analysis",
    "normalize_session_state",
    "parse_json_object",
    "reconcile_entities",
    "strip_code_fences",
    "truncate_text",
    "validate_chat_response",
]
