"""Type-discriminated filtering of generated suggestions.

Only three suggestion variants exist: ``question``, ``ranking`` and
``next-step``. Anything else the generator proposes, or any variant
missing a required field, is dropped rather than coerced.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from sessionlens.domain.models import (
    NextStepSuggestion,
    QuestionSuggestion,
    RankingItem,
    RankingSuggestion,
    Suggestion,
)

logger = logging.getLogger(__name__)


def _question(raw: dict[str, Any]) -> Suggestion | None:
    text = raw.get("text")
    return QuestionSuggestion(text=text) if isinstance(text, str) else None


def _next_step(raw: dict[str, Any]) -> Suggestion | None:
    text = raw.get("text")
    return NextStepSuggestion(text=text) if isinstance(text, str) else None


def _ranking(raw: dict[str, Any]) -> Suggestion | None:
    basis = raw.get("basis")
    items = raw.get("items")
    if not isinstance(basis, str) or not isinstance(items, list):
        return None

    valid_items = [
        RankingItem(entity_title=item["entityTitle"], reason=item["reason"])
        for item in items
        if isinstance(item, dict)
        and isinstance(item.get("entityTitle"), str)
        and isinstance(item.get("reason"), str)
    ]
    if not valid_items:
        return None
    return RankingSuggestion(basis=basis, items=valid_items)


_VARIANTS: dict[str, Callable[[dict[str, Any]], Suggestion | None]] = {
    "question": _question,
    "ranking": _ranking,
    "next-step": _next_step,
}


def classify_suggestions(value: Any) -> list[Suggestion]:
    """Filter a generated ``suggestions`` array down to valid variants.

    Total: never raises, and returns ``[]`` in the worst case. Surviving
    suggestions keep the generator's relative order.
    """
    if not isinstance(value, list):
        return []

    suggestions: list[Suggestion] = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        tag = raw.get("type")
        builder = _VARIANTS.get(tag) if isinstance(tag, str) else None
        if builder is None:
            logger.debug("Dropping suggestion with unknown type %r", tag)
            continue
        suggestion = builder(raw)
        if suggestion is None:
            logger.debug("Dropping malformed %s suggestion", tag)
            continue
        suggestions.append(suggestion)
    return suggestions
