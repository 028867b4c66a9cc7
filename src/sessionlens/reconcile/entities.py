"""Structural reconciliation of the merged entity list.

The generation step is asked to merge prior and current entities and to
deduplicate variants of the same thing. This module does not second-guess
that merge; it guarantees the structure of what gets persisted. One bad
element never invalidates the batch.
"""

from __future__ import annotations

import logging
from typing import Any

from sessionlens.domain.models import Entity

logger = logging.getLogger(__name__)


def reconcile_entities(value: Any) -> list[Entity]:
    """Keep every well-formed entity from a generated ``entities`` array.

    An element survives when it is an object with a string ``type``, a
    string or missing ``title`` and an object (or missing) ``attributes``.
    Within ``attributes``, entries whose value is not a string are dropped.
    """
    if value is None:
        return []
    if not isinstance(value, list):
        logger.debug("entities is %s, not a list; using []", type(value).__name__)
        return []

    entities: list[Entity] = []
    for index, element in enumerate(value):
        entity = _coerce_entity(element)
        if entity is None:
            logger.debug("Dropping malformed entity at index %d: %r", index, element)
            continue
        entities.append(entity)
    return entities


def _coerce_entity(element: Any) -> Entity | None:
    if isinstance(element, Entity):
        return element
    if not isinstance(element, dict):
        return None

    entity_type = element.get("type")
    if not isinstance(entity_type, str) or not entity_type:
        return None

    title = element.get("title")
    if title is not None and not isinstance(title, str):
        return None

    attributes = element.get("attributes")
    if attributes is None:
        attributes = {}
    if not isinstance(attributes, dict):
        return None

    return Entity(
        type=entity_type,
        title=title,
        attributes={
            key: val
            for key, val in attributes.items()
            if isinstance(key, str) and isinstance(val, str)
        },
    )
