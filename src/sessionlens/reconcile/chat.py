"""Validation of note-chat responses (EDIT vs QUESTION).

The generation service decides whether a message is an edit command or
a question. This module only checks the answer it gave and enforces the
note invariant:

* EDIT (``noteWasModified`` true): a non-empty replacement note must be
  present, otherwise the whole response is rejected.
* QUESTION (``noteWasModified`` false): the caller's note is echoed back
  verbatim, whatever the generator put in ``updatedNote``.
"""

from __future__ import annotations

import logging

from sessionlens.domain.models import ChatExchange
from sessionlens.reconcile.normalize import (
    Fallback,
    FallbackReason,
    MalformedGenerationOutput,
    NormalizeResult,
    Validated,
    parse_json_object,
)

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Sorry, I couldn't process that request, but your note is unchanged."


def chat_fallback(current_note: str) -> ChatExchange:
    """The exchange returned whenever a valid model answer is unavailable."""
    return ChatExchange(reply=FALLBACK_REPLY, updated_note=current_note, note_was_modified=False)


def validate_chat_response(raw: str, current_note: str) -> NormalizeResult[ChatExchange]:
    """Validate a chat response against the ``{reply, updatedNote, noteWasModified}`` contract."""
    try:
        data = parse_json_object(raw)
        exchange = _build_exchange(data, current_note, raw)
    except MalformedGenerationOutput as e:
        logger.warning(
            "Invalid chat response (%s): %s | raw=%r", e.reason.value, e, raw[:200]
        )
        return Fallback.from_error(e)

    logger.debug(
        "Parsed chat result: reply=%d chars, modified=%s, note=%d chars",
        len(exchange.reply),
        exchange.note_was_modified,
        len(exchange.updated_note or ""),
    )
    return Validated[ChatExchange](value=exchange)


def _build_exchange(data: dict, current_note: str, raw: str) -> ChatExchange:
    reply = data.get("reply")
    if not isinstance(reply, str):
        raise MalformedGenerationOutput(
            "reply must be a string", reason=FallbackReason.INVALID_SHAPE, raw_response=raw
        )

    modified = data.get("noteWasModified", False)
    if modified is None:
        modified = False
    if not isinstance(modified, bool):
        raise MalformedGenerationOutput(
            "noteWasModified must be a boolean",
            reason=FallbackReason.INVALID_SHAPE,
            raw_response=raw,
        )

    if not modified:
        return ChatExchange(reply=reply, updated_note=current_note, note_was_modified=False)

    updated_note = data.get("updatedNote")
    if not isinstance(updated_note, str) or not updated_note.strip():
        raise MalformedGenerationOutput(
            "updatedNote is required when noteWasModified is true",
            reason=FallbackReason.INVALID_SHAPE,
            raw_response=raw,
        )
    return ChatExchange(reply=reply, updated_note=updated_note, note_was_modified=True)
