"""Prompt assembly for analysis, regeneration and note chat.

All builders are pure functions of their inputs. Raw screenshot text is
truncated to a fixed number of characters so prompt size stays bounded
no matter how much OCR text a session accumulates.
"""

from __future__ import annotations

import json
from typing import Sequence

from sessionlens.domain.models import (
    ChatContext,
    Entity,
    PreviousSession,
    ScreenshotAnalysis,
    SessionCategory,
)

TRUNCATION_MARKER = "..."

CATEGORY_LIST = "\n".join(f"- {c.value}" for c in SessionCategory)
CATEGORY_CHOICES = " | ".join(f'"{c.value}"' for c in SessionCategory)


def truncate_text(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut.

    Idempotent: truncating an already-truncated string at the same limit
    returns it unchanged.
    """
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def _entities_json(entities: Sequence[Entity]) -> str:
    return json.dumps(
        [e.model_dump(mode="json") for e in entities], indent=2, ensure_ascii=False
    )


# ---------------------------------------------------------------------------
# Screenshot analysis
# ---------------------------------------------------------------------------

ANALYZE_PROMPT = f"""You are an OCR and entity extraction system. Analyze this screenshot image.

TASKS:
1. Extract ALL visible text via OCR (rawText field)
2. Summarize in one sentence what the user is looking at (summary field)
3. Choose ONE category for the screenshot
4. Extract the important entities (hotels, flights, products, jobs, articles, ...)
   with their visible attributes (price, rating, location, url, ...)
5. Suggest a short notebook title

CATEGORIES (choose one):
{CATEGORY_LIST}

RULES:
- Return ONLY valid JSON
- No markdown, no explanations, no prose
- Missing values must be null
- Attribute values must be strings

OUTPUT FORMAT:
{{
  "rawText": "full ocr text here",
  "summary": "one sentence",
  "category": {CATEGORY_CHOICES},
  "entities": [
    {{
      "type": "hotel" | "product" | "job" | etc,
      "title": "entity name or null",
      "attributes": {{"key": "value"}}
    }}
  ],
  "suggestedNotebookTitle": "short title or null"
}}"""


def build_analyze_prompt() -> str:
    return ANALYZE_PROMPT


# ---------------------------------------------------------------------------
# Session regeneration
# ---------------------------------------------------------------------------

REGENERATE_INSTRUCTIONS = f"""You are an intelligent session analyzer for a notebook app. A user has a notebook/session containing multiple screenshots.

YOUR TASK:
Analyze the entire session and produce:
1. sessionSummary: 1-3 sentence description of what this notebook/session is about
2. sessionCategory: ONE category that best describes the session
3. entities: merged/deduplicated list of important entities across all screenshots
4. suggestedNotebookTitle: a helpful title for the notebook
5. suggestions: intelligent suggestions to help the user

IMPORTANT RULES:
- If a previous session state is provided, USE IT AS CONTEXT to maintain continuity
- DO NOT restart the idea or drift away from previous context
- You can refine or expand the summary, but keep the core idea consistent
- Keep every previous entity unless a current screen contradicts it; extend it with new attributes
- Merge entities intelligently (deduplicate similar items)
- Choose the most relevant category for the OVERALL session
- Provide at least one suggestion if possible
- Return ONLY valid JSON, no markdown, no explanations

CATEGORIES (choose one):
{CATEGORY_LIST}

SUGGESTION TYPES:
1. "question" - Ask a clarifying question about what the user is optimizing for
   Example: "Are you prioritizing price or location for this trip?"

2. "ranking" - Propose a ranking of entities by some basis (price, rating, value, etc.)
   Only use if session has multiple comparable entities (hotels, products, jobs)
   Every ranking must contain at least one item
   Example: Rank 3 hotels by "value" with reasons for each

3. "next-step" - Suggest a concrete action
   Example: "Consider filtering to hotels with free cancellation"

OUTPUT FORMAT (JSON ONLY):
{{
  "sessionSummary": "1-3 sentence description of the entire notebook/session",
  "sessionCategory": {CATEGORY_CHOICES},
  "entities": [
    {{
      "type": "hotel" | "product" | "job" | etc,
      "title": "entity name or null",
      "attributes": {{
        "key": "value"
      }}
    }}
  ],
  "suggestedNotebookTitle": "descriptive title or null",
  "suggestions": [
    {{"type": "question", "text": "clarifying question"}},
    {{
      "type": "ranking",
      "basis": "price" | "rating" | "value" | etc,
      "items": [{{"entityTitle": "entity name", "reason": "why ranked here"}}]
    }},
    {{"type": "next-step", "text": "concrete action suggestion"}}
  ]
}}
"""


def build_continuity_block(previous: PreviousSession) -> str:
    return (
        "\n--- PREVIOUS SESSION STATE (MAINTAIN CONTINUITY) ---\n"
        f"Session Summary: {previous.session_summary}\n"
        f"Session Category: {previous.session_category.value}\n"
        f"Previous Entities Count: {len(previous.entities)}\n"
        f"Previous Entities: {_entities_json(previous.entities)}\n"
    )


def build_screen_block(index: int, screen: ScreenshotAnalysis, raw_text_limit: int) -> str:
    return (
        f"\nScreen {index} (ID: {screen.id}):\n"
        f"  Summary: {screen.summary}\n"
        f"  Category: {screen.category.value}\n"
        f"  Suggested Title: {screen.suggested_title or 'none'}\n"
        f"  Entities Count: {len(screen.entities)}\n"
        f"  Entities: {_entities_json(screen.entities)}\n"
        f"  Raw Text (truncated): {truncate_text(screen.raw_text, raw_text_limit)}\n"
    )


def build_regenerate_prompt(
    previous: PreviousSession | None,
    screens: Sequence[ScreenshotAnalysis],
    raw_text_limit: int = 200,
) -> str:
    """Compose the single prompt used to re-derive a session's state.

    Screens are rendered in the order given, which is chronological.
    """
    parts = [REGENERATE_INSTRUCTIONS]
    if previous is not None:
        parts.append(build_continuity_block(previous))

    parts.append(f"\n--- CURRENT SCREENS IN SESSION ({len(screens)} total) ---\n")
    for index, screen in enumerate(screens, start=1):
        parts.append(build_screen_block(index, screen, raw_text_limit))

    parts.append("\nNOW ANALYZE THE ENTIRE SESSION AND RETURN ONLY THE JSON RESPONSE.")
    return "".join(parts)


# ---------------------------------------------------------------------------
# Note chat
# ---------------------------------------------------------------------------

CHAT_INSTRUCTIONS = """You are an AI assistant helping a user manage their markdown notes and research sessions.

Your job is to:
1. Decide if the user's message is an EDIT COMMAND or a QUESTION
2. If EDIT COMMAND: modify the note and return the full updated markdown
3. If QUESTION: answer without modifying the note
4. Always respond in STRICT JSON

## Identifying Command Type

**EDIT COMMANDS** modify the note. Look for:
- Instruction verbs: remove, delete, add, insert, rewrite, shorten, expand, change, update, fix, clean up, make concise, rephrase, edit
- References to note parts: title, summary, section, bullet, recommendation, item, etc.

Examples:
- "Remove the third recommendation"
- "Rewrite the summary to be shorter"
- "Add a section about budget"
- "Delete the second hotel"
- "Make this more concise"

**QUESTIONS** ask for information without changing anything. Look for:
- Question words: what, why, how, where, who, which, when, can you tell me
- Informational requests without modification intent

Examples:
- "What hotels did I look at?"
- "Summarize what's in my notes"
- "What was the price of the second hotel?"
- "How many recommendations do I have?"

**When ambiguous, treat as QUESTION (do not modify).**
"""

CHAT_RESPONSE_FORMAT = """

## Response Format

You MUST respond with ONLY a JSON object (no markdown, no explanations):

{
  "reply": "Your message to the user",
  "updatedNote": "Full markdown note (required if modified)",
  "noteWasModified": boolean
}

## Rules:

**If EDIT COMMAND:**
- Set noteWasModified: true
- Return FULL modified note in updatedNote
- Preserve markdown structure
- Provide short confirmation in reply: "Done! I've [what you did]."

**If QUESTION:**
- Set noteWasModified: false
- Keep note unchanged (updatedNote = original note)
- Answer the question in reply based on note and context

CRITICAL: Return ONLY the JSON object. No backticks, no explanations, no extra text."""


def build_chat_context_block(context: ChatContext, raw_text_limit: int) -> str:
    lines: list[str] = []
    if context.session_name or context.session_category:
        lines.append("\n\n## Session Info:")
        if context.session_name:
            lines.append(f"\n- Name: {context.session_name}")
        if context.session_category:
            lines.append(f"\n- Category: {context.session_category}")

    if context.screenshots:
        lines.append("\n\n## Screenshot Context:")
        for index, shot in enumerate(context.screenshots, start=1):
            lines.append(f"\n\n### Screenshot {index} ({shot.id}):")
            lines.append(f"\nSummary: {shot.summary}")
            if shot.raw_text:
                lines.append(f"\nOCR Text: {truncate_text(shot.raw_text, raw_text_limit)}")
    return "".join(lines)


def build_chat_prompt(
    message: str,
    current_note: str,
    context: ChatContext | None = None,
    raw_text_limit: int = 500,
) -> str:
    """Compose the prompt that classifies and answers one chat message."""
    prompt = (
        f"{CHAT_INSTRUCTIONS}\n"
        f"## Current Note (Markdown):\n\n{current_note}\n\n"
        f'## User Message:\n\n"{message}"\n'
    )
    if context is not None:
        prompt += build_chat_context_block(context, raw_text_limit)
    return prompt + CHAT_RESPONSE_FORMAT
