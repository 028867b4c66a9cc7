"""Shared test fixtures for the sessionlens test suite.

Provides common fixtures used across unit tests: sample entities,
analyses and states, a scripted generation client, and tiny images.
"""

from __future__ import annotations

import base64
import io
import json

import pytest
from PIL import Image

from sessionlens.domain.models import (
    BinaryPayload,
    Entity,
    PreviousSession,
    ScreenshotAnalysis,
    SessionCategory,
    SessionState,
)
from sessionlens.generation.base import GenerationClient, GenerationUnavailable


class ScriptedGenerationClient(GenerationClient):
    """A generation client that replays queued responses.

    Each queued item is either a string (returned) or an exception
    (raised). Every call is recorded for later inspection.
    """

    def __init__(self, *responses: str | Exception) -> None:
        super().__init__(model="scripted")
        self.responses = list(responses)
        self.calls: list[dict] = []

    @property
    def provider(self) -> str:
        return "scripted"

    async def generate(self, prompt, payload=None, temperature=None) -> str:
        self.calls.append({"prompt": prompt, "payload": payload, "temperature": temperature})
        if not self.responses:
            raise GenerationUnavailable("no scripted response left", provider=self.provider)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def health_check(self) -> bool:
        return True


@pytest.fixture
def scripted() -> type[ScriptedGenerationClient]:
    """The scripted client class, for building clients with canned replies."""
    return ScriptedGenerationClient


# ---------------------------------------------------------------------------
# Entity / Analysis Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def hotel_a() -> Entity:
    return Entity(
        type="hotel",
        title="Hotel A",
        attributes={"price": "$200/night", "location": "Cabo San Lucas"},
    )


@pytest.fixture
def hotel_b() -> Entity:
    return Entity(
        type="hotel",
        title="Hotel B",
        attributes={"price": "$180/night", "rating": "4.5"},
    )


@pytest.fixture
def cabo_analysis(hotel_b: Entity) -> ScreenshotAnalysis:
    """A screenshot showing a second Cabo hotel."""
    return ScreenshotAnalysis(
        id="shot-2",
        raw_text="Hotel B\n$180/night\n4.5 stars\nCabo San Lucas",
        summary="Listing for Hotel B in Cabo",
        category=SessionCategory.TRIP_PLANNING,
        entities=[hotel_b],
        suggested_title="Cabo Hotels",
    )


@pytest.fixture
def cabo_previous(hotel_a: Entity) -> PreviousSession:
    return PreviousSession(
        session_summary="Planning a trip to Cabo",
        session_category=SessionCategory.TRIP_PLANNING,
        entities=[hotel_a],
    )


@pytest.fixture
def cabo_state_json() -> str:
    """A well-formed regeneration response that keeps Hotel A and adds Hotel B."""
    return json.dumps(
        {
            "sessionSummary": "Comparing Cabo hotels for an upcoming trip",
            "sessionCategory": "trip-planning",
            "entities": [
                {
                    "type": "hotel",
                    "title": "Hotel A",
                    "attributes": {"price": "$200/night", "location": "Cabo San Lucas"},
                },
                {
                    "type": "hotel",
                    "title": "Hotel B",
                    "attributes": {"price": "$180/night", "rating": "4.5"},
                },
            ],
            "suggestedNotebookTitle": "Cabo Hotels",
            "suggestions": [
                {"type": "question", "text": "Are you prioritizing price or location?"},
                {
                    "type": "ranking",
                    "basis": "price",
                    "items": [
                        {"entityTitle": "Hotel B", "reason": "Cheapest"},
                        {"entityTitle": "Hotel A", "reason": "Better location"},
                    ],
                },
                {"type": "next-step", "text": "Check cancellation policies"},
            ],
        }
    )


@pytest.fixture
def sample_state(hotel_a: Entity) -> SessionState:
    return SessionState(
        session_summary="Planning a trip to Cabo",
        session_category=SessionCategory.TRIP_PLANNING,
        entities=[hotel_a],
        suggested_notebook_title="Cabo",
    )


# ---------------------------------------------------------------------------
# Image Fixtures
# ---------------------------------------------------------------------------


def make_png(width: int = 8, height: int = 8, color: tuple[int, int, int] = (200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """A minimal 8x8 PNG."""
    return make_png()


@pytest.fixture
def png_base64(png_bytes: bytes) -> str:
    return base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def png_payload(png_bytes: bytes) -> BinaryPayload:
    return BinaryPayload(data=png_bytes, mime_type="image/png")
