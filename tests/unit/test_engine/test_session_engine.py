"""Tests for the session engine (scripted generation client)."""

from __future__ import annotations

import json

import pytest

from sessionlens.config.settings import Settings
from sessionlens.domain.models import (
    AnalysisBody,
    ChatContext,
    ChatRequest,
    RegenerateRequest,
    ScreenInput,
    SessionCategory,
    SessionState,
)
from sessionlens.engine import EngineLimits, SessionEngine, build_engine
from sessionlens.errors import AnalysisFailed
from sessionlens.generation.base import GenerationUnavailable
from sessionlens.reconcile.chat import FALLBACK_REPLY

NOTE = "# Cabo\n- Hotel A\n- Hotel B\n- Hotel C"


@pytest.fixture
def cabo_request(cabo_previous, cabo_analysis) -> RegenerateRequest:
    return RegenerateRequest(
        session_id="sess-1",
        previous_session=cabo_previous,
        screens=[ScreenInput(id=cabo_analysis.id, analysis=cabo_analysis.body())],
    )


class TestRegenerate:
    @pytest.mark.asyncio
    async def test_cabo_continuity(self, scripted, cabo_request, cabo_state_json) -> None:
        client = scripted(cabo_state_json)
        response = await SessionEngine(client).regenerate(cabo_request)

        assert response.session_id == "sess-1"
        assert response.session_category is SessionCategory.TRIP_PLANNING
        assert {e.title for e in response.entities} == {"Hotel A", "Hotel B"}
        assert len(response.suggestions) == 3

        prompt = client.calls[0]["prompt"]
        assert "PREVIOUS SESSION STATE (MAINTAIN CONTINUITY)" in prompt
        assert client.calls[0]["payload"] is None

    @pytest.mark.asyncio
    async def test_unavailable_yields_neutral_state(self, scripted, cabo_request) -> None:
        client = scripted(GenerationUnavailable("down", provider="scripted"))
        response = await SessionEngine(client).regenerate(cabo_request)
        assert response.session_id == "sess-1"
        assert response.to_state() == SessionState.neutral()

    @pytest.mark.asyncio
    async def test_malformed_output_yields_neutral_state(self, scripted, cabo_request) -> None:
        response = await SessionEngine(scripted("Sorry, I can't help.")).regenerate(cabo_request)
        assert response.session_summary == ""
        assert response.session_category is SessionCategory.OTHER
        assert response.entities == []
        assert response.suggested_notebook_title is None
        assert response.suggestions == []

    @pytest.mark.asyncio
    async def test_raw_text_limit_applied(self, scripted) -> None:
        request = RegenerateRequest(
            session_id="s",
            screens=[ScreenInput(id="a", analysis=AnalysisBody(raw_text="z" * 100))],
        )
        client = scripted("{}")
        engine = SessionEngine(client, limits=EngineLimits(regenerate_raw_text_limit=10))
        await engine.regenerate(request)
        assert "z" * 10 + "..." in client.calls[0]["prompt"]
        assert "z" * 11 not in client.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_response_uses_wire_names(self, scripted, cabo_request, cabo_state_json) -> None:
        response = await SessionEngine(scripted(cabo_state_json)).regenerate(cabo_request)
        data = response.model_dump(by_alias=True, mode="json")
        assert data["sessionId"] == "sess-1"
        assert data["sessionCategory"] == "trip-planning"
        assert data["suggestedNotebookTitle"] == "Cabo Hotels"
        assert data["suggestions"][1]["items"][0] == {"entityTitle": "Hotel B", "reason": "Cheapest"}


class TestChat:
    def _request(self, message: str) -> ChatRequest:
        return ChatRequest(
            session_id="sess-1",
            user_message=message,
            current_note=NOTE,
            context=ChatContext(session_name="Cabo"),
        )

    @pytest.mark.asyncio
    async def test_question_keeps_note(self, scripted) -> None:
        client = scripted(
            json.dumps({"reply": "Three hotels.", "updatedNote": "", "noteWasModified": False})
        )
        exchange = await SessionEngine(client).chat(self._request("What hotels did I look at?"))
        assert exchange.reply == "Three hotels."
        assert exchange.updated_note == NOTE
        assert exchange.note_was_modified is False

    @pytest.mark.asyncio
    async def test_edit_replaces_note(self, scripted) -> None:
        new_note = "# Cabo\n- Hotel A\n- Hotel B"
        client = scripted(
            json.dumps({"reply": "Done!", "updatedNote": new_note, "noteWasModified": True})
        )
        exchange = await SessionEngine(client).chat(self._request("Remove the third hotel"))
        assert exchange.note_was_modified is True
        assert exchange.updated_note == new_note

    @pytest.mark.asyncio
    async def test_chat_temperature_passed(self, scripted) -> None:
        client = scripted('{"reply": "ok"}')
        engine = SessionEngine(client, limits=EngineLimits(chat_temperature=0.9))
        await engine.chat(self._request("hi"))
        assert client.calls[0]["temperature"] == 0.9

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            GenerationUnavailable("timeout"),
            "not json at all",
            '{"reply": "Done!", "noteWasModified": true}',
        ],
    )
    async def test_failures_fall_back_with_note_unchanged(self, scripted, response) -> None:
        exchange = await SessionEngine(scripted(response)).chat(self._request("Delete everything"))
        assert exchange.reply == FALLBACK_REPLY
        assert exchange.updated_note == NOTE
        assert exchange.note_was_modified is False


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_analysis_parsed(self, scripted, png_payload) -> None:
        raw = json.dumps(
            {
                "rawText": "Hotel B $180",
                "summary": "Hotel listing",
                "category": "trip-planning",
                "entities": [{"type": "hotel", "title": "Hotel B"}],
            }
        )
        client = scripted(raw)
        analysis = await SessionEngine(client).analyze(png_payload, "shot-9")
        assert analysis.id == "shot-9"
        assert analysis.category is SessionCategory.TRIP_PLANNING
        assert analysis.entities[0].title == "Hotel B"
        assert client.calls[0]["payload"] == png_payload
        assert client.calls[0]["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_generated_id_when_missing(self, scripted, png_payload) -> None:
        analysis = await SessionEngine(scripted("{}")).analyze(png_payload)
        assert analysis.id

    @pytest.mark.asyncio
    async def test_separate_analysis_client(self, scripted, png_payload) -> None:
        text_client = scripted()
        vision_client = scripted("{}")
        await SessionEngine(text_client, analysis_client=vision_client).analyze(png_payload)
        assert text_client.calls == []
        assert len(vision_client.calls) == 1

    @pytest.mark.asyncio
    async def test_unavailable_raises(self, scripted, png_payload) -> None:
        engine = SessionEngine(scripted(GenerationUnavailable("503")))
        with pytest.raises(AnalysisFailed, match="Failed to analyze image"):
            await engine.analyze(png_payload)

    @pytest.mark.asyncio
    async def test_malformed_raises_with_raw(self, scripted, png_payload) -> None:
        engine = SessionEngine(scripted("the image shows a hotel"))
        with pytest.raises(AnalysisFailed) as exc_info:
            await engine.analyze(png_payload)
        assert exc_info.value.raw_response == "the image shows a hotel"


class TestBuildEngine:
    @pytest.mark.asyncio
    async def test_without_key_uses_canned_client(self, png_payload) -> None:
        engine = build_engine(Settings(gemini_api_key=""))
        assert engine.client.provider == "canned"

        analysis = await engine.analyze(png_payload, "shot-1")
        assert analysis.entities[0].title == "Hotel Deluxe"

        state = await engine.regenerate(
            RegenerateRequest(session_id="s", screens=[ScreenInput(id="shot-1", analysis=analysis.body())])
        )
        assert state.to_state() == SessionState.neutral()
