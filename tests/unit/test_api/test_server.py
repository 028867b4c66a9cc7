"""Tests for the sessionlens HTTP API."""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from sessionlens.api.server import create_app
from sessionlens.config.settings import AuthConfig, Settings
from sessionlens.engine import SessionEngine
from sessionlens.generation.base import GenerationUnavailable
from sessionlens.reconcile.chat import FALLBACK_REPLY
from sessionlens.storage.memory import InMemorySessionRepository

ALICE = {"Authorization": "Bearer tok-alice"}
BOB = {"Authorization": "Bearer tok-bob"}

ANALYSIS_JSON = json.dumps(
    {
        "rawText": "Hotel B\n$180/night",
        "summary": "Hotel B listing",
        "category": "trip-planning",
        "entities": [{"type": "hotel", "title": "Hotel B", "attributes": {"price": "$180/night"}}],
    }
)


@pytest.fixture
def settings() -> Settings:
    return Settings(auth=AuthConfig(tokens={"tok-alice": "alice", "tok-bob": "bob"}))


@pytest.fixture
def make_client(settings, scripted):
    """Build a TestClient whose engine replays the given responses."""

    def factory(*responses) -> TestClient:
        engine = SessionEngine(scripted(*responses))
        app = create_app(settings, engine=engine, repository=InMemorySessionRepository())
        return TestClient(app)

    return factory


def _regenerate_body(**overrides) -> dict:
    body = {
        "sessionId": "sess-1",
        "screens": [
            {
                "id": "shot-1",
                "analysis": {
                    "rawText": "Hotel B",
                    "summary": "Hotel B listing",
                    "category": "trip-planning",
                    "entities": [],
                    "suggestedNotebookTitle": None,
                },
            }
        ],
    }
    body.update(overrides)
    return body


class TestHealth:
    def test_health(self, make_client) -> None:
        response = make_client().get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "provider": "scripted", "model": "scripted"}


class TestRegenerateRoute:
    def test_valid_request(self, make_client, cabo_state_json) -> None:
        body = _regenerate_body(
            previousSession={
                "sessionSummary": "Planning a trip to Cabo",
                "sessionCategory": "trip-planning",
                "entities": [{"type": "hotel", "title": "Hotel A", "attributes": {}}],
            }
        )
        response = make_client(cabo_state_json).post("/api/regenerate", json=body)
        assert response.status_code == 200
        data = response.json()
        assert data["sessionId"] == "sess-1"
        assert data["sessionCategory"] == "trip-planning"
        assert [e["title"] for e in data["entities"]] == ["Hotel A", "Hotel B"]
        assert data["suggestions"][1]["items"][0]["entityTitle"] == "Hotel B"

    def test_generation_failure_returns_neutral_state(self, make_client) -> None:
        client = make_client(GenerationUnavailable("down"))
        response = client.post("/api/regenerate", json=_regenerate_body())
        assert response.status_code == 200
        assert response.json() == {
            "sessionId": "sess-1",
            "sessionSummary": "",
            "sessionCategory": "other",
            "entities": [],
            "suggestedNotebookTitle": None,
            "suggestions": [],
        }

    @pytest.mark.parametrize(
        "body",
        [
            {"screens": _regenerate_body()["screens"]},
            _regenerate_body(sessionId=""),
            _regenerate_body(screens=[]),
            {"sessionId": "sess-1"},
        ],
    )
    def test_bad_input(self, make_client, body) -> None:
        response = make_client().post("/api/regenerate", json=body)
        assert response.status_code == 400
        assert response.json()["error"] == "Bad Request"
        assert response.json()["message"]

    def test_null_analysis_text_is_accepted(self, make_client, cabo_state_json) -> None:
        body = _regenerate_body()
        body["screens"][0]["analysis"].update(rawText=None, summary=None)
        response = make_client(cabo_state_json).post("/api/regenerate", json=body)
        assert response.status_code == 200
        assert response.json()["sessionSummary"] == "Comparing Cabo hotels for an upcoming trip"

    def test_malformed_input_entities_drop_only_bad_entries(
        self, make_client, cabo_state_json
    ) -> None:
        body = _regenerate_body(
            previousSession={
                "sessionSummary": None,
                "entities": [
                    {"type": "hotel", "title": "Hotel A", "attributes": {"price": 12, "area": "Marina"}},
                    {"title": "no type"},
                ],
            }
        )
        body["screens"][0]["analysis"]["entities"] = [{"type": "hotel", "attributes": "x"}]
        client = make_client(cabo_state_json)
        response = client.post("/api/regenerate", json=body)
        assert response.status_code == 200
        assert [e["title"] for e in response.json()["entities"]] == ["Hotel A", "Hotel B"]

    def test_cors_preflight(self, make_client) -> None:
        response = make_client().options(
            "/api/regenerate",
            headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"


class TestChatRoute:
    def test_question(self, make_client) -> None:
        client = make_client('{"reply": "Two hotels.", "noteWasModified": false}')
        response = client.post(
            "/api/chat",
            json={"sessionId": "s", "userMessage": "How many hotels?", "currentNote": "# Note"},
        )
        assert response.status_code == 200
        assert response.json() == {
            "reply": "Two hotels.",
            "updatedNote": "# Note",
            "noteWasModified": False,
        }

    def test_fallback_on_invalid_response(self, make_client) -> None:
        response = make_client("oops").post(
            "/api/chat",
            json={"sessionId": "s", "userMessage": "Delete it", "currentNote": "# Note"},
        )
        assert response.status_code == 200
        assert response.json()["reply"] == FALLBACK_REPLY
        assert response.json()["updatedNote"] == "# Note"

    def test_context_screenshot_without_text(self, make_client) -> None:
        client = make_client('{"reply": "One screenshot.", "noteWasModified": false}')
        response = client.post(
            "/api/chat",
            json={
                "sessionId": "s",
                "userMessage": "What did I capture?",
                "currentNote": "# Note",
                "context": {"screenshots": [{"id": "shot-1", "rawText": None, "summary": None}]},
            },
        )
        assert response.status_code == 200
        assert response.json()["reply"] == "One screenshot."

    @pytest.mark.parametrize(
        "body",
        [
            {"userMessage": "hi", "currentNote": ""},
            {"sessionId": "s", "userMessage": "", "currentNote": ""},
            {"sessionId": "s", "userMessage": 5, "currentNote": ""},
            {"sessionId": "s", "userMessage": "hi"},
            {"sessionId": "s", "userMessage": "hi", "currentNote": None},
        ],
    )
    def test_bad_input(self, make_client, body) -> None:
        response = make_client().post("/api/chat", json=body)
        assert response.status_code == 400


class TestAnalyzeRoute:
    def test_analyze(self, make_client, png_base64) -> None:
        response = make_client(ANALYSIS_JSON).post("/api/analyze", json={"image": png_base64})
        assert response.status_code == 200
        data = response.json()
        assert data["category"] == "trip-planning"
        assert data["rawText"] == "Hotel B\n$180/night"
        assert data["id"]

    def test_missing_image(self, make_client) -> None:
        response = make_client().post("/api/analyze", json={})
        assert response.status_code == 400

    def test_undecodable_image(self, make_client) -> None:
        response = make_client().post("/api/analyze", json={"image": "!!!"})
        assert response.status_code == 400

    def test_analysis_failure_is_502(self, make_client, png_base64) -> None:
        response = make_client("no json here").post("/api/analyze", json={"image": png_base64})
        assert response.status_code == 502
        assert response.json()["error"] == "Analysis failed"


class TestSessionRoutes:
    def test_requires_token(self, make_client) -> None:
        client = make_client()
        assert client.get("/api/sessions").status_code == 401
        bad = client.get("/api/sessions", headers={"Authorization": "Bearer nope"})
        assert bad.status_code == 401
        assert bad.json()["error"] == "Unauthorized"

    def test_session_lifecycle(self, make_client, png_base64, cabo_state_json) -> None:
        client = make_client(ANALYSIS_JSON, cabo_state_json)

        created = client.post("/api/sessions", json={"name": "Cabo"}, headers=ALICE)
        assert created.status_code == 201
        session_id = created.json()["id"]
        assert created.json()["ownerId"] == "alice"

        shot = client.post(
            f"/api/sessions/{session_id}/screenshots",
            json={"image": png_base64, "imageUrl": "https://img/1.png"},
            headers=ALICE,
        )
        assert shot.status_code == 201
        assert shot.json()["analysis"]["entities"][0]["title"] == "Hotel B"

        regenerated = client.post(f"/api/sessions/{session_id}/regenerate", headers=ALICE)
        assert regenerated.status_code == 200
        assert regenerated.json()["sessionId"] == session_id

        detail = client.get(f"/api/sessions/{session_id}", headers=ALICE).json()
        assert len(detail["screenshots"]) == 1
        assert detail["regenerateState"]["sessionCategory"] == "trip-planning"

        listing = client.get("/api/sessions", headers=ALICE).json()
        assert listing[0]["screenshotCount"] == 1

    def test_other_owner_gets_404(self, make_client) -> None:
        client = make_client()
        session_id = client.post("/api/sessions", json={"name": "Cabo"}, headers=ALICE).json()["id"]
        assert client.get(f"/api/sessions/{session_id}", headers=BOB).status_code == 404
        assert client.post(f"/api/sessions/{session_id}/regenerate", headers=BOB).status_code == 404
        assert client.get("/api/sessions", headers=BOB).json() == []

    def test_regenerate_without_screenshots_is_400(self, make_client) -> None:
        client = make_client()
        session_id = client.post("/api/sessions", json={"name": "Empty"}, headers=ALICE).json()["id"]
        response = client.post(f"/api/sessions/{session_id}/regenerate", headers=ALICE)
        assert response.status_code == 400
        assert "No screenshots" in response.json()["message"]
