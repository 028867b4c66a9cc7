"""FastAPI server exposing the sessionlens engine over HTTP.

Stateless endpoints (the browser supplies everything):

    GET  /health
    POST /api/analyze       <- {"image": "<base64 or data URL>"}
    POST /api/regenerate    <- {"sessionId", "previousSession"?, "screens": [...]}
    POST /api/chat          <- {"sessionId", "userMessage", "currentNote", "context"?}

Stored-session endpoints (require ``Authorization: Bearer <token>``):

    POST /api/sessions                        <- {"name", "description"?}
    GET  /api/sessions
    GET  /api/sessions/{id}
    POST /api/sessions/{id}/screenshots       <- {"image", "imageUrl"?}
    POST /api/sessions/{id}/regenerate

Errors are returned as ``{"error": ..., "message": ...}``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from sessionlens.api.auth import BearerAuthenticator
from sessionlens.config.settings import Settings, load_settings
from sessionlens.domain.models import (
    ChatExchange,
    ChatRequest,
    RegenerateRequest,
    RegenerateResponse,
    ScreenshotAnalysis,
    ScreenshotRecord,
    SessionDetail,
    SessionListItem,
    SessionRecord,
)
from sessionlens.engine import SessionEngine, build_engine
from sessionlens.errors import (
    AnalysisFailed,
    BadInput,
    SessionLensError,
    SessionNotFound,
    Unauthorized,
)
from sessionlens.service import SessionService
from sessionlens.storage import RepositoryError, SessionRepository, build_repository
from sessionlens.utils.imaging import decode_image_data
from sessionlens.utils.logging import setup_logging

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image: str = Field(min_length=1, description="Base64 image or data URL")
    session_id: str | None = Field(default=None, alias="sessionId")


class CreateSessionRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None


class AddScreenshotRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image: str = Field(min_length=1, description="Base64 image or data URL")
    image_url: str | None = Field(default=None, alias="imageUrl")


class HealthResponse(BaseModel):
    status: str = "ok"
    provider: str
    model: str


# Most specific first; the first matching class decides the status.
_ERROR_STATUS: list[tuple[type[SessionLensError], int, str]] = [
    (BadInput, 400, "Bad Request"),
    (Unauthorized, 401, "Unauthorized"),
    (SessionNotFound, 404, "Session not found"),
    (AnalysisFailed, 502, "Analysis failed"),
    (RepositoryError, 500, "Internal server error"),
]


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    msg = first.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg


def create_app(
    settings: Settings | None = None,
    engine: SessionEngine | None = None,
    repository: SessionRepository | None = None,
    authenticator: BearerAuthenticator | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Components not passed in are built from ``settings``.
    """
    settings = settings or Settings()
    engine = engine or build_engine(settings)
    repository = repository or build_repository(settings.storage)
    authenticator = authenticator or BearerAuthenticator(settings.auth.tokens)
    service = SessionService(engine, repository)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "sessionlens API started (provider=%s, storage=%s)",
            engine.client.provider,
            type(repository).__name__,
        )
        yield
        await engine.aclose()
        await repository.close()
        logger.info("sessionlens API stopped")

    app = FastAPI(
        title="sessionlens",
        description="Session-state reconciliation for screenshot-driven research sessions",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.state.engine = engine
    app.state.repository = repository
    app.state.service = service

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        message = _describe_validation_error(exc)
        logger.info("Rejected %s %s: %s", request.method, request.url.path, message)
        return _error_response(400, "Bad Request", message)

    @app.exception_handler(SessionLensError)
    async def handle_sessionlens_error(request: Request, exc: SessionLensError) -> JSONResponse:
        for error_type, status_code, label in _ERROR_STATUS:
            if isinstance(exc, error_type):
                if status_code >= 500:
                    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
                return _error_response(status_code, label, str(exc))
        logger.error("Unhandled error in %s %s", request.method, request.url.path, exc_info=exc)
        return _error_response(500, "Internal server error", str(exc))

    def current_user(authorization: str | None = Header(default=None)) -> str:
        return authenticator.authenticate(authorization)

    # -- stateless routes ---------------------------------------------------

    @app.get("/health")
    async def health_check() -> HealthResponse:
        return HealthResponse(provider=engine.client.provider, model=engine.client.model)

    @app.post("/api/analyze")
    async def analyze(request: AnalyzeRequest) -> ScreenshotAnalysis:
        payload = decode_image_data(request.image)
        return await engine.analyze(payload)

    @app.post("/api/regenerate")
    async def regenerate(request: RegenerateRequest) -> RegenerateResponse:
        return await engine.regenerate(request)

    @app.post("/api/chat")
    async def chat(request: ChatRequest) -> ChatExchange:
        return await engine.chat(request)

    # -- stored sessions ----------------------------------------------------

    @app.post("/api/sessions", status_code=201)
    async def create_session(
        request: CreateSessionRequest, user_id: str = Depends(current_user)
    ) -> SessionRecord:
        return await service.create_session(user_id, request.name, request.description)

    @app.get("/api/sessions")
    async def list_sessions(user_id: str = Depends(current_user)) -> list[SessionListItem]:
        return await service.list_sessions(user_id)

    @app.get("/api/sessions/{session_id}")
    async def get_session(session_id: str, user_id: str = Depends(current_user)) -> SessionDetail:
        return await service.session_detail(session_id, user_id)

    @app.post("/api/sessions/{session_id}/screenshots", status_code=201)
    async def add_screenshot(
        session_id: str,
        request: AddScreenshotRequest,
        user_id: str = Depends(current_user),
    ) -> ScreenshotRecord:
        payload = decode_image_data(request.image)
        return await service.add_screenshot(session_id, user_id, payload, request.image_url)

    @app.post("/api/sessions/{session_id}/regenerate")
    async def regenerate_session(
        session_id: str, user_id: str = Depends(current_user)
    ) -> RegenerateResponse:
        return await service.regenerate_session(session_id, user_id)

    return app


# ---------------------------------------------------------------------------
# Standalone entry point
# ---------------------------------------------------------------------------

def main(config_path: str | None = None) -> None:
    """Run the sessionlens API server."""
    settings = load_settings(config_path)
    setup_logging(settings.logging)
    app = create_app(settings)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
