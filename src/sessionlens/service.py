"""Repository-backed session flows.

Wraps ``SessionEngine`` with persistence: sessions belong to an owner,
screenshots are analyzed once and stored, and regeneration reads the
prior state and stored analyses, then writes the new state back.
"""

from __future__ import annotations

import logging

from sessionlens.domain.models import (
    BinaryPayload,
    RegenerateRequest,
    RegenerateResponse,
    ScreenInput,
    ScreenshotRecord,
    SessionDetail,
    SessionListItem,
    SessionRecord,
)
from sessionlens.engine import SessionEngine
from sessionlens.errors import BadInput, SessionNotFound
from sessionlens.storage.base import SessionRepository

logger = logging.getLogger(__name__)


class SessionService:
    """Owner-scoped session operations over an engine and a repository."""

    def __init__(self, engine: SessionEngine, repository: SessionRepository) -> None:
        self.engine = engine
        self.repository = repository

    async def _owned_session(self, session_id: str, owner_id: str) -> SessionRecord:
        session = await self.repository.get_session(session_id)
        if session is None or session.owner_id != owner_id:
            raise SessionNotFound(session_id)
        return session

    async def create_session(
        self, owner_id: str, name: str, description: str | None = None
    ) -> SessionRecord:
        if not name.strip():
            raise BadInput("name must be a non-empty string", field="name")
        record = await self.repository.create_session(owner_id, name.strip(), description)
        logger.info("Created session %s for %s", record.id, owner_id)
        return record

    async def list_sessions(self, owner_id: str) -> list[SessionListItem]:
        items = []
        for session in await self.repository.list_sessions(owner_id):
            screenshots = await self.repository.list_screenshots(session.id)
            state = await self.repository.get_prior_state(session.id)
            items.append(
                SessionListItem(
                    **dict(session),
                    screenshot_count=len(screenshots),
                    regenerate_state=state,
                )
            )
        return items

    async def session_detail(self, session_id: str, owner_id: str) -> SessionDetail:
        session = await self._owned_session(session_id, owner_id)
        return SessionDetail(
            session=session,
            screenshots=await self.repository.list_screenshots(session_id),
            regenerate_state=await self.repository.get_prior_state(session_id),
        )

    async def add_screenshot(
        self,
        session_id: str,
        owner_id: str,
        image: BinaryPayload,
        image_url: str | None = None,
    ) -> ScreenshotRecord:
        """Analyze a screenshot and attach it to a session.

        Raises:
            SessionNotFound: If the session is unknown or not owned.
            AnalysisFailed: If the screenshot cannot be analyzed.
        """
        await self._owned_session(session_id, owner_id)
        analysis = await self.engine.analyze(image)
        record = await self.repository.add_screenshot(session_id, analysis, image_url)
        await self.repository.touch_session(session_id)
        return record

    async def regenerate_session(self, session_id: str, owner_id: str) -> RegenerateResponse:
        """Regenerate and persist the state of a stored session.

        Raises:
            SessionNotFound: If the session is unknown or not owned.
            BadInput: If the session has no screenshots yet.
            RepositoryError: If the new state cannot be written.
        """
        await self._owned_session(session_id, owner_id)

        screenshots = await self.repository.list_screenshots(session_id)
        if not screenshots:
            raise BadInput("No screenshots found for this session", field="screens")

        prior = await self.repository.get_prior_state(session_id)
        request = RegenerateRequest(
            session_id=session_id,
            previous_session=prior.as_previous() if prior is not None else None,
            screens=[
                ScreenInput(id=shot.id, analysis=shot.analysis.body()) for shot in screenshots
            ],
        )

        response = await self.engine.regenerate(request)
        await self.repository.put_state(session_id, response.to_state())
        await self.repository.touch_session(session_id)
        return response
