"""In-process session repository.

Suitable for tests, demos and single-process deployments. Stored models
are frozen, so handing out the same instances cannot leak mutations.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone

from sessionlens.domain.models import (
    ScreenshotAnalysis,
    ScreenshotRecord,
    SessionRecord,
    SessionState,
)
from sessionlens.storage.base import RepositoryError, SessionRepository

logger = logging.getLogger(__name__)


class InMemorySessionRepository(SessionRepository):
    """Keeps sessions, screenshots and states in dictionaries."""

    def __init__(self) -> None:
        self._sessions: dict[str, SessionRecord] = {}
        self._screenshots: dict[str, list[ScreenshotRecord]] = {}
        self._states: dict[str, SessionState] = {}
        self._lock = asyncio.Lock()

    async def get_prior_state(self, session_id: str) -> SessionState | None:
        return self._states.get(session_id)

    async def put_state(self, session_id: str, state: SessionState) -> None:
        async with self._lock:
            self._states[session_id] = state
        logger.debug("Stored state for session %s", session_id)

    async def create_session(
        self, owner_id: str, name: str, description: str | None = None
    ) -> SessionRecord:
        record = SessionRecord(
            id=str(uuid.uuid4()), owner_id=owner_id, name=name, description=description
        )
        async with self._lock:
            self._sessions[record.id] = record
            self._screenshots[record.id] = []
        return record

    async def get_session(self, session_id: str) -> SessionRecord | None:
        return self._sessions.get(session_id)

    async def list_sessions(self, owner_id: str) -> list[SessionRecord]:
        owned = [s for s in self._sessions.values() if s.owner_id == owner_id]
        return sorted(owned, key=lambda s: s.updated_at, reverse=True)

    async def add_screenshot(
        self,
        session_id: str,
        analysis: ScreenshotAnalysis,
        image_url: str | None = None,
    ) -> ScreenshotRecord:
        async with self._lock:
            if session_id not in self._sessions:
                raise RepositoryError(
                    f"Unknown session: {session_id}", operation="add_screenshot"
                )
            record = ScreenshotRecord(
                id=analysis.id, session_id=session_id, image_url=image_url, analysis=analysis
            )
            self._screenshots[session_id].append(record)
        return record

    async def list_screenshots(self, session_id: str) -> list[ScreenshotRecord]:
        return list(self._screenshots.get(session_id, []))

    async def touch_session(self, session_id: str) -> None:
        async with self._lock:
            record = self._sessions.get(session_id)
            if record is not None:
                self._sessions[session_id] = record.model_copy(
                    update={"updated_at": datetime.now(timezone.utc)}
                )
