"""Abstract base class for session storage.

The repository is keyed by session id and has no merge logic of its
own: ``put_state`` overwrites whatever state was stored before it, and
concurrent writers race with last-writer-wins semantics.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from sessionlens.domain.models import (
    ScreenshotAnalysis,
    ScreenshotRecord,
    SessionRecord,
    SessionState,
)
from sessionlens.errors import SessionLensError

logger = logging.getLogger(__name__)


class SessionRepository(ABC):
    """Durable storage for sessions, their screenshots and their state."""

    @abstractmethod
    async def get_prior_state(self, session_id: str) -> SessionState | None:
        """Return the last persisted state for a session, or None."""
        ...

    @abstractmethod
    async def put_state(self, session_id: str, state: SessionState) -> None:
        """Replace the persisted state for a session.

        Raises:
            RepositoryError: If the write fails.
        """
        ...

    @abstractmethod
    async def create_session(
        self, owner_id: str, name: str, description: str | None = None
    ) -> SessionRecord:
        ...

    @abstractmethod
    async def get_session(self, session_id: str) -> SessionRecord | None:
        ...

    @abstractmethod
    async def list_sessions(self, owner_id: str) -> list[SessionRecord]:
        """Sessions owned by ``owner_id``, most recently updated first."""
        ...

    @abstractmethod
    async def add_screenshot(
        self,
        session_id: str,
        analysis: ScreenshotAnalysis,
        image_url: str | None = None,
    ) -> ScreenshotRecord:
        """Store an analyzed screenshot; the record id is the analysis id."""
        ...

    @abstractmethod
    async def list_screenshots(self, session_id: str) -> list[ScreenshotRecord]:
        """Screenshots of a session in chronological order."""
        ...

    @abstractmethod
    async def touch_session(self, session_id: str) -> None:
        """Bump a session's ``updated_at`` timestamp."""
        ...

    async def close(self) -> None:
        """Release storage resources."""


class RepositoryError(SessionLensError):
    """Raised when the persistence layer fails a read or write."""

    def __init__(self, message: str, operation: str = "") -> None:
        super().__init__(message)
        self.operation = operation
