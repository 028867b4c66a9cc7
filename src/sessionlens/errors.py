"""Error taxonomy shared across sessionlens.

Generation-boundary errors (``GenerationUnavailable``,
``MalformedGenerationOutput``) live beside the code that raises them and
are absorbed by the engine. The errors here are the ones that reach the
caller.
"""

from __future__ import annotations


class SessionLensError(Exception):
    """Base class for all sessionlens errors."""


class BadInput(SessionLensError):
    """Raised when a caller-supplied request fails structural validation."""

    def __init__(self, message: str, field: str = "") -> None:
        super().__init__(message)
        self.field = field


class Unauthorized(SessionLensError):
    """Raised when a request carries no recognised credential."""


class SessionNotFound(SessionLensError):
    """Raised when a session does not exist or is not owned by the caller."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class AnalysisFailed(SessionLensError):
    """Raised when a single screenshot cannot be analyzed."""

    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response
