"""Session storage for sessionlens.

Public API:
    SessionRepository -- Abstract base class
    RepositoryError -- Raised when a read or write fails
    InMemorySessionRepository -- Dictionary-backed implementation
    SqliteSessionRepository -- SQLite file implementation
    build_repository -- Pick the repository for a Settings object
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sessionlens.storage.base import RepositoryError, SessionRepository
from sessionlens.storage.memory import InMemorySessionRepository
from sessionlens.storage.sqlite import SqliteSessionRepository

if TYPE_CHECKING:
    from sessionlens.config.settings import StorageConfig

__all__ = [
    "InMemorySessionRepository",
    "RepositoryError",
    "SessionRepository",
    "SqliteSessionRepository",
    "build_repository",
]


def build_repository(config: StorageConfig) -> SessionRepository:
    if config.backend == "sqlite":
        return SqliteSessionRepository(config.sqlite_path)
    return InMemorySessionRepository()
