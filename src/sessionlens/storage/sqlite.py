"""SQLite-backed session repository.

One connection per operation; blocking sqlite3 calls run in a worker
thread so the event loop is never held. Entities and suggestions are
stored as JSON columns; the state row is upserted on ``session_id``.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from sessionlens.domain.models import (
    Entity,
    ScreenshotAnalysis,
    ScreenshotRecord,
    SessionRecord,
    SessionState,
    Suggestion,
)
from sessionlens.storage.base import RepositoryError, SessionRepository

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS screenshots (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        session_id TEXT NOT NULL,
        image_url TEXT,
        analysis TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (session_id) REFERENCES sessions(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS regenerate_state (
        session_id TEXT PRIMARY KEY,
        session_summary TEXT NOT NULL,
        session_category TEXT NOT NULL,
        entities TEXT NOT NULL,
        suggested_notebook_title TEXT,
        suggestions TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
)

_STATE_ENTITIES = TypeAdapter(list[Entity])
_STATE_SUGGESTIONS = TypeAdapter(list[Suggestion])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class SqliteSessionRepository(SessionRepository):
    """Persists sessions in a local SQLite database file."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._schema_ready = False

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_schema(self) -> None:
        conn = self._get_conn()
        try:
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.commit()
        finally:
            conn.close()
        self._schema_ready = True

    async def _run(self, operation: str, fn: Any, *args: Any) -> Any:
        """Run a blocking database function, wrapping sqlite errors."""
        if not self._schema_ready:
            await asyncio.to_thread(self.init_schema)
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            logger.error("SQLite %s failed: %s", operation, e)
            raise RepositoryError(f"{operation} failed: {e}", operation=operation) from e

    # -- state --------------------------------------------------------------

    async def get_prior_state(self, session_id: str) -> SessionState | None:
        row = await self._run("get_prior_state", self._fetch_one,
                              "SELECT * FROM regenerate_state WHERE session_id = ?", (session_id,))
        if row is None:
            return None
        try:
            return SessionState(
                session_summary=row["session_summary"],
                session_category=row["session_category"],
                entities=_STATE_ENTITIES.validate_json(row["entities"]),
                suggested_notebook_title=row["suggested_notebook_title"],
                suggestions=_STATE_SUGGESTIONS.validate_json(row["suggestions"]),
            )
        except ValidationError as e:
            raise RepositoryError(
                f"Stored state for {session_id} is corrupt: {e}", operation="get_prior_state"
            ) from e

    async def put_state(self, session_id: str, state: SessionState) -> None:
        params = (
            session_id,
            state.session_summary,
            state.session_category.value,
            _STATE_ENTITIES.dump_json(state.entities, by_alias=True).decode(),
            state.suggested_notebook_title,
            _STATE_SUGGESTIONS.dump_json(state.suggestions, by_alias=True).decode(),
            _now(),
        )
        await self._run(
            "put_state",
            self._execute,
            """
            INSERT INTO regenerate_state (
                session_id, session_summary, session_category, entities,
                suggested_notebook_title, suggestions, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(session_id) DO UPDATE SET
                session_summary = excluded.session_summary,
                session_category = excluded.session_category,
                entities = excluded.entities,
                suggested_notebook_title = excluded.suggested_notebook_title,
                suggestions = excluded.suggestions,
                updated_at = excluded.updated_at
            """,
            params,
        )
        logger.debug("Upserted state for session %s", session_id)

    # -- sessions -----------------------------------------------------------

    async def create_session(
        self, owner_id: str, name: str, description: str | None = None
    ) -> SessionRecord:
        now = _now()
        record = SessionRecord(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            name=name,
            description=description,
            created_at=now,
            updated_at=now,
        )
        await self._run(
            "create_session",
            self._execute,
            "INSERT INTO sessions (id, owner_id, name, description, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (record.id, owner_id, name, description, now, now),
        )
        return record

    async def get_session(self, session_id: str) -> SessionRecord | None:
        row = await self._run("get_session", self._fetch_one,
                              "SELECT * FROM sessions WHERE id = ?", (session_id,))
        return _session_from_row(row) if row is not None else None

    async def list_sessions(self, owner_id: str) -> list[SessionRecord]:
        rows = await self._run(
            "list_sessions",
            self._fetch_all,
            "SELECT * FROM sessions WHERE owner_id = ? ORDER BY updated_at DESC",
            (owner_id,),
        )
        return [_session_from_row(row) for row in rows]

    async def touch_session(self, session_id: str) -> None:
        await self._run(
            "touch_session",
            self._execute,
            "UPDATE sessions SET updated_at = ? WHERE id = ?",
            (_now(), session_id),
        )

    # -- screenshots --------------------------------------------------------

    async def add_screenshot(
        self,
        session_id: str,
        analysis: ScreenshotAnalysis,
        image_url: str | None = None,
    ) -> ScreenshotRecord:
        if await self.get_session(session_id) is None:
            raise RepositoryError(f"Unknown session: {session_id}", operation="add_screenshot")
        now = _now()
        await self._run(
            "add_screenshot",
            self._execute,
            "INSERT INTO screenshots (id, session_id, image_url, analysis, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (analysis.id, session_id, image_url, analysis.model_dump_json(by_alias=True), now),
        )
        return ScreenshotRecord(
            id=analysis.id,
            session_id=session_id,
            image_url=image_url,
            analysis=analysis,
            created_at=now,
        )

    async def list_screenshots(self, session_id: str) -> list[ScreenshotRecord]:
        rows = await self._run(
            "list_screenshots",
            self._fetch_all,
            "SELECT * FROM screenshots WHERE session_id = ? ORDER BY seq ASC",
            (session_id,),
        )
        return [
            ScreenshotRecord(
                id=row["id"],
                session_id=row["session_id"],
                image_url=row["image_url"],
                analysis=ScreenshotAnalysis.model_validate_json(row["analysis"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    # -- blocking helpers ---------------------------------------------------

    def _execute(self, sql: str, params: tuple) -> None:
        conn = self._get_conn()
        try:
            conn.execute(sql, params)
            conn.commit()
        finally:
            conn.close()

    def _fetch_one(self, sql: str, params: tuple) -> sqlite3.Row | None:
        conn = self._get_conn()
        try:
            return conn.execute(sql, params).fetchone()
        finally:
            conn.close()

    def _fetch_all(self, sql: str, params: tuple) -> list[sqlite3.Row]:
        conn = self._get_conn()
        try:
            return conn.execute(sql, params).fetchall()
        finally:
            conn.close()


def _session_from_row(row: sqlite3.Row) -> SessionRecord:
    return SessionRecord(
        id=row["id"],
        owner_id=row["owner_id"],
        name=row["name"],
        description=row["description"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
