"""Async Data Access Layer for the sessions, messages and typing tables.

Provides SessionDAL with the raw reads and writes behind `LiveStore`.
Store paths map onto tables as follows:

    sessions/{id}/live    -> sessions.is_live, sessions.operator_joined_at
    sessions/{id}/typing  -> typing row
    messages/{id}         -> messages rows ordered by (timestamp, id)

Methods raise on database errors; `LiveStore` decides how to degrade.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from models.session_models import (
    ChatMessage,
    LiveState,
    Role,
    SessionRecord,
    SessionSummary,
    TypingState,
)
from utils.database_init import AsyncDatabaseInitializer


class SessionDAL:
    """Data access layer for session liveness, message log and typing rows.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _SESSION_COLUMNS = (
        "session_id",
        "created_at",
        "last_activity",
        "declared_context",
        "is_live",
        "operator_joined_at",
        "live_updated_at",
    )
    _SESSION_LIST = ", ".join(_SESSION_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def upsert_session(self, session_id: str, declared_context: Optional[str], at_ms: int) -> SessionRecord:
        """Create the session row if missing and bump its activity.

        A non-empty `declared_context` replaces the stored one; None keeps it.
        """
        async with self._db.connection() as conn:
            await conn.execute(
                "INSERT INTO sessions (session_id, created_at, last_activity, declared_context) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(session_id) DO UPDATE SET last_activity = excluded.last_activity, "
                "declared_context = COALESCE(excluded.declared_context, sessions.declared_context)",
                (session_id, at_ms, at_ms, declared_context),
            )
            await conn.commit()
            cur = await conn.execute(f"SELECT {self._SESSION_LIST} FROM sessions WHERE session_id = ?", (session_id,))
            row = await cur.fetchone()
            return self._row_to_session(row)

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        """Return the session row for `session_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(f"SELECT {self._SESSION_LIST} FROM sessions WHERE session_id = ?", (session_id,))
            row = await cur.fetchone()
            return self._row_to_session(row) if row else None

    async def get_live(self, session_id: str) -> Optional[LiveState]:
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT is_live, operator_joined_at, live_updated_at FROM sessions WHERE session_id = ?",
                (session_id,),
            )
            row = await cur.fetchone()
            if not row:
                return None
            return LiveState(session_id=session_id, is_live=bool(row[0]), operator_joined_at=row[1], updated_at=row[2])

    async def write_live(self, state: LiveState) -> None:
        """Overwrite the live columns, creating the session row if needed."""
        at_ms = state.updated_at or 0
        async with self._db.connection() as conn:
            await conn.execute(
                "INSERT INTO sessions (session_id, created_at, last_activity, is_live, operator_joined_at, live_updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(session_id) DO UPDATE SET is_live = excluded.is_live, "
                "operator_joined_at = excluded.operator_joined_at, live_updated_at = excluded.live_updated_at",
                (state.session_id, at_ms, at_ms, int(state.is_live), state.operator_joined_at, at_ms),
            )
            await conn.commit()

    async def insert_message(self, session_id: str, role: Role, content: str, at_ms: int) -> ChatMessage:
        """Append a message and return it with its id and timestamp.

        The timestamp is `max(at_ms, previous + 1)` so it strictly increases
        within the session even when the clock stalls or steps back.
        """
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT MAX(timestamp) FROM messages WHERE session_id = ?", (session_id,))
            row = await cur.fetchone()
            previous = row[0] if row and row[0] is not None else None
            timestamp = at_ms if previous is None else max(at_ms, previous + 1)
            cur = await conn.execute(
                "INSERT INTO messages (session_id, role, content, timestamp) VALUES (?, ?, ?, ?)",
                (session_id, role.value, content, timestamp),
            )
            message_id = cur.lastrowid
            await conn.execute(
                "INSERT INTO sessions (session_id, created_at, last_activity) VALUES (?, ?, ?) "
                "ON CONFLICT(session_id) DO UPDATE SET last_activity = excluded.last_activity",
                (session_id, at_ms, at_ms),
            )
            await conn.commit()
            return ChatMessage(session_id=session_id, role=role, content=content, timestamp=timestamp, id=message_id)

    async def list_messages(
        self,
        session_id: str,
        *,
        after_timestamp: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[ChatMessage]:
        """List a session's messages in log order, optionally the last `limit` only."""
        sql = "SELECT id, session_id, role, content, timestamp FROM messages WHERE session_id = ?"
        params: list = [session_id]
        if after_timestamp is not None:
            sql += " AND timestamp > ?"
            params.append(after_timestamp)
        if limit:
            sql = f"SELECT * FROM ({sql} ORDER BY timestamp DESC, id DESC LIMIT ?) ORDER BY timestamp ASC, id ASC"
            params.append(limit)
        else:
            sql += " ORDER BY timestamp ASC, id ASC"
        async with self._db.connection() as conn:
            cur = await conn.execute(sql, tuple(params))
            rows = await cur.fetchall()
            return [self._row_to_message(r) for r in rows]

    async def write_typing(self, state: TypingState) -> None:
        async with self._db.connection() as conn:
            await conn.execute(
                "INSERT INTO typing (session_id, is_typing, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(session_id) DO UPDATE SET is_typing = excluded.is_typing, updated_at = excluded.updated_at",
                (state.session_id, int(state.is_typing), state.updated_at),
            )
            await conn.commit()

    async def get_typing(self, session_id: str) -> Optional[TypingState]:
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT is_typing, updated_at FROM typing WHERE session_id = ?", (session_id,))
            row = await cur.fetchone()
            return TypingState(session_id=session_id, is_typing=bool(row[0]), updated_at=row[1]) if row else None

    async def list_session_summaries(self, active_since: int, limit: int = 100) -> List[SessionSummary]:
        """Summarise sessions with at least one message newer than `active_since`.

        Most recently active first.
        """
        async with self._db.connection() as conn:
            cur = await conn.execute(
                """
                SELECT s.session_id, s.declared_context, s.is_live,
                       (SELECT COUNT(*) FROM messages c WHERE c.session_id = s.session_id),
                       MAX(m.timestamp)
                FROM sessions s JOIN messages m ON m.session_id = s.session_id
                WHERE m.timestamp > ?
                GROUP BY s.session_id
                ORDER BY MAX(m.timestamp) DESC
                LIMIT ?
                """,
                (active_since, limit),
            )
            rows = await cur.fetchall()
            summaries: List[SessionSummary] = []
            for session_id, declared_context, is_live, count, last_time in rows:
                cur = await conn.execute(
                    "SELECT content FROM messages WHERE session_id = ? ORDER BY timestamp DESC, id DESC LIMIT 1",
                    (session_id,),
                )
                last = await cur.fetchone()
                cur = await conn.execute(
                    "SELECT content FROM messages WHERE session_id = ? AND role = 'visitor' "
                    "ORDER BY timestamp ASC, id ASC LIMIT 1",
                    (session_id,),
                )
                first_visitor = await cur.fetchone()
                summaries.append(
                    SessionSummary(
                        session_id=session_id,
                        message_count=int(count),
                        last_message=(last[0] if last else "")[:100],
                        last_message_time=int(last_time),
                        is_live=bool(is_live),
                        first_visitor_message=(first_visitor[0] if first_visitor else "")[:80],
                        declared_context=declared_context,
                    )
                )
            return summaries

    @staticmethod
    def _row_to_session(row: Sequence[object]) -> SessionRecord:
        """Convert a sessions row tuple into a SessionRecord."""
        return SessionRecord(
            session_id=row[0],
            created_at=row[1],
            last_activity=row[2],
            declared_context=row[3],
            live=LiveState(session_id=row[0], is_live=bool(row[4]), operator_joined_at=row[5], updated_at=row[6]),
        )

    @staticmethod
    def _row_to_message(row: Sequence[object]) -> ChatMessage:
        return ChatMessage(id=row[0], session_id=row[1], role=Role(row[2]), content=row[3], timestamp=row[4])
