"""SQLite storage implementation."""

import asyncio
import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Protocol

import aiosqlite

from ..config import resolve_db_path
from ..errors import AuthorizationError, NotFoundError, PersistenceError, ValidationError
from ..logging_config import get_logger
from ..models import (
    Attachment,
    EnrichedMessage,
    Message,
    NewMessage,
    ReadReceipt,
    TeamMember,
    TraceEvent,
)

logger = get_logger(__name__)


_MESSAGE_COLUMNS = """
    m.id, m.sender_id, m.body, m.reply_to, m.file_url, m.file_name,
    m.file_size, m.is_edited, m.created_at, m.updated_at
"""

_ENRICHED_SELECT = f"""
    SELECT {_MESSAGE_COLUMNS}, tm.name, tm.role
    FROM messages m
    LEFT JOIN team_members tm ON tm.id = m.sender_id
"""


class IStorage(Protocol):
    """Durable store for team chat data (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Messages
    async def append(self, message: NewMessage) -> Message:
        """Persist a new message, assigning id and timestamps."""
        ...

    async def list_messages(
        self, search: str | None = None, limit: int = 50, offset: int = 0
    ) -> list[EnrichedMessage]:
        """Chronological page, or most-recent-first search results."""
        ...

    async def search_messages(
        self, query: str, limit: int = 20
    ) -> list[EnrichedMessage]:
        """Substring search on message bodies, most recent first."""
        ...

    async def get_message(self, message_id: int) -> Message | None:
        """Get a message by ID."""
        ...

    async def edit_message(
        self, message_id: int, new_body: str, requesting_sender: int
    ) -> Message:
        """Replace the body of a message owned by requesting_sender."""
        ...

    async def delete_message(self, message_id: int, requesting_sender: int) -> bool:
        """Physically delete a message owned by requesting_sender."""
        ...

    # Read receipts
    async def mark_read(self, message_id: int, member_id: int) -> Message | None:
        """Record that member_id has read message_id."""
        ...

    async def get_read_receipts(self, message_id: int) -> list[ReadReceipt]:
        """Get read receipts for a message."""
        ...

    # Members
    async def save_member(self, member: TeamMember) -> None:
        """Save a team member profile."""
        ...

    async def get_member(self, member_id: int) -> TeamMember | None:
        """Get a team member by ID."""
        ...

    async def list_members(self) -> list[TeamMember]:
        """Get all team members."""
        ...

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_message(row: Iterable[Any]) -> Message:
    row = tuple(row)
    attachment = None
    if row[4]:
        attachment = Attachment(url=row[4], name=row[5] or "", size=row[6] or 0)
    return Message(
        id=row[0],
        sender_id=row[1],
        body=row[2],
        reply_to=row[3],
        attachment=attachment,
        is_edited=bool(row[7]),
        created_at=_parse_ts(row[8]),
        updated_at=_parse_ts(row[9]),
    )


def _row_to_enriched(row: Iterable[Any]) -> EnrichedMessage:
    row = tuple(row)
    message = _row_to_message(row[:10])
    enriched = EnrichedMessage.from_message(message, None)
    enriched.sender_name = row[10]
    enriched.sender_role = row[11]
    return enriched


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._last_timestamp: datetime | None = None
        self._write_lock = asyncio.Lock()

    async def init(self) -> None:
        """Initialize database and create tables."""
        try:
            self._conn = await aiosqlite.connect(self._db_path)

            schema_path = Path(__file__).parent / "schema.sql"
            with open(schema_path, "r", encoding="utf-8") as f:
                schema_sql = f.read()
            await self._conn.executescript(schema_sql)
            await self._conn.commit()

            cursor = await self._conn.execute("SELECT MAX(created_at) FROM messages")
            row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not open message store: {e}") from e

        if row and row[0]:
            self._last_timestamp = _parse_ts(row[0])

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise PersistenceError("Storage not initialized")
        return self._conn

    def _next_timestamp(self) -> datetime:
        """Server clock, never earlier than the last assigned timestamp."""
        now = datetime.now(timezone.utc)
        if self._last_timestamp and now < self._last_timestamp:
            now = self._last_timestamp
        self._last_timestamp = now
        return now

    async def _fetchall(self, query: str, params: Iterable[Any] = ()) -> list[Any]:
        conn = self._require_conn()
        try:
            cursor = await conn.execute(query, tuple(params))
            return list(await cursor.fetchall())
        except sqlite3.Error as e:
            logger.error("Query failed: %s", e, exc_info=True)
            raise PersistenceError(str(e)) from e

    async def _fetchone(self, query: str, params: Iterable[Any] = ()) -> Any:
        rows = await self._fetchall(query, params)
        return rows[0] if rows else None

    async def _write(self, query: str, params: Iterable[Any] = ()) -> aiosqlite.Cursor:
        """Execute a single write statement and commit it.

        Writes share one connection, so each statement and its commit run
        under the write lock. A cancelled write is rolled back before the
        lock is released; otherwise the next commit would persist it.
        """
        conn = self._require_conn()
        async with self._write_lock:
            try:
                cursor = await conn.execute(query, tuple(params))
                await conn.commit()
                return cursor
            except asyncio.CancelledError:
                logger.warning("Write cancelled, rolling back")
                await asyncio.shield(self._rollback(conn))
                raise
            except sqlite3.Error as e:
                logger.error("Write failed: %s", e, exc_info=True)
                await self._rollback(conn)
                raise PersistenceError(str(e)) from e

    async def _rollback(self, conn: aiosqlite.Connection) -> None:
        try:
            await conn.rollback()
        except sqlite3.Error:
            logger.warning("Rollback failed after write error")

    # Messages
    async def append(self, message: NewMessage) -> Message:
        """Persist a new message, assigning id and timestamps."""
        if not message.has_content():
            raise ValidationError("Message is required")

        created_at = self._next_timestamp()
        attachment = message.attachment
        cursor = await self._write(
            """
            INSERT INTO messages
            (sender_id, body, reply_to, file_url, file_name, file_size,
             is_edited, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, 0, ?, ?)
            """,
            (
                message.sender_id,
                message.body or "",
                message.reply_to,
                attachment.url if attachment else None,
                attachment.name if attachment else None,
                attachment.size if attachment else None,
                created_at.isoformat(),
                created_at.isoformat(),
            ),
        )

        return Message(
            id=cursor.lastrowid,
            sender_id=message.sender_id,
            body=message.body or "",
            reply_to=message.reply_to,
            attachment=attachment,
            is_edited=False,
            created_at=created_at,
            updated_at=created_at,
        )

    async def list_messages(
        self, search: str | None = None, limit: int = 50, offset: int = 0
    ) -> list[EnrichedMessage]:
        """Chronological page, or most-recent-first search results.

        Without ``search`` the newest ``limit`` messages (after skipping
        ``offset`` newer ones) are returned oldest first. With ``search``
        matches are returned newest first.
        """
        if search:
            rows = await self._fetchall(
                f"""
                {_ENRICHED_SELECT}
                WHERE m.body LIKE ? ESCAPE '\\'
                ORDER BY m.created_at DESC, m.id DESC
                LIMIT ? OFFSET ?
                """,
                (f"%{_escape_like(search)}%", limit, offset),
            )
            return [_row_to_enriched(row) for row in rows]

        rows = await self._fetchall(
            f"""
            {_ENRICHED_SELECT}
            ORDER BY m.created_at DESC, m.id DESC
            LIMIT ? OFFSET ?
            """,
            (limit, offset),
        )
        return [_row_to_enriched(row) for row in reversed(rows)]

    async def search_messages(
        self, query: str, limit: int = 20
    ) -> list[EnrichedMessage]:
        """Substring search on message bodies, most recent first."""
        if not query or not query.strip():
            raise ValidationError("Search query required")
        return await self.list_messages(search=query, limit=limit)

    async def get_message(self, message_id: int) -> Message | None:
        """Get a message by ID."""
        row = await self._fetchone(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages m WHERE m.id = ?",
            (message_id,),
        )
        return _row_to_message(row) if row else None

    async def edit_message(
        self, message_id: int, new_body: str, requesting_sender: int
    ) -> Message:
        """Replace the body of a message owned by requesting_sender.

        Ownership is part of the UPDATE predicate; the follow-up lookup only
        decides which error to report when no row matched.
        """
        if not new_body or not new_body.strip():
            raise ValidationError("Message content is required")

        updated_at = self._next_timestamp()
        cursor = await self._write(
            """
            UPDATE messages
            SET body = ?, is_edited = 1, updated_at = ?
            WHERE id = ? AND sender_id = ?
            """,
            (new_body, updated_at.isoformat(), message_id, requesting_sender),
        )

        if cursor.rowcount == 0:
            if await self.get_message(message_id) is None:
                raise NotFoundError(f"Message {message_id} not found")
            raise AuthorizationError("Only the original sender may edit a message")

        message = await self.get_message(message_id)
        if message is None:
            # Deleted between the update and the read
            raise NotFoundError(f"Message {message_id} not found")
        return message

    async def delete_message(self, message_id: int, requesting_sender: int) -> bool:
        """Physically delete a message owned by requesting_sender."""
        cursor = await self._write(
            "DELETE FROM messages WHERE id = ? AND sender_id = ?",
            (message_id, requesting_sender),
        )
        return cursor.rowcount > 0

    # Read receipts
    async def mark_read(self, message_id: int, member_id: int) -> Message | None:
        """Record that member_id has read message_id."""
        message = await self.get_message(message_id)
        if message is None:
            return None

        await self._write(
            """
            INSERT OR IGNORE INTO message_read_status (message_id, member_id, read_at)
            VALUES (?, ?, ?)
            """,
            (message_id, member_id, datetime.now(timezone.utc).isoformat()),
        )
        return message

    async def get_read_receipts(self, message_id: int) -> list[ReadReceipt]:
        """Get read receipts for a message."""
        rows = await self._fetchall(
            """
            SELECT message_id, member_id, read_at
            FROM message_read_status
            WHERE message_id = ?
            ORDER BY read_at ASC
            """,
            (message_id,),
        )
        return [
            ReadReceipt(message_id=row[0], member_id=row[1], read_at=_parse_ts(row[2]))
            for row in rows
        ]

    # Members
    async def save_member(self, member: TeamMember) -> None:
        """Save a team member profile."""
        await self._write(
            """
            INSERT OR REPLACE INTO team_members (id, name, role, is_active)
            VALUES (?, ?, ?, ?)
            """,
            (member.id, member.name, member.role, int(member.is_active)),
        )

    async def get_member(self, member_id: int) -> TeamMember | None:
        """Get a team member by ID."""
        row = await self._fetchone(
            "SELECT id, name, role, is_active FROM team_members WHERE id = ?",
            (member_id,),
        )
        if not row:
            return None
        return TeamMember(id=row[0], name=row[1], role=row[2], is_active=bool(row[3]))

    async def list_members(self) -> list[TeamMember]:
        """Get all team members."""
        rows = await self._fetchall(
            "SELECT id, name, role, is_active FROM team_members ORDER BY id"
        )
        return [
            TeamMember(id=row[0], name=row[1], role=row[2], is_active=bool(row[3]))
            for row in rows
        ]

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        await self._write(
            """
            INSERT INTO trace_events (id, event_type, actor, data, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                json.dumps(event.data, default=str),
                event.timestamp.isoformat(),
            ),
        )

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        conditions = []
        params: list[Any] = []

        if after:
            if after.tzinfo is None:
                after = after.replace(tzinfo=timezone.utc)
            conditions.append("timestamp > ?")
            params.append(after.isoformat())
        if event_types:
            placeholders = ",".join("?" * len(event_types))
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, event_type, actor, data, timestamp
            FROM trace_events
            {where_clause}
            ORDER BY timestamp DESC
            LIMIT ?
        """
        params.append(limit)

        rows = await self._fetchall(query, params)

        return [
            TraceEvent(
                id=row[0],
                event_type=row[1],
                actor=row[2],
                data=json.loads(row[3]),
                timestamp=_parse_ts(row[4]),
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        tables = [
            "message_read_status",
            "messages",
            "team_members",
            "trace_events",
        ]

        async with self._write_lock:
            try:
                for table in tables:
                    await conn.execute(f"DELETE FROM {table}")
                await conn.commit()
            except sqlite3.Error as e:
                await self._rollback(conn)
                raise PersistenceError(str(e)) from e

        self._last_timestamp = None
