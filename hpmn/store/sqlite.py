"""SQLiteStore: aiosqlite CRUD for turns, actions and memories."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import aiosqlite

from hpmn.store.models import Action, ActionSchema, Memory, Turn

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLES = (
    """
    CREATE TABLE IF NOT EXISTS turns (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        conversation_id TEXT NOT NULL,
        question TEXT NOT NULL,
        answer TEXT NOT NULL,
        title TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_turns_conversation ON turns (conversation_id, created_at)",
    """
    CREATE TABLE IF NOT EXISTS actions (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        definition TEXT NOT NULL,
        url TEXT NOT NULL,
        tags TEXT NOT NULL DEFAULT '[]',
        active INTEGER NOT NULL DEFAULT 1,
        category TEXT NOT NULL DEFAULT 'default'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS memories (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        content TEXT NOT NULL,
        tags TEXT NOT NULL DEFAULT '[]',
        active INTEGER NOT NULL DEFAULT 1,
        context TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL
    )
    """,
)

_TURN_COLUMNS = "conversation_id, question, answer, title, created_at"
_ACTION_COLUMNS = "id, name, definition, url, tags, active, category"
_MEMORY_COLUMNS = "id, title, content, tags, active, context, created_at"


def _turn_from_row(row: tuple) -> Turn:
    return Turn(
        conversation_id=row[0],
        question=row[1],
        answer=row[2],
        title=row[3] or "",
        created_at=row[4],
    )


def _action_from_row(row: tuple) -> Action:
    return Action(
        id=row[0],
        name=row[1],
        definition=ActionSchema.model_validate_json(row[2]),
        url=row[3],
        tags=json.loads(row[4] or "[]"),
        active=bool(row[5]),
        category=row[6] or "default",
    )


def _memory_from_row(row: tuple) -> Memory:
    return Memory(
        id=row[0],
        title=row[1],
        content=row[2],
        tags=json.loads(row[3] or "[]"),
        active=bool(row[4]),
        context=row[5] or "",
        created_at=row[6],
    )


class SQLiteStore:
    """Relational store for the pipeline, persisted in SQLite.

    Pass an explicit *db_path* for test isolation (e.g.
    ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._initialised = False

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            for statement in _CREATE_TABLES:
                await db.execute(statement)
            await db.commit()
            self._initialised = True
        return db

    # -- Turns -----------------------------------------------------------------

    async def get_turns(self, conversation_id: str, limit: int = 10) -> list[Turn]:
        """Return the *limit* most recent turns, oldest first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_TURN_COLUMNS} FROM turns WHERE conversation_id = ? "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (conversation_id, limit),
            )
            rows = await cursor.fetchall()
            return [_turn_from_row(row) for row in reversed(rows)]
        finally:
            await db.close()

    async def get_first_turn(self, conversation_id: str) -> Turn | None:
        """Return the opening turn of a conversation, or None."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_TURN_COLUMNS} FROM turns WHERE conversation_id = ? "
                "ORDER BY created_at ASC, id ASC LIMIT 1",
                (conversation_id,),
            )
            row = await cursor.fetchone()
            return _turn_from_row(row) if row else None
        finally:
            await db.close()

    async def create_turn(self, turn: Turn) -> Turn:
        db = await self._connect()
        try:
            await db.execute(
                f"INSERT INTO turns ({_TURN_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                (turn.conversation_id, turn.question, turn.answer, turn.title, turn.created_at),
            )
            await db.commit()
            return turn
        finally:
            await db.close()

    async def delete_inactive_conversations(self, days: int) -> int:
        """Delete every turn of conversations idle for more than *days*.

        Returns the number of deleted turns.
        """
        cutoff = (datetime.now(UTC) - timedelta(days=days)).isoformat()
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                DELETE FROM turns WHERE conversation_id IN (
                    SELECT conversation_id FROM turns
                    GROUP BY conversation_id
                    HAVING MAX(created_at) < ?
                )
                """,
                (cutoff,),
            )
            await db.commit()
            deleted = cursor.rowcount
            if deleted:
                logger.info("Deleted %d turns idle since before %s", deleted, cutoff)
            return deleted
        finally:
            await db.close()

    # -- Actions ---------------------------------------------------------------

    async def get_actions(self) -> list[Action]:
        db = await self._connect()
        try:
            cursor = await db.execute(f"SELECT {_ACTION_COLUMNS} FROM actions ORDER BY name")
            rows = await cursor.fetchall()
            return [_action_from_row(row) for row in rows]
        finally:
            await db.close()

    async def get_action(self, action_id: str) -> Action | None:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_ACTION_COLUMNS} FROM actions WHERE id = ?", (action_id,)
            )
            row = await cursor.fetchone()
            return _action_from_row(row) if row else None
        finally:
            await db.close()

    async def create_action(self, action: Action) -> Action:
        """Insert an action, replacing any existing row with the same id."""
        db = await self._connect()
        try:
            await db.execute(
                f"""
                INSERT INTO actions ({_ACTION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    definition = excluded.definition,
                    url = excluded.url,
                    tags = excluded.tags,
                    active = excluded.active,
                    category = excluded.category
                """,
                (
                    action.id,
                    action.name,
                    action.definition.model_dump_json(),
                    action.url,
                    json.dumps(action.tags),
                    int(action.active),
                    action.category,
                ),
            )
            await db.commit()
            logger.info("Stored action: %s (%s)", action.name, action.id)
            return action
        finally:
            await db.close()

    # -- Memories --------------------------------------------------------------

    async def get_memories(self) -> list[Memory]:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_MEMORY_COLUMNS} FROM memories ORDER BY created_at"
            )
            rows = await cursor.fetchall()
            return [_memory_from_row(row) for row in rows]
        finally:
            await db.close()

    async def get_memory(self, memory_id: str) -> Memory | None:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_MEMORY_COLUMNS} FROM memories WHERE id = ?", (memory_id,)
            )
            row = await cursor.fetchone()
            return _memory_from_row(row) if row else None
        finally:
            await db.close()

    async def create_memory(self, memory: Memory) -> Memory:
        """Insert a memory, replacing any existing row with the same id."""
        db = await self._connect()
        try:
            await db.execute(
                f"""
                INSERT INTO memories ({_MEMORY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    content = excluded.content,
                    tags = excluded.tags,
                    active = excluded.active,
                    context = excluded.context
                """,
                (
                    memory.id,
                    memory.title,
                    memory.content,
                    json.dumps(memory.tags),
                    int(memory.active),
                    memory.context,
                    memory.created_at,
                ),
            )
            await db.commit()
            logger.debug("Stored memory: %s (%s)", memory.title, memory.id)
            return memory
        finally:
            await db.close()
