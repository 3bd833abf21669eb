"""SQLite-backed conversation store.

Every mutation runs inside a single explicit transaction guarded by an
asyncio lock, so concurrent coroutines never interleave BEGIN/COMMIT pairs on
the shared connection. Timestamps are stored as fixed-width ISO 8601 UTC
strings, which keeps lexical and chronological order identical.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import logging
from pathlib import Path
from typing import Any
import uuid

import aiosqlite

from .exceptions import ConversationExistsError, StoreError

LOGGER = logging.getLogger(__name__)

PLACEHOLDER_TITLE = "New Conversation"
VALID_ROLES = ("user", "assistant", "search")

SCHEMA = """
CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL,
    provider TEXT NOT NULL,
    model TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL
        REFERENCES conversations(id) ON DELETE CASCADE,
    role TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'search')),
    content TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation_id
    ON messages(conversation_id);
CREATE INDEX IF NOT EXISTS idx_conversations_created_at
    ON conversations(created_at);
"""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def _to_db(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Conversation:
    id: str
    title: str
    provider: str
    model: str
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class StoredMessage:
    conversation_id: str
    role: str
    content: str
    created_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=new_id)


def _row_to_conversation(row: Any) -> Conversation:
    return Conversation(
        id=row["id"],
        title=row["title"],
        provider=row["provider"],
        model=row["model"],
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
    )


def _row_to_message(row: Any) -> StoredMessage:
    return StoredMessage(
        id=row["id"],
        conversation_id=row["conversation_id"],
        role=row["role"],
        content=row["content"],
        created_at=_from_db(row["created_at"]),
    )


class ConversationStore:
    """Async facade over the single-file conversation database."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._db: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def open(self) -> ConversationStore:
        """Open the database, enable foreign keys and create the schema."""
        if self._db is not None:
            return self
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(self.path, isolation_level=None)
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON")
            await db.executescript(SCHEMA)
        except (aiosqlite.Error, OSError) as exc:
            raise StoreError(f"Unable to open store at {self.path}: {exc}") from exc
        self._db = db
        LOGGER.info("store.opened", extra={"event": "store.opened", "path": str(self.path)})
        return self

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> ConversationStore:
        return await self.open()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreError("Store is not open.")
        return self._db

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run a block of writes atomically: commit on success, roll back otherwise."""
        async with self._write_lock:
            db = self.db
            await db.execute("BEGIN")
            try:
                yield db
            except BaseException:
                await db.execute("ROLLBACK")
                raise
            else:
                await db.execute("COMMIT")

    # -- reads ---------------------------------------------------------------

    async def list_conversations(self, offset: int = 0, limit: int = -1) -> list[Conversation]:
        """Return conversations newest-updated first; ``limit=-1`` means all."""
        try:
            cursor = await self.db.execute(
                "SELECT * FROM conversations "
                "ORDER BY updated_at DESC, created_at DESC LIMIT ? OFFSET ?",
                (limit, max(offset, 0)),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(f"Unable to list conversations: {exc}") from exc
        return [_row_to_conversation(row) for row in rows]

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        try:
            cursor = await self.db.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(f"Unable to read conversation: {exc}") from exc
        return _row_to_conversation(row) if row is not None else None

    async def get_messages(self, conversation_id: str) -> list[StoredMessage]:
        """Return messages oldest first; equal timestamps keep insertion order."""
        try:
            cursor = await self.db.execute(
                "SELECT * FROM messages WHERE conversation_id = ? "
                "ORDER BY created_at ASC, rowid ASC",
                (conversation_id,),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(f"Unable to read messages: {exc}") from exc
        return [_row_to_message(row) for row in rows]

    # -- writes --------------------------------------------------------------

    @staticmethod
    def _message_params(messages: Iterable[StoredMessage]) -> list[tuple[str, ...]]:
        params: list[tuple[str, ...]] = []
        for message in messages:
            if message.role not in VALID_ROLES:
                raise StoreError(f"Unsupported message role {message.role!r}.")
            params.append(
                (
                    message.id,
                    message.conversation_id,
                    message.role,
                    message.content,
                    _to_db(message.created_at),
                )
            )
        return params

    async def insert_conversation_with_messages(
        self, conversation: Conversation, messages: list[StoredMessage]
    ) -> Conversation:
        """Insert a new conversation and its first messages atomically.

        ``updated_at`` is raised to cover the newest message.
        """
        newest = max(
            [conversation.updated_at, conversation.created_at]
            + [message.created_at for message in messages]
        )
        conversation.updated_at = newest
        params = self._message_params(messages)
        try:
            async with self._transaction() as db:
                await db.execute(
                    "INSERT INTO conversations "
                    "(id, title, created_at, updated_at, provider, model) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        conversation.id,
                        conversation.title,
                        _to_db(conversation.created_at),
                        _to_db(conversation.updated_at),
                        conversation.provider,
                        conversation.model,
                    ),
                )
                await db.executemany(
                    "INSERT INTO messages (id, conversation_id, role, content, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    params,
                )
        except aiosqlite.IntegrityError as exc:
            if "conversations.id" in str(exc):
                raise ConversationExistsError(
                    f"Conversation {conversation.id} already exists."
                ) from exc
            raise StoreError(f"Unable to insert conversation: {exc}") from exc
        except aiosqlite.Error as exc:
            raise StoreError(f"Unable to insert conversation: {exc}") from exc

        LOGGER.info(
            "store.conversation.inserted",
            extra={
                "event": "store.conversation.inserted",
                "conversation_id": conversation.id,
                "messages": len(messages),
            },
        )
        return conversation

    async def append_messages(self, messages: list[StoredMessage]) -> None:
        """Append messages to existing conversations and bump ``updated_at``."""
        if not messages:
            return
        params = self._message_params(messages)
        newest: dict[str, datetime] = {}
        for message in messages:
            current = newest.get(message.conversation_id)
            if current is None or message.created_at > current:
                newest[message.conversation_id] = message.created_at
        try:
            async with self._transaction() as db:
                await db.executemany(
                    "INSERT INTO messages (id, conversation_id, role, content, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    params,
                )
                for conversation_id, stamp in newest.items():
                    await db.execute(
                        "UPDATE conversations SET updated_at = MAX(updated_at, ?) "
                        "WHERE id = ?",
                        (_to_db(stamp), conversation_id),
                    )
        except aiosqlite.Error as exc:
            raise StoreError(f"Unable to append messages: {exc}") from exc

    async def append_message(self, message: StoredMessage) -> None:
        await self.append_messages([message])

    async def update_conversation_title(self, conversation_id: str, title: str) -> bool:
        """Set the title and bump ``updated_at``; return False for unknown ids."""
        try:
            async with self._transaction() as db:
                cursor = await db.execute(
                    "UPDATE conversations SET title = ?, "
                    "updated_at = MAX(updated_at, ?) WHERE id = ?",
                    (title, _to_db(utcnow()), conversation_id),
                )
                updated = cursor.rowcount > 0
        except aiosqlite.Error as exc:
            raise StoreError(f"Unable to update title: {exc}") from exc
        return updated

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete the messages, then the conversation row."""
        try:
            async with self._transaction() as db:
                await db.execute(
                    "DELETE FROM messages WHERE conversation_id = ?", (conversation_id,)
                )
                cursor = await db.execute(
                    "DELETE FROM conversations WHERE id = ?", (conversation_id,)
                )
                deleted = cursor.rowcount > 0
        except aiosqlite.Error as exc:
            raise StoreError(f"Unable to delete conversation: {exc}") from exc
        LOGGER.info(
            "store.conversation.deleted",
            extra={
                "event": "store.conversation.deleted",
                "conversation_id": conversation_id,
                "deleted": deleted,
            },
        )
        return deleted

    async def cleanup_older_than(self, days: int, now: datetime | None = None) -> int:
        """Delete conversations created more than ``days`` ago.

        Messages follow through the foreign-key cascade. Returns the number of
        conversations removed.
        """
        cutoff = (now or utcnow()) - timedelta(days=days)
        try:
            async with self._transaction() as db:
                cursor = await db.execute(
                    "DELETE FROM conversations WHERE created_at < ?", (_to_db(cutoff),)
                )
                removed = cursor.rowcount
        except aiosqlite.Error as exc:
            raise StoreError(f"Unable to clean up conversations: {exc}") from exc
        LOGGER.info(
            "store.retention.sweep",
            extra={"event": "store.retention.sweep", "days": days, "removed": removed},
        )
        return removed
