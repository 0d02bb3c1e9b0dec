"""
Repository for chats, messages and votes.
"""

from typing import Optional
from uuid import UUID

import asyncpg
import structlog

from salesbot.database import DatabasePool
from salesbot.exceptions.chat import ChatOperationException
from salesbot.exceptions.sales import TransientStorageException
from salesbot.models.chat import ChatInDB, MessageCreate, MessageInDB, VoteInDB
from salesbot.repository.utils import acquire_connection, is_transient_storage_error

logger = structlog.get_logger(__name__)


class ChatRepository:
    """Persistence for the conversation graph owned by the chat orchestrator."""

    def __init__(self, db_pool: DatabasePool) -> None:
        self.db_pool = db_pool

    def _raise_storage_error(self, operation: str, error: Exception) -> None:
        if is_transient_storage_error(error):
            raise TransientStorageException(
                message=f"Storage unavailable during {operation}: {error}",
                operation=operation,
            ) from error
        logger.error("Chat query failed", operation=operation, error=str(error))
        raise ChatOperationException(
            message=f"Failed to {operation.replace('_', ' ')}", operation=operation
        ) from error

    async def save_chat(
        self,
        chat_id: UUID,
        user_id: str,
        title: str,
        connection: Optional[asyncpg.Connection] = None,
    ) -> ChatInDB:
        """
        Create a chat.

        A concurrent request creating the same chat id is not an error; the
        stored row is returned.
        """
        async with acquire_connection(self.db_pool, connection, "save_chat") as conn:
            try:
                row = await conn.fetchrow(
                    """
                    INSERT INTO chats (id, user_id, title)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (id) DO UPDATE SET id = EXCLUDED.id
                    RETURNING id, user_id, title, visibility, created_at, updated_at
                    """,
                    chat_id,
                    user_id,
                    title,
                )
            except Exception as e:
                self._raise_storage_error("save_chat", e)
        logger.info("Chat saved", chat_id=str(chat_id), user_id=user_id)
        return ChatInDB(**dict(row))

    async def get_chat(
        self, chat_id: UUID, connection: Optional[asyncpg.Connection] = None
    ) -> Optional[ChatInDB]:
        async with acquire_connection(self.db_pool, connection, "get_chat") as conn:
            try:
                row = await conn.fetchrow(
                    """
                    SELECT id, user_id, title, visibility, created_at, updated_at
                    FROM chats WHERE id = $1
                    """,
                    chat_id,
                )
            except Exception as e:
                self._raise_storage_error("get_chat", e)
        return ChatInDB(**dict(row)) if row else None

    async def list_chats(
        self, user_id: str, connection: Optional[asyncpg.Connection] = None
    ) -> list[ChatInDB]:
        """Chats of a user, newest first."""
        async with acquire_connection(self.db_pool, connection, "list_chats") as conn:
            try:
                rows = await conn.fetch(
                    """
                    SELECT id, user_id, title, visibility, created_at, updated_at
                    FROM chats WHERE user_id = $1
                    ORDER BY created_at DESC
                    """,
                    user_id,
                )
            except Exception as e:
                self._raise_storage_error("list_chats", e)
        return [ChatInDB(**dict(row)) for row in rows]

    async def delete_chat(self, chat_id: UUID) -> bool:
        """Delete a chat with its votes and messages. Returns False if it did not exist."""
        try:
            async with self.db_pool.transaction() as conn:
                await conn.execute("DELETE FROM votes WHERE chat_id = $1", chat_id)
                await conn.execute("DELETE FROM messages WHERE chat_id = $1", chat_id)
                status = await conn.execute("DELETE FROM chats WHERE id = $1", chat_id)
        except Exception as e:
            self._raise_storage_error("delete_chat", e)
        logger.info("Chat deleted", chat_id=str(chat_id))
        return status.endswith(" 1")

    async def save_messages(
        self,
        messages: list[MessageCreate],
        connection: Optional[asyncpg.Connection] = None,
    ) -> int:
        if not messages:
            return 0
        async with acquire_connection(self.db_pool, connection, "save_messages") as conn:
            try:
                await conn.executemany(
                    """
                    INSERT INTO messages (id, chat_id, role, content, parts)
                    VALUES ($1, $2, $3, $4, $5)
                    ON CONFLICT (id) DO NOTHING
                    """,
                    [
                        (m.id, m.chat_id, str(m.role), m.content, m.parts)
                        for m in messages
                    ],
                )
            except Exception as e:
                self._raise_storage_error("save_messages", e)
        return len(messages)

    async def list_messages(
        self,
        chat_id: UUID,
        limit: Optional[int] = None,
        connection: Optional[asyncpg.Connection] = None,
    ) -> list[MessageInDB]:
        """Messages of a chat in chronological order; with a limit, the most recent ones."""
        async with acquire_connection(self.db_pool, connection, "list_messages") as conn:
            try:
                rows = await conn.fetch(
                    """
                    SELECT * FROM (
                        SELECT id, chat_id, role, content, parts, created_at, updated_at
                        FROM messages WHERE chat_id = $1
                        ORDER BY created_at DESC, id DESC
                        LIMIT $2
                    ) recent
                    ORDER BY created_at, id
                    """,
                    chat_id,
                    limit,
                )
            except Exception as e:
                self._raise_storage_error("list_messages", e)
        return [MessageInDB(**dict(row)) for row in rows]

    async def vote_message(
        self,
        chat_id: UUID,
        message_id: UUID,
        is_upvoted: bool,
        connection: Optional[asyncpg.Connection] = None,
    ) -> VoteInDB:
        async with acquire_connection(self.db_pool, connection, "vote_message") as conn:
            try:
                row = await conn.fetchrow(
                    """
                    INSERT INTO votes (chat_id, message_id, is_upvoted)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (chat_id, message_id)
                    DO UPDATE SET is_upvoted = EXCLUDED.is_upvoted
                    RETURNING chat_id, message_id, is_upvoted
                    """,
                    chat_id,
                    message_id,
                    is_upvoted,
                )
            except Exception as e:
                self._raise_storage_error("vote_message", e)
        return VoteInDB(**dict(row))

    async def list_votes(
        self, chat_id: UUID, connection: Optional[asyncpg.Connection] = None
    ) -> list[VoteInDB]:
        async with acquire_connection(self.db_pool, connection, "list_votes") as conn:
            try:
                rows = await conn.fetch(
                    "SELECT chat_id, message_id, is_upvoted FROM votes WHERE chat_id = $1",
                    chat_id,
                )
            except Exception as e:
                self._raise_storage_error("list_votes", e)
        return [VoteInDB(**dict(row)) for row in rows]
