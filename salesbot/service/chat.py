"""
Service layer for chats, messages and votes.

Every operation that takes a user id checks that the chat belongs to that
user before reading or writing anything else.
"""

from typing import Awaitable, Callable, Optional
from uuid import UUID

import structlog

from salesbot.exceptions.chat import ChatAccessDeniedException, ChatNotFoundException
from salesbot.models.chat import ChatInDB, MessageCreate, MessageInDB, VoteInDB, VoteRequest
from salesbot.repository.chat import ChatRepository

logger = structlog.get_logger(__name__)


class ChatService:
    """
    Business logic for the chat store.

    Args:
        repository: Chat repository used for persistence
    """

    def __init__(self, repository: ChatRepository) -> None:
        self.repository = repository

    def _check_owner(self, chat: ChatInDB, user_id: str) -> None:
        if chat.user_id != user_id:
            logger.warning(
                "Chat access denied",
                chat_id=str(chat.id),
                user_id=user_id,
            )
            raise ChatAccessDeniedException(chat_id=str(chat.id))

    async def get_chat(self, chat_id: UUID, user_id: str) -> ChatInDB:
        """
        Get a chat owned by the user.

        Raises:
            ChatNotFoundException: If the chat does not exist
            ChatAccessDeniedException: If another user owns the chat
        """
        chat = await self.repository.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundException(chat_id=str(chat_id))
        self._check_owner(chat, user_id)
        return chat

    async def ensure_chat(
        self,
        chat_id: UUID,
        user_id: str,
        title_factory: Callable[[], Awaitable[str]],
    ) -> ChatInDB:
        """
        Return the user's chat, creating it with a generated title if missing.

        The title factory only runs for new chats.

        Raises:
            ChatAccessDeniedException: If another user owns the chat
        """
        chat = await self.repository.get_chat(chat_id)
        if chat is not None:
            self._check_owner(chat, user_id)
            return chat

        title = await title_factory()
        chat = await self.repository.save_chat(chat_id, user_id, title)
        # Another request may have created the chat first
        self._check_owner(chat, user_id)
        return chat

    async def list_chats(self, user_id: str) -> list[ChatInDB]:
        return await self.repository.list_chats(user_id)

    async def delete_chat(self, chat_id: UUID, user_id: str) -> None:
        await self.get_chat(chat_id, user_id)
        await self.repository.delete_chat(chat_id)
        logger.info("Chat removed", chat_id=str(chat_id), user_id=user_id)

    async def save_messages(self, messages: list[MessageCreate]) -> int:
        return await self.repository.save_messages(messages)

    async def list_messages(
        self, chat_id: UUID, user_id: str, limit: Optional[int] = None
    ) -> list[MessageInDB]:
        await self.get_chat(chat_id, user_id)
        return await self.repository.list_messages(chat_id, limit=limit)

    async def recent_messages(self, chat_id: UUID, limit: Optional[int]) -> list[MessageInDB]:
        """Latest messages of a chat whose ownership was already checked."""
        return await self.repository.list_messages(chat_id, limit=limit)

    async def vote(self, chat_id: UUID, user_id: str, vote: VoteRequest) -> VoteInDB:
        """Record an up or down vote, replacing any earlier vote on the message."""
        await self.get_chat(chat_id, user_id)
        result = await self.repository.vote_message(
            chat_id, vote.message_id, is_upvoted=vote.type == "up"
        )
        logger.info(
            "Message voted",
            chat_id=str(chat_id),
            message_id=str(vote.message_id),
            vote=vote.type,
        )
        return result

    async def list_votes(self, chat_id: UUID, user_id: str) -> list[VoteInDB]:
        await self.get_chat(chat_id, user_id)
        return await self.repository.list_votes(chat_id)
