"""
Pydantic models for chats, messages and votes.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class MessageRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SYSTEM = "system"


class ChatVisibility(StrEnum):
    PRIVATE = "private"
    PUBLIC = "public"


class ChatInDB(BaseModel):
    id: UUID
    user_id: str
    title: str
    visibility: ChatVisibility = ChatVisibility.PRIVATE
    created_at: datetime
    updated_at: Optional[datetime] = None


class MessageCreate(BaseModel):
    id: UUID
    chat_id: UUID
    role: MessageRole
    content: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Ordered message parts: text, tool-call, tool-result, reasoning",
    )
    parts: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Reasoning parts kept apart for the UI",
    )


class MessageInDB(MessageCreate):
    created_at: datetime
    updated_at: Optional[datetime] = None


class VoteInDB(BaseModel):
    chat_id: UUID
    message_id: UUID
    is_upvoted: bool


class ChatMessageIn(BaseModel):
    id: Optional[UUID] = None
    role: MessageRole = MessageRole.USER
    content: str


class ChatRequest(BaseModel):
    id: UUID = Field(description="Chat identifier chosen by the client")
    messages: list[ChatMessageIn] = Field(
        min_length=1, description="Conversation as seen by the client"
    )
    selected_chat_model: Optional[str] = Field(
        default=None,
        alias="selectedChatModel",
        description="Model to answer with; defaults to the configured chat model",
    )

    model_config = {"populate_by_name": True}

    def most_recent_user_message(self) -> Optional[ChatMessageIn]:
        for message in reversed(self.messages):
            if message.role == MessageRole.USER and message.content.strip():
                return message
        return None


class VoteRequest(BaseModel):
    message_id: UUID = Field(alias="messageId")
    type: Literal["up", "down"]

    model_config = {"populate_by_name": True}


class StreamEvent(BaseModel):
    """One NDJSON line of a streamed chat turn."""

    type: Literal["text", "reasoning", "tool-call", "tool-result", "finish", "error"]
    message_id: Optional[UUID] = None
    text: Optional[str] = None
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    args: Optional[dict[str, Any]] = None
    result: Optional[str] = None
