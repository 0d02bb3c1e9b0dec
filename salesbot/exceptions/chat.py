"""
Custom exceptions for chat, message and vote operations.
"""

from typing import Optional

from salesbot.exceptions.app import AppException, ErrorTypes


class ChatNotFoundException(AppException):
    """Exception raised when a chat is not found."""

    def __init__(self, chat_id: Optional[str] = None, message: Optional[str] = None, **kwargs) -> None:
        super().__init__(
            type=ErrorTypes.ResourceNotFound,
            message=message or f"Chat with ID '{chat_id}' not found",
            resource="chat",
            field="id",
            value=chat_id,
            **kwargs,
        )


class ChatAccessDeniedException(AppException):
    """Exception raised when a user touches a chat owned by someone else."""

    def __init__(self, chat_id: Optional[str] = None, **kwargs) -> None:
        super().__init__(
            type=ErrorTypes.NotEnoughPermission,
            message="You do not have access to this chat",
            resource="chat",
            field="id",
            value=chat_id,
            **kwargs,
        )


class ChatOperationException(AppException):
    """Exception raised when a chat store operation fails."""

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs) -> None:
        super().__init__(
            type=ErrorTypes.InternalError,
            message=message,
            resource="chat",
            **kwargs,
        )
        self.operation = operation


class InvalidChatRequestException(AppException):
    """Exception raised when a chat request cannot start a turn."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs) -> None:
        super().__init__(
            type=ErrorTypes.InvalidOperation,
            message=message,
            resource="chat",
            field=field,
            **kwargs,
        )
