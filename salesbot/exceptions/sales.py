"""
Custom exceptions for sales data operations.
"""

from typing import Any, Optional

from salesbot.exceptions.app import AppException, ErrorTypes


class SalesValidationException(AppException):
    """Raised when a sales request is missing a conditionally required field."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.InputValidationError,
            message=message,
            resource="sales",
            field=field,
            value=value,
            **kwargs,
        )


class SalesOperationException(AppException):
    """Raised when a sales query or write fails for a non-transient reason."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.InternalError,
            message=message,
            resource="sales",
            **kwargs,
        )
        self.operation = operation


class TransientStorageException(AppException):
    """Raised when the store is temporarily unavailable (pool exhausted, connection dropped)."""

    def __init__(
        self,
        message: str = "Storage is temporarily unavailable",
        operation: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.ExternalServiceError,
            message=message,
            resource="storage",
            **kwargs,
        )
        self.operation = operation


class FatalStorageException(AppException):
    """Raised when a transient storage error persists after every retry."""

    def __init__(
        self,
        message: str,
        attempts: int,
        operation: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.ExternalServiceError,
            message=message,
            resource="storage",
            value=attempts,
            **kwargs,
        )
        self.attempts = attempts
        self.operation = operation


class IngestionException(AppException):
    """Raised when an uploaded sales file cannot be read."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.InputValidationError,
            message=message,
            resource="sales_file",
            field=field,
            value=value,
            **kwargs,
        )


class EmbeddingServiceException(AppException):
    """Raised when the embedding provider fails or returns an unexpected vector."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.ExternalServiceError,
            message=message,
            resource="embedding",
            value=provider,
            **kwargs,
        )
        self.provider = provider
