"""
Custom exceptions raised while routing tool calls from the language model.
"""

from typing import Any, Optional

from salesbot.exceptions.app import AppException, ErrorTypes


class ToolNotFoundException(AppException):
    """The model asked for a tool that is not registered."""

    def __init__(self, tool_name: str, **kwargs) -> None:
        super().__init__(
            type=ErrorTypes.ResourceNotFound,
            message=f"Tool '{tool_name}' does not exist",
            resource="tool",
            field="name",
            value=tool_name,
            **kwargs,
        )
        self.tool_name = tool_name


class ToolArgumentException(AppException):
    """Tool arguments failed validation."""

    def __init__(
        self,
        tool_name: str,
        message: str,
        arguments: Optional[Any] = None,
        repaired: bool = False,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.InputValidationError,
            message=message,
            resource="tool",
            field=tool_name,
            value=arguments,
            **kwargs,
        )
        self.tool_name = tool_name
        self.arguments = arguments
        self.repaired = repaired


class ToolExecutionException(AppException):
    """A tool received valid arguments but failed while running."""

    def __init__(self, tool_name: str, message: str, **kwargs) -> None:
        super().__init__(
            type=ErrorTypes.InternalError,
            message=message,
            resource="tool",
            field=tool_name,
            **kwargs,
        )
        self.tool_name = tool_name


class ArgumentRepairException(AppException):
    """The repair model could not produce usable arguments."""

    def __init__(self, tool_name: str, message: str, **kwargs) -> None:
        super().__init__(
            type=ErrorTypes.ExternalServiceError,
            message=message,
            resource="tool",
            field=tool_name,
            **kwargs,
        )
        self.tool_name = tool_name
