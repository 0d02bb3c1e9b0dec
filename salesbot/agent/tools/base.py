"""
Base tool definitions.

A ToolDefinition binds a name and description to a pydantic arguments
model and an async handler returning text for the model.
"""

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import structlog
from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from salesbot.agent.tools.schema import ParameterShape
from salesbot.exceptions.agent import ToolArgumentException, ToolExecutionException
from salesbot.exceptions.sales import SalesValidationException
from salesbot.models.base import ArgumentsModel

logger = structlog.get_logger(__name__)

ToolHandler = Callable[[Any], Awaitable[str]]


def format_validation_error(error: ValidationError) -> str:
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ())) or "arguments"
        messages.append(f"{location}: {detail.get('msg')}")
    return "; ".join(messages)


@dataclass
class ToolDefinition:
    """
    Definition of a tool that the agent can use.

    The parameter schema published to the model is the JSON schema of
    `args_model` with camelCase property names.
    """

    name: str
    description: str
    args_model: type[ArgumentsModel]
    handler: ToolHandler

    @property
    def alias(self) -> str:
        """snake_case spelling of the tool name."""
        return to_snake(self.name)

    def parameter_schema(self) -> dict[str, Any]:
        return self.args_model.model_json_schema(by_alias=True)

    def parameter_shape(self) -> ParameterShape:
        return ParameterShape.from_json_schema(self.parameter_schema())

    def parse_arguments(self, arguments: Any) -> ArgumentsModel:
        """
        Validate raw arguments from the model.

        Arguments may arrive as a JSON string when the model's tool call was
        not decoded upstream.

        Raises:
            ToolArgumentException: If the arguments are not valid
        """
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError as e:
                raise ToolArgumentException(
                    self.name, f"Arguments are not valid JSON: {e.msg}", arguments
                ) from e
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ToolArgumentException(
                self.name, "Arguments must be a JSON object", arguments
            )
        try:
            return self.args_model.model_validate(arguments)
        except ValidationError as e:
            raise ToolArgumentException(
                self.name, format_validation_error(e), arguments
            ) from e

    async def execute(self, arguments: Any) -> str:
        """
        Validate arguments and run the handler.

        Raises:
            ToolArgumentException: If arguments are invalid, including
                fields the handler requires conditionally
            ToolExecutionException: If the handler fails for any other reason
        """
        parsed = self.parse_arguments(arguments)
        try:
            return await self.handler(parsed)
        except SalesValidationException as e:
            raise ToolArgumentException(self.name, e.message, arguments) from e
        except Exception as e:
            logger.error("Tool handler failed", tool=self.name, error=str(e))
            raise ToolExecutionException(
                self.name, f"Tool '{self.name}' failed: {e}"
            ) from e
