"""
Tool router with argument repair.

Routes tool calls from the chat model to their definitions. When the
model sends arguments that fail validation, the small model gets one
chance to rewrite them from an example skeleton of the tool's parameters;
if the rewritten call is still invalid the call fails for good.
"""

import json
import re
from typing import Any, Optional

import structlog
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.tools import StructuredTool

from salesbot.agent.prompts.system import REPAIR_PROMPT
from salesbot.agent.tools.base import ToolDefinition
from salesbot.agent.tools.schema import unwrap_value_wrappers
from salesbot.exceptions.agent import (
    ArgumentRepairException,
    ToolArgumentException,
    ToolExecutionException,
    ToolNotFoundException,
)

logger = structlog.get_logger(__name__)

CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def content_text(content: Any) -> str:
    """Plain text of a langchain message content (string or list of parts)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = []
        for part in content:
            if isinstance(part, str):
                texts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                texts.append(part.get("text", ""))
        return "".join(texts)
    return ""


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Parse the first JSON object in a model reply.

    Raises:
        ValueError: If the reply holds no JSON object
    """
    text = CODE_FENCE.sub("", text.strip())
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end < start:
        raise ValueError("Reply does not contain a JSON object")
    data = json.loads(text[start : end + 1])
    if not isinstance(data, dict):
        raise ValueError("Reply is not a JSON object")
    return data


def arguments_text(arguments: Any) -> str:
    if isinstance(arguments, str):
        return arguments
    return json.dumps(arguments, default=str)


class ArgumentRepairer:
    """Asks the small model for corrected tool arguments."""

    def __init__(self, llm) -> None:
        self.llm = llm

    async def repair(
        self, tool: ToolDefinition, arguments: Any, error: str
    ) -> dict[str, Any]:
        """
        Produce corrected arguments for a failed tool call.

        Args:
            tool: Tool whose arguments failed validation
            arguments: Arguments the chat model sent
            error: Validation error message

        Returns:
            New arguments with `{"value": X}` wrappers removed

        Raises:
            ArgumentRepairException: If the model fails or its reply is not
                a JSON object
        """
        skeleton = tool.parameter_shape().example_value()
        prompt = REPAIR_PROMPT.format(
            tool_name=tool.name,
            description=tool.description,
            error=error,
            arguments=arguments_text(arguments),
            skeleton=json.dumps(skeleton, indent=2),
        )
        try:
            response = await self.llm.ainvoke(
                [
                    SystemMessage(content="You correct JSON arguments for tool calls."),
                    HumanMessage(content=prompt),
                ]
            )
        except Exception as e:
            logger.warning("Repair model call failed", tool=tool.name, error=str(e))
            raise ArgumentRepairException(tool.name, f"Repair model failed: {e}") from e

        reply = content_text(response.content)
        try:
            repaired = extract_json_object(reply)
        except ValueError as e:
            logger.warning("Repair reply is not JSON", tool=tool.name, reply=reply[:200])
            raise ArgumentRepairException(
                tool.name, "Repair model did not return a JSON object"
            ) from e
        return unwrap_value_wrappers(repaired)


class ToolRouter:
    """
    Registry and dispatcher for agent tools.

    Every tool is registered under its name and, when aliases are
    published, under its snake_case spelling as well.
    """

    def __init__(
        self,
        tools: list[ToolDefinition],
        repairer: Optional[ArgumentRepairer] = None,
        publish_aliases: bool = True,
    ) -> None:
        self.repairer = repairer
        self.tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            self.tools[tool.name] = tool
            if publish_aliases and tool.alias != tool.name:
                self.tools[tool.alias] = tool

    @property
    def tool_names(self) -> list[str]:
        return list(self.tools)

    def get_tool(self, name: str) -> ToolDefinition:
        tool = self.tools.get(name)
        if tool is None:
            raise ToolNotFoundException(name)
        return tool

    def langchain_tools(self) -> list[StructuredTool]:
        """Format every registered name as a LangChain tool for `bind_tools`."""

        # Tools are executed by the router, never by LangChain
        async def placeholder_coroutine(**kwargs):
            return kwargs

        return [
            StructuredTool(
                name=name,
                description=tool.description,
                args_schema=tool.parameter_schema(),
                coroutine=placeholder_coroutine,
            )
            for name, tool in self.tools.items()
        ]

    async def invoke(self, name: str, arguments: Any) -> str:
        """
        Run a tool, repairing invalid arguments at most once.

        Raises:
            ToolNotFoundException: If no tool has this name
            ToolArgumentException: If arguments are invalid and could not be
                repaired; `repaired` tells whether a repair was attempted
            ToolExecutionException: If the tool itself failed
        """
        tool = self.get_tool(name)
        try:
            return await tool.execute(arguments)
        except ToolArgumentException as e:
            if self.repairer is None:
                raise
            logger.info("Repairing tool arguments", tool=tool.name, error=e.message)
            error = e

        try:
            repaired = await self.repairer.repair(tool, arguments, error.message)
        except ArgumentRepairException as e:
            raise ToolArgumentException(
                tool.name, e.message, arguments, repaired=True
            ) from e

        try:
            result = await tool.execute(repaired)
        except ToolArgumentException as e:
            logger.warning("Repaired arguments still invalid", tool=tool.name, error=e.message)
            raise ToolArgumentException(
                tool.name, e.message, repaired, repaired=True
            ) from e
        logger.info("Tool arguments repaired", tool=tool.name)
        return result

    async def dispatch(self, name: str, arguments: Any) -> str:
        """
        Run a tool and always return text for the model.

        Failures become short sentences the model can relay to the user.
        """
        try:
            result = await self.invoke(name, arguments)
        except ToolNotFoundException:
            logger.warning("Unknown tool requested", tool=name)
            return (
                f"The tool '{name}' is not available. "
                f"Available tools: {', '.join(self.tool_names)}."
            )
        except ToolArgumentException as e:
            logger.warning(
                "Tool arguments rejected",
                tool=name,
                repaired=e.repaired,
                error=e.message,
            )
            return f"The request to {name} could not be understood: {e.message}"
        except ToolExecutionException as e:
            logger.error("Tool execution failed", tool=name, error=e.message)
            return f"Something went wrong while running {name}. Please try again later."
        logger.info("Tool executed", tool=name, result_length=len(result))
        return result
