"""
Tool definitions for the sales agent.

Each tool wraps one sales engine or retrieval operation and gives the model
a validated argument schema for it.
"""

from salesbot.agent.tools.base import ToolDefinition
from salesbot.agent.tools.sales import build_sales_tools
from salesbot.agent.tools.schema import ParameterKind, ParameterShape

__all__ = [
    "ToolDefinition",
    "build_sales_tools",
    "ParameterKind",
    "ParameterShape",
]
