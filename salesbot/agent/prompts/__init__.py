"""System prompts and templates for the agent."""

from salesbot.agent.prompts.system import (
    CONTEXT_PROMPT,
    NO_SALES_DATA,
    REPAIR_PROMPT,
    SYSTEM_PROMPT,
    TITLE_PROMPT,
)

__all__ = [
    "SYSTEM_PROMPT",
    "CONTEXT_PROMPT",
    "NO_SALES_DATA",
    "TITLE_PROMPT",
    "REPAIR_PROMPT",
]
