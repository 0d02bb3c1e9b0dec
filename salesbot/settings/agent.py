"""
Agent configuration settings using Pydantic.
"""

from typing import Optional

from pydantic import BaseModel, Field


class AgentConfig(BaseModel):
    CHAT_MODEL: str = Field(
        default="gpt-4o",
        description="Default model that answers the user and calls tools",
    )
    CHAT_MAX_TOKENS: int = Field(
        default=1024,
        description="Maximum tokens for the chat model",
    )
    CHAT_TEMPERATURE: float = Field(
        default=0.0,
        description="Temperature setting for the chat model",
    )
    SIMPLE_MODEL: str = Field(
        default="gpt-4o-mini",
        description="Model used for titles and tool argument repair",
    )
    SIMPLE_MAX_TOKENS: int = Field(
        default=512,
        description="Maximum tokens for the simple model",
    )
    SIMPLE_TEMPERATURE: float = Field(
        default=0.0,
        description="Temperature setting for the simple model",
    )
    OPENAI_API_KEY: str = Field(
        default="",
        description="API key for the OpenAI compatible endpoint",
    )
    OPENAI_BASE_URL: Optional[str] = Field(
        default=None,
        description="Base URL of an OpenAI compatible server (e.g. Ollama)",
    )
    AVAILABLE_MODELS: list[str] = Field(
        default=["gpt-4o", "gpt-4o-mini", "deepseek-r1:7b", "deepseek-r1:70b"],
        description="Models a client may select per request",
    )
    CONTEXT_ONLY_MODELS: list[str] = Field(
        default=["deepseek-r1:7b", "deepseek-r1:70b"],
        description="Models without tool support; they get retrieved context only",
    )
    MAX_STEPS: int = Field(
        default=5,
        description="Maximum model calls per turn, tool round trips included",
    )
    HISTORY_LIMIT: int = Field(
        default=20,
        description="Number of persisted messages replayed to the model",
    )
    PUBLISH_TOOL_ALIASES: bool = Field(
        default=True,
        description="Also publish every tool under its snake_case name",
    )
    ENABLE_ARGUMENT_REPAIR: bool = Field(
        default=True,
        description="Ask the simple model to fix invalid tool arguments once",
    )
    INCLUDE_RETRIEVED_CONTEXT: bool = Field(
        default=True,
        description="Add retrieved sales rows to the system prompt of tool models",
    )
    RETRIEVAL_DISTANCE_THRESHOLD: float = Field(
        default=0.7,
        description="Maximum cosine distance for a sale to count as relevant",
    )
    RETRIEVAL_LIMIT: Optional[int] = Field(
        default=20,
        description="Maximum relevant sales rendered into context",
    )
    TOTAL_SALES_KEYWORDS: list[str] = Field(
        default=["total sum", "total sales"],
        description="Phrases that answer directly with the total sales figure",
    )
