"""
Main Agent Orchestrator.

Coordinates one chat turn:
1. Chat ownership, creation and title generation
2. Persisting the user message
3. Retrieving relevant sales for the system prompt
4. Streaming the model answer, running tool calls through the router
5. Sanitizing and persisting the response messages
"""

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional
from uuid import UUID

import structlog
from langchain_core.messages import (
    AIMessage,
    AIMessageChunk,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_openai import ChatOpenAI
from uuid_utils.compat import uuid7

from salesbot.agent.prompts.system import (
    CONTEXT_PROMPT,
    NO_SALES_DATA,
    SYSTEM_PROMPT,
    TITLE_PROMPT,
)
from salesbot.agent.router import ToolRouter, content_text
from salesbot.exceptions.app import AppException
from salesbot.exceptions.chat import InvalidChatRequestException
from salesbot.models.auth import AuthenticatedUser
from salesbot.models.chat import (
    ChatRequest,
    MessageCreate,
    MessageInDB,
    MessageRole,
    StreamEvent,
)
from salesbot.service.chat import ChatService
from salesbot.service.retrieval import RelevanceRetriever
from salesbot.settings.agent import AgentConfig

logger = structlog.get_logger(__name__)

ERROR_MESSAGE = "Oops, an error occurred!"
TITLE_MAX_LENGTH = 80


class ReasoningStreamParser:
    """
    Splits streamed text into answer text and `<think>` reasoning.

    Tags may be cut across chunks, so a trailing partial tag is held back
    until the next chunk arrives.
    """

    OPEN_TAG = "<think>"
    CLOSE_TAG = "</think>"

    def __init__(self) -> None:
        self.buffer = ""
        self.in_reasoning = False

    def _segment(self, segments: list[tuple[str, str]], text: str) -> None:
        if text:
            segments.append(("reasoning" if self.in_reasoning else "text", text))

    def feed(self, delta: str) -> list[tuple[str, str]]:
        """Consume a chunk and return `(kind, text)` segments ready to emit."""
        self.buffer += delta
        segments: list[tuple[str, str]] = []
        while True:
            tag = self.CLOSE_TAG if self.in_reasoning else self.OPEN_TAG
            index = self.buffer.find(tag)
            if index < 0:
                break
            self._segment(segments, self.buffer[:index])
            self.buffer = self.buffer[index + len(tag):]
            self.in_reasoning = not self.in_reasoning

        held = 0
        for size in range(min(len(tag) - 1, len(self.buffer)), 0, -1):
            if self.buffer.endswith(tag[:size]):
                held = size
                break
        self._segment(segments, self.buffer[: len(self.buffer) - held])
        self.buffer = self.buffer[len(self.buffer) - held:]
        return segments

    def flush(self) -> list[tuple[str, str]]:
        segments: list[tuple[str, str]] = []
        self._segment(segments, self.buffer)
        self.buffer = ""
        return segments


def extract_reasoning(text: str) -> tuple[str, str]:
    """Split a complete reply into (answer, reasoning)."""
    parser = ReasoningStreamParser()
    parts = {"text": [], "reasoning": []}
    for kind, segment in parser.feed(text) + parser.flush():
        parts[kind].append(segment)
    return "".join(parts["text"]).strip(), "".join(parts["reasoning"]).strip()


def sanitize_response_messages(
    messages: list[dict[str, Any]], reasoning: Optional[str] = None
) -> list[dict[str, Any]]:
    """
    Clean response messages before they are stored.

    Empty text parts are dropped, tool calls without a matching tool result
    are dropped, and messages left without content are removed. The
    reasoning, when present, is attached once to the last assistant message.
    """
    result_ids = {
        part.get("toolCallId")
        for message in messages
        if message["role"] == MessageRole.TOOL
        for part in message["content"]
        if part.get("type") == "tool-result"
    }
    last_assistant = max(
        (i for i, message in enumerate(messages) if message["role"] == MessageRole.ASSISTANT),
        default=None,
    )

    sanitized = []
    for index, message in enumerate(messages):
        if message["role"] != MessageRole.ASSISTANT:
            if message["content"]:
                sanitized.append(message)
            continue

        content = []
        for part in message["content"]:
            if part.get("type") == "text" and not part.get("text", "").strip():
                continue
            if part.get("type") == "tool-call" and part.get("toolCallId") not in result_ids:
                continue
            content.append(part)
        if reasoning and index == last_assistant:
            content.append({"type": "reasoning", "reasoning": reasoning})
        if content:
            sanitized.append({**message, "content": content})
    return sanitized


def history_to_langchain(history: list[MessageInDB]) -> list[BaseMessage]:
    """Replay the text of stored user and assistant messages."""
    messages: list[BaseMessage] = []
    for message in history:
        text = "".join(
            part.get("text", "") for part in message.content if part.get("type") == "text"
        ).strip()
        if not text:
            continue
        if message.role == MessageRole.USER:
            messages.append(HumanMessage(content=text))
        elif message.role == MessageRole.ASSISTANT:
            messages.append(AIMessage(content=text))
    return messages


@dataclass
class ChatTurn:
    """Everything needed to stream one answer, prepared before streaming starts."""

    chat_id: UUID
    user_id: str
    model: str
    context_only: bool
    messages: list[BaseMessage] = field(default_factory=list)


class SalesAgentOrchestrator:
    """
    Main orchestrator for the sales assistant.

    Handles:
    - Chat creation with generated titles and ownership checks
    - Retrieval of sales context for the system prompt
    - Streaming model answers with at most MAX_STEPS model calls
    - Tool execution through the ToolRouter
    - Persisting sanitized response messages
    """

    def __init__(
        self,
        config: AgentConfig,
        router: ToolRouter,
        retriever: RelevanceRetriever,
        chat_service: ChatService,
        simple_llm=None,
        chat_llm_factory: Optional[Callable[[str], Any]] = None,
    ):
        self.config = config
        self.router = router
        self.retriever = retriever
        self.chat_service = chat_service
        self.simple_llm = simple_llm or create_simple_llm(config)
        self.chat_llm_factory = chat_llm_factory or (
            lambda model: create_chat_llm(config, model)
        )
        self._chat_llms: dict[str, Any] = {}

    def get_chat_llm(self, model: str):
        if model not in self._chat_llms:
            self._chat_llms[model] = self.chat_llm_factory(model)
        return self._chat_llms[model]

    async def generate_title(self, message: str) -> str:
        """Short chat title from the first user message; falls back to its first 80 characters."""
        fallback = message.strip()[:TITLE_MAX_LENGTH]
        try:
            response = await self.simple_llm.ainvoke(
                [SystemMessage(content=TITLE_PROMPT), HumanMessage(content=message)]
            )
        except Exception as e:
            logger.warning("Title generation failed", error=str(e))
            return fallback

        title, _ = extract_reasoning(content_text(response.content))
        title = title.replace('"', "").replace("'", "").replace(":", "").strip()
        return title[:TITLE_MAX_LENGTH] or fallback

    def resolve_model(self, selected: Optional[str]) -> str:
        model = selected or self.config.CHAT_MODEL
        if model not in self.config.AVAILABLE_MODELS and model != self.config.CHAT_MODEL:
            raise InvalidChatRequestException(
                f"Model '{model}' is not available", field="selectedChatModel"
            )
        return model

    async def build_system_prompt(self, query: str, context_only: bool) -> str:
        if not (context_only or self.config.INCLUDE_RETRIEVED_CONTEXT):
            return SYSTEM_PROMPT
        try:
            sales_data = await self.retriever.retrieve_relevant_sales(query)
        except AppException as e:
            logger.warning("Sales retrieval failed", error=e.message)
            sales_data = None
        return CONTEXT_PROMPT.format(
            system_prompt=SYSTEM_PROMPT, sales_data=sales_data or NO_SALES_DATA
        )

    async def prepare_turn(
        self, request: ChatRequest, user: AuthenticatedUser
    ) -> ChatTurn:
        """
        Run everything that must succeed before the answer starts streaming.

        Raises:
            InvalidChatRequestException: If there is no user message or the
                model is unknown
            ChatAccessDeniedException: If another user owns the chat
        """
        user_message = request.most_recent_user_message()
        if user_message is None:
            raise InvalidChatRequestException("No user message found", field="messages")
        model = self.resolve_model(request.selected_chat_model)
        context_only = model in self.config.CONTEXT_ONLY_MODELS

        await self.chat_service.ensure_chat(
            request.id,
            user.user_id,
            lambda: self.generate_title(user_message.content),
        )
        await self.chat_service.save_messages(
            [
                MessageCreate(
                    id=user_message.id or uuid7(),
                    chat_id=request.id,
                    role=MessageRole.USER,
                    content=[{"type": "text", "text": user_message.content}],
                )
            ]
        )

        history = await self.chat_service.recent_messages(
            request.id, limit=self.config.HISTORY_LIMIT
        )
        system_prompt = await self.build_system_prompt(user_message.content, context_only)
        logger.info(
            "Chat turn prepared",
            chat_id=str(request.id),
            model=model,
            context_only=context_only,
            history=len(history),
        )
        return ChatTurn(
            chat_id=request.id,
            user_id=user.user_id,
            model=model,
            context_only=context_only,
            messages=[SystemMessage(content=system_prompt), *history_to_langchain(history)],
        )

    async def stream_turn(self, turn: ChatTurn) -> AsyncIterator[StreamEvent]:
        """
        Stream the answer for a prepared turn.

        Yields text, reasoning, tool-call and tool-result events and a final
        finish event. Any failure ends the stream with an error event.
        """
        llm = self.get_chat_llm(turn.model)
        if not turn.context_only:
            llm = llm.bind_tools(self.router.langchain_tools())

        messages = list(turn.messages)
        response_messages: list[dict[str, Any]] = []
        reasoning_parts: list[str] = []
        message_id = uuid7()

        try:
            for step in range(self.config.MAX_STEPS):
                parser = ReasoningStreamParser()
                text_parts: list[str] = []
                aggregate: Optional[AIMessageChunk] = None

                async for chunk in llm.astream(messages):
                    aggregate = chunk if aggregate is None else aggregate + chunk
                    for kind, text in parser.feed(content_text(chunk.content)):
                        (reasoning_parts if kind == "reasoning" else text_parts).append(text)
                        yield StreamEvent(type=kind, message_id=message_id, text=text)
                for kind, text in parser.flush():
                    (reasoning_parts if kind == "reasoning" else text_parts).append(text)
                    yield StreamEvent(type=kind, message_id=message_id, text=text)

                if aggregate is None:
                    break

                text = "".join(text_parts).strip()
                tool_calls = self._collect_tool_calls(aggregate)
                messages.append(
                    AIMessage(
                        content=text,
                        tool_calls=[
                            {
                                "id": call["id"],
                                "name": call["name"],
                                "args": call["args"] if isinstance(call["args"], dict) else {},
                            }
                            for call in tool_calls
                        ],
                    )
                )
                response_messages.append(
                    {
                        "id": message_id,
                        "role": MessageRole.ASSISTANT,
                        "content": [{"type": "text", "text": text}]
                        + [
                            {
                                "type": "tool-call",
                                "toolCallId": call["id"],
                                "toolName": call["name"],
                                "args": call["args"],
                            }
                            for call in tool_calls
                        ],
                    }
                )
                if not tool_calls:
                    break

                tool_results = []
                for call in tool_calls:
                    event_args = call["args"] if isinstance(call["args"], dict) else {"raw": call["args"]}
                    yield StreamEvent(
                        type="tool-call",
                        message_id=message_id,
                        tool_call_id=call["id"],
                        tool_name=call["name"],
                        args=event_args,
                    )
                    result = await self.router.dispatch(call["name"], call["args"])
                    messages.append(ToolMessage(content=result, tool_call_id=call["id"]))
                    tool_results.append(
                        {
                            "type": "tool-result",
                            "toolCallId": call["id"],
                            "toolName": call["name"],
                            "result": result,
                        }
                    )
                    yield StreamEvent(
                        type="tool-result",
                        message_id=message_id,
                        tool_call_id=call["id"],
                        tool_name=call["name"],
                        result=result,
                    )
                response_messages.append(
                    {"id": uuid7(), "role": MessageRole.TOOL, "content": tool_results}
                )
                message_id = uuid7()
                logger.debug("Tool step completed", chat_id=str(turn.chat_id), step=step + 1)

            reasoning = "".join(reasoning_parts).strip()
            await self._persist_response(turn, response_messages, reasoning)
        except Exception as e:
            logger.error(
                "Chat turn failed",
                chat_id=str(turn.chat_id),
                model=turn.model,
                error=str(e),
            )
            yield StreamEvent(type="error", text=ERROR_MESSAGE)
            return

        yield StreamEvent(type="finish", message_id=message_id)

    def _collect_tool_calls(self, aggregate: AIMessageChunk) -> list[dict[str, Any]]:
        """
        Valid and malformed tool calls of a streamed reply.

        Malformed calls keep their raw argument text so the router can send
        them through argument repair.
        """
        calls = []
        for call in list(aggregate.tool_calls) + list(aggregate.invalid_tool_calls):
            if not call.get("name"):
                continue
            calls.append(
                {
                    "id": call.get("id") or f"call_{uuid7().hex}",
                    "name": call["name"],
                    "args": call.get("args") if call.get("args") is not None else {},
                }
            )
        return calls

    async def _persist_response(
        self,
        turn: ChatTurn,
        response_messages: list[dict[str, Any]],
        reasoning: str,
    ) -> None:
        sanitized = sanitize_response_messages(response_messages, reasoning)
        await self.chat_service.save_messages(
            [
                MessageCreate(
                    id=message["id"],
                    chat_id=turn.chat_id,
                    role=message["role"],
                    content=message["content"],
                    parts=[
                        part for part in message["content"] if part.get("type") == "reasoning"
                    ],
                )
                for message in sanitized
            ]
        )
        logger.info(
            "Chat turn completed",
            chat_id=str(turn.chat_id),
            messages=len(sanitized),
        )


def create_chat_llm(config: AgentConfig, model: str) -> ChatOpenAI:
    return ChatOpenAI(
        model=model,
        temperature=config.CHAT_TEMPERATURE,
        max_tokens=config.CHAT_MAX_TOKENS,
        api_key=config.OPENAI_API_KEY or None,
        base_url=config.OPENAI_BASE_URL,
        streaming=True,
    )


def create_simple_llm(config: AgentConfig) -> ChatOpenAI:
    return ChatOpenAI(
        model=config.SIMPLE_MODEL,
        temperature=config.SIMPLE_TEMPERATURE,
        max_tokens=config.SIMPLE_MAX_TOKENS,
        api_key=config.OPENAI_API_KEY or None,
        base_url=config.OPENAI_BASE_URL,
    )
