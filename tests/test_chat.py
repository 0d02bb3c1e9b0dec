"""Tests for the chat store and the agent orchestrator."""

from uuid import UUID

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage
from uuid_utils.compat import uuid7

from salesbot.agent.orchestrator import (
    ERROR_MESSAGE,
    ReasoningStreamParser,
    SalesAgentOrchestrator,
    extract_reasoning,
    history_to_langchain,
    sanitize_response_messages,
)
from salesbot.agent.prompts.system import NO_SALES_DATA
from salesbot.agent.router import ArgumentRepairer, ToolRouter
from salesbot.agent.tools import build_sales_tools
from salesbot.exceptions.chat import (
    ChatAccessDeniedException,
    ChatNotFoundException,
    InvalidChatRequestException,
)
from salesbot.models.auth import AuthenticatedUser
from salesbot.models.chat import ChatRequest, MessageCreate, MessageInDB, MessageRole, VoteRequest
from salesbot.settings.agent import AgentConfig
from tests.fakes import FakeChatLLM, FakeSimpleLLM, text_chunks, tool_call_chunk

OWNER = AuthenticatedUser(user_id="user-1")
INTRUDER = AuthenticatedUser(user_id="user-2")


def chat_request(chat_id: UUID, content: str, model: str = "gpt-4o") -> ChatRequest:
    return ChatRequest.model_validate(
        {
            "id": str(chat_id),
            "messages": [{"role": "user", "content": content}],
            "selectedChatModel": model,
        }
    )


async def static_title():
    return "A chat"


async def collect(events):
    return [event async for event in events]


class TestChatService:
    """Ownership checks, history and votes."""

    @pytest.mark.asyncio
    async def test_ensure_chat_creates_once(self, chat_service):
        chat_id = uuid7()
        titles = []

        async def title_factory():
            titles.append("called")
            return "Quarterly sales"

        first = await chat_service.ensure_chat(chat_id, OWNER.user_id, title_factory)
        second = await chat_service.ensure_chat(chat_id, OWNER.user_id, title_factory)

        assert first.title == "Quarterly sales"
        assert second.id == first.id
        assert titles == ["called"]

    @pytest.mark.asyncio
    async def test_other_users_are_denied(self, chat_service):
        chat_id = uuid7()
        await chat_service.ensure_chat(chat_id, OWNER.user_id, static_title)

        with pytest.raises(ChatAccessDeniedException):
            await chat_service.ensure_chat(chat_id, INTRUDER.user_id, static_title)
        with pytest.raises(ChatAccessDeniedException):
            await chat_service.list_messages(chat_id, INTRUDER.user_id)
        with pytest.raises(ChatAccessDeniedException):
            await chat_service.delete_chat(chat_id, INTRUDER.user_id)

    @pytest.mark.asyncio
    async def test_missing_chat(self, chat_service):
        with pytest.raises(ChatNotFoundException):
            await chat_service.get_chat(uuid7(), OWNER.user_id)

    @pytest.mark.asyncio
    async def test_list_chats_only_returns_own(self, chat_service):
        await chat_service.ensure_chat(uuid7(), OWNER.user_id, static_title)
        await chat_service.ensure_chat(uuid7(), INTRUDER.user_id, static_title)

        chats = await chat_service.list_chats(OWNER.user_id)

        assert [chat.user_id for chat in chats] == [OWNER.user_id]

    @pytest.mark.asyncio
    async def test_votes_replace_earlier_vote(self, chat_service):
        chat_id = uuid7()
        message_id = uuid7()
        await chat_service.ensure_chat(chat_id, OWNER.user_id, static_title)

        await chat_service.vote(chat_id, OWNER.user_id, VoteRequest(message_id=message_id, type="up"))
        vote = await chat_service.vote(
            chat_id, OWNER.user_id, VoteRequest.model_validate({"messageId": str(message_id), "type": "down"})
        )
        votes = await chat_service.list_votes(chat_id, OWNER.user_id)

        assert vote.is_upvoted is False
        assert len(votes) == 1
        assert votes[0].is_upvoted is False

    @pytest.mark.asyncio
    async def test_delete_chat_removes_messages(self, chat_service, chat_repository):
        chat_id = uuid7()
        await chat_service.ensure_chat(chat_id, OWNER.user_id, static_title)
        await chat_service.save_messages(
            [MessageCreate(id=uuid7(), chat_id=chat_id, role=MessageRole.USER, content=[])]
        )

        await chat_service.delete_chat(chat_id, OWNER.user_id)

        assert chat_repository.chats == {}
        assert chat_repository.messages == {}


class TestReasoningParser:
    def test_tags_split_across_chunks(self):
        parser = ReasoningStreamParser()
        segments = []
        for delta in ["<thi", "nk>pondering</th", "ink>Answer here"]:
            segments += parser.feed(delta)
        segments += parser.flush()

        assert segments == [("reasoning", "pondering"), ("text", "Answer here")]

    def test_plain_text(self):
        parser = ReasoningStreamParser()
        assert parser.feed("a < b") == [("text", "a < b")]
        assert parser.flush() == []

    def test_extract_reasoning(self):
        assert extract_reasoning("<think>hmm</think> Sales title") == ("Sales title", "hmm")


class TestSanitize:
    def test_drops_unanswered_tool_calls_and_empty_text(self):
        assistant_id = uuid7()
        tool_id = uuid7()
        messages = [
            {
                "id": assistant_id,
                "role": MessageRole.ASSISTANT,
                "content": [
                    {"type": "text", "text": "  "},
                    {"type": "tool-call", "toolCallId": "a", "toolName": "x", "args": {}},
                    {"type": "tool-call", "toolCallId": "b", "toolName": "x", "args": {}},
                ],
            },
            {
                "id": tool_id,
                "role": MessageRole.TOOL,
                "content": [
                    {"type": "tool-result", "toolCallId": "a", "toolName": "x", "result": "ok"}
                ],
            },
            {"id": uuid7(), "role": MessageRole.ASSISTANT, "content": [{"type": "text", "text": ""}]},
        ]

        sanitized = sanitize_response_messages(messages)

        assert [m["id"] for m in sanitized] == [assistant_id, tool_id]
        assert sanitized[0]["content"] == [
            {"type": "tool-call", "toolCallId": "a", "toolName": "x", "args": {}}
        ]

    def test_reasoning_is_attached(self):
        messages = [
            {"id": uuid7(), "role": MessageRole.ASSISTANT, "content": [{"type": "text", "text": "Hi"}]}
        ]
        sanitized = sanitize_response_messages(messages, "thinking")
        assert sanitized[0]["content"][-1] == {"type": "reasoning", "reasoning": "thinking"}

    def test_reasoning_goes_on_last_assistant_message(self):
        first, last = uuid7(), uuid7()
        messages = [
            {
                "id": first,
                "role": MessageRole.ASSISTANT,
                "content": [
                    {"type": "tool-call", "toolCallId": "a", "toolName": "x", "args": {}}
                ],
            },
            {
                "id": uuid7(),
                "role": MessageRole.TOOL,
                "content": [
                    {"type": "tool-result", "toolCallId": "a", "toolName": "x", "result": "ok"}
                ],
            },
            {"id": last, "role": MessageRole.ASSISTANT, "content": [{"type": "text", "text": "Done"}]},
        ]

        sanitized = sanitize_response_messages(messages, "thinking")

        reasoning = [
            (message["id"], part)
            for message in sanitized
            for part in message["content"]
            if part["type"] == "reasoning"
        ]
        assert reasoning == [(last, {"type": "reasoning", "reasoning": "thinking"})]

    def test_history_replays_text_only(self):
        chat_id = uuid7()
        history = [
            MessageInDB(
                id=uuid7(),
                chat_id=chat_id,
                role=role,
                content=content,
                created_at="2024-01-01T00:00:00Z",
            )
            for role, content in [
                (MessageRole.USER, [{"type": "text", "text": "Hello"}]),
                (MessageRole.TOOL, [{"type": "tool-result", "result": "data"}]),
                (MessageRole.ASSISTANT, [{"type": "text", "text": "Hi!"}]),
                (MessageRole.ASSISTANT, [{"type": "tool-call", "toolName": "x"}]),
            ]
        ]

        messages = history_to_langchain(history)

        assert messages == [HumanMessage(content="Hello"), AIMessage(content="Hi!")]


@pytest.fixture
def make_orchestrator(sales_service, retriever, chat_service):
    def build(chat_llm, simple_llm=None, config=None, repair_llm=None):
        router = ToolRouter(
            build_sales_tools(sales_service, retriever),
            repairer=ArgumentRepairer(repair_llm) if repair_llm else None,
        )
        return SalesAgentOrchestrator(
            config or AgentConfig(INCLUDE_RETRIEVED_CONTEXT=False),
            router,
            retriever,
            chat_service,
            simple_llm=simple_llm or FakeSimpleLLM("Sales totals"),
            chat_llm_factory=lambda model: chat_llm,
        )

    return build


class TestOrchestrator:
    """One conversational turn from request to persisted answer."""

    @pytest.mark.asyncio
    async def test_turn_with_tool_call(self, make_orchestrator, chat_repository):
        chat_llm = FakeChatLLM(
            [
                [
                    tool_call_chunk(
                        "getSalesAnalytics",
                        '{"operation": "ANALYTICS", "analyticsType": "TOTAL_SALES"}',
                    )
                ],
                text_chunks("Total sales are ", "RM 149.00."),
            ]
        )
        orchestrator = make_orchestrator(chat_llm)
        chat_id = uuid7()

        turn = await orchestrator.prepare_turn(
            chat_request(chat_id, "What are the sales?"), OWNER
        )
        events = await collect(orchestrator.stream_turn(turn))

        assert [event.type for event in events] == [
            "tool-call",
            "tool-result",
            "text",
            "text",
            "finish",
        ]
        assert events[0].tool_name == "getSalesAnalytics"
        assert events[0].args == {"operation": "ANALYTICS", "analyticsType": "TOTAL_SALES"}
        assert events[1].result == "Total sales: RM 149.00"
        assert chat_llm.bound_tools is not None

        second_call = chat_llm.calls[1]
        assert isinstance(second_call[0], SystemMessage)
        assert isinstance(second_call[-1], ToolMessage)
        assert second_call[-1].content == "Total sales: RM 149.00"

        chat = chat_repository.chats[chat_id]
        assert chat.title == "Sales totals"
        assert chat.user_id == OWNER.user_id

        stored = list(chat_repository.messages.values())
        assert [m.role for m in stored] == [
            MessageRole.USER,
            MessageRole.ASSISTANT,
            MessageRole.TOOL,
            MessageRole.ASSISTANT,
        ]
        assert stored[1].content[0]["type"] == "tool-call"
        assert stored[3].content == [{"type": "text", "text": "Total sales are RM 149.00."}]
        assert stored[3].id == events[-1].message_id

    @pytest.mark.asyncio
    async def test_malformed_tool_arguments_are_repaired(
        self, make_orchestrator, chat_repository
    ):
        chat_llm = FakeChatLLM(
            [
                [tool_call_chunk("getInvoiceDetails", "invoice J100")],
                text_chunks("Invoice J100 totals RM 25.00."),
            ]
        )
        repair_llm = FakeSimpleLLM('{"invoice": "J100"}')
        orchestrator = make_orchestrator(chat_llm, repair_llm=repair_llm)

        turn = await orchestrator.prepare_turn(chat_request(uuid7(), "Invoice J100?"), OWNER)
        events = await collect(orchestrator.stream_turn(turn))

        results = [event for event in events if event.type == "tool-result"]
        assert len(results) == 1
        assert results[0].result.endswith("Overall Invoice Total: RM 25.00")
        assert len(repair_llm.calls) == 1
        assert events[-1].type == "finish"

    @pytest.mark.asyncio
    async def test_context_only_model_streams_reasoning(
        self, make_orchestrator, chat_repository
    ):
        chat_llm = FakeChatLLM([text_chunks("<thi", "nk>pondering</th", "ink>Answer here")])
        orchestrator = make_orchestrator(chat_llm)

        turn = await orchestrator.prepare_turn(
            chat_request(uuid7(), "Why?", model="deepseek-r1:7b"), OWNER
        )
        events = await collect(orchestrator.stream_turn(turn))

        assert chat_llm.bound_tools is None
        assert "### SALES DATA START" in turn.messages[0].content
        assert [(e.type, e.text) for e in events[:-1]] == [
            ("reasoning", "pondering"),
            ("text", "Answer here"),
        ]
        answer = list(chat_repository.messages.values())[-1]
        assert answer.content == [
            {"type": "text", "text": "Answer here"},
            {"type": "reasoning", "reasoning": "pondering"},
        ]
        assert answer.parts == [{"type": "reasoning", "reasoning": "pondering"}]

    @pytest.mark.asyncio
    async def test_reasoning_before_tool_call_is_stored_once(
        self, make_orchestrator, chat_repository
    ):
        chat_llm = FakeChatLLM(
            [
                text_chunks("<think>plan</think>")
                + [
                    tool_call_chunk(
                        "getSalesAnalytics",
                        '{"operation": "ANALYTICS", "analyticsType": "TOTAL_SALES"}',
                    )
                ],
                text_chunks("Total is RM 149.00."),
            ]
        )
        orchestrator = make_orchestrator(chat_llm)

        turn = await orchestrator.prepare_turn(chat_request(uuid7(), "Total?"), OWNER)
        events = await collect(orchestrator.stream_turn(turn))

        assert events[-1].type == "finish"
        stored = list(chat_repository.messages.values())
        reasoning_parts = [
            part
            for message in stored
            for part in message.content
            if part.get("type") == "reasoning"
        ]
        assert reasoning_parts == [{"type": "reasoning", "reasoning": "plan"}]
        assert stored[-1].parts == [{"type": "reasoning", "reasoning": "plan"}]
        assert stored[1].parts == []

    @pytest.mark.asyncio
    async def test_embedding_failure_leaves_prompt_without_sales_data(
        self, make_orchestrator, embedder
    ):
        embedder.default = [1.0, 0.0]
        orchestrator = make_orchestrator(FakeChatLLM([text_chunks("Answer")]))

        turn = await orchestrator.prepare_turn(
            chat_request(uuid7(), "Why?", model="deepseek-r1:7b"), OWNER
        )

        assert NO_SALES_DATA in turn.messages[0].content

    @pytest.mark.asyncio
    async def test_model_failure_ends_with_error_event(
        self, make_orchestrator, chat_repository
    ):
        chat_llm = FakeChatLLM([[RuntimeError("model offline")]])
        orchestrator = make_orchestrator(chat_llm)

        turn = await orchestrator.prepare_turn(chat_request(uuid7(), "Hello"), OWNER)
        events = await collect(orchestrator.stream_turn(turn))

        assert [(e.type, e.text) for e in events] == [("error", ERROR_MESSAGE)]
        assert [m.role for m in chat_repository.messages.values()] == [MessageRole.USER]

    @pytest.mark.asyncio
    async def test_title_falls_back_to_message(self, make_orchestrator, chat_repository):
        message = "x" * 100
        orchestrator = make_orchestrator(
            FakeChatLLM([]), simple_llm=FakeSimpleLLM(RuntimeError("down"))
        )
        chat_id = uuid7()

        await orchestrator.prepare_turn(chat_request(chat_id, message), OWNER)

        assert chat_repository.chats[chat_id].title == "x" * 80

    @pytest.mark.asyncio
    async def test_unknown_model(self, make_orchestrator):
        orchestrator = make_orchestrator(FakeChatLLM([]))
        with pytest.raises(InvalidChatRequestException):
            await orchestrator.prepare_turn(
                chat_request(uuid7(), "Hi", model="gpt-unknown"), OWNER
            )

    @pytest.mark.asyncio
    async def test_request_without_user_message(self, make_orchestrator):
        orchestrator = make_orchestrator(FakeChatLLM([]))
        request = ChatRequest.model_validate(
            {"id": str(uuid7()), "messages": [{"role": "assistant", "content": "Hi"}]}
        )
        with pytest.raises(InvalidChatRequestException):
            await orchestrator.prepare_turn(request, OWNER)

    @pytest.mark.asyncio
    async def test_foreign_chat_is_rejected_before_saving(
        self, make_orchestrator, chat_service, chat_repository
    ):
        chat_id = uuid7()
        await chat_service.ensure_chat(chat_id, OWNER.user_id, static_title)
        simple_llm = FakeSimpleLLM()
        orchestrator = make_orchestrator(FakeChatLLM([]), simple_llm=simple_llm)

        with pytest.raises(ChatAccessDeniedException):
            await orchestrator.prepare_turn(chat_request(chat_id, "Hi"), INTRUDER)

        assert chat_repository.messages == {}
        assert simple_llm.calls == []

    @pytest.mark.asyncio
    async def test_history_is_replayed(self, make_orchestrator):
        chat_llm = FakeChatLLM([text_chunks("First"), text_chunks("Second")])
        orchestrator = make_orchestrator(chat_llm)
        chat_id = uuid7()

        turn = await orchestrator.prepare_turn(chat_request(chat_id, "One"), OWNER)
        await collect(orchestrator.stream_turn(turn))
        turn = await orchestrator.prepare_turn(chat_request(chat_id, "Two"), OWNER)

        assert [type(m) for m in turn.messages] == [
            SystemMessage,
            HumanMessage,
            AIMessage,
            HumanMessage,
        ]
        assert turn.messages[-1].content == "Two"
