"""
Chat controller/router for FastAPI endpoints.

This module defines the conversational endpoint, which streams one answer
as NDJSON events, and the endpoints for chat history and message votes.
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, status
from fastapi.responses import Response, StreamingResponse

from salesbot.controller.utils import NDJSON_MEDIA_TYPE, ndjson_stream
from salesbot.dependencies.agent import ChatServiceDep, OrchestratorDep
from salesbot.dependencies.auth import CurrentUserDep
from salesbot.models import ListResponseModel, ResponseModel
from salesbot.models.chat import ChatInDB, ChatRequest, MessageInDB, VoteInDB, VoteRequest

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/chat",
    tags=["Chat"],
    responses={
        401: {"description": "Unauthorized - Missing or invalid session"},
        403: {"description": "Forbidden - Chat belongs to another user"},
        404: {"description": "Resource Not Found"},
        500: {"description": "Internal Server Error"},
    },
)


@router.post(
    "",
    response_class=StreamingResponse,
    responses={
        200: {
            "description": "Stream of text, reasoning, tool-call, tool-result, finish and error events",
            "content": {NDJSON_MEDIA_TYPE: {}},
        },
        400: {"description": "No user message or unknown model"},
    },
    summary="Send a chat message",
    description="Answer the most recent user message, streaming the reply as NDJSON",
)
async def chat(
    request: ChatRequest,
    current_user: CurrentUserDep,
    orchestrator: OrchestratorDep,
):
    """
    Run one conversational turn.

    The chat is created on first use with a generated title. The user
    message is stored before streaming starts; the answer is stored once
    the stream completes.
    """
    turn = await orchestrator.prepare_turn(request, current_user)
    return StreamingResponse(
        ndjson_stream(orchestrator.stream_turn(turn)),
        media_type=NDJSON_MEDIA_TYPE,
    )


@router.get(
    "",
    response_model=ListResponseModel[ChatInDB],
    summary="List chats",
    description="Chats of the current user, newest first",
)
async def list_chats(current_user: CurrentUserDep, chat_service: ChatServiceDep):
    chats = await chat_service.list_chats(current_user.user_id)
    return ListResponseModel(
        status_code=status.HTTP_200_OK, data=chats, total_count=len(chats)
    )


@router.get(
    "/{chat_id}/messages",
    response_model=ListResponseModel[MessageInDB],
    summary="List chat messages",
    description="Messages of a chat in chronological order",
)
async def list_messages(
    chat_id: UUID,
    current_user: CurrentUserDep,
    chat_service: ChatServiceDep,
):
    messages = await chat_service.list_messages(chat_id, current_user.user_id)
    return ListResponseModel(
        status_code=status.HTTP_200_OK, data=messages, total_count=len(messages)
    )


@router.delete(
    "/{chat_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={204: {"description": "Chat deleted successfully"}},
    summary="Delete a chat",
    description="Delete a chat together with its messages and votes",
)
async def delete_chat(
    chat_id: UUID,
    current_user: CurrentUserDep,
    chat_service: ChatServiceDep,
):
    await chat_service.delete_chat(chat_id, current_user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch(
    "/{chat_id}/vote",
    response_model=ResponseModel[VoteInDB],
    summary="Vote on a message",
    description="Up or down vote an assistant message; a new vote replaces the old one",
)
async def vote_message(
    chat_id: UUID,
    vote: VoteRequest,
    current_user: CurrentUserDep,
    chat_service: ChatServiceDep,
):
    result = await chat_service.vote(chat_id, current_user.user_id, vote)
    return ResponseModel(status_code=status.HTTP_200_OK, data=result)


@router.get(
    "/{chat_id}/votes",
    response_model=ListResponseModel[VoteInDB],
    summary="List votes",
    description="Votes recorded on the messages of a chat",
)
async def list_votes(
    chat_id: UUID,
    current_user: CurrentUserDep,
    chat_service: ChatServiceDep,
):
    votes = await chat_service.list_votes(chat_id, current_user.user_id)
    return ListResponseModel(
        status_code=status.HTTP_200_OK, data=votes, total_count=len(votes)
    )
