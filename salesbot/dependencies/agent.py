from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from langchain_openai import ChatOpenAI

from salesbot.agent.orchestrator import (
    SalesAgentOrchestrator,
    create_chat_llm,
    create_simple_llm,
)
from salesbot.agent.router import ArgumentRepairer, ToolRouter
from salesbot.agent.tools import build_sales_tools
from salesbot.dependencies.common import DatabasePoolDep, SettingsDep
from salesbot.dependencies.sales import RetrieverDep, SalesServiceDep
from salesbot.repository.chat import ChatRepository
from salesbot.service.chat import ChatService
from salesbot.settings import get_settings


@lru_cache
def get_simple_llm() -> ChatOpenAI:
    return create_simple_llm(get_settings().AGENT)


@lru_cache
def get_chat_llm(model: str) -> ChatOpenAI:
    return create_chat_llm(get_settings().AGENT, model)


def get_chat_service(db_pool: DatabasePoolDep) -> ChatService:
    return ChatService(ChatRepository(db_pool))


ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]


def get_tool_router(
    sales_service: SalesServiceDep,
    retriever: RetrieverDep,
    settings: SettingsDep,
) -> ToolRouter:
    repairer = (
        ArgumentRepairer(get_simple_llm())
        if settings.AGENT.ENABLE_ARGUMENT_REPAIR
        else None
    )
    return ToolRouter(
        build_sales_tools(sales_service, retriever),
        repairer=repairer,
        publish_aliases=settings.AGENT.PUBLISH_TOOL_ALIASES,
    )


ToolRouterDep = Annotated[ToolRouter, Depends(get_tool_router)]


def get_orchestrator(
    router: ToolRouterDep,
    retriever: RetrieverDep,
    chat_service: ChatServiceDep,
    settings: SettingsDep,
) -> SalesAgentOrchestrator:
    return SalesAgentOrchestrator(
        settings.AGENT,
        router,
        retriever,
        chat_service,
        simple_llm=get_simple_llm(),
        chat_llm_factory=get_chat_llm,
    )


OrchestratorDep = Annotated[SalesAgentOrchestrator, Depends(get_orchestrator)]
