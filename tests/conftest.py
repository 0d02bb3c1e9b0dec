import pytest

from salesbot.repository.vector import InMemoryVectorIndex
from salesbot.service.chat import ChatService
from salesbot.service.retrieval import RelevanceRetriever
from salesbot.service.sales import SalesService
from salesbot.settings.agent import AgentConfig
from salesbot.settings.sales import SalesConfig
from tests.fakes import (
    FakeEmbedder,
    InMemoryChatRepository,
    InMemorySalesRepository,
    make_sale,
    utc,
)


@pytest.fixture
def sample_sales():
    """Three invoices across two months and two payment methods."""
    return [
        make_sale("J100", "WIDGET A", "10.00", utc(2024, 1, 2), quantity=2, price="5.00"),
        make_sale("J100", "WIDGET B", "15.00", utc(2024, 1, 2), quantity=3, price="5.00"),
        make_sale(
            "J101",
            "WIDGET A",
            "24.00",
            utc(2024, 1, 9),
            quantity=4,
            price="6.00",
            customer="BETA STORE",
            address="Penang, Malaysia",
            payment_method="Credit Card",
        ),
        make_sale(
            "J102",
            "GADGET",
            "100.00",
            utc(2024, 2, 15),
            customer="GAMMA HOLDINGS",
            address="Johor Bahru, Johor, Malaysia",
        ),
    ]


@pytest.fixture
def sales_config():
    return SalesConfig()


@pytest.fixture
def agent_config():
    return AgentConfig()


@pytest.fixture
def sales_repository(sample_sales):
    return InMemorySalesRepository(sample_sales)


@pytest.fixture
def sales_service(sales_repository, sales_config):
    return SalesService(sales_repository, sales_config)


@pytest.fixture
def vector_index():
    return InMemoryVectorIndex()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def retriever(embedder, vector_index, sales_repository, sales_service, agent_config):
    return RelevanceRetriever(
        embedder, vector_index, sales_repository, sales_service, agent_config
    )


@pytest.fixture
def chat_repository():
    return InMemoryChatRepository()


@pytest.fixture
def chat_service(chat_repository):
    return ChatService(chat_repository)
