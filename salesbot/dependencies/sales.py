from typing import Annotated

from fastapi import Depends

from salesbot.agent.embeddings import EmbeddingClient, get_embedding_client
from salesbot.dependencies.common import DatabasePoolDep, SettingsDep
from salesbot.repository.sales import SalesRepository
from salesbot.repository.vector import VectorIndex, get_vector_index
from salesbot.service.ingestion import SalesIngestionService
from salesbot.service.retrieval import RelevanceRetriever
from salesbot.service.sales import SalesService


def get_sales_repository(db_pool: DatabasePoolDep) -> SalesRepository:
    return SalesRepository(db_pool)


SalesRepositoryDep = Annotated[SalesRepository, Depends(get_sales_repository)]
EmbeddingClientDep = Annotated[EmbeddingClient, Depends(get_embedding_client)]
VectorIndexDep = Annotated[VectorIndex, Depends(get_vector_index)]


def get_sales_service(
    repository: SalesRepositoryDep,
    settings: SettingsDep,
) -> SalesService:
    return SalesService(repository, settings.SALES)


SalesServiceDep = Annotated[SalesService, Depends(get_sales_service)]


def get_retriever(
    embedder: EmbeddingClientDep,
    vector_index: VectorIndexDep,
    repository: SalesRepositoryDep,
    sales_service: SalesServiceDep,
    settings: SettingsDep,
) -> RelevanceRetriever:
    return RelevanceRetriever(
        embedder, vector_index, repository, sales_service, settings.AGENT
    )


RetrieverDep = Annotated[RelevanceRetriever, Depends(get_retriever)]


def get_ingestion_service(
    repository: SalesRepositoryDep,
    vector_index: VectorIndexDep,
    embedder: EmbeddingClientDep,
    settings: SettingsDep,
) -> SalesIngestionService:
    return SalesIngestionService(repository, vector_index, embedder, settings.SALES)


SalesIngestionServiceDep = Annotated[
    SalesIngestionService, Depends(get_ingestion_service)
]
