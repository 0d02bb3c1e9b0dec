"""
Relevance retrieval over sale embeddings.
"""

from typing import Optional

import structlog

from salesbot.agent.embeddings import EmbeddingClient
from salesbot.models.sales import AnalyticsType, ScoredSale, SalesAnalyticsRequest, SalesOperation
from salesbot.repository.sales import SalesRepository
from salesbot.repository.vector import VectorIndex
from salesbot.service.sales import SalesService
from salesbot.settings.agent import AgentConfig

logger = structlog.get_logger(__name__)

NO_RELEVANT_SALES = "No relevant sales records found."


class RelevanceRetriever:
    """
    Finds the sales most similar to a user question.

    Queries are upper-cased before embedding because item descriptions are
    stored upper-cased.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        vector_index: VectorIndex,
        repository: SalesRepository,
        sales_service: SalesService,
        config: AgentConfig,
    ) -> None:
        self.embedder = embedder
        self.vector_index = vector_index
        self.repository = repository
        self.sales_service = sales_service
        self.config = config

    async def retrieve(
        self,
        query_text: str,
        distance_threshold: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> list[ScoredSale]:
        """
        Rank stored sales by cosine distance to the query.

        Args:
            query_text: Free text question
            distance_threshold: Maximum distance kept (inclusive); defaults
                to the configured threshold
            limit: Maximum number of results, None for all

        Returns:
            Sales ordered by ascending distance, ties broken by id
        """
        threshold = (
            self.config.RETRIEVAL_DISTANCE_THRESHOLD
            if distance_threshold is None
            else distance_threshold
        )
        embedding = await self.embedder.embed(query_text.upper())
        scored = await self.vector_index.search(embedding, threshold, limit)
        logger.debug(
            "Relevant sales retrieved",
            matches=len(scored),
            threshold=threshold,
        )
        return scored

    def wants_total_sales(self, query_text: str) -> bool:
        lowered = query_text.lower()
        return any(keyword in lowered for keyword in self.config.TOTAL_SALES_KEYWORDS)

    async def retrieve_relevant_sales(self, query_text: str) -> str:
        """
        Context text for a question.

        Questions about the overall total are answered with the TOTAL_SALES
        figure; everything else gets the closest sale rows.
        """
        if self.wants_total_sales(query_text):
            return await self.sales_service.aggregate(
                SalesAnalyticsRequest(
                    operation=SalesOperation.ANALYTICS,
                    analytics_type=AnalyticsType.TOTAL_SALES,
                )
            )

        scored = await self.retrieve(query_text, limit=self.config.RETRIEVAL_LIMIT)
        if not scored:
            return NO_RELEVANT_SALES

        sales = await self.repository.get_sales_by_ids([sale.id for sale in scored])
        if not sales:
            return NO_RELEVANT_SALES
        return "\n".join(self.sales_service.format_sale_context(sale) for sale in sales)
