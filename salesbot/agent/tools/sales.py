"""
Sales tools for the agent.

Each tool delegates to the sales aggregation engine or the relevance
retriever and returns plain text.
"""

from salesbot.agent.tools.base import ToolDefinition
from salesbot.models.sales import (
    InformationRequest,
    InvoiceDetailsRequest,
    SalesAnalyticsRequest,
    SalesMetadataRequest,
    TopAggregatesRequest,
)
from salesbot.service.retrieval import RelevanceRetriever
from salesbot.service.sales import SalesService

SALES_ANALYTICS_DESCRIPTION = (
    "Run sales analytics over the dataset with optional filters (date range, "
    "payment method, invoice, customer, item, region). Choose the mode with "
    "'operation': 'FILTER' lists matching sale records, 'SUMMARY' groups sales "
    "by payment method, 'ANALYTICS' computes the total, average or count "
    "(set 'analyticsType'), and 'TREND' shows sales over time (set 'groupBy' "
    "to DAY, WEEK or MONTH)."
)

TOP_AGGREGATES_DESCRIPTION = (
    "Rank groups of sales. Group by ITEM, STATE, CUSTOMER, INVOICE or "
    "PAYMENT_METHOD and sort by TOTAL_SALES, COUNT or QUANTITY. ITEM groups "
    "also report the average selling price; other groups report count, total "
    "sales and total quantity. Filter by time period or region when needed; "
    "with a region, invoice statistics for that region are appended."
)

INVOICE_DETAILS_DESCRIPTION = (
    "Look up an invoice by its number, listing every item sold on it and the "
    "overall invoice total."
)

SALES_METADATA_DESCRIPTION = (
    "Describe the sales dataset itself. Query types: 'paymentMethods', "
    "'regions', or 'dateRange'."
)

INFORMATION_DESCRIPTION = (
    "Search the sales knowledge base for records related to a question when "
    "semantic search is required."
)


def build_sales_tools(
    sales_service: SalesService, retriever: RelevanceRetriever
) -> list[ToolDefinition]:
    """Create the tools answered by the sales engine and retriever."""

    async def get_sales_analytics(args: SalesAnalyticsRequest) -> str:
        return await sales_service.aggregate(args)

    async def get_top_aggregates(args: TopAggregatesRequest) -> str:
        return await sales_service.top_aggregates(args)

    async def get_invoice_details(args: InvoiceDetailsRequest) -> str:
        return await sales_service.invoice_details(args.invoice)

    async def get_sales_metadata(args: SalesMetadataRequest) -> str:
        return await sales_service.metadata(args.query_type)

    async def get_information(args: InformationRequest) -> str:
        return await retriever.retrieve_relevant_sales(args.query)

    return [
        ToolDefinition(
            name="getSalesAnalytics",
            description=SALES_ANALYTICS_DESCRIPTION,
            args_model=SalesAnalyticsRequest,
            handler=get_sales_analytics,
        ),
        ToolDefinition(
            name="getTopAggregates",
            description=TOP_AGGREGATES_DESCRIPTION,
            args_model=TopAggregatesRequest,
            handler=get_top_aggregates,
        ),
        ToolDefinition(
            name="getInvoiceDetails",
            description=INVOICE_DETAILS_DESCRIPTION,
            args_model=InvoiceDetailsRequest,
            handler=get_invoice_details,
        ),
        ToolDefinition(
            name="getSalesMetaData",
            description=SALES_METADATA_DESCRIPTION,
            args_model=SalesMetadataRequest,
            handler=get_sales_metadata,
        ),
        ToolDefinition(
            name="getInformation",
            description=INFORMATION_DESCRIPTION,
            args_model=InformationRequest,
            handler=get_information,
        ),
    ]
