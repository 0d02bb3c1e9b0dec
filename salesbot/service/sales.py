"""
Sales aggregation engine.

Turns validated sales requests into plain-text answers for the language
model. Empty results and unknown payment methods come back as descriptive
sentences rather than errors so the model can relay them; missing
conditionally-required fields raise SalesValidationException before any
query runs.
"""

import math
from datetime import date
from decimal import Decimal
from typing import Optional

import structlog

from salesbot.exceptions.sales import SalesValidationException
from salesbot.models.sales import (
    AggregateGroupBy,
    AggregateSortBy,
    AnalyticsType,
    DailyTotal,
    MetadataQuery,
    SaleRecord,
    SalesAnalyticsRequest,
    SalesFilter,
    SalesOperation,
    SortOrder,
    TopAggregatesRequest,
    TrendBucket,
    TrendInterval,
    TrendSortBy,
)
from salesbot.repository.sales import SalesRepository
from salesbot.settings.sales import SalesConfig

logger = structlog.get_logger(__name__)

NO_SALES_RECORDS = "No sales records found for the given filters."


def week_of_year(day: date) -> int:
    """
    Sunday-based week number: week 1 runs from January 1st to the first
    Saturday. This is not ISO-8601 week numbering.
    """
    jan1 = date(day.year, 1, 1)
    jan1_weekday = jan1.isoweekday() % 7  # Sunday = 0
    return math.ceil(((day - jan1).days + jan1_weekday + 1) / 7)


def period_key(day: date, interval: TrendInterval) -> str:
    if interval == TrendInterval.DAY:
        return day.isoformat()
    if interval == TrendInterval.WEEK:
        return f"{day.year}-W{week_of_year(day)}"
    return f"{day.year}-{day.month:02d}"


def bucket_daily_totals(
    daily_totals: list[DailyTotal], interval: TrendInterval
) -> list[TrendBucket]:
    """Fold per-day totals into day/week/month buckets, in chronological order."""
    buckets: dict[str, TrendBucket] = {}
    for daily in sorted(daily_totals, key=lambda d: d.day):
        key = period_key(daily.day, interval)
        bucket = buckets.get(key)
        if bucket is None:
            buckets[key] = TrendBucket(
                period=key,
                start=daily.day,
                total_sales=daily.total_sales,
                count=daily.count,
            )
        else:
            bucket.total_sales += daily.total_sales
            bucket.count += daily.count
    return list(buckets.values())


def sort_buckets(
    buckets: list[TrendBucket],
    sort_by: TrendSortBy,
    sort_order: SortOrder,
    limit: Optional[int] = None,
) -> list[TrendBucket]:
    if sort_by == TrendSortBy.TOTAL_SALES:
        key = lambda b: (b.total_sales, b.start)  # noqa: E731
    elif sort_by == TrendSortBy.COUNT:
        key = lambda b: (b.count, b.start)  # noqa: E731
    else:
        key = lambda b: b.start  # noqa: E731
    ordered = sorted(buckets, key=key, reverse=sort_order == SortOrder.DESC)
    return ordered[:limit] if limit else ordered


class SalesService:
    """
    Answers structured questions over the sales table.

    Every public method returns text that can be placed directly in a
    model's context window.
    """

    def __init__(self, repository: SalesRepository, config: SalesConfig) -> None:
        self.repository = repository
        self.config = config

    def money(self, value: Decimal | int | float) -> str:
        return f"{self.config.CURRENCY_SYMBOL} {Decimal(value):,.2f}"

    def format_sale(self, sale: SaleRecord) -> str:
        return (
            f"Invoice: {sale.invoice}, Customer: {sale.customer}, "
            f"PurchaseDate: {sale.purchase_date.isoformat()}, Item: {sale.item}, "
            f"Quantity: {sale.quantity}, Total: {self.money(sale.total)}, "
            f"Payment: {sale.payment_method}"
        )

    def format_sale_context(self, sale: SaleRecord) -> str:
        """Full row rendering used for retrieved context."""
        notes = ", ".join(part for part in (sale.comment, sale.remarks) if part)
        return (
            f"Invoice: {sale.invoice}, Customer: {sale.customer}, "
            f"PurchaseDate: {sale.purchase_date.isoformat()}, ItemDescription: {sale.item}, "
            f"Quantity: {sale.quantity}, PricePerUnit: {self.money(sale.price)}, "
            f"Total: {self.money(sale.total)}, Payment: {sale.payment_method}, "
            f"CustomerAddress: {sale.address}, Notes: {notes or '-'}"
        )

    def validate(self, request: SalesAnalyticsRequest) -> None:
        """Check fields that are only required for some operations."""
        if request.operation == SalesOperation.ANALYTICS and request.analytics_type is None:
            raise SalesValidationException(
                "analyticsType is required when operation is ANALYTICS",
                field="analyticsType",
            )
        if request.operation == SalesOperation.TREND and request.group_by is None:
            raise SalesValidationException(
                "groupBy (DAY, WEEK or MONTH) is required when operation is TREND",
                field="groupBy",
            )

    async def aggregate(self, request: SalesAnalyticsRequest) -> str:
        """
        Run one FILTER, SUMMARY, ANALYTICS or TREND request.

        Raises:
            SalesValidationException: If a conditionally required field is missing
        """
        self.validate(request)
        logger.info(
            "Running sales aggregation",
            operation=str(request.operation),
            filters=request.filters().model_dump(exclude_none=True, mode="json"),
        )
        filters = request.filters()
        if request.operation == SalesOperation.FILTER:
            return await self._filter(filters)
        if request.operation == SalesOperation.SUMMARY:
            return await self._summary(filters)
        if request.operation == SalesOperation.ANALYTICS:
            return await self._analytics(filters, request.analytics_type)
        return await self._trend(
            filters,
            request.group_by,
            request.sort_by,
            request.sort_order,
            request.limit,
        )

    async def _filter(self, filters: SalesFilter) -> str:
        limit = self.config.FILTER_ROW_LIMIT
        sales = await self.repository.list_sales(filters, limit=limit + 1)
        if not sales:
            return NO_SALES_RECORDS

        lines = [self.format_sale(sale) for sale in sales[:limit]]
        if len(sales) > limit:
            totals = await self.repository.get_totals(filters)
            lines.append(f"... and {totals.count - limit} more records")
        return "\n".join(lines)

    async def _summary(self, filters: SalesFilter) -> str:
        groups = await self.repository.aggregate_by(
            AggregateGroupBy.PAYMENT_METHOD, filters, AggregateSortBy.TOTAL_SALES
        )
        if not groups:
            return NO_SALES_RECORDS
        return "\n".join(
            f"Payment Method: {group.group}, Count: {group.count}, "
            f"Total: {self.money(group.total_sales)}"
            for group in groups
        )

    async def _analytics(self, filters: SalesFilter, analytics_type: AnalyticsType) -> str:
        if filters.payment_method:
            methods = await self.repository.distinct_payment_methods()
            if filters.payment_method not in methods:
                logger.info(
                    "Unknown payment method requested",
                    payment_method=filters.payment_method,
                )
                return (
                    f"Payment method '{filters.payment_method}' is not available. "
                    f"Available payment methods: {', '.join(methods)}"
                )

        totals = await self.repository.get_totals(filters)
        if analytics_type == AnalyticsType.TOTAL_SALES:
            return f"Total sales: {self.money(totals.total)}"
        if analytics_type == AnalyticsType.AVERAGE_SALES:
            average = totals.total / totals.count if totals.count else Decimal("0")
            return f"Average sale: {self.money(average)}"
        return f"Number of sales: {totals.count}"

    async def _trend(
        self,
        filters: SalesFilter,
        interval: TrendInterval,
        sort_by: TrendSortBy,
        sort_order: SortOrder,
        limit: Optional[int],
    ) -> str:
        daily_totals = await self.repository.daily_totals(filters)
        if not daily_totals:
            return NO_SALES_RECORDS

        buckets = sort_buckets(
            bucket_daily_totals(daily_totals, interval), sort_by, sort_order, limit
        )
        return "\n".join(
            f"Period: {bucket.period}, Total Sales: {self.money(bucket.total_sales)}, "
            f"Sales Count: {bucket.count}"
            for bucket in buckets
        )

    async def top_aggregates(self, request: TopAggregatesRequest) -> str:
        """
        Top groups by item, state (address), customer, invoice or payment method.

        ITEM groups report the quantity-weighted average unit price. When a
        region filter is present, invoice statistics for the same filtered
        rows are appended.
        """
        filters = request.filters()
        limit = request.limit or self.config.DEFAULT_TOP_LIMIT
        groups = await self.repository.aggregate_by(
            request.group_by, filters, request.sort_by, limit
        )
        if not groups:
            return NO_SALES_RECORDS

        lines = []
        for group in groups:
            if request.group_by == AggregateGroupBy.ITEM:
                average_price = (
                    group.total_price / group.total_quantity
                    if group.total_quantity
                    else Decimal("0")
                )
                lines.append(
                    f"Item: {group.group}, Count: {group.count}, "
                    f"Total Quantity Sold: {group.total_quantity}, "
                    f"Total Sales: {self.money(group.total_sales)}, "
                    f"Average Price: {self.money(average_price)}"
                )
            else:
                lines.append(
                    f"Group ({request.group_by}): {group.group}, Count: {group.count}, "
                    f"Total Sales: {self.money(group.total_sales)}, "
                    f"Total Quantity: {group.total_quantity}"
                )
        result = "\n".join(lines)

        if filters.region:
            trend = await self.repository.invoice_trend(filters)
            average_invoice = (
                trend.total_amount / trend.invoice_count
                if trend.invoice_count
                else Decimal("0")
            )
            result += (
                f"\n\nRegion Filter: {filters.region}"
                f"\nUnique Invoices: {trend.invoice_count}"
                f"\nTotal Invoice Amount: {self.money(trend.total_amount)}"
                f"\nAverage Invoice Value: {self.money(average_invoice)}"
            )
        return result

    async def invoice_details(self, invoice: str) -> str:
        """Every line item of an invoice and the overall invoice total."""
        sales = await self.repository.get_sales_by_invoice(invoice)
        if not sales:
            return f"No records found for invoice {invoice}."

        details = "\n".join(
            f"Customer: {sale.customer}, PurchaseDate: {sale.purchase_date.isoformat()}, "
            f"Address: {sale.address}, Item: {sale.item}, Quantity: {sale.quantity}, "
            f"Price: {self.money(sale.price)}, Total: {self.money(sale.total)}, "
            f"Payment: {sale.payment_method}"
            for sale in sales
        )
        overall = sum((sale.total for sale in sales), Decimal("0"))
        return f"Invoice: {invoice}\n{details}\nOverall Invoice Total: {self.money(overall)}"

    async def metadata(self, query_type: MetadataQuery) -> str:
        if query_type == MetadataQuery.PAYMENT_METHODS:
            methods = await self.repository.distinct_payment_methods()
            if not methods:
                return "No payment methods found in the dataset."
            return f"Available payment methods: {', '.join(methods)}"

        if query_type == MetadataQuery.REGIONS:
            addresses = await self.repository.distinct_addresses()
            if not addresses:
                return "No addresses found in the dataset."
            return f"Available addresses: {', '.join(addresses)}"

        date_range = await self.repository.date_range()
        if date_range.earliest is None or date_range.latest is None:
            return "No sales records found in the dataset."
        return (
            f"Sales data ranges from {date_range.earliest.date().isoformat()} "
            f"to {date_range.latest.date().isoformat()}."
        )
