"""Tests for the sales aggregation engine."""

import re
from datetime import date
from decimal import Decimal

import pytest

from salesbot.exceptions.sales import SalesValidationException
from salesbot.models.sales import (
    AggregateGroupBy,
    AggregateSortBy,
    AnalyticsType,
    DailyTotal,
    MetadataQuery,
    SalesAnalyticsRequest,
    SalesOperation,
    SortOrder,
    TopAggregatesRequest,
    TrendInterval,
    TrendSortBy,
)
from salesbot.service.sales import (
    NO_SALES_RECORDS,
    SalesService,
    bucket_daily_totals,
    period_key,
    week_of_year,
)
from salesbot.settings.sales import SalesConfig
from tests.fakes import InMemorySalesRepository, make_sale, utc


class TestWeekNumbering:
    """Weeks start on Sunday and week 1 begins on January 1st."""

    def test_first_saturday_closes_week_one(self):
        # 2024-01-01 is a Monday
        assert week_of_year(date(2024, 1, 1)) == 1
        assert week_of_year(date(2024, 1, 6)) == 1

    def test_sunday_opens_next_week(self):
        assert week_of_year(date(2024, 1, 7)) == 2
        assert week_of_year(date(2024, 1, 9)) == 2

    def test_year_starting_on_sunday(self):
        # 2023-01-01 is a Sunday
        assert week_of_year(date(2023, 1, 1)) == 1
        assert week_of_year(date(2023, 1, 7)) == 1
        assert week_of_year(date(2023, 1, 8)) == 2

    def test_period_keys(self):
        day = date(2024, 3, 5)
        assert period_key(day, TrendInterval.DAY) == "2024-03-05"
        assert period_key(day, TrendInterval.MONTH) == "2024-03"
        assert period_key(day, TrendInterval.WEEK) == f"2024-W{week_of_year(day)}"

    def test_buckets_keep_earliest_day_as_start(self):
        totals = [
            DailyTotal(day=date(2024, 1, 20), total_sales=5, count=1),
            DailyTotal(day=date(2024, 1, 3), total_sales=7, count=2),
        ]
        buckets = bucket_daily_totals(totals, TrendInterval.MONTH)

        assert len(buckets) == 1
        assert buckets[0].start == date(2024, 1, 3)
        assert buckets[0].total_sales == 12
        assert buckets[0].count == 3


class TestSalesAnalytics:
    """FILTER, SUMMARY, ANALYTICS and TREND requests."""

    @pytest.mark.asyncio
    async def test_total_sales(self, sales_service):
        result = await sales_service.aggregate(
            SalesAnalyticsRequest(
                operation=SalesOperation.ANALYTICS,
                analytics_type=AnalyticsType.TOTAL_SALES,
            )
        )
        assert result == "Total sales: RM 149.00"

    @pytest.mark.asyncio
    async def test_average_and_count(self, sales_service):
        average = await sales_service.aggregate(
            SalesAnalyticsRequest(
                operation=SalesOperation.ANALYTICS,
                analytics_type=AnalyticsType.AVERAGE_SALES,
            )
        )
        count = await sales_service.aggregate(
            SalesAnalyticsRequest(
                operation=SalesOperation.ANALYTICS,
                analytics_type=AnalyticsType.SALES_COUNT,
            )
        )
        assert average == "Average sale: RM 37.25"
        assert count == "Number of sales: 4"

    @pytest.mark.asyncio
    async def test_unknown_payment_method_lists_available_methods(self, sales_service):
        result = await sales_service.aggregate(
            SalesAnalyticsRequest(
                operation=SalesOperation.ANALYTICS,
                analytics_type=AnalyticsType.TOTAL_SALES,
                payment_method="Bitcoin",
            )
        )
        assert result == (
            "Payment method 'Bitcoin' is not available. "
            "Available payment methods: Cash, Credit Card"
        )

    @pytest.mark.asyncio
    async def test_payment_method_filter(self, sales_service):
        result = await sales_service.aggregate(
            SalesAnalyticsRequest.model_validate(
                {
                    "operation": "ANALYTICS",
                    "analyticsType": "TOTAL_SALES",
                    "paymentMethod": "Credit Card",
                }
            )
        )
        assert result == "Total sales: RM 24.00"

    @pytest.mark.asyncio
    async def test_filter_lists_newest_first(self, sales_service):
        result = await sales_service.aggregate(
            SalesAnalyticsRequest(operation=SalesOperation.FILTER, item="widget a")
        )
        lines = result.splitlines()

        assert len(lines) == 2
        assert lines[0].startswith("Invoice: J101, Customer: BETA STORE")
        assert "Total: RM 24.00" in lines[0]
        assert lines[1].startswith("Invoice: J100")

    @pytest.mark.asyncio
    async def test_filter_is_capped(self, sample_sales):
        service = SalesService(
            InMemorySalesRepository(sample_sales), SalesConfig(FILTER_ROW_LIMIT=2)
        )
        result = await service.aggregate(
            SalesAnalyticsRequest(operation=SalesOperation.FILTER)
        )
        lines = result.splitlines()

        assert len(lines) == 3
        assert lines[-1] == "... and 2 more records"

    @pytest.mark.asyncio
    async def test_end_date_includes_whole_day(self, sales_service):
        result = await sales_service.aggregate(
            SalesAnalyticsRequest.model_validate(
                {
                    "operation": "ANALYTICS",
                    "analyticsType": "SALES_COUNT",
                    "startDate": "2024-01-02",
                    "endDate": "2024-01-09T00:00:00Z",
                }
            )
        )
        assert result == "Number of sales: 3"

    @pytest.mark.asyncio
    async def test_no_matching_records(self, sales_service):
        result = await sales_service.aggregate(
            SalesAnalyticsRequest(
                operation=SalesOperation.FILTER, start_date=date(2030, 1, 1)
            )
        )
        assert result == NO_SALES_RECORDS

    @pytest.mark.asyncio
    async def test_summary_by_payment_method(self, sales_service):
        result = await sales_service.aggregate(
            SalesAnalyticsRequest(operation=SalesOperation.SUMMARY)
        )
        assert result.splitlines() == [
            "Payment Method: Cash, Count: 3, Total: RM 125.00",
            "Payment Method: Credit Card, Count: 1, Total: RM 24.00",
        ]

    @pytest.mark.asyncio
    async def test_monthly_trend(self, sales_service):
        result = await sales_service.aggregate(
            SalesAnalyticsRequest(
                operation=SalesOperation.TREND, group_by=TrendInterval.MONTH
            )
        )
        assert result.splitlines() == [
            "Period: 2024-01, Total Sales: RM 49.00, Sales Count: 3",
            "Period: 2024-02, Total Sales: RM 100.00, Sales Count: 1",
        ]

    @pytest.mark.asyncio
    async def test_weekly_trend_keys(self, sales_service):
        result = await sales_service.aggregate(
            SalesAnalyticsRequest(
                operation=SalesOperation.TREND, group_by=TrendInterval.WEEK
            )
        )
        periods = [line.split(",")[0] for line in result.splitlines()]
        assert periods == ["Period: 2024-W1", "Period: 2024-W2", "Period: 2024-W7"]

    @pytest.mark.asyncio
    async def test_trend_sorted_by_total_with_limit(self, sales_service):
        result = await sales_service.aggregate(
            SalesAnalyticsRequest.model_validate(
                {
                    "operation": "TREND",
                    "groupBy": "DAY",
                    "sortBy": TrendSortBy.TOTAL_SALES,
                    "sortOrder": SortOrder.DESC,
                    "limit": "2",
                }
            )
        )
        assert result.splitlines() == [
            "Period: 2024-02-15, Total Sales: RM 100.00, Sales Count: 1",
            "Period: 2024-01-02, Total Sales: RM 25.00, Sales Count: 2",
        ]

    @pytest.mark.asyncio
    async def test_analytics_requires_type(self, sales_service):
        with pytest.raises(SalesValidationException) as exc_info:
            await sales_service.aggregate(
                SalesAnalyticsRequest(operation=SalesOperation.ANALYTICS)
            )
        assert exc_info.value.field == "analyticsType"

    @pytest.mark.asyncio
    async def test_trend_requires_interval(self, sales_service):
        with pytest.raises(SalesValidationException) as exc_info:
            await sales_service.aggregate(
                SalesAnalyticsRequest(operation=SalesOperation.TREND)
            )
        assert exc_info.value.field == "groupBy"


class TestTopAggregates:
    """Grouped rankings and the region invoice block."""

    @pytest.mark.asyncio
    async def test_items_report_weighted_average_price(self, sales_service):
        result = await sales_service.top_aggregates(
            TopAggregatesRequest(group_by=AggregateGroupBy.ITEM)
        )
        assert result.splitlines() == [
            "Item: GADGET, Count: 1, Total Quantity Sold: 1, "
            "Total Sales: RM 100.00, Average Price: RM 100.00",
            "Item: WIDGET A, Count: 2, Total Quantity Sold: 6, "
            "Total Sales: RM 34.00, Average Price: RM 5.67",
            "Item: WIDGET B, Count: 1, Total Quantity Sold: 3, "
            "Total Sales: RM 15.00, Average Price: RM 5.00",
        ]

    @pytest.mark.asyncio
    async def test_sort_by_quantity_with_limit(self, sales_service):
        result = await sales_service.top_aggregates(
            TopAggregatesRequest(
                group_by=AggregateGroupBy.CUSTOMER,
                sort_by=AggregateSortBy.QUANTITY,
                limit=1,
            )
        )
        assert result == (
            "Group (CUSTOMER): ACME TRADING, Count: 2, "
            "Total Sales: RM 25.00, Total Quantity: 5"
        )

    @pytest.mark.asyncio
    async def test_region_filter_appends_invoice_statistics(self, sales_service):
        result = await sales_service.top_aggregates(
            TopAggregatesRequest(group_by=AggregateGroupBy.ITEM, region="kuala")
        )
        assert result.endswith(
            "\n\nRegion Filter: kuala"
            "\nUnique Invoices: 1"
            "\nTotal Invoice Amount: RM 25.00"
            "\nAverage Invoice Value: RM 25.00"
        )

    @pytest.mark.asyncio
    async def test_empty_result(self, sales_service):
        result = await sales_service.top_aggregates(
            TopAggregatesRequest(group_by=AggregateGroupBy.ITEM, customer="nobody")
        )
        assert result == NO_SALES_RECORDS


class TestInvoiceAndMetadata:
    @pytest.mark.asyncio
    async def test_invoice_details_total(self, sales_service):
        result = await sales_service.invoice_details("J100")
        lines = result.splitlines()

        assert lines[0] == "Invoice: J100"
        assert len(lines) == 4
        assert lines[-1] == "Overall Invoice Total: RM 25.00"

    @pytest.mark.asyncio
    async def test_unknown_invoice(self, sales_service):
        assert await sales_service.invoice_details("X1") == "No records found for invoice X1."

    @pytest.mark.asyncio
    async def test_metadata(self, sales_service):
        assert (
            await sales_service.metadata(MetadataQuery.PAYMENT_METHODS)
            == "Available payment methods: Cash, Credit Card"
        )
        assert (
            await sales_service.metadata(MetadataQuery.DATE_RANGE)
            == "Sales data ranges from 2024-01-02 to 2024-02-15."
        )
        regions = await sales_service.metadata(MetadataQuery.REGIONS)
        assert regions.startswith("Available addresses: Johor Bahru")

    @pytest.mark.asyncio
    async def test_metadata_on_empty_dataset(self, sales_config):
        service = SalesService(InMemorySalesRepository(), sales_config)

        assert (
            await service.metadata(MetadataQuery.PAYMENT_METHODS)
            == "No payment methods found in the dataset."
        )
        assert (
            await service.metadata(MetadataQuery.DATE_RANGE)
            == "No sales records found in the dataset."
        )


def parse_money(text: str) -> Decimal:
    return Decimal(text.replace("RM", "").replace(",", "").strip())


class TestAggregateConsistency:
    """Different operations over the same filters must agree."""

    @pytest.mark.asyncio
    async def test_inverted_date_range_matches_nothing(self, sales_service):
        window = {"startDate": "2024-02-01", "endDate": "2024-01-01"}

        rows = await sales_service.aggregate(
            SalesAnalyticsRequest.model_validate({"operation": "FILTER", **window})
        )
        count = await sales_service.aggregate(
            SalesAnalyticsRequest.model_validate(
                {"operation": "ANALYTICS", "analyticsType": "SALES_COUNT", **window}
            )
        )
        trend = await sales_service.aggregate(
            SalesAnalyticsRequest.model_validate(
                {"operation": "TREND", "groupBy": "DAY", **window}
            )
        )

        assert rows == NO_SALES_RECORDS
        assert count == "Number of sales: 0"
        assert trend == NO_SALES_RECORDS

    @pytest.mark.asyncio
    @pytest.mark.parametrize("interval", ["DAY", "WEEK", "MONTH"])
    async def test_trend_counts_add_up_to_sales_count(self, sales_service, interval):
        window = {"startDate": "2024-01-01", "endDate": "2024-01-31"}

        trend = await sales_service.aggregate(
            SalesAnalyticsRequest.model_validate(
                {"operation": "TREND", "groupBy": interval, **window}
            )
        )
        count = await sales_service.aggregate(
            SalesAnalyticsRequest.model_validate(
                {"operation": "ANALYTICS", "analyticsType": "SALES_COUNT", **window}
            )
        )

        bucket_counts = [
            int(line.rsplit("Sales Count: ", 1)[1]) for line in trend.splitlines()
        ]
        assert count == f"Number of sales: {sum(bucket_counts)}"
        assert sum(bucket_counts) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "filters",
        [{}, {"item": "widget"}, {"paymentMethod": "Cash"}, {"region": "penang"}],
    )
    async def test_total_sales_equals_sum_of_filtered_rows(self, sales_service, filters):
        rows = await sales_service.aggregate(
            SalesAnalyticsRequest.model_validate({"operation": "FILTER", **filters})
        )
        total = await sales_service.aggregate(
            SalesAnalyticsRequest.model_validate(
                {"operation": "ANALYTICS", "analyticsType": "TOTAL_SALES", **filters}
            )
        )

        row_totals = [
            parse_money(re.search(r"Total: (RM [\d,]+\.\d{2})", line).group(1))
            for line in rows.splitlines()
        ]
        assert parse_money(total.removeprefix("Total sales: ")) == sum(row_totals)

    @pytest.mark.asyncio
    async def test_invoice_with_two_items(self, sales_config):
        service = SalesService(
            InMemorySalesRepository(
                [
                    make_sale("J100", "Widget", "20", utc(2024, 5, 1), quantity=2, price="10"),
                    make_sale("J100", "Gadget", "5", utc(2024, 5, 1), quantity=1, price="5"),
                ]
            ),
            sales_config,
        )

        result = await service.invoice_details("J100")
        lines = result.splitlines()

        assert lines[0] == "Invoice: J100"
        assert len(lines) == 4
        assert "Item: Widget, Quantity: 2, Price: RM 10.00, Total: RM 20.00" in result
        assert "Item: Gadget, Quantity: 1, Price: RM 5.00, Total: RM 5.00" in result
        assert lines[-1] == "Overall Invoice Total: RM 25.00"

    def test_money_rounds_half_even(self, sales_service):
        assert sales_service.money(Decimal("2.345")) == "RM 2.34"
        assert sales_service.money(Decimal("2.355")) == "RM 2.36"
        assert sales_service.money(Decimal("1234567.5")) == "RM 1,234,567.50"
