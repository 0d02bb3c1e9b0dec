"""
Pydantic models for sales records, aggregation requests and results.

Request models double as tool argument schemas, so their field
descriptions are written for the language model.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from salesbot.models.base import ArgumentsModel

CENTS = Decimal("0.01")


class SalesOperation(StrEnum):
    FILTER = "FILTER"
    SUMMARY = "SUMMARY"
    ANALYTICS = "ANALYTICS"
    TREND = "TREND"


class AnalyticsType(StrEnum):
    TOTAL_SALES = "TOTAL_SALES"
    AVERAGE_SALES = "AVERAGE_SALES"
    SALES_COUNT = "SALES_COUNT"


class TrendInterval(StrEnum):
    DAY = "DAY"
    WEEK = "WEEK"
    MONTH = "MONTH"


class TrendSortBy(StrEnum):
    PERIOD = "PERIOD"
    TOTAL_SALES = "TOTAL_SALES"
    COUNT = "COUNT"


class SortOrder(StrEnum):
    ASC = "ASC"
    DESC = "DESC"


class AggregateGroupBy(StrEnum):
    ITEM = "ITEM"
    STATE = "STATE"
    CUSTOMER = "CUSTOMER"
    INVOICE = "INVOICE"
    PAYMENT_METHOD = "PAYMENT_METHOD"


class AggregateSortBy(StrEnum):
    TOTAL_SALES = "TOTAL_SALES"
    COUNT = "COUNT"
    QUANTITY = "QUANTITY"


class MetadataQuery(StrEnum):
    PAYMENT_METHODS = "paymentMethods"
    REGIONS = "regions"
    DATE_RANGE = "dateRange"


class IngestionPhase(StrEnum):
    EMBEDDING = "embedding"
    INSERTION = "insertion"
    COMPLETE = "complete"
    ERROR = "error"


def _parse_limit(value):
    # Models sometimes send numbers as text ("5" or "5.0").
    if isinstance(value, str):
        number = float(value.strip())
        return int(number) if number.is_integer() else number
    return value


class SalesFilter(ArgumentsModel):
    """Filters shared by every sales query; all supplied filters must match."""

    start_date: Optional[date] = Field(
        default=None,
        description="Start date in ISO format (e.g., 2025-01-01), inclusive",
    )
    end_date: Optional[date] = Field(
        default=None,
        description="End date in ISO format (e.g., 2025-01-31), inclusive",
    )
    payment_method: Optional[str] = Field(
        default=None,
        description="Payment method to filter by (must match one of the available methods)",
    )
    invoice: Optional[str] = Field(
        default=None, description="Invoice number substring to filter by"
    )
    customer: Optional[str] = Field(
        default=None, description="Customer name substring to filter by"
    )
    item: Optional[str] = Field(
        default=None, description="Item description substring to filter by"
    )
    region: Optional[str] = Field(
        default=None,
        description="Region, state or city; matched as a substring of the customer address",
    )

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def truncate_timestamp(cls, v):
        """Accept full ISO timestamps by keeping only the date part."""
        if isinstance(v, str) and len(v) > 10 and v[10] in "T ":
            return v[:10]
        if isinstance(v, datetime):
            return v.date()
        return v

    @field_validator("payment_method", "invoice", "customer", "item", "region")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    def filters(self) -> "SalesFilter":
        """Return only the filter part of a richer request."""
        return SalesFilter.model_validate(
            self.model_dump(include=set(SalesFilter.model_fields))
        )


class SalesAnalyticsRequest(SalesFilter):
    operation: SalesOperation = Field(
        description=(
            "FILTER for detailed records, SUMMARY for grouping by payment method, "
            "ANALYTICS for total/average/count analytics, TREND for sales over time"
        ),
    )
    analytics_type: Optional[AnalyticsType] = Field(
        default=None,
        description="Required when operation is ANALYTICS",
    )
    group_by: Optional[TrendInterval] = Field(
        default=None,
        description="Interval to group sales by; required when operation is TREND",
    )
    sort_by: TrendSortBy = Field(
        default=TrendSortBy.PERIOD,
        description="Field used to order TREND periods",
    )
    sort_order: SortOrder = Field(
        default=SortOrder.ASC,
        description="Direction used to order TREND periods",
    )
    limit: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum number of TREND periods to return",
    )

    @field_validator("limit", mode="before")
    @classmethod
    def parse_limit(cls, v):
        return _parse_limit(v)


class TopAggregatesRequest(SalesFilter):
    group_by: AggregateGroupBy = Field(description="Field to group by")
    sort_by: AggregateSortBy = Field(
        default=AggregateSortBy.TOTAL_SALES,
        description="Criteria to sort the groups",
    )
    limit: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum number of groups to return (default 5)",
    )

    @field_validator("limit", mode="before")
    @classmethod
    def parse_limit(cls, v):
        return _parse_limit(v)


class InvoiceDetailsRequest(ArgumentsModel):
    invoice: str = Field(
        min_length=1,
        description="The invoice number to retrieve details for (e.g., J0125013)",
    )

    @field_validator("invoice")
    @classmethod
    def strip_invoice(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("invoice must not be blank")
        return v


class SalesMetadataRequest(ArgumentsModel):
    query_type: MetadataQuery = Field(
        description="'paymentMethods', 'regions' or 'dateRange'",
    )


class InformationRequest(ArgumentsModel):
    query: str = Field(
        min_length=1,
        description="Interpreted user request from full chat context",
    )


class SaleCreate(BaseModel):
    customer: str
    invoice: str
    purchase_date: datetime
    address: str
    item: str
    quantity: int = Field(ge=0)
    price: Decimal
    total: Decimal
    comment: Optional[str] = None
    remarks: Optional[str] = None
    payment_method: str

    @field_validator("price", "total")
    @classmethod
    def to_cents(cls, v: Decimal) -> Decimal:
        """Round the way PostgreSQL rounds into the NUMERIC(14,2) columns."""
        return v.quantize(CENTS, rounding=ROUND_HALF_UP)

    @property
    def key(self) -> tuple[str, str, Decimal]:
        """Logical identity of a sale line."""
        return (self.invoice, self.item, self.total)


class SaleRecord(SaleCreate):
    id: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SalesTotals(BaseModel):
    count: int = 0
    total: Decimal = Decimal("0")


class GroupAggregate(BaseModel):
    group: str
    count: int
    total_sales: Decimal
    total_quantity: int
    total_price: Decimal = Field(
        default=Decimal("0"), description="Sum of price * quantity"
    )


class DailyTotal(BaseModel):
    day: date
    total_sales: Decimal
    count: int


class TrendBucket(BaseModel):
    period: str
    start: date
    total_sales: Decimal
    count: int


class InvoiceTrend(BaseModel):
    invoice_count: int
    total_amount: Decimal


class SalesDateRange(BaseModel):
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None


class ScoredSale(BaseModel):
    id: UUID
    distance: float


class VectorEntry(BaseModel):
    id: UUID
    embedding: list[float]


class IngestionProgress(BaseModel):
    id: str
    phase: IngestionPhase
    progress: int
    total: int
    message: Optional[str] = None


class SalesAnswer(BaseModel):
    answer: str
