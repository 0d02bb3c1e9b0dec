from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Any, Optional

import asyncpg

from salesbot.database import DatabasePool
from salesbot.exceptions.sales import TransientStorageException
from salesbot.models.sales import AggregateGroupBy, AggregateSortBy, SalesFilter

# Pool exhaustion, dropped connections and network timeouts. Anything else
# raised by the driver is treated as permanent.
TRANSIENT_STORAGE_ERRORS = (
    asyncpg.TooManyConnectionsError,
    asyncpg.PostgresConnectionError,
    asyncpg.CannotConnectNowError,
    OSError,
)

GROUP_COLUMNS = {
    AggregateGroupBy.ITEM: "item",
    AggregateGroupBy.STATE: "address",
    AggregateGroupBy.CUSTOMER: "customer",
    AggregateGroupBy.INVOICE: "invoice",
    AggregateGroupBy.PAYMENT_METHOD: "payment_method",
}

AGGREGATE_SORT_COLUMNS = {
    AggregateSortBy.TOTAL_SALES: "total_sales",
    AggregateSortBy.COUNT: "count",
    AggregateSortBy.QUANTITY: "total_quantity",
}


def is_transient_storage_error(error: BaseException) -> bool:
    return isinstance(error, TRANSIENT_STORAGE_ERRORS)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user text is matched literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def start_of_day(day) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


@dataclass
class SqlFilter:
    """A WHERE clause and its positional arguments."""

    where: str
    args: list[Any] = field(default_factory=list)

    def next_param(self) -> int:
        return len(self.args) + 1


def build_sales_filter(filters: Optional[SalesFilter]) -> SqlFilter:
    """
    Translate sales filters into a parameterized WHERE clause.

    Dates are whole UTC days: start_date from 00:00, end_date up to but not
    including the following midnight. Payment method is an exact match;
    invoice, customer, item and region are case-insensitive substrings.
    """
    clauses: list[str] = []
    args: list[Any] = []

    def param(value: Any) -> str:
        args.append(value)
        return f"${len(args)}"

    if filters is not None:
        if filters.start_date is not None:
            clauses.append(f"purchase_date >= {param(start_of_day(filters.start_date))}")
        if filters.end_date is not None:
            end = start_of_day(filters.end_date) + timedelta(days=1)
            clauses.append(f"purchase_date < {param(end)}")
        if filters.payment_method:
            clauses.append(f"payment_method = {param(filters.payment_method)}")
        for column, value in (
            ("invoice", filters.invoice),
            ("customer", filters.customer),
            ("item", filters.item),
            ("address", filters.region),
        ):
            if value:
                clauses.append(f"{column} ILIKE {param(f'%{escape_like(value)}%')}")

    return SqlFilter(where=" AND ".join(clauses) if clauses else "TRUE", args=args)


@asynccontextmanager
async def acquire_connection(
    db_pool: DatabasePool,
    connection: Optional[asyncpg.Connection] = None,
    operation: Optional[str] = None,
):
    """
    Yield the caller's connection, or a pooled one for the duration of the block.

    Failing to obtain a pooled connection is reported as a transient error.
    """
    if connection is not None:
        yield connection
        return

    try:
        async with db_pool.acquire() as conn:
            yield conn
    except TRANSIENT_STORAGE_ERRORS as e:
        raise TransientStorageException(
            message=f"Storage unavailable during {operation or 'query'}: {e}",
            operation=operation,
        ) from e
