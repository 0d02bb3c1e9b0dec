"""
Repository for sales records.

All aggregation is pushed to PostgreSQL; only grouped rows or the rows a
caller asked for are materialized.
"""

from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import asyncpg
import structlog
from uuid_utils.compat import uuid7

from salesbot.database import DatabasePool
from salesbot.exceptions.sales import (
    SalesOperationException,
    TransientStorageException,
)
from salesbot.models.sales import (
    AggregateGroupBy,
    AggregateSortBy,
    DailyTotal,
    GroupAggregate,
    InvoiceTrend,
    SaleCreate,
    SaleRecord,
    SalesDateRange,
    SalesFilter,
    SalesTotals,
)
from salesbot.repository.utils import (
    AGGREGATE_SORT_COLUMNS,
    GROUP_COLUMNS,
    acquire_connection,
    build_sales_filter,
    is_transient_storage_error,
)

logger = structlog.get_logger(__name__)

SALE_COLUMNS = """
    id, customer, invoice, purchase_date, address, item, quantity,
    price, total, comment, remarks, payment_method, created_at, updated_at
"""

SaleKey = tuple[str, str, Decimal]


class SalesRepository:
    """
    Repository for reading and writing the sales table.

    Every public method accepts an optional connection so callers can run
    several statements inside one transaction.
    """

    def __init__(self, db_pool: DatabasePool) -> None:
        self.db_pool = db_pool

    def _raise_storage_error(self, operation: str, error: Exception) -> None:
        if is_transient_storage_error(error):
            logger.warning(
                "Transient storage error", operation=operation, error=str(error)
            )
            raise TransientStorageException(
                message=f"Storage unavailable during {operation}: {error}",
                operation=operation,
            ) from error
        logger.error("Sales query failed", operation=operation, error=str(error))
        raise SalesOperationException(
            message=f"Failed to {operation.replace('_', ' ')}",
            operation=operation,
        ) from error

    def _row_to_sale(self, row: asyncpg.Record) -> SaleRecord:
        return SaleRecord(**dict(row))

    async def _list_sales(
        self,
        filters: Optional[SalesFilter],
        limit: Optional[int],
        connection: asyncpg.Connection,
    ) -> list[SaleRecord]:
        sql_filter = build_sales_filter(filters)
        try:
            rows = await connection.fetch(
                f"""
                SELECT {SALE_COLUMNS}
                FROM sales
                WHERE {sql_filter.where}
                ORDER BY purchase_date DESC, id
                LIMIT ${sql_filter.next_param()}
                """,
                *sql_filter.args,
                limit,
            )
        except Exception as e:
            self._raise_storage_error("list_sales", e)
        return [self._row_to_sale(row) for row in rows]

    async def list_sales(
        self,
        filters: Optional[SalesFilter] = None,
        limit: Optional[int] = None,
        connection: Optional[asyncpg.Connection] = None,
    ) -> list[SaleRecord]:
        """
        List sales matching the filters, newest first.

        Args:
            filters: Optional filters; all supplied filters must match
            limit: Maximum number of rows, None for all
            connection: Optional database connection

        Returns:
            Matching sales ordered by purchase date descending
        """
        async with acquire_connection(self.db_pool, connection, "list_sales") as conn:
            return await self._list_sales(filters, limit, conn)

    async def _get_totals(
        self, filters: Optional[SalesFilter], connection: asyncpg.Connection
    ) -> SalesTotals:
        sql_filter = build_sales_filter(filters)
        try:
            row = await connection.fetchrow(
                f"""
                SELECT COUNT(*) AS count, COALESCE(SUM(total), 0) AS total
                FROM sales
                WHERE {sql_filter.where}
                """,
                *sql_filter.args,
            )
        except Exception as e:
            self._raise_storage_error("get_totals", e)
        return SalesTotals(count=row["count"], total=row["total"])

    async def get_totals(
        self,
        filters: Optional[SalesFilter] = None,
        connection: Optional[asyncpg.Connection] = None,
    ) -> SalesTotals:
        """Count matching sales and sum their totals."""
        async with acquire_connection(self.db_pool, connection, "get_totals") as conn:
            return await self._get_totals(filters, conn)

    async def _aggregate_by(
        self,
        group_by: AggregateGroupBy,
        filters: Optional[SalesFilter],
        sort_by: AggregateSortBy,
        limit: Optional[int],
        connection: asyncpg.Connection,
    ) -> list[GroupAggregate]:
        column = GROUP_COLUMNS[group_by]
        sort_column = AGGREGATE_SORT_COLUMNS[sort_by]
        sql_filter = build_sales_filter(filters)
        try:
            rows = await connection.fetch(
                f"""
                SELECT
                    {column} AS grp,
                    COUNT(*) AS count,
                    COALESCE(SUM(total), 0) AS total_sales,
                    COALESCE(SUM(quantity), 0) AS total_quantity,
                    COALESCE(SUM(price * quantity), 0) AS total_price
                FROM sales
                WHERE {sql_filter.where}
                GROUP BY {column}
                ORDER BY {sort_column} DESC, grp ASC
                LIMIT ${sql_filter.next_param()}
                """,
                *sql_filter.args,
                limit,
            )
        except Exception as e:
            self._raise_storage_error("aggregate_sales", e)
        return [
            GroupAggregate(
                group=row["grp"],
                count=row["count"],
                total_sales=row["total_sales"],
                total_quantity=row["total_quantity"],
                total_price=row["total_price"],
            )
            for row in rows
        ]

    async def aggregate_by(
        self,
        group_by: AggregateGroupBy,
        filters: Optional[SalesFilter] = None,
        sort_by: AggregateSortBy = AggregateSortBy.TOTAL_SALES,
        limit: Optional[int] = None,
        connection: Optional[asyncpg.Connection] = None,
    ) -> list[GroupAggregate]:
        """
        Group matching sales and compute per-group statistics.

        Groups are ordered by the sort column descending, ties broken by the
        group value ascending.
        """
        async with acquire_connection(self.db_pool, connection, "aggregate_sales") as conn:
            return await self._aggregate_by(group_by, filters, sort_by, limit, conn)

    async def _daily_totals(
        self, filters: Optional[SalesFilter], connection: asyncpg.Connection
    ) -> list[DailyTotal]:
        sql_filter = build_sales_filter(filters)
        try:
            rows = await connection.fetch(
                f"""
                SELECT
                    (purchase_date AT TIME ZONE 'UTC')::date AS day,
                    COALESCE(SUM(total), 0) AS total_sales,
                    COUNT(*) AS count
                FROM sales
                WHERE {sql_filter.where}
                GROUP BY day
                ORDER BY day
                """,
                *sql_filter.args,
            )
        except Exception as e:
            self._raise_storage_error("daily_totals", e)
        return [
            DailyTotal(day=row["day"], total_sales=row["total_sales"], count=row["count"])
            for row in rows
        ]

    async def daily_totals(
        self,
        filters: Optional[SalesFilter] = None,
        connection: Optional[asyncpg.Connection] = None,
    ) -> list[DailyTotal]:
        """Sum and count matching sales per UTC calendar day."""
        async with acquire_connection(self.db_pool, connection, "daily_totals") as conn:
            return await self._daily_totals(filters, conn)

    async def _invoice_trend(
        self, filters: Optional[SalesFilter], connection: asyncpg.Connection
    ) -> InvoiceTrend:
        sql_filter = build_sales_filter(filters)
        try:
            row = await connection.fetchrow(
                f"""
                SELECT
                    COUNT(DISTINCT invoice) AS invoice_count,
                    COALESCE(SUM(total), 0) AS total_amount
                FROM sales
                WHERE {sql_filter.where}
                """,
                *sql_filter.args,
            )
        except Exception as e:
            self._raise_storage_error("invoice_trend", e)
        return InvoiceTrend(
            invoice_count=row["invoice_count"], total_amount=row["total_amount"]
        )

    async def invoice_trend(
        self,
        filters: Optional[SalesFilter] = None,
        connection: Optional[asyncpg.Connection] = None,
    ) -> InvoiceTrend:
        """Count distinct invoices among matching sales and sum their totals."""
        async with acquire_connection(self.db_pool, connection, "invoice_trend") as conn:
            return await self._invoice_trend(filters, conn)

    async def _distinct_values(
        self, column: str, connection: asyncpg.Connection
    ) -> list[str]:
        try:
            rows = await connection.fetch(
                f"SELECT DISTINCT {column} AS value FROM sales ORDER BY {column}"
            )
        except Exception as e:
            self._raise_storage_error(f"list_{column}", e)
        return [row["value"] for row in rows]

    async def distinct_payment_methods(
        self, connection: Optional[asyncpg.Connection] = None
    ) -> list[str]:
        """Payment methods present in the data, alphabetically."""
        async with acquire_connection(self.db_pool, connection, "list_payment_methods") as conn:
            return await self._distinct_values("payment_method", conn)

    async def distinct_addresses(
        self, connection: Optional[asyncpg.Connection] = None
    ) -> list[str]:
        """Customer addresses present in the data, alphabetically."""
        async with acquire_connection(self.db_pool, connection, "list_addresses") as conn:
            return await self._distinct_values("address", conn)

    async def _date_range(self, connection: asyncpg.Connection) -> SalesDateRange:
        try:
            row = await connection.fetchrow(
                "SELECT MIN(purchase_date) AS earliest, MAX(purchase_date) AS latest FROM sales"
            )
        except Exception as e:
            self._raise_storage_error("date_range", e)
        return SalesDateRange(earliest=row["earliest"], latest=row["latest"])

    async def date_range(
        self, connection: Optional[asyncpg.Connection] = None
    ) -> SalesDateRange:
        """Earliest and latest purchase dates, both None for an empty table."""
        async with acquire_connection(self.db_pool, connection, "date_range") as conn:
            return await self._date_range(conn)

    async def _get_sales_by_invoice(
        self, invoice: str, connection: asyncpg.Connection
    ) -> list[SaleRecord]:
        try:
            rows = await connection.fetch(
                f"""
                SELECT {SALE_COLUMNS}
                FROM sales
                WHERE invoice = $1
                ORDER BY purchase_date, created_at, id
                """,
                invoice,
            )
        except Exception as e:
            self._raise_storage_error("get_sales_by_invoice", e)
        return [self._row_to_sale(row) for row in rows]

    async def get_sales_by_invoice(
        self, invoice: str, connection: Optional[asyncpg.Connection] = None
    ) -> list[SaleRecord]:
        """Every line item of an exact invoice number."""
        async with acquire_connection(self.db_pool, connection, "get_sales_by_invoice") as conn:
            return await self._get_sales_by_invoice(invoice, conn)

    async def _get_sales_by_ids(
        self, sale_ids: list[UUID], connection: asyncpg.Connection
    ) -> list[SaleRecord]:
        try:
            rows = await connection.fetch(
                f"SELECT {SALE_COLUMNS} FROM sales WHERE id = ANY($1::uuid[])",
                sale_ids,
            )
        except Exception as e:
            self._raise_storage_error("get_sales_by_ids", e)
        by_id = {row["id"]: self._row_to_sale(row) for row in rows}
        return [by_id[sale_id] for sale_id in sale_ids if sale_id in by_id]

    async def get_sales_by_ids(
        self, sale_ids: list[UUID], connection: Optional[asyncpg.Connection] = None
    ) -> list[SaleRecord]:
        """
        Load sales by id.

        The result follows the order of `sale_ids`; unknown ids are skipped.
        """
        if not sale_ids:
            return []
        async with acquire_connection(self.db_pool, connection, "get_sales_by_ids") as conn:
            return await self._get_sales_by_ids(sale_ids, conn)

    async def _find_existing_keys(
        self, keys: list[SaleKey], connection: asyncpg.Connection
    ) -> set[SaleKey]:
        try:
            rows = await connection.fetch(
                """
                SELECT s.invoice, s.item, s.total
                FROM sales s
                JOIN unnest($1::text[], $2::text[], $3::numeric[]) AS k(invoice, item, total)
                  ON s.invoice = k.invoice AND s.item = k.item AND s.total = k.total
                """,
                [key[0] for key in keys],
                [key[1] for key in keys],
                [key[2] for key in keys],
            )
        except Exception as e:
            self._raise_storage_error("find_existing_sales", e)
        return {(row["invoice"], row["item"], row["total"]) for row in rows}

    async def find_existing_keys(
        self, keys: Iterable[SaleKey], connection: Optional[asyncpg.Connection] = None
    ) -> set[SaleKey]:
        """Return the (invoice, item, total) keys that are already stored."""
        keys = list(keys)
        if not keys:
            return set()
        async with acquire_connection(self.db_pool, connection, "find_existing_sales") as conn:
            return await self._find_existing_keys(keys, conn)

    async def _insert_sales(
        self, sales: list[SaleCreate], connection: asyncpg.Connection
    ) -> dict[SaleKey, UUID]:
        try:
            rows = await connection.fetch(
                """
                INSERT INTO sales (
                    id, customer, invoice, purchase_date, address, item,
                    quantity, price, total, comment, remarks, payment_method
                )
                SELECT * FROM unnest(
                    $1::uuid[], $2::text[], $3::text[], $4::timestamptz[],
                    $5::text[], $6::text[], $7::int[], $8::numeric[],
                    $9::numeric[], $10::text[], $11::text[], $12::text[]
                )
                ON CONFLICT (invoice, item, total)
                DO UPDATE SET updated_at = NOW()
                RETURNING id, invoice, item, total
                """,
                [uuid7() for _ in sales],
                [sale.customer for sale in sales],
                [sale.invoice for sale in sales],
                [sale.purchase_date for sale in sales],
                [sale.address for sale in sales],
                [sale.item for sale in sales],
                [sale.quantity for sale in sales],
                [sale.price for sale in sales],
                [sale.total for sale in sales],
                [sale.comment for sale in sales],
                [sale.remarks for sale in sales],
                [sale.payment_method for sale in sales],
            )
        except Exception as e:
            self._raise_storage_error("insert_sales", e)

        logger.info("Sales inserted", count=len(rows))
        return {(row["invoice"], row["item"], row["total"]): row["id"] for row in rows}

    async def insert_sales(
        self, sales: list[SaleCreate], connection: Optional[asyncpg.Connection] = None
    ) -> dict[SaleKey, UUID]:
        """
        Insert sales, keeping existing rows that share (invoice, item, total).

        Returns:
            Mapping of each sale's key to its stored id
        """
        if not sales:
            return {}
        async with acquire_connection(self.db_pool, connection, "insert_sales") as conn:
            return await self._insert_sales(sales, conn)
