"""
Sales CSV ingestion.

Imports the accounting system's sales export: rows are cleaned, rows that
are already stored are dropped, and the rest are embedded and inserted in
batches while progress events are streamed back to the uploader.
"""

import asyncio
import csv
import io
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import AsyncIterator, Awaitable, Callable, Optional

import structlog

from salesbot.agent.embeddings import EmbeddingClient
from salesbot.exceptions.app import AppException
from salesbot.exceptions.sales import (
    FatalStorageException,
    IngestionException,
    TransientStorageException,
)
from salesbot.models.sales import IngestionPhase, IngestionProgress, SaleCreate, VectorEntry
from salesbot.repository.sales import SaleKey, SalesRepository
from salesbot.repository.vector import VectorIndex
from salesbot.settings.sales import SalesConfig

logger = structlog.get_logger(__name__)

NAME_COLUMN = "Co./Last Name"
ADDRESS_COLUMN = "Addr 1 - Line 1"
ADDRESS_LINE_COLUMNS = ("- Line 2", "- Line 3", "- Line 4")
COUNTRY_COLUMN = "Destination Country"
INVOICE_COLUMN = "Invoice #"
DATE_COLUMN = "Date"
QUANTITY_COLUMN = "Quantity"
DESCRIPTION_COLUMN = "Description"
PRICE_COLUMN = "Price"
TOTAL_COLUMN = "Total"
COMMENT_COLUMN = "Comment"
MEMO_COLUMN = "Journal Memo"
PAYMENT_COLUMN = "Payment Method"

REQUIRED_COLUMNS = (
    NAME_COLUMN,
    ADDRESS_COLUMN,
    INVOICE_COLUMN,
    DATE_COLUMN,
    QUANTITY_COLUMN,
    PRICE_COLUMN,
    TOTAL_COLUMN,
)

UNDEFINED = "Undefined"


def parse_money(value: str) -> Decimal:
    """Parse amounts such as 'RM1,234.50'."""
    cleaned = value.strip()
    if cleaned.upper().startswith("RM"):
        cleaned = cleaned[2:]
    cleaned = cleaned.replace(",", "").strip()
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"invalid amount '{value}'")


def parse_quantity(value: str) -> int:
    try:
        return int(Decimal(value.strip()))
    except InvalidOperation:
        raise ValueError(f"invalid quantity '{value}'")


def parse_sale_date(value: str) -> datetime:
    """Parse DD/MM/YYYY or DD/MM/YY (two-digit years are 20xx) as UTC midnight."""
    parts = value.strip().split("/")
    if len(parts) != 3:
        raise ValueError(f"invalid date '{value}', expected DD/MM/YYYY or DD/MM/YY")
    day, month, year = (part.strip() for part in parts)
    year_number = int(year) + 2000 if len(year) == 2 else int(year)
    return datetime(year_number, int(month), int(day), tzinfo=timezone.utc)


def text(row: dict[str, str], column: str) -> str:
    return (row.get(column) or "").strip()


class SalesIngestionService:
    """
    Imports sales exports into the sales table and the vector index.

    Args:
        repository: Sales repository
        vector_index: Store for item embeddings
        embedder: Client that embeds item descriptions
        config: Batch size, retry policy and excluded customers
        sleep: Coroutine used to wait between retries
    """

    def __init__(
        self,
        repository: SalesRepository,
        vector_index: VectorIndex,
        embedder: EmbeddingClient,
        config: SalesConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.repository = repository
        self.vector_index = vector_index
        self.embedder = embedder
        self.config = config
        self.sleep = sleep

    def is_excluded(self, row: dict[str, str]) -> bool:
        name = text(row, NAME_COLUMN)
        if any(excluded in name for excluded in self.config.EXCLUDED_CUSTOMERS):
            return True
        try:
            return parse_quantity(row.get(QUANTITY_COLUMN) or "0") < 0
        except ValueError:
            return False

    def parse_row(self, row: dict[str, str]) -> SaleCreate:
        name = text(row, NAME_COLUMN)
        address_line = text(row, ADDRESS_COLUMN)
        customer = address_line if name in address_line else f"{address_line}, {name}"

        address = ", ".join(
            part
            for part in [text(row, column) for column in ADDRESS_LINE_COLUMNS]
            + [text(row, COUNTRY_COLUMN)]
            if part
        )
        item = text(row, DESCRIPTION_COLUMN)

        return SaleCreate(
            customer=customer,
            invoice=text(row, INVOICE_COLUMN),
            purchase_date=parse_sale_date(text(row, DATE_COLUMN)),
            address=address or UNDEFINED,
            item=item.upper() if item else UNDEFINED,
            quantity=parse_quantity(text(row, QUANTITY_COLUMN)),
            price=parse_money(text(row, PRICE_COLUMN)),
            total=parse_money(text(row, TOTAL_COLUMN)),
            comment=text(row, COMMENT_COLUMN),
            remarks=text(row, MEMO_COLUMN),
            payment_method=text(row, PAYMENT_COLUMN) or UNDEFINED,
        )

    def parse_csv(self, content: str | bytes) -> list[SaleCreate]:
        """
        Parse and clean an export.

        Excluded customers and negative quantities are skipped, and repeated
        (invoice, item, total) keys inside the file are kept once.

        Raises:
            IngestionException: If the file is not a readable export
        """
        if isinstance(content, bytes):
            try:
                content = content.decode("utf-8-sig")
            except UnicodeDecodeError as e:
                raise IngestionException("File is not valid UTF-8 text") from e

        reader = csv.DictReader(io.StringIO(content), delimiter=",", quotechar='"')
        columns = [column.strip() for column in reader.fieldnames or []]
        missing = [column for column in REQUIRED_COLUMNS if column not in columns]
        if missing:
            raise IngestionException(
                f"Missing columns: {', '.join(missing)}", field="columns", value=missing
            )

        sales: list[SaleCreate] = []
        seen: set[SaleKey] = set()
        skipped = 0
        try:
            for line_number, raw in enumerate(reader, start=2):
                row = {
                    (key or "").strip(): value if isinstance(value, str) else ""
                    for key, value in raw.items()
                }
                if not any(value.strip() for value in row.values()):
                    continue
                if self.is_excluded(row):
                    skipped += 1
                    continue
                try:
                    sale = self.parse_row(row)
                except ValueError as e:
                    raise IngestionException(
                        f"Row {line_number}: {e}", field="row", value=line_number
                    ) from e
                if sale.key in seen:
                    skipped += 1
                    continue
                seen.add(sale.key)
                sales.append(sale)
        except csv.Error as e:
            raise IngestionException(f"Error parsing CSV: {e}") from e

        logger.info("Sales file parsed", rows=len(sales), skipped=skipped)
        return sales

    async def prepare_csv(self, content: str | bytes) -> list[SaleCreate]:
        """Parse an export and drop the sales that are already stored."""
        sales = self.parse_csv(content)
        existing = await self.repository.find_existing_keys(sale.key for sale in sales)
        new_sales = [sale for sale in sales if sale.key not in existing]
        logger.info(
            "Sales file prepared",
            new=len(new_sales),
            existing=len(sales) - len(new_sales),
        )
        return new_sales

    async def _embed_batch(self, batch: list[SaleCreate]) -> list[list[float]]:
        return list(await asyncio.gather(*(self.embedder.embed(sale.item) for sale in batch)))

    async def _store_batch(
        self, batch: list[SaleCreate], embeddings: list[list[float]]
    ) -> None:
        """
        Insert a batch and its vectors, retrying transient storage errors.

        Both writes are idempotent, so a retried batch never duplicates rows.

        Raises:
            FatalStorageException: If every attempt hit a transient error
        """
        attempts = self.config.INGESTION_MAX_RETRIES
        for attempt in range(1, attempts + 1):
            try:
                ids = await self.repository.insert_sales(batch)
                entries = []
                for sale, embedding in zip(batch, embeddings):
                    if sale.key not in ids:
                        logger.warning(
                            "Stored sale not found for embedding",
                            invoice=sale.invoice,
                            item=sale.item,
                            total=str(sale.total),
                        )
                        continue
                    entries.append(VectorEntry(id=ids[sale.key], embedding=embedding))
                await self.vector_index.upsert(entries)
                return
            except TransientStorageException as e:
                logger.warning(
                    "Transient error while storing batch",
                    attempt=attempt,
                    max_attempts=attempts,
                    error=e.message,
                )
                if attempt == attempts:
                    raise FatalStorageException(
                        message="Max retries reached during insertion",
                        attempts=attempts,
                        operation="insert_sales",
                    ) from e
                await self.sleep(self.config.INGESTION_RETRY_DELAY)

    async def ingest(
        self, sales: list[SaleCreate], source: str
    ) -> AsyncIterator[IngestionProgress]:
        """
        Embed and store sales batch by batch.

        Yields an embedding and an insertion event per batch, then a
        complete event. A failure yields one error event and stops; batches
        stored before it stay stored.
        """
        total = len(sales)
        progress = 0
        batch_size = self.config.INGESTION_BATCH_SIZE

        for start in range(0, total, batch_size):
            batch = sales[start : start + batch_size]
            try:
                embeddings = await self._embed_batch(batch)
                progress += len(batch)
                yield IngestionProgress(
                    id=source, phase=IngestionPhase.EMBEDDING, progress=progress, total=total
                )
                await self._store_batch(batch, embeddings)
            except AppException as e:
                logger.error(
                    "Sales import failed",
                    source=source,
                    progress=progress,
                    error=e.message,
                )
                yield self._error_event(source, progress, total, e.message)
                return

            yield IngestionProgress(
                id=source, phase=IngestionPhase.INSERTION, progress=progress, total=total
            )

        logger.info("Sales import complete", source=source, imported=total)
        yield IngestionProgress(
            id=source,
            phase=IngestionPhase.COMPLETE,
            progress=total,
            total=total,
            message=None if total else "No new sales records to import.",
        )

    def _error_event(
        self, source: str, progress: int, total: int, message: Optional[str]
    ) -> IngestionProgress:
        return IngestionProgress(
            id=source,
            phase=IngestionPhase.ERROR,
            progress=progress,
            total=total,
            message=message,
        )

    async def ingest_csv(
        self, content: str | bytes, source: str
    ) -> AsyncIterator[IngestionProgress]:
        """Parse, deduplicate and import an export in one stream."""
        sales = await self.prepare_csv(content)
        async for event in self.ingest(sales, source):
            yield event
