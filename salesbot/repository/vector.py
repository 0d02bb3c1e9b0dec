"""
Vector similarity store for sale embeddings.

Two backends share one contract: cosine distance, keep entries whose
distance is at most the threshold (boundary included), order ascending by
distance with ties broken by id. PgVectorIndex pushes the work to the
pgvector `<=>` operator; InMemoryVectorIndex is a brute-force reference
used for local runs and tests.
"""

import math
from abc import ABC, abstractmethod
from typing import Optional, Sequence
from uuid import UUID

import asyncpg
import structlog

from salesbot.database import DatabasePool
from salesbot.exceptions.sales import (
    SalesOperationException,
    TransientStorageException,
)
from salesbot.models.sales import ScoredSale, VectorEntry
from salesbot.repository.utils import acquire_connection, is_transient_storage_error
from salesbot.settings.embedding import EmbeddingConfig, VectorBackend

logger = structlog.get_logger(__name__)


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> Optional[float]:
    """
    Return 1 - cosine similarity, or None when either vector has zero length.
    """
    if len(a) != len(b):
        raise ValueError(f"Vector dimensions differ: {len(a)} != {len(b)}")
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0.0 or norm_b == 0.0:
        return None
    return 1.0 - dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def to_vector_literal(embedding: Sequence[float]) -> str:
    return "[" + ",".join(repr(float(value)) for value in embedding) + "]"


class VectorIndex(ABC):
    """Stores (sale id, embedding) pairs and answers threshold queries."""

    @abstractmethod
    async def upsert(
        self, entries: list[VectorEntry], connection: Optional[asyncpg.Connection] = None
    ) -> None:
        """Store entries, replacing any previous embedding for the same id."""

    @abstractmethod
    async def search(
        self,
        embedding: Sequence[float],
        threshold: float,
        limit: Optional[int] = None,
    ) -> list[ScoredSale]:
        """Ids within `threshold` cosine distance, closest first."""


class PgVectorIndex(VectorIndex):
    def __init__(self, db_pool: DatabasePool) -> None:
        self.db_pool = db_pool

    def _raise_storage_error(self, operation: str, error: Exception) -> None:
        if is_transient_storage_error(error):
            logger.warning("Transient vector store error", operation=operation, error=str(error))
            raise TransientStorageException(
                message=f"Vector store unavailable during {operation}: {error}",
                operation=operation,
            ) from error
        logger.error("Vector store query failed", operation=operation, error=str(error))
        raise SalesOperationException(
            message=f"Vector store {operation} failed", operation=operation
        ) from error

    async def upsert(
        self, entries: list[VectorEntry], connection: Optional[asyncpg.Connection] = None
    ) -> None:
        if not entries:
            return
        async with acquire_connection(self.db_pool, connection, "upsert_vectors") as conn:
            try:
                await conn.execute(
                    """
                    INSERT INTO sale_vectors (id, embedding)
                    SELECT v.id, v.embedding::vector
                    FROM unnest($1::uuid[], $2::text[]) AS v(id, embedding)
                    ON CONFLICT (id)
                    DO UPDATE SET embedding = EXCLUDED.embedding, updated_at = NOW()
                    """,
                    [entry.id for entry in entries],
                    [to_vector_literal(entry.embedding) for entry in entries],
                )
            except Exception as e:
                self._raise_storage_error("upsert_vectors", e)
        logger.debug("Vectors upserted", count=len(entries))

    async def search(
        self,
        embedding: Sequence[float],
        threshold: float,
        limit: Optional[int] = None,
    ) -> list[ScoredSale]:
        async with acquire_connection(self.db_pool, None, "search_vectors") as conn:
            try:
                rows = await conn.fetch(
                    """
                    SELECT id, (embedding <=> $1::text::vector) AS distance
                    FROM sale_vectors
                    WHERE embedding IS NOT NULL
                      AND (embedding <=> $1::text::vector) <= $2
                    ORDER BY distance, id
                    LIMIT $3
                    """,
                    to_vector_literal(embedding),
                    threshold,
                    limit,
                )
            except Exception as e:
                self._raise_storage_error("search_vectors", e)
        return [ScoredSale(id=row["id"], distance=row["distance"]) for row in rows]


class InMemoryVectorIndex(VectorIndex):
    def __init__(self) -> None:
        self.vectors: dict[UUID, list[float]] = {}

    async def upsert(
        self, entries: list[VectorEntry], connection: Optional[asyncpg.Connection] = None
    ) -> None:
        for entry in entries:
            self.vectors[entry.id] = list(entry.embedding)

    async def search(
        self,
        embedding: Sequence[float],
        threshold: float,
        limit: Optional[int] = None,
    ) -> list[ScoredSale]:
        scored = []
        for sale_id, vector in self.vectors.items():
            distance = cosine_distance(embedding, vector)
            if distance is not None and distance <= threshold:
                scored.append(ScoredSale(id=sale_id, distance=distance))
        scored.sort(key=lambda sale: (sale.distance, str(sale.id)))
        return scored if limit is None else scored[:limit]


_vector_index: Optional[VectorIndex] = None


def init_vector_index(config: EmbeddingConfig, db_pool: Optional[DatabasePool]) -> VectorIndex:
    """Create the global vector index for the configured backend."""
    global _vector_index
    if _vector_index is None:
        if config.VECTOR_BACKEND == VectorBackend.MEMORY:
            _vector_index = InMemoryVectorIndex()
        else:
            if db_pool is None:
                raise RuntimeError("pgvector backend requires a database pool")
            _vector_index = PgVectorIndex(db_pool)
        logger.info("Vector index created", backend=str(config.VECTOR_BACKEND))
    return _vector_index


def get_vector_index() -> VectorIndex:
    if _vector_index is None:
        raise RuntimeError("Vector index not initialized. Call init_vector_index() first.")
    return _vector_index


def close_vector_index() -> None:
    global _vector_index
    _vector_index = None
