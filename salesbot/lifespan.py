"""
FastAPI lifespan context manager for application startup and shutdown.

Startup configures Sentry and logging, opens the database pool and creates
the embedding client and vector index; shutdown releases them in reverse.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from salesbot.agent.embeddings import close_embedding_client, init_embedding_client
from salesbot.database import close_db_pool, init_db_pool
from salesbot.logging import setup_logging
from salesbot.repository.vector import close_vector_index, init_vector_index
from salesbot.sentry import setup_sentry
from salesbot.settings import get_settings

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    logger.debug("Application startup initiated")
    try:
        settings = get_settings()
        setup_logging(settings)
        sentry_enabled = setup_sentry(settings)

        db_pool = init_db_pool(settings.POSTGRES)
        await db_pool.connect()
        pool_stats = await db_pool.get_pool_stats()
        logger.debug("Database connection pool initialized", **pool_stats)

        init_embedding_client(settings.EMBEDDING)
        init_vector_index(settings.EMBEDDING, db_pool)

        logger.info(
            "Application startup completed successfully",
            environment=settings.ENVIRONMENT,
            sentry=sentry_enabled,
            embedding_provider=str(settings.EMBEDDING.PROVIDER),
        )

    except Exception as e:
        logger.error(
            "Failed to initialize application",
            error=str(e),
            exc_info=True,
        )
        raise

    yield

    logger.debug("Application shutdown initiated")

    try:
        await close_embedding_client()
        close_vector_index()
        await close_db_pool()
        logger.debug("Application shutdown completed successfully")

    except Exception as e:
        logger.error(
            "Error during application shutdown",
            error=str(e),
            exc_info=True,
        )
        raise
