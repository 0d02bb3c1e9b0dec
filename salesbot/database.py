"""
asyncpg connection pool shared by the sales, vector and chat repositories.

Connections are acquired and released inside one repository call; nothing
holds a connection across requests.
"""

import asyncio
from contextlib import asynccontextmanager
from json import dumps, loads
from typing import Any, Optional

import asyncpg
import structlog

from salesbot.settings.database import DatabaseConfig

logger = structlog.get_logger(__name__)

CLOSE_TIMEOUT_SECONDS = 10
PING_TIMEOUT_SECONDS = 2


async def register_json_codecs(connection: asyncpg.Connection) -> None:
    """Decode json and jsonb columns into Python objects (message parts)."""
    for type_name in ("json", "jsonb"):
        await connection.set_type_codec(
            type_name, encoder=dumps, decoder=loads, schema="pg_catalog"
        )


class DatabasePool:
    """Lifecycle and access for the PostgreSQL pool."""

    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database pool is not initialized. Call connect() first.")
        return self._pool

    def pool_options(self) -> dict[str, Any]:
        config = self.config
        return {
            "host": config.HOST,
            "port": config.PORT,
            "database": config.NAME,
            "user": config.USER,
            "password": config.PASSWORD,
            "min_size": config.POOL_MIN_SIZE,
            "max_size": config.POOL_MAX_SIZE,
            "max_inactive_connection_lifetime": config.POOL_MAX_INACTIVE_CONNECTION_LIFETIME,
            "timeout": config.POOL_TIMEOUT,
            "command_timeout": config.COMMAND_TIMEOUT,
            "init": register_json_codecs,
        }

    async def connect(self) -> None:
        if self._pool is not None:
            logger.warning("Database pool already initialized")
            return

        logger.info(
            "Creating database connection pool",
            host=self.config.HOST,
            database=self.config.NAME,
            min_size=self.config.POOL_MIN_SIZE,
            max_size=self.config.POOL_MAX_SIZE,
        )
        try:
            self._pool = await asyncpg.create_pool(**self.pool_options())
        except Exception as e:
            logger.error("Failed to create database connection pool", error=str(e))
            raise
        logger.info("Database connection pool created")

    async def disconnect(self) -> None:
        pool, self._pool = self._pool, None
        if pool is None:
            logger.warning("Database pool not initialized or already closed")
            return

        logger.info("Closing database connection pool")
        try:
            await asyncio.wait_for(pool.close(), timeout=CLOSE_TIMEOUT_SECONDS)
        except Exception as e:
            logger.error("Error closing database connection pool", error=str(e))
            raise
        logger.info("Database connection pool closed")

    @asynccontextmanager
    async def acquire(self):
        """
        Borrow a connection for the duration of the block.

        Raises:
            RuntimeError: If the pool is not initialized
            asyncpg.TooManyConnectionsError, asyncio.TimeoutError: If no
                connection frees up within POOL_TIMEOUT; repositories map
                these to TransientStorageException
        """
        pool = self.pool
        try:
            connection = await pool.acquire(timeout=self.config.POOL_TIMEOUT)
        except (asyncpg.TooManyConnectionsError, asyncio.TimeoutError) as e:
            logger.error("Could not acquire a pooled connection", error=str(e))
            raise

        try:
            yield connection
        finally:
            try:
                await pool.release(connection)
            except Exception as e:
                logger.error("Error releasing connection", error=str(e))

    @asynccontextmanager
    async def transaction(self):
        """Borrow a connection with an open transaction, rolled back on error."""
        async with self.acquire() as connection:
            async with connection.transaction():
                yield connection

    async def ping(self) -> bool:
        """True when the pool can run a trivial query."""
        if self._pool is None:
            return False
        try:
            async with self.acquire() as connection:
                await connection.fetchval("SELECT 1", timeout=PING_TIMEOUT_SECONDS)
        except Exception as e:
            logger.warning("Database ping failed", error=str(e))
            return False
        return True

    async def get_pool_stats(self) -> dict:
        if self._pool is None:
            return {"initialized": False, "size": 0, "free": 0}
        return {
            "initialized": True,
            "size": self._pool.get_size(),
            "free": self._pool.get_idle_size(),
            "min_size": self._pool.get_min_size(),
            "max_size": self._pool.get_max_size(),
        }


_db_pool: Optional[DatabasePool] = None


def get_db_pool() -> DatabasePool:
    if _db_pool is None:
        raise RuntimeError("Database pool not initialized. Call init_db_pool() first.")
    return _db_pool


def init_db_pool(config: DatabaseConfig) -> DatabasePool:
    global _db_pool
    if _db_pool is None:
        _db_pool = DatabasePool(config)
    return _db_pool


async def close_db_pool() -> None:
    global _db_pool
    if _db_pool is not None:
        await _db_pool.disconnect()
        _db_pool = None
