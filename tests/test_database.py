"""Tests for the connection pool wrapper without a running database."""

import pytest

from salesbot.database import DatabasePool, register_json_codecs
from salesbot.settings.database import DatabaseConfig


@pytest.fixture
def db_pool():
    return DatabasePool(DatabaseConfig(HOST="db.internal", POOL_MIN_SIZE=2, POOL_MAX_SIZE=4))


class TestDatabasePool:
    def test_pool_options(self, db_pool):
        options = db_pool.pool_options()

        assert options["host"] == "db.internal"
        assert options["min_size"] == 2
        assert options["max_size"] == 4
        assert options["init"] is register_json_codecs

    @pytest.mark.asyncio
    async def test_uninitialized_pool(self, db_pool):
        assert await db_pool.get_pool_stats() == {"initialized": False, "size": 0, "free": 0}
        assert await db_pool.ping() is False
        with pytest.raises(RuntimeError):
            async with db_pool.acquire():
                pass

    @pytest.mark.asyncio
    async def test_disconnect_without_pool_is_a_noop(self, db_pool):
        await db_pool.disconnect()
        assert await db_pool.get_pool_stats() == {"initialized": False, "size": 0, "free": 0}
