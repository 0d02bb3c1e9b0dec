"""
Database migration manager using yoyo-migrations.

This module applies the schema in `migrations/` using the application's
database settings.
"""

from typing import Optional

import structlog
from yoyo import get_backend, read_migrations
from yoyo.backends import DatabaseBackend

from salesbot.settings.database import DatabaseConfig

logger = structlog.get_logger(__name__)


class MigrationManager:
    """
    Manages database migrations using yoyo-migrations.

    This class handles migration application and status checking with
    proper error handling and logging.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        migrations_dir: Optional[str] = None,
    ) -> None:
        """
        Initialize the migration manager.

        Args:
            config: Database configuration used to build the connection URL
            migrations_dir: Path to migrations directory. Defaults to the configured one
        """
        self.migrations_dir = migrations_dir or config.MIGRATIONS_DIR
        self.database_url = config.get_database_url("postgresql+psycopg")
        self._backend: Optional[DatabaseBackend] = None

    def _get_backend(self) -> DatabaseBackend:
        """
        Get or create the yoyo database backend.

        Raises:
            Exception: If backend creation fails
        """
        if self._backend is None:
            try:
                logger.info("Creating yoyo database backend")
                self._backend = get_backend(self.database_url)
            except Exception as e:
                logger.error("Failed to create database backend", error=str(e))
                raise
        return self._backend

    def pending(self) -> list[str]:
        """Identifiers of migrations not applied yet."""
        backend = self._get_backend()
        return [m.id for m in backend.to_apply(read_migrations(self.migrations_dir))]

    def apply(self) -> int:
        """
        Apply all pending migrations under the backend lock.

        Returns:
            Number of migrations applied

        Raises:
            Exception: If migration application fails
        """
        backend = self._get_backend()
        with backend.lock():
            migrations = backend.to_apply(read_migrations(self.migrations_dir))
            for migration in migrations:
                try:
                    logger.info("Applying migration", migration=migration.id)
                    backend.apply_one(migration)
                except Exception as e:
                    logger.error(
                        "Failed to apply migration", migration=migration.id, error=str(e)
                    )
                    raise
        logger.info("Migrations applied", count=len(migrations))
        return len(migrations)

    @classmethod
    def apply_migrations(
        cls, config: DatabaseConfig, migrations_dir: Optional[str] = None
    ) -> int:
        """
        Apply the application migrations.

        Args:
            config: Database configuration
            migrations_dir: Path to migrations directory

        Raises:
            Exception: If migration application fails
        """
        return cls(config, migrations_dir).apply()
