"""
PostgreSQL configuration settings.

Holds connection, pool and migration options for the sales store, the
pgvector index and the chat history tables.
"""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    HOST: str = Field(
        default="localhost",
        description="Database host address",
    )
    PORT: int = Field(
        default=5432,
        description="Database port",
    )
    NAME: str = Field(
        default="salesbot",
        description="Database name",
    )
    USER: str = Field(
        default="postgres",
        description="Database user",
    )
    PASSWORD: str = Field(
        default="",
        description="Database password",
    )
    POOL_MIN_SIZE: int = Field(
        default=1,
        description="Minimum number of connections in the pool",
    )
    POOL_MAX_SIZE: int = Field(
        default=10,
        description="Maximum number of connections in the pool",
    )
    POOL_MAX_INACTIVE_CONNECTION_LIFETIME: float = Field(
        default=300.0,
        description="Maximum inactive connection lifetime in seconds",
    )
    POOL_TIMEOUT: float = Field(
        default=10.0,
        description="Timeout for acquiring connection from pool in seconds",
    )
    COMMAND_TIMEOUT: float = Field(
        default=60.0,
        description="Default timeout for a single statement in seconds",
    )
    APPLY_MIGRATIONS: bool = Field(
        default=False,
        description="Apply pending yoyo migrations before the server starts",
    )
    MIGRATIONS_DIR: str = Field(
        default="./migrations",
        description="Directory holding the yoyo migration scripts",
    )
    model_config = SettingsConfigDict(case_sensitive=False, extra="forbid")

    @field_validator("POOL_MIN_SIZE", "POOL_MAX_SIZE")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        """Validate pool sizes are positive."""
        if v < 1:
            raise ValueError("Pool size must be at least 1")
        return v

    @model_validator(mode="after")
    def validate_pool_bounds(self) -> "DatabaseConfig":
        if self.POOL_MIN_SIZE > self.POOL_MAX_SIZE:
            raise ValueError("POOL_MIN_SIZE cannot exceed POOL_MAX_SIZE")
        return self

    def get_database_url(self, driver: str = "postgresql+asyncpg") -> str:
        """
        Generate database URL from configuration.

        Args:
            driver: Database driver (yoyo expects postgresql+psycopg)

        Returns:
            Database URL string
        """
        return (
            f"{driver}://{self.USER}:{self.PASSWORD}@"
            f"{self.HOST}:{self.PORT}/{self.NAME}"
        )
