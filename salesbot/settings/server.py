"""
Server configuration settings.

Host/port, worker and CORS options for the FastAPI application.
"""

from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class ServerConfig(BaseSettings):
    """Server configuration for the chat API."""

    HOST: str = Field(
        default="0.0.0.0",
        description="Server host address",
    )
    PORT: int = Field(
        default=8000,
        description="Server port",
    )
    WORKERS: int = Field(
        default=1,
        description="Number of worker processes",
    )
    RELOAD: bool = Field(
        default=False,
        description="Enable auto-reload on code changes",
    )
    CORS_ENABLED: bool = Field(
        default=True,
        description="Enable CORS middleware",
    )
    CORS_ORIGINS: Annotated[list[str], NoDecode] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(
        default=True,
        description="Allow credentials in CORS requests",
    )
    CORS_ALLOW_METHODS: Annotated[list[str], NoDecode] = Field(
        default=["*"],
        description="Allowed HTTP methods for CORS",
    )
    CORS_ALLOW_HEADERS: Annotated[list[str], NoDecode] = Field(
        default=["*"],
        description="Allowed headers for CORS",
    )
    SLOW_REQUEST_THRESHOLD_MS: float = Field(
        default=1000.0,
        description="Requests slower than this are logged as warnings",
    )
    MAX_UPLOAD_SIZE: int = Field(
        default=20 * 1024 * 1024,
        description="Maximum CSV upload size in bytes",
    )

    model_config = SettingsConfigDict(case_sensitive=False, extra="forbid")

    @field_validator("PORT")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("WORKERS")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Validate number of workers is positive."""
        if v < 1:
            raise ValueError("Workers must be at least 1")
        return v

    @field_validator(
        "CORS_ORIGINS", "CORS_ALLOW_METHODS", "CORS_ALLOW_HEADERS", mode="before"
    )
    @classmethod
    def parse_comma_separated(cls, v):
        """Accept either a list or a comma separated string."""
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v
