"""
Sales data configuration: rendering, limits and CSV import rules.
"""

from pydantic import BaseModel, Field


class SalesConfig(BaseModel):
    CURRENCY_SYMBOL: str = Field(
        default="RM",
        description="Prefix used when rendering money values",
    )
    FILTER_ROW_LIMIT: int = Field(
        default=100,
        gt=0,
        description="Maximum rows rendered by a FILTER request",
    )
    DEFAULT_TOP_LIMIT: int = Field(
        default=5,
        gt=0,
        description="Number of groups returned by grouped aggregates",
    )
    INGESTION_BATCH_SIZE: int = Field(
        default=50,
        gt=0,
        description="Rows embedded and inserted together during CSV import",
    )
    INGESTION_MAX_RETRIES: int = Field(
        default=5,
        ge=1,
        description="Attempts per batch on transient storage errors",
    )
    INGESTION_RETRY_DELAY: float = Field(
        default=0.5,
        ge=0,
        description="Seconds to wait between batch attempts",
    )
    EXCLUDED_CUSTOMERS: list[str] = Field(
        default=["IDEAL TECH SERVICES"],
        description="CSV rows whose customer contains one of these are skipped",
    )
