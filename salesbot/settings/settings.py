from pathlib import Path
import tomllib
from typing import Any, Optional

from pydantic import Field
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from salesbot.settings.agent import AgentConfig
from salesbot.settings.database import DatabaseConfig
from salesbot.settings.embedding import EmbeddingConfig
from salesbot.settings.jwt import JWTConfig
from salesbot.settings.sales import SalesConfig
from salesbot.settings.server import ServerConfig


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """
    Settings source that loads configuration from a TOML file.
    This has lower priority than environment variables.
    """

    def __init__(self, settings_cls: type[BaseSettings], toml_file: Path | None = None):
        super().__init__(settings_cls)
        self.toml_file = toml_file or Path("config.toml")
        self.toml_data: dict[str, Any] = {}
        self._load_toml()

    def _load_toml(self) -> None:
        if self.toml_file and self.toml_file.exists():
            with open(self.toml_file, "rb") as f:
                self.toml_data = tomllib.load(f)

    def _normalize_keys(self, data: dict[str, Any]) -> dict[str, Any]:
        """Upper-case keys so `[postgres] host = ...` maps to POSTGRES.HOST."""
        normalized = {}
        for key, value in data.items():
            if isinstance(value, dict):
                normalized[key.upper()] = self._normalize_keys(value)
            else:
                normalized[key.upper()] = value
        return normalized

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        normalized_data = self._normalize_keys(self.toml_data)
        return normalized_data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return self._normalize_keys(self.toml_data)


class Settings(BaseSettings):
    APP_NAME: str = Field(default="Salesbot", description="Application name")
    APP_VERSION: str = Field(default="0.1.0", description="Application version")
    DEBUG: bool = Field(default=False, description="Debug mode")
    ENVIRONMENT: str = Field(
        default="DEV", description="Environment of the application"
    )
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    SENTRY_DSN: Optional[str] = Field(
        default=None, description="Sentry DSN; error reporting is off when empty"
    )
    SERVER: ServerConfig = Field(
        default_factory=ServerConfig, description="Server configuration settings"
    )
    POSTGRES: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="PostgreSQL database settings"
    )
    JWT: JWTConfig = Field(
        default_factory=JWTConfig, description="Session token verification settings"
    )
    AGENT: AgentConfig = Field(
        default_factory=AgentConfig, description="Chat agent settings"
    )
    EMBEDDING: EmbeddingConfig = Field(
        default_factory=EmbeddingConfig, description="Embedding provider settings"
    )
    SALES: SalesConfig = Field(
        default_factory=SalesConfig, description="Sales data settings"
    )

    model_config = SettingsConfigDict(
        env_prefix="SALESBOT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Priority (highest to lowest):
        1. Init arguments
        2. Environment variables
        3. .env file
        4. TOML file
        5. Default values
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls, Path("config.toml")),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance, creating it on first use.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Rebuild the global settings instance from the environment."""
    global _settings
    _settings = Settings()
    return _settings
