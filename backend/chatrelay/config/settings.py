"""Application settings using Pydantic BaseSettings."""

import os
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _get_default_db_path() -> str:
    """Get absolute path to default SQLite database."""
    backend_dir = os.path.dirname(_PACKAGE_DIR)
    db_path = os.path.join(backend_dir, "data", "chatrelay.db")
    return f"sqlite:///{db_path}"


def _get_default_catalog_path() -> str:
    """Model catalog shipped with the package."""
    return os.path.join(_PACKAGE_DIR, "data", "models.json")


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Provider API keys are deliberately absent: they are read from the
    per-provider environment variables listed in PROVIDER_METADATA at
    resolution time.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=("settings_",),
    )

    # Server
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_file: str | None = Field(default=None)
    log_json: bool = Field(default=False)

    # Database
    database_url: str = Field(default_factory=_get_default_db_path)

    # Model catalog
    model_catalog_path: str = Field(default_factory=_get_default_catalog_path)

    # Invocation defaults
    max_output_tokens: int = Field(default=1000, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    provider_timeout_seconds: int = Field(default=60, gt=0)
    stream_buffer_size: int = Field(default=64, gt=0)

    # Provider endpoints
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    anthropic_base_url: str = Field(default="https://api.anthropic.com/v1")
    google_base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    deepseek_base_url: str = Field(default="https://api.deepseek.com/v1")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1")

    # Retention
    conversation_retention_days: int = Field(default=30, gt=0)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        vv = (v or "").strip().lower()
        if vv not in {"development", "staging", "production", "test"}:
            raise ValueError("ENVIRONMENT must be one of: development, staging, production, test")
        return vv


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
