"""Application configuration using pydantic-settings pattern."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Event Relay"
    log_level: str = Field(default="INFO")

    # Database (Turso)
    turso_database_url: str | None = Field(default=None)
    turso_auth_token: str | None = Field(default=None)

    # Pending event storage
    storage_backend: Literal["sql", "memory"] = Field(
        default="sql",
        description="Where undelivered events are kept until an observer appears",
    )
    storage_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Upper bound for a single storage call",
    )
    storage_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for storage calls failing with transient errors",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
