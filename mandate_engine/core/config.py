"""Mandate engine settings, read from the environment and an optional .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables / .env file."""

    app_name: str = "Mandate Engine"
    app_env: str = "development"
    app_port: int = 8000
    frontend_url: str = "http://localhost:3000"

    # Database (PostgreSQL in production or SQLite for local dev)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./mandates_dev.db",
        alias="DATABASE_URL",
    )

    # Multi-tenancy default
    default_client_id: str = Field(default="default", alias="DEFAULT_CLIENT_ID")

    # Mandate defaults
    default_commission_rate: float = Field(
        default=10.0, alias="DEFAULT_COMMISSION_RATE",
    )  # used when a create request omits the rate
    expiring_soon_days: int = Field(
        default=30, alias="EXPIRING_SOON_DAYS",
    )  # KPI horizon for "expiring soon"
    max_page_size: int = Field(default=200, alias="MAX_PAGE_SIZE")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
    }

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

settings = Settings()
