"""Application configuration from environment variables."""

import logging
from decimal import Decimal
from typing import Literal, Optional

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Pydantic loads values from OS environment variables first, then from the
    .env file in the working directory.
    """

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Remote document store and identity provider (async SQLAlchemy URL)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./society_dues.db",
        description="Async database URL for documents and identities",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Local fallback store (sync SQLAlchemy URL)
    local_store_url: str = Field(
        default="sqlite:///./society_local.db",
        description="Database URL for the local fallback key/value store",
    )

    # Identity
    admin_email: str = Field(
        default="admin@sbdivine.com", description="Email of the single admin identity"
    )
    admin_password: str = Field(default="", description="Admin password used by the seed CLI")
    unit_password_hashing: bool = Field(
        default=False, description="Store and verify unit passwords as PBKDF2 hashes"
    )

    # Fee schedule defaults (used when no persisted schedule exists)
    flat_monthly_fee: Decimal = Field(default=Decimal("1000"), description="Residential fee")
    shop_monthly_fee: Decimal = Field(default=Decimal("200"), description="Commercial fee")

    # Persistence policy
    save_policy: Literal["manual", "debounced"] = Field(
        default="manual", description="Remote persistence policy"
    )
    autosave_delay_seconds: float = Field(
        default=1.5, gt=0, description="Quiet period before a debounced write"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/server.log", description="Log file path")

    # API
    api_title: str = Field(default="Society Dues API", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the settings instance.

    Lazy-loaded so entry points can call load_dotenv() before the first access.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
        logger.debug("Settings loaded: save_policy=%s", _settings_instance.save_policy)
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached settings instance (used by tests)."""
    global _settings_instance
    _settings_instance = None


__all__ = ["Settings", "get_settings", "reset_settings"]
