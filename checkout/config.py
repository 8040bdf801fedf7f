"""Configuration management using Pydantic Settings."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Checkout settings loaded from ``CHECKOUT_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CHECKOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///:memory:"

    # Payment processor
    currency: str = "jpy"
    min_charge_amount: int = 50
    processor_timeout_seconds: float = 10.0
    processor_retry_times: int = 3
    processor_retry_delay_seconds: float = 0.2

    # Authorization lifecycle
    authorization_ttl_seconds: int = 30 * 60
    settlement_window_seconds: int = 60 * 60

    # Pipeline
    inventory_concurrency: int = 10
    settlement_ttl_seconds: int = 24 * 60 * 60
    clear_entire_cart: bool = False

    # Shipping
    shipping_default_fee: int = 800
    shipping_fee_overrides: dict[str, int] = Field(default_factory=dict)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None


__all__ = ("Settings", "get_settings", "reset_settings")
