"""
Configuration
Runtime settings loaded from environment variables (prefix CARBON_) or .env.

Example:
    CARBON_DB_PATH=data/market.db
    CARBON_FEE_RATE=0.01
    CARBON_FEED_URL=wss://feed.example.org/samples
    CARBON_FEED_ASSETS='["mangrove", "seagrass"]'
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings."""

    model_config = SettingsConfigDict(
        env_prefix="CARBON_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    db_path: str = "data/market.db"
    persist: bool = True

    # Analytics
    default_period: int = Field(default=12, ge=2)
    max_horizon: int = Field(default=365, ge=1)
    metrics_lookback: int = Field(default=90, ge=2)
    cache_size: int = Field(default=256, ge=0)

    # Trading
    fee_rate: float = Field(default=0.01, ge=0, le=1)
    min_order_amount: float = Field(default=0.0, ge=0)
    max_order_amount: Optional[float] = Field(default=None, gt=0)

    # Price feed
    feed_url: Optional[str] = None
    feed_assets: List[str] = []
    feed_reconnect_delay: float = 5.0

    # Service
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get singleton settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings(**overrides) -> Settings:
    """Rebuild settings from the environment, with optional overrides."""
    global _settings
    _settings = Settings(**overrides)
    return _settings
