"""Application configuration settings."""
from pydantic_settings import BaseSettings
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Settings
    api_v1_prefix: str = "/api/v1"
    project_name: str = "Liquidity Engine"
    debug: bool = True

    # CORS Settings
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Logging
    log_level: str = "INFO"

    # Engine Settings
    liquidity_config_path: Optional[str] = None   # YAML overrides for LiquidityConfig

    # Monitor Settings
    monitor_interval_seconds: float = 60.0   # Re-analysis period per symbol
    monitor_timeout_seconds: float = 30.0    # Deadline for one candle fetch

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
