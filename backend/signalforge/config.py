"""
SignalForge — Configuration Management

Pydantic Settings: loads from .env, validates all configuration at startup.
Only the orchestrating caller reads settings; engines take explicit arguments.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Core ──
    app_env: str = "development"

    # ── Historical Data ──
    history_lookback_days: int = Field(default=90, ge=1)  # ~3 months of daily bars
    min_history_bars: int = Field(default=20, ge=1)
    synthetic_fallback_enabled: bool = True
    synthetic_seed: int = 42
    provider_max_attempts: int = Field(default=3, ge=1)

    # ── Scanning ──
    scan_max_workers: int = Field(default=4, ge=1)
    analysis_timeout_seconds: float = Field(default=10.0, gt=0)

    # ── Live Jitter (off = reproducible output) ──
    live_jitter_enabled: bool = False
    live_jitter_seed: Optional[int] = None

    # ── Tracked Symbols ──
    tracked_symbols: str = "AAPL,GOOGL,MSFT,AMZN,TSLA,NVDA,META,NFLX"

    @property
    def tracked_symbol_list(self) -> list[str]:
        """Parse comma-separated tracked symbols into a list."""
        return [s.strip().upper() for s in self.tracked_symbols.split(",") if s.strip()]

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance; created once and reused."""
    return Settings()
