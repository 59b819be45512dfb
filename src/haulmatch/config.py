"""Configuration management for the haulmatch dispatch core."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    APP_NAME: str = "Haulmatch Dispatch Core"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # ==========================================================================
    # Scheduler
    # ==========================================================================
    CYCLE_INTERVAL_MS: int = Field(default=60_000, ge=0, description="Pause between cycles")
    MAX_CONCURRENT_UNITS: int = Field(default=5, ge=1, description="Reserved, units run sequentially")
    UNIT_TIMEOUT_SECONDS: Optional[float] = Field(default=None, gt=0)
    ERROR_HISTORY_LIMIT: int = Field(default=100, ge=1)

    # Reliability tracking
    RELIABILITY_STRATEGY: Literal["running_mean", "ewma"] = "running_mean"
    RELIABILITY_EWMA_ALPHA: float = Field(default=0.2, gt=0, le=1)

    # Priority self-tuning
    PRIORITY_PROMOTE_ABOVE: float = 0.9
    PRIORITY_DEMOTE_BELOW: float = 0.7

    # ==========================================================================
    # Matching
    # ==========================================================================
    MIN_MATCH_SCORE: float = Field(default=0.70, ge=0, le=1)
    MAX_MATCHES_PER_CYCLE: int = Field(default=20, ge=1)
    RETURN_OPPORTUNITY_MIN_SCORE: float = Field(default=0.60, ge=0, le=1)

    # ==========================================================================
    # Pricing
    # ==========================================================================
    PLATFORM_MARGIN: float = 0.10  # Base platform margin
    MIN_MARGIN: float = 0.05
    MAX_MARGIN: float = 0.25
    FUEL_REFERENCE_PRICE: float = Field(default=1.80, gt=0)  # Diesel, per litre
    DEFAULT_RESOURCE_CLASS: str = "PL"

    # ==========================================================================
    # Market context defaults (until a live feed is injected)
    # ==========================================================================
    DEFAULT_FUEL_PRICE: float = Field(default=1.85, gt=0)
    DEFAULT_TRAFFIC_INDEX: float = Field(default=0.3, ge=0, le=1)
    # IANA zone for demand peak hours; host local time if unset
    MARKET_TIMEZONE: Optional[str] = None

    # ==========================================================================
    # HTTP server
    # ==========================================================================
    SERVER_HOST: str = "127.0.0.1"
    SERVER_PORT: int = 8000

    @property
    def cycle_interval_seconds(self) -> float:
        """Cycle interval in seconds."""
        return self.CYCLE_INTERVAL_MS / 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience alias
settings = get_settings()


# ==========================================================================
# Resource classes
# ==========================================================================
# Ordered by capacity: a higher class can substitute for a lower one.
RESOURCE_CLASS_HIERARCHY: list[str] = ["VL", "PL", "SPL"]

# Per-class base costs: per_km, per_hour (driver), per_day (vehicle), avg speed km/h
DEFAULT_COST_TABLE: dict[str, dict[str, float]] = {
    # Light vehicle (< 3.5t)
    "VL": {"per_km": 0.45, "per_hour": 22, "per_day": 180, "avg_speed_kmh": 70},
    # Heavy goods vehicle (7.5t - 19t)
    "PL": {"per_km": 1.20, "per_hour": 25, "per_day": 280, "avg_speed_kmh": 65},
    # Extra heavy (> 19t)
    "SPL": {"per_km": 1.45, "per_hour": 28, "per_day": 350, "avg_speed_kmh": 60},
    # Specialty bodies
    "Frigo": {"per_km": 1.60, "per_hour": 28, "per_day": 400, "avg_speed_kmh": 60},
    "Benne": {"per_km": 1.35, "per_hour": 26, "per_day": 320, "avg_speed_kmh": 55},
    "Citerne": {"per_km": 1.70, "per_hour": 30, "per_day": 420, "avg_speed_kmh": 55},
}
