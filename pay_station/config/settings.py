"""Application settings using Pydantic for environment-based configuration."""
from functools import lru_cache
from typing import Set

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pay_station.domain.value_objects import ParkingRate


class Settings(BaseSettings):
    """Pay station settings loaded from environment variables (PAY_STATION_*)."""

    # Coin handling
    accepted_coins: Set[int] = Field(
        default_factory=lambda: {5, 10, 25},
        description="Accepted coin denominations in cents (JSON list in env)",
    )

    # Parking rate
    cents_per_unit: int = Field(default=5, gt=0, description="Cents per rate unit")
    minutes_per_unit: int = Field(default=2, gt=0, description="Minutes per rate unit")

    # Application Configuration
    app_name: str = Field(default="pay-station", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=True, description="Render logs as JSON")

    model_config = SettingsConfigDict(
        env_prefix="PAY_STATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("accepted_coins")
    @classmethod
    def validate_accepted_coins(cls, v: Set[int]) -> Set[int]:
        """Require at least one coin and only positive denominations."""
        if not v:
            raise ValueError("At least one coin denomination must be accepted")
        invalid = sorted(c for c in v if c <= 0)
        if invalid:
            raise ValueError(f"Coin denominations must be positive, got {invalid}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    def parking_rate(self) -> ParkingRate:
        """Rate value object built from the configured cents/minutes."""
        return ParkingRate(
            cents_per_unit=self.cents_per_unit,
            minutes_per_unit=self.minutes_per_unit,
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
