from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator
from typing import Optional


class Settings(BaseSettings):
    """
    Main configuration for the Assetline API.
    Uses Pydantic-Settings for environment variable parsing from .env.
    """
    APP_NAME: str = "Assetline"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # local, development, staging, production
    TESTING: bool = False
    RATELIMIT_ENABLED: bool = True
    ANALYTICS_RATE_LIMIT: str = "100/minute"

    @model_validator(mode='after')
    def validate_config(self) -> 'Settings':
        """Reject pricing schedules and secrets that would break billing or auth."""
        bounds = [
            self.CF_PRICING_TIER1_MAX_GB,
            self.CF_PRICING_TIER2_MAX_GB,
            self.CF_PRICING_TIER3_MAX_GB,
            self.CF_PRICING_TIER4_MAX_GB,
        ]
        if any(b <= 0 for b in bounds):
            raise ValueError("CF_PRICING_TIER*_MAX_GB values must be positive.")
        if any(later <= earlier for earlier, later in zip(bounds, bounds[1:])):
            raise ValueError(
                f"CF_PRICING_TIER*_MAX_GB values must be strictly ascending. Current: {bounds}"
            )

        if self.TESTING:
            return self

        if self.is_production and len(self.JWT_SECRET) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters in production.")

        return self

    # Database
    DATABASE_URL: str  # Required
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 10
    DB_SLOW_QUERY_SECONDS: float = 0.2

    # Auth (tokens are issued by the account service, we only verify them)
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"

    # Security
    CORS_ORIGINS: list[str] = []

    # Analytics defaults
    DEFAULT_SERIES_WINDOW_DAYS: int = 30
    DEFAULT_PAGE_LIMIT: int = 20
    MAX_PAGE_LIMIT: int = 100

    # CloudFront pricing, USD per GB for data transfer out.
    # MAX_GB values are cumulative; tier 5 has no upper bound.
    CF_PRICING_TIER1_MAX_GB: int = 10240    # 10 TB
    CF_PRICING_TIER1_PRICE: float = 0.085
    CF_PRICING_TIER2_MAX_GB: int = 51200    # 50 TB cumulative
    CF_PRICING_TIER2_PRICE: float = 0.080
    CF_PRICING_TIER3_MAX_GB: int = 153600   # 150 TB cumulative
    CF_PRICING_TIER3_PRICE: float = 0.060
    CF_PRICING_TIER4_MAX_GB: int = 512000   # 500 TB cumulative
    CF_PRICING_TIER4_PRICE: float = 0.040
    CF_PRICING_TIER5_PRICE: float = 0.030

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings():
    """Returns a singleton instance of the application settings."""
    return Settings()
