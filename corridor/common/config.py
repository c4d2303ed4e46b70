"""
Configuration management for the corridor search engine.

This module provides centralized configuration loading and validation using Pydantic.
All environment variables are loaded and validated at startup. Every setting has a
usable default so the package can be imported without any environment prepared.
"""

import os
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class SearchConfig(BaseModel):
    """Search fan-out configuration."""

    default_radius_m: float = Field(
        default=5000.0, description="Search radius around each circle in meters"
    )
    default_query: str = Field(
        default="ev charging station", description="Default text query"
    )
    densify_interval_m: float = Field(
        default=100.0, description="Interpolation interval used to densify paths"
    )
    max_concurrent_requests: int = Field(
        default=16, description="Maximum concurrent collaborator calls per phase"
    )
    enrich_query: Optional[str] = Field(
        default=None, description="Query for entities near each fetched entity"
    )
    enrich_radius_m: float = Field(
        default=500.0, description="Radius of the enrichment search in meters"
    )

    @field_validator("default_radius_m", "densify_interval_m", "enrich_radius_m")
    @classmethod
    def validate_positive_distance(cls, v):
        """Distances used for covering must be strictly positive."""
        if v <= 0:
            raise ValueError("distance settings must be positive")
        return v

    @field_validator("max_concurrent_requests")
    @classmethod
    def validate_concurrency(cls, v):
        """At least one worker is required."""
        if v < 1:
            raise ValueError("max_concurrent_requests must be at least 1")
        return v


class ProviderConfig(BaseModel):
    """External provider retry configuration."""

    max_retries: int = Field(default=3, description="Maximum number of attempts")
    backoff_factor: float = Field(default=0.5, description="Exponential backoff factor")
    max_backoff_seconds: float = Field(
        default=8.0, description="Upper bound for a single backoff wait"
    )

    @field_validator("max_retries")
    @classmethod
    def validate_retries(cls, v):
        """A call is always attempted at least once."""
        if v < 1:
            raise ValueError("max_retries must be at least 1")
        return v


class ETAConfig(BaseModel):
    """ETA estimation configuration."""

    detour_speed_kmh: float = Field(
        default=50.0, description="Assumed speed for the off-route detour"
    )

    @field_validator("detour_speed_kmh")
    @classmethod
    def validate_speed(cls, v):
        """Detour speed must be positive."""
        if v <= 0:
            raise ValueError("detour_speed_kmh must be positive")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Logging level")
    format_str: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )
    enable_structured_logging: bool = Field(
        default=True, description="Enable structured JSON logging"
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    search: SearchConfig = Field(default_factory=SearchConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    eta: ETAConfig = Field(default_factory=ETAConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Environment
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")


def load_config(env: Optional[dict] = None) -> AppConfig:
    """
    Load and validate configuration from environment variables.

    Args:
        env: Mapping used instead of ``os.environ`` (mainly for tests)

    Returns:
        Validated AppConfig instance
    """
    source = os.environ if env is None else env

    def get(name: str, default: str) -> str:
        return source.get(name, default)

    try:
        config_dict = {
            "search": {
                "default_radius_m": float(get("SEARCH_RADIUS_METERS", "5000")),
                "default_query": get("SEARCH_QUERY", "ev charging station"),
                "densify_interval_m": float(get("DENSIFY_INTERVAL_METERS", "100")),
                "max_concurrent_requests": int(get("MAX_CONCURRENT_REQUESTS", "16")),
                "enrich_query": get("ENRICH_QUERY", "") or None,
                "enrich_radius_m": float(get("ENRICH_RADIUS_METERS", "500")),
            },
            "provider": {
                "max_retries": int(get("MAX_RETRIES", "3")),
                "backoff_factor": float(get("BACKOFF_FACTOR", "0.5")),
                "max_backoff_seconds": float(get("MAX_BACKOFF_SECONDS", "8")),
            },
            "eta": {
                "detour_speed_kmh": float(get("DETOUR_SPEED_KMH", "50")),
            },
            "logging": {
                "level": get("LOG_LEVEL", "INFO"),
                "enable_structured_logging": get(
                    "ENABLE_STRUCTURED_LOGGING", "true"
                ).lower()
                == "true",
            },
            "environment": get("ENVIRONMENT", "development"),
            "debug": get("DEBUG", "false").lower() == "true",
        }
    except ValueError as e:
        raise ValueError(f"Invalid numeric configuration value: {e}")

    return AppConfig(**config_dict)


# Global configuration instance
config = load_config()
