"""
Configuration management for the allocation engine.

Uses Pydantic Settings for type-safe configuration with environment variable support.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Base paths
ROOT_DIR = Path(__file__).parent.parent.parent
SRC_DIR = ROOT_DIR / "src"
DATA_DIR = ROOT_DIR / "data"


class DatabaseSettings(BaseSettings):
    """MongoDB database configuration."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    host: str = "localhost"
    port: int = 27017
    name: str = "allocation"
    username: str | None = None
    password: str | None = None
    # Multi-document transactions need a replica set
    replica_set: str | None = None

    @property
    def connection_string(self) -> str:
        """Generate MongoDB connection string."""
        if self.username and self.password:
            return f"mongodb://{self.username}:{self.password}@{self.host}:{self.port}"
        return f"mongodb://{self.host}:{self.port}"


class AllocationSettings(BaseSettings):
    """Tuning knobs of the scoring engine and distributor."""

    model_config = SettingsConfigDict(env_prefix="ALLOC_")

    # Store backend used by the CLI and get_allocation_engine()
    store_backend: Literal["memory", "mongo"] = "memory"

    # External AI justification provider
    provider_timeout_seconds: float = 3.0
    provider_max_workers: int = 4

    # Neutral fractions for analysts without history
    neutral_approval_fraction: float = 0.5
    neutral_speed_fraction: float = 0.5

    # Successful engagements with a client that earn the full client-fit score
    client_fit_saturation: int = 5

    # Mean response time (days) that earns half of the speed score
    speed_reference_days: float = 2.0

    # Optimistic concurrency retries on assignment counters
    cas_max_retries: int = 8

    # How many analysts "accept suggestion" picks in the allocation flow
    default_accept_top_n: int = 2
    max_selected_analysts: int = 3

    # Billing value that earns the full billing factor in job prioritization
    billing_reference_value: float = 50000.0
    time_open_reference_days: int = 60
    stack_complexity_reference: int = 8

    @field_validator("neutral_approval_fraction", "neutral_speed_fraction")
    @classmethod
    def validate_fraction(cls, v: float) -> float:
        """Neutral fractions must lie in [0, 1]."""
        if not 0.0 <= v <= 1.0:
            raise ValueError("Neutral fraction must be between 0 and 1")
        return v


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: str = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"
    file_path: Path = ROOT_DIR / "logs" / "allocation.log"
    rotation: str = "10 MB"
    retention: str = "30 days"
    audit_file_path: Path = ROOT_DIR / "logs" / "audit.jsonl"
    audit_retention: str = "1 year"
    console_output: bool = True


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    name: str = "allocation-engine"
    version: str = "0.1.0"
    description: str = "Recruiting analyst allocation engine"
    debug: bool = False

    # Environment
    environment: Literal["development", "production", "testing"] = "development"

    # Nested settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    allocation: AllocationSettings = Field(default_factory=AllocationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# Global settings instance (singleton pattern)
_settings: AppSettings | None = None


def get_settings() -> AppSettings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reload_settings() -> AppSettings:
    """Force reload settings from environment."""
    global _settings
    _settings = AppSettings()
    return _settings


# Convenience exports
settings = get_settings()
