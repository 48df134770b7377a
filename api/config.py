"""
Service configuration for the logistics KPI API.

Every setting can be overridden by an environment variable of the same
name (case-insensitive) or a line in `.env`.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed service settings."""

    # ========================================================================
    # Runtime
    # ========================================================================
    environment: str = "development"
    log_level: str = "info"
    debug: bool = False
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # ========================================================================
    # KPI computation
    # ========================================================================
    kpi_timeout_seconds: float = Field(30.0, gt=0, description="Hard limit for one KPI computation")
    kpi_parallel: bool = Field(False, description="Run KPI groups on a worker pool")
    kpi_workers: int = Field(4, ge=1, le=32)
    reporting_lag_months: int = Field(1, ge=0, le=12, description="Months the ledger trails the calendar")
    facility_registry_path: Optional[str] = Field(None, description="JSON registry; built-in list when unset")

    # ========================================================================
    # KPI result cache
    # ========================================================================
    cache_enabled: bool = True
    cache_ttl: int = Field(3600, ge=0, description="Seconds; 0 keeps entries until the batch changes")
    cache_size: int = Field(256, ge=1)

    # ========================================================================
    # Uploads
    # ========================================================================
    max_upload_mb: int = Field(50, ge=1)
    upload_rate_limit: str = "10/minute"

    # ========================================================================
    # Rate limiting (slowapi, Redis-backed when available)
    # ========================================================================
    rate_limit_enabled: bool = True
    rate_limit_per_minute: int = 60
    rate_limit_per_hour: int = 1000
    api_key_header: str = "X-API-Key"
    redis_url: str = "redis://localhost:6379/0"
    redis_enabled: bool = True

    # ========================================================================
    # CORS
    # ========================================================================
    cors_origins: str = "http://localhost:3000,http://localhost:3001"
    cors_credentials: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, v: str) -> str:
        if v.lower() not in ("debug", "info", "warning", "error", "critical"):
            raise ValueError(f"Unknown log level: {v}")
        return v.lower()

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

if settings.is_production and "localhost" in settings.cors_origins.lower():
    raise ValueError("CORS_ORIGINS must not include localhost in production!")
