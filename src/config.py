"""
Engine settings.

The KPI engine itself takes every parameter as an argument; these
settings are the defaults the CLI and the integrity endpoint pass in.
Values come from the environment, with `.env` loaded for local runs.

Usage:
    from src.config import settings

    compute_kpis(batch, selection, lag_months=settings.reporting_lag_months)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_ENV_FILE = Path(__file__).parent.parent / ".env"
if _ENV_FILE.exists():
    load_dotenv(_ENV_FILE)

TRUE_VALUES = ("true", "1", "yes", "on")


def get_bool(key: str, default: bool = False) -> bool:
    return os.getenv(key, str(default)).strip().lower() in TRUE_VALUES


def get_int(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        logger.warning(f"{key} is not an integer, using {default}")
        return default


def get_float(key: str, default: float) -> float:
    try:
        return float(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        logger.warning(f"{key} is not a number, using {default}")
        return default


def _bounded(name: str, value, low, high, fallback):
    """value if low <= value <= high, else fallback with a warning."""
    if low <= value <= high:
        return value
    logger.warning(f"{name}={value} outside [{low}, {high}], using {fallback}")
    return fallback


@dataclass
class Settings:
    """Engine defaults read from the environment."""

    # Ledger lag behind the calendar; drives the running YTD year
    reporting_lag_months: int = field(default_factory=lambda: get_int("REPORTING_LAG_MONTHS", 1))

    kpi_parallel: bool = field(default_factory=lambda: get_bool("KPI_PARALLEL", False))
    kpi_workers: int = field(default_factory=lambda: get_int("KPI_WORKERS", 4))

    # Integrity thresholds
    single_month_min_records: int = field(default_factory=lambda: get_int("SINGLE_MONTH_MIN_RECORDS", 10))
    coverage_warning_percent: float = field(
        default_factory=lambda: get_float("COVERAGE_WARNING_PERCENT", 80.0)
    )

    facility_registry_path: Optional[str] = field(
        default_factory=lambda: os.getenv("FACILITY_REGISTRY_PATH") or None
    )

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = field(
        default_factory=lambda: os.getenv(
            "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )

    def __post_init__(self):
        self.reporting_lag_months = _bounded("REPORTING_LAG_MONTHS", self.reporting_lag_months, 0, 12, 1)
        self.kpi_workers = _bounded("KPI_WORKERS", self.kpi_workers, 1, 32, 4)
        self.single_month_min_records = _bounded(
            "SINGLE_MONTH_MIN_RECORDS", self.single_month_min_records, 2, 1_000_000, 10
        )
        self.coverage_warning_percent = _bounded(
            "COVERAGE_WARNING_PERCENT", self.coverage_warning_percent, 0.0, 100.0, 80.0
        )
        if self.facility_registry_path and not Path(self.facility_registry_path).exists():
            logger.warning(
                f"Facility registry {self.facility_registry_path} not found, using built-in facility list"
            )
            self.facility_registry_path = None

    def configure_logging(self):
        level = getattr(logging, self.log_level.upper(), logging.INFO)
        logging.basicConfig(level=level, format=self.log_format)


settings = Settings()


def get_settings() -> Settings:
    return settings
