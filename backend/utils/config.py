"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Immutable runtime configuration.

    Tests derive variants with ``dataclasses.replace`` instead of mutating
    process environment.
    """

    app_name: str = "Hotel PMS Allocation API"
    app_version: str = "1.0.0"
    database_path: Path = Path("data/hotel_pms.db")
    log_level: str = "INFO"
    sqlite_busy_timeout_seconds: float = 5.0
    seed_demo_data: bool = False

    default_adults: int = 2
    ledger_default_days: int = 14

    reassignment_strategy: str = "first_fit"
    reassignment_solver_max_time_seconds: int = 5
    reassignment_cp_sat_workers: int = 1
    reassignment_solver_random_seed: int = 42

    digital_key_provider: str = "LOCK-API"
    confirmation_rules_url: str = "https://hotel.example/rules"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process from environment variables."""
    defaults = Settings()
    return Settings(
        app_name=os.getenv("APP_NAME", defaults.app_name),
        app_version=os.getenv("APP_VERSION", defaults.app_version),
        database_path=Path(os.getenv("DATABASE_PATH", str(defaults.database_path))),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        sqlite_busy_timeout_seconds=float(
            os.getenv(
                "SQLITE_BUSY_TIMEOUT_SECONDS",
                str(defaults.sqlite_busy_timeout_seconds),
            )
        ),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", defaults.seed_demo_data),
        default_adults=int(os.getenv("DEFAULT_ADULTS", str(defaults.default_adults))),
        ledger_default_days=int(
            os.getenv("LEDGER_DEFAULT_DAYS", str(defaults.ledger_default_days))
        ),
        reassignment_strategy=os.getenv(
            "REASSIGNMENT_STRATEGY", defaults.reassignment_strategy
        ).strip().lower(),
        reassignment_solver_max_time_seconds=int(
            os.getenv(
                "REASSIGNMENT_SOLVER_MAX_TIME_SECONDS",
                str(defaults.reassignment_solver_max_time_seconds),
            )
        ),
        reassignment_cp_sat_workers=int(
            os.getenv(
                "REASSIGNMENT_CP_SAT_WORKERS",
                str(defaults.reassignment_cp_sat_workers),
            )
        ),
        reassignment_solver_random_seed=int(
            os.getenv(
                "REASSIGNMENT_SOLVER_RANDOM_SEED",
                str(defaults.reassignment_solver_random_seed),
            )
        ),
        digital_key_provider=os.getenv(
            "DIGITAL_KEY_PROVIDER", defaults.digital_key_provider
        ),
        confirmation_rules_url=os.getenv(
            "CONFIRMATION_RULES_URL", defaults.confirmation_rules_url
        ),
    )
