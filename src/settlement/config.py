"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_settings()``
startup gate that enforces the metrics provider configuration in production.

Apart from the pure domain models it has no imports from the rest of the
``settlement`` package, so it can be loaded first by every entry point.
"""

from __future__ import annotations

import sys
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from settlement.domain.models import InsuranceBracket

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields prevent accidental leaks in logs or error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    api_port: int = 8000
    system_actor_id: str = "system"

    # -- Storage ---------------------------------------------------------------
    database_path: Path = Path("data/settlement.db")
    db_busy_timeout_seconds: float = Field(default=30.0, gt=0)

    # -- Error reporting -------------------------------------------------------
    sentry_dsn: str = ""

    # -- Metrics provider ------------------------------------------------------
    metrics_provider_url: str = ""
    metrics_provider_token: SecretStr = SecretStr("")
    metrics_refresh_concurrency: int = Field(default=5, ge=1)
    metrics_refresh_attempts: int = Field(default=3, ge=1)
    metrics_refresh_wait_initial: float = Field(default=1.0, ge=0)
    metrics_refresh_wait_max: float = Field(default=30.0, ge=0)
    metrics_refresh_jitter: float = Field(default=1.0, ge=0)

    # -- Payout ----------------------------------------------------------------
    payout_max_share: Decimal | None = Field(default=None, gt=0, le=1)
    payout_min_eligible_points: Decimal = Field(default=Decimal("0"), ge=0)
    payout_min_eligible_contribution: Decimal = Field(default=Decimal("0"), ge=0, le=1)
    # JSON list, e.g. [{"min_budget": "500", "min_submissions": 3, "min_views": 10000}]
    payout_insurance_brackets: list[InsuranceBracket] = Field(default_factory=list)


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # exc.errors() only; the full exception may echo secret values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_settings(settings: Settings) -> None:
    """Enforce metrics provider configuration at startup.

    In **production** mode the process exits with a clear error block if the
    provider URL or token is missing.  In **development** mode each problem
    is logged as a warning and settlement runs with last-known metrics.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.metrics_provider_url:
        errors.append("METRICS_PROVIDER_URL is empty or not set")

    if not settings.metrics_provider_token.get_secret_value():
        errors.append("METRICS_PROVIDER_TOKEN is empty or not set")

    if settings.metrics_refresh_wait_max < settings.metrics_refresh_wait_initial:
        errors.append("METRICS_REFRESH_WAIT_MAX is smaller than METRICS_REFRESH_WAIT_INITIAL")

    if not errors:
        logger.info("settings_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("setting_invalid", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Invalid configuration for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("setting_invalid_dev", detail=err)
