"""Application entry point for the campaign settlement service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error reporting through the structlog-sentry bridge
- **SQLite** settlement database with the audit trail in the same file
- **Metrics provider** HTTP adapter when a provider URL is configured
- **FastAPI** admin routes, health checks, request IDs and ``/metrics``
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from settlement.api.errors import register_error_handlers
from settlement.api.routes import router as campaigns_router
from settlement.audit.logger import AuditLogger
from settlement.audit.store import init_audit_table
from settlement.config import Settings, get_settings, validate_settings
from settlement.engine.orchestrator import SettlementOrchestrator
from settlement.health import register_health_routes
from settlement.metrics.http import HttpMetricsProvider
from settlement.notifications.emitter import StoreNotificationSink
from settlement.observability.metrics import setup_metrics
from settlement.observability.middleware import SERVICE_NAME, RequestIdMiddleware
from settlement.observability.sentry import get_sentry_processor, init_sentry
from settlement.store.database import connect_db
from settlement.store.schema import init_settlement_schema
from settlement.store.store import SettlementStore

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Forward ERROR events to Sentry if ``True``.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())
    shared_processors += [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Opens the settlement database (creating the schema and audit table),
    then builds the store, audit logger, notification sink, metrics
    provider (if ``metrics_provider_url`` is set) and the orchestrator.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    db_path = settings.database_path
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)
    db_conn = connect_db(db_path, busy_timeout=settings.db_busy_timeout_seconds)
    init_settlement_schema(db_conn)
    init_audit_table(db_conn)
    services["db_conn"] = db_conn

    store = SettlementStore(db_conn)
    services["store"] = store

    audit_logger = AuditLogger(db_conn)
    services["audit_logger"] = audit_logger

    notification_sink = StoreNotificationSink(store)
    services["notification_sink"] = notification_sink

    metrics_provider = None
    if settings.metrics_provider_url:
        metrics_provider = HttpMetricsProvider(
            settings.metrics_provider_url,
            settings.metrics_provider_token.get_secret_value(),
        )
        logger.info("metrics_provider_configured", url=settings.metrics_provider_url)
    else:
        logger.info("metrics_provider_disabled", reason="METRICS_PROVIDER_URL not set")
    services["metrics_provider"] = metrics_provider

    services["orchestrator"] = SettlementOrchestrator.from_settings(
        store,
        settings,
        metrics_provider=metrics_provider,
        notification_sink=notification_sink,
        audit_logger=audit_logger,
    )

    logger.info("services_initialized", database=str(db_path))
    return services


async def close_services(services: dict[str, Any]) -> None:
    """Release the metrics provider client and the database connection."""
    metrics_provider = services.get("metrics_provider")
    if metrics_provider is not None:
        await metrics_provider.aclose()
    db_conn = services.get("db_conn")
    if db_conn is not None:
        db_conn.close()
        logger.info("settlement_database_closed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On shutdown: closes the provider client and the database connection.
    """
    logger.info("fastapi_application_starting")
    yield
    await close_services(app.state.services)


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with admin routes, health checks and instrumentation.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Campaign Settlement Engine", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings") or get_settings()
    fastapi_app.add_middleware(RequestIdMiddleware)
    register_error_handlers(fastapi_app)
    fastapi_app.include_router(campaigns_router)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


async def main() -> None:
    """Main entry point: configure, build services and serve the API."""
    settings = get_settings()
    init_sentry(settings.sentry_dsn)
    configure_logging(production=settings.production, sentry_enabled=bool(settings.sentry_dsn))
    logger.info("application_starting")

    validate_settings(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.api_port,
        log_level="info",
    )
    await uvicorn.Server(config).serve()


def run_server() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run_server()
