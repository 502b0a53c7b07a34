"""Health and readiness endpoints for container orchestration.

Provides two top-level routes:

- ``GET /health`` -- Liveness check.  Returns 200 if the process is alive.
- ``GET /ready``  -- Readiness check.  Returns 200 only when the settlement
  database connection is functional.  The metrics provider is reported as
  ``ok`` or ``not_configured``; without one, settlement uses last-known
  metrics, so it does not block readiness.  Returns 503 with per-check
  details otherwise.
"""

from __future__ import annotations

import asyncio
import sqlite3
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*.

    Args:
        app: The FastAPI application instance.
    """

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness check -- always returns 200 if the process is running."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness check -- checks the database and reports the metrics provider."""
        services: dict[str, Any] = request.app.state.services
        checks: dict[str, str] = {}

        db_conn = services.get("db_conn")
        if db_conn is not None:
            try:
                await asyncio.to_thread(db_conn.execute, "SELECT 1")
                checks["database"] = "ok"
            except sqlite3.Error:
                checks["database"] = "fail"
        else:
            checks["database"] = "fail"

        if services.get("metrics_provider") is not None:
            checks["metrics_provider"] = "ok"
        else:
            checks["metrics_provider"] = "not_configured"

        all_ok = checks["database"] == "ok"
        status = "ready" if all_ok else "not_ready"
        code = 200 if all_ok else 503

        return JSONResponse(content={"status": status, "checks": checks}, status_code=code)
