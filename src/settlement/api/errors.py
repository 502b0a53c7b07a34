"""Map domain errors onto HTTP responses."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from settlement.domain.errors import (
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    SettlementError,
    StorageFailureError,
    UnauthorizedError,
)

logger = structlog.get_logger()

ERROR_STATUS_CODES: dict[type[SettlementError], int] = {
    UnauthorizedError: 403,
    InvalidInputError: 400,
    NotFoundError: 404,
    InvalidStateError: 409,
    StorageFailureError: 503,
}


def status_code_for(exc: SettlementError) -> int:
    """Return the HTTP status for *exc*, walking its class hierarchy."""
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


async def settlement_error_handler(request: Request, exc: SettlementError) -> JSONResponse:
    code = status_code_for(exc)
    body: dict[str, object] = {"error": type(exc).__name__, "detail": str(exc)}
    if isinstance(exc, InvalidStateError):
        body["error"] = "already processed"
        body["currentStatus"] = exc.current_status.value
    if exc.retryable:
        body["retryable"] = True

    if code >= 500:
        logger.error("request_failed", path=request.url.path, status_code=code, error=str(exc))
    else:
        logger.info("request_rejected", path=request.url.path, status_code=code, error=str(exc))
    return JSONResponse(status_code=code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    """Install the domain error handler on *app*."""
    app.add_exception_handler(SettlementError, settlement_error_handler)  # type: ignore[arg-type]
