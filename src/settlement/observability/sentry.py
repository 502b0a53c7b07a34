"""Sentry SDK initialization with structlog-sentry bridge.

Provides:
- ``init_sentry(dsn)``: Initialize Sentry SDK.  No-op when *dsn* is empty.
- ``drop_expected_errors``: ``before_send`` hook that discards client errors.
- ``get_sentry_processor()``: Return a structlog processor that forwards
  ERROR-level log events to Sentry.
"""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor

from settlement.domain.errors import SettlementError


def drop_expected_errors(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """Discard events caused by non-retryable domain errors.

    Unauthorized, invalid input, not found and invalid state are answered
    with a 4xx response and are not operational faults.  Retryable errors
    (storage failures, provider failures) are still reported.
    """
    exc_info = hint.get("exc_info")
    if exc_info:
        exc = exc_info[1]
        if isinstance(exc, SettlementError) and not exc.retryable:
            return None
    return event


def init_sentry(dsn: str) -> None:
    """Initialize Sentry SDK with the given *dsn*.

    When *dsn* is empty the function returns immediately -- no network calls,
    no SDK initialization.  Safe to call unconditionally at startup.

    Args:
        dsn: Sentry DSN string.  Empty string disables Sentry.
    """
    if not dsn:
        return

    sentry_sdk.init(
        dsn=dsn,
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=drop_expected_errors,
        integrations=[
            # structlog-sentry forwards error events; the default logging
            # capture would report them twice.
            LoggingIntegration(event_level=None, level=None),
        ],
    )


def get_sentry_processor() -> structlog.types.Processor:
    """Return a structlog processor that forwards ERROR events to Sentry.

    Insert this into the structlog processor chain **after** ``add_log_level``
    and **before** the renderer.

    Returns:
        A ``SentryProcessor`` instance configured for ERROR-level capture.
    """
    return SentryProcessor(event_level=logging.ERROR)
