"""Prometheus metrics instrumentation for the settlement engine.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus the business counters.
- ``CAMPAIGN_SETTLEMENTS``: Counter of settled campaigns labelled by outcome.
- ``PAYOUT_DISTRIBUTED``: Counter of the total amount paid out to creators.
- ``METRICS_REFRESH_FAILURES``: Counter of submissions whose refresh failed.

Business counters are updated after the owning transaction commits.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

CAMPAIGN_SETTLEMENTS: Counter = Counter(
    "settlement_campaigns_total",
    "Campaigns moved to a terminal or active status, by outcome",
    ["outcome"],
)

PAYOUT_DISTRIBUTED: Counter = Counter(
    "settlement_payout_distributed_total",
    "Total currency distributed to creators as payouts",
)

METRICS_REFRESH_FAILURES: Counter = Counter(
    "settlement_metrics_refresh_failures_total",
    "Submissions whose metrics refresh failed after all retries",
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
