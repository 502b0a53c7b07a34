"""Engagement metrics: provider interface, HTTP adapter and refresh phase."""

from settlement.metrics.http import HttpMetricsProvider
from settlement.metrics.provider import MetricsProvider
from settlement.metrics.refresh import refresh_campaign_metrics

__all__ = [
    "HttpMetricsProvider",
    "MetricsProvider",
    "refresh_campaign_metrics",
]
