"""Metrics Refresh Collaborator interface.

The engine only depends on this protocol; the HTTP adapter and test doubles
implement it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from settlement.domain.models import EngagementSnapshot


@runtime_checkable
class MetricsProvider(Protocol):
    """Source of the latest engagement counts for a submission."""

    async def fetch_latest_metrics(self, submission_id: str) -> EngagementSnapshot:
        """Return the current snapshot for *submission_id*.

        Implementations raise on failure; the refresh phase records the
        failure and keeps going with the other submissions.
        """
        ...
