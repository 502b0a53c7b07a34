"""Metrics refresh phase of campaign settlement.

Fetches the latest engagement snapshot for every non-terminal submission of a
campaign with bounded parallelism and per-item retry.  A failure on one
submission is recorded and never aborts the others.  Store writes happen on
the event loop between awaits, so each one is a short independent
transaction on the shared connection.
"""

from __future__ import annotations

import asyncio
import sqlite3

import structlog

from settlement.domain.errors import SettlementError
from settlement.domain.models import EngagementSnapshot, MetricsRefreshReport, Submission
from settlement.domain.types import REFRESHABLE_SUBMISSION_STATUSES, FetchStatus
from settlement.metrics.provider import MetricsProvider
from settlement.observability.metrics import METRICS_REFRESH_FAILURES
from settlement.resilience.retry import call_with_retry
from settlement.store.store import SettlementStore

logger = structlog.get_logger()


def _log_fetch(
    store: SettlementStore,
    submission: Submission,
    status: FetchStatus,
    error: str | None = None,
) -> None:
    try:
        store.log_metric_fetch(submission.campaign_id, submission.id, status, error_message=error)
    except (SettlementError, sqlite3.Error):
        logger.exception(
            "metric_fetch_log_failed",
            campaign_id=submission.campaign_id,
            submission_id=submission.id,
        )


def _save_snapshot(
    store: SettlementStore, submission: Submission, snapshot: EngagementSnapshot
) -> str | None:
    """Persist *snapshot*; return an error message if it was not stored."""
    try:
        stored = store.record_snapshot(submission.id, snapshot)
    except (SettlementError, sqlite3.Error) as exc:
        return f"snapshot not saved: {exc}"
    if not stored:
        return "campaign is no longer active; snapshot discarded"
    _log_fetch(store, submission, FetchStatus.SUCCESS)
    return None


async def _refresh_one(
    store: SettlementStore,
    provider: MetricsProvider,
    submission: Submission,
    semaphore: asyncio.Semaphore,
    *,
    attempts: int,
    wait_initial: float,
    wait_max: float,
    jitter: float,
) -> str | None:
    """Refresh one submission; return an error message or None on success."""
    async with semaphore:
        try:
            snapshot = await call_with_retry(
                lambda: provider.fetch_latest_metrics(submission.id),
                api_name="metrics_provider",
                attempts=attempts,
                wait_initial=wait_initial,
                wait_max=wait_max,
                jitter=jitter,
            )
        except Exception as exc:
            error = str(exc) or type(exc).__name__
        else:
            error = _save_snapshot(store, submission, snapshot)
            if error is None:
                return None

    _log_fetch(store, submission, FetchStatus.FAILED, error)
    METRICS_REFRESH_FAILURES.inc()
    logger.warning(
        "metrics_refresh_item_failed",
        campaign_id=submission.campaign_id,
        submission_id=submission.id,
        error=error,
    )
    return error


async def refresh_campaign_metrics(
    store: SettlementStore,
    provider: MetricsProvider,
    campaign_id: str,
    *,
    concurrency: int = 5,
    attempts: int = 3,
    wait_initial: float = 1.0,
    wait_max: float = 30.0,
    jitter: float = 1.0,
) -> MetricsRefreshReport:
    """Refresh every PENDING or APPROVED submission of *campaign_id*.

    Args:
        store: Settlement store used to persist snapshots and fetch outcomes.
        provider: The metrics collaborator.
        campaign_id: Campaign whose submissions are refreshed.
        concurrency: Maximum number of in-flight provider calls.
        attempts: Attempts per submission before it counts as failed.
        wait_initial: Initial retry backoff in seconds.
        wait_max: Maximum retry backoff in seconds.
        jitter: Maximum random jitter per backoff.

    Returns:
        Counts of updated and failed submissions, with one error line per
        failure.
    """
    submissions = store.list_submissions(campaign_id, statuses=REFRESHABLE_SUBMISSION_STATUSES)
    if not submissions:
        logger.info("metrics_refresh_nothing_to_do", campaign_id=campaign_id)
        return MetricsRefreshReport()

    semaphore = asyncio.Semaphore(max(1, concurrency))
    results = await asyncio.gather(
        *(
            _refresh_one(
                store,
                provider,
                submission,
                semaphore,
                attempts=attempts,
                wait_initial=wait_initial,
                wait_max=wait_max,
                jitter=jitter,
            )
            for submission in submissions
        )
    )

    errors = [
        f"{submission.id}: {error}"
        for submission, error in zip(submissions, results, strict=True)
        if error is not None
    ]
    report = MetricsRefreshReport(
        updated=len(submissions) - len(errors),
        failed=len(errors),
        errors=errors,
    )
    logger.info(
        "metrics_refresh_completed",
        campaign_id=campaign_id,
        updated=report.updated,
        failed=report.failed,
    )
    return report
