"""Settlement orchestrator: approve, reject and finish campaigns.

Every entry point validates the actor and the campaign's status, then runs
its dependent writes inside one unit of work that re-reads the campaign
under the database write lock.  Notifications, audit entries and Prometheus
counters are produced only after that unit has committed.

Finish is two-phase: a fallible, bounded-parallel metrics refresh, then one
atomic distribution that pays creators, returns the unspent remainder to the
artist and completes the campaign.  The distribution unit contains no await
points, so it cannot be cancelled part way through.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import structlog

from settlement.audit.logger import AuditLogger
from settlement.config import Settings
from settlement.domain.errors import (
    InvalidInputError,
    InvalidStateError,
    SettlementError,
    StorageFailureError,
    UnauthorizedError,
)
from settlement.domain.models import (
    Actor,
    BatchReport,
    Campaign,
    EligibilityRules,
    FinishReport,
    InsuranceBracket,
    MetricsRefreshReport,
    PayoutPlan,
    PayoutReport,
    RejectResult,
)
from settlement.domain.money import ZERO
from settlement.domain.timestamps import format_timestamp
from settlement.domain.types import CampaignStatus, TransactionType
from settlement.metrics.provider import MetricsProvider
from settlement.metrics.refresh import refresh_campaign_metrics
from settlement.notifications.emitter import NotificationSink, emit_notification
from settlement.observability.metrics import CAMPAIGN_SETTLEMENTS, PAYOUT_DISTRIBUTED
from settlement.payout.calculator import plan_distribution, submission_score
from settlement.state_machine import CampaignEvent, CampaignStateMachine
from settlement.store.store import SettlementStore

logger = structlog.get_logger()


def _require_admin(actor: Actor | None, action: str) -> Actor:
    if actor is None or not actor.is_admin:
        raise UnauthorizedError(actor.user_id if actor else None, action)
    return actor


def _check_transition(campaign: Campaign, event: CampaignEvent) -> CampaignStatus:
    return CampaignStateMachine(campaign.status).trigger(event)


class SettlementOrchestrator:
    """Drive campaigns through their financial lifecycle.

    Args:
        store: Settlement store; its connection is used for every unit of work.
        metrics_provider: Source of fresh engagement metrics.  When ``None``
            the refresh phase is skipped and payouts use last-known metrics.
        notification_sink: Destination for post-commit notifications.
        audit_logger: Audit trail writer for admin actions.
        refresh_concurrency: Maximum in-flight provider calls during refresh.
        refresh_attempts: Provider attempts per submission.
        refresh_wait_initial: Initial retry backoff in seconds.
        refresh_wait_max: Maximum retry backoff in seconds.
        refresh_jitter: Maximum random jitter per backoff.
        max_share: Optional per-creator cap as a fraction of the budget.
        eligibility: Minimum points and budget contribution a submission needs
            to be paid.  ``None`` pays every qualifying submission.
        insurance_brackets: Minimum campaign results per budget bracket; a
            campaign that misses them returns its whole budget to the artist.
    """

    def __init__(
        self,
        store: SettlementStore,
        *,
        metrics_provider: MetricsProvider | None = None,
        notification_sink: NotificationSink | None = None,
        audit_logger: AuditLogger | None = None,
        refresh_concurrency: int = 5,
        refresh_attempts: int = 3,
        refresh_wait_initial: float = 1.0,
        refresh_wait_max: float = 30.0,
        refresh_jitter: float = 1.0,
        max_share: Decimal | None = None,
        eligibility: EligibilityRules | None = None,
        insurance_brackets: Sequence[InsuranceBracket] = (),
    ) -> None:
        self._store = store
        self._metrics_provider = metrics_provider
        self._notification_sink = notification_sink
        self._audit_logger = audit_logger
        self._refresh_concurrency = refresh_concurrency
        self._refresh_attempts = refresh_attempts
        self._refresh_wait_initial = refresh_wait_initial
        self._refresh_wait_max = refresh_wait_max
        self._refresh_jitter = refresh_jitter
        self._max_share = max_share
        self._eligibility = eligibility
        self._insurance_brackets = tuple(insurance_brackets)

    @classmethod
    def from_settings(
        cls,
        store: SettlementStore,
        settings: Settings,
        *,
        metrics_provider: MetricsProvider | None = None,
        notification_sink: NotificationSink | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> SettlementOrchestrator:
        """Build an orchestrator with refresh and payout tuning from *settings*."""
        return cls(
            store,
            metrics_provider=metrics_provider,
            notification_sink=notification_sink,
            audit_logger=audit_logger,
            refresh_concurrency=settings.metrics_refresh_concurrency,
            refresh_attempts=settings.metrics_refresh_attempts,
            refresh_wait_initial=settings.metrics_refresh_wait_initial,
            refresh_wait_max=settings.metrics_refresh_wait_max,
            refresh_jitter=settings.metrics_refresh_jitter,
            max_share=settings.payout_max_share,
            eligibility=EligibilityRules(
                min_points=settings.payout_min_eligible_points,
                min_contribution=settings.payout_min_eligible_contribution,
            ),
            insurance_brackets=settings.payout_insurance_brackets,
        )

    @property
    def store(self) -> SettlementStore:
        return self._store

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    def approve(
        self,
        campaign_id: str,
        actor: Actor | None,
        now: datetime | None = None,
    ) -> Campaign:
        """Move a PENDING_APPROVAL campaign to ACTIVE and schedule its end.

        The budget was already held at creation, so no ledger entry is
        written.

        Raises:
            UnauthorizedError: If *actor* is not an administrator.
            NotFoundError: If the campaign does not exist.
            InvalidStateError: If the campaign is not PENDING_APPROVAL.
            StorageFailureError: If the write failed and was rolled back.
        """
        actor = _require_admin(actor, "approve campaigns")
        _check_transition(self._store.require_campaign(campaign_id), CampaignEvent.APPROVE)

        start = now or datetime.now(tz=UTC)
        with self._store.unit_of_work("approve_campaign"):
            campaign = self._store.require_campaign(campaign_id)
            new_status = _check_transition(campaign, CampaignEvent.APPROVE)
            end = start + timedelta(days=campaign.duration_days)
            self._store.update_campaign_status(
                campaign_id,
                campaign.status,
                new_status,
                start_date=format_timestamp(start),
                end_date=format_timestamp(end),
            )

        approved = self._store.require_campaign(campaign_id)
        logger.info(
            "campaign_approved",
            campaign_id=campaign_id,
            actor_id=actor.user_id,
            end_date=format_timestamp(end),
        )
        CAMPAIGN_SETTLEMENTS.labels(outcome="approved").inc()
        emit_notification(
            self._notification_sink,
            approved.artist_id,
            "Campaign approved",
            f'Your campaign "{approved.title}" is now live.',
            link=f"/artist/campaigns/{campaign_id}",
        )
        self._audit(lambda audit: audit.log_campaign_approved(
            actor.user_id, campaign_id, format_timestamp(end)
        ))
        return approved

    # ------------------------------------------------------------------
    # Rejection
    # ------------------------------------------------------------------

    def reject(self, campaign_id: str, actor: Actor | None, reason: str) -> RejectResult:
        """Cancel a PENDING_APPROVAL campaign and refund its full budget.

        Preconditions are checked in order (actor, reason, existence,
        status) and each fails before anything is written.

        Raises:
            UnauthorizedError: If *actor* is not an administrator.
            InvalidInputError: If *reason* is empty or whitespace.
            NotFoundError: If the campaign does not exist.
            InvalidStateError: If the campaign is not PENDING_APPROVAL,
                including when it was already rejected.
            StorageFailureError: If the unit failed and was rolled back.
        """
        actor = _require_admin(actor, "reject campaigns")
        if not isinstance(reason, str) or not reason.strip():
            raise InvalidInputError("reason", "a non-empty rejection reason is required")
        reason = reason.strip()
        _check_transition(self._store.require_campaign(campaign_id), CampaignEvent.REJECT)

        with self._store.unit_of_work("reject_campaign"):
            campaign = self._store.require_campaign(campaign_id)
            new_status = _check_transition(campaign, CampaignEvent.REJECT)
            self._store.update_campaign_status(
                campaign_id,
                campaign.status,
                new_status,
                rejection_reason=reason,
            )
            self._store.ledger.apply_entry(
                campaign.artist_id,
                campaign.total_budget,
                TransactionType.REFUND,
                f"Campaign rejected: {campaign.title} - {reason}",
                reference=campaign_id,
            )

        logger.info(
            "campaign_rejected",
            campaign_id=campaign_id,
            actor_id=actor.user_id,
            refunded=str(campaign.total_budget),
        )
        CAMPAIGN_SETTLEMENTS.labels(outcome="cancelled").inc()
        emit_notification(
            self._notification_sink,
            campaign.artist_id,
            "Campaign rejected",
            f'Your campaign "{campaign.title}" was rejected and its budget refunded. '
            f"Reason: {reason}",
            link=f"/artist/campaigns/{campaign_id}",
        )
        self._audit(lambda audit: audit.log_campaign_rejected(
            actor.user_id, campaign_id, reason, campaign.total_budget
        ))
        return RejectResult(
            campaign_id=campaign_id,
            status=CampaignStatus.CANCELLED,
            refunded=campaign.total_budget,
        )

    # ------------------------------------------------------------------
    # Finish
    # ------------------------------------------------------------------

    async def finish(self, campaign_id: str, actor: Actor | None) -> FinishReport:
        """Refresh metrics, then atomically distribute an ACTIVE campaign's budget.

        A retry after a failure before the distribution committed proceeds
        normally; a retry after it committed fails with
        :class:`InvalidStateError`, so creators are never paid twice.

        Raises:
            UnauthorizedError: If *actor* is not an administrator.
            NotFoundError: If the campaign does not exist.
            InvalidStateError: If the campaign is not ACTIVE, including when
                a concurrent caller finished it first.
            StorageFailureError: If the distribution failed and was rolled back.
        """
        actor = _require_admin(actor, "finish campaigns")
        _check_transition(self._store.require_campaign(campaign_id), CampaignEvent.FINISH)
        log = logger.bind(campaign_id=campaign_id, actor_id=actor.user_id)

        refresh = await self._refresh_metrics(campaign_id)
        if refresh.failed:
            log.warning("finish_with_stale_metrics", failed=refresh.failed, updated=refresh.updated)
            self._audit(lambda audit: audit.log_metrics_refresh_failed(
                actor.user_id, campaign_id, refresh.failed, refresh.updated
            ))

        try:
            campaign, plan = self._distribute(campaign_id)
        except StorageFailureError as exc:
            log.error("campaign_distribution_failed", error=str(exc))
            CAMPAIGN_SETTLEMENTS.labels(outcome="failed").inc()
            self._audit(lambda audit: audit.log_settlement_error(
                actor.user_id, campaign_id, type(exc).__name__, str(exc)
            ))
            raise

        log.info(
            "campaign_finished",
            distributed=str(plan.distributed),
            remainder=str(plan.remainder),
            creators_paid=len(plan.payouts),
        )
        CAMPAIGN_SETTLEMENTS.labels(outcome="completed").inc()
        if plan.distributed > 0:
            PAYOUT_DISTRIBUTED.inc(float(plan.distributed))
        self._notify_finished(campaign, plan)
        self._audit(lambda audit: audit.log_campaign_finished(
            actor.user_id,
            campaign_id,
            plan.distributed,
            plan.remainder,
            len(plan.payouts),
            insurance_failures=plan.insurance_failures,
        ))
        return FinishReport(
            campaign_id=campaign_id,
            metrics_refresh=refresh,
            payout=PayoutReport(
                payouts=plan.payouts,
                remainder=plan.remainder,
                insurance_failures=plan.insurance_failures,
            ),
        )

    async def _refresh_metrics(self, campaign_id: str) -> MetricsRefreshReport:
        if self._metrics_provider is None:
            logger.info("metrics_refresh_skipped", campaign_id=campaign_id, reason="no provider")
            return MetricsRefreshReport()
        return await refresh_campaign_metrics(
            self._store,
            self._metrics_provider,
            campaign_id,
            concurrency=self._refresh_concurrency,
            attempts=self._refresh_attempts,
            wait_initial=self._refresh_wait_initial,
            wait_max=self._refresh_wait_max,
            jitter=self._refresh_jitter,
        )

    def _distribute(self, campaign_id: str) -> tuple[Campaign, PayoutPlan]:
        """Pay creators, return the remainder and complete the campaign in one unit."""
        store = self._store
        with store.unit_of_work("finish_campaign"):
            campaign = store.require_campaign(campaign_id)
            new_status = _check_transition(campaign, CampaignEvent.FINISH)

            submissions = store.list_submissions(campaign_id)
            disqualified = store.disqualified_user_ids(s.creator_id for s in submissions)
            plan, amounts = plan_distribution(
                submissions,
                campaign.total_budget,
                disqualified,
                max_share=self._max_share,
                eligibility=self._eligibility,
                insurance_brackets=self._insurance_brackets,
            )
            if plan.insurance_failures:
                logger.warning(
                    "insurance_check_failed",
                    campaign_id=campaign_id,
                    failures=plan.insurance_failures,
                )

            for payout in plan.payouts:
                store.ledger.apply_entry(
                    payout.creator_id,
                    payout.amount,
                    TransactionType.PAYOUT,
                    f"Campaign payout: {campaign.title}",
                    reference=campaign_id,
                )
            if plan.remainder > ZERO:
                store.ledger.apply_entry(
                    campaign.artist_id,
                    plan.remainder,
                    TransactionType.REFUND,
                    (
                        f"Campaign thresholds not met, budget returned: {campaign.title}"
                        if plan.insurance_failures
                        else f"Unspent campaign budget returned: {campaign.title}"
                    ),
                    reference=campaign_id,
                )

            # Submissions freeze once the campaign completes, so they are
            # written before the status change.
            for submission in submissions:
                store.record_settlement(
                    submission.id, submission_score(submission), amounts[submission.id]
                )

            store.update_campaign_status(
                campaign_id,
                campaign.status,
                new_status,
                completed_at=format_timestamp(),
            )
        return campaign, plan

    def _notify_finished(self, campaign: Campaign, plan: PayoutPlan) -> None:
        link = f"/campaigns/{campaign.id}"
        for payout in plan.payouts:
            emit_notification(
                self._notification_sink,
                payout.creator_id,
                "Campaign payout",
                f'You earned {payout.amount} from "{campaign.title}".',
                link=link,
            )
        emit_notification(
            self._notification_sink,
            campaign.artist_id,
            "Campaign completed",
            f'"{campaign.title}" has been settled: {plan.distributed} paid to creators, '
            f"{plan.remainder} returned to your balance.",
            link=f"/artist/campaigns/{campaign.id}",
        )

    # ------------------------------------------------------------------
    # Batch settlement
    # ------------------------------------------------------------------

    async def settle_ended_campaigns(
        self,
        actor: Actor | None,
        now: datetime | None = None,
    ) -> BatchReport:
        """Finish every ACTIVE campaign whose end date has passed.

        Campaigns are settled one at a time.  A campaign another caller
        settled first is reported as skipped; any other settlement error is
        recorded for that campaign and the batch continues.

        Raises:
            UnauthorizedError: If *actor* is not an administrator.
        """
        actor = _require_admin(actor, "settle campaigns")
        now = now or datetime.now(tz=UTC)
        ended = self._store.list_ended_campaigns(now)
        logger.info("batch_settlement_started", campaigns=len(ended), now=format_timestamp(now))

        finished: list[FinishReport] = []
        skipped: list[str] = []
        failed: dict[str, str] = {}
        for campaign in ended:
            try:
                finished.append(await self.finish(campaign.id, actor))
            except InvalidStateError:
                logger.info("batch_settlement_skipped", campaign_id=campaign.id)
                skipped.append(campaign.id)
            except SettlementError as exc:
                logger.error("batch_settlement_failed", campaign_id=campaign.id, error=str(exc))
                failed[campaign.id] = str(exc)

        logger.info(
            "batch_settlement_completed",
            finished=len(finished),
            skipped=len(skipped),
            failed=len(failed),
        )
        return BatchReport(finished=finished, skipped=skipped, failed=failed)

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def _audit(self, write: Callable[[AuditLogger], int]) -> None:
        if self._audit_logger is None:
            return
        try:
            write(self._audit_logger)
        except Exception:
            logger.exception("audit_write_failed")
