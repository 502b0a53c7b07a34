"""Tests for settlement domain models."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from settlement.domain.models import (
    Actor,
    BalanceCheck,
    Campaign,
    CreatorScore,
    EngagementSnapshot,
    FinishReport,
    MetricsRefreshReport,
    Payout,
    PayoutPlan,
    PayoutReport,
)
from settlement.domain.types import CampaignStatus, Role


def _campaign(**overrides: object) -> Campaign:
    data: dict[str, object] = {
        "id": "camp-1",
        "artist_id": "artist-1",
        "title": "Summer Single",
        "status": CampaignStatus.PENDING_APPROVAL,
        "total_budget": Decimal("1000"),
        "created_at": "2026-01-01T00:00:00Z",
    }
    data.update(overrides)
    return Campaign(**data)  # type: ignore[arg-type]


class TestActor:
    def test_admin_role_is_admin(self) -> None:
        assert Actor(user_id="u1", role=Role.ADMIN).is_admin

    @pytest.mark.parametrize("role", [Role.ARTIST, Role.CREATOR])
    def test_other_roles_are_not_admin(self, role: Role) -> None:
        assert not Actor(user_id="u1", role=role).is_admin


class TestCampaign:
    def test_valid_campaign(self) -> None:
        campaign = _campaign()
        assert campaign.total_budget == Decimal("1000")
        assert campaign.duration_days == 30
        assert campaign.rejection_reason is None

    def test_float_budget_rejected(self) -> None:
        with pytest.raises(ValidationError, match="float"):
            _campaign(total_budget=1000.0)

    @pytest.mark.parametrize("budget", [Decimal("0"), Decimal("-1")])
    def test_non_positive_budget_rejected(self, budget: Decimal) -> None:
        with pytest.raises(ValidationError, match="positive"):
            _campaign(total_budget=budget)

    def test_frozen(self) -> None:
        campaign = _campaign()
        with pytest.raises(ValidationError):
            campaign.status = CampaignStatus.ACTIVE  # type: ignore[misc]


class TestEngagementSnapshot:
    def test_defaults(self) -> None:
        snapshot = EngagementSnapshot(views=10, likes=2)
        assert snapshot.comments == 0
        assert snapshot.shares == 0
        assert snapshot.fetched_at.tzinfo is not None

    def test_negative_counts_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EngagementSnapshot(views=-1, likes=0)


class TestScoresAndPayouts:
    def test_float_score_rejected(self) -> None:
        with pytest.raises(ValidationError, match="float"):
            CreatorScore(creator_id="c1", score=1.5)  # type: ignore[arg-type]

    def test_negative_score_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CreatorScore(creator_id="c1", score=Decimal("-1"))

    def test_float_payout_rejected(self) -> None:
        with pytest.raises(ValidationError, match="float"):
            Payout(creator_id="c1", amount=1.0)  # type: ignore[arg-type]

    def test_plan_distributed_sums_payouts(self) -> None:
        plan = PayoutPlan(
            total_budget=Decimal("100.00"),
            payouts=[
                Payout(creator_id="a", amount=Decimal("60.00")),
                Payout(creator_id="b", amount=Decimal("39.99")),
            ],
            remainder=Decimal("0.01"),
        )
        assert plan.distributed == Decimal("99.99")

    def test_empty_plan_distributes_nothing(self) -> None:
        plan = PayoutPlan(total_budget=Decimal("5"), remainder=Decimal("5"))
        assert plan.distributed == Decimal("0.00")


def test_balance_check_difference() -> None:
    check = BalanceCheck(user_id="u", balance=Decimal("10.00"), ledger_total=Decimal("9.00"))
    assert check.difference == Decimal("1.00")
    assert not check.ok


def test_refresh_report_attempted() -> None:
    assert MetricsRefreshReport(updated=3, failed=2).attempted == 5


def test_finish_report_serializes_camel_case() -> None:
    report = FinishReport(
        campaign_id="camp-1",
        metrics_refresh=MetricsRefreshReport(updated=1, failed=0),
        payout=PayoutReport(
            payouts=[Payout(creator_id="c1", amount=Decimal("750.00"))],
            remainder=Decimal("250.00"),
        ),
    )

    dumped = report.model_dump(mode="json", by_alias=True)

    assert dumped["campaignId"] == "camp-1"
    assert dumped["metricsRefresh"] == {"updated": 1, "failed": 0, "errors": []}
    assert dumped["payout"]["payouts"] == [{"creatorId": "c1", "amount": "750.00"}]
    assert dumped["payout"]["remainder"] == "250.00"
