"""Pydantic v2 models for settlement domain data structures."""

from datetime import UTC, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from settlement.domain.types import (
    CampaignStatus,
    Role,
    SubmissionStatus,
    TransactionStatus,
    TransactionType,
)


def _reject_float(v: object) -> object:
    if isinstance(v, float):
        raise ValueError("Use Decimal or string, not float, for monetary values")
    return v


class Actor(BaseModel):
    """An already-authenticated caller of an entry point."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        """Return True if the actor holds administrator capability."""
        return self.role is Role.ADMIN


class User(BaseModel):
    """A marketplace user with a spendable balance."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    name: str
    balance: Decimal
    disqualified: bool = False


class Campaign(BaseModel):
    """A funded promotional engagement between an artist and creators.

    ``total_budget`` is held from the artist's balance for the lifetime of the
    campaign and is immutable once set.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    artist_id: str
    title: str
    status: CampaignStatus
    total_budget: Decimal
    duration_days: int = 30
    rejection_reason: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    created_at: datetime
    completed_at: datetime | None = None

    @field_validator("total_budget", mode="before")
    @classmethod
    def reject_float_budget(cls, v: object) -> object:
        """Reject float inputs for the budget to prevent precision errors."""
        return _reject_float(v)

    @field_validator("total_budget")
    @classmethod
    def budget_must_be_positive(cls, v: Decimal) -> Decimal:
        """Ensure the budget is strictly positive."""
        if v <= 0:
            raise ValueError("total_budget must be positive")
        return v


class Submission(BaseModel):
    """A creator's content posted against a campaign, with its latest metrics."""

    model_config = ConfigDict(frozen=True)

    id: str
    campaign_id: str
    creator_id: str
    url: str
    status: SubmissionStatus = SubmissionStatus.PENDING
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    last_checked_at: datetime | None = None
    impact_score: Decimal | None = None
    payout_amount: Decimal | None = None


class EngagementSnapshot(BaseModel):
    """Latest engagement counts for one submission, as reported by the provider."""

    model_config = ConfigDict(frozen=True)

    views: int = Field(ge=0)
    likes: int = Field(ge=0)
    comments: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))


class LedgerEntry(BaseModel):
    """An immutable record of a balance-affecting event."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    amount: Decimal
    type: TransactionType
    status: TransactionStatus = TransactionStatus.COMPLETED
    description: str
    reference: str | None = None
    created_at: datetime


class BalanceCheck(BaseModel):
    """Comparison of a stored balance against the sum of its ledger entries."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    balance: Decimal
    ledger_total: Decimal

    @property
    def difference(self) -> Decimal:
        return self.balance - self.ledger_total

    @property
    def ok(self) -> bool:
        return self.difference == 0


class CreatorScore(BaseModel):
    """Aggregated engagement of one creator across qualifying submissions."""

    model_config = ConfigDict(frozen=True)

    creator_id: str
    score: Decimal = Field(ge=0)

    @field_validator("score", mode="before")
    @classmethod
    def reject_float_score(cls, v: object) -> object:
        """Scores feed money math, so they follow the same no-float rule."""
        return _reject_float(v)


class _Report(BaseModel):
    """Base for caller-facing results, serialized with camelCase aliases."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class Payout(_Report):
    """A single creator payout."""

    creator_id: str
    amount: Decimal

    @field_validator("amount", mode="before")
    @classmethod
    def reject_float_amount(cls, v: object) -> object:
        """Reject float inputs for payout amounts."""
        return _reject_float(v)


class EligibilityRules(BaseModel):
    """Per-submission minimums a qualifying submission must meet to be paid.

    A submission needs at least *min_points* impact score and at least
    *min_contribution* of the campaign's total qualifying score.  The
    defaults admit every qualifying submission.
    """

    model_config = ConfigDict(frozen=True)

    min_points: Decimal = Field(default=Decimal("0"), ge=0)
    min_contribution: Decimal = Field(default=Decimal("0"), ge=0, le=1)


class InsuranceBracket(BaseModel):
    """Campaign-level minimums for budgets of at least *min_budget*.

    If a campaign misses any of them at settlement, nobody is paid and the
    whole budget returns to the artist.
    """

    model_config = ConfigDict(frozen=True)

    min_budget: Decimal = Field(ge=0)
    min_submissions: int = Field(default=0, ge=0)
    min_points: Decimal = Field(default=Decimal("0"), ge=0)
    min_views: int = Field(default=0, ge=0)


class PayoutPlan(_Report):
    """Output of the payout calculator for one campaign budget.

    *insurance_failures* lists the campaign minimums that were missed; when
    it is non-empty the payouts are empty and the remainder is the budget.
    """

    total_budget: Decimal
    payouts: list[Payout] = Field(default_factory=list)
    remainder: Decimal
    insurance_failures: list[str] = Field(default_factory=list)

    @property
    def distributed(self) -> Decimal:
        """Sum of all payout amounts."""
        return sum((p.amount for p in self.payouts), Decimal("0.00"))


class MetricsRefreshReport(_Report):
    """How many submissions were refreshed versus failed."""

    updated: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.updated + self.failed


class PayoutReport(_Report):
    """Payouts that were durably committed, plus the remainder returned."""

    payouts: list[Payout] = Field(default_factory=list)
    remainder: Decimal = Decimal("0.00")
    insurance_failures: list[str] = Field(default_factory=list)


class FinishReport(_Report):
    """Caller-facing result of finishing a campaign."""

    campaign_id: str
    metrics_refresh: MetricsRefreshReport
    payout: PayoutReport


class RejectResult(_Report):
    """Caller-facing acknowledgement of a rejection."""

    campaign_id: str
    status: CampaignStatus
    refunded: Decimal


class BatchReport(_Report):
    """Outcome of settling every ended campaign in one pass."""

    finished: list[FinishReport] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
