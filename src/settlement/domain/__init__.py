"""Domain types, models, money helpers, and errors for the settlement engine."""

from settlement.domain.errors import (
    InvalidInputError,
    InvalidStateError,
    MetricsProviderError,
    NotFoundError,
    SettlementError,
    StorageFailureError,
    UnauthorizedError,
)
from settlement.domain.models import (
    Actor,
    BalanceCheck,
    BatchReport,
    Campaign,
    CreatorScore,
    EligibilityRules,
    EngagementSnapshot,
    FinishReport,
    InsuranceBracket,
    LedgerEntry,
    MetricsRefreshReport,
    Payout,
    PayoutPlan,
    PayoutReport,
    RejectResult,
    Submission,
    User,
)
from settlement.domain.money import from_cents, quantize, to_cents
from settlement.domain.types import (
    CampaignStatus,
    FetchStatus,
    Role,
    SubmissionStatus,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "Actor",
    "BalanceCheck",
    "BatchReport",
    "Campaign",
    "CampaignStatus",
    "CreatorScore",
    "EligibilityRules",
    "EngagementSnapshot",
    "FetchStatus",
    "FinishReport",
    "InsuranceBracket",
    "InvalidInputError",
    "InvalidStateError",
    "LedgerEntry",
    "MetricsProviderError",
    "MetricsRefreshReport",
    "NotFoundError",
    "Payout",
    "PayoutPlan",
    "PayoutReport",
    "RejectResult",
    "Role",
    "SettlementError",
    "StorageFailureError",
    "Submission",
    "SubmissionStatus",
    "TransactionStatus",
    "TransactionType",
    "UnauthorizedError",
    "User",
    "from_cents",
    "quantize",
    "to_cents",
]
