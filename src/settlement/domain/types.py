"""Domain enumerations for the campaign settlement engine."""

from enum import StrEnum


class Role(StrEnum):
    """Roles an authenticated actor can hold."""

    ADMIN = "admin"
    ARTIST = "artist"
    CREATOR = "creator"


class CampaignStatus(StrEnum):
    """States in the campaign financial lifecycle."""

    PENDING_APPROVAL = "pending_approval"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SubmissionStatus(StrEnum):
    """Review states of a creator submission."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TransactionType(StrEnum):
    """Kinds of balance-affecting ledger entries."""

    DEPOSIT = "deposit"
    SPEND = "spend"
    REFUND = "refund"
    PAYOUT = "payout"


class TransactionStatus(StrEnum):
    """Ledger entries are only ever written once they are final."""

    COMPLETED = "completed"


class FetchStatus(StrEnum):
    """Outcome of a single metrics fetch for a submission."""

    SUCCESS = "success"
    FAILED = "failed"


# Submissions still eligible for a metrics refresh.
REFRESHABLE_SUBMISSION_STATUSES: frozenset[SubmissionStatus] = frozenset(
    {SubmissionStatus.PENDING, SubmissionStatus.APPROVED}
)
