"""Audit trail models for administrator actions on campaigns."""

from enum import StrEnum

from pydantic import BaseModel


class EventType(StrEnum):
    """Types of events tracked in the audit trail."""

    CAMPAIGN_APPROVED = "campaign_approved"
    CAMPAIGN_REJECTED = "campaign_rejected"
    CAMPAIGN_FINISHED = "campaign_finished"
    METRICS_REFRESH_FAILED = "metrics_refresh_failed"
    SETTLEMENT_ERROR = "settlement_error"


class AuditEntry(BaseModel):
    """A single audit trail entry.

    ``metadata`` carries event-specific details as strings (amounts are
    rendered with two decimal places).
    """

    event_type: EventType
    actor_id: str | None = None
    campaign_id: str | None = None
    metadata: dict[str, str] | None = None
