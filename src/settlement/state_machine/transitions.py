"""Transition map defining all valid (status, event) -> status mappings."""

from enum import StrEnum

from settlement.domain.types import CampaignStatus


class CampaignEvent(StrEnum):
    """Administrative actions that move a campaign through its lifecycle."""

    APPROVE = "approve"
    REJECT = "reject"
    FINISH = "finish"


# All valid (current_status, event) -> next_status mappings.
# Any pair not in this dict is an invalid transition.
TRANSITIONS: dict[tuple[CampaignStatus, CampaignEvent], CampaignStatus] = {
    (CampaignStatus.PENDING_APPROVAL, CampaignEvent.APPROVE): CampaignStatus.ACTIVE,
    (CampaignStatus.PENDING_APPROVAL, CampaignEvent.REJECT): CampaignStatus.CANCELLED,
    (CampaignStatus.ACTIVE, CampaignEvent.FINISH): CampaignStatus.COMPLETED,
}

# Settled campaigns: no outgoing transitions, submissions frozen.
TERMINAL_STATUSES: frozenset[CampaignStatus] = frozenset(
    {CampaignStatus.COMPLETED, CampaignStatus.CANCELLED}
)
