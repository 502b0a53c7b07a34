"""Campaign state machine with transition validation."""

from settlement.state_machine.machine import CampaignStateMachine
from settlement.state_machine.transitions import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    CampaignEvent,
)

__all__ = [
    "CampaignEvent",
    "CampaignStateMachine",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
]
