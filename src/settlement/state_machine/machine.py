"""CampaignStateMachine: transition validation for a single campaign."""

from __future__ import annotations

from settlement.domain.errors import InvalidStateError
from settlement.domain.types import CampaignStatus
from settlement.state_machine.transitions import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    CampaignEvent,
)


class CampaignStateMachine:
    """Finite state machine governing the campaign lifecycle.

    The machine is positioned at a persisted status and validates the next
    event against the transition map.  It never writes anything itself; the
    orchestrator persists the returned status inside its unit of work.

    Usage::

        sm = CampaignStateMachine(CampaignStatus.ACTIVE)
        sm.trigger(CampaignEvent.FINISH)   # -> COMPLETED (terminal)
    """

    def __init__(self, status: CampaignStatus) -> None:
        self._status = status

    @property
    def status(self) -> CampaignStatus:
        """Return the current campaign status."""
        return self._status

    @property
    def is_terminal(self) -> bool:
        """Return True if the campaign is COMPLETED or CANCELLED."""
        return self._status in TERMINAL_STATUSES

    def can(self, event: CampaignEvent) -> bool:
        """Return True if *event* is allowed from the current status."""
        return (self._status, event) in TRANSITIONS

    def trigger(self, event: CampaignEvent) -> CampaignStatus:
        """Apply *event* and return the new status.

        Raises:
            InvalidStateError: If the transition is not allowed from the
                current status.
        """
        key = (self._status, event)
        if key not in TRANSITIONS:
            raise InvalidStateError(self._status, str(event))
        self._status = TRANSITIONS[key]
        return self._status

    def get_valid_events(self) -> list[CampaignEvent]:
        """Return the events valid from the current status, sorted by value."""
        return sorted(event for status, event in TRANSITIONS if status == self._status)
