"""Convenience class for inserting audit trail entries.

Each method creates a properly structured :class:`AuditEntry` and inserts it
via :func:`insert_audit_entry`.  Amounts are recorded as two-place decimal
strings.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from decimal import Decimal

from settlement.audit.models import AuditEntry, EventType
from settlement.audit.store import insert_audit_entry


class AuditLogger:
    """Typed convenience API for inserting audit entries.

    Args:
        conn: An open SQLite connection to a database with the ``audit_log`` table.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def log_campaign_approved(self, actor_id: str, campaign_id: str, end_date: str) -> int:
        """Log a PENDING_APPROVAL to ACTIVE transition.

        Args:
            actor_id: The approving administrator.
            campaign_id: The approved campaign.
            end_date: When the campaign becomes eligible for settlement.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.CAMPAIGN_APPROVED,
            actor_id=actor_id,
            campaign_id=campaign_id,
            metadata={"end_date": end_date},
        )
        return insert_audit_entry(self._conn, entry)

    def log_campaign_rejected(
        self,
        actor_id: str,
        campaign_id: str,
        reason: str,
        refunded: Decimal,
    ) -> int:
        """Log a rejection together with the refunded budget.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.CAMPAIGN_REJECTED,
            actor_id=actor_id,
            campaign_id=campaign_id,
            metadata={"reason": reason, "refunded": str(refunded)},
        )
        return insert_audit_entry(self._conn, entry)

    def log_campaign_finished(
        self,
        actor_id: str,
        campaign_id: str,
        distributed: Decimal,
        remainder: Decimal,
        creators_paid: int,
        insurance_failures: Sequence[str] = (),
    ) -> int:
        """Log a completed settlement.

        Args:
            actor_id: The administrator (or system actor) that finished it.
            campaign_id: The settled campaign.
            distributed: Sum of all creator payouts.
            remainder: Amount returned to the artist.
            creators_paid: Number of creators that received a payout.
            insurance_failures: Campaign minimums that were missed, if the
                budget was returned instead of paid out.

        Returns:
            The row ID of the inserted audit entry.
        """
        metadata = {
            "distributed": str(distributed),
            "remainder": str(remainder),
            "creators_paid": str(creators_paid),
        }
        if insurance_failures:
            metadata["insurance_failures"] = "; ".join(insurance_failures)
        entry = AuditEntry(
            event_type=EventType.CAMPAIGN_FINISHED,
            actor_id=actor_id,
            campaign_id=campaign_id,
            metadata=metadata,
        )
        return insert_audit_entry(self._conn, entry)

    def log_metrics_refresh_failed(
        self,
        actor_id: str,
        campaign_id: str,
        failed: int,
        updated: int,
    ) -> int:
        """Log that some submissions could not be refreshed before settlement."""
        entry = AuditEntry(
            event_type=EventType.METRICS_REFRESH_FAILED,
            actor_id=actor_id,
            campaign_id=campaign_id,
            metadata={"failed": str(failed), "updated": str(updated)},
        )
        return insert_audit_entry(self._conn, entry)

    def log_settlement_error(
        self,
        actor_id: str | None,
        campaign_id: str,
        error_type: str,
        error_message: str,
    ) -> int:
        """Log a settlement that failed and was rolled back.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.SETTLEMENT_ERROR,
            actor_id=actor_id,
            campaign_id=campaign_id,
            metadata={"error_type": error_type, "error_message": error_message},
        )
        return insert_audit_entry(self._conn, entry)
