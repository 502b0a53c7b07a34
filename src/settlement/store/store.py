"""SQLite-backed data access for campaigns, submissions, users and side tables.

Mirrors the rest of the storage code: accepts a sqlite3.Connection and uses
parameterized queries exclusively.  Single-row writes that are not part of a
larger financial mutation run in their own short unit of work; status
transitions are only exposed as helpers the orchestrator calls from inside
its own unit of work.
"""

from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any

import structlog

from settlement.domain.errors import InvalidStateError, NotFoundError
from settlement.domain.models import Campaign, EngagementSnapshot, Submission, User
from settlement.domain.money import from_cents, to_cents
from settlement.domain.timestamps import format_timestamp
from settlement.domain.types import (
    CampaignStatus,
    FetchStatus,
    Role,
    SubmissionStatus,
    TransactionType,
)
from settlement.ledger.ledger import Ledger
from settlement.store.database import unit_of_work

logger = structlog.get_logger()


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        role=Role(row["role"]),
        name=row["name"],
        balance=from_cents(row["balance_cents"]),
        disqualified=bool(row["disqualified"]),
    )


def _row_to_campaign(row: sqlite3.Row) -> Campaign:
    return Campaign(
        id=row["id"],
        artist_id=row["artist_id"],
        title=row["title"],
        status=CampaignStatus(row["status"]),
        total_budget=from_cents(row["total_budget_cents"]),
        duration_days=row["duration_days"],
        rejection_reason=row["rejection_reason"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        created_at=row["created_at"],
        completed_at=row["completed_at"],
    )


def _row_to_submission(row: sqlite3.Row) -> Submission:
    return Submission(
        id=row["id"],
        campaign_id=row["campaign_id"],
        creator_id=row["creator_id"],
        url=row["url"],
        status=SubmissionStatus(row["status"]),
        views=row["views"],
        likes=row["likes"],
        comments=row["comments"],
        shares=row["shares"],
        last_checked_at=row["last_checked_at"],
        impact_score=Decimal(row["impact_score"]) if row["impact_score"] is not None else None,
        payout_amount=from_cents(row["payout_cents"]) if row["payout_cents"] is not None else None,
    )


class SettlementStore:
    """Persist and retrieve settlement entities in SQLite.

    Args:
        conn: An open connection (see ``connect_db``) whose database already
              has the settlement schema (see ``init_settlement_schema``).
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        conn.row_factory = sqlite3.Row
        self._conn = conn
        self.ledger = Ledger(conn)

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    @contextmanager
    def unit_of_work(self, operation: str = "unit_of_work") -> Iterator[sqlite3.Connection]:
        """Open a write-locked transaction on this store's connection."""
        with unit_of_work(self._conn, operation) as conn:
            yield conn

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(
        self,
        user_id: str,
        role: Role,
        name: str,
        *,
        disqualified: bool = False,
    ) -> User:
        """Insert a user with a zero balance.

        Balances start at zero and only move through ledger entries, so a
        user's funding is recorded as a DEPOSIT entry by the caller.
        """
        with self.unit_of_work("create_user"):
            self._conn.execute(
                "INSERT INTO users (id, role, name, balance_cents, disqualified, created_at) "
                "VALUES (?, ?, ?, 0, ?, ?)",
                (user_id, role.value, name, int(disqualified), format_timestamp()),
            )
        return User(id=user_id, role=role, name=name, balance=Decimal("0.00"), disqualified=disqualified)

    def get_user(self, user_id: str) -> User | None:
        row = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row_to_user(row) if row else None

    def set_disqualified(self, user_id: str, disqualified: bool) -> None:
        """Set or clear the external policy-violation flag for a creator.

        Raises:
            NotFoundError: If the user does not exist.
        """
        with self.unit_of_work("set_disqualified"):
            cursor = self._conn.execute(
                "UPDATE users SET disqualified = ? WHERE id = ?",
                (int(disqualified), user_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("user", user_id)
        logger.info("creator_disqualification_set", user_id=user_id, disqualified=disqualified)

    def disqualified_user_ids(self, user_ids: Iterable[str]) -> frozenset[str]:
        """Return the subset of *user_ids* currently flagged as disqualified."""
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return frozenset()
        placeholders = ", ".join("?" for _ in ids)
        rows = self._conn.execute(
            f"SELECT id FROM users WHERE disqualified = 1 AND id IN ({placeholders})",
            ids,
        ).fetchall()
        return frozenset(row["id"] for row in rows)

    # ------------------------------------------------------------------
    # Campaigns
    # ------------------------------------------------------------------

    def create_campaign(
        self,
        artist_id: str,
        title: str,
        total_budget: Decimal,
        *,
        duration_days: int = 30,
        campaign_id: str | None = None,
    ) -> Campaign:
        """Create a PENDING_APPROVAL campaign and hold its budget.

        The campaign row and the artist's SPEND entry commit together, so a
        campaign never exists without its budget being held.

        Raises:
            NotFoundError: If the artist does not exist.
            ValueError: If the budget is not positive.
        """
        campaign = Campaign(
            id=campaign_id or uuid.uuid4().hex,
            artist_id=artist_id,
            title=title,
            status=CampaignStatus.PENDING_APPROVAL,
            total_budget=total_budget,
            duration_days=duration_days,
            created_at=format_timestamp(),
        )
        with self.unit_of_work("create_campaign"):
            if self.get_user(artist_id) is None:
                raise NotFoundError("user", artist_id)
            self._conn.execute(
                "INSERT INTO campaigns (id, artist_id, title, status, total_budget_cents, "
                "duration_days, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    campaign.id,
                    campaign.artist_id,
                    campaign.title,
                    campaign.status.value,
                    to_cents(campaign.total_budget),
                    campaign.duration_days,
                    format_timestamp(campaign.created_at),
                ),
            )
            self.ledger.apply_entry(
                artist_id,
                -campaign.total_budget,
                TransactionType.SPEND,
                f"Campaign budget held: {campaign.title}",
                reference=campaign.id,
            )
        logger.info(
            "campaign_created",
            campaign_id=campaign.id,
            artist_id=artist_id,
            total_budget=str(campaign.total_budget),
        )
        return campaign

    def get_campaign(self, campaign_id: str) -> Campaign | None:
        row = self._conn.execute(
            "SELECT * FROM campaigns WHERE id = ?", (campaign_id,)
        ).fetchone()
        return _row_to_campaign(row) if row else None

    def require_campaign(self, campaign_id: str) -> Campaign:
        """Load a campaign or raise :class:`NotFoundError`."""
        campaign = self.get_campaign(campaign_id)
        if campaign is None:
            raise NotFoundError("campaign", campaign_id)
        return campaign

    def list_ended_campaigns(self, now: datetime) -> list[Campaign]:
        """Return ACTIVE campaigns whose end date is at or before *now*."""
        rows = self._conn.execute(
            "SELECT * FROM campaigns WHERE status = ? AND end_date IS NOT NULL "
            "AND end_date <= ? ORDER BY end_date, id",
            (CampaignStatus.ACTIVE.value, format_timestamp(now)),
        ).fetchall()
        return [_row_to_campaign(row) for row in rows]

    def update_campaign_status(
        self,
        campaign_id: str,
        expected: CampaignStatus,
        new_status: CampaignStatus,
        **columns: Any,
    ) -> None:
        """Move a campaign from *expected* to *new_status* inside an open unit of work.

        Extra keyword arguments name additional columns to set in the same
        statement.  The ``WHERE status = expected`` guard makes the write a
        no-op for a campaign another caller already moved.

        Raises:
            RuntimeError: If called outside a unit of work.
            InvalidStateError: If the campaign is no longer in *expected*.
        """
        if not self._conn.in_transaction:
            raise RuntimeError("Campaign status changes must run inside a unit of work")

        assignments = ", ".join(["status = ?", *(f"{name} = ?" for name in columns)])
        cursor = self._conn.execute(
            f"UPDATE campaigns SET {assignments} WHERE id = ? AND status = ?",
            (new_status.value, *columns.values(), campaign_id, expected.value),
        )
        if cursor.rowcount == 0:
            current = self.require_campaign(campaign_id)
            raise InvalidStateError(current.status, f"move to {new_status}")

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def add_submission(
        self,
        campaign_id: str,
        creator_id: str,
        url: str,
        *,
        status: SubmissionStatus = SubmissionStatus.PENDING,
        submission_id: str | None = None,
    ) -> Submission:
        """Record a creator's content against an ACTIVE campaign.

        Raises:
            NotFoundError: If the campaign or creator does not exist.
            InvalidStateError: If the campaign is not ACTIVE.
        """
        submission = Submission(
            id=submission_id or uuid.uuid4().hex,
            campaign_id=campaign_id,
            creator_id=creator_id,
            url=url,
            status=status,
        )
        with self.unit_of_work("add_submission"):
            campaign = self.require_campaign(campaign_id)
            if campaign.status is not CampaignStatus.ACTIVE:
                raise InvalidStateError(campaign.status, "submit to")
            if self.get_user(creator_id) is None:
                raise NotFoundError("user", creator_id)
            self._conn.execute(
                "INSERT INTO submissions (id, campaign_id, creator_id, url, status, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    submission.id,
                    campaign_id,
                    creator_id,
                    url,
                    status.value,
                    format_timestamp(),
                ),
            )
        return submission

    def review_submission(self, submission_id: str, status: SubmissionStatus) -> None:
        """Set a submission's review status.

        Raises:
            NotFoundError: If the submission does not exist.
            InvalidStateError: If the campaign is already settled.
        """
        with self.unit_of_work("review_submission"):
            submission = self.get_submission(submission_id)
            if submission is None:
                raise NotFoundError("submission", submission_id)
            campaign = self.require_campaign(submission.campaign_id)
            if campaign.status in (CampaignStatus.COMPLETED, CampaignStatus.CANCELLED):
                raise InvalidStateError(campaign.status, "review submissions of")
            self._conn.execute(
                "UPDATE submissions SET status = ? WHERE id = ?",
                (status.value, submission_id),
            )

    def get_submission(self, submission_id: str) -> Submission | None:
        row = self._conn.execute(
            "SELECT * FROM submissions WHERE id = ?", (submission_id,)
        ).fetchone()
        return _row_to_submission(row) if row else None

    def list_submissions(
        self,
        campaign_id: str,
        statuses: Iterable[SubmissionStatus] | None = None,
    ) -> list[Submission]:
        """Return a campaign's submissions ordered by id, optionally filtered by status."""
        query = "SELECT * FROM submissions WHERE campaign_id = ?"
        params: list[str] = [campaign_id]
        if statuses is not None:
            values = sorted(s.value for s in statuses)
            query += f" AND status IN ({', '.join('?' for _ in values)})"
            params.extend(values)
        query += " ORDER BY id"
        return [_row_to_submission(row) for row in self._conn.execute(query, params).fetchall()]

    def record_snapshot(self, submission_id: str, snapshot: EngagementSnapshot) -> bool:
        """Persist the latest engagement counts for a submission.

        The write only applies while the owning campaign is ACTIVE, so a
        refresh that races a completed settlement changes nothing.

        Returns:
            True if the snapshot was stored.
        """
        with self.unit_of_work("record_snapshot"):
            cursor = self._conn.execute(
                """
                UPDATE submissions
                SET views = ?, likes = ?, comments = ?, shares = ?, last_checked_at = ?
                WHERE id = ?
                  AND campaign_id IN (SELECT id FROM campaigns WHERE status = ?)
                """,
                (
                    snapshot.views,
                    snapshot.likes,
                    snapshot.comments,
                    snapshot.shares,
                    format_timestamp(snapshot.fetched_at),
                    submission_id,
                    CampaignStatus.ACTIVE.value,
                ),
            )
        return cursor.rowcount == 1

    def record_settlement(
        self,
        submission_id: str,
        impact_score: Decimal,
        payout_amount: Decimal,
    ) -> None:
        """Store the final score and payout on a submission (inside a unit of work)."""
        if not self._conn.in_transaction:
            raise RuntimeError("Settlement results must be written inside a unit of work")
        self._conn.execute(
            "UPDATE submissions SET impact_score = ?, payout_cents = ? WHERE id = ?",
            (str(impact_score), to_cents(payout_amount), submission_id),
        )

    # ------------------------------------------------------------------
    # Metric fetch log
    # ------------------------------------------------------------------

    def log_metric_fetch(
        self,
        campaign_id: str,
        submission_id: str,
        status: FetchStatus,
        error_message: str | None = None,
    ) -> None:
        """Append one metrics refresh outcome."""
        with self.unit_of_work("log_metric_fetch"):
            self._conn.execute(
                "INSERT INTO metric_fetch_log (campaign_id, submission_id, status, "
                "error_message, created_at) VALUES (?, ?, ?, ?, ?)",
                (campaign_id, submission_id, status.value, error_message, format_timestamp()),
            )

    def list_metric_fetches(self, campaign_id: str) -> list[dict[str, Any]]:
        rows = self._conn.execute(
            "SELECT * FROM metric_fetch_log WHERE campaign_id = ? ORDER BY id",
            (campaign_id,),
        ).fetchall()
        return [dict(row) for row in rows]

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def add_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        link: str | None = None,
    ) -> int:
        """Insert a notification row and return its id."""
        with self.unit_of_work("add_notification"):
            cursor = self._conn.execute(
                "INSERT INTO notifications (user_id, title, message, link, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (user_id, title, message, link, format_timestamp()),
            )
        return cursor.lastrowid or 0

    def list_notifications(self, user_id: str) -> list[dict[str, Any]]:
        rows = self._conn.execute(
            "SELECT * FROM notifications WHERE user_id = ? ORDER BY id",
            (user_id,),
        ).fetchall()
        return [dict(row) for row in rows]
