"""Shared pytest fixtures for the campaign settlement test suite."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator
from decimal import Decimal

import pytest

from settlement.audit.logger import AuditLogger
from settlement.audit.store import init_audit_table
from settlement.domain.models import Actor, Campaign, Submission
from settlement.domain.types import Role, SubmissionStatus, TransactionType
from settlement.engine.orchestrator import SettlementOrchestrator
from settlement.notifications.emitter import StoreNotificationSink
from settlement.store.database import connect_db
from settlement.store.schema import init_settlement_schema
from settlement.store.store import SettlementStore

ARTIST_ID = "artist-1"
CREATOR_IDS = ("creator-a", "creator-b", "creator-c")


@pytest.fixture
def anyio_backend() -> str:
    """The settlement code is built on asyncio primitives; run async tests on asyncio."""
    return "asyncio"


@pytest.fixture
def conn() -> Iterator[sqlite3.Connection]:
    """In-memory settlement database with the full schema and audit table."""
    connection = connect_db(":memory:")
    init_settlement_schema(connection)
    init_audit_table(connection)
    yield connection
    connection.close()


@pytest.fixture
def store(conn: sqlite3.Connection) -> SettlementStore:
    return SettlementStore(conn)


@pytest.fixture
def fund(store: SettlementStore) -> Callable[[str, str], None]:
    """Credit a user with a DEPOSIT entry, as the external billing flow would."""

    def _fund(user_id: str, amount: str) -> None:
        with store.unit_of_work("test_deposit"):
            store.ledger.apply_entry(
                user_id, Decimal(amount), TransactionType.DEPOSIT, "Test deposit"
            )

    return _fund


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def artist_actor() -> Actor:
    return Actor(user_id=ARTIST_ID, role=Role.ARTIST)


@pytest.fixture
def users(store: SettlementStore, fund: Callable[[str, str], None]) -> None:
    """An artist funded with 2000.00 and three unfunded creators."""
    store.create_user(ARTIST_ID, Role.ARTIST, "Artist One")
    fund(ARTIST_ID, "2000.00")
    for creator_id in CREATOR_IDS:
        store.create_user(creator_id, Role.CREATOR, creator_id.replace("-", " ").title())


@pytest.fixture
def pending_campaign(store: SettlementStore, users: None) -> Campaign:
    """A 1000.00 campaign awaiting approval (budget already held)."""
    return store.create_campaign(
        ARTIST_ID, "Summer Single", Decimal("1000.00"), campaign_id="camp-1"
    )


@pytest.fixture
def orchestrator(store: SettlementStore) -> SettlementOrchestrator:
    """Orchestrator with store-backed notifications and audit, no provider, no backoff."""
    return SettlementOrchestrator(
        store,
        notification_sink=StoreNotificationSink(store),
        audit_logger=AuditLogger(store.conn),
        refresh_wait_initial=0,
        refresh_wait_max=0,
        refresh_jitter=0,
    )


@pytest.fixture
def active_campaign(
    orchestrator: SettlementOrchestrator,
    pending_campaign: Campaign,
    admin: Actor,
) -> Campaign:
    return orchestrator.approve(pending_campaign.id, admin)


@pytest.fixture
def add_submission(
    store: SettlementStore,
) -> Callable[..., Submission]:
    """Add a submission and optionally set its engagement counts directly."""

    def _add(
        campaign_id: str,
        creator_id: str,
        *,
        submission_id: str | None = None,
        status: SubmissionStatus = SubmissionStatus.APPROVED,
        views: int = 0,
        likes: int = 0,
        shares: int = 0,
    ) -> Submission:
        submission = store.add_submission(
            campaign_id,
            creator_id,
            f"https://video.example/{submission_id or creator_id}",
            status=status,
            submission_id=submission_id,
        )
        store.conn.execute(
            "UPDATE submissions SET views = ?, likes = ?, shares = ? WHERE id = ?",
            (views, likes, shares, submission.id),
        )
        return store.get_submission(submission.id)  # type: ignore[return-value]

    return _add
