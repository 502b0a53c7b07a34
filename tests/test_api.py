"""Tests for the admin HTTP routes and domain error mapping.

Drives the full application (middleware, error handlers, routes) with
FastAPI TestClient over an in-memory settlement database.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from settlement.api.errors import settlement_error_handler, status_code_for
from settlement.api.routes import get_actor
from settlement.app import create_app, initialize_services
from settlement.config import Settings
from settlement.domain.errors import (
    InvalidInputError,
    InvalidStateError,
    MetricsProviderError,
    NotFoundError,
    SettlementError,
    StorageFailureError,
    UnauthorizedError,
)
from settlement.domain.types import CampaignStatus, Role, SubmissionStatus, TransactionType
from settlement.store.store import SettlementStore

ADMIN_HEADERS = {"X-Actor-Id": "admin-1", "X-Actor-Role": "admin"}
ARTIST_HEADERS = {"X-Actor-Id": "artist-1", "X-Actor-Role": "artist"}


@pytest.fixture
def services() -> Iterator[dict[str, Any]]:
    settings = Settings(_env_file=None, database_path=Path(":memory:"))  # type: ignore[call-arg]
    services = initialize_services(settings)
    store: SettlementStore = services["store"]
    store.create_user("artist-1", Role.ARTIST, "Artist One")
    store.create_user("creator-a", Role.CREATOR, "Creator A")
    store.create_user("creator-b", Role.CREATOR, "Creator B")
    with store.unit_of_work("seed"):
        store.ledger.apply_entry("artist-1", Decimal("1000.00"), TransactionType.DEPOSIT, "seed")
    store.create_campaign("artist-1", "Summer Single", Decimal("1000.00"), campaign_id="camp-1")
    yield services
    services["db_conn"].close()


@pytest.fixture
def client(services: dict[str, Any]) -> TestClient:
    return TestClient(create_app(services))


def _activate_with_submissions(client: TestClient, services: dict[str, Any]) -> None:
    client.post("/admin/campaigns/camp-1/approve", headers=ADMIN_HEADERS)
    store: SettlementStore = services["store"]
    for sid, creator_id, shares in (("s1", "creator-a", 3), ("s2", "creator-b", 1)):
        store.add_submission(
            "camp-1",
            creator_id,
            f"https://v/{sid}",
            status=SubmissionStatus.APPROVED,
            submission_id=sid,
        )
        store.conn.execute("UPDATE submissions SET shares = ? WHERE id = ?", (shares, sid))


class TestApprove:
    def test_approve(self, client: TestClient) -> None:
        resp = client.post("/admin/campaigns/camp-1/approve", headers=ADMIN_HEADERS)

        assert resp.status_code == 200
        body = resp.json()
        assert body["campaignId"] == "camp-1"
        assert body["status"] == "active"
        assert body["startDate"] is not None
        assert body["endDate"] is not None

    def test_approve_twice_is_conflict(self, client: TestClient) -> None:
        client.post("/admin/campaigns/camp-1/approve", headers=ADMIN_HEADERS)

        resp = client.post("/admin/campaigns/camp-1/approve", headers=ADMIN_HEADERS)

        assert resp.status_code == 409
        assert resp.json()["error"] == "already processed"
        assert resp.json()["currentStatus"] == "active"

    def test_approve_without_identity_is_forbidden(self, client: TestClient) -> None:
        resp = client.post("/admin/campaigns/camp-1/approve")

        assert resp.status_code == 403
        assert resp.json()["error"] == "UnauthorizedError"

    def test_approve_as_artist_is_forbidden(self, client: TestClient) -> None:
        resp = client.post("/admin/campaigns/camp-1/approve", headers=ARTIST_HEADERS)

        assert resp.status_code == 403

    def test_approve_unknown_campaign(self, client: TestClient) -> None:
        resp = client.post("/admin/campaigns/nope/approve", headers=ADMIN_HEADERS)

        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFoundError"


class TestReject:
    def test_reject_refunds(self, client: TestClient, services: dict[str, Any]) -> None:
        resp = client.post(
            "/admin/campaigns/camp-1/reject",
            headers=ADMIN_HEADERS,
            json={"reason": "Off-brand"},
        )

        assert resp.status_code == 200
        assert resp.json() == {
            "campaignId": "camp-1",
            "status": "cancelled",
            "refunded": "1000.00",
        }
        assert services["store"].ledger.balance("artist-1") == Decimal("1000.00")

    def test_reject_without_reason_is_bad_request(self, client: TestClient) -> None:
        resp = client.post("/admin/campaigns/camp-1/reject", headers=ADMIN_HEADERS, json={})

        assert resp.status_code == 400
        assert resp.json()["error"] == "InvalidInputError"

    def test_reject_after_approval_is_conflict(self, client: TestClient) -> None:
        client.post("/admin/campaigns/camp-1/approve", headers=ADMIN_HEADERS)

        resp = client.post(
            "/admin/campaigns/camp-1/reject", headers=ADMIN_HEADERS, json={"reason": "late"}
        )

        assert resp.status_code == 409
        assert resp.json()["currentStatus"] == "active"


class TestFinish:
    def test_finish_returns_camel_case_report(
        self, client: TestClient, services: dict[str, Any]
    ) -> None:
        _activate_with_submissions(client, services)

        resp = client.post("/admin/campaigns/camp-1/finish", headers=ADMIN_HEADERS)

        assert resp.status_code == 200
        body = resp.json()
        assert body["campaignId"] == "camp-1"
        assert body["metricsRefresh"] == {"updated": 0, "failed": 0, "errors": []}
        assert body["payout"]["payouts"] == [
            {"creatorId": "creator-a", "amount": "750.00"},
            {"creatorId": "creator-b", "amount": "250.00"},
        ]
        assert body["payout"]["remainder"] == "0.00"

    def test_finish_twice_is_conflict(
        self, client: TestClient, services: dict[str, Any]
    ) -> None:
        _activate_with_submissions(client, services)
        client.post("/admin/campaigns/camp-1/finish", headers=ADMIN_HEADERS)

        resp = client.post("/admin/campaigns/camp-1/finish", headers=ADMIN_HEADERS)

        assert resp.status_code == 409
        assert resp.json()["currentStatus"] == "completed"

    def test_storage_failure_is_retryable_503(
        self,
        client: TestClient,
        services: dict[str, Any],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        _activate_with_submissions(client, services)
        store: SettlementStore = services["store"]

        def locked(*args: object) -> None:
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(store, "record_settlement", locked)

        resp = client.post("/admin/campaigns/camp-1/finish", headers=ADMIN_HEADERS)

        assert resp.status_code == 503
        assert resp.json()["error"] == "StorageFailureError"
        assert resp.json()["retryable"] is True
        assert store.require_campaign("camp-1").status is CampaignStatus.ACTIVE

    def test_response_carries_request_id(self, client: TestClient) -> None:
        resp = client.post(
            "/admin/campaigns/camp-1/finish",
            headers={**ADMIN_HEADERS, "X-Request-ID": "req-42"},
        )

        assert resp.headers["X-Request-ID"] == "req-42"


class TestErrorMapping:
    @pytest.mark.parametrize(
        ("exc", "code"),
        [
            (UnauthorizedError(None, "approve campaigns"), 403),
            (InvalidInputError("reason", "required"), 400),
            (NotFoundError("campaign", "c1"), 404),
            (InvalidStateError(CampaignStatus.COMPLETED, "finish"), 409),
            (StorageFailureError("finish_campaign"), 503),
            (MetricsProviderError("s1", "timeout"), 500),
            (SettlementError("unexpected"), 500),
        ],
    )
    def test_status_code_for(self, exc: SettlementError, code: int) -> None:
        assert status_code_for(exc) == code


def _request(path: str) -> Request:
    return Request(
        {
            "type": "http",
            "method": "POST",
            "scheme": "http",
            "server": ("testserver", 80),
            "path": path,
            "query_string": b"",
            "headers": [],
        }
    )


class TestSettlementErrorHandler:
    @pytest.mark.anyio()
    async def test_invalid_state_body(self) -> None:
        exc = InvalidStateError(CampaignStatus.COMPLETED, "finish")

        response = await settlement_error_handler(_request("/admin/campaigns/c1/finish"), exc)

        assert response.status_code == 409
        assert json.loads(response.body) == {
            "error": "already processed",
            "detail": str(exc),
            "currentStatus": "completed",
        }

    @pytest.mark.anyio()
    async def test_retryable_storage_failure(self) -> None:
        exc = StorageFailureError("finish_campaign")

        response = await settlement_error_handler(_request("/admin/campaigns/c1/finish"), exc)

        assert response.status_code == 503
        body = json.loads(response.body)
        assert body["error"] == "StorageFailureError"
        assert body["retryable"] is True


class TestGetActor:
    def test_missing_headers(self) -> None:
        assert get_actor(None, None) is None
        assert get_actor("admin-1", None) is None

    def test_unknown_role(self) -> None:
        assert get_actor("admin-1", "superuser") is None

    def test_role_is_normalized(self) -> None:
        actor = get_actor("admin-1", " Admin ")

        assert actor is not None
        assert actor.role is Role.ADMIN
