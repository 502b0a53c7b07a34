"""Admin HTTP routes for campaign approval, rejection and settlement.

The upstream gateway authenticates callers and forwards their identity in
``X-Actor-Id`` and ``X-Actor-Role``.  A missing or unparseable identity is
passed on as ``None`` and refused by the orchestrator.

Handlers are ``async`` so every unit of work runs on the event loop thread
and requests never hold the shared connection from two threads at once.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel

from settlement.domain.models import Actor
from settlement.domain.types import Role
from settlement.engine.orchestrator import SettlementOrchestrator

router = APIRouter(prefix="/admin/campaigns", tags=["campaigns"])


class RejectRequest(BaseModel):
    """Body of ``POST /admin/campaigns/{id}/reject``."""

    reason: str = ""


def get_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
) -> Actor | None:
    """Build the calling actor from gateway headers, or ``None`` if absent."""
    if not x_actor_id or not x_actor_role:
        return None
    try:
        role = Role(x_actor_role.strip().lower())
    except ValueError:
        return None
    return Actor(user_id=x_actor_id, role=role)


def get_orchestrator(request: Request) -> SettlementOrchestrator:
    return request.app.state.services["orchestrator"]


ActorDep = Annotated[Actor | None, Depends(get_actor)]
OrchestratorDep = Annotated[SettlementOrchestrator, Depends(get_orchestrator)]


@router.post("/{campaign_id}/approve")
async def approve_campaign(
    campaign_id: str,
    actor: ActorDep,
    orchestrator: OrchestratorDep,
) -> dict[str, Any]:
    """Approve a pending campaign and start its run."""
    campaign = orchestrator.approve(campaign_id, actor)
    return {
        "campaignId": campaign.id,
        "status": campaign.status.value,
        "startDate": campaign.start_date.isoformat() if campaign.start_date else None,
        "endDate": campaign.end_date.isoformat() if campaign.end_date else None,
    }


@router.post("/{campaign_id}/reject")
async def reject_campaign(
    campaign_id: str,
    body: RejectRequest,
    actor: ActorDep,
    orchestrator: OrchestratorDep,
) -> dict[str, Any]:
    """Reject a pending campaign and refund its budget to the artist."""
    result = orchestrator.reject(campaign_id, actor, body.reason)
    return result.model_dump(mode="json", by_alias=True)


@router.post("/{campaign_id}/finish")
async def finish_campaign(
    campaign_id: str,
    actor: ActorDep,
    orchestrator: OrchestratorDep,
) -> dict[str, Any]:
    """Refresh metrics and distribute the campaign budget."""
    report = await orchestrator.finish(campaign_id, actor)
    return report.model_dump(mode="json", by_alias=True)
