"""Mandate router — owner invitations, lifecycle actions and read views.

Pattern:
  1. Inject DB session, tenant and caller (X-Actor-Role / X-Actor-Id headers)
  2. Instantiate the services with (session, client_id)
  3. Call service methods and wrap result in response envelope
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from mandate_engine.core.actor import Actor, ActorRole
from mandate_engine.core.exceptions import UnauthorizedActorError, ValidationError
from mandate_engine.core.pagination import PaginationParams
from mandate_engine.core.response import DataResponse, ListResponse, paginated
from mandate_engine.db.base import get_db
from mandate_engine.domain.mandate import Mandate
from mandate_engine.routers.deps import get_actor, get_client_id
from mandate_engine.schemas.mandate import (
    AuditEntryOut,
    CommissionUpdate,
    DocumentAttach,
    MandateBoardOut,
    MandateCreate,
    MandateKPIsOut,
    MandateOut,
    PermissionsPatch,
    TransitionRequest,
)
from mandate_engine.services.lifecycle import MandateStatus
from mandate_engine.services.mandate import MandateService
from mandate_engine.services.query import MandateFilters, MandateQueryService

router = APIRouter(prefix="/mandates", tags=["Mandates"])


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _resolve_party(actor: Actor, party: str | None) -> str:
    """Owners and agencies read their own mandates; the system actor names a party."""
    if actor.id and party and party != actor.id:
        raise UnauthorizedActorError("Cannot read another party's mandates")
    resolved = party or actor.id
    if not resolved:
        raise ValidationError("A party id is required (query ?party= or X-Actor-Id)")
    return resolved


async def _out(session: AsyncSession, client_id: str, mandate: Mandate, actor: Actor) -> MandateOut:
    if actor.role is ActorRole.AGENCY:
        viewer = actor.id or mandate.agency_id
    else:
        viewer = actor.id if actor.role is ActorRole.OWNER else None
    view = await MandateQueryService(session, client_id).view_of(mandate, viewer)
    return MandateOut.from_view(view)


# ------------------------------------------------------------------
# Create
# ------------------------------------------------------------------

@router.post("", response_model=DataResponse[list[MandateOut]], status_code=status.HTTP_201_CREATED)
async def create_mandates(
    body: MandateCreate,
    session: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    actor: Actor = Depends(get_actor),
):
    """Owner invites an agency: one pending mandate per selected property, or one
    mandate covering all properties. All-or-nothing."""
    created = await MandateService(session, client_id).create_mandates(
        actor, body.agency_id, body.target_property_ids(), body.terms()
    )
    return {"data": [await _out(session, client_id, m, actor) for m in created]}


# ------------------------------------------------------------------
# Read views
# ------------------------------------------------------------------

@router.get("", response_model=ListResponse[MandateOut])
async def list_mandates(
    party: Optional[str] = Query(default=None, description="Owner or agency id"),
    filter_status: Optional[MandateStatus] = Query(default=None, alias="status"),
    q: Optional[str] = Query(default=None, description="Search title, city, counterparty, id"),
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    actor: Actor = Depends(get_actor),
):
    views = await MandateQueryService(session, client_id).query(
        _resolve_party(actor, party),
        MandateFilters(status=filter_status, search=q),
        pagination.sort,
        pagination.order,
    )
    return paginated(
        [MandateOut.from_view(v) for v in pagination.slice(views)],
        len(views), pagination,
    )


@router.get("/board", response_model=DataResponse[MandateBoardOut])
async def mandate_board(
    party: Optional[str] = Query(default=None, description="Owner or agency id"),
    q: Optional[str] = Query(default=None),
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    actor: Actor = Depends(get_actor),
):
    """Kanban columns, one per status."""
    columns = await MandateQueryService(session, client_id).board(
        _resolve_party(actor, party), q, pagination.sort, pagination.order
    )
    return {"data": MandateBoardOut.from_columns(columns)}


@router.get("/kpis", response_model=DataResponse[MandateKPIsOut])
async def mandate_kpis(
    party: Optional[str] = Query(default=None, description="Owner or agency id"),
    session: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    actor: Actor = Depends(get_actor),
):
    kpis = await MandateQueryService(session, client_id).kpis(_resolve_party(actor, party))
    return {"data": MandateKPIsOut.from_kpis(kpis)}


@router.get("/{mandate_id}", response_model=DataResponse[MandateOut])
async def get_mandate(
    mandate_id: str,
    session: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    actor: Actor = Depends(get_actor),
):
    mandate = await MandateService(session, client_id).get_for_actor(mandate_id, actor)
    return {"data": await _out(session, client_id, mandate, actor)}


@router.get("/{mandate_id}/history", response_model=DataResponse[list[AuditEntryOut]])
async def mandate_history(
    mandate_id: str,
    session: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    actor: Actor = Depends(get_actor),
):
    entries = await MandateService(session, client_id).history(mandate_id, actor)
    return {"data": [AuditEntryOut.model_validate(e) for e in entries]}


# ------------------------------------------------------------------
# Mutations
# ------------------------------------------------------------------

@router.post("/{mandate_id}/transitions", response_model=DataResponse[MandateOut])
async def transition_mandate(
    mandate_id: str,
    body: TransitionRequest,
    session: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    actor: Actor = Depends(get_actor),
):
    """accept | refuse | suspend | reactivate | terminate | expire"""
    mandate = await MandateService(session, client_id).transition(
        mandate_id, body.action, actor, body.reason
    )
    return {"data": await _out(session, client_id, mandate, actor)}


@router.patch("/{mandate_id}/permissions", response_model=DataResponse[MandateOut])
async def update_permissions(
    mandate_id: str,
    body: PermissionsPatch,
    session: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    actor: Actor = Depends(get_actor),
):
    mandate = await MandateService(session, client_id).update_permissions(
        mandate_id, actor, body.as_partial()
    )
    return {"data": await _out(session, client_id, mandate, actor)}


@router.patch("/{mandate_id}/commission", response_model=DataResponse[MandateOut])
async def update_commission(
    mandate_id: str,
    body: CommissionUpdate,
    session: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    actor: Actor = Depends(get_actor),
):
    mandate = await MandateService(session, client_id).update_commission_rate(
        mandate_id, actor, body.commission_rate
    )
    return {"data": await _out(session, client_id, mandate, actor)}


@router.post("/{mandate_id}/signatures", response_model=DataResponse[MandateOut])
async def sign_mandate(
    mandate_id: str,
    session: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    actor: Actor = Depends(get_actor),
):
    """Record the caller's electronic signature (idempotent)."""
    mandate = await MandateService(session, client_id).record_signature(mandate_id, actor)
    return {"data": await _out(session, client_id, mandate, actor)}


@router.put("/{mandate_id}/document", response_model=DataResponse[MandateOut])
async def attach_document(
    mandate_id: str,
    body: DocumentAttach,
    session: AsyncSession = Depends(get_db),
    client_id: str = Depends(get_client_id),
    actor: Actor = Depends(get_actor),
):
    mandate = await MandateService(session, client_id).attach_signed_document(
        mandate_id, actor, body.url
    )
    return {"data": await _out(session, client_id, mandate, actor)}
