"""Deal API routes."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy import update
from sqlmodel import col
from sqlmodel.ext.asyncio.session import AsyncSession

from leadhub.audit.activity import record_activity
from leadhub.models.api import AssignRequest, DealCreate, DealResponse, DealUpdate
from leadhub.models.database import Activity, Deal, Lead, Task
from leadhub.storage.database import get_session
from leadhub.tenancy.context import TenantContext
from leadhub.tenancy.ownership import (
    ensure_assignable,
    get_accessible,
    listing_owner,
    repository_for,
)
from leadhub.types import DealStage
from leadhub.web.auth.rbac import require_tenant

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/deals", tags=["deals"])


@router.get("", response_model=list[DealResponse])
async def list_deals(
    stage: DealStage | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    return await repository_for(session, Deal).list_all(
        tenant.tenant_id,
        owner_id=listing_owner(tenant),
        filters={"stage": stage},
        limit=limit,
        offset=offset,
    )


@router.post("", status_code=201, response_model=DealResponse)
async def create_deal(
    body: DealCreate,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    # A deal may only hang off a lead the actor can reach.
    if body.lead_id is not None:
        await get_accessible(session, tenant, Lead, body.lead_id, label="Lead")
    owner_id = body.owner_id or tenant.user_id
    await ensure_assignable(session, tenant, owner_id)
    data = body.model_dump(exclude={"owner_id"})
    deal = await repository_for(session, Deal).add(
        Deal(**data, tenant_id=tenant.tenant_id, owner_id=owner_id)
    )
    await record_activity(
        session,
        tenant_id=tenant.tenant_id,
        user_id=tenant.user_id,
        title="Deal created",
        description=f"{tenant.user.display_name} opened a deal with {deal.company}",
        lead_id=deal.lead_id,
        deal_id=deal.id,
    )
    await session.commit()
    return deal


@router.get("/{deal_id}", response_model=DealResponse)
async def get_deal(
    deal_id: str,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    return await get_accessible(session, tenant, Deal, deal_id, label="Deal")


@router.patch("/{deal_id}", response_model=DealResponse)
async def update_deal(
    deal_id: str,
    body: DealUpdate,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    deal = await get_accessible(session, tenant, Deal, deal_id, label="Deal")
    updates = body.model_dump(exclude_unset=True)
    previous_stage = deal.stage
    deal = await repository_for(session, Deal).update(deal, updates)
    if "stage" in updates and updates["stage"] != previous_stage:
        await record_activity(
            session,
            tenant_id=tenant.tenant_id,
            user_id=tenant.user_id,
            title="Deal stage changed",
            description=f"{deal.company} moved from {previous_stage} to {deal.stage}",
            deal_id=deal.id,
        )
    await session.commit()
    return deal


@router.post("/{deal_id}/assign", response_model=DealResponse)
async def assign_deal(
    deal_id: str,
    body: AssignRequest,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    deal = await get_accessible(session, tenant, Deal, deal_id, label="Deal")
    await ensure_assignable(session, tenant, body.user_id)
    deal = await repository_for(session, Deal).update(deal, {"owner_id": body.user_id})
    await session.commit()
    logger.info("deal_assigned", deal_id=deal_id, owner_id=body.user_id)
    return deal


@router.delete("/{deal_id}")
async def delete_deal(
    deal_id: str,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Response:
    deal = await get_accessible(session, tenant, Deal, deal_id, label="Deal")
    await session.execute(update(Task).where(col(Task.deal_id) == deal_id).values(deal_id=None))
    await session.execute(
        update(Activity).where(col(Activity.deal_id) == deal_id).values(deal_id=None)
    )
    await repository_for(session, Deal).delete(deal)
    await session.commit()
    return Response(status_code=204)
