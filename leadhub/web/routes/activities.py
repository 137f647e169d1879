"""Activity feed API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from leadhub.exceptions import Forbidden
from leadhub.models.api import ActivityResponse
from leadhub.models.database import Activity, Deal, Lead
from leadhub.storage.database import get_session
from leadhub.tenancy.context import TenantContext
from leadhub.tenancy.ownership import get_accessible, listing_owner, repository_for
from leadhub.tenancy.policy import sees_all_resources
from leadhub.web.auth.rbac import require_tenant

router = APIRouter(prefix="/api/activities", tags=["activities"])


@router.get("", response_model=list[ActivityResponse])
async def list_activities(
    user_id: str | None = None,
    lead_id: str | None = None,
    deal_id: str | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    """Tenant activity feed; plain users see only their own entries."""
    owner_id = listing_owner(tenant)
    if user_id is not None:
        if user_id != tenant.user_id and not sees_all_resources(tenant.role):
            raise Forbidden("You can only view your own activities")
        owner_id = user_id
    if lead_id is not None:
        await get_accessible(session, tenant, Lead, lead_id, label="Lead")
    if deal_id is not None:
        await get_accessible(session, tenant, Deal, deal_id, label="Deal")
    return await repository_for(session, Activity).list_all(
        tenant.tenant_id,
        owner_id=owner_id,
        filters={"lead_id": lead_id, "deal_id": deal_id},
        limit=limit,
        offset=offset,
    )
