"""Campaign API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlmodel.ext.asyncio.session import AsyncSession

from leadhub.models.api import CampaignCreate, CampaignResponse, CampaignUpdate
from leadhub.models.database import Campaign
from leadhub.storage.database import get_session
from leadhub.tenancy.context import TenantContext
from leadhub.tenancy.ownership import get_accessible, listing_owner, repository_for
from leadhub.types import CampaignStatus
from leadhub.web.auth.rbac import require_tenant

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])


@router.get("", response_model=list[CampaignResponse])
async def list_campaigns(
    status: CampaignStatus | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    return await repository_for(session, Campaign).list_all(
        tenant.tenant_id,
        owner_id=listing_owner(tenant),
        filters={"status": status},
        limit=limit,
        offset=offset,
    )


@router.post("", status_code=201, response_model=CampaignResponse)
async def create_campaign(
    body: CampaignCreate,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    campaign = await repository_for(session, Campaign).add(
        Campaign(**body.model_dump(), tenant_id=tenant.tenant_id, created_by_id=tenant.user_id)
    )
    await session.commit()
    return campaign


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(
    campaign_id: str,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    return await get_accessible(session, tenant, Campaign, campaign_id, label="Campaign")


@router.patch("/{campaign_id}", response_model=CampaignResponse)
async def update_campaign(
    campaign_id: str,
    body: CampaignUpdate,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    campaign = await get_accessible(session, tenant, Campaign, campaign_id, label="Campaign")
    campaign = await repository_for(session, Campaign).update(
        campaign, body.model_dump(exclude_unset=True)
    )
    await session.commit()
    return campaign


@router.delete("/{campaign_id}")
async def delete_campaign(
    campaign_id: str,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Response:
    campaign = await get_accessible(session, tenant, Campaign, campaign_id, label="Campaign")
    await repository_for(session, Campaign).delete(campaign)
    await session.commit()
    return Response(status_code=204)
