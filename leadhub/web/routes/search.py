"""Search across leads, deals and lead contacts.

Results go through the same scoping as the listings: always the actor's
tenant, and only the actor's own records for plain USER members.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from leadhub.models.api import (
    ContactSearchResult,
    DealResponse,
    GlobalSearchResponse,
    LeadResponse,
    SearchResult,
)
from leadhub.models.database import Contact, Deal, Lead
from leadhub.storage.database import get_session
from leadhub.tenancy.context import TenantContext
from leadhub.tenancy.ownership import listing_owner, repository_for
from leadhub.web.auth.rbac import require_tenant

router = APIRouter(prefix="/api/search", tags=["search"])

LEAD_FIELDS = ("company", "contact_name", "contact_email", "phone")
DEAL_FIELDS = ("company",)


async def _search_leads(
    session: AsyncSession, tenant: TenantContext, q: str, limit: int
) -> list[Lead]:
    return await repository_for(session, Lead).search(
        tenant.tenant_id, q, LEAD_FIELDS, owner_id=listing_owner(tenant), limit=limit
    )


async def _search_deals(
    session: AsyncSession, tenant: TenantContext, q: str, limit: int
) -> list[Deal]:
    return await repository_for(session, Deal).search(
        tenant.tenant_id, q, DEAL_FIELDS, owner_id=listing_owner(tenant), limit=limit
    )


@router.get("", response_model=GlobalSearchResponse)
async def search_all(
    q: str = Query(min_length=1),
    limit: int = Query(default=10, ge=1, le=50),
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    leads = await _search_leads(session, tenant, q, limit)
    deals = await _search_deals(session, tenant, q, limit)
    results = [
        SearchResult(
            id=lead.id,
            type="lead",
            title=lead.company,
            subtitle=lead.contact_name,
            description=lead.contact_email or "",
        )
        for lead in leads
    ]
    results += [
        SearchResult(
            id=deal.id,
            type="deal",
            title=deal.company,
            subtitle=f"Stage: {deal.stage}",
            description=f"Value: {deal.value:,.0f}",
        )
        for deal in deals
    ]
    return GlobalSearchResponse(
        query=q,
        results=results,
        total=len(results),
        leads_count=len(leads),
        deals_count=len(deals),
    )


@router.get("/leads", response_model=list[LeadResponse])
async def search_leads(
    q: str = Query(min_length=1),
    limit: int = Query(default=20, ge=1, le=50),
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    return await _search_leads(session, tenant, q, limit)


@router.get("/deals", response_model=list[DealResponse])
async def search_deals(
    q: str = Query(min_length=1),
    limit: int = Query(default=20, ge=1, le=50),
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    return await _search_deals(session, tenant, q, limit)


@router.get("/contacts", response_model=list[ContactSearchResult])
async def search_contacts(
    q: str = Query(min_length=1),
    limit: int = Query(default=20, ge=1, le=50),
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    # Contacts have no owner of their own; they follow their lead.
    stmt = (
        select(Contact, Lead)
        .join(Lead, col(Lead.id) == col(Contact.lead_id))
        .where(
            col(Contact.tenant_id) == tenant.tenant_id,
            col(Lead.tenant_id) == tenant.tenant_id,
            or_(
                col(Contact.name).icontains(q, autoescape=True),
                col(Contact.email).icontains(q, autoescape=True),
                col(Contact.phone).icontains(q, autoescape=True),
            ),
        )
    )
    owner_id = listing_owner(tenant)
    if owner_id is not None:
        stmt = stmt.where(col(Lead.assigned_to_id) == owner_id)
    stmt = stmt.order_by(col(Contact.created_at).desc()).limit(limit)
    result = await session.execute(stmt)
    return [
        ContactSearchResult(
            id=contact.id,
            lead_id=lead.id,
            name=contact.name,
            email=contact.email,
            phone=contact.phone,
            company=lead.company,
        )
        for contact, lead in result.all()
    ]
