"""Lead API routes, with contacts and outreach history as lead sub-resources."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy import delete, update
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from leadhub.audit.activity import record_activity
from leadhub.exceptions import NotFound
from leadhub.models.api import (
    AssignRequest,
    ContactCreate,
    ContactResponse,
    DealResponse,
    LeadConvertRequest,
    LeadCreate,
    LeadResponse,
    LeadUpdate,
    OutreachCreate,
    OutreachResponse,
)
from leadhub.models.database import (
    Activity,
    Contact,
    Deal,
    Lead,
    OutreachHistory,
    Task,
    _utc_now,
)
from leadhub.storage.database import get_session
from leadhub.tenancy.context import TenantContext
from leadhub.tenancy.ownership import (
    ensure_assignable,
    get_accessible,
    listing_owner,
    repository_for,
)
from leadhub.types import LeadStatus
from leadhub.web.auth.rbac import require_tenant

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/leads", tags=["leads"])


@router.get("", response_model=list[LeadResponse])
async def list_leads(
    status: LeadStatus | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    return await repository_for(session, Lead).list_all(
        tenant.tenant_id,
        owner_id=listing_owner(tenant),
        filters={"status": status},
        limit=limit,
        offset=offset,
    )


@router.post("", status_code=201, response_model=LeadResponse)
async def create_lead(
    body: LeadCreate,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    assignee = body.assigned_to_id or tenant.user_id
    await ensure_assignable(session, tenant, assignee)
    data = body.model_dump(exclude={"assigned_to_id"})
    lead = await repository_for(session, Lead).add(
        Lead(**data, tenant_id=tenant.tenant_id, assigned_to_id=assignee)
    )
    await record_activity(
        session,
        tenant_id=tenant.tenant_id,
        user_id=tenant.user_id,
        title="Lead created",
        description=f"{tenant.user.display_name} added {lead.company}",
        lead_id=lead.id,
    )
    await session.commit()
    return lead


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: str,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    return await get_accessible(session, tenant, Lead, lead_id, label="Lead")


@router.patch("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: str,
    body: LeadUpdate,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    lead = await get_accessible(session, tenant, Lead, lead_id, label="Lead")
    updates = body.model_dump(exclude_unset=True)
    lead = await repository_for(session, Lead).update(lead, updates)
    await session.commit()
    return lead


@router.post("/{lead_id}/assign", response_model=LeadResponse)
async def assign_lead(
    lead_id: str,
    body: AssignRequest,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    lead = await get_accessible(session, tenant, Lead, lead_id, label="Lead")
    await ensure_assignable(session, tenant, body.user_id)
    lead = await repository_for(session, Lead).update(lead, {"assigned_to_id": body.user_id})
    await session.commit()
    logger.info("lead_assigned", lead_id=lead_id, assigned_to_id=body.user_id)
    return lead


@router.post("/{lead_id}/convert", status_code=201, response_model=DealResponse)
async def convert_lead(
    lead_id: str,
    body: LeadConvertRequest,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    """Open a deal owned by the actor from a lead and mark the lead hot."""
    lead = await get_accessible(session, tenant, Lead, lead_id, label="Lead")
    deal = await repository_for(session, Deal).add(
        Deal(
            **body.model_dump(),
            tenant_id=tenant.tenant_id,
            lead_id=lead.id,
            company=lead.company,
            owner_id=tenant.user_id,
        )
    )
    await repository_for(session, Lead).update(lead, {"status": LeadStatus.HOT})
    await record_activity(
        session,
        tenant_id=tenant.tenant_id,
        user_id=tenant.user_id,
        title=f"Deal created from lead: {deal.company}",
        description=f"{lead.company} was converted to a deal worth {body.value:,.0f}",
        lead_id=lead.id,
        deal_id=deal.id,
    )
    await session.commit()
    logger.info("lead_converted", lead_id=lead_id, deal_id=deal.id)
    return deal


@router.delete("/{lead_id}")
async def delete_lead(
    lead_id: str,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Response:
    lead = await get_accessible(session, tenant, Lead, lead_id, label="Lead")

    # Delete child rows that reference this lead (no DB cascade)
    await session.execute(delete(OutreachHistory).where(col(OutreachHistory.lead_id) == lead_id))
    await session.execute(delete(Contact).where(col(Contact.lead_id) == lead_id))
    await session.execute(delete(Activity).where(col(Activity.lead_id) == lead_id))
    await session.execute(update(Deal).where(col(Deal.lead_id) == lead_id).values(lead_id=None))
    await session.execute(update(Task).where(col(Task.lead_id) == lead_id).values(lead_id=None))

    await repository_for(session, Lead).delete(lead)
    await session.commit()
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------


@router.get("/{lead_id}/contacts", response_model=list[ContactResponse])
async def list_contacts(
    lead_id: str,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    await get_accessible(session, tenant, Lead, lead_id, label="Lead")
    stmt = (
        select(Contact)
        .where(col(Contact.tenant_id) == tenant.tenant_id, col(Contact.lead_id) == lead_id)
        .order_by(col(Contact.is_primary).desc(), col(Contact.created_at))
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


@router.post("/{lead_id}/contacts", status_code=201, response_model=ContactResponse)
async def create_contact(
    lead_id: str,
    body: ContactCreate,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    await get_accessible(session, tenant, Lead, lead_id, label="Lead")
    if body.is_primary:
        await session.execute(
            update(Contact)
            .where(col(Contact.tenant_id) == tenant.tenant_id, col(Contact.lead_id) == lead_id)
            .values(is_primary=False)
        )
    contact = Contact(**body.model_dump(), tenant_id=tenant.tenant_id, lead_id=lead_id)
    session.add(contact)
    await session.commit()
    return contact


@router.delete("/{lead_id}/contacts/{contact_id}")
async def delete_contact(
    lead_id: str,
    contact_id: str,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Response:
    await get_accessible(session, tenant, Lead, lead_id, label="Lead")
    stmt = select(Contact).where(
        col(Contact.id) == contact_id,
        col(Contact.tenant_id) == tenant.tenant_id,
        col(Contact.lead_id) == lead_id,
    )
    contact = (await session.execute(stmt)).scalars().first()
    if contact is None:
        raise NotFound("Contact not found")
    await session.execute(
        update(OutreachHistory)
        .where(col(OutreachHistory.contact_id) == contact_id)
        .values(contact_id=None)
    )
    await session.delete(contact)
    await session.commit()
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Outreach history
# ---------------------------------------------------------------------------


@router.get("/{lead_id}/outreach", response_model=list[OutreachResponse])
async def list_outreach(
    lead_id: str,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    await get_accessible(session, tenant, Lead, lead_id, label="Lead")
    stmt = (
        select(OutreachHistory)
        .where(
            col(OutreachHistory.tenant_id) == tenant.tenant_id,
            col(OutreachHistory.lead_id) == lead_id,
        )
        .order_by(col(OutreachHistory.contact_date).desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


@router.post("/{lead_id}/outreach", status_code=201, response_model=OutreachResponse)
async def log_outreach(
    lead_id: str,
    body: OutreachCreate,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    await get_accessible(session, tenant, Lead, lead_id, label="Lead")
    if body.contact_id is not None:
        stmt = select(Contact).where(
            col(Contact.id) == body.contact_id,
            col(Contact.tenant_id) == tenant.tenant_id,
            col(Contact.lead_id) == lead_id,
        )
        if (await session.execute(stmt)).scalars().first() is None:
            raise NotFound("Contact not found")
    entry = OutreachHistory(
        tenant_id=tenant.tenant_id,
        lead_id=lead_id,
        contact_id=body.contact_id,
        user_id=tenant.user_id,
        channel=body.channel,
        notes=body.notes,
        contact_date=body.contact_date or _utc_now(),
    )
    session.add(entry)
    await session.commit()
    return entry
