"""Task API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlmodel.ext.asyncio.session import AsyncSession

from leadhub.models.api import AssignRequest, TaskCreate, TaskResponse, TaskUpdate
from leadhub.models.database import Deal, Lead, Task
from leadhub.storage.database import get_session
from leadhub.tenancy.context import TenantContext
from leadhub.tenancy.ownership import (
    ensure_assignable,
    get_accessible,
    listing_owner,
    repository_for,
)
from leadhub.types import TaskPriority, TaskStatus
from leadhub.web.auth.rbac import require_tenant

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("", response_model=list[TaskResponse])
async def list_tasks(
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    return await repository_for(session, Task).list_all(
        tenant.tenant_id,
        owner_id=listing_owner(tenant),
        filters={"status": status, "priority": priority},
        limit=limit,
        offset=offset,
    )


@router.post("", status_code=201, response_model=TaskResponse)
async def create_task(
    body: TaskCreate,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    if body.lead_id is not None:
        await get_accessible(session, tenant, Lead, body.lead_id, label="Lead")
    if body.deal_id is not None:
        await get_accessible(session, tenant, Deal, body.deal_id, label="Deal")
    assignee = body.assigned_to_id or tenant.user_id
    await ensure_assignable(session, tenant, assignee)
    data = body.model_dump(exclude={"assigned_to_id"})
    task = await repository_for(session, Task).add(
        Task(**data, tenant_id=tenant.tenant_id, assigned_to_id=assignee)
    )
    await session.commit()
    return task


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    return await get_accessible(session, tenant, Task, task_id, label="Task")


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    body: TaskUpdate,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    task = await get_accessible(session, tenant, Task, task_id, label="Task")
    task = await repository_for(session, Task).update(task, body.model_dump(exclude_unset=True))
    await session.commit()
    return task


@router.post("/{task_id}/assign", response_model=TaskResponse)
async def assign_task(
    task_id: str,
    body: AssignRequest,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    task = await get_accessible(session, tenant, Task, task_id, label="Task")
    await ensure_assignable(session, tenant, body.user_id)
    task = await repository_for(session, Task).update(task, {"assigned_to_id": body.user_id})
    await session.commit()
    return task


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Response:
    task = await get_accessible(session, tenant, Task, task_id, label="Task")
    await repository_for(session, Task).delete(task)
    await session.commit()
    return Response(status_code=204)
