"""User profile API routes."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from leadhub.exceptions import Forbidden, NotFound, Unauthenticated
from leadhub.models.api import CurrentContextResponse, UpdateProfileRequest, UserResponse
from leadhub.models.database import _utc_now
from leadhub.storage.database import get_session
from leadhub.storage.repositories.memberships import MembershipRepository
from leadhub.storage.repositories.users import UserRepository
from leadhub.tenancy.context import Principal, TenantContext
from leadhub.tenancy.policy import sees_all_resources
from leadhub.web.auth.rbac import require_tenant, require_user

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current(
    user: Principal = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> Any:
    record = await UserRepository(session).get(user.id)
    if record is None:
        raise Unauthenticated("You must be logged in to access this resource")
    return record


@router.get("/me/context", response_model=CurrentContextResponse)
async def get_current_context(
    tenant: TenantContext = Depends(require_tenant),
) -> dict[str, Any]:
    """Who am I, in which workspace, with which role."""
    return {
        "user": {"id": tenant.user.id, "email": tenant.user.email, "name": tenant.user.name},
        "tenant": {"id": tenant.tenant_id, "name": tenant.tenant_name, "slug": tenant.tenant_slug},
        "membership_id": tenant.membership_id,
        "role": tenant.role,
    }


@router.patch("/me", response_model=UserResponse)
async def update_profile(
    body: UpdateProfileRequest,
    user: Principal = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> Any:
    record = await UserRepository(session).get(user.id)
    if record is None:
        raise Unauthenticated("You must be logged in to access this resource")
    updates = body.model_dump(exclude_unset=True)
    if updates.get("name"):
        record.name = updates["name"]
    if "avatar" in updates:
        record.avatar = updates["avatar"]
    record.updated_at = _utc_now()
    session.add(record)
    await session.commit()
    logger.info("profile_updated", user_id=user.id, fields=sorted(updates))
    return record


@router.get("/{user_id}", response_model=UserResponse)
async def get_by_id(
    user_id: str,
    tenant: TenantContext = Depends(require_tenant),
    session: AsyncSession = Depends(get_session),
) -> Any:
    """Self always; other members of the same tenant for owners and admins only."""
    if user_id != tenant.user_id:
        if await MembershipRepository(session).get_for(user_id, tenant.tenant_id) is None:
            raise NotFound("User not found")
        if not sees_all_resources(tenant.role):
            raise Forbidden("You can only view your own profile")
    record = await UserRepository(session).get(user_id)
    if record is None:
        raise NotFound("User not found")
    return record
