"""Membership API routes: team listing, invitations and member management."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from leadhub.models.api import (
    CreateMemberRequest,
    InvitationResponse,
    InviteRequest,
    MembershipResponse,
    UpdateRoleRequest,
    UpdateStatusRequest,
    UserSummary,
)
from leadhub.models.database import Membership, Tenant, User
from leadhub.tenancy.context import Principal, TenantContext
from leadhub.tenancy.memberships import MembershipService
from leadhub.web.auth.rbac import require_tenant, require_user
from leadhub.web.dependencies import get_membership_service

router = APIRouter(prefix="/api/memberships", tags=["memberships"])


def _membership_out(membership: Membership, user: User | None = None) -> dict[str, Any]:
    data = MembershipResponse.model_validate(membership).model_dump()
    if user is not None:
        data["user"] = UserSummary.model_validate(user).model_dump()
    return data


def _invitation_out(membership: Membership, tenant: Tenant) -> dict[str, Any]:
    return {
        "id": membership.id,
        "tenant_id": membership.tenant_id,
        "role": membership.role,
        "status": membership.status,
        "created_at": membership.created_at,
        "tenant": {"id": tenant.id, "name": tenant.name, "slug": tenant.slug},
    }


@router.get("", response_model=list[MembershipResponse])
async def list_members(
    tenant: TenantContext = Depends(require_tenant),
    service: MembershipService = Depends(get_membership_service),
) -> list[dict[str, Any]]:
    members = await service.list_members(tenant)
    return [_membership_out(m, u) for m, u in members]


@router.post("/invite", status_code=201, response_model=MembershipResponse)
async def invite_member(
    body: InviteRequest,
    tenant: TenantContext = Depends(require_tenant),
    service: MembershipService = Depends(get_membership_service),
) -> dict[str, Any]:
    membership, user = await service.invite(tenant, body.email, body.role)
    return _membership_out(membership, user)


@router.post("/users", status_code=201, response_model=MembershipResponse)
async def create_member(
    body: CreateMemberRequest,
    tenant: TenantContext = Depends(require_tenant),
    service: MembershipService = Depends(get_membership_service),
) -> dict[str, Any]:
    membership, user = await service.create_member(
        tenant,
        email=body.email,
        username=body.username,
        password=body.password,
        role=body.role,
    )
    return _membership_out(membership, user)


@router.patch("/{membership_id}/status", response_model=MembershipResponse)
async def update_status(
    membership_id: str,
    body: UpdateStatusRequest,
    tenant: TenantContext = Depends(require_tenant),
    service: MembershipService = Depends(get_membership_service),
) -> dict[str, Any]:
    membership, user = await service.update_status(tenant, membership_id, body.status)
    return _membership_out(membership, user)


@router.patch("/{membership_id}/role", response_model=MembershipResponse)
async def update_role(
    membership_id: str,
    body: UpdateRoleRequest,
    tenant: TenantContext = Depends(require_tenant),
    service: MembershipService = Depends(get_membership_service),
) -> dict[str, Any]:
    membership, user = await service.update_role(tenant, membership_id, body.role)
    return _membership_out(membership, user)


@router.delete("/{membership_id}")
async def remove_member(
    membership_id: str,
    tenant: TenantContext = Depends(require_tenant),
    service: MembershipService = Depends(get_membership_service),
) -> Response:
    await service.remove(tenant, membership_id)
    return Response(status_code=204)


# Invitations only need an authenticated user: a pending member has no
# active membership in the inviting tenant yet.


@router.get("/invitations", response_model=list[InvitationResponse])
async def my_invitations(
    user: Principal = Depends(require_user),
    service: MembershipService = Depends(get_membership_service),
) -> list[dict[str, Any]]:
    invitations = await service.my_invitations(user)
    return [_invitation_out(m, t) for m, t in invitations]


@router.post("/{membership_id}/accept", response_model=InvitationResponse)
async def accept_invitation(
    membership_id: str,
    user: Principal = Depends(require_user),
    service: MembershipService = Depends(get_membership_service),
) -> dict[str, Any]:
    membership, tenant = await service.accept_invitation(user, membership_id)
    return _invitation_out(membership, tenant)


@router.post("/{membership_id}/decline")
async def decline_invitation(
    membership_id: str,
    user: Principal = Depends(require_user),
    service: MembershipService = Depends(get_membership_service),
) -> Response:
    await service.decline_invitation(user, membership_id)
    return Response(status_code=204)
