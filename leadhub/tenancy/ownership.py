"""Per-resource ownership checks used by every business route.

A record is reachable only through its tenant: lookups filter by the
actor's ``tenant_id`` first, so a record from another tenant is
``NotFound``. Existence is settled before ownership, so ``NotFound`` always
wins over ``Forbidden``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from sqlmodel import SQLModel

from leadhub.exceptions import Forbidden, NotFound
from leadhub.models.database import Activity, Campaign, Deal, Lead, OutreachHistory, Task
from leadhub.storage.repositories.memberships import MembershipRepository
from leadhub.storage.repositories.resources import TenantScopedRepository
from leadhub.tenancy.policy import can_act_on_resource, sees_all_resources

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from leadhub.tenancy.context import TenantContext

ModelT = TypeVar("ModelT", bound=SQLModel)

OWNER_FIELDS: dict[type[SQLModel], str] = {
    Lead: "assigned_to_id",
    Deal: "owner_id",
    Task: "assigned_to_id",
    Campaign: "created_by_id",
    OutreachHistory: "user_id",
    Activity: "user_id",
}


def owner_field(model: type[SQLModel]) -> str:
    try:
        return OWNER_FIELDS[model]
    except KeyError:
        msg = f"{model.__name__} has no ownership pointer"
        raise TypeError(msg) from None


def owner_of(resource: SQLModel) -> str | None:
    value: Any = getattr(resource, owner_field(type(resource)))
    return value


def can_access(ctx: TenantContext, resource: SQLModel) -> bool:
    """Same tenant, and either a manager role or the resource's owner."""
    if getattr(resource, "tenant_id", None) != ctx.tenant_id:
        return False
    return can_act_on_resource(ctx.user_id, ctx.role, owner_of(resource))


def repository_for(session: AsyncSession, model: type[ModelT]) -> TenantScopedRepository[ModelT]:
    return TenantScopedRepository(session, model, owner_field(model))


def listing_owner(ctx: TenantContext) -> str | None:
    """Owner filter for listings: none for managers, the actor for plain users."""
    return None if sees_all_resources(ctx.role) else ctx.user_id


async def get_accessible(
    session: AsyncSession,
    ctx: TenantContext,
    model: type[ModelT],
    resource_id: str,
    *,
    label: str | None = None,
) -> ModelT:
    """Load a resource the actor may act on, or raise NotFound / Forbidden."""
    label = label or model.__name__
    resource = await repository_for(session, model).get(ctx.tenant_id, resource_id)
    if resource is None:
        raise NotFound(f"{label} not found")
    if not can_access(ctx, resource):
        raise Forbidden(f"You don't have access to this {label.lower()}")
    return resource


async def ensure_assignable(session: AsyncSession, ctx: TenantContext, user_id: str) -> None:
    """Resources may only be handed to users holding a membership in the same tenant."""
    if user_id == ctx.user_id:
        return
    if await MembershipRepository(session).get_for(user_id, ctx.tenant_id) is None:
        raise NotFound("User not found")
    if not sees_all_resources(ctx.role):
        raise Forbidden("Only owners and admins can assign records to other users")
