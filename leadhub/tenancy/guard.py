"""Authorization guards.

``authenticate`` turns a resolved identity into a Principal; ``scope_to_tenant``
turns a Principal into a TenantContext. Both raise instead of returning a
partial context, and both are safe to call twice in one request: the second
call finds the rows the first one created.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from leadhub.exceptions import Forbidden, StorageError, Unauthenticated
from leadhub.tenancy.context import Principal, TenantContext
from leadhub.tenancy.principal import resolve_user
from leadhub.tenancy.resolver import DEFAULT_WORKSPACE_TEMPLATE, resolve_tenancy
from leadhub.types import MembershipStatus

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from leadhub.web.auth.identity import Identity

logger = structlog.get_logger(__name__)


async def authenticate(session: AsyncSession, identity: Identity | None) -> Principal:
    """Require a resolved identity and its internal User."""
    if identity is None:
        raise Unauthenticated("You must be logged in to access this resource")
    try:
        user = await resolve_user(session, identity.external_id, identity.email, identity.name)
    except StorageError as exc:
        logger.error(
            "principal_resolution_failed", external_id=identity.external_id, error=str(exc)
        )
        raise Unauthenticated("You must be logged in to access this resource") from exc
    return Principal.from_user(user)


async def scope_to_tenant(
    session: AsyncSession,
    principal: Principal,
    *,
    name_template: str = DEFAULT_WORKSPACE_TEMPLATE,
) -> TenantContext:
    """Require an active membership and its tenant."""
    resolution = await resolve_tenancy(session, principal, name_template=name_template)
    membership, tenant = resolution.membership, resolution.tenant
    if membership.status != MembershipStatus.ACTIVE:
        logger.info(
            "tenant_scope_denied",
            user_id=principal.id,
            membership_id=membership.id,
            status=str(membership.status),
        )
        raise Forbidden("No active membership found")
    return TenantContext.build(principal, membership, tenant)
