"""Guard dependencies for authenticated and tenant-scoped requests.

``require_user`` is the authenticated guard, ``require_tenant`` the
tenant-scoped one. Routes take the context they return and never read raw
identity or a client-supplied tenant id. FastAPI caches dependencies per
request, so stacking them resolves identity and tenancy once.
"""

from __future__ import annotations

import structlog
from fastapi import Depends, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from leadhub.config.settings import get_settings
from leadhub.storage.database import get_session
from leadhub.tenancy.context import Principal, TenantContext
from leadhub.tenancy.guard import authenticate, scope_to_tenant
from leadhub.web.auth.identity import (
    Identity,
    IdentityProvider,
    credentials_from_request,
    resolve_identity,
)
from leadhub.web.dependencies import get_identity_provider


async def get_identity(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Identity | None:
    """Resolve the caller's identity; ``None`` means anonymous."""
    settings = get_settings()
    credentials = credentials_from_request(request, cookie_name=settings.clerk_session_cookie)
    return await resolve_identity(provider, credentials)


async def require_user(
    identity: Identity | None = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> Principal:
    """Authenticated guard."""
    principal = await authenticate(session, identity)
    structlog.contextvars.bind_contextvars(user_id=principal.id)
    return principal


async def require_tenant(
    user: Principal = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> TenantContext:
    """Tenant-scoped guard: active membership plus resolved tenant."""
    settings = get_settings()
    ctx = await scope_to_tenant(session, user, name_template=settings.workspace_name_template)
    structlog.contextvars.bind_contextvars(tenant_id=ctx.tenant_id, role=str(ctx.role))
    return ctx

