"""FastAPI dependency injection for sessions, the identity provider and services."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from leadhub.storage.database import get_session
from leadhub.tenancy.memberships import MembershipService
from leadhub.web.auth.clerk import ClerkIdentityProvider
from leadhub.web.auth.identity import IdentityProvider


@lru_cache
def get_identity_provider() -> IdentityProvider:
    """Return the process-wide identity provider."""
    return ClerkIdentityProvider()


def get_membership_service(
    session: AsyncSession = Depends(get_session),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> MembershipService:
    return MembershipService(session, identity_provider=provider)
