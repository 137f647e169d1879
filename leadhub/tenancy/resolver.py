"""Tenancy resolution: find the user's membership or provision a workspace.

``resolve_tenancy`` has two named outcomes so callers and tests can tell
which branch fired:

* ``Found``: the user already holds a membership. Active memberships are
  preferred; a pending or suspended one is still returned so the guard can
  refuse it instead of provisioning a second workspace next to an invite.
* ``Provisioned``: the user held no membership at all, so a Tenant and an
  active OWNER Membership were created in one transaction.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from sqlalchemy.exc import IntegrityError

from leadhub.exceptions import StorageError
from leadhub.models.database import Membership, Tenant
from leadhub.storage.repositories.memberships import MembershipRepository
from leadhub.storage.repositories.tenants import TenantRepository
from leadhub.types import MembershipStatus, Role

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from leadhub.tenancy.context import Principal

logger = structlog.get_logger(__name__)

DEFAULT_WORKSPACE_TEMPLATE = "{name}'s Workspace"


@dataclass(frozen=True, slots=True)
class Found:
    membership: Membership
    tenant: Tenant


@dataclass(frozen=True, slots=True)
class Provisioned:
    membership: Membership
    tenant: Tenant


TenancyResolution = Found | Provisioned


def _slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug[:40] or "workspace"


def generate_slug(name: str) -> str:
    """Unique-by-construction slug: readable prefix plus a random token."""
    return f"{_slugify(name)}-{secrets.token_hex(4)}"


async def _find(session: AsyncSession, user_id: str) -> Found | None:
    membership = await MembershipRepository(session).find_primary(user_id)
    if membership is None:
        return None
    tenant = await TenantRepository(session).get(membership.tenant_id)
    if tenant is None:
        msg = f"Membership {membership.id} references missing tenant {membership.tenant_id}"
        raise StorageError(msg)
    return Found(membership=membership, tenant=tenant)


async def resolve_tenancy(
    session: AsyncSession,
    user: Principal,
    *,
    name_template: str = DEFAULT_WORKSPACE_TEMPLATE,
) -> TenancyResolution:
    """Return the user's membership, provisioning a workspace on first login."""
    found = await _find(session, user.id)
    if found is not None:
        return found

    tenant_name = name_template.format(name=user.display_name)
    try:
        tenant = await TenantRepository(session).add(
            Tenant(
                name=tenant_name,
                slug=generate_slug(user.display_name),
                provisioned_for_id=user.id,
            )
        )
        membership = await MembershipRepository(session).add(
            Membership(
                user_id=user.id,
                tenant_id=tenant.id,
                role=Role.OWNER,
                status=MembershipStatus.ACTIVE,
            )
        )
        await session.commit()
    except IntegrityError:
        # A concurrent first login for the same user provisioned first.
        await session.rollback()
        logger.info("tenant_provision_race_lost", user_id=user.id)
        found = await _find(session, user.id)
        if found is None:
            msg = f"Tenant provisioning failed for user {user.id}"
            raise StorageError(msg) from None
        return found

    logger.info(
        "tenant_provisioned",
        user_id=user.id,
        tenant_id=tenant.id,
        tenant_slug=tenant.slug,
        membership_id=membership.id,
    )
    return Provisioned(membership=membership, tenant=tenant)
