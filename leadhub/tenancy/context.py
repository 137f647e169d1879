"""Immutable request contexts produced by the authorization guards."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from leadhub.types import Role

if TYPE_CHECKING:
    from leadhub.models.database import Membership, Tenant, User


@dataclass(frozen=True, slots=True)
class Principal:
    """The internal user behind an authenticated request."""

    id: str
    email: str
    name: str = ""
    external_id: str | None = None

    @classmethod
    def from_user(cls, user: User) -> Principal:
        return cls(id=user.id, email=user.email, name=user.name, external_id=user.external_id)

    @property
    def display_name(self) -> str:
        return self.name or self.email


@dataclass(frozen=True, slots=True)
class TenantContext:
    """Authorized context for tenant-scoped operations.

    Only the tenant-scoped guard builds one, from an active membership.
    """

    user: Principal
    membership_id: str
    role: Role
    tenant_id: str
    tenant_name: str
    tenant_slug: str

    @classmethod
    def build(cls, user: Principal, membership: Membership, tenant: Tenant) -> TenantContext:
        return cls(
            user=user,
            membership_id=membership.id,
            role=Role(membership.role),
            tenant_id=tenant.id,
            tenant_name=tenant.name,
            tenant_slug=tenant.slug,
        )

    @property
    def user_id(self) -> str:
        return self.user.id
