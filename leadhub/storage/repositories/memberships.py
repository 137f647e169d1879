"""Membership repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlmodel import col, select

from leadhub.models.database import Membership, Tenant, User
from leadhub.types import MembershipStatus, Role

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession


class MembershipRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, membership_id: str, *, refresh: bool = False) -> Membership | None:
        """Fetch by id; ``refresh`` re-reads the row instead of trusting the identity map."""
        if refresh:
            return await self._session.get(Membership, membership_id, populate_existing=True)
        return await self._session.get(Membership, membership_id)

    async def get_for(self, user_id: str, tenant_id: str) -> Membership | None:
        stmt = select(Membership).where(
            col(Membership.user_id) == user_id,
            col(Membership.tenant_id) == tenant_id,
        )
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def find_primary(self, user_id: str) -> Membership | None:
        """Return the membership that should scope the user's requests.

        Active memberships win over any other status; among equals the
        oldest wins, regardless of later edits to either row.
        """
        stmt = (
            select(Membership)
            .where(col(Membership.user_id) == user_id)
            .order_by(
                (col(Membership.status) == MembershipStatus.ACTIVE).desc(),
                col(Membership.created_at),
                col(Membership.id),
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def list_for_tenant(self, tenant_id: str) -> list[tuple[Membership, User]]:
        stmt = (
            select(Membership, User)
            .join(User, col(User.id) == col(Membership.user_id))
            .where(col(Membership.tenant_id) == tenant_id)
            .order_by(col(Membership.created_at).desc())
        )
        result = await self._session.execute(stmt)
        return [(m, u) for m, u in result.all()]

    async def list_pending_for_user(self, user_id: str) -> list[tuple[Membership, Tenant]]:
        stmt = (
            select(Membership, Tenant)
            .join(Tenant, col(Tenant.id) == col(Membership.tenant_id))
            .where(
                col(Membership.user_id) == user_id,
                col(Membership.status) == MembershipStatus.PENDING,
            )
            .order_by(col(Membership.created_at).desc())
        )
        result = await self._session.execute(stmt)
        return [(m, t) for m, t in result.all()]

    async def count_active_owners(self, tenant_id: str, *, excluding: str | None = None) -> int:
        stmt = select(func.count()).select_from(Membership).where(
            col(Membership.tenant_id) == tenant_id,
            col(Membership.role) == Role.OWNER,
            col(Membership.status) == MembershipStatus.ACTIVE,
        )
        if excluding is not None:
            stmt = stmt.where(col(Membership.id) != excluding)
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def count_for_user(self, user_id: str) -> int:
        stmt = select(func.count()).select_from(Membership).where(
            col(Membership.user_id) == user_id
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def add(self, membership: Membership) -> Membership:
        self._session.add(membership)
        await self._session.flush()
        return membership

    async def delete(self, membership: Membership) -> None:
        await self._session.delete(membership)
        await self._session.flush()
