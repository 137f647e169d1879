"""Tenant repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlmodel import col, select

from leadhub.models.database import Tenant

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession


class TenantRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, tenant_id: str) -> Tenant | None:
        return await self._session.get(Tenant, tenant_id)

    async def lock(self, tenant_id: str) -> Tenant | None:
        """Take a row lock on the tenant for the rest of the transaction.

        Membership mutations serialize on this lock so owner counts and
        actor roles read afterwards cannot change before commit.
        """
        stmt = select(Tenant).where(col(Tenant.id) == tenant_id).with_for_update()
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def add(self, tenant: Tenant) -> Tenant:
        self._session.add(tenant)
        await self._session.flush()
        return tenant
