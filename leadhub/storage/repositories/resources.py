"""Tenant-scoped repository shared by the lead, deal, task and campaign routes."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog
from sqlalchemy import or_
from sqlmodel import SQLModel, col, select

from leadhub.models.database import _utc_now

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)


class TenantScopedRepository(Generic[ModelT]):
    """CRUD for one resource table, always filtered by ``tenant_id``.

    ``owner_id`` narrows listings to the rows owned by one user; callers
    pass it for plain USER members.
    """

    def __init__(self, session: AsyncSession, model: type[ModelT], owner_field: str) -> None:
        self._session = session
        self._model = model
        self._owner_field = owner_field

    async def get(self, tenant_id: str, resource_id: str) -> ModelT | None:
        model: Any = self._model
        stmt = select(self._model).where(
            col(model.id) == resource_id,
            col(model.tenant_id) == tenant_id,
        )
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def list_all(
        self,
        tenant_id: str,
        *,
        owner_id: str | None = None,
        filters: dict[str, Any] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ModelT]:
        model: Any = self._model
        stmt = select(self._model).where(col(model.tenant_id) == tenant_id)
        if owner_id is not None:
            stmt = stmt.where(col(getattr(model, self._owner_field)) == owner_id)
        for field, value in (filters or {}).items():
            if value is not None:
                stmt = stmt.where(col(getattr(model, field)) == value)
        stmt = stmt.order_by(col(model.created_at).desc()).limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def search(
        self,
        tenant_id: str,
        query: str,
        fields: Sequence[str],
        *,
        owner_id: str | None = None,
        limit: int = 20,
    ) -> list[ModelT]:
        """Case-insensitive substring match on any of ``fields``, newest first."""
        model: Any = self._model
        matches = [
            col(getattr(model, field)).icontains(query, autoescape=True) for field in fields
        ]
        stmt = select(self._model).where(col(model.tenant_id) == tenant_id, or_(*matches))
        if owner_id is not None:
            stmt = stmt.where(col(getattr(model, self._owner_field)) == owner_id)
        stmt = stmt.order_by(col(model.created_at).desc()).limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def add(self, resource: ModelT) -> ModelT:
        self._session.add(resource)
        await self._session.flush()
        logger.info(
            "resource_created",
            resource_type=self._model.__name__.lower(),
            resource_id=getattr(resource, "id", None),
        )
        return resource

    async def update(self, resource: ModelT, updates: dict[str, Any]) -> ModelT:
        for field, value in updates.items():
            setattr(resource, field, value)
        if hasattr(resource, "updated_at"):
            resource.updated_at = _utc_now()  # type: ignore[attr-defined]
        self._session.add(resource)
        await self._session.flush()
        return resource

    async def delete(self, resource: ModelT) -> None:
        await self._session.delete(resource)
        await self._session.flush()
        logger.info(
            "resource_deleted",
            resource_type=self._model.__name__.lower(),
            resource_id=getattr(resource, "id", None),
        )
