"""User repository: SQLModel queries bound to a caller-owned session."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlmodel import col, select

from leadhub.models.database import User

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = structlog.get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository:
    """Reads and writes User rows inside the caller's transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> User | None:
        return await self._session.get(User, user_id)

    async def get_by_external_id(self, external_id: str) -> User | None:
        stmt = select(User).where(col(User.external_id) == external_id)
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(col(User.email) == normalize_email(email))
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def add(self, user: User) -> User:
        """Stage a new user and flush so unique constraints fire immediately."""
        user.email = normalize_email(user.email)
        self._session.add(user)
        await self._session.flush()
        return user

    async def delete(self, user: User) -> None:
        await self._session.delete(user)
        await self._session.flush()
        logger.info("user_deleted", user_id=user.id)
