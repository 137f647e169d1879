"""Principal mapping: external identity to internal User, created on first sight."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy.exc import IntegrityError

from leadhub.exceptions import StorageError
from leadhub.models.database import User, _utc_now
from leadhub.storage.repositories.users import UserRepository, normalize_email

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = structlog.get_logger(__name__)


def default_name(email: str, hint: str | None = None) -> str:
    """Display name from the hint, else the email's local part."""
    if hint and hint.strip():
        return hint.strip()
    return email.split("@", 1)[0]


async def _lookup(repo: UserRepository, external_id: str | None, email: str) -> User | None:
    if external_id:
        user = await repo.get_by_external_id(external_id)
        if user is not None:
            return user
    return await repo.get_by_email(email)


async def _link(session: AsyncSession, user: User, external_id: str | None) -> User:
    """Backfill or relink the external id on a user found by email."""
    if not external_id or user.external_id == external_id:
        return user
    if user.external_id is not None:
        logger.warning(
            "user_external_id_relinked",
            user_id=user.id,
            old_external_id=user.external_id,
            new_external_id=external_id,
        )
    user.external_id = external_id
    user.updated_at = _utc_now()
    session.add(user)
    await session.commit()
    logger.info("user_external_id_backfilled", user_id=user.id, external_id=external_id)
    return user


async def resolve_user(
    session: AsyncSession,
    external_id: str | None,
    email: str,
    name_hint: str | None = None,
) -> User:
    """Find or create the User for an identity.

    Lookup order is external id, then email. A concurrent caller that wins
    the insert race trips the unique constraint on email or external id;
    the loser rolls back and re-reads the row the winner created.
    """
    email = normalize_email(email)
    repo = UserRepository(session)

    user = await _lookup(repo, external_id, email)
    if user is not None:
        return await _link(session, user, external_id)

    try:
        user = await repo.add(
            User(external_id=external_id, email=email, name=default_name(email, name_hint))
        )
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.info("user_create_race_lost", email=email)
        user = await _lookup(repo, external_id, email)
        if user is None:
            msg = f"Could not create or find user for {email}"
            raise StorageError(msg) from None
        return await _link(session, user, external_id)

    logger.info("user_created", user_id=user.id, email=email, external_id=external_id)
    return user
