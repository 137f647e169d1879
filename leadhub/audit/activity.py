"""Activity audit trail.

Every successful membership mutation appends one ``system`` Activity row in
the same transaction as the change it describes, so the record commits or
rolls back together with it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from leadhub.models.database import Activity
from leadhub.types import ActivityType

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = structlog.get_logger(__name__)

_MAX_DESCRIPTION = 2000


async def record_activity(
    session: AsyncSession,
    *,
    tenant_id: str,
    user_id: str,
    title: str,
    description: str = "",
    type: ActivityType = ActivityType.SYSTEM,  # noqa: A002
    lead_id: str | None = None,
    deal_id: str | None = None,
) -> Activity:
    """Stage an Activity row in the caller's transaction."""
    activity = Activity(
        tenant_id=tenant_id,
        user_id=user_id,
        type=type,
        title=title,
        description=description[:_MAX_DESCRIPTION],
        lead_id=lead_id,
        deal_id=deal_id,
    )
    session.add(activity)
    await session.flush()
    logger.info("activity_recorded", tenant_id=tenant_id, user_id=user_id, title=title)
    return activity
