"""Ownership-checked loaders shared by the work-history pipelines."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from forge import models


class WorkHistoryError(Exception):
    """Raised when a work-history operation fails."""
    pass


class WorkHistoryNotFoundError(WorkHistoryError):
    """Raised when a record does not exist or belongs to another user."""
    pass


class WorkHistoryValidationError(WorkHistoryError):
    """Raised when a request on work history records is invalid."""
    pass


async def get_owned_work_history(
    session: AsyncSession,
    user_id: int,
    work_history_id: int,
    *,
    with_children: bool = False,
) -> models.WorkHistory:
    """Load a work history record owned by ``user_id``.

    Raises:
        WorkHistoryNotFoundError: If missing or owned by someone else
    """
    query = select(models.WorkHistory).where(
        models.WorkHistory.id == work_history_id,
        models.WorkHistory.user_id == user_id,
    )
    if with_children:
        query = query.options(
            selectinload(models.WorkHistory.achievements),
            selectinload(models.WorkHistory.user_skills).selectinload(models.UserSkill.skill),
        ).execution_options(populate_existing=True)
    result = await session.execute(query)
    record = result.scalar_one_or_none()
    if record is None:
        raise WorkHistoryNotFoundError("Work history not found or access denied")
    return record


async def load_achievements(session: AsyncSession, work_history_id: int) -> list[models.WorkAchievement]:
    """Achievements of a record in chronological order."""
    result = await session.execute(
        select(models.WorkAchievement)
        .where(models.WorkAchievement.work_history_id == work_history_id)
        .order_by(models.WorkAchievement.created_at, models.WorkAchievement.id)
    )
    return list(result.scalars().all())
