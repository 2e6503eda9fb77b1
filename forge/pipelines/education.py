"""Education entries of a user."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from forge import models
from forge.pipelines.normalization import normalize_whitespace, parse_partial_date

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("institution", "degree", "field_of_study", "start_date", "end_date", "description")


class EducationNotFoundError(Exception):
    """Raised when an education entry does not exist or belongs to another user."""
    pass


class EducationEntry(BaseModel):
    """Education as parsed from a resume."""
    institution: str = Field(description="School or university name")
    degree: str | None = Field(default=None, description="Degree or certificate, e.g. 'BSc'")
    field_of_study: str | None = Field(default=None, description="Major or field of study")
    start_date: date | None = Field(default=None, description="Start date, YYYY-MM or YYYY-MM-DD")
    end_date: date | None = Field(default=None, description="End or graduation date, YYYY-MM or YYYY-MM-DD")
    description: str | None = Field(default=None, description="Honors, thesis or other notes")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> date | None:
        try:
            return parse_partial_date(value)
        except ValueError:
            logger.warning(f"Ignoring unparseable date {value!r}")
            return None


def education_key(institution: str | None, degree: str | None) -> tuple[str, str]:
    """Identity of an education entry: institution and degree, case-insensitive."""
    return (
        normalize_whitespace(institution or "").lower(),
        normalize_whitespace(degree or "").lower(),
    )


async def list_education(session: AsyncSession, user_id: int) -> list[models.Education]:
    result = await session.execute(
        select(models.Education)
        .where(models.Education.user_id == user_id)
        .order_by(models.Education.end_date.desc().nulls_first(), models.Education.id.desc())
    )
    return list(result.scalars().all())


async def get_education(session: AsyncSession, user_id: int, education_id: int) -> models.Education:
    result = await session.execute(
        select(models.Education).where(
            models.Education.id == education_id,
            models.Education.user_id == user_id,
        )
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        raise EducationNotFoundError("Education entry not found or access denied")
    return entry


async def create_education(session: AsyncSession, user_id: int, **fields: Any) -> models.Education:
    entry = models.Education(user_id=user_id, **{k: v for k, v in fields.items() if k in _EDITABLE_FIELDS})
    session.add(entry)
    await session.commit()
    return entry


async def update_education(
    session: AsyncSession,
    user_id: int,
    education_id: int,
    **changes: Any,
) -> models.Education:
    entry = await get_education(session, user_id, education_id)
    for name in _EDITABLE_FIELDS:
        if name in changes:
            setattr(entry, name, changes[name])
    await session.commit()
    return entry


async def delete_education(session: AsyncSession, user_id: int, education_id: int) -> None:
    entry = await get_education(session, user_id, education_id)
    await session.delete(entry)
    await session.commit()


async def add_imported_education(
    session: AsyncSession,
    user_id: int,
    entries: Iterable[EducationEntry],
) -> tuple[int, int]:
    """Add parsed education entries the user does not have yet.

    Does not commit.

    Returns:
        Tuple of (added, skipped)
    """
    known = {education_key(e.institution, e.degree) for e in await list_education(session, user_id)}
    added = skipped = 0
    for entry in entries:
        key = education_key(entry.institution, entry.degree)
        if not key[0] or key in known:
            skipped += 1
            continue
        known.add(key)
        session.add(models.Education(user_id=user_id, **entry.model_dump()))
        added += 1
    await session.flush()
    return added, skipped
