"""Work history matching, import and maintenance.

Incoming resume entries are matched against stored positions by fuzzy company
name plus start/end month. Matched positions absorb only the achievements that
are new; everything else becomes a new record. Skills mentioned for a position
are normalized and linked to it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

from pydantic import BaseModel, Field, field_validator
from rapidfuzz.distance import Levenshtein
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from assist.llm import LLMClient
from forge import models
from forge.config import settings
from forge.models import Proficiency, SkillSource
from forge.pipelines.access import (
    WorkHistoryError,
    WorkHistoryNotFoundError,
    WorkHistoryValidationError,
    get_owned_work_history,
    load_achievements,
)
from forge.pipelines.achievements import merge_imported_achievements
from forge.pipelines.normalization import company_key, month_index, parse_partial_date
from forge.pipelines.skills import SkillNormalizationService, get_user_skill

logger = logging.getLogger(__name__)

__all__ = [
    "WorkHistoryError",
    "WorkHistoryNotFoundError",
    "WorkHistoryValidationError",
    "WorkExperienceEntry",
    "WorkImportSummary",
    "MergeRecordsResult",
    "do_work_history_records_match",
    "process_work_experience",
    "list_work_history",
    "create_work_history",
    "update_work_history",
    "delete_work_history",
    "list_achievements",
    "create_achievement",
    "update_achievement",
    "delete_achievement",
    "merge_work_history_records",
]

_EDITABLE_FIELDS = ("company_name", "job_title", "start_date", "end_date")


class WorkExperienceEntry(BaseModel):
    """One position as parsed from a resume."""
    company: str | None = Field(default=None, description="Employer name")
    job_title: str | None = Field(default=None, description="Position title")
    start_date: date | None = Field(default=None, description="Start date, YYYY-MM or YYYY-MM-DD")
    end_date: date | None = Field(default=None, description="End date, YYYY-MM or YYYY-MM-DD; null if current")
    achievements: list[str] = Field(default_factory=list, description="Achievement bullets, verbatim")
    skills: list[str] = Field(default_factory=list, description="Skills used in this position")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> date | None:
        try:
            return parse_partial_date(value)
        except ValueError:
            logger.warning(f"Ignoring unparseable date {value!r}")
            return None

    @field_validator("achievements", "skills", mode="before")
    @classmethod
    def _strings_only(cls, value: Any) -> list[str]:
        if not value:
            return []
        # A lone string is one item, not a sequence of characters
        if isinstance(value, str):
            return [value] if value.strip() else []
        if not isinstance(value, (list, tuple)):
            raise ValueError("expected a list of strings")
        return [item for item in value if isinstance(item, str) and item.strip()]


class _Dated(Protocol):
    start_date: date | None
    end_date: date | None


@dataclass
class WorkImportSummary:
    records_created: int = 0
    records_updated: int = 0
    achievements_added: int = 0
    skills_linked: int = 0


@dataclass
class MergeRecordsResult:
    success: bool
    message: str
    merged_record: models.WorkHistory | None = None


def _company_of(record: Any) -> str | None:
    # Stored records carry company_name, parsed entries carry company
    name = getattr(record, "company_name", None)
    return name if name is not None else getattr(record, "company", None)


def do_work_history_records_match(existing: _Dated, incoming: _Dated) -> bool:
    """Whether a parsed entry describes the same position as a stored record.

    Company names are compared without case or whitespace and may differ by a
    few edits. Start months must be equal; end months must be equal, or both
    positions must be current.
    """
    if incoming.start_date is None or existing.start_date is None:
        return False

    distance = Levenshtein.distance(company_key(_company_of(existing)), company_key(_company_of(incoming)))
    if distance > settings.matching.company_max_distance:
        return False

    if month_index(existing.start_date) != month_index(incoming.start_date):
        return False

    if existing.end_date is None and incoming.end_date is None:
        return True
    if existing.end_date is None or incoming.end_date is None:
        return False
    return month_index(existing.end_date) == month_index(incoming.end_date)


async def _load_records(session: AsyncSession, user_id: int) -> list[models.WorkHistory]:
    result = await session.execute(
        select(models.WorkHistory)
        .options(
            selectinload(models.WorkHistory.achievements),
            selectinload(models.WorkHistory.user_skills).selectinload(models.UserSkill.skill),
        )
        .where(models.WorkHistory.user_id == user_id)
        .order_by(models.WorkHistory.start_date.desc(), models.WorkHistory.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _link_skills(
    session: AsyncSession,
    service: SkillNormalizationService,
    user_id: int,
    record: models.WorkHistory,
    entry: WorkExperienceEntry,
) -> int:
    """Normalize the entry's skills and attach them to ``record``."""
    linked = 0
    note = f"Used at {entry.company or ''} - {entry.job_title or ''}"
    for resolved in await service.normalize_skills(entry.skills):
        user_skill = await get_user_skill(session, user_id, resolved.base_skill_id)
        if user_skill is not None:
            if user_skill.work_history_id is None:
                user_skill.work_history_id = record.id
                user_skill.notes = note
                linked += 1
            continue

        session.add(models.UserSkill(
            user_id=user_id,
            skill_id=resolved.base_skill_id,
            proficiency=Proficiency.INTERMEDIATE.value,
            source=SkillSource.WORK_EXPERIENCE.value,
            notes=f"{note} ({resolved.detailed_variant})" if resolved.detailed_variant else note,
            work_history_id=record.id,
        ))
        await session.flush()
        linked += 1
    return linked


async def process_work_experience(
    session: AsyncSession,
    user_id: int,
    entries: list[WorkExperienceEntry],
    *,
    llm: LLMClient | None = None,
    commit: bool = True,
) -> WorkImportSummary:
    """Merge parsed work experience into the user's stored work history.

    Args:
        session: Database session
        user_id: Owner of the records
        entries: Parsed positions, in resume order
        llm: Client used to judge imported achievements against stored ones
        commit: Commit when done; callers running a larger import pass False

    Returns:
        WorkImportSummary with created/updated counts

    Raises:
        WorkHistoryError: If persisting fails (the session is rolled back)
    """
    summary = WorkImportSummary()
    try:
        records = await _load_records(session, user_id)
        service = SkillNormalizationService(session)

        for entry in entries:
            match = next((r for r in records if do_work_history_records_match(r, entry)), None)

            if match is not None:
                logger.info(f"Entry {entry.company!r} matches work history {match.id}")
                stored = [a.description for a in match.achievements]
                new_bullets = await merge_imported_achievements(stored, entry.achievements, llm=llm)
                if entry.job_title:
                    match.job_title = entry.job_title
                if entry.start_date:
                    match.start_date = entry.start_date
                if entry.end_date:
                    match.end_date = entry.end_date
                for description in new_bullets:
                    match.achievements.append(models.WorkAchievement(description=description))
                await session.flush()
                record = match
                summary.records_updated += 1
                summary.achievements_added += len(new_bullets)
            else:
                record = models.WorkHistory(
                    user_id=user_id,
                    company_name=entry.company or "",
                    job_title=entry.job_title or "",
                    start_date=entry.start_date or date.today(),
                    end_date=entry.end_date,
                    achievements=[models.WorkAchievement(description=d) for d in entry.achievements],
                    user_skills=[],
                )
                session.add(record)
                await session.flush()
                # Later entries of the same resume may match this record
                records.append(record)
                summary.records_created += 1
                summary.achievements_added += len(entry.achievements)
                logger.info(f"Created work history {record.id} for {record.company_name!r}")

            summary.skills_linked += await _link_skills(session, service, user_id, record, entry)

        if commit:
            await session.commit()
        else:
            await session.flush()
    except Exception as e:
        await session.rollback()
        logger.error(f"Work experience import failed for user {user_id}: {e}", exc_info=True)
        raise WorkHistoryError(f"Failed to process work experience: {e}") from e

    logger.info(
        f"Work experience import for user {user_id}: {summary.records_created} created, "
        f"{summary.records_updated} updated, {summary.achievements_added} achievements added"
    )
    return summary


async def list_work_history(session: AsyncSession, user_id: int) -> list[models.WorkHistory]:
    """All positions of a user with achievements and skills, newest first."""
    return await _load_records(session, user_id)


async def get_work_history(session: AsyncSession, user_id: int, work_history_id: int) -> models.WorkHistory:
    return await get_owned_work_history(session, user_id, work_history_id, with_children=True)


async def create_work_history(
    session: AsyncSession,
    user_id: int,
    *,
    company_name: str,
    job_title: str,
    start_date: date,
    end_date: date | None = None,
    achievements: list[str] | None = None,
) -> models.WorkHistory:
    record = models.WorkHistory(
        user_id=user_id,
        company_name=company_name,
        job_title=job_title,
        start_date=start_date,
        end_date=end_date,
        achievements=[models.WorkAchievement(description=d) for d in achievements or [] if d.strip()],
    )
    session.add(record)
    await session.commit()
    logger.info(f"Created work history {record.id} for user {user_id}")
    return await get_work_history(session, user_id, record.id)


async def update_work_history(
    session: AsyncSession,
    user_id: int,
    work_history_id: int,
    **changes: Any,
) -> models.WorkHistory:
    """Partially update a position; only known fields are applied."""
    record = await get_owned_work_history(session, user_id, work_history_id)
    for name in _EDITABLE_FIELDS:
        if name in changes:
            setattr(record, name, changes[name])
    await session.commit()
    return await get_work_history(session, user_id, work_history_id)


async def delete_work_history(session: AsyncSession, user_id: int, work_history_id: int) -> None:
    record = await get_owned_work_history(session, user_id, work_history_id, with_children=True)
    await session.delete(record)
    await session.commit()
    logger.info(f"Deleted work history {work_history_id} for user {user_id}")


async def list_achievements(
    session: AsyncSession,
    user_id: int,
    work_history_id: int,
) -> list[models.WorkAchievement]:
    await get_owned_work_history(session, user_id, work_history_id)
    return await load_achievements(session, work_history_id)


async def create_achievement(
    session: AsyncSession,
    user_id: int,
    work_history_id: int,
    description: str,
) -> models.WorkAchievement:
    await get_owned_work_history(session, user_id, work_history_id)
    achievement = models.WorkAchievement(work_history_id=work_history_id, description=description.strip())
    session.add(achievement)
    await session.commit()
    return achievement


async def _get_owned_achievement(
    session: AsyncSession,
    user_id: int,
    achievement_id: int,
) -> models.WorkAchievement:
    result = await session.execute(
        select(models.WorkAchievement)
        .join(models.WorkHistory)
        .where(models.WorkAchievement.id == achievement_id, models.WorkHistory.user_id == user_id)
    )
    achievement = result.scalar_one_or_none()
    if achievement is None:
        raise WorkHistoryNotFoundError("Achievement not found or access denied")
    return achievement


async def update_achievement(
    session: AsyncSession,
    user_id: int,
    achievement_id: int,
    description: str,
) -> models.WorkAchievement:
    achievement = await _get_owned_achievement(session, user_id, achievement_id)
    achievement.description = description.strip()
    await session.commit()
    return achievement


async def delete_achievement(session: AsyncSession, user_id: int, achievement_id: int) -> None:
    achievement = await _get_owned_achievement(session, user_id, achievement_id)
    await session.delete(achievement)
    await session.commit()


async def merge_work_history_records(
    session: AsyncSession,
    user_id: int,
    primary_id: int,
    secondary_ids: list[int],
    merged_details: dict[str, Any],
) -> MergeRecordsResult:
    """Fold several positions into one.

    The primary record takes ``merged_details``; achievements of the secondary
    records are copied over unless the primary already has the same text;
    their skills move to the primary.
    Secondary records are then deleted, all in one commit.

    Raises:
        WorkHistoryNotFoundError: If any record is missing or not the user's
        WorkHistoryValidationError: If the ids are invalid
        WorkHistoryError: If the merge fails
    """
    secondary_ids = list(dict.fromkeys(secondary_ids))
    if not secondary_ids:
        raise WorkHistoryValidationError("At least one record to merge is required")
    if primary_id in secondary_ids:
        raise WorkHistoryValidationError("A record cannot be merged into itself")

    primary = await get_owned_work_history(session, user_id, primary_id, with_children=True)
    secondaries = [
        await get_owned_work_history(session, user_id, sid, with_children=True)
        for sid in secondary_ids
    ]

    try:
        for name in _EDITABLE_FIELDS:
            # A null end date means the merged position is current
            if name in merged_details and (merged_details[name] is not None or name == "end_date"):
                setattr(primary, name, merged_details[name])

        known = {a.description for a in primary.achievements}
        for secondary in secondaries:
            for achievement in secondary.achievements:
                if achievement.description in known:
                    continue
                known.add(achievement.description)
                primary.achievements.append(models.WorkAchievement(description=achievement.description))

            for user_skill in list(secondary.user_skills):
                user_skill.work_history = primary

            await session.delete(secondary)

        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(f"Merging work history into {primary_id} failed: {e}", exc_info=True)
        raise WorkHistoryError(f"Failed to merge work history records: {e}") from e

    logger.info(f"Merged work history {secondary_ids} into {primary_id} for user {user_id}")
    merged = await get_work_history(session, user_id, primary_id)
    return MergeRecordsResult(
        success=True,
        message=f"Successfully merged {len(secondaries)} records into one",
        merged_record=merged,
    )
