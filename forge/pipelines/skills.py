"""User skill management on top of the taxonomy normalizer.

Resolves normalized skill names to shared ``Skill`` rows and keeps one
``UserSkill`` per (user, skill), linking it to the position where it was used.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from assist.skills import DEFAULT_CATEGORY, NormalizedSkill, SkillNormalizer
from forge import models
from forge.models import Proficiency, SkillSource
from forge.pipelines.access import get_owned_work_history

logger = logging.getLogger(__name__)

USED_AT_MARKER = "Used at"


class SkillError(Exception):
    """Raised when a skill operation is invalid."""
    pass


class SkillNotFoundError(SkillError):
    """Raised when a user skill does not exist or belongs to another user."""
    pass


@dataclass
class ResolvedSkill:
    """A normalized skill bound to its database row."""
    skill: models.Skill
    detailed_variant: str | None = None

    @property
    def base_skill_id(self) -> int:
        return self.skill.id


@dataclass
class RemoveSkillResult:
    success: bool
    deleted: bool
    skill_name: str
    user_skill: models.UserSkill | None = None


class SkillNormalizationService:
    """Maps free-form skill names to shared ``Skill`` rows.

    Missing base skills are created, and the raw spelling is recorded as an
    alias so later lookups resolve without the taxonomy.
    """

    def __init__(self, session: AsyncSession, normalizer: SkillNormalizer | None = None) -> None:
        self.session = session
        self.normalizer = normalizer or SkillNormalizer()

    async def _find_skill(self, name: str) -> models.Skill | None:
        lowered = name.strip().lower()
        result = await self.session.execute(
            select(models.Skill)
            .outerjoin(models.SkillAlias)
            .where(
                or_(
                    func.lower(models.Skill.name) == lowered,
                    models.SkillAlias.alias == lowered,
                )
            )
            .limit(1)
        )
        return result.scalars().first()

    async def _get_or_create(self, normalized: NormalizedSkill) -> models.Skill:
        skill = await self._find_skill(normalized.base_name)
        if skill is None and normalized.raw_text:
            skill = await self._find_skill(normalized.raw_text)
        if skill is None:
            skill = models.Skill(name=normalized.base_name, category=normalized.category)
            self.session.add(skill)
            await self.session.flush()
            logger.debug(f"Created base skill {skill.name!r} ({skill.category})")

        alias = (normalized.raw_text or "").strip().lower()
        if alias and alias != skill.name.lower():
            existing = await self.session.execute(
                select(models.SkillAlias.id).where(models.SkillAlias.alias == alias)
            )
            if existing.first() is None:
                self.session.add(models.SkillAlias(skill_id=skill.id, alias=alias))
                await self.session.flush()
        return skill

    async def normalize_skill(self, name: str, category: str = DEFAULT_CATEGORY) -> list[ResolvedSkill]:
        """Resolve one (possibly compound) skill name to base skills."""
        resolved = []
        for normalized in self.normalizer.normalize(name, category):
            skill = await self._get_or_create(normalized)
            resolved.append(ResolvedSkill(skill=skill, detailed_variant=normalized.detailed_variant))
        return resolved

    async def normalize_skills(self, names: list[str], category: str = DEFAULT_CATEGORY) -> list[ResolvedSkill]:
        """Resolve several names, one entry per distinct base skill."""
        resolved: list[ResolvedSkill] = []
        seen: set[int] = set()
        for normalized in self.normalizer.normalize_many(names, category):
            skill = await self._get_or_create(normalized)
            if skill.id in seen:
                continue
            seen.add(skill.id)
            resolved.append(ResolvedSkill(skill=skill, detailed_variant=normalized.detailed_variant))
        return resolved


async def get_user_skill(
    session: AsyncSession,
    user_id: int,
    skill_id: int,
) -> models.UserSkill | None:
    result = await session.execute(
        select(models.UserSkill)
        .options(selectinload(models.UserSkill.skill))
        .where(models.UserSkill.user_id == user_id, models.UserSkill.skill_id == skill_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _merge_into_existing(
    user_skill: models.UserSkill,
    *,
    work_history_id: int,
    proficiency: Proficiency,
    years_experience: float | None,
    notes: str | None,
) -> None:
    current = Proficiency(user_skill.proficiency)
    if proficiency.rank > current.rank:
        user_skill.proficiency = proficiency.value
    if years_experience is not None:
        user_skill.years_experience = max(years_experience, user_skill.years_experience or 0)
    if notes:
        user_skill.notes = f"{user_skill.notes}; {notes}" if user_skill.notes else notes
    user_skill.work_history_id = work_history_id
    user_skill.source = SkillSource.WORK_EXPERIENCE.value


async def add_user_skill_to_work(
    session: AsyncSession,
    user_id: int,
    work_history_id: int,
    skill_name: str,
    *,
    proficiency: Proficiency | None = None,
    years_experience: float | None = None,
    notes: str | None = None,
) -> models.UserSkill:
    """Attach a skill to a position, merging with the user's existing skill.

    Compound names ("React/Next.js") are rejected; add them one by one.

    Raises:
        SkillError: If the name is compound or empty
        WorkHistoryNotFoundError: If the position is not owned by the user
    """
    await get_owned_work_history(session, user_id, work_history_id)
    proficiency = proficiency or Proficiency.INTERMEDIATE

    service = SkillNormalizationService(session)
    normalized = await service.normalize_skill(skill_name)
    if len(normalized) > 1:
        await session.rollback()
        raise SkillError("Please add compound skills (like 'React/Next.js') as separate skills")
    if not normalized:
        await session.rollback()
        raise SkillError("Failed to normalize skill")

    base = normalized[0]
    logger.info(
        f"Adding skill {skill_name!r} (base {base.skill.name!r}) to work history "
        f"{work_history_id} for user {user_id}"
    )

    user_skill = await get_user_skill(session, user_id, base.base_skill_id)
    if user_skill is not None:
        _merge_into_existing(
            user_skill,
            work_history_id=work_history_id,
            proficiency=proficiency,
            years_experience=years_experience,
            notes=notes,
        )
        await session.commit()
        return user_skill

    user_skill = models.UserSkill(
        user_id=user_id,
        skill_id=base.base_skill_id,
        proficiency=proficiency.value,
        years_experience=years_experience,
        source=SkillSource.WORK_EXPERIENCE.value,
        notes=notes,
        work_history_id=work_history_id,
    )
    user_skill.skill = base.skill
    session.add(user_skill)
    try:
        await session.commit()
    except IntegrityError:
        # Another request created the same (user, skill) first
        await session.rollback()
        logger.warning(f"UserSkill race for user {user_id} skill {base.base_skill_id}, merging instead")
        existing = await get_user_skill(session, user_id, base.base_skill_id)
        if existing is None:
            raise
        _merge_into_existing(
            existing,
            work_history_id=work_history_id,
            proficiency=proficiency,
            years_experience=years_experience,
            notes=notes,
        )
        await session.commit()
        return existing

    return user_skill


async def remove_user_skill_from_work(
    session: AsyncSession,
    user_id: int,
    user_skill_id: int,
    work_history_id: int,
) -> RemoveSkillResult:
    """Detach a skill from a position.

    The skill stays in the user's profile (unlinked) when it came from another
    source, carries custom notes or has years of experience; otherwise it is
    deleted entirely.

    Raises:
        SkillNotFoundError: If the skill is not the user's
        SkillError: If it is not linked to ``work_history_id``
    """
    result = await session.execute(
        select(models.UserSkill)
        .options(selectinload(models.UserSkill.skill))
        .where(models.UserSkill.id == user_skill_id, models.UserSkill.user_id == user_id)
    )
    user_skill = result.scalar_one_or_none()
    if user_skill is None:
        raise SkillNotFoundError("Skill not found or doesn't belong to you")
    if user_skill.work_history_id != work_history_id:
        raise SkillError("This skill is not associated with the specified work history")

    skill_name = user_skill.skill.name
    from_other_source = user_skill.source != SkillSource.WORK_EXPERIENCE.value
    has_custom_notes = bool(user_skill.notes and USED_AT_MARKER not in user_skill.notes)
    has_years = user_skill.years_experience is not None

    if from_other_source or has_custom_notes or has_years:
        logger.info(f"Keeping skill {skill_name!r} in profile but unlinking from work history {work_history_id}")
        user_skill.work_history_id = None
        user_skill.notes = (
            f"{user_skill.notes} (previously linked to work experience)"
            if user_skill.notes
            else "Previously linked to work experience"
        )
        await session.commit()
        return RemoveSkillResult(success=True, deleted=False, skill_name=skill_name, user_skill=user_skill)

    logger.info(f"Deleting skill {skill_name!r} from user {user_id} profile entirely")
    await session.delete(user_skill)
    await session.commit()
    return RemoveSkillResult(success=True, deleted=True, skill_name=skill_name)


async def list_user_skills_for_work(
    session: AsyncSession,
    user_id: int,
    work_history_id: int,
) -> list[models.UserSkill]:
    result = await session.execute(
        select(models.UserSkill)
        .options(selectinload(models.UserSkill.skill))
        .where(
            models.UserSkill.user_id == user_id,
            models.UserSkill.work_history_id == work_history_id,
        )
        .order_by(models.UserSkill.created_at, models.UserSkill.id)
    )
    return list(result.scalars().all())


async def list_user_skills(session: AsyncSession, user_id: int) -> list[models.UserSkill]:
    result = await session.execute(
        select(models.UserSkill)
        .options(selectinload(models.UserSkill.skill))
        .where(models.UserSkill.user_id == user_id)
        .order_by(models.UserSkill.created_at, models.UserSkill.id)
    )
    return list(result.scalars().all())
