import pytest

from forge import models
from forge.models import Proficiency
from forge.pipelines.access import WorkHistoryNotFoundError
from forge.pipelines.skills import (
    SkillError,
    SkillNormalizationService,
    SkillNotFoundError,
    add_user_skill_to_work,
    list_user_skills,
    list_user_skills_for_work,
    remove_user_skill_from_work,
)


async def test_service_creates_skill_once_and_records_alias(session):
    service = SkillNormalizationService(session)

    [first] = await service.normalize_skill("k8s")
    [second] = await service.normalize_skill("Kubernetes")

    assert first.skill.id == second.skill.id
    assert first.skill.name == "Kubernetes"
    alias = await session.get(models.SkillAlias, 1)
    assert alias.alias == "k8s"


async def test_add_skill_links_to_position(session, user, work_history):
    user_skill = await add_user_skill_to_work(
        session, user.id, work_history.id, "Python 3.12", proficiency=Proficiency.ADVANCED, years_experience=3
    )

    assert user_skill.skill.name == "Python"
    assert user_skill.proficiency == "ADVANCED"
    assert user_skill.source == "WORK_EXPERIENCE"
    [linked] = await list_user_skills_for_work(session, user.id, work_history.id)
    assert linked.id == user_skill.id


async def test_add_existing_skill_merges(session, user, work_history):
    skill = models.Skill(name="Python", category="PROGRAMMING_LANGUAGE")
    session.add(skill)
    await session.flush()
    session.add(models.UserSkill(
        user_id=user.id,
        skill_id=skill.id,
        proficiency="EXPERT",
        years_experience=8,
        source="MANUAL",
        notes="Primary language",
    ))
    await session.commit()

    user_skill = await add_user_skill_to_work(
        session, user.id, work_history.id, "python", proficiency=Proficiency.BEGINNER, years_experience=2,
        notes="Payments backend",
    )

    assert user_skill.proficiency == "EXPERT"
    assert user_skill.years_experience == 8
    assert user_skill.notes == "Primary language; Payments backend"
    assert user_skill.work_history_id == work_history.id
    assert len(await list_user_skills(session, user.id)) == 1


async def test_compound_skill_rejected(session, user, work_history):
    with pytest.raises(SkillError, match="separate skills"):
        await add_user_skill_to_work(session, user.id, work_history.id, "React/Next.js")


async def test_add_to_other_users_position(session, other_user, work_history):
    with pytest.raises(WorkHistoryNotFoundError):
        await add_user_skill_to_work(session, other_user.id, work_history.id, "Python")


async def test_remove_plain_work_skill_deletes_it(session, user, work_history):
    user_skill = await add_user_skill_to_work(session, user.id, work_history.id, "Docker")

    result = await remove_user_skill_from_work(session, user.id, user_skill.id, work_history.id)

    assert result.deleted
    assert result.skill_name == "Docker"
    assert await list_user_skills(session, user.id) == []


async def test_remove_skill_with_years_keeps_it_unlinked(session, user, work_history):
    user_skill = await add_user_skill_to_work(session, user.id, work_history.id, "Docker", years_experience=4)

    result = await remove_user_skill_from_work(session, user.id, user_skill.id, work_history.id)

    assert not result.deleted
    assert result.user_skill.work_history_id is None
    assert result.user_skill.notes == "Previously linked to work experience"
    assert await list_user_skills_for_work(session, user.id, work_history.id) == []


async def test_remove_checks_owner_and_position(session, user, other_user, work_history):
    user_skill = await add_user_skill_to_work(session, user.id, work_history.id, "Docker")

    with pytest.raises(SkillNotFoundError):
        await remove_user_skill_from_work(session, other_user.id, user_skill.id, work_history.id)
    with pytest.raises(SkillError, match="not associated"):
        await remove_user_skill_from_work(session, user.id, user_skill.id, work_history.id + 1)
