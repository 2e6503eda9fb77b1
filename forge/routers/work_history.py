from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from assist.llm import LLMClient

from .. import models
from ..db import get_session
from ..deps import get_current_user, get_llm
from ..pipelines import work_history as wh
from ..pipelines.achievements import apply_approved_work_achievements, deduplicate_and_merge_work_achievements
from ..pipelines.skills import (
    add_user_skill_to_work,
    list_user_skills_for_work,
    remove_user_skill_from_work,
)
from ..schemas import (
    AchievementIn,
    AchievementOut,
    ApplyAchievementsRequest,
    ApplyAchievementsResponse,
    DeduplicateRequest,
    DeduplicationResponse,
    MergeRecordsRequest,
    MergeRecordsResponse,
    PreviewItemOut,
    RemoveSkillResponse,
    UserSkillCreate,
    UserSkillOut,
    WorkHistoryCreate,
    WorkHistoryOut,
    WorkHistoryUpdate,
)

router = APIRouter(prefix="/work-history", tags=["Work History"])


@router.get("", response_model=list[WorkHistoryOut])
async def list_work_history(
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    """All positions, newest first"""
    return await wh.list_work_history(session, current_user.id)


@router.post("", response_model=WorkHistoryOut, status_code=status.HTTP_201_CREATED)
async def create_work_history(
    request: WorkHistoryCreate,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await wh.create_work_history(session, current_user.id, **request.model_dump())


@router.post("/merge", response_model=MergeRecordsResponse)
async def merge_work_history(
    request: MergeRecordsRequest,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    """Fold duplicate positions into one"""
    result = await wh.merge_work_history_records(
        session,
        current_user.id,
        request.primary_id,
        request.secondary_ids,
        request.merged_details.model_dump(exclude_unset=True),
    )
    return MergeRecordsResponse(
        success=result.success,
        message=result.message,
        merged_record=WorkHistoryOut.model_validate(result.merged_record) if result.merged_record else None,
    )


@router.get("/{work_history_id}", response_model=WorkHistoryOut)
async def get_work_history(
    work_history_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await wh.get_work_history(session, current_user.id, work_history_id)


@router.patch("/{work_history_id}", response_model=WorkHistoryOut)
async def update_work_history(
    work_history_id: int,
    request: WorkHistoryUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await wh.update_work_history(
        session, current_user.id, work_history_id, **request.model_dump(exclude_unset=True)
    )


@router.delete("/{work_history_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_work_history(
    work_history_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    await wh.delete_work_history(session, current_user.id, work_history_id)


# Achievements

@router.get("/{work_history_id}/achievements", response_model=list[AchievementOut])
async def list_achievements(
    work_history_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await wh.list_achievements(session, current_user.id, work_history_id)


@router.post(
    "/{work_history_id}/achievements",
    response_model=AchievementOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_achievement(
    work_history_id: int,
    request: AchievementIn,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await wh.create_achievement(session, current_user.id, work_history_id, request.description)


@router.patch("/achievements/{achievement_id}", response_model=AchievementOut)
async def update_achievement(
    achievement_id: int,
    request: AchievementIn,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await wh.update_achievement(session, current_user.id, achievement_id, request.description)


@router.delete("/achievements/{achievement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_achievement(
    achievement_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    await wh.delete_achievement(session, current_user.id, achievement_id)


@router.post("/{work_history_id}/achievements/deduplicate", response_model=DeduplicationResponse)
async def deduplicate_achievements(
    work_history_id: int,
    request: DeduplicateRequest = DeduplicateRequest(),
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
    llm: LLMClient = Depends(get_llm),
):
    """Remove duplicate achievements and merge similar ones.

    With ``dry_run`` the merged list is only previewed.
    """
    result = await deduplicate_and_merge_work_achievements(
        session, current_user.id, work_history_id, request.dry_run, llm=llm
    )
    return DeduplicationResponse(
        success=result.success,
        message=result.message,
        original_count=result.original_count,
        final_count=result.final_count,
        exact_duplicates_removed=result.exact_duplicates_removed,
        similar_groups_merged=result.similar_groups_merged,
        preview=[PreviewItemOut(description=p.description, action=p.action) for p in result.preview],
    )


@router.post("/{work_history_id}/achievements/apply", response_model=ApplyAchievementsResponse)
async def apply_achievements(
    work_history_id: int,
    request: ApplyAchievementsRequest,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    """Replace the achievements with a previewed, user-approved list"""
    result = await apply_approved_work_achievements(
        session, current_user.id, work_history_id, request.approved_achievements
    )
    return ApplyAchievementsResponse(
        success=result.success,
        message=result.message,
        applied_count=result.applied_count,
    )


# Skills

@router.get("/{work_history_id}/skills", response_model=list[UserSkillOut])
async def list_work_skills(
    work_history_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await list_user_skills_for_work(session, current_user.id, work_history_id)


@router.post(
    "/{work_history_id}/skills",
    response_model=UserSkillOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_work_skill(
    work_history_id: int,
    request: UserSkillCreate,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await add_user_skill_to_work(
        session,
        current_user.id,
        work_history_id,
        request.skill_name,
        proficiency=request.proficiency,
        years_experience=request.years_experience,
        notes=request.notes,
    )


@router.delete("/{work_history_id}/skills/{user_skill_id}", response_model=RemoveSkillResponse)
async def remove_work_skill(
    work_history_id: int,
    user_skill_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    result = await remove_user_skill_from_work(session, current_user.id, user_skill_id, work_history_id)
    return RemoveSkillResponse(success=result.success, deleted=result.deleted, skill_name=result.skill_name)
