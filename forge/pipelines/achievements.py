"""Achievement deduplication and LLM-assisted merging.

Workflow for a single work history record:
1. Remove exact duplicates (case/whitespace-insensitive, oldest kept)
2. Ask the LLM to merge near-duplicates and polish the wording
3. Validate that every input bullet is accounted for, else keep the inputs
4. Replace the stored bullets in one commit (or return a preview on dry run)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal, Sequence, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from assist.llm import LLMClient, LLMError, Message
from forge import models
from forge.config import settings
from forge.pipelines.access import WorkHistoryError, get_owned_work_history, load_achievements
from forge.pipelines.normalization import achievement_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FinalAchievement(BaseModel):
    """One bullet of the merged output."""
    description: str = Field(
        description="The final achievement text, merged from several inputs or optimized from one",
    )
    original_indices: list[int] = Field(
        min_length=1,
        description=(
            "1-indexed positions of the input achievements used to build this one. "
            "Several for merged achievements, exactly one for optimized ones."
        ),
    )
    action: Literal["merged", "optimized"] = Field(
        description="'merged' when built from several inputs, 'optimized' when rewritten from one",
    )


class AchievementMergeResult(BaseModel):
    """LLM output for the merge step."""
    final_achievements: list[FinalAchievement]
    reasoning: str | None = Field(default=None, description="Brief explanation of what was merged")


class IncomingJudgement(BaseModel):
    """Verdict on one newly imported bullet."""
    index: int = Field(description="1-indexed position in the NEW achievements list")
    verdict: Literal["new", "duplicate"]
    duplicate_of: int | None = Field(
        default=None,
        description="1-indexed position in the EXISTING list when verdict is 'duplicate'",
    )


class ImportMergeResult(BaseModel):
    """LLM output when comparing imported bullets with stored ones."""
    judgements: list[IncomingJudgement]


class AchievementMergeError(ValueError):
    """Raised when an LLM merge result does not account for its inputs."""
    pass


@dataclass
class MergeOutcome:
    """Result of merging a list of achievements."""
    final_achievements: list[str]
    groups_merged: int
    reasoning: str | None = None
    used_fallback: bool = False


@dataclass
class PreviewItem:
    description: str
    action: str  # kept, merged, final


@dataclass
class DeduplicationResult:
    """Summary returned by the deduplicate-and-merge workflow."""
    success: bool
    message: str
    original_count: int
    final_count: int
    exact_duplicates_removed: int
    similar_groups_merged: int
    preview: list[PreviewItem] = field(default_factory=list)


@dataclass
class ApplyResult:
    success: bool
    message: str
    applied_count: int


MERGE_SYSTEM_PROMPT = """You analyze and merge professional work achievements for resumes. Identify ONLY truly similar or duplicate achievements and merge them, preserving every important detail, so that the result reads well for recruiters and Applicant Tracking Systems (ATS). Most achievements should stay separate.

RULES:
1. Preserve every metric, percentage, dollar amount, timeframe and headcount from the original text.
2. Only merge achievements that describe the SAME accomplishment or are near-duplicates.
3. Achievements showing different skills, projects or impact stay SEPARATE.
4. Improve wording for impact without changing facts. Never invent information.
5. Start every achievement with a strong action verb (Led, Developed, Increased, Streamlined, Delivered).
6. Return ALL final achievements: merged entries AND individually optimized ones.
7. Every original achievement must be referenced in the original_indices of at least one final achievement.

EXAMPLES:
- Merge: "Increased team productivity by 20%" + "Boosted team efficiency by 20% through process improvements" -> "Increased team productivity by 20% through process improvements"
- Keep separate: "Led team of 5 developers", "Managed $100K budget", "Reduced deployment time by 50%"
- Optimize: "Managed the full development lifecycle" -> "Managed the complete development lifecycle from conception to deployment"
"""

IMPORT_SYSTEM_PROMPT = """You compare newly imported resume achievements with achievements already stored for the same job. For each NEW achievement decide whether it states the same accomplishment as one of the EXISTING achievements ("duplicate") or adds something not already covered ("new"). Different metrics, projects or skills make an achievement new. Judge every new achievement exactly once."""


def _numbered(items: Sequence[str]) -> str:
    return "\n".join(f"{i}. {text}" for i, text in enumerate(items, start=1))


def build_merge_messages(descriptions: Sequence[str]) -> list[Message]:
    count = len(descriptions)
    user_prompt = f"""INPUT ACHIEVEMENTS:
{_numbered(descriptions)}

INSTRUCTIONS:
1. Merge near-duplicates into ONE achievement combining their unique details (action "merged").
2. Optimize every other achievement on its own (action "optimized").
3. For each final achievement list the input numbers it came from in original_indices.
4. Every number from 1 to {count} must appear in at least one original_indices list."""
    return [("system", MERGE_SYSTEM_PROMPT), ("human", user_prompt)]


def remove_exact_duplicate_achievements(achievements: Sequence[T]) -> tuple[list[T], int]:
    """Remove exact duplicate achievements, keeping the oldest one.

    Items are compared on their trimmed, lower-cased ``description``.

    Returns:
        Tuple of (unique achievements in input order, number removed)
    """
    seen: set[str] = set()
    unique: list[T] = []
    removed = 0

    for achievement in achievements:
        key = achievement_key(achievement.description)
        if key in seen:
            removed += 1
            continue
        seen.add(key)
        unique.append(achievement)

    return unique, removed


def validate_merge_result(result: AchievementMergeResult, input_count: int) -> None:
    """Check that a merge result accounts for every input exactly in range.

    Raises:
        AchievementMergeError: On empty index lists, out-of-range or missing indices
    """
    referenced: set[int] = set()
    for achievement in result.final_achievements:
        if not achievement.original_indices:
            raise AchievementMergeError("Each final achievement must have original_indices")
        if not achievement.description.strip():
            raise AchievementMergeError("Final achievements must not be blank")
        for index in achievement.original_indices:
            if not 1 <= index <= input_count:
                raise AchievementMergeError(f"Index {index} is outside 1..{input_count}")
            referenced.add(index)

    missing = sorted(set(range(1, input_count + 1)) - referenced)
    if missing:
        raise AchievementMergeError(
            f"AI failed to account for achievements: {', '.join(str(i) for i in missing)}"
        )


async def merge_achievements_with_llm(
    descriptions: Sequence[str],
    *,
    llm: LLMClient | None = None,
) -> MergeOutcome:
    """Use the LLM to merge similar achievements while preserving all details.

    Never raises for model problems: if the model fails or its answer does not
    account for every input, the inputs are returned unchanged.
    """
    descriptions = list(descriptions)
    if len(descriptions) <= 1:
        return MergeOutcome(final_achievements=descriptions, groups_merged=0)

    llm = llm or LLMClient(temperature=settings.llm.merge_temperature)

    try:
        result = await llm.structured(build_merge_messages(descriptions), AchievementMergeResult)
        validate_merge_result(result, len(descriptions))
    except (LLMError, AchievementMergeError) as e:
        logger.error(f"AI achievement merge failed, keeping originals: {e}")
        return MergeOutcome(final_achievements=descriptions, groups_merged=0, used_fallback=True)

    final = [a.description.strip() for a in result.final_achievements]
    groups_merged = max(0, len(descriptions) - len(final))

    logger.info(
        f"AI achievement merge: {len(descriptions)} -> {len(final)} "
        f"({groups_merged} merged). Reasoning: {result.reasoning or '-'}"
    )
    return MergeOutcome(final_achievements=final, groups_merged=groups_merged, reasoning=result.reasoning)


async def merge_imported_achievements(
    existing: Sequence[str],
    incoming: Sequence[str],
    *,
    llm: LLMClient | None = None,
) -> list[str]:
    """Decide which imported achievements are new for an already stored position.

    Exact duplicates (against stored bullets and within the import) are dropped
    without asking the model. The remaining bullets are judged by the LLM; when
    its answer is unusable every remaining bullet is treated as new.

    Returns:
        Descriptions to add to the stored position, in import order
    """
    stored_keys = {achievement_key(d) for d in existing}
    candidates: list[str] = []
    seen: set[str] = set()
    for description in incoming:
        if not isinstance(description, str) or not description.strip():
            continue
        key = achievement_key(description)
        if key in stored_keys or key in seen:
            continue
        seen.add(key)
        candidates.append(description.strip())

    if not candidates or not existing:
        return candidates

    llm = llm or LLMClient(temperature=settings.llm.merge_temperature)
    user_prompt = f"""EXISTING ACHIEVEMENTS:
{_numbered(existing)}

NEW ACHIEVEMENTS:
{_numbered(candidates)}

Judge each NEW achievement (1 to {len(candidates)})."""

    try:
        result = await llm.structured(
            [("system", IMPORT_SYSTEM_PROMPT), ("human", user_prompt)],
            ImportMergeResult,
        )
        verdicts = _validate_import_result(result, len(candidates), len(existing))
    except (LLMError, AchievementMergeError) as e:
        logger.warning(f"AI import merge failed, adding all {len(candidates)} new achievements: {e}")
        return candidates

    kept = [text for i, text in enumerate(candidates, start=1) if verdicts[i] == "new"]
    logger.info(f"Import merge: {len(kept)} of {len(candidates)} imported achievements are new")
    return kept


def _validate_import_result(result: ImportMergeResult, incoming_count: int, existing_count: int) -> dict[int, str]:
    verdicts: dict[int, str] = {}
    for judgement in result.judgements:
        if not 1 <= judgement.index <= incoming_count:
            raise AchievementMergeError(f"Index {judgement.index} is outside 1..{incoming_count}")
        if judgement.index in verdicts:
            raise AchievementMergeError(f"Achievement {judgement.index} judged twice")
        if judgement.verdict == "duplicate" and not (
            judgement.duplicate_of is not None and 1 <= judgement.duplicate_of <= existing_count
        ):
            raise AchievementMergeError(f"Achievement {judgement.index} marked duplicate of an unknown item")
        verdicts[judgement.index] = judgement.verdict

    missing = sorted(set(range(1, incoming_count + 1)) - set(verdicts))
    if missing:
        raise AchievementMergeError(f"No verdict for achievements: {missing}")
    return verdicts


async def _replace_achievements(session: AsyncSession, work_history_id: int, descriptions: Sequence[str]) -> None:
    await session.execute(
        delete(models.WorkAchievement).where(models.WorkAchievement.work_history_id == work_history_id)
    )
    session.add_all(
        models.WorkAchievement(work_history_id=work_history_id, description=description)
        for description in descriptions
    )
    await session.commit()


async def deduplicate_and_merge_work_achievements(
    session: AsyncSession,
    user_id: int,
    work_history_id: int,
    dry_run: bool = False,
    *,
    llm: LLMClient | None = None,
) -> DeduplicationResult:
    """Deduplicate and merge the achievements of one work history record.

    Args:
        session: Database session
        user_id: Owner of the record
        work_history_id: Record to clean up
        dry_run: Return a preview without writing anything
        llm: Chat model client (default: configured model)

    Returns:
        DeduplicationResult with counts and a preview of the final bullets

    Raises:
        WorkHistoryNotFoundError: If the record is not owned by the user
        WorkHistoryError: If persisting the result fails
    """
    await get_owned_work_history(session, user_id, work_history_id)
    achievements = await load_achievements(session, work_history_id)
    original_count = len(achievements)

    if original_count <= 1:
        return DeduplicationResult(
            success=True,
            message="No deduplication needed - this work history has 1 or fewer achievements.",
            original_count=original_count,
            final_count=original_count,
            exact_duplicates_removed=0,
            similar_groups_merged=0,
        )

    unique, exact_removed = remove_exact_duplicate_achievements(achievements)

    if len(unique) <= 1:
        if not dry_run and exact_removed > 0:
            keep_ids = {a.id for a in unique}
            duplicate_ids = [a.id for a in achievements if a.id not in keep_ids]
            try:
                await session.execute(
                    delete(models.WorkAchievement).where(
                        models.WorkAchievement.id.in_(duplicate_ids),
                        models.WorkAchievement.work_history_id == work_history_id,
                    )
                )
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error(f"Failed to delete duplicate achievements: {e}", exc_info=True)
                raise WorkHistoryError(f"Failed to delete duplicate achievements: {e}") from e

        return DeduplicationResult(
            success=True,
            message=f"Removed {exact_removed} exact duplicates. No similar achievements to merge.",
            original_count=original_count,
            final_count=len(unique),
            exact_duplicates_removed=exact_removed,
            similar_groups_merged=0,
            preview=[PreviewItem(a.description, "kept") for a in unique],
        )

    outcome = await merge_achievements_with_llm([a.description for a in unique], llm=llm)

    if dry_run:
        return DeduplicationResult(
            success=True,
            message="Preview of work achievement deduplication and merge process",
            original_count=original_count,
            final_count=len(outcome.final_achievements),
            exact_duplicates_removed=exact_removed,
            similar_groups_merged=outcome.groups_merged,
            preview=[PreviewItem(d, "merged") for d in outcome.final_achievements],
        )

    try:
        await _replace_achievements(session, work_history_id, outcome.final_achievements)
    except Exception as e:
        await session.rollback()
        logger.error(f"Failed to store merged achievements for {work_history_id}: {e}", exc_info=True)
        raise WorkHistoryError(f"Failed to store merged achievements: {e}") from e

    return DeduplicationResult(
        success=True,
        message=(
            "Successfully deduplicated and merged work achievements. "
            f"Removed {exact_removed} exact duplicates and merged "
            f"{outcome.groups_merged} groups of similar achievements."
        ),
        original_count=original_count,
        final_count=len(outcome.final_achievements),
        exact_duplicates_removed=exact_removed,
        similar_groups_merged=outcome.groups_merged,
        preview=[PreviewItem(d, "final") for d in outcome.final_achievements],
    )


async def apply_approved_work_achievements(
    session: AsyncSession,
    user_id: int,
    work_history_id: int,
    approved_achievements: Sequence[str],
) -> ApplyResult:
    """Store exactly the achievements the user approved from a preview.

    Re-running the model could produce different text, so the approved list
    is written as-is.
    """
    await get_owned_work_history(session, user_id, work_history_id)

    try:
        await _replace_achievements(session, work_history_id, list(approved_achievements))
    except Exception as e:
        await session.rollback()
        logger.error(f"Failed to apply approved achievements for {work_history_id}: {e}", exc_info=True)
        raise WorkHistoryError(f"Failed to apply approved achievements: {e}") from e

    return ApplyResult(
        success=True,
        message=f"Successfully applied {len(approved_achievements)} approved achievements.",
        applied_count=len(approved_achievements),
    )
