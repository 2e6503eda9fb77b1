from types import SimpleNamespace

import pytest

from forge import models
from forge.pipelines.achievements import (
    AchievementMergeError,
    AchievementMergeResult,
    apply_approved_work_achievements,
    deduplicate_and_merge_work_achievements,
    merge_achievements_with_llm,
    merge_imported_achievements,
    remove_exact_duplicate_achievements,
    validate_merge_result,
)
from forge.pipelines.access import WorkHistoryNotFoundError, load_achievements
from tests.stubs import StubLLM


def bullets(*descriptions):
    return [SimpleNamespace(description=d) for d in descriptions]


def merge_result(*groups):
    return AchievementMergeResult.model_validate({
        "final_achievements": [
            {"description": text, "original_indices": indices, "action": "merged" if len(indices) > 1 else "optimized"}
            for text, indices in groups
        ],
    })


class TestRemoveExactDuplicates:
    def test_keeps_first_occurrence(self):
        unique, removed = remove_exact_duplicate_achievements(
            bullets("Led a team of 5", "  led a TEAM of 5 ", "Cut costs by 10%")
        )
        assert [a.description for a in unique] == ["Led a team of 5", "Cut costs by 10%"]
        assert removed == 1

    def test_no_duplicates(self):
        unique, removed = remove_exact_duplicate_achievements(bullets("A", "B"))
        assert len(unique) == 2
        assert removed == 0


class TestValidateMergeResult:
    def test_all_inputs_accounted_for(self):
        validate_merge_result(merge_result(("Merged", [1, 3]), ("Kept", [2])), 3)

    def test_missing_index(self):
        with pytest.raises(AchievementMergeError, match="account for achievements: 3"):
            validate_merge_result(merge_result(("Merged", [1, 2])), 3)

    def test_out_of_range_index(self):
        with pytest.raises(AchievementMergeError, match="outside"):
            validate_merge_result(merge_result(("A", [1]), ("B", [2, 4])), 2)

    def test_blank_description(self):
        with pytest.raises(AchievementMergeError):
            validate_merge_result(merge_result(("  ", [1])), 1)


async def test_llm_merge_success():
    llm = StubLLM(merge_result(
        ("Increased team productivity by 20% through process improvements", [1, 2]),
        ("Managed $100K budget", [3]),
    ))

    outcome = await merge_achievements_with_llm(
        [
            "Increased team productivity by 20%",
            "Boosted team efficiency by 20% through process improvements",
            "Managed $100K budget",
        ],
        llm=llm,
    )

    assert outcome.final_achievements == [
        "Increased team productivity by 20% through process improvements",
        "Managed $100K budget",
    ]
    assert outcome.groups_merged == 1
    assert not outcome.used_fallback
    assert "1. Increased team productivity by 20%" in llm.calls[0][0][1][1]


async def test_llm_merge_falls_back_on_incomplete_answer():
    llm = StubLLM(merge_result(("Only the first", [1])))

    outcome = await merge_achievements_with_llm(["First", "Second"], llm=llm)

    assert outcome.final_achievements == ["First", "Second"]
    assert outcome.groups_merged == 0
    assert outcome.used_fallback


async def test_llm_merge_skips_model_for_single_item():
    llm = StubLLM()
    outcome = await merge_achievements_with_llm(["Only one"], llm=llm)
    assert outcome.final_achievements == ["Only one"]
    assert llm.calls == []


class TestMergeImported:
    async def test_exact_duplicates_dropped_without_model(self):
        llm = StubLLM()
        kept = await merge_imported_achievements(["Shipped v2"], ["shipped V2 ", "", "shipped v2"], llm=llm)
        assert kept == []
        assert llm.calls == []

    async def test_everything_new_when_nothing_stored(self):
        kept = await merge_imported_achievements([], ["A", "B", "a"], llm=StubLLM())
        assert kept == ["A", "B"]

    async def test_model_judgements_applied(self):
        llm = StubLLM({"judgements": [
            {"index": 1, "verdict": "new"},
            {"index": 2, "verdict": "duplicate", "duplicate_of": 1},
        ]})
        kept = await merge_imported_achievements(
            ["Grew revenue 30%"], ["Hired 4 engineers", "Increased revenue by 30%"], llm=llm
        )
        assert kept == ["Hired 4 engineers"]

    async def test_invalid_judgements_keep_all_candidates(self):
        llm = StubLLM({"judgements": [{"index": 1, "verdict": "duplicate", "duplicate_of": 7}]})
        kept = await merge_imported_achievements(["Grew revenue 30%"], ["Increased revenue by 30%"], llm=llm)
        assert kept == ["Increased revenue by 30%"]


async def test_deduplicate_dry_run_writes_nothing(session, user, work_history):
    session.add(models.WorkAchievement(work_history_id=work_history.id, description="built payment APIs in python"))
    await session.commit()
    llm = StubLLM(merge_result(
        ("Built payment APIs in Python", [1]),
        ("Reduced deployment time by 50%", [2]),
    ))

    result = await deduplicate_and_merge_work_achievements(session, user.id, work_history.id, dry_run=True, llm=llm)

    assert result.original_count == 3
    assert result.exact_duplicates_removed == 1
    assert result.final_count == 2
    assert [p.action for p in result.preview] == ["merged", "merged"]
    assert len(await load_achievements(session, work_history.id)) == 3


async def test_deduplicate_replaces_stored_achievements(session, user, work_history):
    llm = StubLLM(merge_result(("Built Python payment APIs, cutting deployment time by 50%", [1, 2])))

    result = await deduplicate_and_merge_work_achievements(session, user.id, work_history.id, llm=llm)

    assert result.success
    assert result.similar_groups_merged == 1
    stored = await load_achievements(session, work_history.id)
    assert [a.description for a in stored] == ["Built Python payment APIs, cutting deployment time by 50%"]


async def test_deduplicate_writes_unique_bullets_when_model_fails(session, user, work_history):
    session.add(models.WorkAchievement(work_history_id=work_history.id, description="built payment APIs in python"))
    await session.commit()

    result = await deduplicate_and_merge_work_achievements(session, user.id, work_history.id, llm=StubLLM())

    assert result.exact_duplicates_removed == 1
    assert result.similar_groups_merged == 0
    assert result.final_count == 2
    stored = await load_achievements(session, work_history.id)
    assert [a.description for a in stored] == ["Built payment APIs in Python", "Reduced deployment time by 50%"]


async def test_deduplicate_single_achievement_is_left_alone(session, user):
    record = models.WorkHistory(
        user_id=user.id,
        company_name="Initech",
        job_title="Analyst",
        start_date=models.utcnow().date(),
        achievements=[models.WorkAchievement(description="Wrote TPS reports")],
    )
    session.add(record)
    await session.commit()
    llm = StubLLM()

    result = await deduplicate_and_merge_work_achievements(session, user.id, record.id, llm=llm)

    assert result.success
    assert result.final_count == 1
    assert result.preview == []
    assert llm.calls == []
    assert [a.description for a in await load_achievements(session, record.id)] == ["Wrote TPS reports"]


async def test_deduplicate_only_exact_duplicates(session, user):
    record = models.WorkHistory(
        user_id=user.id,
        company_name="Initech",
        job_title="Analyst",
        start_date=models.utcnow().date(),
        achievements=[
            models.WorkAchievement(description="Wrote TPS reports"),
            models.WorkAchievement(description="wrote tps reports"),
        ],
    )
    session.add(record)
    await session.commit()
    llm = StubLLM()

    result = await deduplicate_and_merge_work_achievements(session, user.id, record.id, llm=llm)

    assert result.exact_duplicates_removed == 1
    assert result.final_count == 1
    assert llm.calls == []
    assert [a.description for a in await load_achievements(session, record.id)] == ["Wrote TPS reports"]


async def test_deduplicate_other_users_record(session, other_user, work_history):
    with pytest.raises(WorkHistoryNotFoundError):
        await deduplicate_and_merge_work_achievements(session, other_user.id, work_history.id, llm=StubLLM())


async def test_apply_approved(session, user, work_history):
    result = await apply_approved_work_achievements(
        session, user.id, work_history.id, ["Approved one", "Approved two"]
    )
    assert result.applied_count == 2
    stored = await load_achievements(session, work_history.id)
    assert [a.description for a in stored] == ["Approved one", "Approved two"]
