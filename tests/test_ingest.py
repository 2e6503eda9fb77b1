import io

import pytest

from assist.llm import LLMError
from forge import models
from forge.parsers import FileType, ParseError, detect_file_type, parse_file
from forge.pipelines.education import list_education
from forge.pipelines.ingest import (
    ResumeImportError,
    extract_resume_data,
    import_resume,
    import_resume_file,
)
from forge.pipelines.skills import list_user_skills
from forge.pipelines.work_history import list_work_history
from tests.stubs import StubLLM

RESUME_TEXT = """Ada Lovelace
ada@example.com | +44 20 7946 0000

Experience
Acme Corp - Backend Engineer (Mar 2020 - Jun 2023)
- Built payment APIs in Python
- Introduced contract testing
"""

PARSED = {
    "contact": {
        "full_name": "Ada Lovelace",
        "email": "ada@example.com",
        "phone": "+44 20 7946 0000",
        "location": "Paris",
    },
    "work_experience": [
        {
            "company": "Acme Corp",
            "job_title": "Backend Engineer",
            "start_date": "2020-03",
            "end_date": "2023-06",
            "achievements": ["Built payment APIs in Python", "Introduced contract testing"],
            "skills": ["Python"],
        },
        {
            "company": "Analytical Engines Ltd",
            "job_title": "Programmer",
            "start_date": "Jan 2016",
            "end_date": "Feb 2020",
            "achievements": ["Wrote the first published algorithm"],
        },
    ],
    "education": [
        {"institution": "University of London", "degree": "BSc", "field_of_study": "Mathematics"},
        {"institution": "university of london", "degree": "bsc"},
        {"institution": "", "degree": "Diploma"},
    ],
    "skills": ["Docker, SQL", "python"],
}


class TestParseFile:
    def test_detect_file_type(self):
        assert detect_file_type("CV.PDF") == FileType.PDF
        assert detect_file_type("notes.md") == FileType.MARKDOWN
        assert detect_file_type("blob", b"%PDF-1.7") == FileType.PDF
        assert detect_file_type("resume.docx") == FileType.UNKNOWN

    def test_text_file(self):
        parsed = parse_file(io.BytesIO(b"\xef\xbb\xbfAda Lovelace\nMathematician"), "resume.txt")
        assert parsed.text == "Ada Lovelace\nMathematician"
        assert parsed.file_type == FileType.TEXT

    def test_latin1_fallback(self):
        parsed = parse_file(io.BytesIO("Zoë Müller".encode("latin-1")), "resume.md")
        assert parsed.text == "Zoë Müller"

    def test_empty_file(self):
        with pytest.raises(ParseError, match="empty"):
            parse_file(io.BytesIO(b"   \n"), "resume.txt")

    def test_unsupported_type(self):
        with pytest.raises(ParseError, match="Unsupported"):
            parse_file(io.BytesIO(b"data"), "resume.docx")


async def test_extract_rejects_empty_text():
    llm = StubLLM()
    with pytest.raises(ResumeImportError):
        await extract_resume_data("  \n ", llm=llm)
    assert llm.calls == []


async def test_extract_parses_dates():
    parsed = await extract_resume_data(RESUME_TEXT, llm=StubLLM(PARSED))

    first, second = parsed.work_experience
    assert first.start_date.isoformat() == "2020-03-01"
    assert second.start_date.isoformat() == "2016-01-01"
    assert parsed.education[0].institution == "University of London"


async def test_import_resume_merges_everything(session, user, work_history):
    llm = StubLLM(PARSED, {"judgements": [{"index": 1, "verdict": "new"}]})

    summary = await import_resume(session, user.id, RESUME_TEXT, llm=llm)

    assert summary.work.records_updated == 1
    assert summary.work.records_created == 1
    assert summary.work.achievements_added == 2
    assert summary.education_added == 1
    assert summary.education_skipped == 2
    assert summary.skills_added == 2
    assert summary.contact_fields_filled == ["phone"]

    # Existing location is not overwritten
    assert user.location == "London"
    assert user.phone == "+44 20 7946 0000"

    records = await list_work_history(session, user.id)
    assert [r.company_name for r in records] == ["Acme Corp", "Analytical Engines Ltd"]
    assert [a.description for a in records[0].achievements] == [
        "Built payment APIs in Python",
        "Reduced deployment time by 50%",
        "Introduced contract testing",
    ]

    skills = {us.skill.name: us.source for us in await list_user_skills(session, user.id)}
    assert skills == {"Python": "WORK_EXPERIENCE", "Docker": "RESUME", "SQL": "RESUME"}

    [education] = await list_education(session, user.id)
    assert education.field_of_study == "Mathematics"


async def test_import_resume_twice_adds_nothing_new(session, user):
    await import_resume(session, user.id, RESUME_TEXT, llm=StubLLM(PARSED))

    summary = await import_resume(session, user.id, RESUME_TEXT, llm=StubLLM(PARSED))

    assert summary.work.records_created == 0
    assert summary.work.records_updated == 2
    assert summary.work.achievements_added == 0
    assert summary.education_added == 0
    assert summary.skills_added == 0
    assert len(await list_work_history(session, user.id)) == 2


async def test_extraction_failure_propagates(session, user):
    with pytest.raises(LLMError):
        await import_resume(session, user.id, RESUME_TEXT, llm=StubLLM())
    assert await list_work_history(session, user.id) == []


async def test_import_resume_file(session, user):
    parsed = {"work_experience": [], "education": [], "skills": ["Kubernetes"]}

    summary = await import_resume_file(
        session, user.id, io.BytesIO(RESUME_TEXT.encode()), "resume.txt", llm=StubLLM(parsed)
    )

    assert summary.skills_added == 1
    result = await session.get(models.User, user.id)
    assert result.phone is None


async def test_import_resume_file_parses_off_the_event_loop(session, user, monkeypatch):
    offloaded = []

    async def recording_threadpool(func, *args):
        offloaded.append(func)
        return func(*args)

    monkeypatch.setattr("forge.pipelines.ingest.run_in_threadpool", recording_threadpool)
    parsed = {"work_experience": [], "education": [], "skills": []}

    await import_resume_file(session, user.id, io.BytesIO(RESUME_TEXT.encode()), "resume.txt", llm=StubLLM(parsed))

    assert offloaded == [parse_file]
