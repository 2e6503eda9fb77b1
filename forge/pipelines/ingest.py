"""Resume import pipeline.

Steps:
1. Parse the uploaded file (PDF with OCR fallback, or plain text)
2. Normalize text
3. Extract structured resume data with the LLM
4. Merge work experience into stored work history
5. Add new education entries and general skills
6. Commit once
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import BinaryIO

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from assist.llm import LLMClient
from forge import models
from forge.models import Proficiency, SkillSource
from forge.parsers import parse_file
from forge.pipelines.education import EducationEntry, add_imported_education
from forge.pipelines.normalization import normalize_text
from forge.pipelines.skills import SkillNormalizationService, get_user_skill
from forge.pipelines.users import fill_missing_contact_details, get_user
from forge.pipelines.work_history import WorkExperienceEntry, WorkImportSummary, process_work_experience

logger = logging.getLogger(__name__)


class ResumeImportError(Exception):
    """Raised when a resume cannot be imported."""
    pass


class ContactDetails(BaseModel):
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    location: str | None = None
    linkedin_url: str | None = None


class ParsedResume(BaseModel):
    """Structured content of a resume."""
    contact: ContactDetails = Field(default_factory=ContactDetails)
    work_experience: list[WorkExperienceEntry] = Field(
        default_factory=list,
        description="Positions in the order they appear",
    )
    education: list[EducationEntry] = Field(default_factory=list)
    skills: list[str] = Field(
        default_factory=list,
        description="Skills listed outside of any position, e.g. a Skills section",
    )


@dataclass
class ImportSummary:
    """Result of a resume import."""
    work: WorkImportSummary = field(default_factory=WorkImportSummary)
    education_added: int = 0
    education_skipped: int = 0
    skills_added: int = 0
    contact_fields_filled: list[str] = field(default_factory=list)


EXTRACTION_SYSTEM_PROMPT = """You extract structured data from resumes.

RULES:
- Copy achievement bullets verbatim; do not summarize, merge or invent them
- List each position separately, even at the same company
- Dates use YYYY-MM (or YYYY-MM-DD when the day is given); use null for the end date of a current position ("Present")
- Put skills named inside a position into that position's skills, and skills from a separate skills section into the top-level skills
- Leave fields null or empty when the resume does not state them"""


async def extract_resume_data(text: str, *, llm: LLMClient | None = None) -> ParsedResume:
    """Extract structured resume data from raw resume text.

    Raises:
        ResumeImportError: If the text is empty
        LLMError: If the model cannot produce a valid ParsedResume
    """
    normalized = normalize_text(text)
    if not normalized:
        raise ResumeImportError("Resume text is empty")

    llm = llm or LLMClient()
    parsed = await llm.structured(
        [("system", EXTRACTION_SYSTEM_PROMPT), ("human", f"RESUME:\n{normalized}")],
        ParsedResume,
    )
    logger.info(
        f"Extracted {len(parsed.work_experience)} positions, {len(parsed.education)} education "
        f"entries and {len(parsed.skills)} general skills"
    )
    return parsed


async def _add_general_skills(session: AsyncSession, user_id: int, names: list[str]) -> int:
    service = SkillNormalizationService(session)
    added = 0
    for resolved in await service.normalize_skills(names):
        if await get_user_skill(session, user_id, resolved.base_skill_id) is not None:
            continue
        session.add(models.UserSkill(
            user_id=user_id,
            skill_id=resolved.base_skill_id,
            proficiency=Proficiency.INTERMEDIATE.value,
            source=SkillSource.RESUME.value,
            notes=resolved.detailed_variant,
        ))
        await session.flush()
        added += 1
    return added


async def import_resume(
    session: AsyncSession,
    user_id: int,
    text: str,
    *,
    llm: LLMClient | None = None,
) -> ImportSummary:
    """Import resume text into the user's profile.

    Args:
        session: Database session
        user_id: Profile owner
        text: Raw resume text
        llm: Client for extraction and achievement merging

    Returns:
        ImportSummary with per-section counts

    Raises:
        UserNotFoundError: If the user does not exist
        LLMError: If extraction fails
        ResumeImportError: If persisting fails
    """
    user = await get_user(session, user_id)
    llm = llm or LLMClient()
    parsed = await extract_resume_data(text, llm=llm)

    summary = ImportSummary()
    try:
        summary.work = await process_work_experience(
            session, user_id, parsed.work_experience, llm=llm, commit=False
        )
        summary.education_added, summary.education_skipped = await add_imported_education(
            session, user_id, parsed.education
        )
        summary.skills_added = await _add_general_skills(session, user_id, parsed.skills)
        summary.contact_fields_filled = fill_missing_contact_details(
            user,
            phone=parsed.contact.phone,
            location=parsed.contact.location,
            linkedin_url=parsed.contact.linkedin_url,
        )
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(f"Resume import failed for user {user_id}: {e}", exc_info=True)
        raise ResumeImportError(f"Failed to import resume: {e}") from e

    logger.info(f"Imported resume for user {user_id}: {summary}")
    return summary


async def import_resume_file(
    session: AsyncSession,
    user_id: int,
    file_obj: BinaryIO,
    filename: str,
    *,
    llm: LLMClient | None = None,
) -> ImportSummary:
    """Parse an uploaded resume file and import it.

    Raises:
        ParseError: If the file cannot be read
    """
    logger.info(f"Importing resume file {filename} for user {user_id}")
    parsed = await run_in_threadpool(parse_file, file_obj, filename)
    logger.debug(f"Parsed {filename}: {len(parsed.text)} characters via {parsed.metadata.get('method')}")
    return await import_resume(session, user_id, parsed.text, llm=llm)

