"""Job postings and their generated documents."""
from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from assist.llm import LLMClient, LLMError
from forge import models
from forge.pipelines.normalization import normalize_text

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("title", "company", "location", "industry", "content", "status")


class JobPostingNotFoundError(Exception):
    """Raised when a posting does not exist or belongs to another user."""
    pass


class ExperienceRequirement(BaseModel):
    years: float | None = Field(default=None, description="Years required, if stated")
    description: str
    category: str = Field(default="general", description="e.g. 'industry', 'role', 'technical'")


class JobPostingDetails(BaseModel):
    """Requirements extracted from a job posting."""
    technical_skills: list[str] = Field(default_factory=list)
    soft_skills: list[str] = Field(default_factory=list)
    education_requirements: list[str] = Field(default_factory=list)
    experience_requirements: list[ExperienceRequirement] = Field(default_factory=list)
    industry_knowledge: list[str] = Field(default_factory=list)
    bonus_technical_skills: list[str] = Field(default_factory=list, description="Nice-to-have technical skills")
    bonus_soft_skills: list[str] = Field(default_factory=list)
    bonus_education_requirements: list[str] = Field(default_factory=list)
    bonus_experience_requirements: list[ExperienceRequirement] = Field(default_factory=list)
    bonus_industry_knowledge: list[str] = Field(default_factory=list)


DETAILS_SYSTEM_PROMPT = """You analyze job postings and list their requirements.
Separate required items from nice-to-have ("bonus", "preferred", "plus") items.
Use short skill names ("Python", "Kubernetes"), one skill per entry.
Only list what the posting states."""


async def extract_job_posting_details(content: str, *, llm: LLMClient | None = None) -> JobPostingDetails:
    """Extract structured requirements from posting text.

    Raises:
        LLMError: If the model cannot produce valid details
    """
    llm = llm or LLMClient()
    return await llm.structured(
        [("system", DETAILS_SYSTEM_PROMPT), ("human", f"JOB POSTING:\n{normalize_text(content)}")],
        JobPostingDetails,
    )


def _base_query(user_id: int):
    return (
        select(models.JobPosting)
        .options(selectinload(models.JobPosting.document))
        .where(models.JobPosting.user_id == user_id)
    )


async def list_job_postings(session: AsyncSession, user_id: int) -> list[models.JobPosting]:
    result = await session.execute(
        _base_query(user_id).order_by(models.JobPosting.created_at.desc(), models.JobPosting.id.desc())
    )
    return list(result.scalars().all())


async def get_job_posting(session: AsyncSession, user_id: int, job_posting_id: int) -> models.JobPosting:
    result = await session.execute(_base_query(user_id).where(models.JobPosting.id == job_posting_id))
    posting = result.scalar_one_or_none()
    if posting is None:
        raise JobPostingNotFoundError("Job posting not found or you don't have access to it")
    return posting


async def create_job_posting(
    session: AsyncSession,
    user_id: int,
    *,
    title: str,
    company: str,
    content: str,
    location: str | None = None,
    industry: str | None = None,
    status: str | None = None,
    extract_details: bool = True,
    llm: LLMClient | None = None,
) -> models.JobPosting:
    """Store a posting, extracting its requirements when asked.

    A failed extraction is logged and leaves ``details`` empty.
    """
    details = None
    if extract_details:
        try:
            details = (await extract_job_posting_details(content, llm=llm)).model_dump()
        except LLMError as e:
            logger.warning(f"Could not extract details for posting {title!r}: {e}")

    posting = models.JobPosting(
        user_id=user_id,
        title=title,
        company=company,
        content=content,
        location=location,
        industry=industry,
        status=status or None,
        details=details,
    )
    session.add(posting)
    await session.commit()
    logger.info(f"Created job posting {posting.id} for user {user_id}")
    return await get_job_posting(session, user_id, posting.id)


async def update_job_posting(
    session: AsyncSession,
    user_id: int,
    job_posting_id: int,
    **changes: Any,
) -> models.JobPosting:
    posting = await get_job_posting(session, user_id, job_posting_id)
    for name in _EDITABLE_FIELDS:
        if name in changes:
            setattr(posting, name, changes[name])
    await session.commit()
    return posting


async def update_job_posting_status(
    session: AsyncSession,
    user_id: int,
    job_posting_id: int,
    status: str,
) -> models.JobPosting:
    """Set the application status; an empty string clears it."""
    posting = await get_job_posting(session, user_id, job_posting_id)
    posting.status = status.strip() or None
    await session.commit()
    return posting


async def delete_job_posting(session: AsyncSession, user_id: int, job_posting_id: int) -> None:
    posting = await get_job_posting(session, user_id, job_posting_id)
    await session.delete(posting)
    await session.commit()
    logger.info(f"Deleted job posting {job_posting_id} for user {user_id}")


async def save_job_posting_document(
    session: AsyncSession,
    posting: models.JobPosting,
    *,
    resume_content: str | None = None,
    cover_letter_content: str | None = None,
) -> models.JobPostingDocument:
    """Store generated content on the posting's document, creating it if needed.

    Only the provided parts are replaced.
    """
    document = posting.document
    if document is None:
        document = models.JobPostingDocument(job_posting_id=posting.id)
        posting.document = document
    if resume_content is not None:
        document.resume_content = resume_content
    if cover_letter_content is not None:
        document.cover_letter_content = cover_letter_content
    await session.commit()
    return document


async def delete_job_posting_document(session: AsyncSession, user_id: int, job_posting_id: int) -> bool:
    """Delete the generated documents of a posting.

    Returns:
        False when the posting had no document
    """
    posting = await get_job_posting(session, user_id, job_posting_id)
    if posting.document is None:
        return False
    posting.document = None
    await session.commit()
    return True
