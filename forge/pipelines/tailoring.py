"""Tailored resume and cover letter generation.

Work experience is split into *detailed* positions (current, recent or
relevant to the posting) and *brief* ones, then handed to the LLM together
with the user's profile and the posting's requirements. Generated content is
stored on the posting's document.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from assist.llm import LLMClient, LLMError
from assist.skills import SkillNormalizer
from forge import models
from forge.config import settings
from forge.pipelines.education import list_education
from forge.pipelines.job_postings import JobPostingDetails, get_job_posting, save_job_posting_document
from forge.pipelines.normalization import month_index
from forge.pipelines.skills import list_user_skills
from forge.pipelines.users import get_user
from forge.pipelines.work_history import list_work_history

logger = logging.getLogger(__name__)

LINES_PER_PAGE = 40


class TailoringError(Exception):
    """Raised when a tailored document cannot be generated."""
    pass


class TailoredResume(BaseModel):
    header: str = Field(description="Contact information")
    summary: str = Field(description="Brief professional summary (2-3 sentences)")
    work_experience: str = Field(description="Work history with achievements, markdown")
    skills: str = Field(description="Relevant technical and soft skills")
    education: str = Field(default="", description="Relevant education; empty string if none")
    achievements: str = Field(default="", description="Notable relevant accomplishments; empty string if none")


class TailoredCoverLetter(BaseModel):
    content: str = Field(description="The full cover letter text")


@dataclass
class ClassifiedWorkExperience:
    detailed: list[models.WorkHistory] = field(default_factory=list)
    brief: list[models.WorkHistory] = field(default_factory=list)


def posting_keywords(posting: models.JobPosting, normalizer: SkillNormalizer | None = None) -> set[str]:
    """Lower-cased base skill names a posting asks for."""
    normalizer = normalizer or SkillNormalizer()
    keywords = {s.canonical_skill.lower() for s in normalizer.extract(f"{posting.title}\n{posting.content}")}
    if posting.details:
        details = JobPostingDetails.model_validate(posting.details)
        names = details.technical_skills + details.bonus_technical_skills + details.industry_knowledge
        keywords.update(s.base_name.lower() for s in normalizer.normalize_many(names))
    return keywords


def record_keywords(record: models.WorkHistory, normalizer: SkillNormalizer | None = None) -> set[str]:
    """Lower-cased skill names evidenced by a position."""
    normalizer = normalizer or SkillNormalizer()
    keywords = {us.skill.name.lower() for us in record.user_skills if us.skill is not None}
    text = "\n".join([record.job_title, *(a.description for a in record.achievements)])
    keywords.update(s.canonical_skill.lower() for s in normalizer.extract(text))
    return keywords


def classify_work_experience(
    records: Iterable[models.WorkHistory],
    keywords: set[str],
    today: date | None = None,
    *,
    normalizer: SkillNormalizer | None = None,
) -> ClassifiedWorkExperience:
    """Split positions into detailed and brief, each newest first.

    A position is detailed when it is current, ended within the last
    ``recent_years`` years, or shares at least ``min_relevance_matches``
    keywords with the posting.
    """
    today = today or date.today()
    normalizer = normalizer or SkillNormalizer()
    cutoff = month_index(today) - 12 * settings.tailoring.recent_years
    classified = ClassifiedWorkExperience()

    for record in sorted(records, key=lambda r: r.start_date, reverse=True):
        if record.end_date is None or month_index(record.end_date) >= cutoff:
            classified.detailed.append(record)
            continue
        overlap = keywords & record_keywords(record, normalizer)
        if len(overlap) >= settings.tailoring.min_relevance_matches:
            logger.debug(f"Work history {record.id} is relevant via {sorted(overlap)}")
            classified.detailed.append(record)
        else:
            classified.brief.append(record)
    return classified


def _fmt_date(value: date | None) -> str:
    return value.strftime("%b %Y") if value else "Present"


def format_classified_work_experience(classified: ClassifiedWorkExperience) -> str:
    """Render classified positions as markdown for the prompt."""
    sections: list[str] = []

    if classified.detailed:
        sections += [
            "## Recent/Relevant Work Experience (Detailed)",
            "",
            "*Include full details, achievements, and skills for these positions:*",
            "",
        ]
        for job in classified.detailed:
            sections += [
                f"### {job.job_title} at {job.company_name}",
                "",
                f"**Duration:** {_fmt_date(job.start_date)} - {_fmt_date(job.end_date)}",
                "",
            ]
            if job.user_skills:
                sections.append("**Skills Used:**")
                for user_skill in job.user_skills:
                    years = f" ({user_skill.years_experience:g} years)" if user_skill.years_experience else ""
                    sections.append(f"- {user_skill.skill.name} - {user_skill.proficiency}{years}")
                sections.append("")
            if job.achievements:
                sections.append("**Key Achievements:**")
                sections += [f"- {a.description}" for a in job.achievements]
                sections.append("")

    if classified.brief:
        sections += [
            "## Older Work Experience (Brief Summary Only)",
            "",
            "*For these positions, include only a single line with job title, company, "
            "and brief description of role/responsibilities:*",
            "",
        ]
        for job in classified.brief:
            sections.append(
                f"- **{job.job_title}** at {job.company_name} "
                f"({_fmt_date(job.start_date)} - {_fmt_date(job.end_date)})"
            )
        sections.append("")

    return "\n".join(sections)


def format_job_requirements(posting: models.JobPosting) -> str:
    if not posting.details:
        return ""
    details = JobPostingDetails.model_validate(posting.details)
    blocks = []
    for heading, items in (
        ("Technical Skills", details.technical_skills),
        ("Soft Skills", details.soft_skills),
        ("Required Education", details.education_requirements),
        ("Required Experience", [
            f"{r.description} ({r.years:g} years)" if r.years else r.description
            for r in details.experience_requirements
        ]),
        ("Industry Knowledge", details.industry_knowledge),
        ("Bonus Technical Skills", details.bonus_technical_skills),
    ):
        if items:
            blocks.append(f"**{heading}:**\n" + "\n".join(f"- {item}" for item in items))
    return "\n\n".join(blocks)


async def generate_user_resume_data(session: AsyncSession, user_id: int) -> str:
    """Markdown summary of everything stored about a user.

    Raises:
        UserNotFoundError: If the user does not exist
    """
    user = await get_user(session, user_id)
    lines = [f"# {user.full_name}", ""]
    contact = [v for v in (user.email, user.phone, user.location, user.linkedin_url) if v]
    if contact:
        lines += [" | ".join(contact), ""]

    records = await list_work_history(session, user_id)
    if records:
        lines += ["## Work History", ""]
        for record in records:
            lines.append(
                f"### {record.job_title} at {record.company_name} "
                f"({_fmt_date(record.start_date)} - {_fmt_date(record.end_date)})"
            )
            lines += [f"- {a.description}" for a in record.achievements]
            if record.user_skills:
                lines.append("Skills: " + ", ".join(us.skill.name for us in record.user_skills))
            lines.append("")

    education = await list_education(session, user_id)
    if education:
        lines += ["## Education", ""]
        for entry in education:
            degree = ", ".join(p for p in (entry.degree, entry.field_of_study) if p)
            period = f" ({_fmt_date(entry.start_date)} - {_fmt_date(entry.end_date)})" if entry.start_date else ""
            lines.append(f"- {entry.institution}{': ' + degree if degree else ''}{period}")
        lines.append("")

    skills = await list_user_skills(session, user_id)
    if skills:
        lines += ["## Skills", ""]
        by_category: dict[str, list[str]] = {}
        for user_skill in skills:
            years = f", {user_skill.years_experience:g} yrs" if user_skill.years_experience else ""
            by_category.setdefault(user_skill.skill.category, []).append(
                f"{user_skill.skill.name} ({user_skill.proficiency.lower()}{years})"
            )
        for category in sorted(by_category):
            lines.append(f"- **{category}:** {', '.join(by_category[category])}")
        lines.append("")

    return "\n".join(lines).strip()


RESUME_SYSTEM_PROMPT = f"""You are an expert resume writer. Create a professional, tailored resume based on the user's data and job requirements.

RULES:
- Only use information from the user profile data provided
- Never fabricate skills, experiences, or qualifications
- Incorporate job-relevant keywords naturally
- Use strong action verbs and quantify achievements
- Keep content concise and ATS-friendly

WORK EXPERIENCE FORMATTING:
- "Recent/Relevant Work Experience (Detailed)": multiple bullet points with achievements, responsibilities and skills used
- "Older Work Experience (Brief Summary Only)": a single line per position with job title, company, dates and brief role description

LENGTH: a page holds about {LINES_PER_PAGE} lines; stay within {settings.tailoring.max_pages} pages, prioritizing the most relevant experience and skills.
Use markdown inside each field; leave education or achievements empty when nothing relevant exists."""

COVER_LETTER_SYSTEM_PROMPT = """You are an expert cover letter writer. Create a professional, tailored cover letter based on the user's data and job requirements.

RULES:
- Only use information from the user profile data provided
- Never fabricate skills, experiences, or qualifications
- Incorporate job-relevant keywords naturally
- Address the specific company and role
- Keep content concise and professional"""


async def _build_context(
    session: AsyncSession,
    user_id: int,
    job_posting_id: int,
    today: date | None,
) -> tuple[models.JobPosting, str]:
    posting = await get_job_posting(session, user_id, job_posting_id)
    profile = await generate_user_resume_data(session, user_id)
    normalizer = SkillNormalizer()
    records = await list_work_history(session, user_id)
    classified = classify_work_experience(
        records, posting_keywords(posting, normalizer), today, normalizer=normalizer
    )
    logger.info(
        f"Tailoring for posting {job_posting_id}: {len(classified.detailed)} detailed, "
        f"{len(classified.brief)} brief positions"
    )

    context = f"""JOB: {posting.title} at {posting.company}
LOCATION: {posting.location or 'Not specified'}

JOB DESCRIPTION:
{posting.content}

JOB REQUIREMENTS:
{format_job_requirements(posting) or 'See description'}

USER DATA:
{profile}

CLASSIFIED WORK EXPERIENCE:
{format_classified_work_experience(classified)}"""
    return posting, context


async def generate_tailored_resume(
    session: AsyncSession,
    user_id: int,
    job_posting_id: int,
    *,
    llm: LLMClient | None = None,
    today: date | None = None,
) -> TailoredResume:
    """Generate a resume for a posting and store it as markdown on the posting.

    Raises:
        JobPostingNotFoundError: If the posting is not the user's
        TailoringError: If generation fails
    """
    posting, context = await _build_context(session, user_id, job_posting_id, today)
    llm = llm or LLMClient()
    user_prompt = f"""Generate a resume tailored to this job posting that highlights the most relevant experience, uses the posting's keywords (with both acronym and full term where common) and follows the detailed/brief work experience rules.

{context}"""

    try:
        resume = await llm.structured([("system", RESUME_SYSTEM_PROMPT), ("human", user_prompt)], TailoredResume)
    except LLMError as e:
        raise TailoringError(f"Failed to generate tailored resume: {e}") from e

    await save_job_posting_document(session, posting, resume_content=format_tailored_resume_as_markdown(resume))
    logger.info(f"Generated tailored resume for posting {job_posting_id}")
    return resume


async def generate_tailored_cover_letter(
    session: AsyncSession,
    user_id: int,
    job_posting_id: int,
    *,
    llm: LLMClient | None = None,
    today: date | None = None,
) -> TailoredCoverLetter:
    """Generate a cover letter for a posting and store it on the posting.

    Raises:
        JobPostingNotFoundError: If the posting is not the user's
        TailoringError: If generation fails
    """
    posting, context = await _build_context(session, user_id, job_posting_id, today)
    llm = llm or LLMClient()
    user_prompt = f"""Write a cover letter for the {posting.title} role at {posting.company} that introduces the user, highlights the skills and experience matching the requirements (preferring recent/relevant positions for examples) and invites the reader to review the attached resume.

{context}"""

    try:
        letter = await llm.structured(
            [("system", COVER_LETTER_SYSTEM_PROMPT), ("human", user_prompt)],
            TailoredCoverLetter,
        )
    except LLMError as e:
        raise TailoringError(f"Failed to generate tailored cover letter: {e}") from e

    await save_job_posting_document(session, posting, cover_letter_content=letter.content)
    logger.info(f"Generated cover letter for posting {job_posting_id}")
    return letter


def format_tailored_resume_as_markdown(resume: TailoredResume) -> str:
    """Assemble a complete markdown resume; empty sections are left out."""
    sections: list[str] = []
    if resume.header.strip():
        sections += [resume.header.strip(), ""]
    for heading, body in (
        ("Professional Summary", resume.summary),
        ("Work Experience", resume.work_experience),
        ("Skills", resume.skills),
        ("Education", resume.education),
        ("Awards & Achievements", resume.achievements),
    ):
        if body and body.strip():
            sections += [f"## {heading}", "", body.strip(), ""]
    return "\n".join(sections).strip()
