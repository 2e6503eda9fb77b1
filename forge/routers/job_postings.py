from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from assist.llm import LLMClient

from .. import models
from ..db import get_session
from ..deps import get_current_user, get_llm
from ..pipelines import job_postings as postings
from ..pipelines.tailoring import (
    format_tailored_resume_as_markdown,
    generate_tailored_cover_letter,
    generate_tailored_resume,
)
from ..schemas import (
    JobPostingCreate,
    JobPostingOut,
    JobPostingStatusUpdate,
    JobPostingUpdate,
    TailoredCoverLetterResponse,
    TailoredResumeResponse,
)

router = APIRouter(prefix="/job-postings", tags=["Job Postings"])


@router.get("", response_model=list[JobPostingOut])
async def list_job_postings(
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await postings.list_job_postings(session, current_user.id)


@router.post("", response_model=JobPostingOut, status_code=status.HTTP_201_CREATED)
async def create_job_posting(
    request: JobPostingCreate,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
    llm: LLMClient = Depends(get_llm),
):
    """Store a job posting and extract its requirements"""
    return await postings.create_job_posting(session, current_user.id, **request.model_dump(), llm=llm)


@router.get("/{job_posting_id}", response_model=JobPostingOut)
async def get_job_posting(
    job_posting_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await postings.get_job_posting(session, current_user.id, job_posting_id)


@router.patch("/{job_posting_id}", response_model=JobPostingOut)
async def update_job_posting(
    job_posting_id: int,
    request: JobPostingUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await postings.update_job_posting(
        session, current_user.id, job_posting_id, **request.model_dump(exclude_unset=True)
    )


@router.put("/{job_posting_id}/status", response_model=JobPostingOut)
async def update_job_posting_status(
    job_posting_id: int,
    request: JobPostingStatusUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    return await postings.update_job_posting_status(session, current_user.id, job_posting_id, request.status)


@router.delete("/{job_posting_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job_posting(
    job_posting_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    await postings.delete_job_posting(session, current_user.id, job_posting_id)


@router.delete("/{job_posting_id}/document", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job_posting_document(
    job_posting_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
):
    """Delete the generated resume and cover letter"""
    await postings.delete_job_posting_document(session, current_user.id, job_posting_id)


@router.post("/{job_posting_id}/resume", response_model=TailoredResumeResponse)
async def tailor_resume(
    job_posting_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
    llm: LLMClient = Depends(get_llm),
):
    """Generate a resume tailored to the posting"""
    resume = await generate_tailored_resume(session, current_user.id, job_posting_id, llm=llm)
    return TailoredResumeResponse(
        job_posting_id=job_posting_id,
        **resume.model_dump(),
        markdown=format_tailored_resume_as_markdown(resume),
    )


@router.post("/{job_posting_id}/cover-letter", response_model=TailoredCoverLetterResponse)
async def tailor_cover_letter(
    job_posting_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
    llm: LLMClient = Depends(get_llm),
):
    """Generate a cover letter for the posting"""
    letter = await generate_tailored_cover_letter(session, current_user.id, job_posting_id, llm=llm)
    return TailoredCoverLetterResponse(job_posting_id=job_posting_id, content=letter.content)
