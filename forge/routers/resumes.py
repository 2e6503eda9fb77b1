import logging
from io import BytesIO

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from assist.llm import LLMClient

from .. import models
from ..config import settings
from ..db import get_session
from ..deps import get_current_user, get_llm
from ..pipelines.ingest import ImportSummary, import_resume, import_resume_file
from ..schemas import ImportSummaryResponse, ResumeTextImport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/resumes", tags=["Resumes"])

ALLOWED_EXTENSIONS = {'.pdf', '.txt', '.md', '.markdown'}


def _summary_response(summary: ImportSummary) -> ImportSummaryResponse:
    return ImportSummaryResponse(
        status="success",
        records_created=summary.work.records_created,
        records_updated=summary.work.records_updated,
        achievements_added=summary.work.achievements_added,
        skills_linked=summary.work.skills_linked,
        education_added=summary.education_added,
        education_skipped=summary.education_skipped,
        skills_added=summary.skills_added,
        contact_fields_filled=summary.contact_fields_filled,
        message=(
            f"Imported {summary.work.records_created} new and {summary.work.records_updated} "
            f"updated positions"
        ),
    )


@router.post("/import", response_model=ImportSummaryResponse, status_code=status.HTTP_201_CREATED)
async def import_resume_upload(
    file: UploadFile = File(..., description="Resume file (PDF, TXT or Markdown)"),
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
    llm: LLMClient = Depends(get_llm),
):
    """Import an uploaded resume into the user's profile.

    Parses the file (PDF with OCR fallback), extracts structured data with
    the LLM and merges it into work history, education and skills.
    """
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Filename is required")

    file_ext = '.' + file.filename.rsplit('.', 1)[-1].lower() if '.' in file.filename else ''
    if file_ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
        )

    logger.info(f"Received resume upload: {file.filename}")
    try:
        content = await file.read()
    finally:
        await file.close()

    if len(content) > settings.ocr.max_upload_mb * 1024 * 1024:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.ocr.max_upload_mb} MB",
        )

    summary = await import_resume_file(session, current_user.id, BytesIO(content), file.filename, llm=llm)
    return _summary_response(summary)


@router.post("/import-text", response_model=ImportSummaryResponse, status_code=status.HTTP_201_CREATED)
async def import_resume_text(
    request: ResumeTextImport,
    session: AsyncSession = Depends(get_session),
    current_user: models.User = Depends(get_current_user),
    llm: LLMClient = Depends(get_llm),
):
    """Import pasted resume text"""
    summary = await import_resume(session, current_user.id, request.text, llm=llm)
    return _summary_response(summary)
