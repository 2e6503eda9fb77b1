"""FastAPI app with health, resource routers, and proper error handling.

Pipelines raise domain errors; the handlers below turn them into
``ErrorResponse`` bodies with a matching status code.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from assist.llm import LLMError

from .config import settings
from .logging_config import setup_logging
from .parsers import ParseError
from .pipelines.access import WorkHistoryError, WorkHistoryNotFoundError, WorkHistoryValidationError
from .pipelines.chat import ConversationNotFoundError
from .pipelines.education import EducationNotFoundError
from .pipelines.ingest import ResumeImportError
from .pipelines.job_postings import JobPostingNotFoundError
from .pipelines.skills import SkillError, SkillNotFoundError
from .pipelines.tailoring import TailoringError
from .pipelines.users import UserError, UserNotFoundError
from .routers import chat, education, job_postings, resumes, users, work_history
from .schemas import ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    # Startup
    setup_logging()
    logger.info(f"{settings.app_name} {settings.version} starting up ({settings.environment.value})")

    yield

    # Shutdown
    logger.info("Application shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Resume builder backend: work history, skills, resume import and tailored documents",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers. Starlette picks the most specific class in the MRO,
# so not-found subclasses win over their base errors.
_ERROR_STATUS: dict[type[Exception], tuple[int, str]] = {
    ParseError: (status.HTTP_400_BAD_REQUEST, "parse_error"),
    WorkHistoryNotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
    WorkHistoryValidationError: (status.HTTP_400_BAD_REQUEST, "validation_error"),
    WorkHistoryError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "work_history_error"),
    SkillNotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
    SkillError: (status.HTTP_400_BAD_REQUEST, "skill_error"),
    EducationNotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
    JobPostingNotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
    ConversationNotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
    UserNotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
    UserError: (status.HTTP_400_BAD_REQUEST, "user_error"),
    ResumeImportError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "import_error"),
    TailoringError: (status.HTTP_502_BAD_GATEWAY, "tailoring_error"),
    LLMError: (status.HTTP_502_BAD_GATEWAY, "llm_error"),
}


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map a domain error to its status code."""
    status_code, error = next(
        (_ERROR_STATUS[cls] for cls in type(exc).__mro__ if cls in _ERROR_STATUS),
        (status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error"),
    )
    if status_code >= 500:
        logger.error(f"{error} on {request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"{error} on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=str(exc)).model_dump(),
    )


for _exc_class in _ERROR_STATUS:
    app.add_exception_handler(_exc_class, domain_error_handler)


app.include_router(users.router)
app.include_router(work_history.router)
app.include_router(education.router)
app.include_router(job_postings.router)
app.include_router(resumes.router)
app.include_router(chat.router)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=settings.version,
    )


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "endpoints": {
            "health": "/health",
            "users": "/users",
            "work_history": "/work-history",
            "education": "/education",
            "job_postings": "/job-postings",
            "resume_import": "/resumes/import",
            "chat": "/chat",
            "docs": "/docs",
        },
    }
