"""Request and response models for the HTTP API."""
from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from forge.models import Proficiency


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: str | None = None


# Users

class UserCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    full_name: str = Field(min_length=1, max_length=255)
    phone: str | None = None
    location: str | None = None
    linkedin_url: str | None = None


class UserOut(ORMModel):
    id: int
    email: str
    full_name: str
    phone: str | None = None
    location: str | None = None
    linkedin_url: str | None = None
    created_at: datetime


# Skills

class SkillOut(ORMModel):
    id: int
    name: str
    category: str


class UserSkillOut(ORMModel):
    id: int
    skill: SkillOut
    proficiency: str
    years_experience: float | None = None
    source: str
    notes: str | None = None
    work_history_id: int | None = None


class UserSkillCreate(BaseModel):
    skill_name: str = Field(min_length=1, max_length=255)
    proficiency: Proficiency | None = None
    years_experience: float | None = Field(default=None, ge=0, le=60)
    notes: str | None = None


class RemoveSkillResponse(BaseModel):
    success: bool
    deleted: bool
    skill_name: str


# Work history

class AchievementIn(BaseModel):
    description: str = Field(min_length=1)


class AchievementOut(ORMModel):
    id: int
    description: str
    created_at: datetime


class WorkHistoryCreate(BaseModel):
    company_name: str = Field(min_length=1, max_length=255)
    job_title: str = Field(min_length=1, max_length=255)
    start_date: date
    end_date: date | None = None
    achievements: list[str] = Field(default_factory=list)


class WorkHistoryUpdate(BaseModel):
    company_name: str | None = Field(default=None, min_length=1, max_length=255)
    job_title: str | None = Field(default=None, min_length=1, max_length=255)
    start_date: date | None = None
    end_date: date | None = None


class WorkHistoryOut(ORMModel):
    id: int
    company_name: str
    job_title: str
    start_date: date
    end_date: date | None = None
    achievements: list[AchievementOut] = Field(default_factory=list)
    user_skills: list[UserSkillOut] = Field(default_factory=list)


class DeduplicateRequest(BaseModel):
    dry_run: bool = False


class PreviewItemOut(BaseModel):
    description: str
    action: str


class DeduplicationResponse(BaseModel):
    success: bool
    message: str
    original_count: int
    final_count: int
    exact_duplicates_removed: int
    similar_groups_merged: int
    preview: list[PreviewItemOut] = Field(default_factory=list)


class ApplyAchievementsRequest(BaseModel):
    approved_achievements: list[str]


class ApplyAchievementsResponse(BaseModel):
    success: bool
    message: str
    applied_count: int


class MergeRecordsRequest(BaseModel):
    primary_id: int
    secondary_ids: list[int] = Field(min_length=1)
    merged_details: WorkHistoryUpdate = Field(default_factory=WorkHistoryUpdate)


class MergeRecordsResponse(BaseModel):
    success: bool
    message: str
    merged_record: WorkHistoryOut | None = None


# Education

class EducationCreate(BaseModel):
    institution: str = Field(min_length=1, max_length=255)
    degree: str | None = None
    field_of_study: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    description: str | None = None


class EducationUpdate(BaseModel):
    institution: str | None = Field(default=None, min_length=1, max_length=255)
    degree: str | None = None
    field_of_study: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    description: str | None = None


class EducationOut(ORMModel):
    id: int
    institution: str
    degree: str | None = None
    field_of_study: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    description: str | None = None


# Job postings

class JobPostingCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    company: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=10)
    location: str | None = None
    industry: str | None = None
    status: str | None = None
    extract_details: bool = True


class JobPostingUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    company: str | None = Field(default=None, min_length=1, max_length=255)
    content: str | None = Field(default=None, min_length=10)
    location: str | None = None
    industry: str | None = None


class JobPostingStatusUpdate(BaseModel):
    status: str = Field(max_length=50, description="Empty string clears the status")


class JobPostingDocumentOut(ORMModel):
    resume_content: str | None = None
    cover_letter_content: str | None = None
    updated_at: datetime


class JobPostingOut(ORMModel):
    id: int
    title: str
    company: str
    location: str | None = None
    industry: str | None = None
    content: str
    status: str | None = None
    details: dict | None = None
    document: JobPostingDocumentOut | None = None
    created_at: datetime
    updated_at: datetime


class TailoredResumeResponse(BaseModel):
    job_posting_id: int
    header: str
    summary: str
    work_experience: str
    skills: str
    education: str = ""
    achievements: str = ""
    markdown: str


class TailoredCoverLetterResponse(BaseModel):
    job_posting_id: int
    content: str


# Resume import

class ResumeTextImport(BaseModel):
    text: str = Field(min_length=1)


class ImportSummaryResponse(BaseModel):
    status: str
    records_created: int
    records_updated: int
    achievements_added: int
    skills_linked: int
    education_added: int
    education_skipped: int
    skills_added: int
    contact_fields_filled: list[str] = Field(default_factory=list)
    message: str


# Chat

class ChatRequest(BaseModel):
    content: str = Field(min_length=1)
    conversation_id: int | None = None


class ChatMessageOut(ORMModel):
    id: int
    role: str
    content: str
    created_at: datetime


class ConversationOut(ORMModel):
    id: int
    title: str | None = None
    created_at: datetime


class ConversationDetailOut(ConversationOut):
    messages: list[ChatMessageOut] = Field(default_factory=list)


class ChatReplyResponse(BaseModel):
    conversation_id: int
    user_message: ChatMessageOut
    assistant_message: ChatMessageOut
