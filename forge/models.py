"""Core SQLAlchemy models (2.x style) for the resume builder schema.

Models carry proper indexes and constraints and run on PostgreSQL in
production and SQLite in tests.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum

from sqlalchemy import JSON, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, portable across PostgreSQL and SQLite."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Proficiency(str, Enum):
    """Skill proficiency, ordered from lowest to highest."""
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    EXPERT = "EXPERT"

    @property
    def rank(self) -> int:
        return list(Proficiency).index(self) + 1


class SkillSource(str, Enum):
    """Where a user skill came from."""
    WORK_EXPERIENCE = "WORK_EXPERIENCE"
    RESUME = "RESUME"
    EDUCATION = "EDUCATION"
    MANUAL = "MANUAL"


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class User(Base):
    """Application users."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50))
    location: Mapped[str | None] = mapped_column(String(255))
    linkedin_url: Mapped[str | None] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    # Relationships
    work_histories: Mapped[list[WorkHistory]] = relationship(
        "WorkHistory",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    education: Mapped[list[Education]] = relationship(
        "Education",
        back_populates="user",
        cascade="all, delete-orphan",
    )


class WorkHistory(Base):
    """A single position held by a user."""
    __tablename__ = "work_histories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    job_title: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    # Relationships
    user: Mapped[User] = relationship("User", back_populates="work_histories")
    achievements: Mapped[list[WorkAchievement]] = relationship(
        "WorkAchievement",
        back_populates="work_history",
        cascade="all, delete-orphan",
        order_by="(WorkAchievement.created_at, WorkAchievement.id)",
    )
    user_skills: Mapped[list[UserSkill]] = relationship("UserSkill", back_populates="work_history")

    __table_args__ = (
        Index("ix_work_histories_user_start", "user_id", "start_date"),
    )


class WorkAchievement(Base):
    """Achievement bullet attached to a work history record."""
    __tablename__ = "work_achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    work_history_id: Mapped[int] = mapped_column(
        ForeignKey("work_histories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    # Relationship
    work_history: Mapped[WorkHistory] = relationship("WorkHistory", back_populates="achievements")


class Skill(Base):
    """Canonical (base) skill shared by all users."""
    __tablename__ = "skills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="OTHER", index=True)
    description: Mapped[str | None] = mapped_column(Text)

    # Relationships
    aliases: Mapped[list[SkillAlias]] = relationship(
        "SkillAlias",
        back_populates="skill",
        cascade="all, delete-orphan",
    )


class SkillAlias(Base):
    """Alternative spellings that resolve to a base skill."""
    __tablename__ = "skill_aliases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    skill_id: Mapped[int] = mapped_column(ForeignKey("skills.id", ondelete="CASCADE"), nullable=False, index=True)
    alias: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    # Relationship
    skill: Mapped[Skill] = relationship("Skill", back_populates="aliases")


class UserSkill(Base):
    """A skill owned by a user, optionally tied to the position where it was used."""
    __tablename__ = "user_skills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    skill_id: Mapped[int] = mapped_column(ForeignKey("skills.id", ondelete="CASCADE"), nullable=False, index=True)
    proficiency: Mapped[str] = mapped_column(String(20), nullable=False, default=Proficiency.INTERMEDIATE.value)
    years_experience: Mapped[float | None] = mapped_column(Float)
    source: Mapped[str] = mapped_column(String(30), nullable=False, default=SkillSource.MANUAL.value)
    notes: Mapped[str | None] = mapped_column(Text)
    work_history_id: Mapped[int | None] = mapped_column(
        ForeignKey("work_histories.id", ondelete="SET NULL"),
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    # Relationships
    skill: Mapped[Skill] = relationship("Skill")
    work_history: Mapped[WorkHistory | None] = relationship("WorkHistory", back_populates="user_skills")

    __table_args__ = (
        UniqueConstraint("user_id", "skill_id", name="uq_user_skills_user_skill"),
    )


class Education(Base):
    """Education entries."""
    __tablename__ = "education"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    institution: Mapped[str] = mapped_column(String(255), nullable=False)
    degree: Mapped[str | None] = mapped_column(String(255))
    field_of_study: Mapped[str | None] = mapped_column(String(255))
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    # Relationship
    user: Mapped[User] = relationship("User", back_populates="education")


class JobPosting(Base):
    """Job postings submitted by users."""
    __tablename__ = "job_postings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    company: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255))
    industry: Mapped[str | None] = mapped_column(String(255))
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str | None] = mapped_column(String(50))
    details: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    # Relationships
    document: Mapped[JobPostingDocument | None] = relationship(
        "JobPostingDocument",
        back_populates="job_posting",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_job_postings_created_at", "created_at"),
    )


class JobPostingDocument(Base):
    """Generated resume and cover letter for a job posting."""
    __tablename__ = "job_posting_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_posting_id: Mapped[int] = mapped_column(
        ForeignKey("job_postings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    resume_content: Mapped[str | None] = mapped_column(Text)
    cover_letter_content: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    # Relationship
    job_posting: Mapped[JobPosting] = relationship("JobPosting", back_populates="document")


class Conversation(Base):
    """Assistant chat conversation."""
    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    # Relationships
    messages: Mapped[list[ChatMessage]] = relationship(
        "ChatMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="(ChatMessage.created_at, ChatMessage.id)",
    )


class ChatMessage(Base):
    """A single message in a conversation."""
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)  # user, assistant
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    # Relationship
    conversation: Mapped[Conversation] = relationship("Conversation", back_populates="messages")
