"""SQLAlchemy ORM models for the learning progress engine.

Tables
------
- student_profiles            – per-tenant student record (grade, total XP)
- attempts                    – assessment-game and quest attempts
- skill_scores                – per-student per-category normalized score + history
- career_unlocks              – careers unlocked for a student (immutable)
- grade_journeys              – one row per student per grade year
- grade_mastery_badges        – optional hard-completion recognition
- academic_year_configs       – tenant (or global) academic-year window
- mastery_requirement_configs – tenant per-grade hard-completion requirements

Every "at most one open row" rule is backed by a unique constraint on a key
column that is only populated while the row is open (NULLs never collide).
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from progress_engine.db.session import Base


# ── helpers ───────────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


# ── Enums (stored as VARCHAR via SQLAlchemy Enum) ─────────────────────────────


class RoleEnum(str, enum.Enum):
    STUDENT = "STUDENT"
    PARENT = "PARENT"
    TEACHER = "TEACHER"
    SCHOOL_ADMIN = "SCHOOL_ADMIN"
    PLATFORM_ADMIN = "PLATFORM_ADMIN"


class SubjectKindEnum(str, enum.Enum):
    ASSESSMENT = "ASSESSMENT"
    QUEST = "QUEST"


class AttemptStatusEnum(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


class SkillCategoryEnum(str, enum.Enum):
    COGNITIVE_REASONING = "COGNITIVE_REASONING"
    CREATIVITY = "CREATIVITY"
    LANGUAGE = "LANGUAGE"
    MEMORY = "MEMORY"
    ATTENTION = "ATTENTION"
    PLANNING = "PLANNING"
    SOCIAL_EMOTIONAL = "SOCIAL_EMOTIONAL"
    METACOGNITION = "METACOGNITION"
    CHARACTER_VALUES = "CHARACTER_VALUES"


class SkillLevelEnum(str, enum.Enum):
    EMERGING = "EMERGING"
    DEVELOPING = "DEVELOPING"
    PROFICIENT = "PROFICIENT"
    ADVANCED = "ADVANCED"


class TrendEnum(str, enum.Enum):
    IMPROVING = "IMPROVING"
    STABLE = "STABLE"
    NEEDS_ATTENTION = "NEEDS_ATTENTION"


class GradeStatusEnum(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class CompletionTypeEnum(str, enum.Enum):
    SOFT = "SOFT"
    HARD = "HARD"


class BadgeTypeEnum(str, enum.Enum):
    MASTERY = "MASTERY"
    COMPLETION_CERTIFICATE = "COMPLETION_CERTIFICATE"


# ── Student profiles ──────────────────────────────────────────────────────────


class StudentProfile(Base):
    __tablename__ = "student_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    current_grade: Mapped[int] = mapped_column(Integer, default=8)
    total_xp: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    # relationships
    attempts: Mapped[list["Attempt"]] = relationship(back_populates="student")
    skill_scores: Mapped[list["SkillScore"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )
    career_unlocks: Mapped[list["CareerUnlock"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )
    grade_journeys: Mapped[list["GradeJourney"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", name="uq_student_tenant_user"),
    )


# ── Attempts (assessment games + quests) ──────────────────────────────────────


class Attempt(Base):
    __tablename__ = "attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("student_profiles.id"), index=True
    )
    subject_id: Mapped[str] = mapped_column(String(100), index=True)
    subject_kind: Mapped[SubjectKindEnum] = mapped_column(
        Enum(SubjectKindEnum, name="subject_kind_enum")
    )
    attempt_number: Mapped[int] = mapped_column(Integer, default=1)
    status: Mapped[AttemptStatusEnum] = mapped_column(
        Enum(AttemptStatusEnum, name="attempt_status_enum"),
        default=AttemptStatusEnum.IN_PROGRESS,
        index=True,
    )
    # subject_id while IN_PROGRESS, NULL once terminal
    open_subject_key: Mapped[str | None] = mapped_column(String(100), nullable=True)

    items: Mapped[list] = mapped_column(JSON, default=list)
    progress_state: Mapped[dict] = mapped_column(JSON, default=dict)
    telemetry: Mapped[dict] = mapped_column(JSON, default=dict)
    answers: Mapped[list | None] = mapped_column(JSON, nullable=True)
    raw_scores: Mapped[dict] = mapped_column(JSON, default=dict)
    normalized_scores: Mapped[dict] = mapped_column(JSON, default=dict)
    xp_awarded: Mapped[int] = mapped_column(Integer, default=0)
    result: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    grade_at_time_of_attempt: Mapped[int] = mapped_column(Integer)
    is_end_year_assessment: Mapped[bool] = mapped_column(Boolean, default=False)
    quest_tags: Mapped[list] = mapped_column(JSON, default=list)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    last_saved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    abandoned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    abandon_reason: Mapped[str | None] = mapped_column(String(50), nullable=True)

    student: Mapped["StudentProfile"] = relationship(back_populates="attempts")

    __table_args__ = (
        UniqueConstraint(
            "student_id", "subject_id", "attempt_number", name="uq_attempt_number"
        ),
        UniqueConstraint("student_id", "open_subject_key", name="uq_attempt_open_subject"),
    )


# ── Skill scores (per-student, per-category) ──────────────────────────────────


class SkillScore(Base):
    __tablename__ = "skill_scores"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("student_profiles.id")
    )
    category: Mapped[SkillCategoryEnum] = mapped_column(
        Enum(SkillCategoryEnum, name="skill_category_enum")
    )
    score: Mapped[float] = mapped_column(Float, default=0.0)
    level: Mapped[SkillLevelEnum] = mapped_column(
        Enum(SkillLevelEnum, name="skill_level_enum"), default=SkillLevelEnum.EMERGING
    )
    trend: Mapped[TrendEnum] = mapped_column(
        Enum(TrendEnum, name="trend_enum"), default=TrendEnum.STABLE
    )
    history: Mapped[list] = mapped_column(JSON, default=list)  # [{date, score}]
    evidence: Mapped[list] = mapped_column(JSON, default=list)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    student: Mapped["StudentProfile"] = relationship(back_populates="skill_scores")

    __table_args__ = (
        UniqueConstraint("student_id", "category", name="uq_student_skill_category"),
    )


# ── Career unlocks ────────────────────────────────────────────────────────────


class CareerUnlock(Base):
    __tablename__ = "career_unlocks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("student_profiles.id")
    )
    career_id: Mapped[str] = mapped_column(String(100))
    reason: Mapped[str] = mapped_column(Text)
    reason_evidence: Mapped[dict] = mapped_column(JSON, default=dict)
    linked_skills: Mapped[list] = mapped_column(JSON, default=list)
    confidence: Mapped[float] = mapped_column(Float, default=0.0)
    source_attempt_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    student: Mapped["StudentProfile"] = relationship(back_populates="career_unlocks")

    __table_args__ = (
        UniqueConstraint("student_id", "career_id", name="uq_student_career"),
    )


# ── Grade journeys ────────────────────────────────────────────────────────────


class GradeJourney(Base):
    __tablename__ = "grade_journeys"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("student_profiles.id")
    )
    grade: Mapped[int] = mapped_column(Integer)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completion_status: Mapped[GradeStatusEnum] = mapped_column(
        Enum(GradeStatusEnum, name="grade_status_enum"),
        default=GradeStatusEnum.IN_PROGRESS,
    )
    completion_type: Mapped[CompletionTypeEnum | None] = mapped_column(
        Enum(CompletionTypeEnum, name="completion_type_enum"), nullable=True
    )
    # "open" while IN_PROGRESS, NULL once closed
    open_journey_key: Mapped[str | None] = mapped_column(String(10), nullable=True)
    summary_snapshot: Mapped[dict] = mapped_column(JSON, default=dict)

    student: Mapped["StudentProfile"] = relationship(back_populates="grade_journeys")

    __table_args__ = (
        UniqueConstraint("student_id", "open_journey_key", name="uq_student_open_journey"),
    )


class GradeMasteryBadge(Base):
    __tablename__ = "grade_mastery_badges"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("student_profiles.id")
    )
    grade: Mapped[int] = mapped_column(Integer)
    badge_type: Mapped[BadgeTypeEnum] = mapped_column(
        Enum(BadgeTypeEnum, name="badge_type_enum"), default=BadgeTypeEnum.MASTERY
    )
    grade_journey_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("grade_journeys.id"), nullable=True
    )
    requirements: Mapped[dict] = mapped_column(JSON, default=dict)
    met_requirements: Mapped[list] = mapped_column(JSON, default=list)
    awarded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "student_id", "grade", "badge_type", name="uq_student_grade_badge"
        ),
    )


# ── Tenant configuration ──────────────────────────────────────────────────────


class AcademicYearConfig(Base):
    """Recurring academic-year window; ``tenant_id`` NULL is the global default."""

    __tablename__ = "academic_year_configs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True, unique=True
    )
    start_month: Mapped[int] = mapped_column(Integer, default=6)
    start_day: Mapped[int] = mapped_column(Integer, default=1)
    end_month: Mapped[int] = mapped_column(Integer, default=5)
    end_day: Mapped[int] = mapped_column(Integer, default=31)
    timezone: Mapped[str] = mapped_column(String(64), default="Asia/Kolkata")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class MasteryRequirementConfig(Base):
    """Tenant override of the hard-completion requirement set for one grade."""

    __tablename__ = "mastery_requirement_configs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True))
    grade: Mapped[int] = mapped_column(Integer)
    min_quests_completed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_assessments_completed: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )
    min_average_skill_score: Mapped[float | None] = mapped_column(
        Float, nullable=True
    )
    end_year_assessment_required: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "grade", name="uq_mastery_tenant_grade"),
    )
