"""Grade progression and tenant configuration schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from progress_engine.db.models import BadgeTypeEnum, CompletionTypeEnum, GradeStatusEnum


class GradeJourneyRead(BaseModel):
    id: uuid.UUID
    grade: int
    start_date: datetime
    end_date: datetime | None = None
    completion_status: GradeStatusEnum
    completion_type: CompletionTypeEnum | None = None
    summary_snapshot: dict[str, Any] = {}

    model_config = {"from_attributes": True}


class MasteryBadgeRead(BaseModel):
    id: uuid.UUID
    grade: int
    badge_type: BadgeTypeEnum
    met_requirements: list[str] = []
    awarded_at: datetime

    model_config = {"from_attributes": True}


class AcademicYearWindowRead(BaseModel):
    start: datetime
    end: datetime
    label: str


class RequirementProgress(BaseModel):
    requirement: str
    required: float
    current: float
    met: bool


class GradeStatusRead(BaseModel):
    current_grade: int
    next_grade: int | None = None
    academic_year_window: AcademicYearWindowRead
    soft_eligible: bool
    can_promote: bool
    days_until_eligible: int
    hard_eligible: bool
    mastery_requirements_progress: list[RequirementProgress]
    journeys: list[GradeJourneyRead]


class PromotionRead(BaseModel):
    closed_journey: GradeJourneyRead
    new_journey: GradeJourneyRead
    badge_awarded: MasteryBadgeRead | None = None


# ── Tenant configuration ──────────────────────────────────────────────────────


class AcademicYearConfigIn(BaseModel):
    start_month: int = Field(ge=1, le=12)
    start_day: int = Field(ge=1, le=31)
    end_month: int = Field(ge=1, le=12)
    end_day: int = Field(ge=1, le=31)
    timezone: str = "Asia/Kolkata"


class AcademicYearConfigRead(AcademicYearConfigIn):
    current_window: AcademicYearWindowRead


class MasteryRequirementsIn(BaseModel):
    """``None`` fields fall back to the built-in default for that grade."""

    min_quests_completed: int | None = Field(default=None, ge=0)
    min_assessments_completed: int | None = Field(default=None, ge=0)
    min_average_skill_score: float | None = Field(default=None, ge=0, le=100)
    end_year_assessment_required: bool = False


class MasteryRequirementsRead(BaseModel):
    grade: int
    min_quests_completed: int
    min_assessments_completed: int
    min_average_skill_score: float
    end_year_assessment_required: bool
