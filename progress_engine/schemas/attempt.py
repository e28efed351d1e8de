"""Attempt schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from progress_engine.db.models import AttemptStatusEnum, SubjectKindEnum


class AttemptStart(BaseModel):
    """POST /api/attempts/start — begin an assessment game or quest."""

    subject_id: str = Field(min_length=1, max_length=100)
    subject_kind: SubjectKindEnum = SubjectKindEnum.ASSESSMENT
    end_of_year: bool = False


class ItemRead(BaseModel):
    """One item as shown to the student (never carries the expected answer)."""

    id: str
    type: str
    prompt: str | None = None
    options: list[str] | None = None
    min_words: int | None = None
    categories: list[str] = []


class AttemptStarted(BaseModel):
    attempt_id: uuid.UUID
    attempt_number: int
    subject_id: str
    subject_kind: SubjectKindEnum
    status: AttemptStatusEnum
    items: list[ItemRead]
    time_limit_seconds: int
    started_at: datetime


class ProgressUpdate(BaseModel):
    """PUT /api/attempts/{id}/progress — best-effort autosave."""

    state: dict[str, Any] = {}
    telemetry: list[dict[str, Any]] = []


class AutosaveReceiptRead(BaseModel):
    saved: bool
    reason: str | None = None


class AttemptSubmit(BaseModel):
    """POST /api/attempts/{id}/submit — one answer per item, in item order.

    ``None`` marks a skipped item. ``telemetry`` carries the client summary:
    ``time_spent`` (seconds), ``hints_used``, ``errors``, ``revisions``.
    """

    answers: list[Any]
    telemetry: dict[str, Any] | None = None


class AttemptAbandon(BaseModel):
    reason: str = Field(default="user", max_length=50)


class PlayerLevel(BaseModel):
    level: int
    title: str


class UnlockSummary(BaseModel):
    career_id: str
    title: str
    rarity_tier: str | None = None
    reason: str
    confidence: float
    linked_skills: list[str] = []


class LeveledSkill(BaseModel):
    category: str
    level: int
    title: str


class AttemptResult(BaseModel):
    """Frozen outcome of a submit; replays return the same document."""

    attempt_id: uuid.UUID
    status: AttemptStatusEnum
    raw_scores: dict[str, Any]
    normalized_scores: dict[str, float]
    xp_gained: int
    total_xp: int
    player_level: PlayerLevel
    leveled_up: bool
    new_unlocks: list[UnlockSummary] = []
    leveled_up_skills: list[LeveledSkill] = []
    evidence: dict[str, Any] = {}


class AttemptRead(BaseModel):
    id: uuid.UUID
    subject_id: str
    subject_kind: SubjectKindEnum
    attempt_number: int
    status: AttemptStatusEnum
    grade_at_time_of_attempt: int
    is_end_year_assessment: bool
    normalized_scores: dict[str, float] = {}
    xp_awarded: int = 0
    started_at: datetime
    last_saved_at: datetime | None = None
    completed_at: datetime | None = None
    abandoned_at: datetime | None = None
    abandon_reason: str | None = None

    model_config = {"from_attributes": True}


class AttemptDetailRead(AttemptRead):
    """Attempt with its items (expected answers stripped) and saved progress."""

    items: list[ItemRead] = []
    progress_state: dict[str, Any] = {}
    result: AttemptResult | None = None
