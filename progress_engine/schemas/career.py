"""Career catalog and unlock schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel


class UnlockRuleRead(BaseModel):
    match: str
    min_score: float
    effective_min_score: float
    min_level: str | None = None
    required_quest_tags: list[str] = []


class CareerRead(BaseModel):
    id: str
    title: str
    short_pitch: str
    icon: str
    rarity_tier: str
    skill_signals: list[str]
    recommended_subjects: list[str] = []
    unlock_rule: UnlockRuleRead


class CareerCatalogRead(BaseModel):
    catalog_version: str
    careers: list[CareerRead]


class CareerUnlockRead(BaseModel):
    id: uuid.UUID
    career_id: str
    title: str | None = None
    reason: str
    reason_evidence: dict[str, Any] = {}
    linked_skills: list[str] = []
    confidence: float
    source_attempt_id: uuid.UUID | None = None
    unlocked_at: datetime

    model_config = {"from_attributes": True}


class CareerEvaluationRead(BaseModel):
    new_unlocks: list[CareerUnlockRead]
