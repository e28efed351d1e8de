"""Skill tree and XP schemas.

Each viewer role gets its own response model carrying only the fields that
role may see. The student models have no maturity band fields at all.
"""

import uuid

from pydantic import BaseModel


class HistoryPoint(BaseModel):
    date: str
    score: float


class StudentSkillView(BaseModel):
    category: str
    name: str
    score: float | None = None
    skill_level: str | None = None
    trend: str
    history: list[HistoryPoint] = []
    level: int
    level_title: str
    xp: int
    xp_progress_percent: float
    next_level_xp: int | None = None
    message: str


class ParentSkillView(StudentSkillView):
    grade_context: str


class TeacherSkillView(ParentSkillView):
    maturity_band: str
    maturity_band_description: str
    evidence_count: int
    suggested_actions: list[str] = []


class StudentSkillTree(BaseModel):
    student_id: uuid.UUID
    view: str
    current_grade: int
    skills: list[StudentSkillView]


class ParentSkillTree(StudentSkillTree):
    skills: list[ParentSkillView]


class TeacherSkillTree(StudentSkillTree):
    skills: list[TeacherSkillView]


class XpSummary(BaseModel):
    """Player level over the student's total XP."""

    student_id: uuid.UUID
    total_xp: int
    level: int
    title: str
    current_level_xp: int
    next_level_xp: int | None = None
    xp_to_next_level: int
    progress_percent: float
