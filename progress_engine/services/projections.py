"""Role-specific views of a student's skill tree.

One internal ``SkillNode`` is built per category, then projected through a
function per viewer role. Students see fun level titles and XP only; maturity
bands never leave this module in a student projection.
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from progress_engine.core.errors import PermissionDeniedError
from progress_engine.db.models import (
    RoleEnum,
    SkillCategoryEnum,
    SkillLevelEnum,
    SkillScore,
    StudentProfile,
    TrendEnum,
)
from progress_engine.services.leveling import (
    BAND_DESCRIPTIONS,
    BAND_ORDER,
    DEFAULT_BAND_TABLE,
    PLAYER_LEVELS,
    MaturityBand,
    MaturityBandTable,
    teacher_actions,
    xp_progress,
)

_Cat = SkillCategoryEnum
_B = MaturityBand

SKILL_NAMES = {
    _Cat.COGNITIVE_REASONING: "Cognitive Reasoning",
    _Cat.CREATIVITY: "Creativity",
    _Cat.LANGUAGE: "Language",
    _Cat.MEMORY: "Memory",
    _Cat.ATTENTION: "Attention",
    _Cat.PLANNING: "Planning",
    _Cat.SOCIAL_EMOTIONAL: "Social-Emotional",
    _Cat.METACOGNITION: "Metacognition",
    _Cat.CHARACTER_VALUES: "Character & Values",
}

# Band commonly observed at each grade
GRADE_EXPECTATIONS: dict[int, dict[SkillCategoryEnum, MaturityBand]] = {
    8: {
        _Cat.COGNITIVE_REASONING: _B.PRACTICING,
        _Cat.CREATIVITY: _B.PRACTICING,
        _Cat.LANGUAGE: _B.PRACTICING,
        _Cat.MEMORY: _B.PRACTICING,
        _Cat.ATTENTION: _B.DISCOVERING,
        _Cat.PLANNING: _B.DISCOVERING,
        _Cat.SOCIAL_EMOTIONAL: _B.PRACTICING,
        _Cat.METACOGNITION: _B.DISCOVERING,
        _Cat.CHARACTER_VALUES: _B.PRACTICING,
    },
    9: {
        _Cat.COGNITIVE_REASONING: _B.CONSISTENT,
        _Cat.CREATIVITY: _B.PRACTICING,
        _Cat.LANGUAGE: _B.CONSISTENT,
        _Cat.MEMORY: _B.PRACTICING,
        _Cat.ATTENTION: _B.PRACTICING,
        _Cat.PLANNING: _B.PRACTICING,
        _Cat.SOCIAL_EMOTIONAL: _B.PRACTICING,
        _Cat.METACOGNITION: _B.PRACTICING,
        _Cat.CHARACTER_VALUES: _B.PRACTICING,
    },
    10: {
        _Cat.COGNITIVE_REASONING: _B.CONSISTENT,
        _Cat.CREATIVITY: _B.CONSISTENT,
        _Cat.LANGUAGE: _B.CONSISTENT,
        _Cat.MEMORY: _B.CONSISTENT,
        _Cat.ATTENTION: _B.CONSISTENT,
        _Cat.PLANNING: _B.CONSISTENT,
        _Cat.SOCIAL_EMOTIONAL: _B.CONSISTENT,
        _Cat.METACOGNITION: _B.PRACTICING,
        _Cat.CHARACTER_VALUES: _B.CONSISTENT,
    },
}


@dataclass
class SkillNode:
    category: SkillCategoryEnum
    score: float | None
    level: SkillLevelEnum | None
    trend: TrendEnum
    history: list[dict]
    xp: int
    evidence_count: int
    band: MaturityBand


def build_nodes(
    db: Session,
    student: StudentProfile,
    band_table: MaturityBandTable = DEFAULT_BAND_TABLE,
) -> list[SkillNode]:
    rows = {
        row.category: row
        for row in db.execute(select(SkillScore).where(SkillScore.student_id == student.id)).scalars()
    }
    nodes = []
    for category in SkillCategoryEnum:
        row = rows.get(category)
        if row is None:
            nodes.append(SkillNode(category, None, None, TrendEnum.STABLE, [], 0, 0, _B.UNCLASSIFIED))
            continue
        evidence_count = len(row.history or [])
        nodes.append(
            SkillNode(
                category=category,
                score=row.score,
                level=row.level,
                trend=row.trend,
                history=list(row.history or []),
                xp=row.xp or 0,
                evidence_count=evidence_count,
                band=band_table.band_for(row.score, evidence_count),
            )
        )
    return nodes


# ── Per-role projections ──────────────────────────────────────────────────────


def _student_copy(node: SkillNode) -> str:
    if node.score is None:
        return "Ready when you are!"
    if node.trend == TrendEnum.IMPROVING:
        return "You're getting better at this!"
    if node.trend == TrendEnum.STABLE:
        return "Steady progress!"
    return "Keep practicing!"


def _student_view(node: SkillNode) -> dict:
    progress = xp_progress(node.xp)
    return {
        "category": node.category.value,
        "name": SKILL_NAMES[node.category],
        "score": node.score,
        "skill_level": node.level.value if node.level else None,
        "history": node.history,
        "level": progress["level"],
        "level_title": progress["title"],
        "xp": node.xp,
        "xp_progress_percent": progress["progress_percent"],
        "next_level_xp": progress["next_level_xp"],
        "trend": node.trend.value,
        "message": _student_copy(node),
    }


def parent_context(node: SkillNode, grade: int) -> str:
    name = SKILL_NAMES[node.category].lower()
    if node.band == _B.UNCLASSIFIED:
        return f"We haven't seen enough {name} activity yet to describe it."
    expected = GRADE_EXPECTATIONS.get(grade, {}).get(node.category)
    current = node.band.value.lower()
    if expected is None:
        return f"Currently showing {current} use of {name}."
    gap = BAND_ORDER[node.band] - BAND_ORDER[expected]
    prefix = f"At Grade {grade}, {name} is commonly {expected.value.lower()}. Currently showing {current} use."
    if gap < -1:
        return f"{prefix} This is common and typically becomes consistent with practice."
    if gap > 1:
        return f"{prefix} This shows signs of independent use for this grade."
    return f"{prefix} This is developing as expected."


def _parent_view(node: SkillNode, grade: int) -> dict:
    view = _student_view(node)
    view["grade_context"] = parent_context(node, grade)
    return view


def _teacher_view(node: SkillNode, grade: int) -> dict:
    view = _parent_view(node, grade)
    view.update(
        {
            "maturity_band": node.band.value,
            "maturity_band_description": BAND_DESCRIPTIONS[node.band],
            "evidence_count": node.evidence_count,
            "suggested_actions": teacher_actions(node.category, node.band),
        }
    )
    return view


def get_skill_tree(
    db: Session,
    student: StudentProfile,
    viewer_role: RoleEnum,
    band_table: MaturityBandTable = DEFAULT_BAND_TABLE,
) -> dict:
    nodes = build_nodes(db, student, band_table)
    grade = student.current_grade

    if viewer_role == RoleEnum.STUDENT:
        skills = [_student_view(n) for n in nodes]
    elif viewer_role == RoleEnum.PARENT:
        skills = [_parent_view(n, grade) for n in nodes]
    elif viewer_role in (RoleEnum.TEACHER, RoleEnum.SCHOOL_ADMIN, RoleEnum.PLATFORM_ADMIN):
        skills = [_teacher_view(n, grade) for n in nodes]
    else:
        raise PermissionDeniedError(f"Role {viewer_role} cannot view skill trees")

    return {
        "student_id": student.id,
        "view": viewer_role.value,
        "current_grade": grade,
        "skills": skills,
    }


def xp_summary(student: StudentProfile) -> dict:
    return {"student_id": student.id, "total_xp": student.total_xp, **xp_progress(student.total_xp, PLAYER_LEVELS)}
