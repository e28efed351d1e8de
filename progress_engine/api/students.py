"""Student-facing progress routes: skill tree, XP and grade progression."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from progress_engine.api.deps import get_current_student, get_identity
from progress_engine.core.security import Identity
from progress_engine.db.models import RoleEnum, StudentProfile
from progress_engine.db.session import get_db
from progress_engine.schemas.grade import GradeStatusRead, PromotionRead
from progress_engine.schemas.progress import (
    ParentSkillTree,
    StudentSkillTree,
    TeacherSkillTree,
    XpSummary,
)
from progress_engine.services.grade_progression import get_grade_status, promote_grade
from progress_engine.services.projections import get_skill_tree, xp_summary
from progress_engine.services.students import get_student_for_viewer

router = APIRouter()


def _skill_tree_model(role: RoleEnum) -> type[StudentSkillTree]:
    if role == RoleEnum.STUDENT:
        return StudentSkillTree
    if role == RoleEnum.PARENT:
        return ParentSkillTree
    return TeacherSkillTree


def _render_tree(db: Session, student: StudentProfile, role: RoleEnum):
    tree = get_skill_tree(db, student, role)
    # serialise through the role's own model so no extra field can leak
    return _skill_tree_model(role).model_validate(tree).model_dump()


# ── me ────────────────────────────────────────────────────────────────────────


@router.get("/me/skill-tree")
def my_skill_tree(
    student: StudentProfile = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    return _render_tree(db, student, RoleEnum.STUDENT)


@router.get("/me/xp", response_model=XpSummary)
def my_xp(student: StudentProfile = Depends(get_current_student)):
    return xp_summary(student)


@router.get("/me/grade", response_model=GradeStatusRead)
def my_grade(
    student: StudentProfile = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    return get_grade_status(db, student)


@router.post("/me/grade/promote", response_model=PromotionRead)
def promote_my_grade(
    student: StudentProfile = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    """Move to the next grade once the academic year has ended."""
    return promote_grade(db, student)


# ── other viewers (parents, teachers, admins) ─────────────────────────────────


@router.get("/{student_id}/skill-tree")
def student_skill_tree(
    student_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    student = get_student_for_viewer(db, identity, student_id)
    return _render_tree(db, student, identity.role)


@router.get("/{student_id}/grade", response_model=GradeStatusRead)
def student_grade(
    student_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    student = get_student_for_viewer(db, identity, student_id)
    return get_grade_status(db, student)
