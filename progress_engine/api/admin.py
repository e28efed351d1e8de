"""Tenant admin routes — academic-year window and mastery requirements."""

from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from progress_engine.api.deps import require_admin
from progress_engine.core.security import Identity
from progress_engine.db.session import get_db
from progress_engine.schemas.grade import (
    AcademicYearConfigIn,
    AcademicYearConfigRead,
    AcademicYearWindowRead,
    MasteryRequirementsIn,
    MasteryRequirementsRead,
)
from progress_engine.services.academic_year import (
    YearSettings,
    academic_year_window,
    resolve_year_settings,
    upsert_tenant_year_settings,
)
from progress_engine.services.grade_progression import (
    check_grade,
    resolve_mastery_requirements,
    upsert_mastery_requirements,
)

router = APIRouter()


def _year_read(cfg: YearSettings) -> AcademicYearConfigRead:
    window = academic_year_window(cfg, datetime.now(timezone.utc))
    return AcademicYearConfigRead(
        start_month=cfg.start_month,
        start_day=cfg.start_day,
        end_month=cfg.end_month,
        end_day=cfg.end_day,
        timezone=cfg.timezone,
        current_window=AcademicYearWindowRead(start=window.start, end=window.end, label=window.label),
    )


# ── Academic year ─────────────────────────────────────────────────────────────


@router.get("/academic-year", response_model=AcademicYearConfigRead)
def get_academic_year(
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """The academic-year config in effect for the admin's tenant."""
    return _year_read(resolve_year_settings(db, admin.tenant_id))


@router.put("/academic-year", response_model=AcademicYearConfigRead)
def put_academic_year(
    body: AcademicYearConfigIn,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    cfg = YearSettings(
        start_month=body.start_month,
        start_day=body.start_day,
        end_month=body.end_month,
        end_day=body.end_day,
        timezone=body.timezone,
    )
    return _year_read(upsert_tenant_year_settings(db, admin.tenant_id, cfg))


# ── Mastery requirements ──────────────────────────────────────────────────────


@router.get("/mastery-requirements/{grade}", response_model=MasteryRequirementsRead)
def get_mastery_requirements(
    grade: int,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    check_grade(grade)
    reqs = resolve_mastery_requirements(db, admin.tenant_id, grade)
    return MasteryRequirementsRead(grade=grade, **asdict(reqs))


@router.put("/mastery-requirements/{grade}", response_model=MasteryRequirementsRead)
def put_mastery_requirements(
    grade: int,
    body: MasteryRequirementsIn,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Override hard-completion requirements for one grade; applies from the next evaluation."""
    reqs = upsert_mastery_requirements(
        db,
        admin.tenant_id,
        grade,
        min_quests_completed=body.min_quests_completed,
        min_assessments_completed=body.min_assessments_completed,
        min_average_skill_score=body.min_average_skill_score,
        end_year_assessment_required=body.end_year_assessment_required,
    )
    return MasteryRequirementsRead(grade=grade, **asdict(reqs))
