"""Grade journeys, mastery evaluation and promotion.

A student always has exactly one open (IN_PROGRESS) journey. Promotion is
allowed once the academic year that contained the journey's start has ended
(soft eligibility). If the grade's mastery requirements are also met the
journey closes as HARD and a MASTERY badge is awarded, otherwise as SOFT.
"""

import logging
import uuid
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from progress_engine.config import settings
from progress_engine.core.errors import ConflictError, InvalidStateError, ValidationError
from progress_engine.db.models import (
    Attempt,
    AttemptStatusEnum,
    BadgeTypeEnum,
    CareerUnlock,
    CompletionTypeEnum,
    GradeJourney,
    GradeMasteryBadge,
    GradeStatusEnum,
    MasteryRequirementConfig,
    SkillScore,
    StudentProfile,
    SubjectKindEnum,
)
from progress_engine.services.academic_year import academic_year_window, days_until, resolve_year_settings
from progress_engine.services.leveling import player_level_for_xp
from progress_engine.services.store import ensure_aware, storage_boundary
from progress_engine.services.students import OPEN_JOURNEY_KEY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MasteryRequirements:
    min_quests_completed: int
    min_assessments_completed: int
    min_average_skill_score: float
    end_year_assessment_required: bool = False


DEFAULT_MASTERY_REQUIREMENTS: dict[int, MasteryRequirements] = {
    8: MasteryRequirements(25, 6, 55.0),
    9: MasteryRequirements(30, 6, 60.0),
    10: MasteryRequirements(35, 6, 65.0, end_year_assessment_required=True),
}


def check_grade(grade: int) -> None:
    if not settings.MIN_GRADE <= grade <= settings.MAX_GRADE:
        raise ValidationError(
            f"Grade must be between {settings.MIN_GRADE} and {settings.MAX_GRADE}",
            details={"grade": grade},
        )


def default_mastery_requirements(grade: int) -> MasteryRequirements:
    """Built-in thresholds for ``grade``.

    Grades outside the table take the nearest listed grade's thresholds; of
    those, only the final configured grade requires the end-year assessment.
    """
    if grade in DEFAULT_MASTERY_REQUIREMENTS:
        return DEFAULT_MASTERY_REQUIREMENTS[grade]
    nearest = min(DEFAULT_MASTERY_REQUIREMENTS, key=lambda g: abs(g - grade))
    return replace(
        DEFAULT_MASTERY_REQUIREMENTS[nearest],
        end_year_assessment_required=grade == settings.MAX_GRADE,
    )


def resolve_mastery_requirements(db: Session, tenant_id: uuid.UUID, grade: int) -> MasteryRequirements:
    """Tenant override for ``grade`` merged over the defaults, read at call time."""
    default = default_mastery_requirements(grade)
    row = db.execute(
        select(MasteryRequirementConfig).where(
            MasteryRequirementConfig.tenant_id == tenant_id,
            MasteryRequirementConfig.grade == grade,
        )
    ).scalar_one_or_none()
    if row is None:
        return default
    return MasteryRequirements(
        min_quests_completed=(
            row.min_quests_completed if row.min_quests_completed is not None else default.min_quests_completed
        ),
        min_assessments_completed=(
            row.min_assessments_completed
            if row.min_assessments_completed is not None
            else default.min_assessments_completed
        ),
        min_average_skill_score=(
            row.min_average_skill_score
            if row.min_average_skill_score is not None
            else default.min_average_skill_score
        ),
        end_year_assessment_required=row.end_year_assessment_required,
    )


def upsert_mastery_requirements(
    db: Session,
    tenant_id: uuid.UUID,
    grade: int,
    *,
    min_quests_completed: int | None,
    min_assessments_completed: int | None,
    min_average_skill_score: float | None,
    end_year_assessment_required: bool,
) -> MasteryRequirements:
    check_grade(grade)
    with storage_boundary(db, "update mastery requirements"):
        row = db.execute(
            select(MasteryRequirementConfig).where(
                MasteryRequirementConfig.tenant_id == tenant_id,
                MasteryRequirementConfig.grade == grade,
            )
        ).scalar_one_or_none()
        if row is None:
            row = MasteryRequirementConfig(tenant_id=tenant_id, grade=grade)
            db.add(row)
        row.min_quests_completed = min_quests_completed
        row.min_assessments_completed = min_assessments_completed
        row.min_average_skill_score = min_average_skill_score
        row.end_year_assessment_required = end_year_assessment_required
        db.commit()
    logger.info("Mastery requirements for tenant %s grade %d updated", tenant_id, grade)
    return resolve_mastery_requirements(db, tenant_id, grade)


# ── Evaluation ────────────────────────────────────────────────────────────────


def _completed_count(db: Session, student_id: uuid.UUID, grade: int, kind: SubjectKindEnum) -> int:
    return db.execute(
        select(func.count(Attempt.id)).where(
            Attempt.student_id == student_id,
            Attempt.subject_kind == kind,
            Attempt.status == AttemptStatusEnum.COMPLETED,
            Attempt.grade_at_time_of_attempt == grade,
        )
    ).scalar_one()


def _end_year_done(db: Session, student_id: uuid.UUID, grade: int) -> bool:
    count = db.execute(
        select(func.count(Attempt.id)).where(
            Attempt.student_id == student_id,
            Attempt.status == AttemptStatusEnum.COMPLETED,
            Attempt.grade_at_time_of_attempt == grade,
            Attempt.is_end_year_assessment.is_(True),
        )
    ).scalar_one()
    return count > 0


def average_skill_score(db: Session, student_id: uuid.UUID) -> float:
    avg = db.execute(
        select(func.avg(SkillScore.score)).where(SkillScore.student_id == student_id)
    ).scalar_one()
    return round(float(avg), 2) if avg is not None else 0.0


def mastery_progress(db: Session, student: StudentProfile, grade: int) -> tuple[bool, list[dict]]:
    """Evaluate hard completion for ``grade`` against the current requirements."""
    reqs = resolve_mastery_requirements(db, student.tenant_id, grade)
    quests = _completed_count(db, student.id, grade, SubjectKindEnum.QUEST)
    assessments = _completed_count(db, student.id, grade, SubjectKindEnum.ASSESSMENT)
    avg = average_skill_score(db, student.id)

    progress = [
        {"requirement": "quests_completed", "required": reqs.min_quests_completed,
         "current": quests, "met": quests >= reqs.min_quests_completed},
        {"requirement": "assessments_completed", "required": reqs.min_assessments_completed,
         "current": assessments, "met": assessments >= reqs.min_assessments_completed},
        {"requirement": "average_skill_score", "required": reqs.min_average_skill_score,
         "current": avg, "met": avg >= reqs.min_average_skill_score},
    ]
    if reqs.end_year_assessment_required:
        done = _end_year_done(db, student.id, grade)
        progress.append({"requirement": "end_year_assessment", "required": 1,
                         "current": int(done), "met": done})
    return all(p["met"] for p in progress), progress


def open_journey(db: Session, student_id: uuid.UUID) -> GradeJourney:
    journey = db.execute(
        select(GradeJourney).where(
            GradeJourney.student_id == student_id,
            GradeJourney.completion_status == GradeStatusEnum.IN_PROGRESS,
        )
    ).scalar_one_or_none()
    if journey is None:
        raise InvalidStateError("Student has no open grade journey")
    return journey


def list_journeys(db: Session, student_id: uuid.UUID) -> list[GradeJourney]:
    return list(
        db.execute(
            select(GradeJourney)
            .where(GradeJourney.student_id == student_id)
            .order_by(GradeJourney.start_date.desc())
        ).scalars()
    )


def get_grade_status(db: Session, student: StudentProfile, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    journey = open_journey(db, student.id)
    cfg = resolve_year_settings(db, student.tenant_id)
    window = academic_year_window(cfg, ensure_aware(journey.start_date))

    soft_eligible = now > window.end
    hard_eligible, progress = mastery_progress(db, student, student.current_grade)
    at_max = student.current_grade >= settings.MAX_GRADE
    return {
        "current_grade": student.current_grade,
        "next_grade": None if at_max else student.current_grade + 1,
        "academic_year_window": {"start": window.start, "end": window.end, "label": window.label},
        "soft_eligible": soft_eligible,
        "can_promote": soft_eligible and not at_max,
        "days_until_eligible": 0 if soft_eligible else days_until(window.end, now),
        "hard_eligible": hard_eligible,
        "mastery_requirements_progress": progress,
        "journeys": list_journeys(db, student.id),
    }


# ── Promotion ─────────────────────────────────────────────────────────────────


def build_summary_snapshot(
    db: Session,
    student: StudentProfile,
    grade: int,
    hard_met: bool,
    progress: list[dict],
    closed_at: datetime,
) -> dict:
    skills = db.execute(select(SkillScore).where(SkillScore.student_id == student.id)).scalars()
    careers = db.execute(
        select(CareerUnlock.career_id).where(CareerUnlock.student_id == student.id)
    ).scalars()
    level = player_level_for_xp(student.total_xp)
    return {
        "grade": grade,
        "skill_scores": [
            {"category": s.category.value, "score": s.score, "level": s.level.value,
             "trend": s.trend.value, "xp": s.xp}
            for s in skills
        ],
        "total_xp": student.total_xp,
        "player_level": {"level": level.level, "title": level.title},
        "career_unlocks": sorted(careers),
        "assessments_completed": _completed_count(db, student.id, grade, SubjectKindEnum.ASSESSMENT),
        "quests_completed": _completed_count(db, student.id, grade, SubjectKindEnum.QUEST),
        "mastery": {"met": hard_met, "requirements": progress},
        "closed_at": closed_at.isoformat(),
    }


def promote_grade(db: Session, student: StudentProfile, now: datetime | None = None) -> dict:
    """Close the open journey and open the next grade's, in one transaction."""
    now = now or datetime.now(timezone.utc)
    grade = student.current_grade
    if grade >= settings.MAX_GRADE:
        raise ConflictError(
            f"Already at the final grade ({settings.MAX_GRADE})",
            details={"current_grade": grade},
        )

    journey = open_journey(db, student.id)
    cfg = resolve_year_settings(db, student.tenant_id)
    window = academic_year_window(cfg, ensure_aware(journey.start_date))
    if not now > window.end:
        raise ConflictError(
            "The academic year has not ended yet",
            details={
                "academic_year_end": window.end.isoformat(),
                "days_until_eligible": days_until(window.end, now),
            },
        )

    with storage_boundary(db, "promote grade"):
        hard_met, progress = mastery_progress(db, student, grade)

        badge = None
        if hard_met:
            badge = db.execute(
                select(GradeMasteryBadge).where(
                    GradeMasteryBadge.student_id == student.id,
                    GradeMasteryBadge.grade == grade,
                    GradeMasteryBadge.badge_type == BadgeTypeEnum.MASTERY,
                )
            ).scalar_one_or_none()
            if badge is None:
                reqs = resolve_mastery_requirements(db, student.tenant_id, grade)
                badge = GradeMasteryBadge(
                    tenant_id=student.tenant_id,
                    student_id=student.id,
                    grade=grade,
                    badge_type=BadgeTypeEnum.MASTERY,
                    grade_journey_id=journey.id,
                    requirements=asdict(reqs),
                    met_requirements=[p["requirement"] for p in progress if p["met"]],
                    awarded_at=now,
                )
                db.add(badge)

        completion = CompletionTypeEnum.HARD if hard_met else CompletionTypeEnum.SOFT
        snapshot = build_summary_snapshot(db, student, grade, hard_met, progress, now)
        closed = db.execute(
            update(GradeJourney)
            .where(
                GradeJourney.id == journey.id,
                GradeJourney.completion_status == GradeStatusEnum.IN_PROGRESS,
            )
            .values(
                end_date=now,
                completion_status=GradeStatusEnum.COMPLETED,
                completion_type=completion,
                open_journey_key=None,
                summary_snapshot=snapshot,
            )
            .execution_options(synchronize_session=False)
        )
        if closed.rowcount != 1:
            db.rollback()
            raise ConflictError("Grade journey was already closed by another request")

        new_journey = GradeJourney(
            tenant_id=student.tenant_id,
            student_id=student.id,
            grade=grade + 1,
            start_date=now,
            completion_status=GradeStatusEnum.IN_PROGRESS,
            open_journey_key=OPEN_JOURNEY_KEY,
            summary_snapshot={},
        )
        db.add(new_journey)
        student.current_grade = grade + 1
        db.commit()

    db.refresh(journey)
    logger.info(
        "Promoted student %s from grade %d to %d (%s)",
        student.id, grade, grade + 1, completion.value,
    )
    return {
        "closed_journey": journey,
        "new_journey": new_journey,
        "badge_awarded": badge,
    }
