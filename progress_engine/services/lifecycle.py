"""Attempt lifecycle: start, autosave, submit, abandon.

Every state transition out of IN_PROGRESS is a status-guarded conditional
UPDATE (``… WHERE status = 'IN_PROGRESS'``). Whoever changes the row wins;
a concurrent caller sees ``rowcount == 0`` and re-reads the stored outcome.
``open_subject_key`` is cleared in the same UPDATE, which releases the
"one open attempt per subject" unique constraint.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from progress_engine.catalog import get_career, resolve_subject
from progress_engine.config import settings
from progress_engine.core.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from progress_engine.db.models import (
    Attempt,
    AttemptStatusEnum,
    StudentProfile,
    SubjectKindEnum,
)
from progress_engine.services.career_unlocks import unlock_careers
from progress_engine.services.content import ContentProvider, get_content_provider, public_items
from progress_engine.services.leveling import PLAYER_LEVELS, calculate_xp, leveled_up, player_level_for_xp
from progress_engine.services.rate_limiter import allow_autosave
from progress_engine.services.scoring import (
    apply_skill_updates,
    build_evidence,
    build_raw_scores,
    normalize_scores,
    parse_telemetry_summary,
    validate_answers,
)
from progress_engine.services.store import ensure_aware, storage_boundary

logger = logging.getLogger(__name__)

MAX_TELEMETRY_EVENTS = 500

ABANDON_USER = "user"
ABANDON_TIMEOUT = "timeout"


@dataclass(frozen=True)
class AutosaveReceipt:
    saved: bool
    reason: str | None = None


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def _timeout() -> timedelta:
    return timedelta(minutes=settings.ATTEMPT_TIMEOUT_MINUTES)


def is_timed_out(attempt: Attempt, now: datetime) -> bool:
    return ensure_aware(attempt.started_at) + _timeout() < now


def _owned_attempt(db: Session, student: StudentProfile, attempt_id: uuid.UUID) -> Attempt:
    attempt = db.get(Attempt, attempt_id)
    if attempt is None or attempt.student_id != student.id:
        raise NotFoundError("Attempt not found", details={"attempt_id": str(attempt_id)})
    return attempt


def _claim(db: Session, attempt_id: uuid.UUID, **values: Any) -> bool:
    """Move an IN_PROGRESS attempt to a terminal state; False if it already left."""
    result = db.execute(
        update(Attempt)
        .where(Attempt.id == attempt_id, Attempt.status == AttemptStatusEnum.IN_PROGRESS)
        .values(open_subject_key=None, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _abandon_values(reason: str, now: datetime) -> dict:
    return {
        "status": AttemptStatusEnum.ABANDONED,
        "abandoned_at": now,
        "abandon_reason": reason,
    }


# ── start ─────────────────────────────────────────────────────────────────────


def start_attempt(
    db: Session,
    student: StudentProfile,
    subject_id: str,
    subject_kind: SubjectKindEnum,
    *,
    end_of_year: bool = False,
    now: datetime | None = None,
    provider: ContentProvider | None = None,
) -> dict:
    now = _now(now)
    subject = resolve_subject(subject_id, subject_kind)
    grade = student.current_grade
    if not subject.applies_to(grade):
        raise ValidationError(
            f"'{subject_id}' is not available for grade {grade}",
            details={"subject_id": subject_id, "grade": grade},
        )
    if end_of_year and subject_kind != SubjectKindEnum.ASSESSMENT:
        raise ValidationError("Only assessments can be end-of-year assessments")

    open_attempt = db.execute(
        select(Attempt).where(
            Attempt.student_id == student.id,
            Attempt.subject_id == subject_id,
            Attempt.status == AttemptStatusEnum.IN_PROGRESS,
        )
    ).scalar_one_or_none()
    stale_id = None
    if open_attempt is not None:
        if not is_timed_out(open_attempt, now):
            raise ConflictError(
                "An attempt for this subject is already in progress",
                details={"attempt_id": str(open_attempt.id)},
            )
        stale_id = open_attempt.id

    prior = db.execute(
        select(func.count(Attempt.id)).where(
            Attempt.student_id == student.id, Attempt.subject_id == subject_id
        )
    ).scalar_one()
    attempt_number = prior + 1

    if subject_kind == SubjectKindEnum.ASSESSMENT:
        count = settings.ASSESSMENT_ITEM_COUNT
    else:
        count = settings.QUEST_ITEM_COUNT
    provider = provider or get_content_provider()
    items = provider.items_for(subject, grade, seed=f"{student.id}:{attempt_number}", count=count)

    with storage_boundary(db, "start attempt"):
        if stale_id is not None and _claim(db, stale_id, **_abandon_values(ABANDON_TIMEOUT, now)):
            logger.info("Abandoned timed-out attempt %s before restart", stale_id)
        attempt = Attempt(
            tenant_id=student.tenant_id,
            student_id=student.id,
            subject_id=subject_id,
            subject_kind=subject_kind,
            attempt_number=attempt_number,
            status=AttemptStatusEnum.IN_PROGRESS,
            open_subject_key=subject_id,
            items=items,
            progress_state={},
            telemetry={"events": []},
            raw_scores={},
            normalized_scores={},
            grade_at_time_of_attempt=grade,
            is_end_year_assessment=end_of_year,
            quest_tags=list(getattr(subject, "tags", ())),
            started_at=now,
        )
        db.add(attempt)
        db.commit()

    logger.info(
        "Started attempt %s (%s #%d) for student %s",
        attempt.id, subject_id, attempt_number, student.id,
    )
    return {
        "attempt_id": attempt.id,
        "attempt_number": attempt_number,
        "subject_id": subject_id,
        "subject_kind": subject_kind,
        "status": AttemptStatusEnum.IN_PROGRESS,
        "items": public_items(items),
        "time_limit_seconds": settings.ATTEMPT_TIMEOUT_MINUTES * 60,
        "started_at": now,
    }


# ── autosave ──────────────────────────────────────────────────────────────────


def record_progress(
    db: Session,
    student: StudentProfile,
    attempt_id: uuid.UUID,
    state: dict | None,
    telemetry_events: list[dict] | None = None,
    now: datetime | None = None,
) -> AutosaveReceipt:
    """Best-effort autosave. Never raises and never changes status."""
    now = _now(now)
    try:
        attempt = db.get(Attempt, attempt_id)
        if attempt is None or attempt.student_id != student.id:
            return AutosaveReceipt(False, "not_found")
        if attempt.status != AttemptStatusEnum.IN_PROGRESS:
            return AutosaveReceipt(False, "not_in_progress")
        if not allow_autosave(attempt_id):
            return AutosaveReceipt(False, "throttled")

        progress_state = {**(attempt.progress_state or {}), **(state or {})}
        telemetry = dict(attempt.telemetry or {})
        stamped = [{**event, "recorded_at": now.isoformat()} for event in (telemetry_events or [])]
        telemetry["events"] = [*telemetry.get("events", []), *stamped][-MAX_TELEMETRY_EVENTS:]

        result = db.execute(
            update(Attempt)
            .where(Attempt.id == attempt_id, Attempt.status == AttemptStatusEnum.IN_PROGRESS)
            .values(progress_state=progress_state, telemetry=telemetry, last_saved_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if result.rowcount != 1:
            return AutosaveReceipt(False, "not_in_progress")
        return AutosaveReceipt(True)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Autosave for attempt %s dropped: %s", attempt_id, e)
        return AutosaveReceipt(False, "storage_unavailable")


# ── submit ────────────────────────────────────────────────────────────────────


def _unlock_summary(unlock) -> dict:
    career = get_career(unlock.career_id)
    return {
        "career_id": unlock.career_id,
        "title": career.title if career else unlock.career_id,
        "rarity_tier": career.rarity_tier.value if career else None,
        "reason": unlock.reason,
        "confidence": unlock.confidence,
        "linked_skills": unlock.linked_skills,
    }


def _stored_result(db: Session, attempt: Attempt) -> dict:
    db.refresh(attempt)
    if attempt.status == AttemptStatusEnum.COMPLETED and attempt.result is not None:
        return attempt.result
    raise InvalidStateError(
        f"Attempt is {attempt.status.value.lower()} and cannot be submitted",
        details={"attempt_id": str(attempt.id), "status": attempt.status.value},
    )


def submit_attempt(
    db: Session,
    student: StudentProfile,
    attempt_id: uuid.UUID,
    answers: list[Any],
    telemetry_summary: dict | None = None,
    now: datetime | None = None,
) -> dict:
    """Score a submission and apply its effects exactly once.

    Replaying the submit of a completed attempt returns the stored result.
    """
    now = _now(now)
    attempt = _owned_attempt(db, student, attempt_id)
    if attempt.status != AttemptStatusEnum.IN_PROGRESS:
        return _stored_result(db, attempt)

    items = attempt.items or []
    validate_answers(items, answers)
    summary = parse_telemetry_summary(telemetry_summary)

    raw = build_raw_scores(items, answers, summary)
    normalized = normalize_scores(raw)
    xp = calculate_xp(raw["accuracy"], summary["time_spent"], raw["answered_count"], summary["hints_used"])
    evidence = build_evidence(raw, normalized)

    with storage_boundary(db, "submit attempt"):
        if not _claim(db, attempt.id, status=AttemptStatusEnum.COMPLETED, completed_at=now):
            db.rollback()
            logger.info("Attempt %s already left IN_PROGRESS; returning stored outcome", attempt.id)
            return _stored_result(db, attempt)

        leveled_skills = apply_skill_updates(db, attempt, normalized, xp, now)

        db.execute(
            update(StudentProfile)
            .where(StudentProfile.id == student.id)
            .values(total_xp=StudentProfile.total_xp + xp)
            .execution_options(synchronize_session=False)
        )
        db.refresh(student, ["total_xp"])
        total_xp = student.total_xp

        unlocks = unlock_careers(db, student, source_attempt_id=attempt.id, now=now)
        level = player_level_for_xp(total_xp)
        result = {
            "attempt_id": str(attempt.id),
            "status": AttemptStatusEnum.COMPLETED.value,
            "raw_scores": raw,
            "normalized_scores": normalized,
            "xp_gained": xp,
            "total_xp": total_xp,
            "player_level": {"level": level.level, "title": level.title},
            "leveled_up": leveled_up(total_xp - xp, total_xp, PLAYER_LEVELS),
            "new_unlocks": [_unlock_summary(u) for u in unlocks],
            "leveled_up_skills": leveled_skills,
            "evidence": evidence,
        }

        attempt.answers = list(answers)
        attempt.telemetry = {**(attempt.telemetry or {}), "summary": summary}
        attempt.raw_scores = raw
        attempt.normalized_scores = normalized
        attempt.xp_awarded = xp
        attempt.result = result
        db.commit()

    logger.info(
        "Submitted attempt %s: accuracy=%.2f xp=%d unlocks=%d",
        attempt.id, raw["accuracy"], xp, len(result["new_unlocks"]),
    )
    _dispatch_narrative(attempt.id)
    return result


def _dispatch_narrative(attempt_id: uuid.UUID) -> None:
    if not settings.NARRATIVE_SERVICE_URL:
        return
    from progress_engine.tasks import request_attempt_narrative

    try:
        request_attempt_narrative.delay(str(attempt_id))
    except Exception as e:
        # the submit is already committed; a lost narrative request is not fatal
        logger.warning("Could not queue narrative for attempt %s: %s", attempt_id, e)


# ── abandon ───────────────────────────────────────────────────────────────────


def abandon_attempt(
    db: Session,
    student: StudentProfile,
    attempt_id: uuid.UUID,
    reason: str = ABANDON_USER,
    now: datetime | None = None,
) -> Attempt:
    """IN_PROGRESS → ABANDONED. Repeating it is a no-op; completed attempts refuse."""
    now = _now(now)
    attempt = _owned_attempt(db, student, attempt_id)
    if attempt.status == AttemptStatusEnum.ABANDONED:
        return attempt
    if attempt.status == AttemptStatusEnum.COMPLETED:
        raise InvalidStateError(
            "A completed attempt cannot be abandoned",
            details={"attempt_id": str(attempt.id)},
        )

    with storage_boundary(db, "abandon attempt"):
        claimed = _claim(db, attempt.id, **_abandon_values(reason, now))
        db.commit()
    db.refresh(attempt)
    if not claimed and attempt.status == AttemptStatusEnum.COMPLETED:
        raise InvalidStateError(
            "A completed attempt cannot be abandoned",
            details={"attempt_id": str(attempt.id)},
        )
    logger.info("Abandoned attempt %s (%s)", attempt.id, reason)
    return attempt


def abandon_stale_attempts(db: Session, now: datetime | None = None) -> int:
    """Abandon every IN_PROGRESS attempt older than the timeout, across tenants."""
    now = _now(now)
    cutoff = now - _timeout()
    with storage_boundary(db, "abandon stale attempts"):
        stale_ids = list(
            db.execute(
                select(Attempt.id).where(
                    Attempt.status == AttemptStatusEnum.IN_PROGRESS,
                    Attempt.started_at < cutoff,
                )
            ).scalars()
        )
        abandoned = sum(
            1 for attempt_id in stale_ids
            if _claim(db, attempt_id, **_abandon_values(ABANDON_TIMEOUT, now))
        )
        db.commit()
    if abandoned:
        logger.info("Abandoned %d timed-out attempt(s)", abandoned)
    return abandoned


# ── reads ─────────────────────────────────────────────────────────────────────


def get_attempt(db: Session, student: StudentProfile, attempt_id: uuid.UUID) -> Attempt:
    return _owned_attempt(db, student, attempt_id)


def list_attempts(
    db: Session,
    student: StudentProfile,
    *,
    subject_id: str | None = None,
    status: AttemptStatusEnum | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[Attempt]:
    stmt = select(Attempt).where(Attempt.student_id == student.id)
    if subject_id:
        stmt = stmt.where(Attempt.subject_id == subject_id)
    if status:
        stmt = stmt.where(Attempt.status == status)
    stmt = stmt.order_by(Attempt.started_at.desc()).offset(skip).limit(limit)
    return list(db.execute(stmt).scalars())
