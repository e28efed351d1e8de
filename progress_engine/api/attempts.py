"""Attempt lifecycle routes: start, autosave, submit, abandon, history."""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from progress_engine.api.deps import get_current_student
from progress_engine.db.models import AttemptStatusEnum, StudentProfile
from progress_engine.db.session import get_db
from progress_engine.schemas.attempt import (
    AttemptAbandon,
    AttemptDetailRead,
    AttemptRead,
    AttemptResult,
    AttemptStart,
    AttemptStarted,
    AttemptSubmit,
    AutosaveReceiptRead,
    ProgressUpdate,
)
from progress_engine.services import lifecycle

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/start", response_model=AttemptStarted, status_code=status.HTTP_201_CREATED)
def start_attempt(
    body: AttemptStart,
    student: StudentProfile = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    """Start a new attempt; 409 if one is already open for the subject."""
    return lifecycle.start_attempt(
        db,
        student,
        body.subject_id,
        body.subject_kind,
        end_of_year=body.end_of_year,
    )


@router.put(
    "/{attempt_id}/progress",
    response_model=AutosaveReceiptRead,
    status_code=status.HTTP_202_ACCEPTED,
)
def record_progress(
    attempt_id: uuid.UUID,
    body: ProgressUpdate,
    student: StudentProfile = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    """Autosave. Always 202: a dropped save is reported in the receipt, never as an error."""
    receipt = lifecycle.record_progress(db, student, attempt_id, body.state, body.telemetry)
    return AutosaveReceiptRead(saved=receipt.saved, reason=receipt.reason)


@router.post("/{attempt_id}/submit", response_model=AttemptResult)
def submit_attempt(
    attempt_id: uuid.UUID,
    body: AttemptSubmit,
    student: StudentProfile = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    """Score the attempt. Resubmitting a completed attempt returns the stored result."""
    return lifecycle.submit_attempt(db, student, attempt_id, body.answers, body.telemetry)


@router.post("/{attempt_id}/abandon", response_model=AttemptRead)
def abandon_attempt(
    attempt_id: uuid.UUID,
    body: AttemptAbandon | None = None,
    student: StudentProfile = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    reason = body.reason if body else lifecycle.ABANDON_USER
    return lifecycle.abandon_attempt(db, student, attempt_id, reason=reason)


@router.get("/", response_model=list[AttemptRead])
def list_attempts(
    subject_id: str | None = None,
    attempt_status: AttemptStatusEnum | None = Query(default=None, alias="status"),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    student: StudentProfile = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    """The student's attempts, newest first."""
    return lifecycle.list_attempts(
        db, student, subject_id=subject_id, status=attempt_status, skip=skip, limit=limit
    )


@router.get("/{attempt_id}", response_model=AttemptDetailRead)
def get_attempt(
    attempt_id: uuid.UUID,
    student: StudentProfile = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    """One attempt with its items; expected answers are not part of ItemRead."""
    return lifecycle.get_attempt(db, student, attempt_id)
