"""Student profiles: provisioning on first access and tenant-scoped lookup."""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from progress_engine.config import settings
from progress_engine.core.errors import NotFoundError, PermissionDeniedError
from progress_engine.core.security import Identity
from progress_engine.db.models import GradeJourney, GradeStatusEnum, RoleEnum, StudentProfile
from progress_engine.services.store import storage_boundary

logger = logging.getLogger(__name__)

OPEN_JOURNEY_KEY = "open"


def require_student(identity: Identity) -> None:
    if not identity.is_student:
        raise PermissionDeniedError("Only students can perform this action")


def _find_profile(db: Session, tenant_id: uuid.UUID, user_id: uuid.UUID) -> StudentProfile | None:
    return db.execute(
        select(StudentProfile).where(
            StudentProfile.tenant_id == tenant_id,
            StudentProfile.user_id == user_id,
        )
    ).scalar_one_or_none()


def get_or_create_student(
    db: Session,
    identity: Identity,
    now: datetime | None = None,
) -> StudentProfile:
    """Return the caller's profile, creating it (and its first journey) if needed."""
    require_student(identity)
    profile = _find_profile(db, identity.tenant_id, identity.user_id)
    if profile is not None:
        return profile

    now = now or datetime.now(timezone.utc)
    with storage_boundary(db, "provision student"):
        try:
            profile = StudentProfile(
                tenant_id=identity.tenant_id,
                user_id=identity.user_id,
                current_grade=settings.DEFAULT_GRADE,
                total_xp=0,
                created_at=now,
            )
            db.add(profile)
            db.flush()
            db.add(
                GradeJourney(
                    tenant_id=identity.tenant_id,
                    student_id=profile.id,
                    grade=settings.DEFAULT_GRADE,
                    start_date=now,
                    completion_status=GradeStatusEnum.IN_PROGRESS,
                    open_journey_key=OPEN_JOURNEY_KEY,
                    summary_snapshot={},
                )
            )
            db.commit()
        except IntegrityError:
            # provisioned concurrently by another request
            db.rollback()
            profile = _find_profile(db, identity.tenant_id, identity.user_id)
            if profile is None:
                raise
            return profile

    logger.info("Provisioned student %s (tenant %s) at grade %d", profile.id, identity.tenant_id, profile.current_grade)
    return profile


def get_student_for_viewer(db: Session, identity: Identity, student_id: uuid.UUID) -> StudentProfile:
    """Load a student another caller wants to read, enforcing tenant scope.

    Students may only read themselves; parents, teachers and admins may read
    any student in their tenant. Cross-tenant ids look like missing ones.
    """
    profile = db.get(StudentProfile, student_id)
    if profile is None or profile.tenant_id != identity.tenant_id:
        raise NotFoundError("Student not found", details={"student_id": str(student_id)})
    if identity.role == RoleEnum.STUDENT and profile.user_id != identity.user_id:
        raise PermissionDeniedError("Students can only view their own progress")
    return profile
