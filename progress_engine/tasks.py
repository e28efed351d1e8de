"""Background tasks executed by Celery workers."""

import logging
import uuid

import httpx

from progress_engine.celery_app import celery_app
from progress_engine.db.models import Attempt, AttemptStatusEnum
from progress_engine.db.session import get_session_factory
from progress_engine.services.lifecycle import abandon_stale_attempts as sweep_stale_attempts
from progress_engine.services.service_clients import get_narrative_client

logger = logging.getLogger(__name__)


@celery_app.task(name="abandon_stale_attempts")
def abandon_stale_attempts() -> dict:
    """Abandon IN_PROGRESS attempts older than ATTEMPT_TIMEOUT_MINUTES."""
    factory = get_session_factory()
    db = factory()
    try:
        count = sweep_stale_attempts(db)
        return {"success": True, "abandoned": count}
    finally:
        db.close()


@celery_app.task(bind=True, name="request_attempt_narrative", max_retries=3)
def request_attempt_narrative(self, attempt_id: str) -> dict:
    """Send a completed attempt's structured evidence to the narrative service.

    Steps:
        1. Load the completed attempt
        2. POST its scores and evidence to the narrative generator
    """
    client = get_narrative_client()
    if client is None:
        return {"success": False, "error": "narrative_service_not_configured"}

    factory = get_session_factory()
    db = factory()
    try:
        attempt = db.get(Attempt, uuid.UUID(attempt_id))
        if attempt is None or attempt.status != AttemptStatusEnum.COMPLETED:
            logger.error("Attempt %s not completed — skipping narrative", attempt_id)
            return {"success": False, "error": "attempt_not_completed"}

        payload = {
            "attempt_id": str(attempt.id),
            "tenant_id": str(attempt.tenant_id),
            "student_id": str(attempt.student_id),
            "subject_id": attempt.subject_id,
            "subject_kind": attempt.subject_kind.value,
            "grade": attempt.grade_at_time_of_attempt,
            "raw_scores": attempt.raw_scores,
            "normalized_scores": attempt.normalized_scores,
            "evidence": (attempt.result or {}).get("evidence", {}),
        }
        result = client.request_narrative(payload)
        logger.info("Narrative requested for attempt %s", attempt_id)
        return {"success": True, "attempt_id": attempt_id, "narrative": result}

    except httpx.HTTPError as exc:
        logger.warning("Narrative request failed for attempt %s: %s", attempt_id, exc)
        # Retry with exponential back-off (10s, 30s, 90s)
        raise self.retry(exc=exc, countdown=10 * (3**self.request.retries))

    finally:
        db.close()
