"""Celery application — background jobs for the progress engine."""

from celery import Celery

from progress_engine.config import settings

celery_app = Celery(
    "progress_engine",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # Run tasks synchronously in-process when True (dev default, no Redis needed).
    # Set CELERY_TASK_ALWAYS_EAGER=false in .env when running a real worker.
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=True,
    beat_schedule={
        "abandon-stale-attempts": {
            "task": "abandon_stale_attempts",
            "schedule": 15 * 60.0,
        },
    },
)

celery_app.autodiscover_tasks(["progress_engine"])
