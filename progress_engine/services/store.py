"""Storage boundary helpers shared by the domain services."""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from progress_engine.core.errors import ConflictError, TransientStorageError

logger = logging.getLogger(__name__)


def ensure_aware(dt: datetime | None) -> datetime | None:
    """Treat naive datetimes read back from the database as UTC."""
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


@contextmanager
def storage_boundary(db: Session, operation: str) -> Iterator[None]:
    """Roll back and translate SQLAlchemy failures into domain errors.

    Unique-constraint violations become ``ConflictError``; connection-level
    failures become the retryable ``TransientStorageError``.
    """
    try:
        yield
    except IntegrityError as e:
        db.rollback()
        logger.info("%s hit a uniqueness conflict: %s", operation, e.orig)
        raise ConflictError(f"{operation} conflicts with existing data") from e
    except (OperationalError, DBAPIError) as e:
        db.rollback()
        logger.error("%s failed at the storage layer: %s", operation, e)
        raise TransientStorageError(
            "Storage temporarily unavailable, please retry",
            details={"operation": operation},
        ) from e
