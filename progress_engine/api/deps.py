"""FastAPI dependencies shared across routes."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from progress_engine.core.errors import PermissionDeniedError
from progress_engine.core.security import Identity, decode_access_token, identity_from_payload
from progress_engine.db.models import StudentProfile
from progress_engine.db.session import get_db
from progress_engine.services.students import get_or_create_student

bearer_scheme = HTTPBearer(auto_error=False)


def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity:
    """Decode the bearer JWT into the caller's identity, or 401."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    identity = identity_from_payload(payload)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload"
        )
    return identity


def get_current_student(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> StudentProfile:
    """The calling student's profile (provisioned on first access), or 403."""
    return get_or_create_student(db, identity)


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """Raise 403 unless the caller is a school or platform admin."""
    if not identity.is_admin:
        raise PermissionDeniedError("Admin access required")
    return identity
