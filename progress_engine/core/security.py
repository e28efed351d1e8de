"""JWT identity tokens.

The engine never authenticates users itself: the external auth service issues
a token carrying the ``(tenant_id, user_id, role)`` triple and the engine
trusts it once the signature checks out.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from progress_engine.config import settings
from progress_engine.db.models import RoleEnum


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as supplied by the identity/tenant provider."""

    tenant_id: uuid.UUID
    user_id: uuid.UUID
    role: RoleEnum

    @property
    def is_student(self) -> bool:
        return self.role == RoleEnum.STUDENT

    @property
    def is_admin(self) -> bool:
        return self.role in (RoleEnum.SCHOOL_ADMIN, RoleEnum.PLATFORM_ADMIN)


# ── JWT tokens ────────────────────────────────────────────────────────────────


def create_access_token(
    data: dict,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_identity_token(identity: Identity, expires_delta: timedelta | None = None) -> str:
    """Encode an identity triple as a bearer token."""
    return create_access_token(
        {
            "sub": str(identity.user_id),
            "tenant_id": str(identity.tenant_id),
            "role": identity.role.value,
        },
        expires_delta=expires_delta,
    )


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT. Returns payload dict or None on failure."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def identity_from_payload(payload: dict) -> Identity | None:
    """Build an Identity from decoded claims, or None if any claim is missing/bad."""
    try:
        return Identity(
            tenant_id=uuid.UUID(payload["tenant_id"]),
            user_id=uuid.UUID(payload["sub"]),
            role=RoleEnum(payload["role"]),
        )
    except (KeyError, ValueError, TypeError):
        return None
