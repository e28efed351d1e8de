"""Shared / generic schemas."""

from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error envelope.

    ``retryable`` is true only for transient failures (storage or upstream
    outages); the client should then offer a retry rather than a dead end.
    """

    success: bool = False
    error_code: str
    message: str
    details: dict[str, Any] | None = None
    retryable: bool = False
