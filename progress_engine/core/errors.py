"""Domain error taxonomy shared by services and the API layer.

Services raise these; ``main.py`` renders every ``EngineError`` into the
standard ``ErrorResponse`` envelope. ``retryable`` tells the client whether to
offer a retry affordance or send the user back to a consistent screen.
"""

from typing import Any


class EngineError(Exception):
    """Base class for all learning-progress-engine errors."""

    error_code = "ENGINE_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(EngineError):
    error_code = "NOT_FOUND"
    status_code = 404


class PermissionDeniedError(EngineError):
    error_code = "FORBIDDEN"
    status_code = 403


class ConflictError(EngineError):
    """A precondition on stored state is violated (e.g. attempt already open)."""

    error_code = "CONFLICT"
    status_code = 409


class InvalidStateError(EngineError):
    """Operation attempted on an attempt/journey in the wrong lifecycle state."""

    error_code = "INVALID_STATE"
    status_code = 409


class ValidationError(EngineError):
    """Malformed input; stored state is untouched and a retry is safe."""

    error_code = "VALIDATION_ERROR"
    status_code = 422


class TransientStorageError(EngineError):
    """Storage boundary failure; the caller may retry the whole operation."""

    error_code = "STORAGE_UNAVAILABLE"
    status_code = 503
    retryable = True


class UpstreamUnavailableError(EngineError):
    """An external collaborator (content or narrative service) failed."""

    error_code = "UPSTREAM_UNAVAILABLE"
    status_code = 503
    retryable = True
