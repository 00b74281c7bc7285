"""Application error kinds and the HTTP status each one maps to."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List


class ErrorCode(Enum):
    """Error kinds raised by repositories, services and the maintainer."""

    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    DUPLICATE_KEY = "DUPLICATE_KEY"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    NOT_REGISTERED = "NOT_REGISTERED"
    UNAUTHORIZED = "UNAUTHORIZED"
    DELETE_BLOCKED = "DELETE_BLOCKED"
    CONFLICT = "CONFLICT"
    DERIVED_STATE_FAILED = "DERIVED_STATE_FAILED"


STATUS_CODES: Dict[ErrorCode, int] = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.VALIDATION_FAILED: 400,
    ErrorCode.DUPLICATE_KEY: 400,
    ErrorCode.REGISTRATION_CLOSED: 400,
    ErrorCode.NOT_REGISTERED: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.DELETE_BLOCKED: 400,
    ErrorCode.CONFLICT: 409,
    ErrorCode.DERIVED_STATE_FAILED: 500,
}


@dataclass(eq=False)
class AppError(Exception):
    """Base error with a code, a user-safe message and optional field errors."""

    code: ErrorCode
    message: str
    errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.code]

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class NotFoundError(AppError):
    """Raised when an id has no matching document."""

    def __init__(self, resource: str = "Resource", message: str = "") -> None:
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=message or f"{resource} not found",
        )
        self.resource = resource


class ForbiddenError(AppError):
    """Raised when the actor lacks ownership or role."""

    def __init__(self, message: str = "Not authorized to perform this action") -> None:
        super().__init__(code=ErrorCode.FORBIDDEN, message=message)


class UnauthorizedError(AppError):
    """Raised for a missing or invalid bearer token."""

    def __init__(self, message: str = "Invalid token.") -> None:
        super().__init__(code=ErrorCode.UNAUTHORIZED, message=message)


class ValidationFailedError(AppError):
    """Raised when a document violates a schema or cross-field rule."""

    def __init__(self, errors: List[Dict[str, str]], message: str = "Validation failed") -> None:
        super().__init__(code=ErrorCode.VALIDATION_FAILED, message=message, errors=list(errors))


class DuplicateKeyError(AppError):
    """Raised when a uniqueness constraint would be violated."""

    def __init__(self, message: str = "Duplicate value") -> None:
        super().__init__(code=ErrorCode.DUPLICATE_KEY, message=message)


class RegistrationClosedError(AppError):
    """Raised when an event cannot accept the registration."""

    def __init__(
        self,
        message: str = (
            "Cannot register for this event. Event may be full, "
            "registration closed, or you are already registered."
        ),
    ) -> None:
        super().__init__(code=ErrorCode.REGISTRATION_CLOSED, message=message)


class NotRegisteredError(AppError):
    """Raised when unregistering a user without an active registration."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.NOT_REGISTERED,
            message="User is not registered for this event",
        )


class DeleteBlockedError(AppError):
    """Raised when a delete would orphan dependent documents."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.DELETE_BLOCKED, message=message)


class ConflictError(AppError):
    """Raised when a document kept changing under a compare-and-set write."""

    def __init__(self, message: str = "The document was changed by another request, please try again") -> None:
        super().__init__(code=ErrorCode.CONFLICT, message=message)


class DerivedStateError(AppError):
    """Raised when an aggregate field could not be recomputed."""

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(
            code=ErrorCode.DERIVED_STATE_FAILED,
            message=f"Failed to update derived fields for {resource} {resource_id}",
        )
        self.resource = resource
        self.resource_id = resource_id
