"""
Data-layer exception hierarchy.

Services raise these; the ``result_operation`` boundary in app.core.result
converts them into the uniform Result union so nothing escapes to callers.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Enrollment", resource_id=enrollment_id)
    raise ValidationError("progress_percent must be between 0 and 100", field="progress_percent")
"""


class AppError(Exception):
    """Base class for every error the data layer reports to callers."""

    code = "DATABASE_ERROR"
    field = None


class NotFoundError(AppError):
    """Raised when a requested row does not exist within the caller's scope.

    Security note: Used for BOTH genuinely missing rows AND rows that live in
    a plant the caller cannot see. The two cases are indistinguishable to
    the caller so cross-tenant existence never leaks.

    Args:
        resource: Human-readable entity name (e.g. "Profile", "Enrollment").
        resource_id: The PK that was looked up. Included in logs, not in the message.
    """

    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class ValidationError(AppError):
    """Raised when input fails structural or business-rule validation.

    Args:
        message: Human-readable explanation of what failed.
        field: Name of the offending input field, when there is one.
        details: Optional field-level breakdown.
    """

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, details: dict | None = None) -> None:
        self.field = field
        self.details = details or {}
        super().__init__(message)


class ConflictError(AppError):
    """Raised when a write would violate a uniqueness rule.

    Args:
        resource: Entity name.
        field: The natural-key field(s) that would be duplicated.
        value: The conflicting value (logged, not echoed by the HTTP layer).
        message: Caller-facing message; defaults to "<resource> already exists".
    """

    code = "CONFLICT"

    def __init__(
        self,
        resource: str,
        field: str,
        value: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(message or f"{resource} with this {field} already exists")


class DatabaseError(AppError):
    """Raised for storage failures that were not detected up-front."""

    code = "DATABASE_ERROR"
