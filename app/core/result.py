"""
Uniform operation result for the data layer.

Every public data-layer operation returns a ``Result``: either
``success=True`` with ``data``, or ``success=False`` with ``error`` and a
machine ``code`` from ``ErrorCode``. Nothing raises across that boundary;
``result_operation`` is the single place where exceptions are converted.

Usage:
    @result_operation("create_enrollment")
    def create_enrollment(self, data):
        ...
        return enrollment.to_dict()

    result = ops.create_enrollment(payload)
    if not result.success and result.code == ErrorCode.CONFLICT:
        ...
"""

import functools
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.exceptions import AppError
from app.models import db

logger = logging.getLogger(__name__)


class ErrorCode:
    """Machine-readable failure codes carried by ``Result.code``."""

    VALIDATION = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    DATABASE = "DATABASE_ERROR"


class Result:
    """Tagged union returned by every data-layer operation.

    Always check .success before accessing .data.
    """

    __slots__ = ("success", "data", "error", "code", "field")

    def __init__(
        self,
        *,
        success: bool,
        data=None,
        error: str | None = None,
        code: str | None = None,
        field: str | None = None,
    ) -> None:
        self.success = success
        self.data = data
        self.error = error
        self.code = code
        self.field = field

    @classmethod
    def ok(cls, data=None) -> "Result":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, code: str = ErrorCode.DATABASE, field: str | None = None) -> "Result":
        return cls(success=False, error=error, code=code, field=field)

    @classmethod
    def from_error(cls, exc: AppError) -> "Result":
        return cls.fail(str(exc), exc.code, getattr(exc, "field", None))

    def to_dict(self) -> dict:
        if self.success:
            return {"success": True, "data": self.data}
        d = {"success": False, "error": self.error, "code": self.code}
        if self.field:
            d["field"] = self.field
        return d

    def __eq__(self, other):
        if not isinstance(other, Result):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        if self.success:
            return f"Result(success=True, data={self.data!r})"
        return f"Result(success=False, code={self.code!r}, error={self.error!r})"


# SQLSTATE for unique_violation; DBAPIs without sqlstate fall back to the message.
_UNIQUE_VIOLATION = "23505"


def _is_unique_violation(exc: IntegrityError) -> bool:
    code = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
    if code:
        return code == _UNIQUE_VIOLATION
    message = str(exc.orig).lower()
    return "unique" in message or "duplicate" in message


def _rollback():
    try:
        db.session.rollback()
    except SQLAlchemyError:
        logger.exception("Session rollback failed")


def result_operation(name: str):
    """Decorator: run the wrapped operation and fold its outcome into a Result.

    AppError subclasses   → their own code and message
    IntegrityError        → CONFLICT for unique violations (raced past the
                            pre-check), DATABASE_ERROR for FK/check/not-null
    other SQLAlchemyError → DATABASE_ERROR, session rolled back
    anything else         → DATABASE_ERROR, logged with traceback
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return Result.ok(fn(*args, **kwargs))
            except AppError as exc:
                _rollback()
                logger.debug(
                    "%s failed: %s", name, exc,
                    extra={"operation": name, "error_code": exc.code},
                )
                return Result.from_error(exc)
            except IntegrityError as exc:
                _rollback()
                code = ErrorCode.CONFLICT if _is_unique_violation(exc) else ErrorCode.DATABASE
                logger.warning(
                    "%s: integrity error: %s", name, exc.orig,
                    extra={"operation": name, "error_code": code},
                )
                if code == ErrorCode.CONFLICT:
                    return Result.fail("Resource already exists", code)
                return Result.fail("Data integrity violation", code)
            except SQLAlchemyError as exc:
                _rollback()
                logger.exception(
                    "%s: database error", name,
                    extra={"operation": name, "error_code": ErrorCode.DATABASE},
                )
                return Result.fail(str(exc), ErrorCode.DATABASE)
            except Exception as exc:
                _rollback()
                logger.exception(
                    "%s: unexpected error", name,
                    extra={"operation": name, "error_code": ErrorCode.DATABASE},
                )
                return Result.fail(str(exc) or exc.__class__.__name__, ErrorCode.DATABASE)

        return wrapper

    return decorator
