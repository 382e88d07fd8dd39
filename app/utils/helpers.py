"""Shared input-validation helpers used by the data-layer services.

require_fields:  reject payloads missing mandatory keys
parse_uuid:      canonicalise a UUID id or raise ValidationError on the field
parse_int:       bounded integer coercion for pagination / percentages
parse_bool:      strict boolean coercion for operator toggles
parse_str:       required text field, stripped; non-strings rejected
"""
import uuid

from app.core.exceptions import ValidationError


def require_fields(data, fields):
    """Raise ValidationError naming the first missing/blank field."""
    if not isinstance(data, dict):
        raise ValidationError("Payload must be an object")
    for name in fields:
        value = data.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{name} is required", field=name)


def parse_uuid(value, field="id"):
    """Return the canonical string form of a UUID, or raise ValidationError."""
    if isinstance(value, uuid.UUID):
        return str(value)
    try:
        return str(uuid.UUID(str(value)))
    except (ValueError, TypeError, AttributeError):
        raise ValidationError(f"{field} is not a valid identifier", field=field)


def parse_int(value, field, *, minimum=None, maximum=None):
    """Coerce *value* to int within [minimum, maximum], or raise ValidationError.

    Booleans are rejected even though they are ints in Python.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field=field)
    try:
        number = int(value)
    except (ValueError, TypeError):
        raise ValidationError(f"{field} must be an integer", field=field)
    if isinstance(value, float) and value != number:
        raise ValidationError(f"{field} must be an integer", field=field)
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", field=field)
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be <= {maximum}", field=field)
    return number


def parse_bool(value, field):
    """Accept real booleans only; operator toggles must not guess."""
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be a boolean", field=field)
    return value


def parse_str(value, field):
    """Return *value* stripped, or raise ValidationError if it is not non-blank text."""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    value = value.strip()
    if not value:
        raise ValidationError(f"{field} is required", field=field)
    return value
