"""Standardised API error responses.

Usage
-----
    from app.utils.errors import api_error, result_response, E

    return api_error(E.VALIDATION_INVALID, "use_new_service must be a boolean")
    return result_response(db_service.get_dashboard_stats(plant_id))
"""

from __future__ import annotations

from flask import jsonify

from app.core.result import ErrorCode, Result


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_ prefix for HTTP-layer errors raised before the data layer runs
     • data-layer codes are re-exported unchanged from ErrorCode
    """

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Data layer
    VALIDATION = ErrorCode.VALIDATION
    NOT_FOUND = ErrorCode.NOT_FOUND
    CONFLICT = ErrorCode.CONFLICT
    DATABASE = ErrorCode.DATABASE


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.VALIDATION: 400,
    E.NOT_FOUND: 404,
    E.CONFLICT: 409,
    E.DATABASE: 500,
}

_GENERIC_DATABASE_MESSAGE = "Internal database error"


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (offending field, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def result_response(result: Result, *, success_status: int = 200):
    """Translate a data-layer ``Result`` into a Flask response tuple.

    DATABASE_ERROR never echoes the underlying message; it is in the logs.
    """
    if result.success:
        return jsonify(result.data), success_status

    if result.code == ErrorCode.DATABASE:
        return api_error(E.DATABASE, _GENERIC_DATABASE_MESSAGE)

    details = {"field": result.field} if result.field else None
    return api_error(result.code, result.error, details=details)
