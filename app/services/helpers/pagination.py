"""Page/limit normalisation and page envelopes for list queries."""

import math

from flask import current_app, has_app_context

from app.utils.helpers import parse_int

_FALLBACK_DEFAULT_LIMIT = 20
_FALLBACK_MAX_LIMIT = 100


def _limits():
    if has_app_context():
        return (
            current_app.config.get("QUERY_DEFAULT_LIMIT", _FALLBACK_DEFAULT_LIMIT),
            current_app.config.get("QUERY_MAX_LIMIT", _FALLBACK_MAX_LIMIT),
        )
    return _FALLBACK_DEFAULT_LIMIT, _FALLBACK_MAX_LIMIT


def page_params(filters: dict) -> tuple[int, int]:
    """Return (page, limit) from *filters*.

    page is 1-based; limit must be >= 1 and is clamped to QUERY_MAX_LIMIT.
    """
    default_limit, max_limit = _limits()
    page = filters.get("page")
    limit = filters.get("limit")
    page = 1 if page is None else parse_int(page, "page", minimum=1)
    limit = default_limit if limit is None else parse_int(limit, "limit", minimum=1)
    return page, min(limit, max_limit)


def build_page(items: list, total: int, page: int, limit: int) -> dict:
    return {
        "data": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }
