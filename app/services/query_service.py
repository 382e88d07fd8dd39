"""
Query Service — paginated, filtered, tenant-scoped list queries.

Each list query:
  1. builds its criteria list starting with the tenant predicate
     (``plant_scope``), then appends the caller's filters;
  2. counts under exactly those criteria;
  3. fetches one page under the same criteria with a total, stable order
     (timestamp plus id as tie-breaker).

Returned envelope: {data, total, page, limit, total_pages}.
"""

import logging

from sqlalchemy import or_

from app.core.exceptions import ValidationError
from app.core.result import result_operation
from app.models.course import Course
from app.models.profile import Profile
from app.models.training import Enrollment, Progress
from app.services.helpers.pagination import build_page, page_params
from app.services.helpers.tenant_filter import plant_scope
from app.utils.helpers import parse_bool, parse_int, parse_uuid

logger = logging.getLogger(__name__)


def like_pattern(term):
    """Substring ILIKE pattern with % and _ matched literally (escape="\\")."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _optional_uuid(filters, name):
    value = filters.get(name)
    return None if value in (None, "") else parse_uuid(value, name)


class QueryService:

    def __init__(self, storage):
        self.storage = storage

    def _page(self, model, criteria, order_by, filters):
        page, limit = page_params(filters)
        total = self.storage.count(model, *criteria)
        rows = self.storage.find_many(
            model, *criteria, order_by=order_by, limit=limit, offset=(page - 1) * limit,
        )
        return build_page([r.to_dict() for r in rows], total, page, limit)

    @result_operation("list_users")
    def list_users(self, filters, context):
        """Profiles in scope. Filters: search (name/email), status, plant_id."""
        filters = filters or {}
        criteria = [plant_scope(Profile.plant_id, context, _optional_uuid(filters, "plant_id"))]
        if filters.get("status"):
            criteria.append(Profile.status == filters["status"])
        search = (filters.get("search") or "").strip()
        if search:
            pattern = like_pattern(search)
            criteria.append(or_(
                Profile.first_name.ilike(pattern, escape="\\"),
                Profile.last_name.ilike(pattern, escape="\\"),
                Profile.email.ilike(pattern, escape="\\"),
            ))
        return self._page(
            Profile, criteria, (Profile.created_at.desc(), Profile.id.desc()), filters,
        )

    @result_operation("list_courses")
    def list_courses(self, filters, context=None):
        """Catalog listing. Filters: search (title/slug), is_published."""
        filters = filters or {}
        criteria = []
        if filters.get("is_published") is not None:
            criteria.append(Course.is_published == parse_bool(filters["is_published"], "is_published"))
        search = (filters.get("search") or "").strip()
        if search:
            pattern = like_pattern(search)
            criteria.append(or_(
                Course.title.ilike(pattern, escape="\\"),
                Course.slug.ilike(pattern, escape="\\"),
            ))
        return self._page(Course, criteria, (Course.title.asc(), Course.id.asc()), filters)

    @result_operation("list_enrollments")
    def list_enrollments(self, filters, context):
        """Enrollments in scope. Filters: status, course_id, user_id, plant_id."""
        filters = filters or {}
        criteria = [plant_scope(Enrollment.plant_id, context, _optional_uuid(filters, "plant_id"))]
        if filters.get("status"):
            criteria.append(Enrollment.status == filters["status"])
        course_id = _optional_uuid(filters, "course_id")
        if course_id:
            criteria.append(Enrollment.course_id == course_id)
        user_id = _optional_uuid(filters, "user_id")
        if user_id:
            criteria.append(Enrollment.user_id == user_id)
        return self._page(
            Enrollment, criteria, (Enrollment.enrolled_at.desc(), Enrollment.id.desc()), filters,
        )

    @result_operation("list_progress")
    def list_progress(self, filters, context):
        """Progress rows in scope. Filters: course_id, user_id, plant_id,
        min_progress / max_progress (inclusive)."""
        filters = filters or {}
        criteria = [plant_scope(Progress.plant_id, context, _optional_uuid(filters, "plant_id"))]
        course_id = _optional_uuid(filters, "course_id")
        if course_id:
            criteria.append(Progress.course_id == course_id)
        user_id = _optional_uuid(filters, "user_id")
        if user_id:
            criteria.append(Progress.user_id == user_id)

        low = filters.get("min_progress")
        high = filters.get("max_progress")
        if low is not None:
            low = parse_int(low, "min_progress", minimum=0, maximum=100)
            criteria.append(Progress.progress_percent >= low)
        if high is not None:
            high = parse_int(high, "max_progress", minimum=0, maximum=100)
            criteria.append(Progress.progress_percent <= high)
        if low is not None and high is not None and low > high:
            raise ValidationError("min_progress must not exceed max_progress", field="min_progress")

        return self._page(
            Progress, criteria, (Progress.last_active_at.desc(), Progress.id.desc()), filters,
        )
