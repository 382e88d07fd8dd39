"""
Course Service — shared catalog CRUD.

Courses are not plant-scoped: any caller may read them. Mutations change
the catalog for every plant, so they require an organisation-wide context;
anyone else is told the course does not exist.
"""

import logging

from app.core.exceptions import NotFoundError, ValidationError
from app.core.result import result_operation
from app.models.course import Course
from app.services.helpers.conflict_detector import ensure_unique_slug
from app.utils.helpers import parse_bool, parse_str, parse_uuid, require_fields

logger = logging.getLogger(__name__)


def _clean(values):
    for name in ("slug", "title", "version"):
        if name in values:
            values[name] = parse_str(values[name], name)
    if "is_published" in values:
        values["is_published"] = parse_bool(values["is_published"], "is_published")
    return values


class CourseOperations:

    def __init__(self, storage):
        self.storage = storage

    def _get(self, course_id):
        pk = parse_uuid(course_id)
        course = self.storage.find_first(Course, Course.id == pk)
        if course is None:
            raise NotFoundError("Course", pk)
        return course

    def _require_catalog_admin(self, course_id, context):
        if context is None or not context.is_global:
            raise NotFoundError("Course", course_id)

    @result_operation("create_course")
    def create_course(self, data):
        require_fields(data, ("slug", "title"))
        values = _clean({
            "slug": data["slug"],
            "title": data["title"],
            "version": data.get("version", "1.0"),
            "is_published": data.get("is_published", False),
        })
        with self.storage.unit_of_work():
            ensure_unique_slug(self.storage, values["slug"])
            course = self.storage.insert(Course, values)
        logger.info("Created course %s (%s)", course.id, course.slug, extra={"entity": "Course"})
        return course.to_dict()

    @result_operation("get_course_by_id")
    def get_course_by_id(self, course_id, context=None):
        return self._get(course_id).to_dict()

    @result_operation("get_course_by_slug")
    def get_course_by_slug(self, slug):
        course = self.storage.find_first(Course, Course.slug == str(slug).strip())
        if course is None:
            raise NotFoundError("Course")
        return course.to_dict()

    @result_operation("update_course")
    def update_course(self, course_id, patch, context):
        pk = parse_uuid(course_id)
        self._require_catalog_admin(pk, context)
        values = _clean({k: patch[k] for k in ("slug", "title", "version", "is_published") if k in patch})
        if not values:
            raise ValidationError("No updatable fields supplied")
        with self.storage.unit_of_work():
            if "slug" in values:
                ensure_unique_slug(self.storage, values["slug"], exclude_id=pk)
            rows = self.storage.update(Course, values, Course.id == pk)
            if not rows:
                raise NotFoundError("Course", pk)
        return rows[0].to_dict()

    @result_operation("delete_course")
    def delete_course(self, course_id, context):
        pk = parse_uuid(course_id)
        self._require_catalog_admin(pk, context)
        with self.storage.unit_of_work():
            if self.storage.delete(Course, Course.id == pk) == 0:
                raise NotFoundError("Course", pk)
        logger.info("Deleted course %s", pk, extra={"entity": "Course"})
        return {"id": pk}
