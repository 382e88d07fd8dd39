"""
Database Service — the single entry point used by route handlers.

Each method routes its call through ``migration_manager.route``: the
rewritten operations (storage-backed, multi-plant scoped) or the legacy
module, depending on the current migration snapshot. Both sides return the
same Result union.

Usage:
    service = DatabaseService()
    result = service.create_enrollment(
        {"user_id": uid, "course_id": cid, "plant_id": pid}, context=ctx,
    )
    if not result.success:
        return result_response(result)
"""

import logging
from functools import partial

from app.models import db
from app.services import legacy_operations as legacy
from app.services import migration_manager
from app.services.analytics_service import AnalyticsAggregator
from app.services.course_service import CourseOperations
from app.services.enrollment_service import EnrollmentOperations
from app.services.plant_service import PlantOperations
from app.services.profile_service import ProfileOperations
from app.services.progress_service import ProgressOperations
from app.services.query_service import QueryService
from app.services.storage import SQLAlchemyStorage

logger = logging.getLogger(__name__)


class DatabaseService:
    """Facade over the entity, query and analytics operations."""

    def __init__(self, storage=None):
        self.storage = storage if storage is not None else SQLAlchemyStorage(db.session)
        self.plants = PlantOperations(self.storage)
        self.profiles = ProfileOperations(self.storage)
        self.courses = CourseOperations(self.storage)
        self.enrollments = EnrollmentOperations(self.storage)
        self.progress = ProgressOperations(self.storage)
        self.queries = QueryService(self.storage)
        self.analytics = AnalyticsAggregator(self.storage)

    def _write(self, name, new_call, legacy_call):
        return migration_manager.route(name, new_call, legacy_call)

    def _read(self, name, new_call, legacy_call):
        return migration_manager.route(name, new_call, legacy_call, read_only=True)

    # ── Plants ───────────────────────────────────────────────────────────

    def create_plant(self, data):
        return self._write(
            "create_plant",
            partial(self.plants.create_plant, data),
            partial(legacy.create_plant, data),
        )

    def get_plant(self, plant_id, context):
        return self._read(
            "get_plant",
            partial(self.plants.get_plant, plant_id, context),
            partial(legacy.get_plant, plant_id, context),
        )

    def update_plant(self, plant_id, patch, context):
        return self._write(
            "update_plant",
            partial(self.plants.update_plant, plant_id, patch, context),
            partial(legacy.update_plant, plant_id, patch, context),
        )

    def list_plants(self, context):
        return self._read(
            "list_plants",
            partial(self.plants.list_plants, context),
            partial(legacy.list_plants, context),
        )

    # ── Profiles ─────────────────────────────────────────────────────────

    def create_user(self, data, context=None):
        return self._write(
            "create_user",
            partial(self.profiles.create_user, data, context),
            partial(legacy.create_user, data, context),
        )

    def get_user_by_id(self, user_id, context):
        return self._read(
            "get_user_by_id",
            partial(self.profiles.get_user_by_id, user_id, context),
            partial(legacy.get_user_by_id, user_id, context),
        )

    def get_user_by_email(self, email, context):
        return self._read(
            "get_user_by_email",
            partial(self.profiles.get_user_by_email, email, context),
            partial(legacy.get_user_by_email, email, context),
        )

    def update_user(self, user_id, patch, context):
        return self._write(
            "update_user",
            partial(self.profiles.update_user, user_id, patch, context),
            partial(legacy.update_user, user_id, patch, context),
        )

    def delete_user(self, user_id, context):
        return self._write(
            "delete_user",
            partial(self.profiles.delete_user, user_id, context),
            partial(legacy.delete_user, user_id, context),
        )

    def add_admin_role(self, user_id, role, context, plant_id=None):
        return self._write(
            "add_admin_role",
            partial(self.profiles.add_admin_role, user_id, role, context, plant_id),
            partial(legacy.add_admin_role, user_id, role, context, plant_id),
        )

    def get_user_context(self, user_id):
        return self._read(
            "get_user_context",
            partial(self.profiles.get_user_context, user_id),
            partial(legacy.get_user_context, user_id),
        )

    # ── Courses ──────────────────────────────────────────────────────────

    def create_course(self, data):
        return self._write(
            "create_course",
            partial(self.courses.create_course, data),
            partial(legacy.create_course, data),
        )

    def get_course_by_id(self, course_id, context=None):
        return self._read(
            "get_course_by_id",
            partial(self.courses.get_course_by_id, course_id, context),
            partial(legacy.get_course_by_id, course_id, context),
        )

    def get_course_by_slug(self, slug):
        return self._read(
            "get_course_by_slug",
            partial(self.courses.get_course_by_slug, slug),
            partial(legacy.get_course_by_slug, slug),
        )

    def update_course(self, course_id, patch, context):
        return self._write(
            "update_course",
            partial(self.courses.update_course, course_id, patch, context),
            partial(legacy.update_course, course_id, patch, context),
        )

    def delete_course(self, course_id, context):
        return self._write(
            "delete_course",
            partial(self.courses.delete_course, course_id, context),
            partial(legacy.delete_course, course_id, context),
        )

    # ── Enrollments ──────────────────────────────────────────────────────

    def create_enrollment(self, data, context=None):
        return self._write(
            "create_enrollment",
            partial(self.enrollments.create_enrollment, data, context),
            partial(legacy.create_enrollment, data, context),
        )

    def get_enrollment(self, enrollment_id, context):
        return self._read(
            "get_enrollment",
            partial(self.enrollments.get_enrollment, enrollment_id, context),
            partial(legacy.get_enrollment, enrollment_id, context),
        )

    def update_enrollment(self, enrollment_id, patch, context):
        return self._write(
            "update_enrollment",
            partial(self.enrollments.update_enrollment, enrollment_id, patch, context),
            partial(legacy.update_enrollment, enrollment_id, patch, context),
        )

    def delete_enrollment(self, enrollment_id, context):
        return self._write(
            "delete_enrollment",
            partial(self.enrollments.delete_enrollment, enrollment_id, context),
            partial(legacy.delete_enrollment, enrollment_id, context),
        )

    def get_user_enrollments(self, user_id, context):
        return self._read(
            "get_user_enrollments",
            partial(self.enrollments.get_user_enrollments, user_id, context),
            partial(legacy.get_user_enrollments, user_id, context),
        )

    # ── Progress ─────────────────────────────────────────────────────────

    def create_progress(self, data, context=None):
        return self._write(
            "create_progress",
            partial(self.progress.create_progress, data, context),
            partial(legacy.create_progress, data, context),
        )

    def get_progress(self, progress_id, context):
        return self._read(
            "get_progress",
            partial(self.progress.get_progress, progress_id, context),
            partial(legacy.get_progress, progress_id, context),
        )

    def update_progress(self, progress_id, patch, context):
        return self._write(
            "update_progress",
            partial(self.progress.update_progress, progress_id, patch, context),
            partial(legacy.update_progress, progress_id, patch, context),
        )

    def delete_progress(self, progress_id, context):
        return self._write(
            "delete_progress",
            partial(self.progress.delete_progress, progress_id, context),
            partial(legacy.delete_progress, progress_id, context),
        )

    # ── List queries ─────────────────────────────────────────────────────

    def get_users_with_details(self, filters, context):
        return self._read(
            "get_users_with_details",
            partial(self.queries.list_users, filters, context),
            partial(legacy.list_users, filters, context),
        )

    def get_courses_with_details(self, filters, context=None):
        return self._read(
            "get_courses_with_details",
            partial(self.queries.list_courses, filters, context),
            partial(legacy.list_courses, filters, context),
        )

    def get_enrollments_with_details(self, filters, context):
        return self._read(
            "get_enrollments_with_details",
            partial(self.queries.list_enrollments, filters, context),
            partial(legacy.list_enrollments, filters, context),
        )

    def get_progress_with_details(self, filters, context):
        return self._read(
            "get_progress_with_details",
            partial(self.queries.list_progress, filters, context),
            partial(legacy.list_progress, filters, context),
        )

    # ── Analytics ────────────────────────────────────────────────────────

    def get_detailed_analytics(self, context=None):
        return self._read(
            "get_detailed_analytics",
            partial(self.analytics.get_detailed_analytics, context),
            partial(legacy.get_detailed_analytics, context),
        )

    def get_dashboard_stats(self, plant_id=None):
        return self._read(
            "get_dashboard_stats",
            partial(self.analytics.get_dashboard_stats, plant_id),
            partial(legacy.get_dashboard_stats, plant_id),
        )

    def get_plant_stats(self, plant_id, context=None):
        return self._read(
            "get_plant_stats",
            partial(self.analytics.get_plant_stats, plant_id, context),
            partial(legacy.get_plant_stats, plant_id, context),
        )

    def get_course_stats(self, course_id, plant_id=None):
        return self._read(
            "get_course_stats",
            partial(self.analytics.get_course_stats, course_id, plant_id),
            partial(legacy.get_course_stats, course_id, plant_id),
        )

    def get_progress_distribution(self, context=None):
        return self._read(
            "get_progress_distribution",
            partial(self.analytics.get_progress_distribution, context),
            partial(legacy.get_progress_distribution, context),
        )
