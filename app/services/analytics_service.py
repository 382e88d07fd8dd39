"""
Analytics Service — completion rates, per-course / per-plant rollups,
question accuracy and compliance tracking.

All figures are computed with grouped aggregate queries, one query per
rollup, so joins never fan out (an enrollment is never counted once per
progress row). Every ratio goes through ``_rate`` / ``_mean`` which return
0 for an empty group instead of dividing by zero or yielding NaN.

Scope: pass a UserContext to restrict every rollup to the caller's plants;
``context=None`` is the internal, organisation-wide report.
"""

import logging

from sqlalchemy import case, func, select

from app.core.exceptions import NotFoundError
from app.core.result import result_operation
from app.models.course import Course
from app.models.plant import Plant
from app.models.profile import Profile
from app.models.training import Enrollment, Progress, QuestionEvent
from app.services.helpers.tenant_filter import plant_scope, validate_access
from app.utils.helpers import parse_uuid

logger = logging.getLogger(__name__)

PROGRESS_BUCKETS = ("0%", "1-25%", "26-50%", "51-75%", "76-99%", "100%")


def _rate(part, whole):
    """Percentage rounded to one decimal; 0 for an empty denominator."""
    if not whole:
        return 0
    return round((part or 0) / whole * 100, 1)


def _mean(value):
    return round(float(value), 1) if value is not None else 0


def _completed():
    return func.sum(case((Enrollment.status == "completed", 1), else_=0))


def _in_progress():
    return func.sum(case((Enrollment.status == "in_progress", 1), else_=0))


class AnalyticsAggregator:

    def __init__(self, storage):
        self.storage = storage

    # ── rollup queries ──────────────────────────────────────────────────

    def _enrollments_by(self, column, context, plant_id=None):
        stmt = (
            select(column, func.count(Enrollment.id), _completed(), _in_progress())
            .where(plant_scope(Enrollment.plant_id, context, plant_id))
            .group_by(column)
        )
        return {
            row[0]: {"total": row[1], "completed": row[2] or 0, "in_progress": row[3] or 0}
            for row in self.storage.aggregate(stmt)
        }

    def _avg_progress_by(self, column, context, plant_id=None):
        stmt = (
            select(column, func.avg(Progress.progress_percent))
            .where(plant_scope(Progress.plant_id, context, plant_id))
            .group_by(column)
        )
        return {row[0]: row[1] for row in self.storage.aggregate(stmt)}

    def _users_by_plant(self, context, active_only=False):
        criteria = [plant_scope(Profile.plant_id, context)]
        if active_only:
            criteria.append(Profile.status == "active")
        stmt = select(Profile.plant_id, func.count(Profile.id)).where(*criteria).group_by(Profile.plant_id)
        return {row[0]: row[1] for row in self.storage.aggregate(stmt)}

    # ── report sections ─────────────────────────────────────────────────

    def _overview(self, context):
        profile_scope = plant_scope(Profile.plant_id, context)
        enrollment_scope = plant_scope(Enrollment.plant_id, context)
        total_enrollments = self.storage.count(Enrollment, enrollment_scope)
        completed = self.storage.count(Enrollment, enrollment_scope, Enrollment.status == "completed")
        return {
            "total_users": self.storage.count(Profile, profile_scope),
            "active_users": self.storage.count(Profile, profile_scope, Profile.status == "active"),
            "total_enrollments": total_enrollments,
            "completed_courses": completed,
            "overall_completion_rate": _rate(completed, total_enrollments),
        }

    def _course_performance(self, context, courses):
        enrollments = self._enrollments_by(Enrollment.course_id, context)
        averages = self._avg_progress_by(Progress.course_id, context)
        rows = []
        for course in courses:
            stats = enrollments.get(course.id, {"total": 0, "completed": 0})
            rows.append({
                "course_id": course.id,
                "course_name": course.title,
                "total_enrollments": stats["total"],
                "completed_enrollments": stats["completed"],
                "average_progress": _mean(averages.get(course.id)),
                "completion_rate": _rate(stats["completed"], stats["total"]),
            })
        return rows

    def _plant_performance(self, context, plants):
        users = self._users_by_plant(context)
        enrollments = self._enrollments_by(Enrollment.plant_id, context)
        averages = self._avg_progress_by(Progress.plant_id, context)
        rows = []
        for plant in plants:
            stats = enrollments.get(plant.id, {"total": 0, "completed": 0, "in_progress": 0})
            rows.append({
                "plant_id": plant.id,
                "plant_name": plant.name,
                "total_users": users.get(plant.id, 0),
                "total_enrollments": stats["total"],
                "completed_enrollments": stats["completed"],
                "in_progress_enrollments": stats["in_progress"],
                "average_progress": _mean(averages.get(plant.id)),
                "completion_rate": _rate(stats["completed"], stats["total"]),
            })
        return rows

    def _question_analytics(self, context, course_titles):
        q = QuestionEvent
        stmt = (
            select(
                q.course_id, q.section_key, q.question_key,
                func.count(q.id),
                func.sum(case((q.is_correct.is_(True), 1), else_=0)),
                func.avg(q.attempt_index),
            )
            .where(plant_scope(q.plant_id, context))
            .group_by(q.course_id, q.section_key, q.question_key)
            .order_by(q.course_id, q.section_key, q.question_key)
        )
        return [
            {
                "course_id": course_id,
                "course_name": course_titles.get(course_id, ""),
                "section_key": section_key,
                "question_key": question_key,
                "total_attempts": attempts,
                "correct_attempts": correct or 0,
                "accuracy_rate": _rate(correct, attempts),
                "average_attempts": _mean(avg_attempts),
            }
            for course_id, section_key, question_key, attempts, correct, avg_attempts
            in self.storage.aggregate(stmt)
        ]

    def _compliance_tracking(self, context, plants, courses):
        required = self._users_by_plant(context, active_only=True)
        stmt = (
            select(
                Enrollment.plant_id, Enrollment.course_id,
                func.count(func.distinct(Enrollment.user_id)), _completed(),
            )
            .where(plant_scope(Enrollment.plant_id, context))
            .group_by(Enrollment.plant_id, Enrollment.course_id)
        )
        enrolled = {(row[0], row[1]): (row[2], row[3] or 0) for row in self.storage.aggregate(stmt)}

        rows = []
        for plant in plants:
            required_users = required.get(plant.id, 0)
            for course in courses:
                if not course.is_published:
                    continue
                enrolled_users, completed_users = enrolled.get((plant.id, course.id), (0, 0))
                rows.append({
                    "plant_id": plant.id,
                    "plant_name": plant.name,
                    "course_id": course.id,
                    "course_name": course.title,
                    "required_users": required_users,
                    "enrolled_users": enrolled_users,
                    "completed_users": completed_users,
                    "compliance_rate": _rate(completed_users, required_users),
                    "overdue_users": max(0, required_users - completed_users),
                })
        return rows

    # ── public operations ───────────────────────────────────────────────

    @result_operation("get_detailed_analytics")
    def get_detailed_analytics(self, context=None):
        courses = self.storage.find_many(Course, order_by=(Course.title.asc(), Course.id.asc()))
        plants = self.storage.find_many(
            Plant, plant_scope(Plant.id, context), order_by=(Plant.name.asc(), Plant.id.asc()),
        )
        return {
            "overview": self._overview(context),
            "course_performance": self._course_performance(context, courses),
            "plant_performance": self._plant_performance(context, plants),
            "question_analytics": self._question_analytics(context, {c.id: c.title for c in courses}),
            "compliance_tracking": self._compliance_tracking(context, plants, courses),
        }

    @result_operation("get_dashboard_stats")
    def get_dashboard_stats(self, plant_id=None):
        if plant_id is not None:
            plant_id = parse_uuid(plant_id, "plant_id")
        stmt = select(func.count(Enrollment.id), _completed(), _in_progress()).where(
            plant_scope(Enrollment.plant_id, None, plant_id)
        )
        total, completed, in_progress = self.storage.aggregate(stmt)[0]
        return {
            "total_enrollments": total,
            "completed_enrollments": completed or 0,
            "in_progress_enrollments": in_progress or 0,
            "completion_rate": _rate(completed, total),
        }

    @result_operation("get_plant_stats")
    def get_plant_stats(self, plant_id, context=None):
        pk = parse_uuid(plant_id, "plant_id")
        if context is not None and not validate_access(context, pk):
            raise NotFoundError("Plant", pk)
        if self.storage.find_first(Plant, Plant.id == pk) is None:
            raise NotFoundError("Plant", pk)
        stats = self._enrollments_by(Enrollment.plant_id, None, pk).get(
            pk, {"total": 0, "completed": 0, "in_progress": 0},
        )
        average = self._avg_progress_by(Progress.plant_id, None, pk).get(pk)
        return {
            "total_users": self.storage.count(Profile, Profile.plant_id == pk),
            "active_enrollments": stats["in_progress"],
            "completion_rate": _rate(stats["completed"], stats["total"]),
            "average_progress": _mean(average),
        }

    @result_operation("get_course_stats")
    def get_course_stats(self, course_id, plant_id=None):
        pk = parse_uuid(course_id, "course_id")
        if plant_id is not None:
            plant_id = parse_uuid(plant_id, "plant_id")
        stats = self._enrollments_by(Enrollment.course_id, None, plant_id).get(
            pk, {"total": 0, "completed": 0},
        )
        average = self._avg_progress_by(Progress.course_id, None, plant_id).get(pk)
        return {
            "total_enrollments": stats["total"],
            "completed_enrollments": stats["completed"],
            "average_progress": _mean(average),
            "completion_rate": _rate(stats["completed"], stats["total"]),
        }

    @result_operation("get_progress_distribution")
    def get_progress_distribution(self, context=None):
        pct = Progress.progress_percent
        bucket = case(
            (pct == 0, PROGRESS_BUCKETS[0]),
            (pct <= 25, PROGRESS_BUCKETS[1]),
            (pct <= 50, PROGRESS_BUCKETS[2]),
            (pct <= 75, PROGRESS_BUCKETS[3]),
            (pct <= 99, PROGRESS_BUCKETS[4]),
            else_=PROGRESS_BUCKETS[5],
        )
        scope = plant_scope(Progress.plant_id, context)
        counts = {
            row[0]: row[1]
            for row in self.storage.aggregate(select(bucket, func.count(Progress.id)).where(scope).group_by(bucket))
        }
        total = sum(counts.values())
        users, average = self.storage.aggregate(
            select(func.count(func.distinct(Progress.user_id)), func.avg(pct)).where(scope)
        )[0]
        return {
            "users_with_progress": users,
            "average_progress": _mean(average),
            "distribution": [
                {"range": name, "count": counts.get(name, 0), "percentage": _rate(counts.get(name, 0), total)}
                for name in PROGRESS_BUCKETS
            ],
        }
