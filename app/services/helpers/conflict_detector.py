"""
Pre-mutation uniqueness checks.

Each check looks the natural key up and raises ConflictError before any
insert is attempted. Callers run the check and the write inside one
``storage.unit_of_work()``; the matching unique constraints on the tables
turn a concurrent duplicate that slips past the check into an
IntegrityError, which ``result_operation`` reports as the same CONFLICT.
"""

import logging

from app.core.exceptions import ConflictError
from app.models.course import Course
from app.models.plant import Plant
from app.models.profile import AdminRole, Profile
from app.models.training import Enrollment, Progress

logger = logging.getLogger(__name__)


def _conflict(resource, field, value, message=None):
    logger.info(
        "Conflict on %s.%s=%r", resource, field, value,
        extra={"entity": resource, "error_code": ConflictError.code},
    )
    raise ConflictError(resource, field, value, message)


def ensure_not_enrolled(storage, user_id, course_id):
    existing = storage.find_first(
        Enrollment, Enrollment.user_id == user_id, Enrollment.course_id == course_id,
    )
    if existing is not None:
        _conflict(
            "Enrollment", "user_id,course_id", f"{user_id}/{course_id}",
            "User is already enrolled in this course",
        )


def ensure_no_progress(storage, user_id, course_id):
    existing = storage.find_first(
        Progress, Progress.user_id == user_id, Progress.course_id == course_id,
    )
    if existing is not None:
        _conflict(
            "Progress", "user_id,course_id", f"{user_id}/{course_id}",
            "Progress already exists for this user and course",
        )


def ensure_unique_email(storage, email, exclude_id=None):
    criteria = [Profile.email == email]
    if exclude_id is not None:
        criteria.append(Profile.id != exclude_id)
    if storage.find_first(Profile, *criteria) is not None:
        _conflict("Profile", "email", email, "User with this email already exists")


def ensure_unique_slug(storage, slug, exclude_id=None):
    criteria = [Course.slug == slug]
    if exclude_id is not None:
        criteria.append(Course.id != exclude_id)
    if storage.find_first(Course, *criteria) is not None:
        _conflict("Course", "slug", slug, "Course with this slug already exists")


def ensure_unique_plant_name(storage, name, exclude_id=None):
    criteria = [Plant.name == name]
    if exclude_id is not None:
        criteria.append(Plant.id != exclude_id)
    if storage.find_first(Plant, *criteria) is not None:
        _conflict("Plant", "name", name, "Plant with this name already exists")


def ensure_role_not_granted(storage, user_id, role, plant_id):
    # NULL plant_id is not covered by the unique constraint; compare explicitly.
    plant_clause = AdminRole.plant_id.is_(None) if plant_id is None else AdminRole.plant_id == plant_id
    existing = storage.find_first(
        AdminRole, AdminRole.user_id == user_id, AdminRole.role == role, plant_clause,
    )
    if existing is not None:
        _conflict("AdminRole", "user_id,role,plant_id", f"{user_id}/{role}/{plant_id}",
                  "User already holds this role")
