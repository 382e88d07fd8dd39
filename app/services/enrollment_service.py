"""
Enrollment Service — enroll, advance, withdraw.

Rules:
  - At most one enrollment per (user_id, course_id): checked before insert,
    backed by uq_enrollments_user_course.
  - The enrollment plant must be the profile's home plant.
  - Status only moves forward: enrolled → in_progress → completed.
    completed_at is stamped when, and only when, status becomes completed.
"""

import logging

from app.core.exceptions import NotFoundError, ValidationError
from app.core.result import result_operation
from app.models.base import _utcnow
from app.models.training import ENROLLMENT_STATUSES, Enrollment
from app.services.helpers.conflict_detector import ensure_not_enrolled
from app.services.helpers.references import require_course, require_profile_in_plant
from app.services.helpers.tenant_filter import get_scoped, plant_scope, validate_access
from app.utils.helpers import parse_uuid, require_fields

logger = logging.getLogger(__name__)


def _check_status(status):
    if status not in ENROLLMENT_STATUSES:
        raise ValidationError(
            f"status must be one of {', '.join(ENROLLMENT_STATUSES)}", field="status",
        )
    return status


class EnrollmentOperations:

    def __init__(self, storage):
        self.storage = storage

    @result_operation("create_enrollment")
    def create_enrollment(self, data, context=None):
        """Enroll a user into a course.

        Args:
            data: {user_id, course_id, plant_id, status?}
            context: Optional caller context; when given the plant must be
                     accessible to it.

        Returns:
            The created enrollment as a dict, including its generated id.
        """
        require_fields(data, ("user_id", "course_id", "plant_id"))
        user_id = parse_uuid(data["user_id"], "user_id")
        course_id = parse_uuid(data["course_id"], "course_id")
        plant_id = parse_uuid(data["plant_id"], "plant_id")
        status = _check_status(data.get("status", "enrolled"))
        if context is not None and not validate_access(context, plant_id):
            raise NotFoundError("Plant", plant_id)

        now = _utcnow()
        with self.storage.unit_of_work():
            require_profile_in_plant(self.storage, user_id, plant_id)
            require_course(self.storage, course_id)
            ensure_not_enrolled(self.storage, user_id, course_id)
            enrollment = self.storage.insert(Enrollment, {
                "user_id": user_id,
                "course_id": course_id,
                "plant_id": plant_id,
                "status": status,
                "enrolled_at": now,
                "completed_at": now if status == "completed" else None,
            })

        logger.info(
            "Enrolled user %s in course %s", user_id, course_id,
            extra={"entity": "Enrollment", "plant_id": plant_id, "user_id": user_id},
        )
        return enrollment.to_dict()

    @result_operation("get_enrollment")
    def get_enrollment(self, enrollment_id, context):
        pk = parse_uuid(enrollment_id)
        return get_scoped(self.storage, Enrollment, pk, context).to_dict()

    @result_operation("update_enrollment")
    def update_enrollment(self, enrollment_id, patch, context):
        pk = parse_uuid(enrollment_id)
        if "status" not in patch:
            raise ValidationError("No updatable fields supplied")
        new_status = _check_status(patch["status"])

        with self.storage.unit_of_work():
            current = get_scoped(self.storage, Enrollment, pk, context)
            old_rank = ENROLLMENT_STATUSES.index(current.status)
            if ENROLLMENT_STATUSES.index(new_status) < old_rank:
                raise ValidationError(
                    f"Enrollment status cannot move from {current.status} to {new_status}",
                    field="status",
                )
            values = {"status": new_status}
            if new_status == "completed" and current.status != "completed":
                values["completed_at"] = _utcnow()
            rows = self.storage.update(
                Enrollment, values, Enrollment.id == pk, plant_scope(Enrollment.plant_id, context),
            )
            if not rows:
                raise NotFoundError("Enrollment", pk)
        return rows[0].to_dict()

    @result_operation("delete_enrollment")
    def delete_enrollment(self, enrollment_id, context):
        pk = parse_uuid(enrollment_id)
        with self.storage.unit_of_work():
            deleted = self.storage.delete(
                Enrollment, Enrollment.id == pk, plant_scope(Enrollment.plant_id, context),
            )
            if deleted == 0:
                raise NotFoundError("Enrollment", pk)
        return {"id": pk}

    @result_operation("get_user_enrollments")
    def get_user_enrollments(self, user_id, context):
        uid = parse_uuid(user_id, "user_id")
        rows = self.storage.find_many(
            Enrollment,
            Enrollment.user_id == uid,
            plant_scope(Enrollment.plant_id, context),
            order_by=(Enrollment.enrolled_at.desc(), Enrollment.id.desc()),
        )
        return [e.to_dict() for e in rows]
