"""
Tests for app/services/enrollment_service.py

Scenarios covered:
  1. create → read round trip with generated id
  2. duplicate (user, course) → CONFLICT, no second row
  3. reference and plant-agreement validation
  4. forward-only status with completed_at stamping
  5. update/delete of missing or foreign rows → NOT_FOUND
"""

import pytest

from app.core.result import ErrorCode
from app.models.training import Enrollment
from app.services.enrollment_service import EnrollmentOperations

MISSING = "99999999-9999-9999-9999-999999999999"


@pytest.fixture()
def ops(storage):
    return EnrollmentOperations(storage)


@pytest.fixture()
def payload(profile, course):
    return {"user_id": profile["id"], "course_id": course["id"], "plant_id": profile["plant_id"]}


@pytest.fixture()
def enrollment(ops, payload):
    result = ops.create_enrollment(payload)
    assert result.success
    return result.data


class TestCreateEnrollment:

    def test_created_row_is_readable(self, ops, enrollment, ctx_for):
        assert enrollment["status"] == "enrolled"
        assert enrollment["completed_at"] is None
        fetched = ops.get_enrollment(enrollment["id"], ctx_for(enrollment["plant_id"]))
        assert fetched.data["id"] == enrollment["id"]

    def test_duplicate_conflicts_without_insert(self, ops, payload, enrollment, storage):
        result = ops.create_enrollment(payload)
        assert result.success is False
        assert result.code == ErrorCode.CONFLICT
        assert "already enrolled" in result.error
        assert storage.count(Enrollment) == 1

    def test_plant_must_match_profile(self, ops, payload, other_plant):
        result = ops.create_enrollment({**payload, "plant_id": other_plant["id"]})
        assert result.code == ErrorCode.VALIDATION
        assert result.field == "plant_id"

    def test_unknown_course(self, ops, payload):
        result = ops.create_enrollment({**payload, "course_id": MISSING})
        assert result.field == "course_id"

    def test_unknown_user(self, ops, payload):
        result = ops.create_enrollment({**payload, "user_id": MISSING})
        assert result.field == "user_id"

    def test_context_must_cover_plant(self, ops, payload, other_plant, ctx_for):
        result = ops.create_enrollment(payload, ctx_for(other_plant["id"]))
        assert result.code == ErrorCode.NOT_FOUND

    def test_created_completed_is_stamped(self, ops, payload):
        result = ops.create_enrollment({**payload, "status": "completed"})
        assert result.data["completed_at"] is not None


class TestUpdateEnrollment:

    def test_status_moves_forward(self, ops, enrollment, ctx_for):
        ctx = ctx_for(enrollment["plant_id"])
        started = ops.update_enrollment(enrollment["id"], {"status": "in_progress"}, ctx)
        assert started.data["completed_at"] is None

        done = ops.update_enrollment(enrollment["id"], {"status": "completed"}, ctx)
        assert done.data["status"] == "completed"
        assert done.data["completed_at"] is not None

    def test_status_cannot_move_back(self, ops, enrollment, ctx_for):
        ctx = ctx_for(enrollment["plant_id"])
        ops.update_enrollment(enrollment["id"], {"status": "completed"}, ctx)
        result = ops.update_enrollment(enrollment["id"], {"status": "enrolled"}, ctx)
        assert result.code == ErrorCode.VALIDATION
        assert result.field == "status"

    def test_unknown_status(self, ops, enrollment, ctx_for):
        result = ops.update_enrollment(enrollment["id"], {"status": "paused"}, ctx_for(enrollment["plant_id"]))
        assert result.code == ErrorCode.VALIDATION

    def test_missing_row(self, ops, plant, ctx_for):
        result = ops.update_enrollment(MISSING, {"status": "completed"}, ctx_for(plant["id"]))
        assert result.code == ErrorCode.NOT_FOUND
        assert result.error == "Enrollment not found"

    def test_foreign_row(self, ops, enrollment, other_plant, ctx_for):
        result = ops.update_enrollment(enrollment["id"], {"status": "completed"}, ctx_for(other_plant["id"]))
        assert result.code == ErrorCode.NOT_FOUND


class TestDeleteAndList:

    def test_delete_is_not_idempotent(self, ops, enrollment, ctx_for):
        ctx = ctx_for(enrollment["plant_id"])
        assert ops.delete_enrollment(enrollment["id"], ctx).success
        assert ops.delete_enrollment(enrollment["id"], ctx).code == ErrorCode.NOT_FOUND

    def test_foreign_delete(self, ops, enrollment, other_plant, ctx_for, storage):
        assert ops.delete_enrollment(enrollment["id"], ctx_for(other_plant["id"])).code == ErrorCode.NOT_FOUND
        assert storage.count(Enrollment) == 1

    def test_user_enrollments_scoped(self, ops, enrollment, profile, other_plant, ctx_for):
        assert len(ops.get_user_enrollments(profile["id"], ctx_for(profile["plant_id"])).data) == 1
        assert ops.get_user_enrollments(profile["id"], ctx_for(other_plant["id"])).data == []
