"""Tests for app/blueprints/admin_bp.py — data-layer operator endpoints."""

from app.services import migration_manager

BASE = "/api/v1/admin/data-layer"


class TestMigrationEndpoints:

    def test_get_status(self, client):
        res = client.get(f"{BASE}/migration")
        assert res.status_code == 200
        body = res.get_json()
        assert body["implementation"] == "legacy"
        assert body["fallback_to_legacy"] is True
        assert body["no_fallback_codes"] == ["NOT_FOUND"]

    def test_patch_toggles(self, client):
        res = client.patch(f"{BASE}/migration", json={"use_new_service": True, "shadow_compare": True})
        assert res.status_code == 200
        assert res.get_json()["implementation"] == "new"
        assert migration_manager.get_config().shadow_compare is True

    def test_patch_rejects_non_boolean(self, client):
        res = client.patch(f"{BASE}/migration", json={"use_new_service": "yes"})
        assert res.status_code == 400
        assert res.get_json()["details"] == {"field": "use_new_service"}
        assert migration_manager.should_use_new_service() is False

    def test_patch_rejects_unknown_field(self, client):
        res = client.patch(f"{BASE}/migration", json={"no_fallback_codes": ["CONFLICT"]})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_patch_requires_body(self, client):
        assert client.patch(f"{BASE}/migration", json={}).status_code == 400


class TestDashboardStats:

    def test_empty(self, client):
        res = client.get(f"{BASE}/dashboard-stats")
        assert res.status_code == 200
        assert res.get_json()["completion_rate"] == 0

    def test_plant_filter(self, client, profile, course, storage):
        from app.services.enrollment_service import EnrollmentOperations

        EnrollmentOperations(storage).create_enrollment({
            "user_id": profile["id"], "course_id": course["id"], "plant_id": profile["plant_id"],
        })
        res = client.get(f"{BASE}/dashboard-stats?plant_id={profile['plant_id']}")
        assert res.get_json()["total_enrollments"] == 1

    def test_invalid_plant_id(self, client):
        res = client.get(f"{BASE}/dashboard-stats?plant_id=abc")
        assert res.status_code == 400
        assert res.get_json()["code"] == "VALIDATION_ERROR"
        assert res.get_json()["details"] == {"field": "plant_id"}


def test_unknown_api_path_is_json_404(client):
    res = client.get("/api/v1/nope")
    assert res.status_code == 404
    assert res.get_json()["error"] == "Not found"
