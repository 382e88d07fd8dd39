"""
Data Layer Admin Blueprint

Operator endpoints for the data-layer migration switch and the dashboard
rollup. Authentication is applied by the surrounding application.

    GET    /api/v1/admin/data-layer/migration          current routing snapshot
    PATCH  /api/v1/admin/data-layer/migration          toggle boolean fields
    GET    /api/v1/admin/data-layer/dashboard-stats    ?plant_id=<uuid>
"""

import logging

from flask import Blueprint, jsonify, request

from app.services import migration_manager
from app.services.database_service import DatabaseService
from app.utils.errors import E, api_error, result_response

logger = logging.getLogger(__name__)

admin_bp = Blueprint("data_layer_admin", __name__, url_prefix="/api/v1/admin/data-layer")

_TOGGLES = ("use_new_service", "enable_logging", "fallback_to_legacy", "shadow_compare")


@admin_bp.route("/migration", methods=["GET"])
def get_migration_status():
    """Return the current migration snapshot."""
    return jsonify(migration_manager.get_status()), 200


@admin_bp.route("/migration", methods=["PATCH"])
def update_migration():
    """Merge boolean toggles into the migration snapshot."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a non-empty JSON object")

    unknown = sorted(set(data) - set(_TOGGLES))
    if unknown:
        return api_error(
            E.VALIDATION_INVALID,
            f"Unknown fields: {', '.join(unknown)}",
            details={"allowed": list(_TOGGLES)},
        )
    for key, value in data.items():
        if not isinstance(value, bool):
            return api_error(
                E.VALIDATION_INVALID, f"{key} must be a boolean", details={"field": key},
            )

    migration_manager.update_config(**data)
    logger.warning("Data-layer migration config changed via API: %s", data)
    return jsonify(migration_manager.get_status()), 200


@admin_bp.route("/dashboard-stats", methods=["GET"])
def dashboard_stats():
    """Enrollment totals and completion rate, optionally for one plant."""
    plant_id = request.args.get("plant_id") or None
    return result_response(DatabaseService().get_dashboard_stats(plant_id))
