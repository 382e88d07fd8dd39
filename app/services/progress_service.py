"""
Progress Service — per-course position tracking.

One Progress row per (user_id, course_id). progress_percent is an integer
in [0, 100]; it is expected to only grow, but a decrease is accepted (a
course may be re-versioned) and logged.
"""

import logging

from app.core.exceptions import NotFoundError, ValidationError
from app.core.result import result_operation
from app.models.base import _utcnow
from app.models.training import Progress
from app.services.helpers.conflict_detector import ensure_no_progress
from app.services.helpers.references import require_course, require_profile_in_plant
from app.services.helpers.tenant_filter import get_scoped, plant_scope, validate_access
from app.utils.helpers import parse_int, parse_uuid, require_fields

logger = logging.getLogger(__name__)


def _percent(value):
    return parse_int(value, "progress_percent", minimum=0, maximum=100)


class ProgressOperations:

    def __init__(self, storage):
        self.storage = storage

    @result_operation("create_progress")
    def create_progress(self, data, context=None):
        require_fields(data, ("user_id", "course_id", "plant_id"))
        user_id = parse_uuid(data["user_id"], "user_id")
        course_id = parse_uuid(data["course_id"], "course_id")
        plant_id = parse_uuid(data["plant_id"], "plant_id")
        percent = _percent(data.get("progress_percent", 0))
        if context is not None and not validate_access(context, plant_id):
            raise NotFoundError("Plant", plant_id)

        with self.storage.unit_of_work():
            require_profile_in_plant(self.storage, user_id, plant_id)
            require_course(self.storage, course_id)
            ensure_no_progress(self.storage, user_id, course_id)
            row = self.storage.insert(Progress, {
                "user_id": user_id,
                "course_id": course_id,
                "plant_id": plant_id,
                "progress_percent": percent,
                "current_section": data.get("current_section"),
                "last_active_at": _utcnow(),
            })
        return row.to_dict()

    @result_operation("get_progress")
    def get_progress(self, progress_id, context):
        pk = parse_uuid(progress_id)
        return get_scoped(self.storage, Progress, pk, context).to_dict()

    @result_operation("update_progress")
    def update_progress(self, progress_id, patch, context):
        pk = parse_uuid(progress_id)
        values = {}
        if "progress_percent" in patch:
            values["progress_percent"] = _percent(patch["progress_percent"])
        if "current_section" in patch:
            values["current_section"] = patch["current_section"]
        if not values:
            raise ValidationError("No updatable fields supplied")
        values["last_active_at"] = _utcnow()

        with self.storage.unit_of_work():
            current = get_scoped(self.storage, Progress, pk, context)
            new_percent = values.get("progress_percent")
            if new_percent is not None and new_percent < current.progress_percent:
                logger.warning(
                    "Progress %s decreased from %s to %s", pk, current.progress_percent, new_percent,
                    extra={"entity": "Progress", "plant_id": current.plant_id, "user_id": current.user_id},
                )
            rows = self.storage.update(
                Progress, values, Progress.id == pk, plant_scope(Progress.plant_id, context),
            )
            if not rows:
                raise NotFoundError("Progress", pk)
        return rows[0].to_dict()

    @result_operation("delete_progress")
    def delete_progress(self, progress_id, context):
        pk = parse_uuid(progress_id)
        with self.storage.unit_of_work():
            deleted = self.storage.delete(
                Progress, Progress.id == pk, plant_scope(Progress.plant_id, context),
            )
            if deleted == 0:
                raise NotFoundError("Progress", pk)
        return {"id": pk}
