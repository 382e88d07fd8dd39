"""
Plant Service — tenant root CRUD.
"""

import logging

from app.core.exceptions import NotFoundError, ValidationError
from app.core.result import result_operation
from app.models.plant import Plant
from app.services.helpers.conflict_detector import ensure_unique_plant_name
from app.services.helpers.tenant_filter import plant_scope, validate_access
from app.utils.helpers import parse_bool, parse_str, parse_uuid, require_fields

logger = logging.getLogger(__name__)


class PlantOperations:
    """Plants are visible to a caller when listed in their accessible plants."""

    def __init__(self, storage):
        self.storage = storage

    def _get_visible(self, plant_id, context):
        pk = parse_uuid(plant_id)
        plant = self.storage.find_first(Plant, Plant.id == pk)
        if plant is None or not validate_access(context, pk):
            raise NotFoundError("Plant", pk)
        return plant

    @result_operation("create_plant")
    def create_plant(self, data):
        require_fields(data, ("name",))
        name = parse_str(data["name"], "name")
        is_active = parse_bool(data.get("is_active", True), "is_active")
        with self.storage.unit_of_work():
            ensure_unique_plant_name(self.storage, name)
            plant = self.storage.insert(Plant, {"name": name, "is_active": is_active})
        logger.info("Created plant %s", plant.id, extra={"plant_id": plant.id})
        return plant.to_dict()

    @result_operation("get_plant")
    def get_plant(self, plant_id, context):
        return self._get_visible(plant_id, context).to_dict()

    @result_operation("update_plant")
    def update_plant(self, plant_id, patch, context):
        plant = self._get_visible(plant_id, context)
        values = {}
        if "name" in patch:
            values["name"] = parse_str(patch["name"], "name")
        if "is_active" in patch:
            values["is_active"] = parse_bool(patch["is_active"], "is_active")
        if not values:
            raise ValidationError("No updatable fields supplied")
        with self.storage.unit_of_work():
            if "name" in values:
                ensure_unique_plant_name(self.storage, values["name"], exclude_id=plant.id)
            rows = self.storage.update(Plant, values, Plant.id == plant.id)
            if not rows:
                raise NotFoundError("Plant", plant.id)
        return rows[0].to_dict()

    @result_operation("list_plants")
    def list_plants(self, context):
        rows = self.storage.find_many(
            Plant, plant_scope(Plant.id, context), order_by=(Plant.name.asc(), Plant.id.asc()),
        )
        return [p.to_dict() for p in rows]
