"""
PlantScopedModel — Abstract base class for plant-scoped (tenant) models.

All models that belong to a plant inherit from PlantScopedModel instead of
db.Model directly. This adds:
  - UUID string primary key
  - plant_id FK column with index
  - created_at / updated_at timestamps
  - plant_composite_index(...) helper
"""

import uuid
from datetime import datetime, timezone

from app.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class TimestampedModel(db.Model):
    """Abstract base: UUID id plus audit timestamps."""
    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False,
    )


class PlantScopedModel(TimestampedModel):
    """Abstract base for plant-scoped tables."""
    __abstract__ = True

    plant_id = db.Column(
        db.String(36),
        db.ForeignKey("plants.id"),
        nullable=False,
        index=True,
    )

    @classmethod
    def plant_composite_index(cls, table_name, *extra_cols):
        """Helper to build a (plant_id, ...) composite index."""
        name = f"ix_{table_name}_plant_{'_'.join(extra_cols)}"
        return db.Index(name, "plant_id", *extra_cols)
