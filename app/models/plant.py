"""
Plant Model — tenant root.

Every Profile, Enrollment, Progress and QuestionEvent row references a plant.
Inactive plants keep their data; ``is_active`` only hides them from sign-up.
"""

from app.models import db
from app.models.base import TimestampedModel, _iso


class Plant(TimestampedModel):
    """A physical site; the isolation boundary for tenant data."""
    __tablename__ = "plants"

    name = db.Column(db.String(200), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
