"""
Course Model — shared training catalog.

Courses are not plant-scoped; every plant enrolls into the same catalog.
"""

from app.models import db
from app.models.base import TimestampedModel, _iso


class Course(TimestampedModel):
    """Published or draft safety-training course."""
    __tablename__ = "courses"

    slug = db.Column(db.String(200), unique=True, nullable=False)
    title = db.Column(db.String(300), nullable=False)
    version = db.Column(db.String(20), nullable=False, default="1.0")
    is_published = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self):
        return {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "version": self.version,
            "is_published": self.is_published,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
