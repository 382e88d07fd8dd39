"""
Training activity models: Enrollment, Progress, QuestionEvent.

Enrollment and Progress are keyed by (user_id, course_id); the unique
constraints back up the pre-insert conflict checks done by the services.
"""

from app.models import db
from app.models.base import PlantScopedModel, _iso, _utcnow

ENROLLMENT_STATUSES = ("enrolled", "in_progress", "completed")


class Enrollment(PlantScopedModel):
    """A profile's enrollment into a course."""
    __tablename__ = "enrollments"

    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
    )
    course_id = db.Column(
        db.String(36), db.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False,
    )
    status = db.Column(db.String(20), nullable=False, default="enrolled")  # enrolled | in_progress | completed
    enrolled_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        db.UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),
        PlantScopedModel.plant_composite_index("enrollments", "course_id"),
        db.Index("ix_enrollments_status", "status"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "plant_id": self.plant_id,
            "status": self.status,
            "enrolled_at": _iso(self.enrolled_at),
            "completed_at": _iso(self.completed_at),
        }


class Progress(PlantScopedModel):
    """Last known position of a profile inside a course."""
    __tablename__ = "progress"

    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
    )
    course_id = db.Column(
        db.String(36), db.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False,
    )
    progress_percent = db.Column(db.Integer, nullable=False, default=0)
    current_section = db.Column(db.String(200), nullable=True)
    last_active_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "course_id", name="uq_progress_user_course"),
        db.CheckConstraint(
            "progress_percent >= 0 AND progress_percent <= 100",
            name="ck_progress_percent_range",
        ),
        PlantScopedModel.plant_composite_index("progress", "course_id"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "plant_id": self.plant_id,
            "progress_percent": self.progress_percent,
            "current_section": self.current_section,
            "last_active_at": _iso(self.last_active_at),
        }


class QuestionEvent(PlantScopedModel):
    """One answer submitted to an in-course question."""
    __tablename__ = "question_events"

    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
    )
    course_id = db.Column(
        db.String(36), db.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False,
    )
    section_key = db.Column(db.String(100), nullable=False)
    question_key = db.Column(db.String(100), nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False)
    attempt_index = db.Column(db.Integer, nullable=False, default=1)
    answered_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        PlantScopedModel.plant_composite_index("question_events", "course_id", "question_key"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "plant_id": self.plant_id,
            "section_key": self.section_key,
            "question_key": self.question_key,
            "is_correct": self.is_correct,
            "attempt_index": self.attempt_index,
            "answered_at": _iso(self.answered_at),
        }
