"""
Profile and AdminRole Models.

A Profile is a learner account bound to one home plant. AdminRole grants
elevated visibility: hr_admin / dev_admin are organisation-wide, a
plant_manager role is tied to one plant. ``plant_id = NULL`` on a role means
global scope for that role.
"""

from app.models import db
from app.models.base import PlantScopedModel, TimestampedModel, _iso

PROFILE_STATUSES = ("active", "suspended")
ADMIN_ROLES = ("hr_admin", "dev_admin", "plant_manager")


class Profile(PlantScopedModel):
    """LMS user profile."""
    __tablename__ = "profiles"

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    job_title = db.Column(db.String(200), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="active")  # active | suspended

    admin_roles = db.relationship(
        "AdminRole", back_populates="profile",
        lazy="selectin", cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self, include_roles=True):
        d = {
            "id": self.id,
            "plant_id": self.plant_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "job_title": self.job_title,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_roles:
            d["admin_roles"] = [r.to_dict() for r in self.admin_roles]
        return d


class AdminRole(TimestampedModel):
    """Role grant held by a Profile."""
    __tablename__ = "admin_roles"

    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    role = db.Column(db.String(20), nullable=False)  # hr_admin | dev_admin | plant_manager
    plant_id = db.Column(db.String(36), db.ForeignKey("plants.id"), nullable=True)

    __table_args__ = (
        db.UniqueConstraint("user_id", "role", "plant_id", name="uq_admin_roles_user_role_plant"),
    )

    profile = db.relationship("Profile", back_populates="admin_roles")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "role": self.role,
            "plant_id": self.plant_id,
        }
