"""
Profile Service — user CRUD, admin role grants, context building.

All reads and writes are plant-scoped through the caller's UserContext.
Profiles outside the caller's plants behave exactly like missing ones.
"""

import logging

from email_validator import EmailNotValidError, validate_email

from app.core.exceptions import NotFoundError, ValidationError
from app.core.result import result_operation
from app.models.profile import ADMIN_ROLES, PROFILE_STATUSES, AdminRole, Profile
from app.services.helpers.conflict_detector import ensure_role_not_granted, ensure_unique_email
from app.services.helpers.references import require_plant
from app.services.helpers.tenant_filter import (
    build_user_context,
    get_scoped,
    plant_scope,
    validate_access,
)
from app.utils.helpers import parse_str, parse_uuid, require_fields

logger = logging.getLogger(__name__)

_UPDATABLE = ("first_name", "last_name", "email", "job_title", "status", "plant_id")


def normalize_email(email):
    """Validate syntax and return the normalised address."""
    try:
        return validate_email(str(email), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", field="email")


def _check_status(status):
    if status not in PROFILE_STATUSES:
        raise ValidationError(
            f"status must be one of {', '.join(PROFILE_STATUSES)}", field="status",
        )
    return status


class ProfileOperations:
    """Create/read/update/delete for Profile rows."""

    def __init__(self, storage):
        self.storage = storage

    @result_operation("create_user")
    def create_user(self, data, context=None):
        require_fields(data, ("plant_id", "first_name", "last_name", "email"))
        plant_id = parse_uuid(data["plant_id"], "plant_id")
        if context is not None and not validate_access(context, plant_id):
            raise NotFoundError("Plant", plant_id)

        values = {
            "plant_id": plant_id,
            "first_name": parse_str(data["first_name"], "first_name"),
            "last_name": parse_str(data["last_name"], "last_name"),
            "email": normalize_email(data["email"]),
            "job_title": data.get("job_title"),
            "status": _check_status(data.get("status", "active")),
        }
        # Profiles created at sign-up reuse the identity provider's user id.
        if data.get("id"):
            values["id"] = parse_uuid(data["id"])

        with self.storage.unit_of_work():
            require_plant(self.storage, plant_id)
            ensure_unique_email(self.storage, values["email"])
            profile = self.storage.insert(Profile, values)

        logger.info(
            "Created profile %s", profile.id,
            extra={"entity": "Profile", "plant_id": plant_id, "user_id": profile.id},
        )
        return profile.to_dict()

    @result_operation("get_user_by_id")
    def get_user_by_id(self, user_id, context):
        pk = parse_uuid(user_id)
        return get_scoped(self.storage, Profile, pk, context).to_dict()

    @result_operation("get_user_by_email")
    def get_user_by_email(self, email, context):
        address = normalize_email(email)
        profile = self.storage.find_first(
            Profile, Profile.email == address, plant_scope(Profile.plant_id, context),
        )
        if profile is None:
            raise NotFoundError("Profile")
        return profile.to_dict()

    @result_operation("update_user")
    def update_user(self, user_id, patch, context):
        pk = parse_uuid(user_id)
        values = {k: patch[k] for k in _UPDATABLE if k in patch}
        if not values:
            raise ValidationError("No updatable fields supplied")

        for name in ("first_name", "last_name"):
            if name in values:
                values[name] = parse_str(values[name], name)
        if "email" in values:
            values["email"] = normalize_email(values["email"])
        if "status" in values:
            _check_status(values["status"])
        if "plant_id" in values:
            values["plant_id"] = parse_uuid(values["plant_id"], "plant_id")
            # Moving a profile requires access to the destination plant too.
            if not validate_access(context, values["plant_id"]):
                raise NotFoundError("Plant", values["plant_id"])

        with self.storage.unit_of_work():
            get_scoped(self.storage, Profile, pk, context)
            if "plant_id" in values:
                require_plant(self.storage, values["plant_id"])
            if "email" in values:
                ensure_unique_email(self.storage, values["email"], exclude_id=pk)
            rows = self.storage.update(
                Profile, values, Profile.id == pk, plant_scope(Profile.plant_id, context),
            )
            if not rows:
                raise NotFoundError("Profile", pk)
        return rows[0].to_dict()

    @result_operation("delete_user")
    def delete_user(self, user_id, context):
        pk = parse_uuid(user_id)
        with self.storage.unit_of_work():
            deleted = self.storage.delete(
                Profile, Profile.id == pk, plant_scope(Profile.plant_id, context),
            )
            if deleted == 0:
                raise NotFoundError("Profile", pk)
        logger.info("Deleted profile %s", pk, extra={"entity": "Profile", "user_id": pk})
        return {"id": pk}

    @result_operation("add_admin_role")
    def add_admin_role(self, user_id, role, context, plant_id=None):
        """Grant *role* to a profile. Only organisation-wide callers may grant."""
        pk = parse_uuid(user_id)
        if role not in ADMIN_ROLES:
            raise ValidationError(f"role must be one of {', '.join(ADMIN_ROLES)}", field="role")
        if plant_id is not None:
            plant_id = parse_uuid(plant_id, "plant_id")
        elif role == "plant_manager":
            raise ValidationError("plant_manager requires a plant_id", field="plant_id")
        if not context.is_global:
            raise NotFoundError("Profile", pk)

        with self.storage.unit_of_work():
            get_scoped(self.storage, Profile, pk, context)
            if plant_id is not None:
                require_plant(self.storage, plant_id)
            ensure_role_not_granted(self.storage, pk, role, plant_id)
            grant = self.storage.insert(
                AdminRole, {"user_id": pk, "role": role, "plant_id": plant_id},
            )
        logger.info(
            "Granted %s to profile %s", role, pk,
            extra={"entity": "AdminRole", "user_id": pk, "plant_id": plant_id},
        )
        return grant.to_dict()

    @result_operation("get_user_context")
    def get_user_context(self, user_id):
        """Build the UserContext for a signed-in profile (unscoped, internal)."""
        pk = parse_uuid(user_id)
        profile = self.storage.find_first(Profile, Profile.id == pk)
        if profile is None:
            raise NotFoundError("Profile", pk)
        return build_user_context(profile)
