"""
Plant-level tenant filter.

Every read or write of plant-scoped data goes through these helpers. A
caller is described by a request-scoped ``UserContext``; its
``accessible_plants`` is either an explicit list of plant ids or ``["*"]``
for organisation-wide admins.

Rules enforced here:
  1. ``validate_access`` is true iff the plant is listed or the wildcard is.
     An empty list grants nothing.
  2. List queries are default-scoped: the tenant predicate is ALWAYS part of
     the WHERE clause. An explicit ``plant_id`` filter is ANDed with it, so a
     caller can narrow their own access but never widen it.
  3. A row outside the caller's plants is reported as NotFoundError, exactly
     like a missing row.

Usage:
    ctx = UserContext(user_id=uid, plant_id=p1, accessible_plants=(p1,))
    clause = plant_scope(Enrollment.plant_id, ctx, plant_id=filters.get("plant_id"))
    rows = storage.find_many(Enrollment, clause, ...)

    profile = get_scoped(storage, Profile, profile_id, ctx)
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import and_, false, true

from app.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

WILDCARD = "*"
GLOBAL_ROLES = ("hr_admin", "dev_admin")


@dataclass(frozen=True)
class RoleGrant:
    """An admin role as seen by the authorization layer."""

    role: str
    plant_id: str | None = None


@dataclass(frozen=True)
class UserContext:
    """Request-scoped authorization token consumed by every scoped call."""

    user_id: str
    plant_id: str
    accessible_plants: tuple = ()
    roles: tuple = field(default_factory=tuple)

    def __post_init__(self):
        # Accept lists from callers but keep the snapshot immutable.
        object.__setattr__(self, "accessible_plants", tuple(self.accessible_plants))
        object.__setattr__(
            self,
            "roles",
            tuple(r if isinstance(r, RoleGrant) else RoleGrant(**r) for r in self.roles),
        )

    @property
    def is_global(self) -> bool:
        return WILDCARD in self.accessible_plants


def validate_access(context: UserContext, plant_id: str | None) -> bool:
    """Return True iff *context* may access rows belonging to *plant_id*."""
    plants = context.accessible_plants
    if WILDCARD in plants:
        return True
    return plant_id is not None and plant_id in plants


def plant_scope(column, context: UserContext | None, plant_id: str | None = None):
    """Build the tenant predicate for *column*.

    ``context=None`` means an internal, unscoped call (admin reports); only
    the explicit ``plant_id`` narrowing applies then.
    """
    clauses = []
    if context is not None and not context.is_global:
        if not context.accessible_plants:
            return false()
        clauses.append(column.in_(context.accessible_plants))
    if plant_id is not None:
        clauses.append(column == plant_id)
    if not clauses:
        return true()
    return and_(*clauses)


def get_scoped(storage, model, pk: str, context: UserContext, *, resource: str | None = None):
    """Fetch a plant-scoped row by PK, or raise NotFoundError.

    Cross-tenant access is indistinguishable from a missing row.
    """
    resource = resource or model.__name__
    row = storage.find_first(model, model.id == pk, plant_scope(model.plant_id, context))
    if row is None:
        logger.debug(
            "get_scoped: %s id=%s not visible to user=%s",
            resource, pk, getattr(context, "user_id", None),
            extra={"entity": resource, "user_id": getattr(context, "user_id", None)},
        )
        raise NotFoundError(resource=resource, resource_id=pk)
    return row


def accessible_plants_for(roles, home_plant_id: str | None) -> list[str]:
    """Derive the accessible-plant list from a profile's admin roles.

    hr_admin / dev_admin → ["*"]; plant_manager adds its plant; everyone
    sees their home plant.
    """
    grants = [r if isinstance(r, RoleGrant) else RoleGrant(r.role, r.plant_id) for r in roles]
    if any(g.role in GLOBAL_ROLES for g in grants):
        return [WILDCARD]
    plants = []
    for candidate in [home_plant_id] + [g.plant_id for g in grants if g.role == "plant_manager"]:
        if candidate and candidate not in plants:
            plants.append(candidate)
    return plants


def build_user_context(profile) -> UserContext:
    """Build the UserContext for a Profile row and its AdminRole rows."""
    grants = tuple(RoleGrant(r.role, r.plant_id) for r in profile.admin_roles)
    return UserContext(
        user_id=profile.id,
        plant_id=profile.plant_id,
        accessible_plants=tuple(accessible_plants_for(grants, profile.plant_id)),
        roles=grants,
    )


def has_admin_role(context: UserContext, role: str | None = None, plant_id: str | None = None) -> bool:
    """Check whether *context* holds *role* (any admin role when None).

    A plant-bound grant only counts for its own plant; a grant without a
    plant counts everywhere.
    """
    if role is None:
        return bool(context.roles)
    for grant in context.roles:
        if grant.role != role:
            continue
        if plant_id and grant.plant_id and grant.plant_id != plant_id:
            continue
        return True
    return False
