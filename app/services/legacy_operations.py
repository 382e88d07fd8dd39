"""
Legacy data layer — the pre-rewrite implementation kept behind the
migration switch.

Module-level functions working on ``Model.query`` / ``db.session``
directly. Differences from the rewritten services that shadow comparison
is expected to surface:
  - tenant scope is the caller's home ``plant_id`` only; wildcard and
    multi-plant access lists never widen it beyond that plant;
  - analytics are computed in Python over loaded rows.

Authorization and lifecycle rules are the same as the rewritten services:
an empty access list sees nothing, catalog and role changes need an
organisation-wide caller, enrollment status only moves forward.

Every function returns the same Result union as the new implementation.
"""

import logging
import math
from collections import defaultdict

from sqlalchemy import false, or_

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.result import result_operation
from app.models import db
from app.models.base import _utcnow
from app.models.course import Course
from app.models.plant import Plant
from app.models.profile import ADMIN_ROLES, PROFILE_STATUSES, AdminRole, Profile
from app.models.training import ENROLLMENT_STATUSES, Enrollment, Progress, QuestionEvent
from app.services.helpers.pagination import page_params
from app.services.helpers.tenant_filter import UserContext, validate_access
from app.services.profile_service import normalize_email
from app.services.query_service import like_pattern
from app.utils.helpers import parse_bool, parse_int, parse_str, parse_uuid, require_fields

logger = logging.getLogger(__name__)


def _home_plant(context):
    """The single plant a legacy caller may touch, or None for no access."""
    if context.plant_id and validate_access(context, context.plant_id):
        return context.plant_id
    return None


def _scoped(query, model, context):
    """Home-plant scoping: the only tenant rule the legacy layer knows."""
    if context is None:
        return query
    home = _home_plant(context)
    if home is None:
        return query.filter(false())
    return query.filter(model.plant_id == home)


def _get_or_404(model, pk, context, resource):
    row = _scoped(model.query.filter(model.id == pk), model, context).first()
    if row is None:
        raise NotFoundError(resource, pk)
    return row


def _own_plant(context, plant_id):
    if context is not None and _home_plant(context) != plant_id:
        raise NotFoundError("Plant", plant_id)


def _require_global(context, resource, pk):
    if context is None or not context.is_global:
        raise NotFoundError(resource, pk)


def _paginate(query, order_by, filters):
    page, limit = page_params(filters)
    total = query.count()
    rows = query.order_by(*order_by).offset((page - 1) * limit).limit(limit).all()
    return {
        "data": [r.to_dict() for r in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
    }


def _pct(part, whole):
    return round(part / whole * 100, 1) if whole else 0


def _avg(values):
    return round(sum(values) / len(values), 1) if values else 0


# ═════════════════════════════════════════════════════════════════════════════
# Plants
# ═════════════════════════════════════════════════════════════════════════════


@result_operation("legacy.create_plant")
def create_plant(data):
    require_fields(data, ("name",))
    name = parse_str(data["name"], "name")
    if Plant.query.filter_by(name=name).first():
        raise ConflictError("Plant", "name", name, "Plant with this name already exists")
    plant = Plant(name=name, is_active=parse_bool(data.get("is_active", True), "is_active"))
    db.session.add(plant)
    db.session.commit()
    return plant.to_dict()


@result_operation("legacy.get_plant")
def get_plant(plant_id, context):
    pk = parse_uuid(plant_id)
    _own_plant(context, pk)
    plant = db.session.get(Plant, pk)
    if plant is None:
        raise NotFoundError("Plant", pk)
    return plant.to_dict()


@result_operation("legacy.update_plant")
def update_plant(plant_id, patch, context):
    pk = parse_uuid(plant_id)
    _own_plant(context, pk)
    plant = db.session.get(Plant, pk)
    if plant is None:
        raise NotFoundError("Plant", pk)
    if "name" in patch:
        name = parse_str(patch["name"], "name")
        if Plant.query.filter(Plant.name == name, Plant.id != pk).first():
            raise ConflictError("Plant", "name", name, "Plant with this name already exists")
        plant.name = name
    if "is_active" in patch:
        plant.is_active = parse_bool(patch["is_active"], "is_active")
    db.session.commit()
    return plant.to_dict()


@result_operation("legacy.list_plants")
def list_plants(context):
    q = Plant.query
    if context is not None:
        q = q.filter(Plant.id == _home_plant(context))
    return [p.to_dict() for p in q.order_by(Plant.name, Plant.id).all()]


# ═════════════════════════════════════════════════════════════════════════════
# Profiles
# ═════════════════════════════════════════════════════════════════════════════


@result_operation("legacy.create_user")
def create_user(data, context=None):
    require_fields(data, ("plant_id", "first_name", "last_name", "email"))
    plant_id = parse_uuid(data["plant_id"], "plant_id")
    _own_plant(context, plant_id)
    if db.session.get(Plant, plant_id) is None:
        raise ValidationError("Plant does not exist", field="plant_id")
    email = normalize_email(data["email"])
    if Profile.query.filter_by(email=email).first():
        raise ConflictError("Profile", "email", email, "User with this email already exists")
    status = data.get("status", "active")
    if status not in PROFILE_STATUSES:
        raise ValidationError("Invalid status", field="status")

    profile = Profile(
        plant_id=plant_id,
        first_name=parse_str(data["first_name"], "first_name"),
        last_name=parse_str(data["last_name"], "last_name"),
        email=email,
        job_title=data.get("job_title"),
        status=status,
    )
    if data.get("id"):
        profile.id = parse_uuid(data["id"])
    db.session.add(profile)
    db.session.commit()
    return profile.to_dict()


@result_operation("legacy.get_user_by_id")
def get_user_by_id(user_id, context):
    return _get_or_404(Profile, parse_uuid(user_id), context, "Profile").to_dict()


@result_operation("legacy.get_user_by_email")
def get_user_by_email(email, context):
    profile = _scoped(Profile.query.filter_by(email=normalize_email(email)), Profile, context).first()
    if profile is None:
        raise NotFoundError("Profile")
    return profile.to_dict()


@result_operation("legacy.update_user")
def update_user(user_id, patch, context):
    pk = parse_uuid(user_id)
    profile = _get_or_404(Profile, pk, context, "Profile")
    if "email" in patch:
        email = normalize_email(patch["email"])
        if Profile.query.filter(Profile.email == email, Profile.id != pk).first():
            raise ConflictError("Profile", "email", email, "User with this email already exists")
        profile.email = email
    if "status" in patch:
        if patch["status"] not in PROFILE_STATUSES:
            raise ValidationError("Invalid status", field="status")
        profile.status = patch["status"]
    if "plant_id" in patch:
        plant_id = parse_uuid(patch["plant_id"], "plant_id")
        _own_plant(context, plant_id)
        if db.session.get(Plant, plant_id) is None:
            raise ValidationError("Plant does not exist", field="plant_id")
        profile.plant_id = plant_id
    for name in ("first_name", "last_name"):
        if name in patch:
            setattr(profile, name, parse_str(patch[name], name))
    if "job_title" in patch:
        profile.job_title = patch["job_title"]
    db.session.commit()
    return profile.to_dict()


@result_operation("legacy.delete_user")
def delete_user(user_id, context):
    pk = parse_uuid(user_id)
    profile = _get_or_404(Profile, pk, context, "Profile")
    db.session.delete(profile)
    db.session.commit()
    return {"id": pk}


@result_operation("legacy.add_admin_role")
def add_admin_role(user_id, role, context, plant_id=None):
    pk = parse_uuid(user_id)
    if role not in ADMIN_ROLES:
        raise ValidationError("Invalid role", field="role")
    if plant_id is not None:
        plant_id = parse_uuid(plant_id, "plant_id")
    elif role == "plant_manager":
        raise ValidationError("plant_manager requires a plant_id", field="plant_id")
    _require_global(context, "Profile", pk)
    if db.session.get(Profile, pk) is None:
        raise NotFoundError("Profile", pk)
    if plant_id is not None and db.session.get(Plant, plant_id) is None:
        raise ValidationError("Plant does not exist", field="plant_id")
    if AdminRole.query.filter_by(user_id=pk, role=role, plant_id=plant_id).first():
        raise ConflictError("AdminRole", "role", role, "User already holds this role")
    grant = AdminRole(user_id=pk, role=role, plant_id=plant_id)
    db.session.add(grant)
    db.session.commit()
    return grant.to_dict()


@result_operation("legacy.get_user_context")
def get_user_context(user_id):
    pk = parse_uuid(user_id)
    profile = db.session.get(Profile, pk)
    if profile is None:
        raise NotFoundError("Profile", pk)
    return UserContext(
        user_id=profile.id,
        plant_id=profile.plant_id,
        accessible_plants=(profile.plant_id,),
        roles=tuple({"role": r.role, "plant_id": r.plant_id} for r in profile.admin_roles),
    )


# ═════════════════════════════════════════════════════════════════════════════
# Courses
# ═════════════════════════════════════════════════════════════════════════════


@result_operation("legacy.create_course")
def create_course(data):
    require_fields(data, ("slug", "title"))
    slug = parse_str(data["slug"], "slug")
    if Course.query.filter_by(slug=slug).first():
        raise ConflictError("Course", "slug", slug, "Course with this slug already exists")
    course = Course(
        slug=slug,
        title=parse_str(data["title"], "title"),
        version=parse_str(data.get("version", "1.0"), "version"),
        is_published=parse_bool(data.get("is_published", False), "is_published"),
    )
    db.session.add(course)
    db.session.commit()
    return course.to_dict()


@result_operation("legacy.get_course_by_id")
def get_course_by_id(course_id, context=None):
    pk = parse_uuid(course_id)
    course = db.session.get(Course, pk)
    if course is None:
        raise NotFoundError("Course", pk)
    return course.to_dict()


@result_operation("legacy.get_course_by_slug")
def get_course_by_slug(slug):
    course = Course.query.filter_by(slug=str(slug).strip()).first()
    if course is None:
        raise NotFoundError("Course")
    return course.to_dict()


@result_operation("legacy.update_course")
def update_course(course_id, patch, context):
    pk = parse_uuid(course_id)
    _require_global(context, "Course", pk)
    course = db.session.get(Course, pk)
    if course is None:
        raise NotFoundError("Course", pk)
    if "slug" in patch:
        slug = parse_str(patch["slug"], "slug")
        if Course.query.filter(Course.slug == slug, Course.id != pk).first():
            raise ConflictError("Course", "slug", slug, "Course with this slug already exists")
        course.slug = slug
    for name in ("title", "version"):
        if name in patch:
            setattr(course, name, parse_str(patch[name], name))
    if "is_published" in patch:
        course.is_published = parse_bool(patch["is_published"], "is_published")
    db.session.commit()
    return course.to_dict()


@result_operation("legacy.delete_course")
def delete_course(course_id, context):
    pk = parse_uuid(course_id)
    _require_global(context, "Course", pk)
    course = db.session.get(Course, pk)
    if course is None:
        raise NotFoundError("Course", pk)
    db.session.delete(course)
    db.session.commit()
    return {"id": pk}


# ═════════════════════════════════════════════════════════════════════════════
# Enrollments & progress
# ═════════════════════════════════════════════════════════════════════════════


def _check_refs(data, context):
    require_fields(data, ("user_id", "course_id", "plant_id"))
    user_id = parse_uuid(data["user_id"], "user_id")
    course_id = parse_uuid(data["course_id"], "course_id")
    plant_id = parse_uuid(data["plant_id"], "plant_id")
    _own_plant(context, plant_id)
    profile = db.session.get(Profile, user_id)
    if profile is None:
        raise ValidationError("User does not exist", field="user_id")
    if profile.plant_id != plant_id:
        raise ValidationError("plant_id must match the user's plant", field="plant_id")
    if db.session.get(Course, course_id) is None:
        raise ValidationError("Course does not exist", field="course_id")
    return user_id, course_id, plant_id


@result_operation("legacy.create_enrollment")
def create_enrollment(data, context=None):
    user_id, course_id, plant_id = _check_refs(data, context)
    status = data.get("status", "enrolled")
    if status not in ENROLLMENT_STATUSES:
        raise ValidationError("Invalid status", field="status")
    if Enrollment.query.filter_by(user_id=user_id, course_id=course_id).first():
        raise ConflictError(
            "Enrollment", "user_id,course_id", None, "User is already enrolled in this course",
        )
    now = _utcnow()
    enrollment = Enrollment(
        user_id=user_id, course_id=course_id, plant_id=plant_id, status=status,
        enrolled_at=now, completed_at=now if status == "completed" else None,
    )
    db.session.add(enrollment)
    db.session.commit()
    return enrollment.to_dict()


@result_operation("legacy.get_enrollment")
def get_enrollment(enrollment_id, context):
    return _get_or_404(Enrollment, parse_uuid(enrollment_id), context, "Enrollment").to_dict()


@result_operation("legacy.update_enrollment")
def update_enrollment(enrollment_id, patch, context):
    enrollment = _get_or_404(Enrollment, parse_uuid(enrollment_id), context, "Enrollment")
    status = patch.get("status")
    if status not in ENROLLMENT_STATUSES:
        raise ValidationError("Invalid status", field="status")
    if ENROLLMENT_STATUSES.index(status) < ENROLLMENT_STATUSES.index(enrollment.status):
        raise ValidationError(
            f"Enrollment status cannot move from {enrollment.status} to {status}", field="status",
        )
    if status == "completed" and enrollment.status != "completed":
        enrollment.completed_at = _utcnow()
    enrollment.status = status
    db.session.commit()
    return enrollment.to_dict()


@result_operation("legacy.delete_enrollment")
def delete_enrollment(enrollment_id, context):
    pk = parse_uuid(enrollment_id)
    db.session.delete(_get_or_404(Enrollment, pk, context, "Enrollment"))
    db.session.commit()
    return {"id": pk}


@result_operation("legacy.get_user_enrollments")
def get_user_enrollments(user_id, context):
    q = _scoped(Enrollment.query.filter_by(user_id=parse_uuid(user_id, "user_id")), Enrollment, context)
    return [e.to_dict() for e in q.order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc()).all()]


@result_operation("legacy.create_progress")
def create_progress(data, context=None):
    user_id, course_id, plant_id = _check_refs(data, context)
    percent = parse_int(data.get("progress_percent", 0), "progress_percent", minimum=0, maximum=100)
    if Progress.query.filter_by(user_id=user_id, course_id=course_id).first():
        raise ConflictError(
            "Progress", "user_id,course_id", None, "Progress already exists for this user and course",
        )
    row = Progress(
        user_id=user_id, course_id=course_id, plant_id=plant_id, progress_percent=percent,
        current_section=data.get("current_section"), last_active_at=_utcnow(),
    )
    db.session.add(row)
    db.session.commit()
    return row.to_dict()


@result_operation("legacy.get_progress")
def get_progress(progress_id, context):
    return _get_or_404(Progress, parse_uuid(progress_id), context, "Progress").to_dict()


@result_operation("legacy.update_progress")
def update_progress(progress_id, patch, context):
    row = _get_or_404(Progress, parse_uuid(progress_id), context, "Progress")
    if "progress_percent" in patch:
        row.progress_percent = parse_int(
            patch["progress_percent"], "progress_percent", minimum=0, maximum=100,
        )
    if "current_section" in patch:
        row.current_section = patch["current_section"]
    row.last_active_at = _utcnow()
    db.session.commit()
    return row.to_dict()


@result_operation("legacy.delete_progress")
def delete_progress(progress_id, context):
    pk = parse_uuid(progress_id)
    db.session.delete(_get_or_404(Progress, pk, context, "Progress"))
    db.session.commit()
    return {"id": pk}


# ═════════════════════════════════════════════════════════════════════════════
# List queries
# ═════════════════════════════════════════════════════════════════════════════


@result_operation("legacy.list_users")
def list_users(filters, context):
    filters = filters or {}
    q = _scoped(Profile.query, Profile, context)
    if filters.get("plant_id"):
        q = q.filter(Profile.plant_id == parse_uuid(filters["plant_id"], "plant_id"))
    if filters.get("status"):
        q = q.filter(Profile.status == filters["status"])
    search = (filters.get("search") or "").strip()
    if search:
        term = like_pattern(search)
        q = q.filter(or_(
            Profile.first_name.ilike(term, escape="\\"),
            Profile.last_name.ilike(term, escape="\\"),
            Profile.email.ilike(term, escape="\\"),
        ))
    return _paginate(q, (Profile.created_at.desc(), Profile.id.desc()), filters)


@result_operation("legacy.list_courses")
def list_courses(filters, context=None):
    filters = filters or {}
    q = Course.query
    if filters.get("is_published") is not None:
        q = q.filter(Course.is_published == parse_bool(filters["is_published"], "is_published"))
    search = (filters.get("search") or "").strip()
    if search:
        term = like_pattern(search)
        q = q.filter(or_(Course.title.ilike(term, escape="\\"), Course.slug.ilike(term, escape="\\")))
    return _paginate(q, (Course.title.asc(), Course.id.asc()), filters)


@result_operation("legacy.list_enrollments")
def list_enrollments(filters, context):
    filters = filters or {}
    q = _scoped(Enrollment.query, Enrollment, context)
    for name in ("plant_id", "course_id", "user_id"):
        if filters.get(name):
            q = q.filter(getattr(Enrollment, name) == parse_uuid(filters[name], name))
    if filters.get("status"):
        q = q.filter(Enrollment.status == filters["status"])
    return _paginate(q, (Enrollment.enrolled_at.desc(), Enrollment.id.desc()), filters)


@result_operation("legacy.list_progress")
def list_progress(filters, context):
    filters = filters or {}
    q = _scoped(Progress.query, Progress, context)
    for name in ("plant_id", "course_id", "user_id"):
        if filters.get(name):
            q = q.filter(getattr(Progress, name) == parse_uuid(filters[name], name))
    if filters.get("min_progress") is not None:
        low = parse_int(filters["min_progress"], "min_progress", minimum=0, maximum=100)
        q = q.filter(Progress.progress_percent >= low)
    if filters.get("max_progress") is not None:
        high = parse_int(filters["max_progress"], "max_progress", minimum=0, maximum=100)
        q = q.filter(Progress.progress_percent <= high)
    return _paginate(q, (Progress.last_active_at.desc(), Progress.id.desc()), filters)


# ═════════════════════════════════════════════════════════════════════════════
# Analytics (computed in Python)
# ═════════════════════════════════════════════════════════════════════════════


def _enrollment_stats(enrollments):
    total = len(enrollments)
    completed = sum(1 for e in enrollments if e.status == "completed")
    in_progress = sum(1 for e in enrollments if e.status == "in_progress")
    return total, completed, in_progress


@result_operation("legacy.get_detailed_analytics")
def get_detailed_analytics(context=None):
    profiles = _scoped(Profile.query, Profile, context).all()
    enrollments = _scoped(Enrollment.query, Enrollment, context).all()
    progress = _scoped(Progress.query, Progress, context).all()
    events = _scoped(QuestionEvent.query, QuestionEvent, context).all()
    courses = Course.query.order_by(Course.title, Course.id).all()
    plants = Plant.query.order_by(Plant.name, Plant.id).all()
    if context is not None:
        plants = [p for p in plants if p.id == _home_plant(context)]

    total, completed, _ = _enrollment_stats(enrollments)
    overview = {
        "total_users": len(profiles),
        "active_users": sum(1 for p in profiles if p.status == "active"),
        "total_enrollments": total,
        "completed_courses": completed,
        "overall_completion_rate": _pct(completed, total),
    }

    def rollup(key, group_id):
        group = [e for e in enrollments if getattr(e, key) == group_id]
        g_total, g_completed, g_in_progress = _enrollment_stats(group)
        percents = [p.progress_percent for p in progress if getattr(p, key) == group_id]
        return {
            "total_enrollments": g_total,
            "completed_enrollments": g_completed,
            "in_progress_enrollments": g_in_progress,
            "average_progress": _avg(percents),
            "completion_rate": _pct(g_completed, g_total),
        }

    course_performance = []
    for course in courses:
        row = {"course_id": course.id, "course_name": course.title, **rollup("course_id", course.id)}
        row.pop("in_progress_enrollments")
        course_performance.append(row)

    plant_performance = [
        {
            "plant_id": plant.id,
            "plant_name": plant.name,
            "total_users": sum(1 for p in profiles if p.plant_id == plant.id),
            **rollup("plant_id", plant.id),
        }
        for plant in plants
    ]

    titles = {c.id: c.title for c in courses}
    grouped = defaultdict(list)
    for ev in events:
        grouped[(ev.course_id, ev.section_key, ev.question_key)].append(ev)
    question_analytics = []
    for (course_id, section_key, question_key), group in sorted(grouped.items()):
        correct = sum(1 for ev in group if ev.is_correct)
        question_analytics.append({
            "course_id": course_id,
            "course_name": titles.get(course_id, ""),
            "section_key": section_key,
            "question_key": question_key,
            "total_attempts": len(group),
            "correct_attempts": correct,
            "accuracy_rate": _pct(correct, len(group)),
            "average_attempts": _avg([ev.attempt_index for ev in group]),
        })

    compliance_tracking = []
    for plant in plants:
        required = sum(1 for p in profiles if p.plant_id == plant.id and p.status == "active")
        for course in courses:
            if not course.is_published:
                continue
            group = [e for e in enrollments if e.plant_id == plant.id and e.course_id == course.id]
            done = sum(1 for e in group if e.status == "completed")
            compliance_tracking.append({
                "plant_id": plant.id,
                "plant_name": plant.name,
                "course_id": course.id,
                "course_name": course.title,
                "required_users": required,
                "enrolled_users": len({e.user_id for e in group}),
                "completed_users": done,
                "compliance_rate": _pct(done, required),
                "overdue_users": max(0, required - done),
            })

    return {
        "overview": overview,
        "course_performance": course_performance,
        "plant_performance": plant_performance,
        "question_analytics": question_analytics,
        "compliance_tracking": compliance_tracking,
    }


@result_operation("legacy.get_dashboard_stats")
def get_dashboard_stats(plant_id=None):
    q = Enrollment.query
    if plant_id is not None:
        q = q.filter(Enrollment.plant_id == parse_uuid(plant_id, "plant_id"))
    total, completed, in_progress = _enrollment_stats(q.all())
    return {
        "total_enrollments": total,
        "completed_enrollments": completed,
        "in_progress_enrollments": in_progress,
        "completion_rate": _pct(completed, total),
    }


@result_operation("legacy.get_plant_stats")
def get_plant_stats(plant_id, context=None):
    pk = parse_uuid(plant_id, "plant_id")
    _own_plant(context, pk)
    if db.session.get(Plant, pk) is None:
        raise NotFoundError("Plant", pk)
    total, completed, in_progress = _enrollment_stats(Enrollment.query.filter_by(plant_id=pk).all())
    return {
        "total_users": Profile.query.filter_by(plant_id=pk).count(),
        "active_enrollments": in_progress,
        "completion_rate": _pct(completed, total),
        "average_progress": _avg([p.progress_percent for p in Progress.query.filter_by(plant_id=pk)]),
    }


@result_operation("legacy.get_course_stats")
def get_course_stats(course_id, plant_id=None):
    pk = parse_uuid(course_id, "course_id")
    eq = Enrollment.query.filter_by(course_id=pk)
    pq = Progress.query.filter_by(course_id=pk)
    if plant_id is not None:
        plant_id = parse_uuid(plant_id, "plant_id")
        eq = eq.filter_by(plant_id=plant_id)
        pq = pq.filter_by(plant_id=plant_id)
    total, completed, _ = _enrollment_stats(eq.all())
    return {
        "total_enrollments": total,
        "completed_enrollments": completed,
        "average_progress": _avg([p.progress_percent for p in pq]),
        "completion_rate": _pct(completed, total),
    }


@result_operation("legacy.get_progress_distribution")
def get_progress_distribution(context=None):
    rows = _scoped(Progress.query, Progress, context).all()
    buckets = {name: 0 for name in ("0%", "1-25%", "26-50%", "51-75%", "76-99%", "100%")}
    for row in rows:
        pct = row.progress_percent
        if pct == 0:
            buckets["0%"] += 1
        elif pct <= 25:
            buckets["1-25%"] += 1
        elif pct <= 50:
            buckets["26-50%"] += 1
        elif pct <= 75:
            buckets["51-75%"] += 1
        elif pct <= 99:
            buckets["76-99%"] += 1
        else:
            buckets["100%"] += 1
    return {
        "users_with_progress": len({r.user_id for r in rows}),
        "average_progress": _avg([r.progress_percent for r in rows]),
        "distribution": [
            {"range": name, "count": count, "percentage": _pct(count, len(rows))}
            for name, count in buckets.items()
        ],
    }
