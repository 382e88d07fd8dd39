"""
Shared pytest fixtures for the data-layer test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate, migration config reset (autouse)
    - client: Flask test client (function-scoped)
    - storage: SQLAlchemyStorage over db.session
    - make_plant / make_profile / make_course: factory fixtures
    - plant / other_plant / profile / course: pre-created entities (dicts)
    - ctx_for / global_ctx: UserContext builders
"""

import itertools

import pytest

from app import create_app
from app.models import db as _db
from app.services import migration_manager
from app.services.course_service import CourseOperations
from app.services.helpers.tenant_filter import WILDCARD, UserContext
from app.services.plant_service import PlantOperations
from app.services.profile_service import ProfileOperations
from app.services.storage import SQLAlchemyStorage

_seq = itertools.count(1)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    migration_manager.reset_config()
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()
    migration_manager.reset_config()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def storage():
    return SQLAlchemyStorage(_db.session)


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_plant(storage):
    def _make(name=None, **extra):
        result = PlantOperations(storage).create_plant(
            {"name": name or f"Plant {next(_seq)}", **extra}
        )
        assert result.success, result
        return result.data
    return _make


@pytest.fixture()
def make_profile(storage):
    def _make(plant_id, email=None, **extra):
        n = next(_seq)
        payload = {
            "plant_id": plant_id,
            "first_name": extra.pop("first_name", f"First{n}"),
            "last_name": extra.pop("last_name", f"Last{n}"),
            "email": email or f"user{n}@example.com",
            **extra,
        }
        result = ProfileOperations(storage).create_user(payload)
        assert result.success, result
        return result.data
    return _make


@pytest.fixture()
def make_course(storage):
    def _make(slug=None, title=None, is_published=True, **extra):
        n = next(_seq)
        result = CourseOperations(storage).create_course({
            "slug": slug or f"course-{n}",
            "title": title or f"Course {n}",
            "is_published": is_published,
            **extra,
        })
        assert result.success, result
        return result.data
    return _make


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def plant(make_plant):
    return make_plant("North Plant")


@pytest.fixture()
def other_plant(make_plant):
    return make_plant("South Plant")


@pytest.fixture()
def profile(make_profile, plant):
    return make_profile(plant["id"], email="worker@example.com")


@pytest.fixture()
def course(make_course):
    return make_course(slug="forklift-safety", title="Forklift Safety")


@pytest.fixture()
def ctx_for():
    """Build a UserContext limited to the given plants (first is home)."""
    def _ctx(*plant_ids, user_id="00000000-0000-0000-0000-000000000001"):
        home = plant_ids[0] if plant_ids else None
        return UserContext(user_id=user_id, plant_id=home, accessible_plants=plant_ids)
    return _ctx


@pytest.fixture()
def global_ctx(plant):
    return UserContext(
        user_id="00000000-0000-0000-0000-0000000000aa",
        plant_id=plant["id"],
        accessible_plants=(WILDCARD,),
        roles=({"role": "hr_admin", "plant_id": None},),
    )
