"""Tests for app/services/progress_service.py."""

import logging

import pytest

from app.core.result import ErrorCode
from app.services.progress_service import ProgressOperations


@pytest.fixture()
def ops(storage):
    return ProgressOperations(storage)


@pytest.fixture()
def progress(ops, profile, course):
    result = ops.create_progress({
        "user_id": profile["id"], "course_id": course["id"], "plant_id": profile["plant_id"],
        "progress_percent": 40, "current_section": "intro",
    })
    assert result.success
    return result.data


def test_create_and_read(ops, progress, ctx_for):
    fetched = ops.get_progress(progress["id"], ctx_for(progress["plant_id"]))
    assert fetched.data["progress_percent"] == 40
    assert fetched.data["current_section"] == "intro"


def test_duplicate_conflicts(ops, progress):
    result = ops.create_progress({
        "user_id": progress["user_id"], "course_id": progress["course_id"], "plant_id": progress["plant_id"],
    })
    assert result.code == ErrorCode.CONFLICT


@pytest.mark.parametrize("value", [-1, 101, "abc", 12.5, True])
def test_percent_out_of_range(ops, progress, ctx_for, value):
    result = ops.update_progress(progress["id"], {"progress_percent": value}, ctx_for(progress["plant_id"]))
    assert result.code == ErrorCode.VALIDATION
    assert result.field == "progress_percent"


def test_update_refreshes_last_active(ops, progress, ctx_for):
    result = ops.update_progress(progress["id"], {"current_section": "module-2"}, ctx_for(progress["plant_id"]))
    assert result.data["current_section"] == "module-2"
    assert result.data["progress_percent"] == 40
    assert result.data["last_active_at"] >= progress["last_active_at"]


def test_decrease_is_accepted_and_logged(ops, progress, ctx_for, caplog):
    with caplog.at_level(logging.WARNING, logger="app.services.progress_service"):
        result = ops.update_progress(progress["id"], {"progress_percent": 10}, ctx_for(progress["plant_id"]))
    assert result.data["progress_percent"] == 10
    assert "decreased" in caplog.text


def test_foreign_update_and_delete(ops, progress, other_plant, ctx_for):
    ctx = ctx_for(other_plant["id"])
    assert ops.update_progress(progress["id"], {"progress_percent": 90}, ctx).code == ErrorCode.NOT_FOUND
    assert ops.delete_progress(progress["id"], ctx).code == ErrorCode.NOT_FOUND


def test_delete_then_missing(ops, progress, ctx_for):
    ctx = ctx_for(progress["plant_id"])
    assert ops.delete_progress(progress["id"], ctx).success
    assert ops.get_progress(progress["id"], ctx).code == ErrorCode.NOT_FOUND
