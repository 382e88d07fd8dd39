"""
Tests for app/services/migration_manager.py

Scenarios covered:
  1. snapshot semantics: immutable, merged, unknown keys rejected
  2. seeding from app config
  3. routing: legacy only, new only, fallback, no-fallback codes
     (NOT_FOUND final by default),
     exceptions treated as failures
  4. shadow comparison for read-only calls
"""

import dataclasses
import logging
from unittest.mock import MagicMock

import pytest

from app.core.result import ErrorCode, Result
from app.services import migration_manager as mm


def _ok(value):
    return MagicMock(return_value=Result.ok(value))


def _fail(code=ErrorCode.DATABASE):
    return MagicMock(return_value=Result.fail("boom", code))


class TestConfigSnapshot:

    def test_defaults(self):
        cfg = mm.get_config()
        assert cfg.use_new_service is False
        assert cfg.enable_logging is True
        assert cfg.fallback_to_legacy is True
        assert cfg.shadow_compare is False
        assert cfg.no_fallback_codes == frozenset({ErrorCode.NOT_FOUND})
        assert mm.should_use_new_service() is False

    def test_snapshot_is_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            mm.get_config().use_new_service = True

    def test_update_merges_and_swaps(self):
        before = mm.get_config()
        after = mm.update_config(use_new_service=True)
        assert after is mm.get_config()
        assert after is not before
        assert before.use_new_service is False
        assert after.use_new_service is True
        assert after.fallback_to_legacy is True

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="useNewService"):
            mm.update_config(useNewService=True)
        assert mm.get_config() == mm.MigrationConfig()

    def test_enable_disable(self):
        mm.enable_new_service()
        assert mm.should_use_new_service() is True
        mm.disable_new_service()
        assert mm.should_use_new_service() is False

    def test_status_is_json_friendly(self):
        mm.update_config(no_fallback_codes=[ErrorCode.VALIDATION])
        status = mm.get_status()
        assert status["implementation"] == "legacy"
        assert status["no_fallback_codes"] == [ErrorCode.VALIDATION]

    def test_reset(self):
        mm.update_config(use_new_service=True, shadow_compare=True)
        assert mm.reset_config() == mm.MigrationConfig()

    def test_configure_from_app(self, app):
        app.config["MIGRATION_USE_NEW_SERVICE"] = True
        try:
            cfg = mm.configure_from_app(app)
        finally:
            app.config["MIGRATION_USE_NEW_SERVICE"] = False
        assert cfg.use_new_service is True
        assert cfg.fallback_to_legacy is True


class TestRouting:

    def test_legacy_only_when_disabled(self):
        new, legacy = _ok("new"), _ok("legacy")
        assert mm.route("op", new, legacy).data == "legacy"
        new.assert_not_called()
        legacy.assert_called_once()

    def test_new_only_when_enabled(self):
        mm.enable_new_service()
        new, legacy = _ok("new"), _ok("legacy")
        assert mm.route("op", new, legacy).data == "new"
        legacy.assert_not_called()

    def test_failure_falls_back_to_legacy(self, caplog):
        mm.enable_new_service()
        new, legacy = _fail(), _ok("legacy")
        with caplog.at_level(logging.WARNING, logger="app.services.migration_manager"):
            result = mm.route("op", new, legacy)
        assert result.data == "legacy"
        assert "falling back" in caplog.text

    def test_validation_failure_is_fallback_eligible(self):
        mm.enable_new_service()
        assert mm.route("op", _fail(ErrorCode.VALIDATION), _ok("legacy")).data == "legacy"

    def test_no_fallback_when_disabled(self):
        mm.update_config(use_new_service=True, fallback_to_legacy=False)
        legacy = _ok("legacy")
        result = mm.route("op", _fail(), legacy)
        assert result.success is False
        legacy.assert_not_called()

    def test_not_found_is_final_by_default(self, caplog):
        mm.enable_new_service()
        legacy = _ok("legacy")
        with caplog.at_level(logging.WARNING, logger="app.services.migration_manager"):
            result = mm.route("op", _fail(ErrorCode.NOT_FOUND), legacy)
        assert result.code == ErrorCode.NOT_FOUND
        legacy.assert_not_called()
        assert "falling back" not in caplog.text

    def test_no_fallback_codes(self):
        mm.update_config(use_new_service=True, no_fallback_codes={ErrorCode.CONFLICT})
        legacy = _ok("legacy")
        assert mm.route("op", _fail(ErrorCode.CONFLICT), legacy).code == ErrorCode.CONFLICT
        legacy.assert_not_called()

    def test_exception_in_new_path_falls_back(self):
        mm.enable_new_service()
        new = MagicMock(side_effect=RuntimeError("kaput"))
        assert mm.route("op", new, _ok("legacy")).data == "legacy"

    def test_exception_without_fallback_becomes_database_error(self):
        mm.update_config(use_new_service=True, fallback_to_legacy=False)
        result = mm.route("op", MagicMock(side_effect=RuntimeError("kaput")), _ok("legacy"))
        assert result.code == ErrorCode.DATABASE
        assert result.error == "kaput"

    def test_silent_fallback_without_logging(self, caplog):
        mm.update_config(use_new_service=True, enable_logging=False)
        with caplog.at_level(logging.DEBUG, logger="app.services.migration_manager"):
            assert mm.route("op", _fail(), _ok("legacy")).success
        assert not [r for r in caplog.records if getattr(r, "operation", None) == "op"]


class TestShadowCompare:

    def test_mismatch_logged_and_legacy_discarded(self, caplog):
        mm.update_config(use_new_service=True, shadow_compare=True)
        legacy = _ok("legacy")
        with caplog.at_level(logging.WARNING, logger="app.services.migration_manager"):
            result = mm.route("op", _ok("new"), legacy, read_only=True)
        assert result.data == "new"
        legacy.assert_called_once()
        assert "shadow mismatch" in caplog.text

    def test_match_is_quiet(self, caplog):
        mm.update_config(use_new_service=True, shadow_compare=True)
        with caplog.at_level(logging.WARNING, logger="app.services.migration_manager"):
            mm.route("op", _ok({"a": 1}), _ok({"a": 1}), read_only=True)
        assert "shadow mismatch" not in caplog.text

    def test_writes_are_never_shadowed(self):
        mm.update_config(use_new_service=True, shadow_compare=True)
        legacy = _ok("legacy")
        mm.route("op", _ok("new"), legacy)
        legacy.assert_not_called()
