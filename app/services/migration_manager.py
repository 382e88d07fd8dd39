"""
Migration Manager — runtime switch between the rewritten data layer and the
legacy one.

The configuration is one immutable ``MigrationConfig`` snapshot held in a
process-wide slot. Writers build a new snapshot and swap it under a lock;
readers grab the slot once per call and never see a half-applied update.
Nothing is persisted: a restart reseeds from app config.

Routing (``route``):
  - use_new_service off  → legacy path only.
  - use_new_service on   → new path; a failed Result (or an exception) is
    retried on the legacy path when fallback_to_legacy is on and the
    failure code is not listed in no_fallback_codes (NOT_FOUND by default).
  - shadow_compare on    → successful read-only calls on the new path are
    replayed on the legacy path and differences logged. The legacy result
    is discarded.
"""

import logging
import threading
from dataclasses import asdict, dataclass, fields, replace

from app.core.result import ErrorCode, Result

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationConfig:
    use_new_service: bool = False
    enable_logging: bool = True
    fallback_to_legacy: bool = True
    shadow_compare: bool = False
    # A tenant or authorization denial is final; it is never retried on legacy.
    no_fallback_codes: frozenset = frozenset({ErrorCode.NOT_FOUND})


_APP_CONFIG_KEYS = {
    "use_new_service": "MIGRATION_USE_NEW_SERVICE",
    "enable_logging": "MIGRATION_ENABLE_LOGGING",
    "fallback_to_legacy": "MIGRATION_FALLBACK_TO_LEGACY",
    "shadow_compare": "MIGRATION_SHADOW_COMPARE",
}

_lock = threading.Lock()
_config = MigrationConfig()


# ── Configuration ────────────────────────────────────────────────────────


def get_config() -> MigrationConfig:
    """Return the current snapshot."""
    return _config


def should_use_new_service() -> bool:
    return _config.use_new_service


def update_config(**changes) -> MigrationConfig:
    """Merge *changes* into the current snapshot and swap it in.

    Raises ValueError for keys that are not MigrationConfig fields.
    """
    global _config
    known = {f.name for f in fields(MigrationConfig)}
    unknown = sorted(set(changes) - known)
    if unknown:
        raise ValueError(f"Unknown migration config keys: {', '.join(unknown)}")
    if "no_fallback_codes" in changes:
        changes["no_fallback_codes"] = frozenset(changes["no_fallback_codes"] or ())
    with _lock:
        _config = replace(_config, **changes)
        snapshot = _config
    logger.info("Migration config updated: %s", sorted(changes))
    return snapshot


def reset_config() -> MigrationConfig:
    """Restore the defaults."""
    global _config
    with _lock:
        _config = MigrationConfig()
        snapshot = _config
    return snapshot


def configure_from_app(app) -> MigrationConfig:
    """Seed the snapshot from the Flask app's MIGRATION_* config keys."""
    global _config
    values = {
        name: bool(app.config[key])
        for name, key in _APP_CONFIG_KEYS.items()
        if key in app.config
    }
    with _lock:
        _config = MigrationConfig(**values)
        snapshot = _config
    logger.info(
        "Data layer routing: %s implementation",
        "new" if snapshot.use_new_service else "legacy",
    )
    return snapshot


def enable_new_service() -> MigrationConfig:
    return update_config(use_new_service=True)


def disable_new_service() -> MigrationConfig:
    return update_config(use_new_service=False)


def get_status() -> dict:
    """JSON-friendly view of the current snapshot."""
    cfg = _config
    status = asdict(cfg)
    status["no_fallback_codes"] = sorted(cfg.no_fallback_codes)
    status["implementation"] = "new" if cfg.use_new_service else "legacy"
    return status


# ── Routing ──────────────────────────────────────────────────────────────


def _invoke(operation, implementation, call):
    try:
        return call()
    except Exception as exc:
        logger.exception(
            "%s: %s implementation raised", operation, implementation,
            extra={"operation": operation, "implementation": implementation},
        )
        return Result.fail(str(exc) or exc.__class__.__name__, ErrorCode.DATABASE)


def _shadow_compare(operation, primary, legacy_call):
    shadow = _invoke(operation, "legacy", legacy_call)
    if shadow.to_dict() != primary.to_dict():
        logger.warning(
            "%s: shadow mismatch (new success=%s, legacy success=%s code=%s)",
            operation, primary.success, shadow.success, shadow.code,
            extra={"operation": operation, "implementation": "legacy", "error_code": shadow.code},
        )


def route(operation: str, new_call, legacy_call, read_only: bool = False) -> Result:
    """Serve *operation* from the implementation the current snapshot selects.

    *new_call* and *legacy_call* take no arguments and return a Result.
    """
    cfg = _config
    if not cfg.use_new_service:
        if cfg.enable_logging:
            logger.debug(
                "%s -> legacy", operation,
                extra={"operation": operation, "implementation": "legacy"},
            )
        return _invoke(operation, "legacy", legacy_call)

    if cfg.enable_logging:
        logger.debug(
            "%s -> new", operation,
            extra={"operation": operation, "implementation": "new"},
        )
    result = _invoke(operation, "new", new_call)

    if result.success:
        if cfg.shadow_compare and read_only:
            _shadow_compare(operation, result, legacy_call)
        return result

    if not cfg.fallback_to_legacy or result.code in cfg.no_fallback_codes:
        return result

    if cfg.enable_logging:
        logger.warning(
            "%s: new implementation failed (%s: %s), falling back to legacy",
            operation, result.code, result.error,
            extra={"operation": operation, "implementation": "legacy", "error_code": result.code},
        )
    return _invoke(operation, "legacy", legacy_call)
