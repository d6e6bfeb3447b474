"""
ORM-level immutability enforcement for the activity log.

The activity log is the audit trail.  Once written, an entry is never
modified or removed.  These mapper listeners fire before SQLAlchemy emits an
UPDATE or DELETE for an ActivityLog row and abort the flush with
ImmutabilityViolationError.  Bulk ``session.execute(update(...))`` statements
bypass mapper events; services never issue them against activity_logs.

Usage:

    from pettycash_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from pettycash_kernel.exceptions import ImmutabilityViolationError
from pettycash_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(target, operation: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "ActivityLog",
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="ActivityLog",
        entity_id=str(target.id),
        reason=f"Activity log entries are append-only ({operation} refused)",
    )


def _check_activity_log_update(mapper, connection, target):
    """Prevent any updates to ActivityLog records."""
    _block(target, "UPDATE")


def _check_activity_log_delete(mapper, connection, target):
    """Prevent deletion of ActivityLog records."""
    _block(target, "DELETE")


def register_immutability_listeners() -> None:
    """Register all immutability enforcement event listeners (idempotent)."""
    from pettycash_kernel.models.activity_log import ActivityLog

    if not event.contains(ActivityLog, "before_update", _check_activity_log_update):
        event.listen(ActivityLog, "before_update", _check_activity_log_update)
    if not event.contains(ActivityLog, "before_delete", _check_activity_log_delete):
        event.listen(ActivityLog, "before_delete", _check_activity_log_delete)
    logger.debug("immutability_listeners_registered")


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    from pettycash_kernel.models.activity_log import ActivityLog

    _safe_remove_listener(ActivityLog, "before_update", _check_activity_log_update)
    _safe_remove_listener(ActivityLog, "before_delete", _check_activity_log_delete)
