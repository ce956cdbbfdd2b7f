"""
Module: compliance_kernel.db.immutability
Responsibility: ORM-level enforcement of append-only persistence.
    Retention log entries record actions taken under a retention policy;
    once flushed they can never be updated or deleted.
Architecture position: Kernel > DB. Imports the module ORM class lazily
    at registration time.

Failure modes:
    - AppendOnlyViolationError raised from before_update / before_delete,
      which aborts the flush and leaves the session needing rollback.
"""

from sqlalchemy import event

from compliance_kernel.exceptions import AppendOnlyViolationError
from compliance_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block_retention_log_change(operation: str):
    def _listener(mapper, connection, target):
        logger.error(
            "append_only_violation_blocked",
            extra={
                "entity_type": "RetentionLog",
                "entity_id": str(target.id),
                "operation": operation,
            },
        )
        raise AppendOnlyViolationError("RetentionLog", str(target.id))

    return _listener


_before_update = _block_retention_log_change("UPDATE")
_before_delete = _block_retention_log_change("DELETE")


def register_append_only_listeners() -> None:
    """Register the retention-log listeners (idempotent)."""
    from compliance_modules.gdpr.orm import RetentionLogModel

    if not event.contains(RetentionLogModel, "before_update", _before_update):
        event.listen(RetentionLogModel, "before_update", _before_update)
    if not event.contains(RetentionLogModel, "before_delete", _before_delete):
        event.listen(RetentionLogModel, "before_delete", _before_delete)


def unregister_append_only_listeners() -> None:
    """Remove the listeners. Tests only."""
    from compliance_modules.gdpr.orm import RetentionLogModel

    if event.contains(RetentionLogModel, "before_update", _before_update):
        event.remove(RetentionLogModel, "before_update", _before_update)
    if event.contains(RetentionLogModel, "before_delete", _before_delete):
        event.remove(RetentionLogModel, "before_delete", _before_delete)
