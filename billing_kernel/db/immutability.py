"""
ORM-Level Append-Only Enforcement for the customer history.

SQLAlchemy fires mapper events before UPDATE/DELETE statements for loaded
instances reach the database.  The listeners here reject any such change to
an ``AuditEntry``:

    session.flush()
         |
         v
    [before_update event] --> _check_audit_entry_update() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_audit_entry_delete() --> ImmutabilityViolationError

Bulk ``update()``/``delete()`` statements bypass mapper events; the engine
never issues them against ``customer_history``.
"""

from sqlalchemy import event

from billing_kernel.exceptions import ImmutabilityViolationError
from billing_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_audit_entry_update(mapper, connection, target):
    """Prevent any updates to AuditEntry records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AuditEntry",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="AuditEntry",
        entity_id=str(target.id),
        reason="History entries are append-only and cannot be modified",
    )


def _check_audit_entry_delete(mapper, connection, target):
    """Prevent deletion of AuditEntry records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AuditEntry",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="AuditEntry",
        entity_id=str(target.id),
        reason="History entries cannot be deleted",
    )


def register_immutability_listeners() -> None:
    """
    Register append-only listeners.  Safe to call more than once.

    Call during application initialization, before any database work.
    """
    from billing_kernel.models.customer_history import AuditEntry

    if not event.contains(AuditEntry, "before_update", _check_audit_entry_update):
        event.listen(AuditEntry, "before_update", _check_audit_entry_update)
    if not event.contains(AuditEntry, "before_delete", _check_audit_entry_delete):
        event.listen(AuditEntry, "before_delete", _check_audit_entry_delete)


def unregister_immutability_listeners() -> None:
    """
    Remove the append-only listeners.

    WARNING: Only use this in tests that need to bypass the rule.
    """
    from billing_kernel.models.customer_history import AuditEntry

    for name, fn in (
        ("before_update", _check_audit_entry_update),
        ("before_delete", _check_audit_entry_delete),
    ):
        if event.contains(AuditEntry, name, fn):
            event.remove(AuditEntry, name, fn)
