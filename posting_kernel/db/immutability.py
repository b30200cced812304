"""
ORM-level immutability enforcement.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners registered here refuse changes to posted
financial records:

Entity          | Rule
----------------|--------------------------------------------------------
JournalEntry    | Only status (and audit metadata) may change; no delete
JournalLine     | Never updated or deleted
AuditEvent      | Never updated or deleted
Account         | current_balance never changes through the ORM; an
                | account with journal lines cannot be deleted

The posting engine moves Account.current_balance with a Core UPDATE
statement, which does not pass through these mapper events.

Usage:

    from posting_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    unregister_immutability_listeners()  # TESTS ONLY
"""

from sqlalchemy import event, func, inspect, select

from posting_kernel.exceptions import ImmutabilityViolationError
from posting_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_METADATA_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _blocked(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_journal_entry_update(mapper, connection, target):
    """Allow status changes only."""
    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in _AUDIT_METADATA_FIELDS or attr.key == "status":
            continue
        if attr.key in ("lines", "reversal_of"):
            continue
        if attr.history.has_changes():
            _blocked(
                "JournalEntry", target, "UPDATE",
                f"Cannot modify field '{attr.key}' on posted journal entry",
            )


def _check_journal_entry_delete(mapper, connection, target):
    _blocked("JournalEntry", target, "DELETE", "Posted journal entries cannot be deleted")


def _check_journal_line_update(mapper, connection, target):
    _blocked("JournalLine", target, "UPDATE", "Journal lines are immutable")


def _check_journal_line_delete(mapper, connection, target):
    _blocked("JournalLine", target, "DELETE", "Journal lines cannot be deleted")


def _check_audit_event_update(mapper, connection, target):
    _blocked("AuditEvent", target, "UPDATE", "Audit events are immutable")


def _check_audit_event_delete(mapper, connection, target):
    _blocked("AuditEvent", target, "DELETE", "Audit events cannot be deleted")


def _check_account_update(mapper, connection, target):
    """current_balance moves only through posting."""
    if inspect(target).attrs.current_balance.history.has_changes():
        _blocked(
            "Account", target, "UPDATE",
            "current_balance can only change through posting",
        )


def _check_account_delete(mapper, connection, target):
    from posting_kernel.models.journal import JournalLine

    referenced = connection.execute(
        select(func.count())
        .select_from(JournalLine)
        .where(JournalLine.account_id == target.id)
    ).scalar_one()
    if referenced:
        _blocked(
            "Account", target, "DELETE",
            f"Account is referenced by {referenced} journal line(s)",
        )


def _listeners():
    from posting_kernel.models.account import Account
    from posting_kernel.models.audit_event import AuditEvent
    from posting_kernel.models.journal import JournalEntry, JournalLine

    return (
        (JournalEntry, "before_update", _check_journal_entry_update),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalLine, "before_update", _check_journal_line_update),
        (JournalLine, "before_delete", _check_journal_line_delete),
        (AuditEvent, "before_update", _check_audit_event_update),
        (AuditEvent, "before_delete", _check_audit_event_delete),
        (Account, "before_update", _check_account_update),
        (Account, "before_delete", _check_account_delete),
    )


def register_immutability_listeners() -> None:
    """Register all immutability listeners (idempotent)."""
    for target, identifier, fn in _listeners():
        if not event.contains(target, identifier, fn):
            event.listen(target, identifier, fn)
    logger.info("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove all immutability listeners.  FOR TESTING ONLY."""
    for target, identifier, fn in _listeners():
        if event.contains(target, identifier, fn):
            event.remove(target, identifier, fn)
