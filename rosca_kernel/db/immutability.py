"""
ORM-Level Immutability Enforcement for payout records.

===============================================================================
WHY THIS EXISTS
===============================================================================

A PayoutTransaction is the single source of truth that a round is closed.
If a row could be edited, a round could silently "reopen" or a payout
could be redirected to another member after the fact.  Payouts are
therefore append-only: a mistake is corrected by a human process outside
the engine, never by rewriting the record.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database:

    session.flush()
         |
         v
    [before_update] --> _check_payout_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_payout_delete() ---------> ImmutabilityViolationError

If a check fails the flush is aborted and the caller's transaction rolls
back.  The database is never modified.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity             | When Immutable         | Why
-------------------|------------------------|--------------------------------
PayoutTransaction  | ALWAYS (from creation) | Round-closed source of truth

Usage:
    register_immutability_listeners()    # create_tables() calls this
    unregister_immutability_listeners()  # tests that need raw edits
"""

from sqlalchemy import event

from rosca_kernel.exceptions import ImmutabilityViolationError
from rosca_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_payout_immutability(mapper, connection, target):
    """Prevent any update to a PayoutTransaction."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "PayoutTransaction",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="PayoutTransaction",
        entity_id=str(target.id),
        reason="Payout transactions are immutable and cannot be modified",
    )


def _check_payout_delete(mapper, connection, target):
    """Prevent deletion of a PayoutTransaction."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "PayoutTransaction",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="PayoutTransaction",
        entity_id=str(target.id),
        reason="Payout transactions cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register the immutability event listeners (idempotent).

    Call after the models are imported and before any writes begin.
    """
    from rosca_kernel.models.payout import PayoutTransaction

    if not event.contains(PayoutTransaction, "before_update", _check_payout_immutability):
        event.listen(PayoutTransaction, "before_update", _check_payout_immutability)
    if not event.contains(PayoutTransaction, "before_delete", _check_payout_delete):
        event.listen(PayoutTransaction, "before_delete", _check_payout_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the immutability event listeners.

    WARNING: Only use this in tests that must tamper with a payout row.
    """
    from rosca_kernel.models.payout import PayoutTransaction

    _safe_remove_listener(PayoutTransaction, "before_update", _check_payout_immutability)
    _safe_remove_listener(PayoutTransaction, "before_delete", _check_payout_delete)
