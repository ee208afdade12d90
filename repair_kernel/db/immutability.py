"""
ORM-Level Immutability Enforcement.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our invariants:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

If a check fails, we raise ImmutabilityViolationError and the transaction
is aborted.  The database is never modified.

Bulk Core statements (``update(...)``) do not pass through these listeners.
The services that issue them carry the same rule in their WHERE clause
(``status = 'PROPOSED'``, ``decided_at IS NULL``).

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | When Immutable                      | Allowed change
------------------|-------------------------------------|------------------------------
JobEvent          | ALWAYS (from creation)              | none
ApprovalRequest   | After decided_at is set             | full re-issue only
LineItem          | After status leaves PROPOSED        | none to status
Job               | Never deleted; CLOSED is terminal   | non-state fields

===============================================================================
USAGE
===============================================================================

Called once during application startup:

    from repair_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY - never in production):

    from repair_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from repair_kernel.exceptions import ImmutabilityViolationError
from repair_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# A decided request may only be replaced as a whole: these fields all change.
_REISSUE_FIELDS = ("customer_token_hash", "status", "decided_at")


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _old_value(target, key: str):
    """Value of ``key`` as loaded from the database, before this flush."""
    hist = get_history(target, key)
    if hist.deleted:
        return hist.deleted[0]
    if hist.unchanged:
        return hist.unchanged[0]
    return getattr(target, key)


def _check_job_event_immutability(mapper, connection, target):
    """Job events are append-only: any changed column is a violation."""
    insp = inspect(target)
    for attr in insp.attrs:
        if attr.history.has_changes():
            _block(
                "JobEvent", target, "UPDATE",
                f"Job events are append-only (field '{attr.key}')",
                field=attr.key,
            )


def _check_job_event_delete(mapper, connection, target):
    _block("JobEvent", target, "DELETE", "Job events are append-only")


def _check_approval_request_immutability(mapper, connection, target):
    """
    Freeze a decided request.

    Logic:
        1. Not decided before this flush: any change is allowed (deciding, or
           re-issuing a live request).
        2. Decided before this flush: only a full re-issue is allowed -- new
           token hash, status back to SENT, decided_at cleared.
    """
    if _old_value(target, "decided_at") is None:
        return

    reissue = (
        target.status == "SENT"
        and target.decided_at is None
        and all(get_history(target, key).has_changes() for key in _REISSUE_FIELDS)
    )
    if reissue:
        return

    insp = inspect(target)
    for attr in insp.attrs:
        if attr.history.has_changes():
            _block(
                "ApprovalRequest", target, "UPDATE",
                f"Cannot modify field '{attr.key}' on a decided approval request",
                field=attr.key,
            )


def _check_approval_request_delete(mapper, connection, target):
    _block("ApprovalRequest", target, "DELETE", "Approval requests are never deleted")


def _check_line_item_immutability(mapper, connection, target):
    """Status leaves PROPOSED once and never comes back."""
    old_status = _old_value(target, "status")
    if old_status != "PROPOSED" and get_history(target, "status").has_changes():
        _block(
            "LineItem", target, "UPDATE",
            f"Line item status is final once {old_status}",
            field="status",
        )


def _check_line_item_delete(mapper, connection, target):
    if _old_value(target, "status") != "PROPOSED":
        _block("LineItem", target, "DELETE", "Decided line items cannot be deleted")


def _check_job_immutability(mapper, connection, target):
    """CLOSED is terminal: state and closed_at are frozen once closed."""
    if _old_value(target, "state") != "CLOSED":
        return
    for key in ("state", "closed_at"):
        if get_history(target, key).has_changes():
            _block(
                "Job", target, "UPDATE",
                f"Cannot modify field '{key}' on a closed job",
                field=key,
            )


def _check_job_delete(mapper, connection, target):
    _block("Job", target, "DELETE", "Jobs are never deleted")


def _listeners():
    from repair_kernel.models.approval import ApprovalRequestModel
    from repair_kernel.models.job import Job
    from repair_kernel.models.job_event import JobEvent
    from repair_kernel.models.line_item import LineItem

    return (
        (JobEvent, "before_update", _check_job_event_immutability),
        (JobEvent, "before_delete", _check_job_event_delete),
        (ApprovalRequestModel, "before_update", _check_approval_request_immutability),
        (ApprovalRequestModel, "before_delete", _check_approval_request_delete),
        (LineItem, "before_update", _check_line_item_immutability),
        (LineItem, "before_delete", _check_line_item_delete),
        (Job, "before_update", _check_job_immutability),
        (Job, "before_delete", _check_job_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent.  Call this after all models are imported but before any
    database operations begin.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
