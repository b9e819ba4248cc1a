"""
ORM-level immutability enforcement for the registry.

===============================================================================
WHY THIS EXISTS
===============================================================================

Registration numbers are legally significant: printed registers, replies to
petitioners and accounting cross-references quote them.  The routing history
is the audit trail that shows who held a document and when.  Neither may be
rewritten after the fact.

The services never attempt such writes.  These listeners catch the ones that
would come from anywhere else in Python code (a careless admin script, a
future endpoint that patches a Document with setattr) before the SQL reaches
the database.

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

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | What is frozen                          | When
----------------|-----------------------------------------|---------------------------
Document        | registration_number, registration_year, | Once set (None -> value is
                | formatted_number, sequence_year         | the only allowed change)
Document        | physical DELETE                         | Always (soft-delete only)
WorkflowRecord  | every column except is_expired          | From creation
WorkflowRecord  | is_expired                              | Only False -> True allowed
WorkflowRecord  | physical DELETE                         | Always

Bulk ``update()``/``delete()`` statements bypass mapper events; the services
do not issue them against these tables.

===============================================================================
USAGE
===============================================================================

    from registry_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from registry_kernel.exceptions import ImmutabilityViolationError
from registry_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Engine-owned numbering columns on Document
DOCUMENT_NUMBERING_FIELDS: tuple[str, ...] = (
    "registration_number",
    "registration_year",
    "formatted_number",
    "sequence_year",
)


def _blocked(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_document_numbering_immutability(mapper, connection, target):
    """
    Numbering columns are write-once.

    The only permitted change is None -> value, which is the registration
    itself.  Anything else (renumbering, clearing) is blocked.
    """
    for field in DOCUMENT_NUMBERING_FIELDS:
        history = get_history(target, field)
        if not history.has_changes():
            continue
        old_values = [v for v in history.deleted if v is not None]
        if old_values:
            raise _blocked(
                "Document",
                target.id,
                "UPDATE",
                f"Field '{field}' is frozen once the document is registered",
                field=field,
            )


def _check_document_delete(mapper, connection, target):
    """Documents are soft-deleted only; numbers are never recycled."""
    raise _blocked(
        "Document",
        target.id,
        "DELETE",
        "Documents cannot be physically deleted; use soft-delete",
    )


def _check_workflow_record_immutability(mapper, connection, target):
    """
    Workflow records are append-only.

    ``is_expired`` is the single mutable column and may only be raised.
    """
    insp = inspect(target)
    for attr in insp.attrs:
        hist = attr.history
        if not hist.has_changes():
            continue
        if attr.key == "is_expired":
            old = hist.deleted[0] if hist.deleted else None
            new = hist.added[0] if hist.added else None
            if old is False and new is True:
                continue
            raise _blocked(
                "WorkflowRecord",
                target.id,
                "UPDATE",
                "is_expired may only change from False to True",
                field=attr.key,
            )
        raise _blocked(
            "WorkflowRecord",
            target.id,
            "UPDATE",
            f"Cannot modify field '{attr.key}' on a workflow record",
            field=attr.key,
        )


def _check_workflow_record_delete(mapper, connection, target):
    """Workflow records cannot be deleted."""
    raise _blocked(
        "WorkflowRecord",
        target.id,
        "DELETE",
        "Workflow records are part of the audit trail and cannot be deleted",
    )


_LISTENERS = (
    ("Document", "before_update", _check_document_numbering_immutability),
    ("Document", "before_delete", _check_document_delete),
    ("WorkflowRecord", "before_update", _check_workflow_record_immutability),
    ("WorkflowRecord", "before_delete", _check_workflow_record_delete),
)


def _targets():
    from registry_kernel.models.document import Document
    from registry_kernel.models.workflow_record import WorkflowRecord

    return {"Document": Document, "WorkflowRecord": WorkflowRecord}


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; already-registered listeners are skipped.
    """
    targets = _targets()
    for name, event_name, listener_fn in _LISTENERS:
        target = targets[name]
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    targets = _targets()
    for name, event_name, listener_fn in _LISTENERS:
        target = targets[name]
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
