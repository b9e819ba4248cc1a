"""
Workflow domain types (``registry_kernel.domain.workflow``).

Responsibility
--------------
Closed enumerations for documents and routing actions, plus the explicit
transition table that drives the routing state machine.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Document lifecycle: ``draft -> registered -> in_work -> resolved ->
  archived``.  ``in_work`` loops on itself through ``sent`` / ``received`` /
  ``returned`` any number of times before resolution.
* ``WORKFLOW_TRANSITIONS`` is the only source of truth for which action is
  legal from which status.  Statuses absent from an action's entry reject
  that action.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DocumentType(str, Enum):
    """Direction of a registered document."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"
    INTERNAL = "internal"


class DocumentStatus(str, Enum):
    """Document lifecycle states."""

    DRAFT = "draft"
    REGISTERED = "registered"
    IN_WORK = "in_work"
    RESOLVED = "resolved"
    ARCHIVED = "archived"


class DocumentPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class ConnectionType(str, Enum):
    """How two registered documents relate to each other."""

    RELATED = "related"
    RESPONSE = "response"
    ATTACHMENT = "attachment"
    AMENDMENT = "amendment"


class WorkflowAction(str, Enum):
    """Routing actions recorded in the audit trail."""

    SENT = "sent"
    RECEIVED = "received"
    RESOLVED = "resolved"
    RETURNED = "returned"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Transition:
    """One row of the transition table."""

    action: WorkflowAction
    valid_from: frozenset[DocumentStatus]
    result: DocumentStatus


_IN_WORK_ONLY = frozenset({DocumentStatus.IN_WORK})

WORKFLOW_TRANSITIONS: dict[WorkflowAction, Transition] = {
    WorkflowAction.SENT: Transition(
        WorkflowAction.SENT,
        frozenset({DocumentStatus.REGISTERED, DocumentStatus.IN_WORK}),
        DocumentStatus.IN_WORK,
    ),
    WorkflowAction.RECEIVED: Transition(
        WorkflowAction.RECEIVED, _IN_WORK_ONLY, DocumentStatus.IN_WORK,
    ),
    WorkflowAction.RETURNED: Transition(
        WorkflowAction.RETURNED, _IN_WORK_ONLY, DocumentStatus.IN_WORK,
    ),
    WorkflowAction.APPROVED: Transition(
        WorkflowAction.APPROVED, _IN_WORK_ONLY, DocumentStatus.RESOLVED,
    ),
    WorkflowAction.REJECTED: Transition(
        WorkflowAction.REJECTED, _IN_WORK_ONLY, DocumentStatus.RESOLVED,
    ),
    WorkflowAction.RESOLVED: Transition(
        WorkflowAction.RESOLVED, _IN_WORK_ONLY, DocumentStatus.RESOLVED,
    ),
}

# Statuses from which a document may be cancelled (moved to archived)
CANCELLABLE_STATUSES: frozenset[DocumentStatus] = frozenset({
    DocumentStatus.DRAFT,
    DocumentStatus.REGISTERED,
    DocumentStatus.IN_WORK,
    DocumentStatus.RESOLVED,
})


def resolve_transition(
    current: DocumentStatus, action: WorkflowAction,
) -> DocumentStatus | None:
    """Return the resulting status, or None if ``action`` is illegal from ``current``."""
    transition = WORKFLOW_TRANSITIONS[action]
    if current not in transition.valid_from:
        return None
    return transition.result


def allowed_actions(current: DocumentStatus) -> frozenset[WorkflowAction]:
    """Every action that may be applied to a document in ``current``."""
    return frozenset(
        action
        for action, transition in WORKFLOW_TRANSITIONS.items()
        if current in transition.valid_from
    )
