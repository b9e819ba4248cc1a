"""Pure domain layer: enums, transition table, numbering rules, DTOs."""

from registry_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from registry_kernel.domain.numbering import (
    SHARED_SEQUENCE_YEAR,
    format_registration_number,
    sequence_year,
)
from registry_kernel.domain.workflow import (
    WORKFLOW_TRANSITIONS,
    ConnectionType,
    DocumentPriority,
    DocumentStatus,
    DocumentType,
    WorkflowAction,
    allowed_actions,
    resolve_transition,
)

__all__ = [
    "Clock",
    "ConnectionType",
    "DeterministicClock",
    "DocumentPriority",
    "DocumentStatus",
    "DocumentType",
    "SHARED_SEQUENCE_YEAR",
    "SystemClock",
    "WORKFLOW_TRANSITIONS",
    "WorkflowAction",
    "allowed_actions",
    "format_registration_number",
    "resolve_transition",
    "sequence_year",
]
