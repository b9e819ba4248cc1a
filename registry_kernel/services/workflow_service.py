"""
WorkflowService -- routing state machine and its audit trail.

Responsibility:
    Validates routing actions against the transition table, appends the
    immutable WorkflowRecord for each one, keeps the document's status and
    assignment in step, and flags routings that were never answered.

Architecture position:
    Kernel > Services -- imperative shell.
    Pure rules come from ``registry_kernel.domain.workflow``; this module
    only applies them to persisted state.

Invariants enforced:
    - Only transitions listed in WORKFLOW_TRANSITIONS are applied.  A
      rejected action leaves the document untouched.
    - Each record gets the next per-document position, so history order
      is total.  UNIQUE(document_id, position) backs it up.
    - The document row is version-checked on every routing; two concurrent
      routings of one document cannot both commit.
    - Expiry only ever raises is_expired and never changes document status.

Failure modes:
    - ValidationError: unknown action, ``sent`` without a destination.
    - DocumentNotFoundError: unknown or soft-deleted document.
    - InvalidTransitionError: action not allowed from current status.
    - OptimisticLockError: document changed since it was loaded.

Audit relevance:
    The workflow records ARE the audit trail.  Every routing logs
    ``document_routed``; every sweep logs ``routing_expired`` per record.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, exists, select
from sqlalchemy.orm import Session, aliased

from registry_kernel.domain.clock import Clock
from registry_kernel.domain.workflow import (
    DocumentStatus,
    WorkflowAction,
    resolve_transition,
)
from registry_kernel.exceptions import (
    InvalidTransitionError,
    ValidationError,
)
from registry_kernel.logging_config import get_logger
from registry_kernel.models.document import Document
from registry_kernel.models.workflow_record import WorkflowRecord
from registry_kernel.services.base import BaseService
from registry_kernel.services.document_registry import (
    flush_document,
    load_live_document,
)

logger = get_logger("services.workflow")

DEFAULT_ROUTING_EXPIRY_HOURS = 72


def _outstanding_sent_records():
    """Select ``sent`` records with no later record for the same document."""
    later = aliased(WorkflowRecord)
    return select(WorkflowRecord).where(
        WorkflowRecord.action == WorkflowAction.SENT.value,
        ~exists().where(
            and_(
                later.document_id == WorkflowRecord.document_id,
                later.position > WorkflowRecord.position,
            )
        ),
    )


class WorkflowService(BaseService[WorkflowRecord]):
    """
    Write-side service for document routing.

    Contract:
        ``route_document`` returns the updated document and the new record,
        both flushed but not committed.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def route_document(
        self,
        document_id: UUID,
        action: WorkflowAction | str,
        acting_user_id: UUID,
        to_user_id: UUID | None = None,
        to_department_id: UUID | None = None,
        resolution: str | None = None,
        notes: str | None = None,
    ) -> tuple[Document, WorkflowRecord]:
        """
        Apply one routing action.

        The record's origin is the document's current assignee (or the
        acting user when nobody is assigned) and current department.  A
        ``sent`` moves the assignment to the destination; one addressed to
        a department only leaves the assignee unchanged.
        """
        try:
            action = WorkflowAction(action)
        except ValueError:
            allowed = ", ".join(a.value for a in WorkflowAction)
            raise ValidationError("action", f"must be one of: {allowed}") from None

        document = load_live_document(self.session, document_id)
        current = DocumentStatus(document.status)
        result = resolve_transition(current, action)
        if result is None:
            logger.warning(
                "routing_rejected",
                extra={
                    "document_id": str(document.id),
                    "current_status": current.value,
                    "action": action.value,
                },
            )
            raise InvalidTransitionError(str(document.id), current.value, action.value)

        if action is WorkflowAction.SENT and to_user_id is None and to_department_id is None:
            raise ValidationError("to_user_id", "sent requires a destination user or department")

        position = document.routing_count + 1
        record = WorkflowRecord(
            document_id=document.id,
            position=position,
            action=action.value,
            from_user_id=document.assigned_to or acting_user_id,
            to_user_id=to_user_id,
            from_department_id=document.department_id,
            to_department_id=to_department_id,
            resolution=resolution,
            notes=notes,
            is_expired=False,
            created_at=self.clock.now(),
            created_by_id=acting_user_id,
        )

        document.routing_count = position
        document.status = result.value
        if action is WorkflowAction.SENT:
            # A department-only destination keeps the current assignee
            if to_user_id is not None:
                document.assigned_to = to_user_id
            if to_department_id is not None:
                document.department_id = to_department_id
        if result is DocumentStatus.RESOLVED and document.resolved_date is None:
            document.resolved_date = self.clock.now().date()
        document.updated_by_id = acting_user_id

        self.session.add(record)
        flush_document(self.session, document)

        logger.info(
            "document_routed",
            extra={
                "document_id": str(document.id),
                "action": action.value,
                "position": position,
                "from_status": current.value,
                "to_status": result.value,
            },
        )
        return document, record

    def expire_stale_routings(
        self,
        timeout: timedelta = timedelta(hours=DEFAULT_ROUTING_EXPIRY_HOURS),
        as_of: datetime | None = None,
    ) -> list[WorkflowRecord]:
        """
        Flag unanswered ``sent`` records older than ``timeout``.

        Idempotent: records already flagged are not selected again.
        Returns the records flagged by this call.
        """
        if timeout <= timedelta(0):
            raise ValidationError("timeout", "must be positive")
        cutoff = (as_of or self.clock.now()) - timeout

        stale = list(
            self.session.execute(
                _outstanding_sent_records()
                .where(
                    WorkflowRecord.is_expired.is_(False),
                    WorkflowRecord.created_at < cutoff,
                )
                .order_by(WorkflowRecord.created_at)
            ).scalars()
        )

        for record in stale:
            record.is_expired = True
            logger.info(
                "routing_expired",
                extra={
                    "record_id": str(record.id),
                    "document_id": str(record.document_id),
                    "sent_at": record.created_at,
                },
            )
        self.session.flush()

        logger.info(
            "routing_expiry_sweep_completed",
            extra={"cutoff": cutoff, "expired_count": len(stale)},
        )
        return stale

    def get_history(self, document_id: UUID) -> list[WorkflowRecord]:
        """Every record of a document in routing order."""
        load_live_document(self.session, document_id)
        return list(
            self.session.execute(
                select(WorkflowRecord)
                .where(WorkflowRecord.document_id == document_id)
                .order_by(WorkflowRecord.position)
            ).scalars()
        )

    def pending_routings(self, document_id: UUID) -> list[WorkflowRecord]:
        """``sent`` records of a document still waiting for an answer."""
        load_live_document(self.session, document_id)
        return list(
            self.session.execute(
                _outstanding_sent_records()
                .where(WorkflowRecord.document_id == document_id)
                .order_by(WorkflowRecord.position)
            ).scalars()
        )
