"""
Module: registry_kernel.models.workflow_record
Responsibility: ORM persistence for the routing audit trail.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: every column except is_expired is frozen at INSERT and
      rows cannot be deleted (db/immutability.py).
    - UNIQUE(document_id, position): each document's history has one
      total order, independent of timestamp resolution.
    - action is one of the WorkflowAction values (DB check constraint).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from registry_kernel.db.base import Base, UUIDString


class WorkflowRecord(Base):
    """One routing step of a document."""

    __tablename__ = "workflow_records"

    __table_args__ = (
        UniqueConstraint(
            "document_id", "position",
            name="uq_workflow_records_document_position",
        ),
        CheckConstraint(
            "action IN ('sent', 'received', 'resolved', 'returned', "
            "'approved', 'rejected')",
            name="ck_workflow_records_valid_action",
        ),
        Index("ix_workflow_records_expiry", "action", "is_expired", "created_at"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=False,
    )
    position: Mapped[int] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    from_user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    to_user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    from_department_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    to_department_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_expired: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, active_history=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def __repr__(self) -> str:
        return f"<WorkflowRecord {self.document_id}#{self.position} {self.action}>"
