"""
Module: registry_kernel.models.document
Responsibility: ORM persistence for registered documents and the typed
    links between them.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(register_configuration_id, sequence_year, registration_number):
      a number is issued at most once per sequence, backstopping the
      allocator.  Drafts carry NULLs and are exempt.
    - Numbering columns are write-once (db/immutability.py).
    - Physical DELETE is blocked; deleted_at marks a soft-deleted document
      and its number stays consumed.
    - version_id is the optimistic lock column.  A flush against a stale
      version raises StaleDataError, which the services surface as
      OptimisticLockError.

Failure modes:
    - IntegrityError on a duplicate (configuration, year key, number).
    - ImmutabilityViolationError on a numbering change or DELETE.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from registry_kernel.db.base import Base, TrackedBase, UUIDString


class Document(TrackedBase):
    """
    A document kept in the general register.

    Contract:
        registration_number, registration_year, sequence_year and
        formatted_number are NULL while the document is a draft and are
        assigned together, exactly once, at registration.

    Guarantees:
        - status is one of the DocumentStatus values.
        - routing_count equals the number of workflow records written for
          the document and supplies the next record position.
    """

    __tablename__ = "documents"

    __table_args__ = (
        UniqueConstraint(
            "register_configuration_id",
            "sequence_year",
            "registration_number",
            name="uq_documents_registration_number",
        ),
        CheckConstraint(
            "status IN ('draft', 'registered', 'in_work', 'resolved', 'archived')",
            name="ck_documents_valid_status",
        ),
        CheckConstraint(
            "document_type IN ('incoming', 'outgoing', 'internal')",
            name="ck_documents_valid_type",
        ),
        CheckConstraint(
            "priority IN ('low', 'normal', 'high', 'urgent')",
            name="ck_documents_valid_priority",
        ),
        Index("ix_documents_parish_status", "parish_id", "status"),
        Index("ix_documents_registration_year", "registration_year"),
        Index("ix_documents_assigned_to", "assigned_to"),
    )

    parish_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    register_configuration_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("register_configurations.id"),
        nullable=False,
    )
    document_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="draft",
    )

    # Numbering (engine-owned, write-once)
    registration_number: Mapped[int | None] = mapped_column(
        nullable=True, active_history=True,
    )
    registration_year: Mapped[int | None] = mapped_column(
        nullable=True, active_history=True,
    )
    sequence_year: Mapped[int | None] = mapped_column(
        nullable=True, active_history=True,
    )
    formatted_number: Mapped[str | None] = mapped_column(
        String(50), nullable=True, active_history=True,
    )
    registration_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Business fields
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default="normal",
    )
    external_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    external_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    sender_name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    sender_doc_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sender_doc_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    recipient_name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    department_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    assigned_to: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    resolved_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    file_index: Mapped[str | None] = mapped_column(String(50), nullable=True)
    parent_document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=True,
    )
    is_secret: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Lifecycle
    cancellation_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    routing_count: Mapped[int] = mapped_column(nullable=False, default=0)

    version_id: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_registered(self) -> bool:
        return self.registration_number is not None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        number = self.formatted_number or "draft"
        return f"<Document {number} status={self.status}>"


class DocumentConnection(Base):
    """
    Typed link between two documents (reply, attachment, amendment, ...).

    Links are directional as stored but are read from both ends.
    """

    __tablename__ = "document_connections"

    __table_args__ = (
        UniqueConstraint(
            "document_id",
            "connected_document_id",
            name="uq_document_connections_pair",
        ),
        CheckConstraint(
            "document_id <> connected_document_id",
            name="ck_document_connections_not_self",
        ),
        CheckConstraint(
            "connection_type IN ('related', 'response', 'attachment', 'amendment')",
            name="ck_document_connections_valid_type",
        ),
        Index("ix_document_connections_connected", "connected_document_id"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=False,
    )
    connected_document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=False,
    )
    connection_type: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<DocumentConnection {self.document_id} -{self.connection_type}-> "
            f"{self.connected_document_id}>"
        )
