"""
Module: registry_kernel.selectors.document_selector
Responsibility: Read-only access to documents, their routing history and
    their links.  Converts ORM models to frozen DTOs.
Architecture position: Kernel > Selectors.  May import from models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: no mutations performed on any queried data.
    - History is ordered by per-document position, never by timestamp.
    - Soft-deleted documents are hidden unless a filter asks for them.

Failure modes:
    - Returns None / empty results on absence of data.
    - ValidationError on an out-of-range page or page size, or on a filter
      type or status that names no member.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import Select, func, or_, select

from registry_kernel.domain.dtos import (
    DocumentConnectionDTO,
    DocumentDTO,
    DocumentFilter,
    DocumentWithHistory,
    LinkedDocument,
    Page,
    WorkflowRecordDTO,
)
from registry_kernel.domain.workflow import DocumentStatus, DocumentType
from registry_kernel.exceptions import ValidationError
from registry_kernel.models.document import Document, DocumentConnection
from registry_kernel.models.workflow_record import WorkflowRecord
from registry_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _filter_value(enum_cls, field: str, value) -> str:
    # Filters accept members or their raw values
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(field, f"must be one of: {allowed}") from None


def apply_document_filter(stmt: Select, filters: DocumentFilter) -> Select:
    """Narrow a SELECT over Document by every set field of ``filters``."""
    if not filters.include_deleted:
        stmt = stmt.where(Document.deleted_at.is_(None))
    if filters.parish_id is not None:
        stmt = stmt.where(Document.parish_id == filters.parish_id)
    if filters.register_configuration_id is not None:
        stmt = stmt.where(
            Document.register_configuration_id == filters.register_configuration_id
        )
    if filters.document_type is not None:
        document_type = _filter_value(DocumentType, "document_type", filters.document_type)
        stmt = stmt.where(Document.document_type == document_type)
    if filters.status is not None:
        status = _filter_value(DocumentStatus, "status", filters.status)
        stmt = stmt.where(Document.status == status)
    if filters.registration_year is not None:
        # Registration date covers annual and non-annual sequences alike
        stmt = stmt.where(
            Document.registration_date >= date(filters.registration_year, 1, 1),
            Document.registration_date <= date(filters.registration_year, 12, 31),
        )
    if filters.department_id is not None:
        stmt = stmt.where(Document.department_id == filters.department_id)
    if filters.assigned_to is not None:
        stmt = stmt.where(Document.assigned_to == filters.assigned_to)
    if filters.search:
        term = filters.search.strip()
        stmt = stmt.where(
            or_(
                Document.subject.icontains(term, autoescape=True),
                Document.formatted_number.icontains(term, autoescape=True),
                Document.sender_name.icontains(term, autoescape=True),
                Document.recipient_name.icontains(term, autoescape=True),
                Document.external_number.icontains(term, autoescape=True),
            )
        )
    return stmt


def register_order(stmt: Select) -> Select:
    """Newest registrations first; drafts after registered documents."""
    return stmt.order_by(
        Document.registration_date.desc().nulls_last(),
        Document.sequence_year.desc().nulls_last(),
        Document.registration_number.desc().nulls_last(),
        Document.created_at.desc(),
        Document.id,
    )


class DocumentSelector(BaseSelector[Document]):
    """Query documents with their history and links."""

    def get_document(
        self, document_id: UUID, include_deleted: bool = False,
    ) -> DocumentDTO | None:
        document = self.session.get(Document, document_id)
        if document is None:
            return None
        if document.is_deleted and not include_deleted:
            return None
        return DocumentDTO.from_model(document)

    def get_history(self, document_id: UUID) -> tuple[WorkflowRecordDTO, ...]:
        records = self.session.execute(
            select(WorkflowRecord)
            .where(WorkflowRecord.document_id == document_id)
            .order_by(WorkflowRecord.position)
        ).scalars()
        return tuple(WorkflowRecordDTO.from_model(r) for r in records)

    def get_document_with_history(
        self, document_id: UUID,
    ) -> DocumentWithHistory | None:
        document = self.get_document(document_id)
        if document is None:
            return None
        return DocumentWithHistory(
            document=document,
            history=self.get_history(document_id),
        )

    def list_documents(
        self,
        filters: DocumentFilter | None = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> Page[DocumentDTO]:
        """
        One page of the filtered register.

        Args:
            filters: Criteria; None lists every live document.
            page: 1-based page number.
            page_size: Rows per page, at most ``max_page_size``.
        """
        if page < 1:
            raise ValidationError("page", "must be >= 1")
        if page_size < 1 or page_size > max_page_size:
            raise ValidationError("page_size", f"must be between 1 and {max_page_size}")

        filters = filters or DocumentFilter()
        total = self.session.execute(
            apply_document_filter(select(func.count(Document.id)), filters)
        ).scalar_one()

        rows = self.session.execute(
            register_order(apply_document_filter(select(Document), filters))
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars()

        return Page(
            items=tuple(DocumentDTO.from_model(d) for d in rows),
            page=page,
            page_size=page_size,
            total=total,
        )

    def get_connections(self, document_id: UUID) -> tuple[LinkedDocument, ...]:
        """
        Links of a document from both ends, oldest first.

        Links whose other document is soft-deleted are skipped.
        """
        connections = self.session.execute(
            select(DocumentConnection)
            .where(
                or_(
                    DocumentConnection.document_id == document_id,
                    DocumentConnection.connected_document_id == document_id,
                )
            )
            .order_by(DocumentConnection.created_at, DocumentConnection.id)
        ).scalars().all()

        linked: list[LinkedDocument] = []
        for connection in connections:
            other_id = (
                connection.connected_document_id
                if connection.document_id == document_id
                else connection.document_id
            )
            other = self.get_document(other_id)
            if other is None:
                continue
            linked.append(
                LinkedDocument(
                    connection=DocumentConnectionDTO.from_model(connection),
                    document=other,
                )
            )
        return tuple(linked)
