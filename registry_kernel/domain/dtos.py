"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable structures that cross the engine boundary: the business fields
    a caller supplies when creating a document (DocumentFields), list filters
    (DocumentFilter), and the frozen read models returned to callers
    (RegisterConfigurationDTO, DocumentDTO, WorkflowRecordDTO, ...).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked only from the
    service and selector layers.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Generic, TypeVar
from uuid import UUID

from registry_kernel.domain.workflow import (
    ConnectionType,
    DocumentPriority,
    DocumentStatus,
    DocumentType,
    WorkflowAction,
)

if TYPE_CHECKING:
    from registry_kernel.models.document import (
        Document as DocumentModel,
        DocumentConnection as DocumentConnectionModel,
    )
    from registry_kernel.models.register_configuration import (
        RegisterConfiguration as RegisterConfigurationModel,
    )
    from registry_kernel.models.workflow_record import (
        WorkflowRecord as WorkflowRecordModel,
    )

T = TypeVar("T")

SUBJECT_MAX_LENGTH = 500


# =========================================================================
# Inputs
# =========================================================================


@dataclass(frozen=True)
class DocumentFields:
    """Business fields of a document.  Opaque to the numbering and workflow core."""

    subject: str
    content: str | None = None
    priority: DocumentPriority = DocumentPriority.NORMAL
    external_number: str | None = None
    external_date: date | None = None
    sender_name: str | None = None
    sender_doc_number: str | None = None
    sender_doc_date: date | None = None
    recipient_name: str | None = None
    department_id: UUID | None = None
    assigned_to: UUID | None = None
    due_date: date | None = None
    file_index: str | None = None
    parent_document_id: UUID | None = None
    is_secret: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# Fields a caller may patch through update_document()
EDITABLE_DOCUMENT_FIELDS: frozenset[str] = frozenset(
    f.name for f in fields(DocumentFields)
)


@dataclass(frozen=True)
class DocumentFilter:
    """Criteria for listing documents.  Unset fields do not filter."""

    parish_id: UUID | None = None
    register_configuration_id: UUID | None = None
    document_type: DocumentType | str | None = None
    status: DocumentStatus | str | None = None
    registration_year: int | None = None
    department_id: UUID | None = None
    assigned_to: UUID | None = None
    search: str | None = None
    include_deleted: bool = False


# =========================================================================
# Outputs
# =========================================================================


@dataclass(frozen=True)
class RegisterConfigurationDTO:
    id: UUID
    name: str
    parish_id: UUID | None
    resets_annually: bool
    starting_number: int
    notes: str | None
    retired_at: datetime | None

    @property
    def is_shared(self) -> bool:
        """A configuration without a parish numbers documents of every parish."""
        return self.parish_id is None

    @classmethod
    def from_model(cls, model: RegisterConfigurationModel) -> RegisterConfigurationDTO:
        return cls(
            id=model.id,
            name=model.name,
            parish_id=model.parish_id,
            resets_annually=model.resets_annually,
            starting_number=model.starting_number,
            notes=model.notes,
            retired_at=model.retired_at,
        )


@dataclass(frozen=True)
class DocumentDTO:
    id: UUID
    parish_id: UUID
    register_configuration_id: UUID
    document_type: DocumentType
    status: DocumentStatus
    registration_number: int | None
    registration_year: int | None
    formatted_number: str | None
    registration_date: date | None
    subject: str
    content: str | None
    priority: DocumentPriority
    external_number: str | None
    external_date: date | None
    sender_name: str | None
    sender_doc_number: str | None
    sender_doc_date: date | None
    recipient_name: str | None
    department_id: UUID | None
    assigned_to: UUID | None
    due_date: date | None
    resolved_date: date | None
    file_index: str | None
    parent_document_id: UUID | None
    is_secret: bool
    cancellation_notes: str | None
    cancelled_at: datetime | None
    deleted_at: datetime | None
    version_id: int

    @property
    def is_registered(self) -> bool:
        return self.registration_number is not None

    @classmethod
    def from_model(cls, model: DocumentModel) -> DocumentDTO:
        return cls(
            id=model.id,
            parish_id=model.parish_id,
            register_configuration_id=model.register_configuration_id,
            document_type=DocumentType(model.document_type),
            status=DocumentStatus(model.status),
            registration_number=model.registration_number,
            registration_year=model.registration_year,
            formatted_number=model.formatted_number,
            registration_date=model.registration_date,
            subject=model.subject,
            content=model.content,
            priority=DocumentPriority(model.priority),
            external_number=model.external_number,
            external_date=model.external_date,
            sender_name=model.sender_name,
            sender_doc_number=model.sender_doc_number,
            sender_doc_date=model.sender_doc_date,
            recipient_name=model.recipient_name,
            department_id=model.department_id,
            assigned_to=model.assigned_to,
            due_date=model.due_date,
            resolved_date=model.resolved_date,
            file_index=model.file_index,
            parent_document_id=model.parent_document_id,
            is_secret=model.is_secret,
            cancellation_notes=model.cancellation_notes,
            cancelled_at=model.cancelled_at,
            deleted_at=model.deleted_at,
            version_id=model.version_id,
        )


@dataclass(frozen=True)
class WorkflowRecordDTO:
    id: UUID
    document_id: UUID
    position: int
    action: WorkflowAction
    from_user_id: UUID | None
    to_user_id: UUID | None
    from_department_id: UUID | None
    to_department_id: UUID | None
    resolution: str | None
    notes: str | None
    is_expired: bool
    created_at: datetime

    @classmethod
    def from_model(cls, model: WorkflowRecordModel) -> WorkflowRecordDTO:
        return cls(
            id=model.id,
            document_id=model.document_id,
            position=model.position,
            action=WorkflowAction(model.action),
            from_user_id=model.from_user_id,
            to_user_id=model.to_user_id,
            from_department_id=model.from_department_id,
            to_department_id=model.to_department_id,
            resolution=model.resolution,
            notes=model.notes,
            is_expired=model.is_expired,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class DocumentConnectionDTO:
    id: UUID
    document_id: UUID
    connected_document_id: UUID
    connection_type: ConnectionType
    created_at: datetime

    @classmethod
    def from_model(cls, model: DocumentConnectionModel) -> DocumentConnectionDTO:
        return cls(
            id=model.id,
            document_id=model.document_id,
            connected_document_id=model.connected_document_id,
            connection_type=ConnectionType(model.connection_type),
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class RouteResult:
    """Outcome of a routing action: the updated document and its new record."""

    document: DocumentDTO
    workflow_record: WorkflowRecordDTO


@dataclass(frozen=True)
class DocumentWithHistory:
    document: DocumentDTO
    history: tuple[WorkflowRecordDTO, ...]


@dataclass(frozen=True)
class LinkedDocument:
    """A connection seen from one side, with the document on the other side."""

    connection: DocumentConnectionDTO
    document: DocumentDTO


@dataclass(frozen=True)
class Page(Generic[T]):
    items: tuple[T, ...]
    page: int
    page_size: int
    total: int = 0

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return -(-self.total // self.page_size)
