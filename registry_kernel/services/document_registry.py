"""
DocumentRegistryService -- document creation and one-time number assignment.

Responsibility:
    Creates, edits, cancels and soft-deletes documents, links documents to
    each other, and owns the moment a document receives its registration
    number.

Architecture position:
    Kernel > Services -- imperative shell.
    Calls SequenceService inside the caller's transaction so that the
    counter increment and the document row commit or roll back together.

Invariants enforced:
    - Numbering fields are assigned together, exactly once, when a document
      leaves draft.  They are never accepted in an edit.
    - A parish-scoped configuration numbers only its own parish's
      documents.  A shared configuration numbers every parish from one
      sequence.
    - Soft-deleted documents keep their number.  Numbers are never reused.
    - Stale writes surface as OptimisticLockError, never as a lost update.

Failure modes:
    - ValidationError: bad document type, subject, patch key, link.
    - ConfigurationNotFoundError / DocumentNotFoundError.
    - AlreadyRegisteredError: register_document on a numbered document.
    - ReadOnlyFieldError: patch touches a numbering field.
    - InvalidTransitionError: register or cancel from a status that does
      not allow it.
    - OptimisticLockError: document changed since it was loaded.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from registry_kernel.db.immutability import DOCUMENT_NUMBERING_FIELDS
from registry_kernel.domain.clock import Clock
from registry_kernel.domain.dtos import (
    EDITABLE_DOCUMENT_FIELDS,
    SUBJECT_MAX_LENGTH,
    DocumentFields,
)
from registry_kernel.domain.numbering import (
    format_registration_number,
    sequence_year,
)
from registry_kernel.domain.workflow import (
    CANCELLABLE_STATUSES,
    ConnectionType,
    DocumentPriority,
    DocumentStatus,
    DocumentType,
)
from registry_kernel.exceptions import (
    AlreadyRegisteredError,
    ConfigurationNotFoundError,
    DocumentNotFoundError,
    InvalidTransitionError,
    OptimisticLockError,
    ReadOnlyFieldError,
    ValidationError,
)
from registry_kernel.logging_config import get_logger
from registry_kernel.models.document import Document, DocumentConnection
from registry_kernel.models.register_configuration import RegisterConfiguration
from registry_kernel.services.base import BaseService
from registry_kernel.services.sequence_service import SequenceService

logger = get_logger("services.document_registry")

# Engine-owned fields a caller can never write
READ_ONLY_DOCUMENT_FIELDS: frozenset[str] = frozenset(
    DOCUMENT_NUMBERING_FIELDS + ("registration_date",)
)


def load_live_document(session: Session, document_id: UUID) -> Document:
    """Load a document that exists and is not soft-deleted."""
    document = session.get(Document, document_id)
    if document is None or document.is_deleted:
        raise DocumentNotFoundError(str(document_id))
    return document


def flush_document(session: Session, document: Document) -> None:
    """Flush, translating a version conflict into OptimisticLockError."""
    # A failed flush expires the instance and leaves the session pending rollback
    document_id = str(document.id)
    try:
        session.flush()
    except StaleDataError as exc:
        logger.warning(
            "document_version_conflict",
            extra={"document_id": document_id},
        )
        raise OptimisticLockError("Document", document_id) from exc


def _coerce_enum(enum_cls, field: str, value: Any):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(field, f"must be one of: {allowed}") from None


def _validate_subject(subject: Any) -> str:
    if not isinstance(subject, str) or not subject.strip():
        raise ValidationError("subject", "must be a non-empty string")
    if len(subject) > SUBJECT_MAX_LENGTH:
        raise ValidationError(
            "subject", f"must be at most {SUBJECT_MAX_LENGTH} characters",
        )
    return subject.strip()


class DocumentRegistryService(BaseService[Document]):
    """Write-side service for documents."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session, clock)
        self._sequences = sequence_service or SequenceService(session)

    # ------------------------------------------------------------------
    # Creation and registration
    # ------------------------------------------------------------------

    def create_document(
        self,
        parish_id: UUID,
        document_type: DocumentType | str,
        configuration_id: UUID,
        fields: DocumentFields,
        actor_id: UUID,
        register_immediately: bool = False,
    ) -> Document:
        """
        Create a document as a draft, or registered in the same transaction.

        Postconditions:
            - register_immediately=False: status draft, no number.
            - register_immediately=True: status registered with number,
              year key and formatted number assigned.
        """
        doc_type = _coerce_enum(DocumentType, "document_type", document_type)
        configuration = self._load_configuration(configuration_id)
        self._check_scope(configuration, parish_id)

        values = fields.as_dict()
        values["subject"] = _validate_subject(values["subject"])
        values["priority"] = _coerce_enum(
            DocumentPriority, "priority", values["priority"],
        ).value
        if values["parent_document_id"] is not None:
            self._check_parent(values["parent_document_id"], None)

        document = Document(
            parish_id=parish_id,
            register_configuration_id=configuration.id,
            document_type=doc_type.value,
            status=DocumentStatus.DRAFT.value,
            routing_count=0,
            created_by_id=actor_id,
            **values,
        )
        self.session.add(document)
        self.session.flush()

        logger.info(
            "document_created",
            extra={
                "document_id": str(document.id),
                "document_type": doc_type.value,
                "configuration_id": str(configuration.id),
                "register_immediately": register_immediately,
            },
        )

        if register_immediately:
            self._assign_number(document, configuration, actor_id)
        return document

    def register_document(self, document_id: UUID, actor_id: UUID) -> Document:
        """
        Move a draft to registered, allocating its number.

        Raises:
            AlreadyRegisteredError: The document already carries a number.
            InvalidTransitionError: The document is not a draft (cancelled).
        """
        document = load_live_document(self.session, document_id)
        if document.is_registered:
            logger.warning(
                "document_already_registered",
                extra={
                    "document_id": str(document.id),
                    "formatted_number": document.formatted_number,
                },
            )
            raise AlreadyRegisteredError(str(document.id), document.formatted_number)
        if document.status != DocumentStatus.DRAFT.value:
            raise InvalidTransitionError(str(document.id), document.status, "register")

        configuration = self._load_configuration(document.register_configuration_id)
        self._check_scope(configuration, document.parish_id)
        self._assign_number(document, configuration, actor_id)
        return document

    def _assign_number(
        self,
        document: Document,
        configuration: RegisterConfiguration,
        actor_id: UUID,
    ) -> None:
        now = self.clock.now()
        year = now.year
        number = self._sequences.allocate(configuration.id, year)
        key = sequence_year(configuration.resets_annually, year)

        document.registration_number = number
        document.sequence_year = key
        document.registration_year = year if configuration.resets_annually else None
        document.formatted_number = format_registration_number(number, key)
        document.registration_date = now.date()
        document.status = DocumentStatus.REGISTERED.value
        document.updated_by_id = actor_id
        flush_document(self.session, document)

        logger.info(
            "document_registered",
            extra={
                "document_id": str(document.id),
                "configuration_id": str(configuration.id),
                "registration_number": number,
                "formatted_number": document.formatted_number,
            },
        )

    # ------------------------------------------------------------------
    # Edits and lifecycle
    # ------------------------------------------------------------------

    def update_document(
        self,
        document_id: UUID,
        patch: Mapping[str, Any],
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> Document:
        """
        Patch business fields of a document.

        ``expected_version`` is the ``version_id`` the caller last saw;
        when given, a mismatch raises OptimisticLockError without writing.
        """
        for key in patch:
            if key in READ_ONLY_DOCUMENT_FIELDS:
                raise ReadOnlyFieldError(str(document_id), key)
        for key in patch:
            if key == "status":
                raise ValidationError(
                    "status", "changes only through registration, routing or cancellation",
                )
            if key not in EDITABLE_DOCUMENT_FIELDS:
                raise ValidationError(key, "is not an editable document field")

        document = load_live_document(self.session, document_id)
        if expected_version is not None and document.version_id != expected_version:
            raise OptimisticLockError("Document", str(document.id))

        values = dict(patch)
        if "subject" in values:
            values["subject"] = _validate_subject(values["subject"])
        if "priority" in values:
            values["priority"] = _coerce_enum(
                DocumentPriority, "priority", values["priority"],
            ).value
        if "is_secret" in values and not isinstance(values["is_secret"], bool):
            raise ValidationError("is_secret", "must be a boolean")
        if values.get("parent_document_id") is not None:
            self._check_parent(values["parent_document_id"], document.id)

        for key, value in values.items():
            setattr(document, key, value)
        document.updated_by_id = actor_id
        flush_document(self.session, document)

        logger.info(
            "document_updated",
            extra={"document_id": str(document.id), "fields": sorted(values)},
        )
        return document

    def cancel_document(
        self,
        document_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
    ) -> Document:
        """Archive a document with a cancellation note.  Its number is kept."""
        document = load_live_document(self.session, document_id)
        if DocumentStatus(document.status) not in CANCELLABLE_STATUSES:
            raise InvalidTransitionError(str(document.id), document.status, "cancel")

        previous = document.status
        document.status = DocumentStatus.ARCHIVED.value
        document.cancellation_notes = notes
        document.cancelled_at = self.clock.now()
        document.updated_by_id = actor_id
        flush_document(self.session, document)

        logger.info(
            "document_cancelled",
            extra={
                "document_id": str(document.id),
                "from_status": previous,
                "formatted_number": document.formatted_number,
            },
        )
        return document

    def delete_document(self, document_id: UUID, actor_id: UUID) -> Document:
        """Soft-delete a document.  Its number stays consumed."""
        document = load_live_document(self.session, document_id)
        document.deleted_at = self.clock.now()
        document.updated_by_id = actor_id
        flush_document(self.session, document)

        logger.info(
            "document_deleted",
            extra={
                "document_id": str(document.id),
                "formatted_number": document.formatted_number,
            },
        )
        return document

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def connect_documents(
        self,
        document_id: UUID,
        connected_document_id: UUID,
        connection_type: ConnectionType | str,
        actor_id: UUID,
    ) -> DocumentConnection:
        """Link two documents.  A pair may be linked once, in either direction."""
        kind = _coerce_enum(ConnectionType, "connection_type", connection_type)
        if document_id == connected_document_id:
            raise ValidationError("connected_document_id", "a document cannot link to itself")

        load_live_document(self.session, document_id)
        load_live_document(self.session, connected_document_id)

        existing = self.session.execute(
            select(DocumentConnection.id).where(
                or_(
                    and_(
                        DocumentConnection.document_id == document_id,
                        DocumentConnection.connected_document_id == connected_document_id,
                    ),
                    and_(
                        DocumentConnection.document_id == connected_document_id,
                        DocumentConnection.connected_document_id == document_id,
                    ),
                )
            )
        ).first()
        if existing is not None:
            raise ValidationError("connected_document_id", "documents are already linked")

        connection = DocumentConnection(
            document_id=document_id,
            connected_document_id=connected_document_id,
            connection_type=kind.value,
            created_at=self.clock.now(),
            created_by_id=actor_id,
        )
        self.session.add(connection)
        self.session.flush()

        logger.info(
            "documents_connected",
            extra={
                "document_id": str(document_id),
                "connected_document_id": str(connected_document_id),
                "connection_type": kind.value,
            },
        )
        return connection

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_configuration(self, configuration_id: UUID) -> RegisterConfiguration:
        configuration = self.session.get(RegisterConfiguration, configuration_id)
        if configuration is None or configuration.is_retired:
            raise ConfigurationNotFoundError(str(configuration_id))
        return configuration

    def _check_scope(self, configuration: RegisterConfiguration, parish_id: UUID) -> None:
        if configuration.parish_id is not None and configuration.parish_id != parish_id:
            raise ValidationError(
                "configuration_id",
                f"configuration {configuration.id} belongs to another parish",
            )

    def _check_parent(self, parent_id: UUID, document_id: UUID | None) -> None:
        if document_id is not None and parent_id == document_id:
            raise ValidationError("parent_document_id", "a document cannot be its own parent")
        parent = self.session.get(Document, parent_id)
        if parent is None or parent.is_deleted:
            raise ValidationError("parent_document_id", f"unknown document {parent_id}")
