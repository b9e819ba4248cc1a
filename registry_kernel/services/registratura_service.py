"""
RegistraturaService -- transactional boundary of the document registry.

Responsibility:
    The single entry point the (excluded) HTTP layer calls.  Each public
    method opens one ``session_scope``, wires the flush-only services and
    selectors to it, commits on success and rolls back on any error.  All
    results leave as frozen DTOs.

Architecture position:
    Kernel > Services -- boundary facade.
    This is the only class in the kernel that commits.

Invariants enforced:
    - One operation, one transaction: a number allocated for a document is
      committed with that document or not at all.
    - A routing call that loses an optimistic-lock race is re-run from a
      fresh transaction ``route_conflict_retries`` times (default once),
      then OptimisticLockError reaches the caller.
    - Request-scoped log fields (actor, parish, document) are bound for
      the duration of each call.

Failure modes:
    Every RegistryKernelError raised below propagates unchanged after the
    rollback.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from datetime import timedelta
from typing import TYPE_CHECKING, Any, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from registry_kernel.db.engine import session_scope
from registry_kernel.domain.clock import Clock, SystemClock
from registry_kernel.domain.dtos import (
    DocumentConnectionDTO,
    DocumentDTO,
    DocumentFields,
    DocumentFilter,
    DocumentWithHistory,
    LinkedDocument,
    Page,
    RegisterConfigurationDTO,
    RouteResult,
    WorkflowRecordDTO,
)
from registry_kernel.domain.workflow import ConnectionType, DocumentType, WorkflowAction
from registry_kernel.exceptions import DocumentNotFoundError, OptimisticLockError
from registry_kernel.logging_config import LogContext, get_logger
from registry_kernel.selectors.document_selector import DocumentSelector
from registry_kernel.selectors.register_export import RegisterExporter
from registry_kernel.services.document_registry import DocumentRegistryService
from registry_kernel.services.register_configuration_service import (
    DeletionOutcome,
    RegisterConfigurationService,
)
from registry_kernel.services.sequence_service import (
    DEFAULT_MAX_ATTEMPTS,
    SequenceService,
)
from registry_kernel.services.workflow_service import (
    DEFAULT_ROUTING_EXPIRY_HOURS,
    WorkflowService,
)

if TYPE_CHECKING:
    from registry_config.schema import RegistryConfig

logger = get_logger("services.registratura")

T = TypeVar("T")


class _Services:
    """Services and selectors bound to one session."""

    def __init__(self, session: Session, clock: Clock, allocation_max_attempts: int):
        self.session = session
        sequences = SequenceService(session, max_attempts=allocation_max_attempts)
        self.configurations = RegisterConfigurationService(session, clock, sequences)
        self.documents = DocumentRegistryService(session, clock, sequences)
        self.workflow = WorkflowService(session, clock)
        self.selector = DocumentSelector(session)


class RegistraturaService:
    """
    Boundary facade for the registry.

    Usage:
        facade = RegistraturaService(get_session_factory())
        doc = facade.create_document(
            parish_id, DocumentType.INCOMING, config_id,
            DocumentFields(subject="Request for baptism certificate"),
            actor_id=user_id, register_immediately=True,
        )
        facade.route_document(doc.id, WorkflowAction.SENT, user_id,
                              to_user_id=secretary_id)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        allocation_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        route_conflict_retries: int = 1,
        routing_expiry_hours: float = DEFAULT_ROUTING_EXPIRY_HOURS,
        default_page_size: int = 20,
        max_page_size: int = 100,
    ):
        if route_conflict_retries < 0:
            raise ValueError("route_conflict_retries must be >= 0")
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._allocation_max_attempts = allocation_max_attempts
        self._route_conflict_retries = route_conflict_retries
        self._routing_expiry = timedelta(hours=routing_expiry_hours)
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    @classmethod
    def from_config(
        cls,
        config: RegistryConfig,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
    ) -> RegistraturaService:
        return cls(
            session_factory=session_factory,
            clock=clock,
            allocation_max_attempts=config.sequence.allocation_max_attempts,
            route_conflict_retries=config.workflow.route_conflict_retries,
            routing_expiry_hours=config.workflow.routing_expiry_hours,
            default_page_size=config.listing.default_page_size,
            max_page_size=config.listing.max_page_size,
        )

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        work: Callable[[_Services], T],
        **context: Any,
    ) -> T:
        t0 = time.monotonic()
        with LogContext.bind(**context):
            with session_scope(self._session_factory) as session:
                result = work(_Services(session, self._clock, self._allocation_max_attempts))
            logger.debug(
                "operation_committed",
                extra={
                    "operation": operation,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
        return result

    # ------------------------------------------------------------------
    # Register configurations
    # ------------------------------------------------------------------

    def create_configuration(
        self,
        name: str,
        actor_id: UUID,
        parish_id: UUID | None = None,
        resets_annually: bool = True,
        starting_number: int = 1,
        notes: str | None = None,
    ) -> RegisterConfigurationDTO:
        return self._run(
            "create_configuration",
            lambda s: RegisterConfigurationDTO.from_model(
                s.configurations.create(
                    name,
                    actor_id,
                    parish_id=parish_id,
                    resets_annually=resets_annually,
                    starting_number=starting_number,
                    notes=notes,
                )
            ),
            actor_id=actor_id,
            parish_id=parish_id,
        )

    def update_configuration(
        self,
        configuration_id: UUID,
        patch: Mapping[str, Any],
        actor_id: UUID,
    ) -> RegisterConfigurationDTO:
        return self._run(
            "update_configuration",
            lambda s: RegisterConfigurationDTO.from_model(
                s.configurations.update(configuration_id, patch, actor_id)
            ),
            actor_id=actor_id,
        )

    def delete_configuration(
        self, configuration_id: UUID, actor_id: UUID,
    ) -> DeletionOutcome:
        return self._run(
            "delete_configuration",
            lambda s: s.configurations.delete(configuration_id, actor_id),
            actor_id=actor_id,
        )

    def get_configuration(self, configuration_id: UUID) -> RegisterConfigurationDTO:
        return self._run(
            "get_configuration",
            lambda s: RegisterConfigurationDTO.from_model(
                s.configurations.get(configuration_id)
            ),
        )

    def list_configurations(
        self,
        parish_id: UUID | None = None,
        include_shared: bool = True,
    ) -> list[RegisterConfigurationDTO]:
        return self._run(
            "list_configurations",
            lambda s: [
                RegisterConfigurationDTO.from_model(c)
                for c in s.configurations.list_configurations(parish_id, include_shared)
            ],
            parish_id=parish_id,
        )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def create_document(
        self,
        parish_id: UUID,
        document_type: DocumentType | str,
        configuration_id: UUID,
        fields: DocumentFields,
        actor_id: UUID,
        register_immediately: bool = False,
    ) -> DocumentDTO:
        return self._run(
            "create_document",
            lambda s: DocumentDTO.from_model(
                s.documents.create_document(
                    parish_id,
                    document_type,
                    configuration_id,
                    fields,
                    actor_id,
                    register_immediately=register_immediately,
                )
            ),
            actor_id=actor_id,
            parish_id=parish_id,
        )

    def register_document(self, document_id: UUID, actor_id: UUID) -> DocumentDTO:
        return self._run(
            "register_document",
            lambda s: DocumentDTO.from_model(
                s.documents.register_document(document_id, actor_id)
            ),
            actor_id=actor_id,
            document_id=document_id,
        )

    def update_document(
        self,
        document_id: UUID,
        patch: Mapping[str, Any],
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> DocumentDTO:
        return self._run(
            "update_document",
            lambda s: DocumentDTO.from_model(
                s.documents.update_document(
                    document_id, patch, actor_id, expected_version=expected_version,
                )
            ),
            actor_id=actor_id,
            document_id=document_id,
        )

    def cancel_document(
        self, document_id: UUID, actor_id: UUID, notes: str | None = None,
    ) -> DocumentDTO:
        return self._run(
            "cancel_document",
            lambda s: DocumentDTO.from_model(
                s.documents.cancel_document(document_id, actor_id, notes=notes)
            ),
            actor_id=actor_id,
            document_id=document_id,
        )

    def delete_document(self, document_id: UUID, actor_id: UUID) -> None:
        self._run(
            "delete_document",
            lambda s: s.documents.delete_document(document_id, actor_id),
            actor_id=actor_id,
            document_id=document_id,
        )

    def connect_documents(
        self,
        document_id: UUID,
        connected_document_id: UUID,
        connection_type: ConnectionType | str,
        actor_id: UUID,
    ) -> DocumentConnectionDTO:
        return self._run(
            "connect_documents",
            lambda s: DocumentConnectionDTO.from_model(
                s.documents.connect_documents(
                    document_id, connected_document_id, connection_type, actor_id,
                )
            ),
            actor_id=actor_id,
            document_id=document_id,
        )

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    def route_document(
        self,
        document_id: UUID,
        action: WorkflowAction | str,
        acting_user_id: UUID,
        to_user_id: UUID | None = None,
        to_department_id: UUID | None = None,
        resolution: str | None = None,
        notes: str | None = None,
    ) -> RouteResult:
        """
        Apply a routing action, re-running it after a version conflict.

        Raises:
            OptimisticLockError: The conflict persisted through every retry.
        """

        def work(s: _Services) -> RouteResult:
            document, record = s.workflow.route_document(
                document_id,
                action,
                acting_user_id,
                to_user_id=to_user_id,
                to_department_id=to_department_id,
                resolution=resolution,
                notes=notes,
            )
            return RouteResult(
                document=DocumentDTO.from_model(document),
                workflow_record=WorkflowRecordDTO.from_model(record),
            )

        attempts = self._route_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self._run(
                    "route_document",
                    work,
                    actor_id=acting_user_id,
                    document_id=document_id,
                )
            except OptimisticLockError:
                if attempt >= attempts:
                    logger.error(
                        "route_conflict_exhausted",
                        extra={"document_id": str(document_id), "attempts": attempt},
                    )
                    raise
                logger.warning(
                    "route_conflict_retry",
                    extra={"document_id": str(document_id), "attempt": attempt},
                )
        raise AssertionError("unreachable")

    def expire_stale_routings(self, timeout: timedelta | None = None) -> int:
        """Flag unanswered routings older than ``timeout``.  Returns the count."""
        return self._run(
            "expire_stale_routings",
            lambda s: len(s.workflow.expire_stale_routings(timeout or self._routing_expiry)),
        )

    def pending_routings(self, document_id: UUID) -> list[WorkflowRecordDTO]:
        return self._run(
            "pending_routings",
            lambda s: [
                WorkflowRecordDTO.from_model(r)
                for r in s.workflow.pending_routings(document_id)
            ],
            document_id=document_id,
        )

    def get_history(self, document_id: UUID) -> list[WorkflowRecordDTO]:
        return self._run(
            "get_history",
            lambda s: [
                WorkflowRecordDTO.from_model(r)
                for r in s.workflow.get_history(document_id)
            ],
            document_id=document_id,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_document(self, document_id: UUID) -> DocumentDTO:
        def work(s: _Services) -> DocumentDTO:
            document = s.selector.get_document(document_id)
            if document is None:
                raise DocumentNotFoundError(str(document_id))
            return document

        return self._run("get_document", work, document_id=document_id)

    def get_document_with_history(self, document_id: UUID) -> DocumentWithHistory:
        def work(s: _Services) -> DocumentWithHistory:
            result = s.selector.get_document_with_history(document_id)
            if result is None:
                raise DocumentNotFoundError(str(document_id))
            return result

        return self._run("get_document_with_history", work, document_id=document_id)

    def list_documents(
        self,
        filters: DocumentFilter | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page[DocumentDTO]:
        return self._run(
            "list_documents",
            lambda s: s.selector.list_documents(
                filters,
                page=page,
                page_size=page_size or self._default_page_size,
                max_page_size=self._max_page_size,
            ),
        )

    def get_connections(self, document_id: UUID) -> tuple[LinkedDocument, ...]:
        def work(s: _Services) -> tuple[LinkedDocument, ...]:
            if s.selector.get_document(document_id) is None:
                raise DocumentNotFoundError(str(document_id))
            return s.selector.get_connections(document_id)

        return self._run("get_connections", work, document_id=document_id)

    def export_register(self, filters: DocumentFilter | None = None) -> str:
        return self._run(
            "export_register",
            lambda s: RegisterExporter(s.session).export_csv(filters),
        )

    def export_register_xlsx(self, filters: DocumentFilter | None = None) -> bytes:
        """The filtered register as an .xlsx workbook."""
        return self._run(
            "export_register_xlsx",
            lambda s: RegisterExporter(s.session).export_xlsx(filters),
        )
