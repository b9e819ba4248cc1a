"""
RegisterConfigurationService -- lifecycle of register configurations.

Responsibility:
    Create, update, retire and delete the numbering policies documents are
    registered under.  Validation lives here; the configuration itself has
    no behaviour.

Architecture position:
    Kernel > Services -- imperative shell.
    Uses SequenceService for eager seeding and counter cleanup.

Invariants enforced:
    - name is non-empty and starting_number >= 1.
    - Editing resets_annually or starting_number never touches numbers
      already stored on documents; it only shapes future allocations.
    - Switching resets_annually from False to True seeds the counter for
      the current year so that its first allocation returns
      starting_number.
    - A configuration referenced by a live document cannot be deleted.
      One referenced only by soft-deleted documents is retired instead.

Failure modes:
    - ValidationError: bad name, starting_number or patch key.
    - ConfigurationNotFoundError: unknown or retired configuration.
    - ConfigurationInUseError: delete blocked by live documents.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from registry_kernel.domain.clock import Clock
from registry_kernel.exceptions import (
    ConfigurationInUseError,
    ConfigurationNotFoundError,
    ValidationError,
)
from registry_kernel.logging_config import get_logger
from registry_kernel.models.document import Document
from registry_kernel.models.register_configuration import RegisterConfiguration
from registry_kernel.services.base import BaseService
from registry_kernel.services.sequence_service import SequenceService

logger = get_logger("services.register_configuration")

NAME_MAX_LENGTH = 200

UPDATABLE_CONFIGURATION_FIELDS: frozenset[str] = frozenset({
    "name",
    "resets_annually",
    "starting_number",
    "notes",
})


class DeletionOutcome(str, Enum):
    DELETED = "deleted"
    RETIRED = "retired"


def _validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name", "must be a non-empty string")
    name = name.strip()
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError("name", f"must be at most {NAME_MAX_LENGTH} characters")
    return name


def _validate_starting_number(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("starting_number", "must be an integer")
    if value < 1:
        raise ValidationError("starting_number", "must be >= 1")
    return value


def _validate_flag(field: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(field, "must be a boolean")
    return value


class RegisterConfigurationService(BaseService[RegisterConfiguration]):
    """
    Write-side service for register configurations.

    Non-goals:
        - No "default configuration" concept: callers always name the
          configuration a document is registered under.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session, clock)
        self._sequences = sequence_service or SequenceService(session)

    def create(
        self,
        name: str,
        actor_id: UUID,
        parish_id: UUID | None = None,
        resets_annually: bool = True,
        starting_number: int = 1,
        notes: str | None = None,
    ) -> RegisterConfiguration:
        configuration = RegisterConfiguration(
            name=_validate_name(name),
            parish_id=parish_id,
            resets_annually=_validate_flag("resets_annually", resets_annually),
            starting_number=_validate_starting_number(starting_number),
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(configuration)
        self.session.flush()

        logger.info(
            "configuration_created",
            extra={
                "configuration_id": str(configuration.id),
                "configuration_name": configuration.name,
                "scope": str(parish_id) if parish_id else "shared",
                "resets_annually": configuration.resets_annually,
                "starting_number": configuration.starting_number,
            },
        )
        return configuration

    def update(
        self,
        configuration_id: UUID,
        patch: Mapping[str, Any],
        actor_id: UUID,
    ) -> RegisterConfiguration:
        """
        Apply ``patch`` to a configuration.

        Only name, resets_annually, starting_number and notes may change.
        """
        unknown = set(patch) - UPDATABLE_CONFIGURATION_FIELDS
        if unknown:
            raise ValidationError(
                sorted(unknown)[0], "cannot be changed on a register configuration",
            )

        configuration = self.get(configuration_id)
        was_annual = configuration.resets_annually

        if "name" in patch:
            configuration.name = _validate_name(patch["name"])
        if "resets_annually" in patch:
            configuration.resets_annually = _validate_flag(
                "resets_annually", patch["resets_annually"],
            )
        if "starting_number" in patch:
            configuration.starting_number = _validate_starting_number(
                patch["starting_number"],
            )
        if "notes" in patch:
            configuration.notes = patch["notes"]
        configuration.updated_by_id = actor_id
        self.session.flush()

        if configuration.resets_annually and not was_annual:
            self._sequences.seed(configuration, self.clock.current_year())

        logger.info(
            "configuration_updated",
            extra={
                "configuration_id": str(configuration.id),
                "fields": sorted(patch),
                "resets_annually": configuration.resets_annually,
                "starting_number": configuration.starting_number,
            },
        )
        return configuration

    def delete(self, configuration_id: UUID, actor_id: UUID) -> DeletionOutcome:
        """
        Delete or retire a configuration.

        Raises:
            ConfigurationInUseError: A non-deleted document references it.
        """
        configuration = self.get(configuration_id)

        live, total = self.session.execute(
            select(
                func.count(Document.id).filter(Document.deleted_at.is_(None)),
                func.count(Document.id),
            ).where(Document.register_configuration_id == configuration_id)
        ).one()

        if live:
            logger.warning(
                "configuration_delete_blocked",
                extra={"configuration_id": str(configuration_id), "live_documents": live},
            )
            raise ConfigurationInUseError(str(configuration_id), live)

        if total:
            configuration.retired_at = self.clock.now()
            configuration.updated_by_id = actor_id
            self.session.flush()
            logger.info(
                "configuration_retired",
                extra={"configuration_id": str(configuration_id), "deleted_documents": total},
            )
            return DeletionOutcome.RETIRED

        dropped = self._sequences.drop_counters(configuration_id)
        self.session.delete(configuration)
        self.session.flush()
        logger.info(
            "configuration_deleted",
            extra={"configuration_id": str(configuration_id), "counters_dropped": dropped},
        )
        return DeletionOutcome.DELETED

    def get(self, configuration_id: UUID) -> RegisterConfiguration:
        """Load an active configuration or raise ConfigurationNotFoundError."""
        configuration = self.session.get(RegisterConfiguration, configuration_id)
        if configuration is None or configuration.is_retired:
            raise ConfigurationNotFoundError(str(configuration_id))
        return configuration

    def list_configurations(
        self,
        parish_id: UUID | None = None,
        include_shared: bool = True,
    ) -> list[RegisterConfiguration]:
        """
        Active configurations ordered by name.

        With ``parish_id`` set, returns that parish's configurations plus
        (unless ``include_shared`` is False) the shared ones.
        """
        stmt = select(RegisterConfiguration).where(
            RegisterConfiguration.retired_at.is_(None)
        )
        if parish_id is not None:
            if include_shared:
                stmt = stmt.where(
                    or_(
                        RegisterConfiguration.parish_id == parish_id,
                        RegisterConfiguration.parish_id.is_(None),
                    )
                )
            else:
                stmt = stmt.where(RegisterConfiguration.parish_id == parish_id)
        elif not include_shared:
            stmt = stmt.where(RegisterConfiguration.parish_id.is_not(None))
        stmt = stmt.order_by(RegisterConfiguration.name, RegisterConfiguration.id)
        return list(self.session.execute(stmt).scalars())
