"""
SequenceService -- registration number allocation via atomic counter rows.

Responsibility:
    Hands out the next registration number for a register configuration and
    year key.  One ``SequenceCounter`` row per key holds the last number
    issued; every allocation is a single atomic
    ``UPDATE ... SET last_issued = ... RETURNING last_issued`` on that row.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by DocumentRegistryService (registration) and
    RegisterConfigurationService (eager seeding, counter cleanup).

Invariants enforced:
    - Uniqueness: the UPDATE holds the counter row lock (PostgreSQL) or the
      database write lock (SQLite, BEGIN IMMEDIATE) until the surrounding
      transaction ends, so two transactions never read the same
      last_issued.  The aggregate MAX(number)+1 pattern is never used.
    - Monotonicity: next = max(last_issued + 1, starting_number).  Counters
      never move backwards.
    - Transactional: the increment is only visible once the caller's
      transaction commits.  A rollback returns the number.

Failure modes:
    - ConfigurationNotFoundError: unknown or retired configuration.
    - IntegrityError on the first-use INSERT race: handled inside a
      savepoint, the loser falls through to the UPDATE.
    - OperationalError (lock timeout, serialization failure, deadlock):
      retried inside a fresh savepoint up to ``max_attempts`` times, then
      AllocationFailedError.

Audit relevance:
    Every allocation is logged as ``sequence_allocated`` with the
    configuration, year key and number.
"""

from uuid import UUID

from sqlalchemy import (
    BigInteger,
    ForeignKey,
    UniqueConstraint,
    case,
    delete,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Mapped, Session, mapped_column

from registry_kernel.db.base import Base, UUIDString
from registry_kernel.domain.numbering import first_number, sequence_year
from registry_kernel.exceptions import (
    AllocationFailedError,
    ConfigurationNotFoundError,
    ValidationError,
)
from registry_kernel.logging_config import get_logger
from registry_kernel.models.register_configuration import RegisterConfiguration

logger = get_logger("services.sequence")

DEFAULT_MAX_ATTEMPTS = 3


class SequenceCounter(Base):
    """
    Sequence counter table.

    One row per (register configuration, year key).  Configurations that do
    not reset annually use the shared year key 0.
    """

    __tablename__ = "sequence_counters"

    __table_args__ = (
        UniqueConstraint(
            "register_configuration_id", "year",
            name="uq_sequence_counters_key",
        ),
    )

    register_configuration_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("register_configurations.id"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_issued: Mapped[int] = mapped_column(BigInteger, nullable=False)


class SequenceService:
    """
    Service for allocating registration numbers.

    Contract:
        ``allocate(configuration_id, year)`` returns the next number for the
        configuration's key.  The increment is committed with the caller's
        transaction and nowhere else.

    Guarantees:
        - Two concurrent allocations for the same key never return the same
          number.
        - The allocator itself never skips a number.  Gaps appear only if
          the caller's transaction rolls back after a later allocation for
          the same key has already committed, which cannot happen while the
          counter row is locked.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        number = SequenceService(session).allocate(config_id, 2024)
        # persist the document in the same transaction
    """

    def __init__(self, session: Session, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._session = session
        self._max_attempts = max_attempts

    def allocate(self, configuration_id: UUID, year: int | None) -> int:
        """
        Allocate the next number for ``configuration_id``.

        ``year`` is ignored for configurations that do not reset annually.

        Preconditions:
            - The caller is within an active database transaction.

        Raises:
            ConfigurationNotFoundError: Configuration missing or retired.
            ValidationError: Annual configuration without a valid year.
            AllocationFailedError: Storage contention outlasted the retries.
        """
        configuration = self._load_configuration(configuration_id)
        try:
            key = sequence_year(configuration.resets_annually, year)
        except ValueError as exc:
            raise ValidationError("year", str(exc)) from exc

        last_error: OperationalError | None = None
        for attempt in range(1, self._max_attempts + 1):
            savepoint = self._session.begin_nested()
            try:
                number = self._increment(configuration, key)
                savepoint.commit()
            except OperationalError as exc:
                savepoint.rollback()
                last_error = exc
                logger.warning(
                    "sequence_allocation_retry",
                    extra={
                        "configuration_id": str(configuration_id),
                        "year": key,
                        "attempt": attempt,
                        "error": str(exc.orig),
                    },
                )
                continue

            logger.info(
                "sequence_allocated",
                extra={
                    "configuration_id": str(configuration_id),
                    "year": key,
                    "number": number,
                    "attempt": attempt,
                },
            )
            return number

        logger.error(
            "sequence_allocation_failed",
            extra={
                "configuration_id": str(configuration_id),
                "year": key,
                "attempts": self._max_attempts,
            },
        )
        raise AllocationFailedError(
            str(configuration_id), key, self._max_attempts,
        ) from last_error

    def seed(self, configuration: RegisterConfiguration, year: int | None) -> bool:
        """
        Create the counter row for a key if it does not exist yet.

        The row is seeded so that the next allocation returns
        ``starting_number``.  Returns True if a row was created.
        """
        key = sequence_year(configuration.resets_annually, year)
        if self._counter_value(configuration.id, key) is not None:
            return False
        created = self._insert_counter(configuration, key)
        if created:
            logger.info(
                "sequence_seeded",
                extra={
                    "configuration_id": str(configuration.id),
                    "year": key,
                    "last_issued": first_number(configuration.starting_number),
                },
            )
        return created

    def current_value(self, configuration_id: UUID, year: int) -> int | None:
        """
        Last number issued for a raw year key, without incrementing.

        Returns None if the key has never been used.
        """
        return self._counter_value(configuration_id, year)

    def drop_counters(self, configuration_id: UUID) -> int:
        """Delete every counter of a configuration.  Returns the row count."""
        result = self._session.execute(
            delete(SequenceCounter)
            .where(SequenceCounter.register_configuration_id == configuration_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_configuration(self, configuration_id: UUID) -> RegisterConfiguration:
        configuration = self._session.get(RegisterConfiguration, configuration_id)
        if configuration is None or configuration.is_retired:
            raise ConfigurationNotFoundError(str(configuration_id))
        return configuration

    def _increment(self, configuration: RegisterConfiguration, key: int) -> int:
        number = self._update_counter(configuration, key)
        if number is not None:
            return number

        # First use of this key
        self._insert_counter(configuration, key)
        number = self._update_counter(configuration, key)
        if number is None:
            raise RuntimeError(
                f"Counter row for {configuration.id}/{key} vanished after insert"
            )
        return number

    def _update_counter(
        self, configuration: RegisterConfiguration, key: int,
    ) -> int | None:
        # Single statement: the row lock is taken and the value read at once
        next_value = SequenceCounter.last_issued + 1
        stmt = (
            update(SequenceCounter)
            .where(
                SequenceCounter.register_configuration_id == configuration.id,
                SequenceCounter.year == key,
            )
            .values(
                last_issued=case(
                    (next_value < configuration.starting_number,
                     configuration.starting_number),
                    else_=next_value,
                )
            )
            .returning(SequenceCounter.last_issued)
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def _insert_counter(self, configuration: RegisterConfiguration, key: int) -> bool:
        # Savepoint so a lost insert race does not roll back the caller's work
        savepoint = self._session.begin_nested()
        try:
            self._session.add(
                SequenceCounter(
                    register_configuration_id=configuration.id,
                    year=key,
                    last_issued=first_number(configuration.starting_number),
                )
            )
            self._session.flush()
            savepoint.commit()
            return True
        except IntegrityError:
            logger.debug(
                "sequence_counter_race_retry",
                extra={"configuration_id": str(configuration.id), "year": key},
            )
            savepoint.rollback()
            return False

    def _counter_value(self, configuration_id: UUID, key: int) -> int | None:
        return self._session.execute(
            select(SequenceCounter.last_issued).where(
                SequenceCounter.register_configuration_id == configuration_id,
                SequenceCounter.year == key,
            )
        ).scalar_one_or_none()
