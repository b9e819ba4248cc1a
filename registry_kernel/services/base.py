"""
BaseService -- shared constructor for the registry's write-side services.

Architecture position:
    Kernel > Services -- imperative shell.

Contract:
    A service is built around a caller-owned ``Session`` and writes through
    ``session.flush()`` only.  ``RegistraturaService`` opens, commits and
    rolls back transactions; every other service runs inside the one it is
    handed, which is what lets a number allocated by SequenceService share
    the fate of the document that carries it.

    Read-only listing belongs in ``registry_kernel/selectors/``.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from registry_kernel.db.base import Base
from registry_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Holds the session and the clock.  ``ModelType`` names the table a service owns."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock if clock is not None else SystemClock()
