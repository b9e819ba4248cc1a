"""
Module: registry_kernel.db.base
Responsibility: Declarative base for every registry table.
Architecture position: Kernel > DB.  Lowest import target in the kernel;
    must not import models/, services/, selectors/ or domain/.

Conventions:
    - Primary keys are uuid4 values stored as 36-character strings, so the
      same schema runs on SQLite and PostgreSQL and ids say nothing about
      registration order.
    - Python ``datetime`` annotations become timezone-aware columns and
      ``int`` annotations become BIGINT (registration numbers, counters).
    - TrackedBase adds who/when columns to configurations and documents.
      They are bookkeeping and stay writable on registered documents;
      the numbering columns are what db/immutability.py freezes.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID in Python, CHAR-like string in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds creation and last-edit stamps.

    ``created_at``/``updated_at`` come from the database clock.  The actor
    columns are set by the services: ``created_by_id`` is mandatory,
    ``updated_by_id`` stays NULL until the first edit.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False,
    )
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
