"""
Module: registry_kernel.models.register_configuration
Responsibility: ORM persistence for register configurations, the named
    numbering policies documents are registered under.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - starting_number >= 1 (DB check constraint).
    - A configuration with parish_id NULL is shared: one sequence serves
      every parish that registers under it.
    - retired_at is set instead of deleting a configuration that is still
      referenced by soft-deleted documents.  A retired configuration cannot
      allocate numbers.

Audit relevance:
    Changing resets_annually or starting_number affects only future
    allocations.  Numbers already stored on documents are never recomputed.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from registry_kernel.db.base import TrackedBase, UUIDString


class RegisterConfiguration(TrackedBase):
    """
    Named numbering policy.

    Guarantees:
        - starting_number is positive.
        - Documents keep a reference to the configuration they were
          registered under for as long as the configuration row exists.
    """

    __tablename__ = "register_configurations"

    __table_args__ = (
        CheckConstraint(
            "starting_number >= 1",
            name="ck_register_configurations_starting_number",
        ),
        Index("ix_register_configurations_parish", "parish_id"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    parish_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    resets_annually: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    starting_number: Mapped[int] = mapped_column(nullable=False, default=1)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    retired_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    @property
    def is_retired(self) -> bool:
        return self.retired_at is not None

    def __repr__(self) -> str:
        scope = self.parish_id or "shared"
        return f"<RegisterConfiguration {self.name} ({scope})>"
