"""
Configuration schema (``registry_config.schema``).

Frozen dataclasses describing the runtime settings of the registry kernel.
Instances are produced by ``registry_config.loader`` and validated by
``RegistryConfig.validate()``; nothing else constructs them at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///registratura.db"
    echo_sql: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class SequenceSettings:
    # Savepoint attempts per allocation before AllocationFailedError
    allocation_max_attempts: int = 3


@dataclass(frozen=True)
class WorkflowSettings:
    # Age after which an unanswered ``sent`` routing is flagged expired
    routing_expiry_hours: float = 72
    # Automatic re-runs of a routing call that hit a version conflict
    route_conflict_retries: int = 1


@dataclass(frozen=True)
class ListingSettings:
    default_page_size: int = 20
    max_page_size: int = 100


@dataclass(frozen=True)
class RegistryConfig:
    """Root of the runtime configuration."""

    config_id: str = "default"
    version: int = 1
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    sequence: SequenceSettings = field(default_factory=SequenceSettings)
    workflow: WorkflowSettings = field(default_factory=WorkflowSettings)
    listing: ListingSettings = field(default_factory=ListingSettings)

    def validate(self) -> list[str]:
        """Return a list of human-readable problems (empty when valid)."""
        errors: list[str] = []
        if not self.database.url:
            errors.append("database.url must not be empty")
        if self.database.pool_size < 1:
            errors.append("database.pool_size must be >= 1")
        if self.database.max_overflow < 0:
            errors.append("database.max_overflow must be >= 0")
        if self.sequence.allocation_max_attempts < 1:
            errors.append("sequence.allocation_max_attempts must be >= 1")
        if self.workflow.routing_expiry_hours <= 0:
            errors.append("workflow.routing_expiry_hours must be > 0")
        if self.workflow.route_conflict_retries < 0:
            errors.append("workflow.route_conflict_retries must be >= 0")
        if self.listing.default_page_size < 1:
            errors.append("listing.default_page_size must be >= 1")
        if self.listing.max_page_size < self.listing.default_page_size:
            errors.append("listing.max_page_size must be >= default_page_size")
        return errors
