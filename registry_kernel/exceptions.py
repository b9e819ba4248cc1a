"""
Typed exception hierarchy for the registry kernel.

Every error the engine raises is a subclass of ``RegistryKernelError`` and
carries:

  1. A TYPED class (catch by type, never by message text)
  2. A ``code`` class attribute (machine-readable, API-safe)
  3. Structured attributes (ids, statuses, actions) instead of a bare string

The excluded HTTP layer renders errors with ``to_dict()``.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RegistryKernelError (base)
    |
    +-- ValidationError
    |
    +-- NotFoundError
    |   +-- ConfigurationNotFoundError
    |   +-- DocumentNotFoundError
    |
    +-- ConfigurationError
    |   +-- ConfigurationInUseError
    |
    +-- SequenceError
    |   +-- AllocationFailedError
    |
    +-- RegistrationError
    |   +-- AlreadyRegisteredError
    |   +-- ReadOnlyFieldError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Bad input shape or value
----------------|-----------------------------|-----------------------------------------
Not found       | CONFIGURATION_NOT_FOUND     | Unknown or retired configuration
                | DOCUMENT_NOT_FOUND          | Unknown or soft-deleted document
                | WORKFLOW_RECORD_NOT_FOUND   | Unknown workflow record
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_IN_USE        | Delete blocked by live documents
----------------|-----------------------------|-----------------------------------------
Sequence        | ALLOCATION_FAILED           | Counter contention exhausted retries
----------------|-----------------------------|-----------------------------------------
Registration    | ALREADY_REGISTERED          | Document already carries a number
                | READ_ONLY_FIELD             | Caller tried to patch a numbering field
----------------|-----------------------------|-----------------------------------------
Workflow        | INVALID_TRANSITION          | Action not allowed from current status
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENT_MODIFICATION     | Document changed by another transaction
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Write to a frozen column or record

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        facade.route_document(document_id, WorkflowAction.SENT, ...)
    except InvalidTransitionError as e:
        return {"error": e.code, "status": e.current_status, "action": e.action}
    except OptimisticLockError:
        # RegistraturaService already retried once
        ...

ConcurrencyError is the only category callers may retry.  Everything else
is deterministic for the given input and state.
"""

from typing import Any


class RegistryKernelError(Exception):
    """
    Base exception for all registry kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "REGISTRY_KERNEL_ERROR"

    def to_dict(self) -> dict[str, Any]:
        """Render the error for an API response."""
        payload: dict[str, Any] = {"code": self.code, "message": str(self)}
        for key, value in vars(self).items():
            if key.startswith("_"):
                continue
            if value is None or isinstance(value, (int, str)):
                payload[key] = value
            else:
                payload[key] = str(value)
        return payload


# Validation


class ValidationError(RegistryKernelError):
    """Input failed shape or value validation."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Not found


class NotFoundError(RegistryKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class ConfigurationNotFoundError(NotFoundError):
    """Register configuration does not exist or has been retired."""

    code: str = "CONFIGURATION_NOT_FOUND"

    def __init__(self, configuration_id: str):
        self.configuration_id = configuration_id
        super().__init__(f"Register configuration not found: {configuration_id}")


class DocumentNotFoundError(NotFoundError):
    """Document does not exist or has been soft-deleted."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


# Configuration


class ConfigurationError(RegistryKernelError):
    """Base exception for register configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class ConfigurationInUseError(ConfigurationError):
    """Configuration is referenced by live documents and cannot be deleted."""

    code: str = "CONFIGURATION_IN_USE"

    def __init__(self, configuration_id: str, document_count: int):
        self.configuration_id = configuration_id
        self.document_count = document_count
        super().__init__(
            f"Cannot delete register configuration {configuration_id}: "
            f"{document_count} document(s) reference it"
        )


# Sequence


class SequenceError(RegistryKernelError):
    """Base exception for sequence allocation errors."""

    code: str = "SEQUENCE_ERROR"


class AllocationFailedError(SequenceError):
    """Counter contention exhausted the bounded retry budget."""

    code: str = "ALLOCATION_FAILED"

    def __init__(self, configuration_id: str, year: int, attempts: int):
        self.configuration_id = configuration_id
        self.year = year
        self.attempts = attempts
        super().__init__(
            f"Could not allocate a number for configuration {configuration_id} "
            f"(year key {year}) after {attempts} attempt(s)"
        )


# Registration


class RegistrationError(RegistryKernelError):
    """Base exception for registration-number errors."""

    code: str = "REGISTRATION_ERROR"


class AlreadyRegisteredError(RegistrationError):
    """Document already carries a registration number."""

    code: str = "ALREADY_REGISTERED"

    def __init__(self, document_id: str, formatted_number: str | None):
        self.document_id = document_id
        self.formatted_number = formatted_number
        super().__init__(
            f"Document {document_id} is already registered as {formatted_number}"
        )


class ReadOnlyFieldError(RegistrationError):
    """Caller attempted to write an engine-owned field."""

    code: str = "READ_ONLY_FIELD"

    def __init__(self, document_id: str, field: str):
        self.document_id = document_id
        self.field = field
        super().__init__(
            f"Field '{field}' on document {document_id} is owned by the registry "
            "and cannot be changed"
        )


# Workflow


class WorkflowError(RegistryKernelError):
    """Base exception for routing workflow errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """Action is not permitted from the document's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, document_id: str, current_status: str, action: str):
        self.document_id = document_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot apply '{action}' to document {document_id} "
            f"in status '{current_status}'"
        )


# Concurrency


class ConcurrencyError(RegistryKernelError):
    """Base exception for concurrency conflicts."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Document was modified by another transaction."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability


class ImmutabilityError(RegistryKernelError):
    """Base exception for immutability errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record or column.

    Raised by the ORM listeners in ``registry_kernel.db.immutability``.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
