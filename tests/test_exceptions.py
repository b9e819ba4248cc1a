"""Error hierarchy: stable codes, structured fields and API rendering."""

import pytest

from registry_kernel.exceptions import (
    AllocationFailedError,
    AlreadyRegisteredError,
    ConcurrencyError,
    ConfigurationInUseError,
    ConfigurationNotFoundError,
    DocumentNotFoundError,
    ImmutabilityViolationError,
    InvalidTransitionError,
    NotFoundError,
    OptimisticLockError,
    ReadOnlyFieldError,
    RegistrationError,
    RegistryKernelError,
    SequenceError,
    ValidationError,
    WorkflowError,
)


@pytest.mark.parametrize(
    "error,code,parent",
    [
        (ValidationError("subject", "empty"), "VALIDATION_ERROR", RegistryKernelError),
        (ConfigurationNotFoundError("c1"), "CONFIGURATION_NOT_FOUND", NotFoundError),
        (DocumentNotFoundError("d1"), "DOCUMENT_NOT_FOUND", NotFoundError),
        (ConfigurationInUseError("c1", 3), "CONFIGURATION_IN_USE", RegistryKernelError),
        (AllocationFailedError("c1", 2024, 3), "ALLOCATION_FAILED", SequenceError),
        (AlreadyRegisteredError("d1", "4/2024"), "ALREADY_REGISTERED", RegistrationError),
        (ReadOnlyFieldError("d1", "formatted_number"), "READ_ONLY_FIELD", RegistrationError),
        (InvalidTransitionError("d1", "draft", "sent"), "INVALID_TRANSITION", WorkflowError),
        (OptimisticLockError("Document", "d1"), "CONCURRENT_MODIFICATION", ConcurrencyError),
        (
            ImmutabilityViolationError("Document", "d1", "frozen"),
            "IMMUTABILITY_VIOLATION",
            RegistryKernelError,
        ),
    ],
)
def test_codes_and_hierarchy(error, code, parent):
    assert error.code == code
    assert isinstance(error, parent)
    assert isinstance(error, RegistryKernelError)


def test_to_dict_carries_fields():
    payload = ConfigurationInUseError("c1", 3).to_dict()

    assert payload["code"] == "CONFIGURATION_IN_USE"
    assert payload["configuration_id"] == "c1"
    assert payload["document_count"] == 3
    assert "c1" in payload["message"]


def test_to_dict_stringifies_other_values():
    error = AllocationFailedError("c1", 2024, 3)
    error.cause = ValueError("boom")

    payload = error.to_dict()

    assert payload["year"] == 2024
    assert payload["cause"] == "boom"


def test_already_registered_message_names_number():
    assert "4/2024" in str(AlreadyRegisteredError("d1", "4/2024"))
