"""Write-side services for the registry kernel."""

from registry_kernel.services.document_registry import DocumentRegistryService
from registry_kernel.services.register_configuration_service import (
    DeletionOutcome,
    RegisterConfigurationService,
)
from registry_kernel.services.registratura_service import RegistraturaService
from registry_kernel.services.sequence_service import SequenceCounter, SequenceService
from registry_kernel.services.workflow_service import WorkflowService

__all__ = [
    "DeletionOutcome",
    "DocumentRegistryService",
    "RegisterConfigurationService",
    "RegistraturaService",
    "SequenceCounter",
    "SequenceService",
    "WorkflowService",
]
