"""ORM models for the registry kernel."""

from registry_kernel.models.document import Document, DocumentConnection
from registry_kernel.models.register_configuration import RegisterConfiguration
from registry_kernel.models.workflow_record import WorkflowRecord

__all__ = [
    "Document",
    "DocumentConnection",
    "RegisterConfiguration",
    "WorkflowRecord",
]
