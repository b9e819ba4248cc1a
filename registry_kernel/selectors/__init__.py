"""Read-only query selectors for the registry kernel."""

from registry_kernel.selectors.base import BaseSelector
from registry_kernel.selectors.document_selector import DocumentSelector
from registry_kernel.selectors.register_export import RegisterExporter

__all__ = [
    "BaseSelector",
    "DocumentSelector",
    "RegisterExporter",
]
