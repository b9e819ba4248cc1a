"""
Registry Kernel - document registry and routing workflow engine

A transactional core for the "registratura" module with:
- Gap-free, per-configuration registration numbering
- Optional annual reset of sequences
- Routing workflow state machine with an immutable audit trail
- Expiry of stale in-flight routings
"""

__version__ = "0.1.0"
