"""
registry_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive the values they need as
    constructor arguments; they never read files or the environment.

Architecture position:
    Configuration -- sits beside ``registry_kernel``.  The kernel's
    services and models MUST NOT import from ``registry_config``; only the
    boundary facade and the operational scripts do.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- unknown keys, wrong types, or failed validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``REGISTRY_CONFIG_TRACE`` log entry with the config id, version and the
    numbering and workflow settings in force.
"""

from __future__ import annotations

import logging
from pathlib import Path

from registry_config.loader import load_config
from registry_config.schema import RegistryConfig

__all__ = ["RegistryConfig", "get_active_config"]

_logger = logging.getLogger("registry_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> RegistryConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Settings file.  Defaults to ``registry_config/sets/default.yaml``.

    Returns:
        A validated, frozen ``RegistryConfig``.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        ValueError: If parsing or validation fails.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    config = load_config(config_path)

    errors = config.validate()
    if errors:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    _logger.info(
        "REGISTRY_CONFIG_TRACE",
        extra={
            "trace_type": "REGISTRY_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "config_path": str(config_path),
            "allocation_max_attempts": config.sequence.allocation_max_attempts,
            "routing_expiry_hours": config.workflow.routing_expiry_hours,
            "route_conflict_retries": config.workflow.route_conflict_retries,
        },
    )
    return config
