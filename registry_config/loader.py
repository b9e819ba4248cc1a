"""
Configuration Loader (``registry_config.loader``).

Responsibility
--------------
Reads a YAML settings file and parses it into the frozen dataclasses of
``registry_config.schema``.  Runtime callers go through
``registry_config.get_active_config()`` instead of calling this module.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or key  -> ``ValueError``.
* Value of the wrong type  -> ``ValueError``.
"""

from __future__ import annotations

from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from registry_config.schema import (
    DatabaseSettings,
    ListingSettings,
    RegistryConfig,
    SequenceSettings,
    WorkflowSettings,
)

_SECTIONS = {
    "database": DatabaseSettings,
    "sequence": SequenceSettings,
    "workflow": WorkflowSettings,
    "listing": ListingSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _coerce(section: str, name: str, value: Any, expected: Any) -> Any:
    if expected is bool or expected == "bool":
        if not isinstance(value, bool):
            raise ValueError(f"{section}.{name} must be a boolean, got {value!r}")
        return value
    if expected is int or expected == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{section}.{name} must be an integer, got {value!r}")
        return value
    if expected is float or expected == "float":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{section}.{name} must be a number, got {value!r}")
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"{section}.{name} must be a string, got {value!r}")
    return value


def parse_section(section: str, data: dict[str, Any] | None) -> Any:
    """Parse one settings section into its dataclass."""
    cls = _SECTIONS[section]
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"Section '{section}' must be a mapping")

    known = {f.name: f.type for f in fields(cls)}
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            raise ValueError(f"Unknown setting '{section}.{key}'")
        kwargs[key] = _coerce(section, key, value, known[key])
    return cls(**kwargs)


def parse_config(data: dict[str, Any]) -> RegistryConfig:
    """Parse a whole settings document."""
    unknown = set(data) - set(_SECTIONS) - {"config_id", "version"}
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    return RegistryConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        **{section: parse_section(section, data.get(section)) for section in _SECTIONS},
    )


def load_config(path: Path) -> RegistryConfig:
    """Load and parse ``path`` without validating it."""
    return parse_config(load_yaml_file(path))
