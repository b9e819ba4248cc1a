"""
Runtime configuration loading and validation.

Covers:
- The packaged default set loads and validates
- Partial files fall back to defaults
- Unknown sections and keys, wrong types, and failed validation
- REGISTRY_CONFIG_TRACE audit log
"""

import textwrap

import pytest
import yaml

from registry_config import RegistryConfig, get_active_config
from registry_config.loader import load_config, parse_config
from registry_kernel.services.registratura_service import RegistraturaService


def _write(tmp_path, body: str):
    path = tmp_path / "settings.yaml"
    path.write_text(textwrap.dedent(body))
    return path


class TestDefaultSet:
    def test_default_set_loads(self):
        config = get_active_config()

        assert config.config_id == "default"
        assert config.sequence.allocation_max_attempts == 3
        assert config.workflow.routing_expiry_hours == 72
        assert config.workflow.route_conflict_retries == 1
        assert config.listing.max_page_size == 100
        assert config.validate() == []

    def test_defaults_match_dataclasses(self):
        assert get_active_config() == RegistryConfig()

    def test_trace_logged(self, captured_logs):
        get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "REGISTRY_CONFIG_TRACE"]
        assert traces
        assert traces[-1]["config_id"] == "default"
        assert traces[-1]["routing_expiry_hours"] == 72


class TestParsing:
    def test_partial_file(self, tmp_path):
        path = _write(tmp_path, """
            config_id: parish-office
            workflow:
              routing_expiry_hours: 48
        """)

        config = get_active_config(path)

        assert config.config_id == "parish-office"
        assert config.workflow.routing_expiry_hours == 48.0
        assert config.workflow.route_conflict_retries == 1
        assert config.database.pool_size == 20

    def test_empty_file(self, tmp_path):
        assert load_config(_write(tmp_path, "")) == RegistryConfig()

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown configuration sections"):
            parse_config({"metrics": {}})

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown setting 'sequence.retries'"):
            parse_config({"sequence": {"retries": 2}})

    @pytest.mark.parametrize(
        "section,key,value",
        [
            ("sequence", "allocation_max_attempts", "3"),
            ("sequence", "allocation_max_attempts", True),
            ("database", "echo_sql", "yes"),
            ("database", "url", 5),
            ("workflow", "routing_expiry_hours", "soon"),
        ],
    )
    def test_wrong_type(self, section, key, value):
        with pytest.raises(ValueError, match=f"{section}.{key}"):
            parse_config({section: {key: value}})

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError):
            parse_config({"listing": [1, 2]})

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ValueError):
            load_config(_write(tmp_path, "- a\n- b\n"))

    def test_malformed_yaml(self, tmp_path):
        with pytest.raises(yaml.YAMLError):
            load_config(_write(tmp_path, "workflow: [unclosed\n"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestValidation:
    def test_invalid_values_reported_together(self, tmp_path):
        path = _write(tmp_path, """
            sequence:
              allocation_max_attempts: 0
            workflow:
              routing_expiry_hours: 0
            listing:
              default_page_size: 50
              max_page_size: 10
        """)

        with pytest.raises(ValueError) as exc_info:
            get_active_config(path)

        message = str(exc_info.value)
        assert "allocation_max_attempts" in message
        assert "routing_expiry_hours" in message
        assert "max_page_size" in message


def test_facade_from_config(tmp_path, session_factory, deterministic_clock):
    path = _write(tmp_path, """
        workflow:
          route_conflict_retries: 0
        listing:
          default_page_size: 7
          max_page_size: 7
    """)

    facade = RegistraturaService.from_config(
        get_active_config(path), session_factory, deterministic_clock,
    )

    assert facade.list_documents().page_size == 7
