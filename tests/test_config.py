"""Tests for configuration classes in dmn-form-bridge.

Tests cover:
- VariableType parsing
- FieldMapping and ResultMapping construction
- EvaluationConfiguration invariants, parsing and validation
- ClientSettings defaults, timeout clamping and serialization (JSON/YAML)
"""

import json

import pytest
import yaml

from dmn_form_bridge.core.config import (
    ClientSettings,
    EvaluationConfiguration,
    EvaluationMode,
    FieldMapping,
    ResultMapping,
    VariableType,
)
from dmn_form_bridge.core.errors import InvalidMappingsJSONError


class TestVariableType:
    """Tests for VariableType enum."""

    def test_parse_case_insensitive(self):
        """Test that type names parse regardless of case."""
        assert VariableType.parse("integer") == VariableType.INTEGER
        assert VariableType.parse("BOOLEAN") == VariableType.BOOLEAN
        assert VariableType.parse("Double") == VariableType.DOUBLE

    def test_parse_defaults_to_string(self):
        """Test that a missing type means String."""
        assert VariableType.parse(None) == VariableType.STRING
        assert VariableType.parse("") == VariableType.STRING

    def test_parse_unknown_type(self):
        """Test that unknown type names are rejected."""
        with pytest.raises(ValueError, match="Unknown variable type"):
            VariableType.parse("Money")


class TestMappings:
    """Tests for FieldMapping and ResultMapping."""

    def test_field_mapping_from_keyed_record(self):
        """Test the stored object form, keyed by variable name."""
        mapping = FieldMapping.from_dict({"field_id": 2, "type": "Integer"}, dmn_variable="age")

        assert mapping.dmn_variable == "age"
        assert mapping.form_field_id == "2"
        assert mapping.type == VariableType.INTEGER
        assert mapping.optional_group_name == ""

    def test_field_mapping_radio_alias(self):
        """Test that radio_name is accepted as the group name."""
        mapping = FieldMapping.from_dict(
            {"dmn_variable": "choice", "field_id": "3", "type": "String", "radio_name": "grp"}
        )

        assert mapping.optional_group_name == "grp"
        assert mapping.to_dict()["optional_group_name"] == "grp"

    def test_field_mapping_requires_variable(self):
        """Test that an empty variable name is rejected."""
        with pytest.raises(ValueError, match="dmn_variable"):
            FieldMapping(dmn_variable="", form_field_id="1")

    def test_result_mapping_round_trip(self):
        """Test result mapping serialization."""
        mapping = ResultMapping("approved", "5")
        assert ResultMapping.from_dict(mapping.to_dict()) == mapping


class TestEvaluationConfiguration:
    """Tests for EvaluationConfiguration class."""

    def test_decision_mode_requires_decision_key(self):
        """Test that decision mode rejects a missing decision key."""
        with pytest.raises(ValueError, match="Decision mode requires decision_key"):
            EvaluationConfiguration(mode="decision", base_endpoint="https://x")

    def test_decision_mode_rejects_process_key(self):
        """Test that exactly one key may be set."""
        with pytest.raises(ValueError):
            EvaluationConfiguration(
                mode="decision",
                base_endpoint="https://x",
                decision_key="d",
                process_key="p",
            )

    def test_process_mode_requires_process_key(self):
        """Test that process mode rejects a missing process key."""
        with pytest.raises(ValueError, match="Process mode requires process_key"):
            EvaluationConfiguration(mode="process", base_endpoint="https://x")

    def test_unknown_mode(self):
        """Test that an unknown mode is rejected."""
        with pytest.raises(ValueError):
            EvaluationConfiguration(mode="batch", base_endpoint="https://x", decision_key="d")

    def test_duplicate_field_mapping(self):
        """Test that field mapping variable names must be unique."""
        with pytest.raises(ValueError, match="Duplicate field mapping"):
            EvaluationConfiguration(
                mode="decision",
                base_endpoint="https://x",
                decision_key="d",
                field_mappings=[FieldMapping("age", "1"), FieldMapping("age", "2")],
            )

    def test_from_dict_json_string_mappings(self, decision_config_data):
        """Test parsing mappings stored as JSON strings."""
        config = EvaluationConfiguration.from_dict(decision_config_data)

        assert config.mode == EvaluationMode.DECISION
        assert config.key == "credit-check"
        assert config.field_mappings[0].dmn_variable == "age"
        assert config.field_mappings[0].type == VariableType.INTEGER
        assert config.result_mappings[0].dmn_result_name == "approved"
        assert config.result_mappings[0].form_field_id == "5"
        assert config.form_id == "8"

    def test_from_dict_list_mappings(self):
        """Test parsing mappings given as lists."""
        config = EvaluationConfiguration.from_dict(
            {
                "mode": "Process",
                "base_endpoint": "https://x",
                "process_key": "p",
                "field_mappings": [{"dmn_variable": "a", "field_id": "1"}],
                "result_mappings": [{"dmn_result_name": "r", "field_id": "2"}],
            }
        )

        assert config.mode == EvaluationMode.PROCESS
        assert config.decision_key is None
        assert [m.dmn_variable for m in config.field_mappings] == ["a"]

    def test_from_dict_legacy_use_process(self):
        """Test that use_process selects process mode when mode is absent."""
        config = EvaluationConfiguration.from_dict(
            {
                "dmn_endpoint": "https://x/engine-rest/",
                "use_process": True,
                "process_key": "p",
                "decision_key": "ignored",
            }
        )

        assert config.mode == EvaluationMode.PROCESS
        assert config.process_key == "p"
        assert config.decision_key is None
        assert config.base_endpoint == "https://x/engine-rest/"

    def test_from_dict_invalid_json(self, decision_config_data):
        """Test that unparseable mappings raise InvalidMappingsJSONError."""
        decision_config_data["field_mappings"] = "{not json"

        with pytest.raises(InvalidMappingsJSONError) as exc_info:
            EvaluationConfiguration.from_dict(decision_config_data)

        assert exc_info.value.code == "invalid_mappings"
        assert exc_info.value.http_status == 500

    def test_from_dict_invalid_mapping_type(self, decision_config_data):
        """Test that an unknown variable type is reported as invalid mappings."""
        decision_config_data["field_mappings"] = {"age": {"field_id": "2", "type": "Money"}}

        with pytest.raises(InvalidMappingsJSONError):
            EvaluationConfiguration.from_dict(decision_config_data)

    def test_validate_valid(self, decision_config):
        """Test that a complete configuration has no problems."""
        assert decision_config.validate() == []

    def test_validate_reports_problems(self):
        """Test that validation lists every problem."""
        config = EvaluationConfiguration(mode="decision", base_endpoint="ftp://x", decision_key="bad key!")

        problems = config.validate()

        assert "Configuration Name is required." in problems
        assert "DMN Base Endpoint URL is not valid." in problems
        assert any("Decision key should only contain" in p for p in problems)
        assert "At least one input field mapping is required." in problems
        assert "At least one result field mapping is required." in problems

    def test_json_serialization(self, decision_config):
        """Test JSON round trip."""
        restored = EvaluationConfiguration.from_dict(json.loads(decision_config.to_json()))
        assert restored == decision_config

    def test_yaml_file(self, tmp_path, process_config):
        """Test loading a configuration from a YAML file."""
        path = tmp_path / "config.yaml"
        path.write_text(process_config.to_yaml())

        restored = EvaluationConfiguration.from_file(path)

        assert restored.process_key == "permit-process"
        assert restored.result_mappings == process_config.result_mappings

    def test_unsupported_file(self, tmp_path):
        """Test that unknown file formats are rejected."""
        path = tmp_path / "config.txt"
        path.write_text("mode: decision")

        with pytest.raises(ValueError, match="Unsupported file format"):
            EvaluationConfiguration.from_file(path)


class TestClientSettings:
    """Tests for ClientSettings class."""

    def test_defaults(self):
        """Test default settings."""
        settings = ClientSettings()

        assert settings.api_timeout == 30
        assert settings.connect_timeout == 10
        assert settings.ssl_verify is True
        assert settings.connection_max_age == 300
        assert settings.connection_idle_timeout == 120
        assert settings.process_wait_seconds == 3.0
        assert "finalResult" in settings.result_containers

    @pytest.mark.parametrize("value,expected", [(1, 5), (5, 5), (45, 45), (300, 300), (1000, 300)])
    def test_timeout_clamping(self, value, expected):
        """Test that timeouts are clamped to 5-300 seconds."""
        settings = ClientSettings(api_timeout=value, connect_timeout=value)

        assert settings.api_timeout == expected
        assert settings.connect_timeout == expected

    def test_invalid_values(self):
        """Test validation of pool and wait settings."""
        with pytest.raises(ValueError, match="connection_max_age"):
            ClientSettings(connection_max_age=0)
        with pytest.raises(ValueError, match="process_wait_seconds"):
            ClientSettings(process_wait_seconds=-1)

    def test_from_dict_ignores_unknown_keys(self):
        """Test that unknown keys are ignored and missing keys default."""
        settings = ClientSettings.from_dict({"api_timeout": 60, "unknown": True})

        assert settings.api_timeout == 60
        assert settings.connect_timeout == 10

    def test_yaml_serialization(self):
        """Test YAML round trip."""
        settings = ClientSettings(api_timeout=45, ssl_verify=False)

        restored = ClientSettings.from_dict(yaml.safe_load(settings.to_yaml()))

        assert restored == settings

    def test_json_file(self, tmp_path):
        """Test loading settings from a JSON file."""
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"connect_timeout": 2, "stats_path": "stats.json"}))

        settings = ClientSettings.from_file(path)

        assert settings.connect_timeout == 5
        assert settings.stats_path == "stats.json"
