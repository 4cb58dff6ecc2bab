"""Tests for InMemoryConfigurationStore.

Tests cover:
- Adding and resolving configurations
- Lookup by form
- Loading JSON and YAML documents
"""

import json

import pytest
import yaml

from dmn_form_bridge.core.config import EvaluationMode
from dmn_form_bridge.core.errors import InvalidMappingsJSONError
from dmn_form_bridge.core.store import InMemoryConfigurationStore


class TestInMemoryConfigurationStore:
    """Tests for InMemoryConfigurationStore."""

    def test_get_configuration(self, store):
        """Test resolving stored records by id."""
        config = store.get_configuration("1")

        assert config.mode == EvaluationMode.DECISION
        assert config.decision_key == "credit-check"
        assert store.get_configuration("2").mode == EvaluationMode.PROCESS

    def test_unknown_id(self, store):
        """Test that unknown ids resolve to None."""
        assert store.get_configuration("99") is None

    def test_by_form(self, store):
        """Test lookup by form id."""
        assert store.get_configuration_by_form("9").id == "2"
        assert store.get_configuration_by_form("404") is None

    def test_add_parsed_configuration(self, decision_config):
        """Test adding an already parsed configuration."""
        store = InMemoryConfigurationStore()
        assert store.add(decision_config) == "1"
        assert store.get_configuration("1") is decision_config

    def test_add_requires_id(self):
        """Test that records without id are rejected."""
        with pytest.raises(ValueError, match="requires an id"):
            InMemoryConfigurationStore().add({"mode": "decision"})

    def test_broken_record_fails_on_lookup(self, decision_config_data):
        """Test that broken mappings surface when the record is used."""
        decision_config_data["result_mappings"] = "[oops"
        store = InMemoryConfigurationStore([decision_config_data])

        with pytest.raises(InvalidMappingsJSONError):
            store.get_configuration("1")

    def test_remove(self, store):
        """Test removing configurations."""
        assert store.remove("1") is True
        assert store.remove("1") is False
        assert store.ids() == ["2"]

    def test_load_json_file(self, tmp_path, decision_config_data):
        """Test loading a JSON configurations document."""
        path = tmp_path / "configs.json"
        path.write_text(json.dumps({"configurations": [decision_config_data]}))

        store = InMemoryConfigurationStore.from_file(path)

        assert len(store) == 1
        assert store.get_configuration("1").result_mappings[0].form_field_id == "5"

    def test_load_yaml_file(self, tmp_path, process_config_data):
        """Test loading a YAML configurations document."""
        path = tmp_path / "configs.yml"
        path.write_text(yaml.safe_dump({"configurations": [process_config_data]}))

        store = InMemoryConfigurationStore()

        assert store.load_file(path) == 1
        assert store.get_configuration("2").process_key == "permit-process"
