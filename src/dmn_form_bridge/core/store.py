"""Configuration lookup by id.

The router resolves ``config_id`` request parameters through a
``ConfigurationStore``. ``InMemoryConfigurationStore`` keeps configurations in a
dictionary and can be filled from a JSON or YAML document of the form::

    configurations:
      - id: "1"
        name: Credit check
        mode: decision
        ...
"""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from dmn_form_bridge.core.config import EvaluationConfiguration, load_document

logger = logging.getLogger(__name__)


class ConfigurationStore(ABC):
    """Abstract base class for configuration stores."""

    @abstractmethod
    def get_configuration(self, config_id: str) -> Optional[EvaluationConfiguration]:
        """Return the configuration with ``config_id``, or None if unknown.

        Raises:
            InvalidMappingsJSONError: If the stored mappings cannot be parsed.
        """
        pass

    def get_configuration_by_form(self, form_id: str) -> Optional[EvaluationConfiguration]:
        """Return the configuration attached to ``form_id``, or None."""
        return None


class InMemoryConfigurationStore(ConfigurationStore):
    """Dictionary-backed configuration store.

    Raw records are kept as given and parsed on lookup, so a record with broken
    mappings only fails the evaluations that use it.
    """

    def __init__(self, configurations: Optional[Iterable[Union[EvaluationConfiguration, Dict]]] = None):
        self._lock = threading.Lock()
        self._records: Dict[str, Union[EvaluationConfiguration, Dict]] = {}
        for configuration in configurations or []:
            self.add(configuration)

    def add(self, configuration: Union[EvaluationConfiguration, Dict]) -> str:
        """Add or replace a configuration.

        Args:
            configuration: Parsed configuration or raw record; either must
                carry an ``id``.

        Returns:
            The configuration id.

        Raises:
            ValueError: If the configuration has no id.
        """
        if isinstance(configuration, EvaluationConfiguration):
            config_id = configuration.id
        else:
            config_id = configuration.get("id")
        if config_id is None or str(config_id) == "":
            raise ValueError("Configuration requires an id")

        with self._lock:
            self._records[str(config_id)] = configuration
        logger.debug(f"Stored configuration {config_id}")
        return str(config_id)

    def remove(self, config_id: str) -> bool:
        """Remove a configuration. Returns True if it existed."""
        with self._lock:
            return self._records.pop(str(config_id), None) is not None

    def get_configuration(self, config_id: str) -> Optional[EvaluationConfiguration]:
        with self._lock:
            record = self._records.get(str(config_id))
        if record is None:
            return None
        return self._parse(record)

    def get_configuration_by_form(self, form_id: str) -> Optional[EvaluationConfiguration]:
        with self._lock:
            records = list(self._records.values())
        for record in records:
            record_form = record.form_id if isinstance(record, EvaluationConfiguration) else record.get("form_id")
            if record_form is not None and str(record_form) == str(form_id):
                return self._parse(record)
        return None

    @staticmethod
    def _parse(record: Union[EvaluationConfiguration, Dict]) -> EvaluationConfiguration:
        if isinstance(record, EvaluationConfiguration):
            return record
        return EvaluationConfiguration.from_dict(record)

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def load_file(self, path: Union[str, Path]) -> int:
        """Add every configuration in a JSON or YAML document.

        Returns:
            Number of configurations loaded.
        """
        data = load_document(path)
        records = data.get("configurations", [])
        for record in records:
            self.add(record)
        logger.info(f"Loaded {len(records)} configurations from {path}")
        return len(records)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "InMemoryConfigurationStore":
        """Create a store from a JSON or YAML document."""
        store = cls()
        store.load_file(path)
        return store
