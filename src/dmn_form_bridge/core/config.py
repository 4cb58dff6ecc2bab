"""Configuration classes for dmn-form-bridge.

This module defines the configuration schema for form-to-engine evaluation:
field and result mappings, the per-form evaluation configuration, and the
client settings shared by all HTTP calls to the engine.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import yaml

from dmn_form_bridge.core.errors import InvalidMappingsJSONError

logger = logging.getLogger(__name__)

MIN_TIMEOUT_SECONDS = 5
MAX_TIMEOUT_SECONDS = 300

DEFAULT_RESULT_CONTAINERS = (
    "finalResult",
    "autoApprovalResult",
    "knockoffsResult",
    "heusdenpasResult",
    "kindpakketResult",
)

_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


class VariableType(str, Enum):
    """Engine variable types a form field can be mapped to."""

    STRING = "String"
    INTEGER = "Integer"
    LONG = "Long"
    DOUBLE = "Double"
    BOOLEAN = "Boolean"
    DATE = "Date"

    @classmethod
    def parse(cls, value: Union[str, "VariableType", None]) -> "VariableType":
        """Parse a type name case-insensitively, defaulting to String."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.STRING
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        raise ValueError(f"Unknown variable type: {value}")


class EvaluationMode(str, Enum):
    """How a configuration is evaluated against the engine."""

    DECISION = "decision"
    PROCESS = "process"


@dataclass
class FieldMapping:
    """Maps a decision variable to the form field supplying its value.

    Attributes:
        dmn_variable: Variable name sent to the engine (also the form data key).
        form_field_id: Identifier of the form field.
        type: Variable type used for conversion.
        optional_group_name: Name of the radio/checkbox group, if any.
    """

    dmn_variable: str
    form_field_id: str
    type: Union[str, VariableType] = VariableType.STRING
    optional_group_name: str = ""

    def __post_init__(self):
        """Validate mapping."""
        if not self.dmn_variable:
            raise ValueError("Field mapping requires a dmn_variable")
        self.type = VariableType.parse(self.type)
        self.form_field_id = str(self.form_field_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert mapping to dictionary."""
        result = {
            "dmn_variable": self.dmn_variable,
            "field_id": self.form_field_id,
            "type": self.type.value,
        }
        if self.optional_group_name:
            result["optional_group_name"] = self.optional_group_name
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any], dmn_variable: Optional[str] = None) -> "FieldMapping":
        """Create mapping from dictionary.

        Accepts both the list form (``dmn_variable`` inside the record) and the
        stored object form, where the variable name is the key.
        """
        return cls(
            dmn_variable=dmn_variable or data.get("dmn_variable", ""),
            form_field_id=data.get("field_id", data.get("form_field_id", "")),
            type=data.get("type", VariableType.STRING),
            optional_group_name=data.get("optional_group_name", data.get("radio_name", "")) or "",
        )


@dataclass
class ResultMapping:
    """Maps an engine output variable to the form field receiving it.

    Attributes:
        dmn_result_name: Output variable name produced by the engine.
        form_field_id: Identifier of the form field to populate.
    """

    dmn_result_name: str
    form_field_id: str

    def __post_init__(self):
        """Validate mapping."""
        if not self.dmn_result_name:
            raise ValueError("Result mapping requires a dmn_result_name")
        self.form_field_id = str(self.form_field_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert mapping to dictionary."""
        return {"dmn_result_name": self.dmn_result_name, "field_id": self.form_field_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], dmn_result_name: Optional[str] = None) -> "ResultMapping":
        """Create mapping from dictionary."""
        return cls(
            dmn_result_name=dmn_result_name or data.get("dmn_result_name", ""),
            form_field_id=data.get("field_id", data.get("form_field_id", "")),
        )


def _load_mappings(raw: Any, label: str) -> List[tuple]:
    """Normalize stored mappings into ``(name, record)`` pairs.

    Raises:
        InvalidMappingsJSONError: If the mappings cannot be interpreted.
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidMappingsJSONError(f"Invalid {label} configuration: {e.msg}")

    if isinstance(raw, dict):
        pairs = []
        for name, record in raw.items():
            if not isinstance(record, dict):
                raise InvalidMappingsJSONError(f"Invalid {label} configuration for {name!r}")
            pairs.append((name, record))
        return pairs
    if isinstance(raw, list):
        if not all(isinstance(record, dict) for record in raw):
            raise InvalidMappingsJSONError(f"Invalid {label} configuration")
        return [(None, record) for record in raw]

    raise InvalidMappingsJSONError(f"Invalid {label} configuration")


@dataclass
class EvaluationConfiguration:
    """Complete evaluation configuration for one form.

    Attributes:
        mode: Decision evaluation or process execution.
        base_endpoint: Base URL of the engine REST API (any variant).
        decision_key: Decision definition key (decision mode only).
        process_key: Process definition key (process mode only).
        field_mappings: Ordered input mappings.
        result_mappings: Ordered output mappings.
        id: Configuration identifier in the configuration store.
        name: Human-readable configuration name.
        form_id: Identifier of the form this configuration belongs to.
    """

    mode: Union[str, EvaluationMode]
    base_endpoint: str
    decision_key: Optional[str] = None
    process_key: Optional[str] = None
    field_mappings: List[FieldMapping] = field(default_factory=list)
    result_mappings: List[ResultMapping] = field(default_factory=list)
    id: Optional[str] = None
    name: str = ""
    form_id: Optional[str] = None

    def __post_init__(self):
        """Validate the mode/key invariant and mapping uniqueness."""
        self.mode = EvaluationMode(self.mode)

        if self.mode == EvaluationMode.DECISION:
            if not self.decision_key or self.process_key:
                raise ValueError("Decision mode requires decision_key and no process_key")
        elif not self.process_key or self.decision_key:
            raise ValueError("Process mode requires process_key and no decision_key")

        seen = set()
        for mapping in self.field_mappings:
            if mapping.dmn_variable in seen:
                raise ValueError(f"Duplicate field mapping: {mapping.dmn_variable}")
            seen.add(mapping.dmn_variable)

        seen = set()
        for mapping in self.result_mappings:
            if mapping.dmn_result_name in seen:
                raise ValueError(f"Duplicate result mapping: {mapping.dmn_result_name}")
            seen.add(mapping.dmn_result_name)

    @property
    def key(self) -> str:
        """Decision or process key, depending on mode."""
        return self.decision_key if self.mode == EvaluationMode.DECISION else self.process_key

    def validate(self) -> List[str]:
        """Check the configuration for problems a user should fix.

        Returns:
            List of human-readable problems (empty when valid).
        """
        errors = []

        if not self.name:
            errors.append("Configuration Name is required.")
        if not self.base_endpoint:
            errors.append("DMN Base Endpoint URL is required.")
        else:
            parsed = urlparse(self.base_endpoint)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append("DMN Base Endpoint URL is not valid.")

        key_label = "Decision key" if self.mode == EvaluationMode.DECISION else "Process key"
        if not _KEY_PATTERN.match((self.key or "").strip()):
            errors.append(f"{key_label} should only contain letters, numbers, hyphens, and underscores.")

        if not self.field_mappings:
            errors.append("At least one input field mapping is required.")
        if not self.result_mappings:
            errors.append("At least one result field mapping is required.")

        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "form_id": self.form_id,
            "mode": self.mode.value,
            "base_endpoint": self.base_endpoint,
            "decision_key": self.decision_key,
            "process_key": self.process_key,
            "field_mappings": [m.to_dict() for m in self.field_mappings],
            "result_mappings": [m.to_dict() for m in self.result_mappings],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvaluationConfiguration":
        """Create configuration from dictionary.

        Mappings may be given as lists, as name-keyed objects, or as JSON
        strings holding either. When ``mode`` is absent the legacy
        ``use_process`` flag selects process mode.

        Raises:
            InvalidMappingsJSONError: If mappings cannot be parsed.
            ValueError: If the mode/key invariant is violated.
        """
        mode = data.get("mode")
        if mode is None:
            mode = EvaluationMode.PROCESS if data.get("use_process") and data.get("process_key") else EvaluationMode.DECISION

        try:
            field_mappings = [
                FieldMapping.from_dict(record, dmn_variable=name)
                for name, record in _load_mappings(data.get("field_mappings"), "field mappings")
            ]
            result_mappings = [
                ResultMapping.from_dict(record, dmn_result_name=name)
                for name, record in _load_mappings(data.get("result_mappings"), "result mappings")
            ]
        except ValueError as e:
            raise InvalidMappingsJSONError(str(e))

        mode = EvaluationMode(mode.lower() if isinstance(mode, str) else mode)
        form_id = data.get("form_id")
        config_id = data.get("id")

        return cls(
            mode=mode,
            base_endpoint=data.get("base_endpoint", data.get("dmn_endpoint", "")),
            decision_key=data.get("decision_key") if mode == EvaluationMode.DECISION else None,
            process_key=data.get("process_key") if mode == EvaluationMode.PROCESS else None,
            field_mappings=field_mappings,
            result_mappings=result_mappings,
            id=str(config_id) if config_id is not None else None,
            name=data.get("name", ""),
            form_id=str(form_id) if form_id is not None else None,
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "EvaluationConfiguration":
        """Load configuration from a JSON or YAML file."""
        return cls.from_dict(load_document(path))

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def to_yaml(self) -> str:
        """Convert configuration to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)


def _clamp_timeout(name: str, value: Any) -> int:
    validated = max(MIN_TIMEOUT_SECONDS, min(MAX_TIMEOUT_SECONDS, int(value)))
    if validated != int(value):
        logger.info(f"{name} adjusted from {value} to {validated} seconds")
    return validated


@dataclass
class ClientSettings:
    """Settings shared by every HTTP call to the engine.

    Attributes:
        api_timeout: Read timeout in seconds (clamped to 5-300).
        connect_timeout: Connect timeout in seconds (clamped to 5-300).
        ssl_verify: Whether TLS certificates are verified.
        connection_max_age: Seconds a pooled connection entry stays valid.
        connection_idle_timeout: Seconds an unused entry stays valid.
        max_connections_per_host: Connection limit per pooled client.
        keepalive_seconds: Keep-alive expiry for idle sockets.
        max_redirects: Redirects followed per request.
        process_wait_seconds: Blocking delay before reading variables of a
            process that has not ended yet.
        result_containers: Variable names searched for aggregated results.
        stats_path: Optional JSON file for durable connection pool counters.
        user_agent: User-Agent header sent to the engine.
    """

    api_timeout: int = 30
    connect_timeout: int = 10
    ssl_verify: bool = True
    connection_max_age: int = 300
    connection_idle_timeout: int = 120
    max_connections_per_host: int = 3
    keepalive_seconds: int = 60
    max_redirects: int = 3
    process_wait_seconds: float = 3.0
    result_containers: List[str] = field(default_factory=lambda: list(DEFAULT_RESULT_CONTAINERS))
    stats_path: Optional[str] = None
    user_agent: str = "dmn-form-bridge/0.1.0; Connection-Pool/1.0"

    def __post_init__(self):
        """Clamp timeouts and validate the remaining values."""
        self.api_timeout = _clamp_timeout("api_timeout", self.api_timeout)
        self.connect_timeout = _clamp_timeout("connect_timeout", self.connect_timeout)

        if self.connection_max_age <= 0:
            raise ValueError("connection_max_age must be positive")
        if self.connection_idle_timeout <= 0:
            raise ValueError("connection_idle_timeout must be positive")
        if self.max_connections_per_host < 1:
            raise ValueError("max_connections_per_host must be at least 1")
        if self.process_wait_seconds < 0:
            raise ValueError("process_wait_seconds cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        return {
            "api_timeout": self.api_timeout,
            "connect_timeout": self.connect_timeout,
            "ssl_verify": self.ssl_verify,
            "connection_max_age": self.connection_max_age,
            "connection_idle_timeout": self.connection_idle_timeout,
            "max_connections_per_host": self.max_connections_per_host,
            "keepalive_seconds": self.keepalive_seconds,
            "max_redirects": self.max_redirects,
            "process_wait_seconds": self.process_wait_seconds,
            "result_containers": self.result_containers,
            "stats_path": self.stats_path,
            "user_agent": self.user_agent,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientSettings":
        """Create settings from dictionary, ignoring unknown keys."""
        defaults = cls()
        return cls(
            api_timeout=data.get("api_timeout", defaults.api_timeout),
            connect_timeout=data.get("connect_timeout", defaults.connect_timeout),
            ssl_verify=data.get("ssl_verify", defaults.ssl_verify),
            connection_max_age=data.get("connection_max_age", defaults.connection_max_age),
            connection_idle_timeout=data.get("connection_idle_timeout", defaults.connection_idle_timeout),
            max_connections_per_host=data.get("max_connections_per_host", defaults.max_connections_per_host),
            keepalive_seconds=data.get("keepalive_seconds", defaults.keepalive_seconds),
            max_redirects=data.get("max_redirects", defaults.max_redirects),
            process_wait_seconds=data.get("process_wait_seconds", defaults.process_wait_seconds),
            result_containers=data.get("result_containers", defaults.result_containers),
            stats_path=data.get("stats_path", defaults.stats_path),
            user_agent=data.get("user_agent", defaults.user_agent),
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ClientSettings":
        """Load settings from a JSON or YAML file."""
        return cls.from_dict(load_document(path))

    def to_json(self, indent: int = 2) -> str:
        """Convert settings to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def to_yaml(self) -> str:
        """Convert settings to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)


def load_document(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a JSON or YAML document.

    Args:
        path: Path to configuration file (.json or .yaml/.yml).

    Returns:
        Parsed document.

    Raises:
        ValueError: If file format is unsupported.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    with open(path, "r", encoding="utf-8") as f:
        if suffix == ".json":
            return json.load(f)
        elif suffix in (".yaml", ".yml"):
            return yaml.safe_load(f) or {}
        raise ValueError(f"Unsupported file format: {suffix}. Use .json, .yaml, or .yml")
