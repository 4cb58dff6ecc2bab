"""Value objects exchanged between the evaluation services.

An evaluation is a short, synchronous exchange; these models cover what is
sent to the engine and what comes back to the form.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from dmn_form_bridge.core.config import VariableType


class EvaluationMethod(str, Enum):
    """Which protocol produced a result."""

    DECISION = "decision"
    PROCESS = "process_execution"


class VariablesSource(str, Enum):
    """Engine endpoint that supplied process variables."""

    ACTIVE = "active"
    HISTORY = "history"


@dataclass(frozen=True)
class DecisionVariable:
    """A typed variable sent to the engine.

    Attributes:
        name: Variable name.
        value: Converted value, or None when the form left it empty.
        type: Engine type; always present even when value is None.
    """

    name: str
    value: Any
    type: VariableType

    def to_wire(self) -> Dict[str, Any]:
        """Convert to the engine's ``{"value": ..., "type": ...}`` form."""
        return {"value": self.value, "type": self.type.value}


@dataclass(frozen=True)
class ProcessInstance:
    """A process instance as reported by the engine's start call."""

    id: str
    ended: bool = False

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "ProcessInstance":
        return cls(id=str(data["id"]), ended=bool(data.get("ended", False)))


@dataclass
class ResultValue:
    """An extracted engine output bound to its form field."""

    value: Any
    field_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "field_id": self.field_id}


@dataclass
class EvaluationResult:
    """Successful outcome of one evaluation.

    Attributes:
        results: Extracted outputs keyed by engine result name. Mappings that
            could not be resolved are absent.
        execution_time_ms: Wall-clock duration of the engine exchange.
        method: Protocol used.
        variables_source: Endpoint that supplied process variables.
        process_instance_id: Started process instance (process mode only).
        unresolved: Result names that could not be located.
        endpoint: Engine endpoint called first.
    """

    results: Dict[str, ResultValue]
    execution_time_ms: float
    method: EvaluationMethod
    variables_source: Optional[VariablesSource] = None
    process_instance_id: Optional[str] = None
    unresolved: List[str] = field(default_factory=list)
    endpoint: Optional[str] = None
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        result = {
            "success": self.success,
            "results": {name: value.to_dict() for name, value in self.results.items()},
            "execution_time_ms": self.execution_time_ms,
            "method": self.method.value,
        }
        if self.variables_source is not None:
            result["variables_source"] = self.variables_source.value
        if self.process_instance_id is not None:
            result["process_instance_id"] = self.process_instance_id
        return result

    def __repr__(self) -> str:
        return (
            f"EvaluationResult(method={self.method.value!r}, results={len(self.results)}, "
            f"execution_time_ms={self.execution_time_ms:.2f})"
        )
