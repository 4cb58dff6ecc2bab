"""Core module for dmn-form-bridge.

This module provides the configuration schema, error taxonomy, value objects,
configuration store and the evaluation router.
"""

from dmn_form_bridge.core.config import (
    ClientSettings,
    EvaluationConfiguration,
    EvaluationMode,
    FieldMapping,
    ResultMapping,
    VariableType,
)
from dmn_form_bridge.core.errors import (
    ConfigNotFoundError,
    ErrorResponse,
    EvaluationError,
    InvalidMappingsJSONError,
    InvalidTypeError,
    MissingParamsError,
    NetworkError,
    ProcessStartFailedError,
    ServerError,
    VariablesRetrievalFailedError,
)
from dmn_form_bridge.core.models import (
    DecisionVariable,
    EvaluationMethod,
    EvaluationResult,
    ProcessInstance,
    ResultValue,
    VariablesSource,
)
from dmn_form_bridge.core.store import ConfigurationStore, InMemoryConfigurationStore
from dmn_form_bridge.core.router import EvaluationRouter

__all__ = [
    "EvaluationRouter",
    "EvaluationConfiguration",
    "EvaluationMode",
    "ClientSettings",
    "FieldMapping",
    "ResultMapping",
    "VariableType",
    "DecisionVariable",
    "EvaluationMethod",
    "EvaluationResult",
    "ProcessInstance",
    "ResultValue",
    "VariablesSource",
    "ConfigurationStore",
    "InMemoryConfigurationStore",
    "EvaluationError",
    "ErrorResponse",
    "MissingParamsError",
    "ConfigNotFoundError",
    "InvalidMappingsJSONError",
    "InvalidTypeError",
    "ProcessStartFailedError",
    "VariablesRetrievalFailedError",
    "NetworkError",
    "ServerError",
]
