"""
dmn-form-bridge - Evaluate form submissions against a remote DMN decision/process engine.

Maps form fields to typed decision variables, evaluates them either as a single
decision or as a process execution on an Operaton/Camunda REST engine, and
extracts the configured outputs back into form fields.
"""

__version__ = "0.1.0"

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
from dmn_form_bridge.extraction import ResultExtractor
from dmn_form_bridge.marshalling import VariableMarshaller
from dmn_form_bridge.services import (
    ConnectivityReport,
    DecisionEvaluator,
    DecisionFlow,
    DecisionFlowReader,
    EndpointTester,
    ProcessOrchestrator,
)
from dmn_form_bridge.tracking import (
    CallerIdentity,
    CorrelationStore,
    InMemoryStore,
    JsonFileStore,
    ProcessInstanceTracker,
    StoreUnavailableError,
    Tier,
    TierScope,
)
from dmn_form_bridge.transport import (
    ConnectionPool,
    EngineClient,
    InMemoryStatsStore,
    JsonFileStatsStore,
    StatsStore,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "EvaluationRouter",
    "EvaluationConfiguration",
    "EvaluationMode",
    "ClientSettings",
    "FieldMapping",
    "ResultMapping",
    "VariableType",
    "ConfigurationStore",
    "InMemoryConfigurationStore",
    # Models
    "DecisionVariable",
    "EvaluationMethod",
    "EvaluationResult",
    "ProcessInstance",
    "ResultValue",
    "VariablesSource",
    # Errors
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
    # Marshalling and extraction
    "VariableMarshaller",
    "ResultExtractor",
    # Services
    "DecisionEvaluator",
    "ProcessOrchestrator",
    "DecisionFlowReader",
    "DecisionFlow",
    "EndpointTester",
    "ConnectivityReport",
    # Tracking
    "ProcessInstanceTracker",
    "CallerIdentity",
    "Tier",
    "TierScope",
    "CorrelationStore",
    "InMemoryStore",
    "JsonFileStore",
    "StoreUnavailableError",
    # Transport
    "ConnectionPool",
    "EngineClient",
    "StatsStore",
    "InMemoryStatsStore",
    "JsonFileStatsStore",
]
