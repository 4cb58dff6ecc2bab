"""Evaluation entry point.

``EvaluationRouter`` is the only place where evaluation failures become
structured responses: services raise ``EvaluationError`` subclasses, the router
returns them as ``ErrorResponse`` and turns anything unexpected into a generic
``server_error``.
"""

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional, Union

import httpx

from dmn_form_bridge.core.config import ClientSettings, EvaluationConfiguration, EvaluationMode
from dmn_form_bridge.core.errors import (
    ConfigNotFoundError,
    ErrorResponse,
    EvaluationError,
    MissingParamsError,
    ServerError,
)
from dmn_form_bridge.core.models import EvaluationResult
from dmn_form_bridge.core.store import ConfigurationStore
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
from dmn_form_bridge.tracking import CallerIdentity, ProcessInstanceTracker
from dmn_form_bridge.transport import ConnectionPool, EngineClient, StatsStore

logger = logging.getLogger(__name__)

EvaluationOutcome = Union[EvaluationResult, ErrorResponse]


class EvaluationRouter:
    """Dispatches evaluations to the decision or process protocol.

    The router composes independently usable services; ``from_settings`` wires
    a complete set sharing one connection pool.

    Attributes:
        decision_evaluator: Service for decision-mode configurations.
        process_orchestrator: Service for process-mode configurations.
        marshaller: Converts form data into typed variables.
        store: Configuration store used by ``evaluate_request``.
        tracker: Process instance tracker.
        pool: Connection pool shared by the services.
        flow_reader: Decision history reader.
        tester: Endpoint connectivity tester.

    Example:
        >>> router = EvaluationRouter.from_settings(ClientSettings())
        >>> outcome = router.evaluate(config, {"age": "42"})
        >>> outcome.to_dict()["success"]
        True
    """

    def __init__(
        self,
        decision_evaluator: DecisionEvaluator,
        process_orchestrator: ProcessOrchestrator,
        marshaller: Optional[VariableMarshaller] = None,
        store: Optional[ConfigurationStore] = None,
        tracker: Optional[ProcessInstanceTracker] = None,
        pool: Optional[ConnectionPool] = None,
        flow_reader: Optional[DecisionFlowReader] = None,
        tester: Optional[EndpointTester] = None,
    ):
        self.decision_evaluator = decision_evaluator
        self.process_orchestrator = process_orchestrator
        self.marshaller = marshaller or VariableMarshaller()
        self.store = store
        self.tracker = tracker if tracker is not None else process_orchestrator.tracker
        self.pool = pool
        self.flow_reader = flow_reader
        self.tester = tester

    @classmethod
    def from_settings(
        cls,
        settings: Optional[ClientSettings] = None,
        store: Optional[ConfigurationStore] = None,
        tracker: Optional[ProcessInstanceTracker] = None,
        stats: Optional[StatsStore] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> "EvaluationRouter":
        """Wire a router and all services from client settings.

        Args:
            settings: Client settings (defaults when omitted).
            store: Configuration store for ``evaluate_request``.
            tracker: Process instance tracker (default tiers when omitted).
            stats: Connection pool counter store.
            transport: HTTP transport for every pooled client.
            sleep: Blocking delay used while a process completes.
            clock: Monotonic clock for connection pool expiry.
        """
        settings = settings or ClientSettings()
        tracker = tracker if tracker is not None else ProcessInstanceTracker()
        pool = ConnectionPool(settings, stats=stats, transport=transport, clock=clock)
        client = EngineClient(pool)
        extractor = ResultExtractor(settings.result_containers)

        return cls(
            decision_evaluator=DecisionEvaluator(client, extractor),
            process_orchestrator=ProcessOrchestrator(client, extractor, settings, tracker=tracker, sleep=sleep),
            store=store,
            tracker=tracker,
            pool=pool,
            flow_reader=DecisionFlowReader(client, tracker),
            tester=EndpointTester(client),
        )

    def evaluate(
        self,
        config: Optional[EvaluationConfiguration],
        form_data: Optional[Mapping[str, Any]],
        caller: Optional[CallerIdentity] = None,
    ) -> EvaluationOutcome:
        """Evaluate form data against a configuration.

        Args:
            config: Evaluation configuration.
            form_data: Raw form values keyed by decision variable name.
            caller: Caller on whose behalf a started process is tracked.

        Returns:
            ``EvaluationResult`` on success, ``ErrorResponse`` otherwise.
        """
        try:
            return self._evaluate(config, form_data, caller)
        except EvaluationError as e:
            logger.warning(f"Evaluation failed: {e.code}: {e.message}", extra={"http_status": e.http_status})
            return ErrorResponse.from_error(e)
        except Exception as e:
            logger.error(f"Unexpected evaluation error: {e}", exc_info=True)
            return ErrorResponse.from_error(ServerError())

    def _evaluate(
        self,
        config: Optional[EvaluationConfiguration],
        form_data: Optional[Mapping[str, Any]],
        caller: Optional[CallerIdentity],
    ) -> EvaluationResult:
        if config is None or not form_data:
            raise MissingParamsError("Configuration and form data are required")
        if not isinstance(form_data, Mapping):
            raise MissingParamsError("Form data must be an object keyed by variable name")

        variables = self.marshaller.marshal(config.field_mappings, form_data)

        if config.mode == EvaluationMode.PROCESS:
            result = self.process_orchestrator.run(config, variables, caller)
        elif config.mode == EvaluationMode.DECISION:
            result = self.decision_evaluator.evaluate(config, variables)
        else:
            raise EvaluationError(f"Unknown evaluation mode: {config.mode}", http_status=400)

        if result.unresolved:
            logger.warning(
                f"Result mappings not found in engine output: {', '.join(result.unresolved)}",
                extra={"config_id": config.id, "method": result.method.value},
            )

        logger.info(f"Evaluation completed via {result.method.value} in {result.execution_time_ms:.2f}ms")
        return result

    def evaluate_request(self, params: Mapping[str, Any], caller: Optional[CallerIdentity] = None) -> EvaluationOutcome:
        """Evaluate a request carrying ``config_id`` and ``form_data``.

        Returns:
            ``EvaluationResult`` on success, ``ErrorResponse`` otherwise.
        """
        try:
            config_id = params.get("config_id") if params else None
            form_data = params.get("form_data") if params else None
            if not config_id or not form_data:
                raise MissingParamsError("Configuration ID and form data are required")

            config = self.store.get_configuration(str(config_id)) if self.store is not None else None
            if config is None:
                raise ConfigNotFoundError("Configuration not found")
        except EvaluationError as e:
            logger.warning(f"Evaluation request rejected: {e.code}: {e.message}")
            return ErrorResponse.from_error(e)
        except Exception as e:
            logger.error(f"Failed to load configuration: {e}", exc_info=True)
            return ErrorResponse.from_error(ServerError())

        return self.evaluate(config, form_data, caller)

    def get_tracked_process_instance(self, form_id: str, caller: Optional[CallerIdentity]) -> Optional[str]:
        """Get the process instance id tracked for a form and caller."""
        if self.tracker is None:
            return None
        return self.tracker.get_tracked_process_instance(form_id, caller)

    def store_process_instance(self, form_id: str, process_instance_id: str, caller: Optional[CallerIdentity]) -> bool:
        """Track a process instance id for a form and caller."""
        if self.tracker is None:
            return False
        return self.tracker.store_process_instance(form_id, process_instance_id, caller)

    def get_decision_flow(
        self,
        config: EvaluationConfiguration,
        caller: Optional[CallerIdentity],
    ) -> Optional[DecisionFlow]:
        """Get the decision history of the caller's tracked process instance.

        Raises:
            NetworkError: If the history query fails.
        """
        if self.flow_reader is None:
            return None
        return self.flow_reader.get_tracked_decision_flow(config, caller)

    def test_configuration(self, base_endpoint: str, decision_key: str) -> ConnectivityReport:
        """Probe a decision endpoint."""
        if self.tester is None:
            self.tester = EndpointTester(self.decision_evaluator.client)
        return self.tester.test_configuration(base_endpoint, decision_key)

    def update_settings(self, settings: ClientSettings) -> None:
        """Apply new client settings and drop every pooled connection.

        Args:
            settings: New client settings.
        """
        logger.info("Updating client settings")
        self.process_orchestrator.settings = settings
        self.decision_evaluator.extractor.containers = tuple(settings.result_containers)
        self.process_orchestrator.extractor.containers = tuple(settings.result_containers)
        if self.pool is not None:
            self.pool.reconfigure(settings)
        logger.info("Client settings updated successfully")

    def get_connection_stats(self) -> Dict[str, Any]:
        """Get connection pool statistics."""
        if self.pool is None:
            return {"stats": {}, "active_connections": 0, "pool_details": {}}
        return self.pool.get_stats()
