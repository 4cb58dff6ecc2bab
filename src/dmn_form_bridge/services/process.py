"""Process execution: start an instance, then read back its variables.

The engine may still be running the process when the start call returns, and
once it has ended its runtime variables are gone. Variables are therefore read
from the active instance first and from history as a fallback:

1. POST the variables to the process start endpoint.
2. If the instance has not ended, wait once (``process_wait_seconds``).
3. GET the active instance variables.
4. Otherwise GET the historic variable instances.

Future improvement: replace the single fixed wait with bounded exponential
backoff.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from dmn_form_bridge.core.config import ClientSettings, EvaluationConfiguration
from dmn_form_bridge.core.errors import (
    NetworkError,
    ProcessStartFailedError,
    VariablesRetrievalFailedError,
)
from dmn_form_bridge.core.models import (
    DecisionVariable,
    EvaluationMethod,
    EvaluationResult,
    ProcessInstance,
    VariablesSource,
)
from dmn_form_bridge.extraction import ResultExtractor
from dmn_form_bridge.marshalling import VariableMarshaller
from dmn_form_bridge.tracking import CallerIdentity, ProcessInstanceTracker
from dmn_form_bridge.transport import (
    EngineClient,
    active_variables_url,
    history_variables_url,
    process_start_url,
)

logger = logging.getLogger(__name__)


def history_to_variable_map(history: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Turn historic variable instances into a name-keyed wrapper map.

    Example:
        >>> history_to_variable_map([{"name": "outcome", "value": "OK", "type": "String"}])
        {'outcome': {'value': 'OK', 'type': 'String'}}
    """
    variables = {}
    for record in history:
        if isinstance(record, Mapping) and record.get("name"):
            variables[record["name"]] = {"value": record.get("value"), "type": record.get("type")}
    logger.debug(f"Transformed {len(variables)} historical variables")
    return variables


class ProcessOrchestrator:
    """Runs the start/wait/retrieve protocol against a process definition.

    Attributes:
        client: Engine client used for every call.
        extractor: Result extractor applied to the variable map.
        settings: Client settings (supplies ``process_wait_seconds``).
        tracker: Optional tracker recording started instances per form.
    """

    def __init__(
        self,
        client: EngineClient,
        extractor: ResultExtractor,
        settings: Optional[ClientSettings] = None,
        tracker: Optional[ProcessInstanceTracker] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.extractor = extractor
        self.settings = settings or ClientSettings()
        self.tracker = tracker
        self._sleep = sleep

    def start(self, config: EvaluationConfiguration, variables: Mapping[str, DecisionVariable]) -> ProcessInstance:
        """Start a process instance.

        Raises:
            NetworkError: On transport failure or error status.
            ProcessStartFailedError: If the engine returned no instance id.
        """
        endpoint = process_start_url(config.base_endpoint, config.process_key)
        logger.info(f"Starting process {config.process_key} at {endpoint}")

        response = self.client.post_json(endpoint, {"variables": VariableMarshaller.to_wire(variables)})
        if not isinstance(response, Mapping) or not response.get("id"):
            raise ProcessStartFailedError(
                "Process started but no instance ID returned",
                details={"endpoint": endpoint},
            )

        instance = ProcessInstance.from_response(response)
        logger.info(f"Process started with ID: {instance.id}, ended: {instance.ended}")
        return instance

    def retrieve_variables(self, base_endpoint: str, instance: ProcessInstance) -> Tuple[Dict[str, Any], VariablesSource]:
        """Read the instance's variables, active first, history second.

        Returns:
            Tuple of (variable map, ``VariablesSource``).

        Raises:
            VariablesRetrievalFailedError: If neither endpoint yields variables.
        """
        if not instance.ended and self.settings.process_wait_seconds > 0:
            logger.debug(f"Process {instance.id} still running, waiting {self.settings.process_wait_seconds}s")
            self._sleep(self.settings.process_wait_seconds)

        try:
            active = self.client.get_json(active_variables_url(base_endpoint, instance.id))
            if isinstance(active, Mapping) and active:
                return dict(active), VariablesSource.ACTIVE
            logger.debug(f"No active variables for process {instance.id}")
        except NetworkError as e:
            logger.warning(f"Active variables unavailable for process {instance.id}: {e.message}")

        history_error = None
        try:
            history = self.client.get_json(
                history_variables_url(base_endpoint),
                params={"processInstanceId": instance.id},
            )
            if isinstance(history, list) and history:
                variables = history_to_variable_map(history)
                if variables:
                    return variables, VariablesSource.HISTORY
        except NetworkError as e:
            history_error = e.message
            logger.warning(f"Historical variables unavailable for process {instance.id}: {e.message}")

        message = f"Failed to get process variables for instance {instance.id}"
        if history_error:
            message = f"{message}: {history_error}"
        raise VariablesRetrievalFailedError(message, details={"process_instance_id": instance.id})

    def run(
        self,
        config: EvaluationConfiguration,
        variables: Mapping[str, DecisionVariable],
        caller: Optional[CallerIdentity] = None,
    ) -> EvaluationResult:
        """Execute the full protocol and extract results.

        Args:
            config: Process-mode configuration.
            variables: Marshalled input variables.
            caller: Caller the started instance is tracked for.

        Returns:
            Evaluation result with ``method="process_execution"``.
        """
        start_time = time.time()
        instance = self.start(config, variables)
        variable_map, source = self.retrieve_variables(config.base_endpoint, instance)
        execution_time_ms = (time.time() - start_time) * 1000

        logger.info(f"Retrieved {len(variable_map)} variables for process {instance.id} from {source.value}")
        outcome = self.extractor.extract(config.result_mappings, variable_map)

        if self.tracker is not None and config.form_id:
            try:
                self.tracker.store_process_instance(config.form_id, instance.id, caller)
            except Exception as e:
                logger.error(f"Failed to track process instance {instance.id}: {e}", exc_info=True)

        return EvaluationResult(
            results=outcome.results,
            execution_time_ms=execution_time_ms,
            method=EvaluationMethod.PROCESS,
            variables_source=source,
            process_instance_id=instance.id,
            unresolved=outcome.unresolved,
            endpoint=process_start_url(config.base_endpoint, config.process_key),
        )
