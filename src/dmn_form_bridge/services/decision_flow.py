"""Decision history of a process instance.

A process typically evaluates several decision tables on its way to a result.
The engine's history API lists every evaluation; this module fetches that list
and reduces it to the evaluations worth showing next to the form result.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from dmn_form_bridge.core.config import EvaluationConfiguration
from dmn_form_bridge.tracking import CallerIdentity, ProcessInstanceTracker
from dmn_form_bridge.transport import EngineClient, history_decisions_url

logger = logging.getLogger(__name__)

FINAL_COMPILATION_ACTIVITY = "Activity_FinalResultCompilation"

_TIME_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%S.%f", "%Y-%m-%dT%H:%M:%S")


def parse_evaluation_time(value: Any) -> float:
    """Parse an engine timestamp to epoch seconds (0.0 when unparseable)."""
    if not value:
        return 0.0
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(str(value), fmt).timestamp()
        except ValueError:
            continue
    logger.debug(f"Unparseable evaluation time: {value}")
    return 0.0


def filter_decision_instances(instances: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Reduce a decision history to the evaluations that produced the result.

    If any instance ran in the final result compilation activity, only those
    are kept. Otherwise the latest evaluation per decision definition key is
    kept. Either way the result is sorted by evaluation time, oldest first.
    """
    filtered = [i for i in instances if i.get("activityId") == FINAL_COMPILATION_ACTIVITY]

    if not filtered:
        latest: Dict[str, Dict[str, Any]] = {}
        for instance in instances:
            key = instance.get("decisionDefinitionKey")
            if key is None or "evaluationTime" not in instance:
                continue
            current = latest.get(key)
            if current is None or parse_evaluation_time(instance["evaluationTime"]) > parse_evaluation_time(
                current["evaluationTime"]
            ):
                latest[key] = instance
        filtered = list(latest.values())

    return sorted(filtered, key=lambda i: parse_evaluation_time(i.get("evaluationTime")))


@dataclass
class DecisionFlow:
    """Filtered decision history of one process instance.

    Attributes:
        process_instance_id: Process instance the history belongs to.
        instances: Filtered decision instances, oldest first.
        total_instances: Number of instances before filtering.
    """

    process_instance_id: str
    instances: List[Dict[str, Any]] = field(default_factory=list)
    total_instances: int = 0

    @property
    def decision_keys(self) -> List[str]:
        """Distinct decision definition keys in evaluation order."""
        keys = []
        for instance in self.instances:
            key = instance.get("decisionDefinitionKey")
            if key and key not in keys:
                keys.append(key)
        return keys

    def to_dict(self) -> Dict[str, Any]:
        return {
            "process_instance_id": self.process_instance_id,
            "instances": self.instances,
            "total_instances": self.total_instances,
            "decision_keys": self.decision_keys,
        }


class DecisionFlowReader:
    """Fetches and filters decision histories.

    Attributes:
        client: Engine client used for history queries.
        tracker: Optional tracker used to resolve a caller's process instance.
    """

    def __init__(self, client: EngineClient, tracker: Optional[ProcessInstanceTracker] = None):
        self.client = client
        self.tracker = tracker

    def get_decision_flow(self, config: EvaluationConfiguration, process_instance_id: str) -> DecisionFlow:
        """Fetch the decision history of a process instance.

        Raises:
            NetworkError: On transport failure, error status or invalid JSON.
        """
        url = history_decisions_url(config.base_endpoint)
        logger.info(f"Getting decision flow for process {process_instance_id} from {url}")

        data = self.client.get_json(
            url,
            params={
                "processInstanceId": process_instance_id,
                "includeInputs": "true",
                "includeOutputs": "true",
            },
        )
        instances = [i for i in data if isinstance(i, dict)] if isinstance(data, list) else []

        return DecisionFlow(
            process_instance_id=process_instance_id,
            instances=filter_decision_instances(instances),
            total_instances=len(instances),
        )

    def get_tracked_decision_flow(
        self,
        config: EvaluationConfiguration,
        caller: Optional[CallerIdentity],
    ) -> Optional[DecisionFlow]:
        """Fetch the decision history of the caller's tracked process instance.

        Returns:
            Decision flow, or None when no instance is tracked for the form.
        """
        if self.tracker is None or not config.form_id:
            return None

        process_instance_id = self.tracker.get_tracked_process_instance(config.form_id, caller)
        if not process_instance_id:
            logger.debug(f"No tracked process instance for form {config.form_id}")
            return None
        return self.get_decision_flow(config, process_instance_id)
