"""Single-call evaluation against a decision definition."""

import logging
import time
from typing import Mapping

from dmn_form_bridge.core.config import EvaluationConfiguration
from dmn_form_bridge.core.models import DecisionVariable, EvaluationMethod, EvaluationResult
from dmn_form_bridge.extraction import ResultExtractor
from dmn_form_bridge.marshalling import VariableMarshaller
from dmn_form_bridge.transport import EngineClient, decision_evaluation_url

logger = logging.getLogger(__name__)


class DecisionEvaluator:
    """Evaluates a decision table with one POST and extracts the first record.

    Attributes:
        client: Engine client used for the request.
        extractor: Result extractor applied to the response.
    """

    def __init__(self, client: EngineClient, extractor: ResultExtractor):
        self.client = client
        self.extractor = extractor

    def evaluate(
        self,
        config: EvaluationConfiguration,
        variables: Mapping[str, DecisionVariable],
    ) -> EvaluationResult:
        """Evaluate a decision.

        Args:
            config: Decision-mode configuration.
            variables: Marshalled input variables.

        Returns:
            Evaluation result with ``method="decision"``. An empty or non-list
            response yields no results but still succeeds.

        Raises:
            NetworkError: On transport failure, error status or invalid JSON.
        """
        endpoint = decision_evaluation_url(config.base_endpoint, config.decision_key)
        logger.info(f"Evaluating decision {config.decision_key} at {endpoint}")

        start_time = time.time()
        response = self.client.post_json(endpoint, {"variables": VariableMarshaller.to_wire(variables)})
        execution_time_ms = (time.time() - start_time) * 1000

        if isinstance(response, list) and response:
            first = response[0]
        else:
            logger.warning(f"Decision {config.decision_key} returned no result records")
            first = {}

        outcome = self.extractor.extract(config.result_mappings, first)

        return EvaluationResult(
            results=outcome.results,
            execution_time_ms=execution_time_ms,
            method=EvaluationMethod.DECISION,
            unresolved=outcome.unresolved,
            endpoint=endpoint,
        )
