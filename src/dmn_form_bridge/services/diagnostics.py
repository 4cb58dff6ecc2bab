"""Connectivity checks for decision endpoints."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dmn_form_bridge.core.errors import NetworkError
from dmn_form_bridge.transport import EngineClient, decision_evaluation_url

logger = logging.getLogger(__name__)

TEST_PAYLOAD = {"variables": {"test": {"value": "test", "type": "String"}}}


@dataclass
class ConnectivityReport:
    """Outcome of an endpoint test.

    Attributes:
        success: Whether the endpoint accepted the evaluation.
        message: Human-readable diagnosis.
        endpoint: Evaluation URL that was called.
        http_status: Status code returned, if the engine answered.
        response: Response body (truncated for unexpected statuses).
    """

    success: bool
    message: str
    endpoint: str
    http_status: Optional[int] = None
    response: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {"success": self.success, "message": self.message, "endpoint": self.endpoint}
        if self.http_status is not None:
            result["http_status"] = self.http_status
        if self.response is not None:
            result["response"] = self.response
        return result


class EndpointTester:
    """Probes a decision endpoint with a minimal evaluation request."""

    def __init__(self, client: EngineClient):
        self.client = client

    def test_configuration(self, base_endpoint: str, decision_key: str) -> ConnectivityReport:
        """Check that a base endpoint and decision key accept evaluations.

        Args:
            base_endpoint: Engine base URL in any supported form.
            decision_key: Decision definition key.

        Returns:
            Report describing whether and how the endpoint answered.
        """
        endpoint = decision_evaluation_url(base_endpoint, decision_key)
        logger.info(f"Testing endpoint configuration for decision: {decision_key}")

        try:
            response = self.client.request("POST", endpoint, payload=TEST_PAYLOAD)
        except NetworkError as e:
            return ConnectivityReport(success=False, message=f"Connection failed: {e.message}", endpoint=endpoint)

        return analyze_test_response(response.status_code, response.text, endpoint)


def analyze_test_response(status_code: int, body: str, endpoint: str) -> ConnectivityReport:
    """Map a test evaluation's status code to a diagnosis."""
    if status_code == 200:
        return ConnectivityReport(
            success=True,
            message="Endpoint is working correctly and accepts DMN evaluations.",
            endpoint=endpoint,
            http_status=status_code,
        )
    if status_code == 400:
        return ConnectivityReport(
            success=False,
            message=(
                "Endpoint is reachable but decision key may be incorrect "
                "or decision table has different input requirements."
            ),
            endpoint=endpoint,
            http_status=status_code,
            response=body,
        )
    if status_code == 404:
        return ConnectivityReport(
            success=False,
            message="Decision not found. Please check your decision key.",
            endpoint=endpoint,
            http_status=status_code,
        )
    return ConnectivityReport(
        success=False,
        message=f"Unexpected response code: {status_code}",
        endpoint=endpoint,
        http_status=status_code,
        response=body[:200],
    )
