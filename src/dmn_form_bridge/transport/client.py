"""JSON requests to the engine through the connection pool.

Every engine call goes through ``EngineClient`` so that any failure to get a
usable JSON answer surfaces as ``NetworkError`` with the upstream message
intact.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

import httpx

from dmn_form_bridge.core.errors import NetworkError
from dmn_form_bridge.transport.pool import ConnectionPool

logger = logging.getLogger(__name__)

_GENERIC_STATUS_MESSAGES = {
    400: "Bad request - invalid parameters",
    401: "Unauthorized - authentication required",
    403: "Forbidden - access denied",
    404: "Not found - endpoint or resource does not exist",
    405: "Method not allowed",
    408: "Request timeout",
    429: "Too many requests - rate limit exceeded",
    500: "Internal server error",
    502: "Bad gateway - upstream server error",
    503: "Service unavailable",
    504: "Gateway timeout",
}

_TAGS = re.compile(r"<[^>]+>")


def parse_api_error_message(body: str, status_code: int) -> str:
    """Extract a readable error message from an engine error response.

    Args:
        body: Raw response body.
        status_code: HTTP status code.

    Returns:
        Message from the engine's JSON error fields, or a generic message.
    """
    try:
        parsed = json.loads(body) if body else None
    except ValueError:
        parsed = None

    if isinstance(parsed, dict):
        if parsed.get("type") and parsed.get("message"):
            return f"{parsed['type']}: {parsed['message']}"
        for key in ("message", "error", "detail", "description"):
            if parsed.get(key):
                return str(parsed[key])

    if status_code in _GENERIC_STATUS_MESSAGES:
        return _GENERIC_STATUS_MESSAGES[status_code]

    snippet = _TAGS.sub("", body or "")[:100] or "Unknown error"
    return f"HTTP error {status_code}: {snippet}"


class EngineClient:
    """Issues JSON requests to the engine using pooled clients.

    Attributes:
        pool: Connection pool supplying one client per host.
    """

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    def request(
        self,
        method: str,
        url: str,
        payload: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request and return the raw response.

        Raises:
            NetworkError: On transport failure (connection, timeout, TLS).
        """
        headers = {"Cache-Control": "no-cache"} if method in ("POST", "PUT") else None

        logger.debug(f"Making {method} request to: {url}")
        try:
            with self.pool.lease(url) as client:
                return client.request(method, url, json=payload, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"HTTP request to {url} failed: {type(e).__name__}: {e}")
            raise NetworkError(
                f"Failed to connect to engine: {e}",
                details={"endpoint": url, "error_type": type(e).__name__},
            ) from e

    def request_json(
        self,
        method: str,
        url: str,
        payload: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send a request and decode the JSON body.

        Returns:
            Decoded body, or None for an empty body.

        Raises:
            NetworkError: On transport failure, status >= 400 or invalid JSON.
        """
        response = self.request(method, url, payload=payload, params=params)
        body = response.text

        logger.debug(f"Response code: {response.status_code}, body: {body[:500]}")

        if response.status_code >= 400:
            raise NetworkError(
                parse_api_error_message(body, response.status_code),
                upstream_status=response.status_code,
                details={"endpoint": url, "response_body": body[:500]},
            )

        if not body.strip():
            return None
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(
                f"Invalid JSON response from engine: {e}",
                details={"endpoint": url, "response_body": body[:500]},
            ) from e

    def post_json(self, url: str, payload: Any) -> Any:
        """POST a JSON payload and decode the JSON response."""
        return self.request_json("POST", url, payload=payload)

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a URL and decode the JSON response."""
        return self.request_json("GET", url, params=params)
