"""Pytest fixtures for dmn-form-bridge tests.

This module provides a scripted engine behind ``httpx.MockTransport``, a
controllable clock and sample configurations.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from dmn_form_bridge.core.config import ClientSettings, EvaluationConfiguration
from dmn_form_bridge.core.router import EvaluationRouter
from dmn_form_bridge.core.store import InMemoryConfigurationStore
from dmn_form_bridge.extraction import ResultExtractor
from dmn_form_bridge.tracking import ProcessInstanceTracker
from dmn_form_bridge.transport import ConnectionPool, EngineClient

BASE_ENDPOINT = "https://engine.example.com"
ENGINE_REST = f"{BASE_ENDPOINT}/engine-rest"


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockEngine:
    """Scripted engine answering by HTTP method and URL path.

    Unscripted requests get a 404 with an engine-style error body.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Union[httpx.Response, Callable, Exception]] = {}
        self.requests: List[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def add(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        status: int = 200,
        text: Optional[str] = None,
        exc: Optional[Exception] = None,
    ) -> None:
        key = (method.upper(), path)
        if exc is not None:
            self.routes[key] = exc
        elif text is not None:
            self.routes[key] = httpx.Response(status, text=text)
        else:
            self.routes[key] = httpx.Response(status, json=json_body)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(
                404,
                json={"type": "RestException", "message": f"No route for {request.url.path}"},
            )
        if isinstance(route, Exception):
            raise route
        if callable(route) and not isinstance(route, httpx.Response):
            return route(request)
        return httpx.Response(route.status_code, content=route.content, headers=route.headers)

    def requests_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def sleeps() -> List[float]:
    """Collect delays requested by the process orchestrator."""
    return []


@pytest.fixture
def engine() -> MockEngine:
    """Create an engine with no scripted routes."""
    return MockEngine()


@pytest.fixture
def settings() -> ClientSettings:
    """Create client settings with default timing."""
    return ClientSettings()


@pytest.fixture
def pool(settings: ClientSettings, engine: MockEngine, clock: FakeClock) -> ConnectionPool:
    """Create a connection pool routed to the mock engine."""
    return ConnectionPool(settings, transport=engine.transport, clock=clock)


@pytest.fixture
def client(pool: ConnectionPool) -> EngineClient:
    """Create an engine client over the mock pool."""
    return EngineClient(pool)


@pytest.fixture
def extractor() -> ResultExtractor:
    """Create a result extractor with default containers."""
    return ResultExtractor()


@pytest.fixture
def tracker() -> ProcessInstanceTracker:
    """Create a tracker with the default in-memory tiers."""
    return ProcessInstanceTracker()


@pytest.fixture
def decision_config_data() -> Dict[str, Any]:
    """Stored decision configuration record with JSON-encoded mappings."""
    return {
        "id": "1",
        "name": "Credit check",
        "form_id": "8",
        "mode": "decision",
        "base_endpoint": BASE_ENDPOINT,
        "decision_key": "credit-check",
        "field_mappings": json.dumps({"age": {"field_id": "2", "type": "Integer"}}),
        "result_mappings": json.dumps({"approved": {"field_id": "5"}}),
    }


@pytest.fixture
def decision_config(decision_config_data: Dict[str, Any]) -> EvaluationConfiguration:
    """Create a decision-mode configuration mapping age to approved."""
    return EvaluationConfiguration.from_dict(decision_config_data)


@pytest.fixture
def process_config_data() -> Dict[str, Any]:
    """Stored process configuration record."""
    return {
        "id": "2",
        "name": "Permit process",
        "form_id": "9",
        "mode": "process",
        "base_endpoint": f"{ENGINE_REST}/",
        "process_key": "permit-process",
        "field_mappings": {"age": {"field_id": "2", "type": "Integer"}},
        "result_mappings": {"outcome": {"field_id": "7"}},
    }


@pytest.fixture
def process_config(process_config_data: Dict[str, Any]) -> EvaluationConfiguration:
    """Create a process-mode configuration mapping age to outcome."""
    return EvaluationConfiguration.from_dict(process_config_data)


@pytest.fixture
def store(decision_config_data, process_config_data) -> InMemoryConfigurationStore:
    """Create a configuration store holding both sample configurations."""
    return InMemoryConfigurationStore([decision_config_data, process_config_data])


@pytest.fixture
def router(settings, store, tracker, engine, clock, sleeps) -> EvaluationRouter:
    """Create a fully wired router talking to the mock engine."""
    return EvaluationRouter.from_settings(
        settings,
        store=store,
        tracker=tracker,
        transport=engine.transport,
        sleep=sleeps.append,
        clock=clock,
    )
