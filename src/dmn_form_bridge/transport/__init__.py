"""HTTP transport to the decision/process engine.

Connection reuse, JSON request handling and engine REST endpoint construction.
"""

from dmn_form_bridge.transport.client import EngineClient, parse_api_error_message
from dmn_form_bridge.transport.endpoints import (
    active_variables_url,
    decision_evaluation_url,
    engine_rest_base,
    history_decisions_url,
    history_variables_url,
    process_start_url,
)
from dmn_form_bridge.transport.pool import (
    ConnectionCacheEntry,
    ConnectionPool,
    HttpClientOptions,
    InMemoryStatsStore,
    JsonFileStatsStore,
    StatsStore,
)

__all__ = [
    "EngineClient",
    "parse_api_error_message",
    "ConnectionPool",
    "ConnectionCacheEntry",
    "HttpClientOptions",
    "StatsStore",
    "InMemoryStatsStore",
    "JsonFileStatsStore",
    "engine_rest_base",
    "decision_evaluation_url",
    "process_start_url",
    "active_variables_url",
    "history_variables_url",
    "history_decisions_url",
]
