"""
Services module for dmn-form-bridge.

This module provides the engine-facing services: decision evaluation, process
execution, decision flow retrieval and endpoint diagnostics.
"""

from dmn_form_bridge.services.decision import DecisionEvaluator
from dmn_form_bridge.services.decision_flow import (
    DecisionFlow,
    DecisionFlowReader,
    filter_decision_instances,
)
from dmn_form_bridge.services.diagnostics import ConnectivityReport, EndpointTester
from dmn_form_bridge.services.process import ProcessOrchestrator, history_to_variable_map

__all__ = [
    "DecisionEvaluator",
    "ProcessOrchestrator",
    "history_to_variable_map",
    "DecisionFlowReader",
    "DecisionFlow",
    "filter_decision_instances",
    "EndpointTester",
    "ConnectivityReport",
]
