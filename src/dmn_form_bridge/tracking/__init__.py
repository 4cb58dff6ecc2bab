"""
Tracking module for dmn-form-bridge.

This module remembers which process instance a caller started from a form.
"""

from dmn_form_bridge.tracking.stores import (
    CorrelationStore,
    InMemoryStore,
    JsonFileStore,
    StoreUnavailableError,
)
from dmn_form_bridge.tracking.tracker import (
    ANONYMOUS_TTL_SECONDS,
    SESSION_TTL_SECONDS,
    CallerIdentity,
    ProcessInstanceTracker,
    Tier,
    TierScope,
    default_tiers,
)

__all__ = [
    "ProcessInstanceTracker",
    "CallerIdentity",
    "Tier",
    "TierScope",
    "default_tiers",
    "ANONYMOUS_TTL_SECONDS",
    "SESSION_TTL_SECONDS",
    "CorrelationStore",
    "InMemoryStore",
    "JsonFileStore",
    "StoreUnavailableError",
]
