"""Engine REST endpoint construction.

Stored base endpoints come in many shapes: bare hosts, ``.../engine-rest/``,
or full evaluation URLs pasted from the engine's documentation. All of them
normalize to the same ``.../engine-rest`` root, and normalizing twice is a
no-op.
"""

import re
from urllib.parse import quote, urlsplit, urlunsplit

ENGINE_REST_SUFFIX = "/engine-rest"

_STRIP_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"/decision-definition.*$",
        r"/process-definition.*$",
        r"/process-instance.*$",
        r"/history.*$",
        r"/version.*$",
    )
)


def engine_rest_base(base_endpoint: str) -> str:
    """Normalize any engine URL variant to its ``/engine-rest`` root.

    Examples:
        >>> engine_rest_base("https://x/")
        'https://x/engine-rest'
        >>> engine_rest_base("https://x/engine-rest/decision-definition/key/k/evaluate")
        'https://x/engine-rest'
    """
    parts = urlsplit((base_endpoint or "").strip())
    path = parts.path.rstrip("/")
    for pattern in _STRIP_PATTERNS:
        path = pattern.sub("", path)
    path = path.rstrip("/")

    if not path.endswith(ENGINE_REST_SUFFIX):
        path += ENGINE_REST_SUFFIX
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def decision_evaluation_url(base_endpoint: str, decision_key: str) -> str:
    """URL evaluating a decision definition by key."""
    return f"{engine_rest_base(base_endpoint)}/decision-definition/key/{_segment(decision_key)}/evaluate"


def process_start_url(base_endpoint: str, process_key: str) -> str:
    """URL starting a process definition by key."""
    return f"{engine_rest_base(base_endpoint)}/process-definition/key/{_segment(process_key)}/start"


def active_variables_url(base_endpoint: str, process_instance_id: str) -> str:
    """URL listing the variables of a running process instance."""
    return f"{engine_rest_base(base_endpoint)}/process-instance/{_segment(process_instance_id)}/variables"


def history_variables_url(base_endpoint: str) -> str:
    """URL of the historic variable instance query (filtered by query params)."""
    return f"{engine_rest_base(base_endpoint)}/history/variable-instance"


def history_decisions_url(base_endpoint: str) -> str:
    """URL of the historic decision instance query (filtered by query params)."""
    return f"{engine_rest_base(base_endpoint)}/history/decision-instance"
