"""
Result extraction from engine responses and process variables.

Engine output rarely sits where the form expects it. A decision evaluation
returns a flat record of wrapped values, while a process that calls several
decision tables tends to collect their outputs into aggregate variables holding
lists of records. The extractor searches with ordered strategies and stops at
the first hit:

1. Direct: the field is a top-level key (``{"value": X}`` wrappers unwrapped).
2. Known containers: an allow-list of aggregate variables whose value is a
   record or a list of records.
3. Exhaustive: any top-level variable whose value is a list of records.

A null value is treated like a missing one, so the search continues past it.
A field found nowhere is absent, never an error.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from dmn_form_bridge.core.config import DEFAULT_RESULT_CONTAINERS, ResultMapping
from dmn_form_bridge.core.models import ResultValue

logger = logging.getLogger(__name__)

_MISSING = object()


def unwrap(raw: Any) -> Any:
    """Return ``X`` for a ``{"value": X}`` wrapper, the raw value otherwise."""
    if isinstance(raw, Mapping) and "value" in raw:
        return raw["value"]
    return raw


def coerce_numeric_boolean(value: Any) -> Any:
    """Map exactly ``1``/``"1"`` to True and ``0``/``"0"`` to False.

    Engines often emit decision-table booleans as 0/1. Other numbers (including
    floats and bools) are returned unchanged.
    """
    if type(value) is int and value in (0, 1):
        return value == 1
    if isinstance(value, str) and value in ("0", "1"):
        return value == "1"
    return value


def _first_record(value: Any) -> Optional[Mapping]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)) and value:
        first = value[0]
        if isinstance(first, Mapping):
            return first
    return None


@dataclass
class ExtractionOutcome:
    """Results resolved for a set of result mappings.

    Attributes:
        results: Resolved values keyed by result name.
        unresolved: Result names found nowhere in the tree.
    """

    results: Dict[str, ResultValue] = field(default_factory=dict)
    unresolved: List[str] = field(default_factory=list)


class ResultExtractor:
    """Locates configured output fields in a response or variable tree.

    Attributes:
        containers: Names of aggregate variables searched by strategy 2.

    Examples:
        >>> extractor = ResultExtractor()
        >>> extractor.find("approved", {"approved": {"value": 1, "type": "Integer"}})
        True
        >>> extractor.find("score", {"finalResult": {"value": [{"score": 7}]}})
        7
    """

    def __init__(self, containers: Optional[Iterable[str]] = None):
        self.containers: Tuple[str, ...] = tuple(containers) if containers is not None else DEFAULT_RESULT_CONTAINERS

    def find(self, field_name: str, tree: Any) -> Any:
        """Find a field and apply numeric-boolean coercion.

        Args:
            field_name: Output variable to look for.
            tree: Response record or name-keyed variable map.

        Returns:
            Located value, or None when no strategy matches.
        """
        if not isinstance(tree, Mapping):
            return None

        raw = self._locate(field_name, tree)
        if raw is _MISSING or raw is None:
            return None
        return coerce_numeric_boolean(raw)

    def _locate(self, field_name: str, tree: Mapping) -> Any:
        # Strategy 1: direct access
        if field_name in tree:
            value = unwrap(tree[field_name])
            if value is not None:
                logger.debug(f"Found {field_name} as direct variable")
                return value
            logger.debug(f"Direct variable {field_name} is null, searching containers")

        # Strategy 2: known result containers
        for container in self.containers:
            if container not in tree:
                continue
            data = unwrap(tree[container])
            record = _first_record(data)
            if record is not None:
                if record.get(field_name) is not None:
                    logger.debug(f"Found {field_name} in first record of {container}")
                    return record[field_name]
            elif isinstance(data, Mapping) and data.get(field_name) is not None:
                logger.debug(f"Found {field_name} in container {container}")
                return data[field_name]

        # Strategy 3: every list-of-records variable
        for name, raw in tree.items():
            record = _first_record(unwrap(raw))
            if record is not None and record.get(field_name) is not None:
                logger.debug(f"Found {field_name} in first record of {name}")
                return record[field_name]

        return _MISSING

    def extract(self, result_mappings: Iterable[ResultMapping], tree: Any) -> ExtractionOutcome:
        """Resolve every result mapping against a tree.

        Args:
            result_mappings: Configured output mappings.
            tree: Response record or variable map.

        Returns:
            Resolved results and the names that could not be found.
        """
        outcome = ExtractionOutcome()
        for mapping in result_mappings:
            value = self.find(mapping.dmn_result_name, tree)
            if value is None:
                logger.debug(f"No result found for {mapping.dmn_result_name}")
                outcome.unresolved.append(mapping.dmn_result_name)
                continue
            outcome.results[mapping.dmn_result_name] = ResultValue(value=value, field_id=mapping.form_field_id)
        return outcome
