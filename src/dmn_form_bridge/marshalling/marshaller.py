"""Conversion of raw form input into typed decision variables.

Form data arrives as strings (or the occasional native value from JSON). Each
field mapping fixes the engine type of its variable; this module converts the
raw value accordingly and fails fast on the first value that cannot be
converted, so no partial variable set ever reaches the engine.
"""

import logging
import math
import re
from typing import Any, Dict, Iterable, Mapping

from dmn_form_bridge.core.config import FieldMapping, VariableType
from dmn_form_bridge.core.errors import InvalidTypeError
from dmn_form_bridge.core.models import DecisionVariable

logger = logging.getLogger(__name__)

# Signed decimal with optional fraction and exponent, surrounding whitespace allowed.
_NUMERIC_PATTERN = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")
_INTEGER_PATTERN = re.compile(r"^\s*[+-]?\d+\s*$")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")

_TRUE_STRINGS = {"true", "1"}
_FALSE_STRINGS = {"false", "0"}
_PERMISSIVE_TRUE = {"yes", "on"}
_PERMISSIVE_FALSE = {"no", "off"}

_NUMERIC_TYPES = (VariableType.INTEGER, VariableType.LONG, VariableType.DOUBLE)


def is_numeric(value: Any) -> bool:
    """Check whether a value is a number or a numeric string."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == value and value not in (float("inf"), float("-inf"))
    if isinstance(value, str):
        return bool(_NUMERIC_PATTERN.match(value))
    return False


def sanitize_text(value: Any) -> str:
    """Strip control characters, collapse whitespace and trim."""
    text = _CONTROL_CHARS.sub("", str(value))
    return _WHITESPACE.sub(" ", text).strip()


class VariableMarshaller:
    """Converts form data into engine variables according to field mappings.

    Examples:
        >>> marshaller = VariableMarshaller()
        >>> mappings = [FieldMapping("age", "2", VariableType.INTEGER)]
        >>> marshaller.marshal(mappings, {"age": "42"})["age"].value
        42
    """

    def marshal(
        self,
        field_mappings: Iterable[FieldMapping],
        form_data: Mapping[str, Any],
    ) -> Dict[str, DecisionVariable]:
        """Convert form data into typed variables.

        Args:
            field_mappings: Ordered field mappings of the configuration.
            form_data: Raw form values keyed by decision variable name.

        Returns:
            Variables keyed by name, in mapping order.

        Raises:
            InvalidTypeError: On the first value that cannot be converted.
        """
        variables: Dict[str, DecisionVariable] = {}

        for mapping in field_mappings:
            name = mapping.dmn_variable
            raw = form_data.get(name)

            if raw is None or raw == "" or raw == "null":
                variables[name] = DecisionVariable(name=name, value=None, type=mapping.type)
                continue

            value = self.convert(raw, mapping.type, name)
            variables[name] = DecisionVariable(name=name, value=value, type=mapping.type)

        logger.debug(f"Marshalled {len(variables)} input variables")
        return variables

    def convert(self, value: Any, var_type: VariableType, variable_name: str) -> Any:
        """Convert a single raw value to the given type.

        Raises:
            InvalidTypeError: If the value does not fit the type.
        """
        if var_type in _NUMERIC_TYPES:
            if not is_numeric(value):
                raise InvalidTypeError(variable_name, "numeric")
            if var_type != VariableType.DOUBLE and (
                isinstance(value, int) or (isinstance(value, str) and _INTEGER_PATTERN.match(value))
            ):
                return int(value)
            try:
                number = float(value)
            except OverflowError as e:
                raise InvalidTypeError(variable_name, "numeric") from e
            # Exponents such as "1e400" parse to infinity, which JSON cannot carry.
            if not math.isfinite(number):
                raise InvalidTypeError(variable_name, "numeric")
            if var_type == VariableType.DOUBLE:
                return number
            return int(number)

        if var_type == VariableType.BOOLEAN:
            return self._convert_boolean(value, variable_name)

        if isinstance(value, (list, tuple)):
            return ",".join(sanitize_text(item) for item in value)
        return sanitize_text(value)

    def _convert_boolean(self, value: Any, variable_name: str) -> bool:
        if not isinstance(value, str):
            return bool(value)

        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        if lowered in _PERMISSIVE_TRUE:
            return True
        if lowered in _PERMISSIVE_FALSE:
            return False
        raise InvalidTypeError(variable_name, "boolean")

    @staticmethod
    def to_wire(variables: Mapping[str, DecisionVariable]) -> Dict[str, Dict[str, Any]]:
        """Build the ``variables`` body expected by the engine."""
        return {name: variable.to_wire() for name, variable in variables.items()}
