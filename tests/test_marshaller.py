"""Tests for VariableMarshaller.

Tests cover:
- Numeric detection and conversion for Integer, Long and Double
- Boolean parsing, strict and permissive
- String sanitization and list joining
- Empty values and fail-fast behavior
"""

import pytest

from dmn_form_bridge.core.config import FieldMapping, VariableType
from dmn_form_bridge.core.errors import InvalidTypeError
from dmn_form_bridge.marshalling import VariableMarshaller, is_numeric, sanitize_text


@pytest.fixture
def marshaller() -> VariableMarshaller:
    return VariableMarshaller()


class TestIsNumeric:
    """Tests for is_numeric helper."""

    @pytest.mark.parametrize("value", ["42", "-7", "+3", "3.14", ".5", "1e3", "2.5E-2", " 12 ", 5, 2.5])
    def test_numeric(self, value):
        """Test values accepted as numeric."""
        assert is_numeric(value)

    @pytest.mark.parametrize("value", ["abc", "", "12a", "1.2.3", "nan", "inf", True, None, [1], float("nan")])
    def test_not_numeric(self, value):
        """Test values rejected as numeric."""
        assert not is_numeric(value)


class TestNumericConversion:
    """Tests for Integer, Long and Double conversion."""

    def test_integer(self, marshaller):
        """Test numeric strings convert to int."""
        assert marshaller.convert("42", VariableType.INTEGER, "age") == 42
        assert marshaller.convert(" -3 ", VariableType.INTEGER, "age") == -3

    def test_integer_truncates_decimals(self, marshaller):
        """Test that Integer truncates a decimal string."""
        assert marshaller.convert("42.9", VariableType.INTEGER, "age") == 42

    def test_long_like_integer(self, marshaller):
        """Test that Long converts like Integer."""
        assert marshaller.convert("12345678901", VariableType.LONG, "id") == 12345678901

    def test_double(self, marshaller):
        """Test numeric strings convert to float."""
        value = marshaller.convert("3.5", VariableType.DOUBLE, "income")
        assert value == 3.5
        assert isinstance(value, float)
        assert isinstance(marshaller.convert("4", VariableType.DOUBLE, "income"), float)

    @pytest.mark.parametrize("var_type", [VariableType.INTEGER, VariableType.LONG, VariableType.DOUBLE])
    def test_non_numeric_raises(self, marshaller, var_type):
        """Test that non-numeric values raise InvalidTypeError."""
        with pytest.raises(InvalidTypeError) as exc_info:
            marshaller.convert("forty", var_type, "age")

        assert exc_info.value.code == "invalid_type"
        assert exc_info.value.http_status == 400
        assert "age" in exc_info.value.message

    @pytest.mark.parametrize("var_type", [VariableType.INTEGER, VariableType.LONG, VariableType.DOUBLE])
    @pytest.mark.parametrize("value", ["1e400", "-1e400"])
    def test_overflowing_exponent_raises(self, marshaller, var_type, value):
        """Test that values overflowing to infinity are rejected as non-numeric."""
        with pytest.raises(InvalidTypeError) as exc_info:
            marshaller.convert(value, var_type, "age")

        assert exc_info.value.code == "invalid_type"

    def test_huge_integer_as_double_raises(self, marshaller):
        """Test that an integer too large for a float is rejected for Double."""
        with pytest.raises(InvalidTypeError):
            marshaller.convert(10 ** 400, VariableType.DOUBLE, "income")


class TestBooleanConversion:
    """Tests for Boolean conversion."""

    @pytest.mark.parametrize("value", ["true", "TRUE", "True", "1", "yes", "on"])
    def test_true_values(self, marshaller, value):
        """Test strings parsed as True."""
        assert marshaller.convert(value, VariableType.BOOLEAN, "flag") is True

    @pytest.mark.parametrize("value", ["false", "FALSE", "0", "no", "off"])
    def test_false_values(self, marshaller, value):
        """Test strings parsed as False."""
        assert marshaller.convert(value, VariableType.BOOLEAN, "flag") is False

    def test_native_values(self, marshaller):
        """Test native bools and ints pass through bool()."""
        assert marshaller.convert(True, VariableType.BOOLEAN, "flag") is True
        assert marshaller.convert(0, VariableType.BOOLEAN, "flag") is False

    def test_invalid_boolean(self, marshaller):
        """Test that unrecognized strings raise InvalidTypeError."""
        with pytest.raises(InvalidTypeError, match="flag must be boolean"):
            marshaller.convert("maybe", VariableType.BOOLEAN, "flag")


class TestStringConversion:
    """Tests for String and Date conversion."""

    def test_sanitize(self):
        """Test control characters are removed and whitespace collapsed."""
        assert sanitize_text("  hello\x00\x07   world \n") == "hello world"

    def test_list_joined(self, marshaller):
        """Test that list values are sanitized and joined with commas."""
        assert marshaller.convert(["a ", " b"], VariableType.STRING, "choices") == "a,b"

    def test_date_like_string(self, marshaller):
        """Test that Date values are passed through as strings."""
        assert marshaller.convert("2024-01-15", VariableType.DATE, "start") == "2024-01-15"

    def test_numbers_become_text(self, marshaller):
        """Test that String mappings stringify native values."""
        assert marshaller.convert(42, VariableType.STRING, "code") == "42"


class TestMarshal:
    """Tests for marshal over a set of field mappings."""

    def test_marshal_in_mapping_order(self, marshaller):
        """Test typed variables are produced in mapping order."""
        mappings = [
            FieldMapping("name", "1", VariableType.STRING),
            FieldMapping("age", "2", VariableType.INTEGER),
            FieldMapping("member", "3", VariableType.BOOLEAN),
        ]

        variables = marshaller.marshal(mappings, {"age": "42", "name": " Ann ", "member": "true"})

        assert list(variables) == ["name", "age", "member"]
        assert variables["age"].value == 42
        assert variables["name"].value == "Ann"
        assert variables["member"].value is True

    @pytest.mark.parametrize("raw", [None, "", "null"])
    def test_empty_values_are_null_with_type(self, marshaller, raw):
        """Test that absent, empty and "null" values become typed nulls."""
        mappings = [FieldMapping("age", "2", VariableType.INTEGER)]

        variables = marshaller.marshal(mappings, {"age": raw})

        assert variables["age"].value is None
        assert variables["age"].to_wire() == {"value": None, "type": "Integer"}

    def test_missing_field_is_null(self, marshaller):
        """Test that a field absent from the form data becomes a typed null."""
        variables = marshaller.marshal([FieldMapping("age", "2", VariableType.INTEGER)], {})
        assert variables["age"].value is None

    def test_fail_fast(self, marshaller):
        """Test that one invalid value aborts the whole marshal."""
        mappings = [
            FieldMapping("age", "2", VariableType.INTEGER),
            FieldMapping("member", "3", VariableType.BOOLEAN),
        ]

        with pytest.raises(InvalidTypeError):
            marshaller.marshal(mappings, {"age": "abc", "member": "maybe"})

    def test_to_wire(self, marshaller):
        """Test the engine variables body."""
        variables = marshaller.marshal([FieldMapping("age", "2", VariableType.INTEGER)], {"age": "42"})

        assert VariableMarshaller.to_wire(variables) == {"age": {"value": 42, "type": "Integer"}}
