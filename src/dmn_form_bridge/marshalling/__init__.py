"""Marshalling of form input into engine variables."""

from dmn_form_bridge.marshalling.marshaller import VariableMarshaller, is_numeric, sanitize_text

__all__ = ["VariableMarshaller", "is_numeric", "sanitize_text"]
