"""
Extraction module for dmn-form-bridge.

This module locates configured output fields in engine responses.
"""

from dmn_form_bridge.extraction.extractor import (
    ExtractionOutcome,
    ResultExtractor,
    coerce_numeric_boolean,
    unwrap,
)

__all__ = ["ResultExtractor", "ExtractionOutcome", "coerce_numeric_boolean", "unwrap"]
