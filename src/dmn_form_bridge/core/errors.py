"""Error taxonomy for dmn-form-bridge.

Every failure an evaluation can surface to its caller is an ``EvaluationError``
carrying a stable machine-readable code, a human-readable message and the HTTP
status a web layer should answer with. Services raise these; only the
``EvaluationRouter`` converts them into ``ErrorResponse`` objects.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class EvaluationError(Exception):
    """Base class for all structured evaluation errors.

    Attributes:
        code: Stable error code (e.g. ``"invalid_type"``).
        message: Human-readable description.
        http_status: HTTP status code to report to the caller.
        details: Optional extra data (never returned to callers by default).
    """

    code = "evaluation_error"
    default_status = 500

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.http_status = http_status if http_status is not None else self.default_status
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to the structured ``{code, message, http_status}`` form."""
        return {
            "code": self.code,
            "message": self.message,
            "http_status": self.http_status,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}, http_status={self.http_status})"


class MissingParamsError(EvaluationError):
    """Configuration or form data was not supplied."""

    code = "missing_params"
    default_status = 400


class ConfigNotFoundError(EvaluationError):
    """No configuration exists for the requested id."""

    code = "config_not_found"
    default_status = 404


class InvalidMappingsJSONError(EvaluationError):
    """Stored field or result mappings could not be parsed."""

    code = "invalid_mappings"
    default_status = 500


class InvalidTypeError(EvaluationError):
    """A form value could not be converted to its mapped variable type."""

    code = "invalid_type"
    default_status = 400

    def __init__(self, variable_name: str, expected: str):
        super().__init__(
            f"Value for {variable_name} must be {expected}",
            details={"variable": variable_name, "expected": expected},
        )
        self.variable_name = variable_name


class ProcessStartFailedError(EvaluationError):
    """The engine accepted the start call but returned no process instance id."""

    code = "process_start_failed"


class VariablesRetrievalFailedError(EvaluationError):
    """Neither the active nor the history endpoint produced process variables."""

    code = "variables_retrieval_failed"


class NetworkError(EvaluationError):
    """Transport failure or error response from the remote engine.

    ``http_status`` mirrors the upstream status when the engine answered with
    an error code, and is 500 for transport failures and unreadable bodies.
    """

    code = "network_error"

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, http_status=upstream_status, details=details)
        self.upstream_status = upstream_status


class ServerError(EvaluationError):
    """Catch-all for unexpected failures; never exposes internal detail."""

    code = "server_error"

    def __init__(self, message: str = "An error occurred during evaluation"):
        super().__init__(message)


@dataclass
class ErrorResponse:
    """Structured error returned to callers of the router.

    Attributes:
        code: Stable error code.
        message: Human-readable message.
        http_status: HTTP status code.
        details: Diagnostic details (kept out of ``to_dict``).
    """

    code: str
    message: str
    http_status: int
    details: Dict[str, Any] = field(default_factory=dict)

    success = False

    @classmethod
    def from_error(cls, error: EvaluationError) -> "ErrorResponse":
        """Create a response from an ``EvaluationError``."""
        return cls(
            code=error.code,
            message=error.message,
            http_status=error.http_status,
            details=dict(error.details),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the ``{code, message, http_status}`` wire form."""
        return {
            "code": self.code,
            "message": self.message,
            "http_status": self.http_status,
        }
