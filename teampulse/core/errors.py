"""
Domain Errors
Typed exceptions raised by the normalization and analysis stages

- NormalizationError and subclasses: fatal, surfaced to the caller
- AnalysisRequestError: the LLM endpoint could not be used
- AnalysisParseError: internal only, always recovered with a fallback result
"""
from typing import Any, Dict, Optional


class TeamPulseError(Exception):
    """Base class for every error raised by the pipeline."""

    code = "TEAMPULSE_ERROR"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


# ============================================================================
# NORMALIZATION
# ============================================================================

class NormalizationError(TeamPulseError):
    code = "NORMALIZATION_ERROR"


class UnsupportedServiceError(NormalizationError):
    """A service (or service/kind combination) has no adapter."""

    code = "UNSUPPORTED_SERVICE"

    def __init__(self, service: Any, kind: Optional[str] = None):
        self.service = service
        self.kind = kind
        if kind:
            message = f"Unsupported service for {kind} normalization: {service!r}"
        else:
            message = f"Unknown service: {service!r}"
        super().__init__(message, {"service": str(service), "kind": kind})


class InvalidTimestampError(NormalizationError):
    """A timestamp was present in the payload but could not be parsed."""

    code = "INVALID_TIMESTAMP"

    def __init__(self, value: Any, field: str = "timestamp"):
        self.value = value
        self.field = field
        super().__init__(f"Cannot parse {field}: {value!r}", {"field": field, "value": repr(value)})


class MalformedPayloadError(NormalizationError):
    """A required field is missing or has the wrong type."""

    code = "MALFORMED_PAYLOAD"


# ============================================================================
# ANALYSIS
# ============================================================================

class AnalysisRequestError(TeamPulseError):
    """
    The LLM endpoint was unreachable or rejected the request.

    retryable=True marks transient failures (timeouts, connection drops, rate
    limits, 5xx) that the orchestrator may retry and then recover from with a
    fallback result. Non-retryable errors propagate to the caller.
    """

    code = "ANALYSIS_REQUEST_ERROR"

    def __init__(self, message: str, retryable: bool = False, status_code: Optional[int] = None):
        self.retryable = retryable
        self.status_code = status_code
        super().__init__(message, {"retryable": retryable, "status_code": status_code})


class AnalysisParseError(TeamPulseError):
    """The LLM response is not JSON or does not match the expected shape."""

    code = "ANALYSIS_PARSE_ERROR"
