"""Error taxonomy and classification of API error payloads."""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Mapping

logger = logging.getLogger(__name__)

UNKNOWN_API_ERROR = "Unknown API error"

_GUIDANCE = {
    "invalid_request_error": (
        "This usually indicates a problem with the format of your request. "
        "Check your API key, model name, and request parameters."
    ),
    "authentication_error": "Please verify your API key is correct and active.",
    "rate_limit_error": (
        "You have exceeded your current rate limit. "
        "Please wait before retrying or contact Anthropic to increase your quota."
    ),
    "permission_error": (
        "Your account does not have permission to use this model or feature. "
        "Contact Anthropic to request access."
    ),
}


class ErrorKind(str, Enum):
    """Outcome classes of a failed call. PARSE_ANOMALY is only ever logged."""

    NOT_CONFIGURED = "not_configured"
    EMPTY_INPUT = "empty_input"
    TRANSPORT = "transport_error"
    HTTP_STATUS = "http_status_error"
    API = "api_error"
    PARSE_ANOMALY = "parse_anomaly"
    CANCELLED = "cancelled"
    PROCESSING = "processing_error"


class ProviderError(Exception):
    """Base for every failure delivered through the output channel."""

    kind: ErrorKind = ErrorKind.PROCESSING

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotConfiguredError(ProviderError):
    kind = ErrorKind.NOT_CONFIGURED

    def __init__(
        self, message: str = "API key not configured. Please set up your API key in settings."
    ) -> None:
        super().__init__(message)


class EmptyInputError(ProviderError):
    kind = ErrorKind.EMPTY_INPUT

    def __init__(self, message: str = "Message content cannot be empty.") -> None:
        super().__init__(message)


class TransportError(ProviderError):
    """Network or connection failure reported by the transport. Never retried here."""

    kind = ErrorKind.TRANSPORT


class ApiError(ProviderError):
    """Structured error payload from the remote service."""

    kind = ErrorKind.API

    def __init__(
        self,
        message: str,
        *,
        error_type: str | None = None,
        code: Any = None,
        param: Any = None,
    ) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.code = code
        self.param = param


class HttpStatusError(ProviderError):
    """Non-2xx response. api_error is set when the body held a structured error."""

    kind = ErrorKind.HTTP_STATUS

    def __init__(self, status_code: int, message: str, api_error: ApiError | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.api_error = api_error


class StreamCancelledError(ProviderError):
    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "Request cancelled.") -> None:
        super().__init__(message)


class StreamProcessingError(ProviderError):
    """Unexpected failure while reading or decoding the response stream."""

    kind = ErrorKind.PROCESSING


def _present(value: Any) -> bool:
    return value is not None and str(value) != ""


def classify_error(payload: Mapping[str, Any]) -> ApiError:
    """Build an ApiError from an object carrying an ``error`` field.

    ``error`` may be a structured object (type, message, optional code and
    param) or a bare string. Anything else yields a generic message.
    """
    error = payload.get("error")
    if isinstance(error, Mapping):
        error_type = error.get("type") or "unknown_error"
        details = error.get("message") or ""
        extra = []
        if _present(error.get("code")):
            extra.append(f"Code: {error['code']}")
        if _present(error.get("param")):
            extra.append(f"Parameter: {error['param']}")
        label = ", ".join([str(error_type)] + extra)
        message = f"API error ({label}): {details}"
        guidance = _GUIDANCE.get(error_type)
        if guidance:
            message += f"\n\n{guidance}"
        return ApiError(
            message,
            error_type=str(error_type),
            code=error.get("code"),
            param=error.get("param"),
        )
    if isinstance(error, str):
        return ApiError(f"API error: {error}")
    return ApiError(UNKNOWN_API_ERROR)


def classify_error_line(line: str) -> ApiError:
    """Classify a raw stream line that signalled an error outside a data frame."""
    try:
        data = json.loads(line)
    except ValueError:
        idx = line.find("error")
        return ApiError(f"API error: {line[idx:] if idx >= 0 else line}")
    if isinstance(data, dict):
        return classify_error(data)
    return ApiError(f"API error: {line}")


def parse_error_body(raw: bytes) -> ApiError | None:
    """Return a classified error if raw is a JSON object with an ``error`` field."""
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace")
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if isinstance(data, dict) and "error" in data:
        return classify_error(data)
    return None
