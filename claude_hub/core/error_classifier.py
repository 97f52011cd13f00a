"""
Error classification for Claude Hub

Maps HTTP responses, transport failures and streamed ``error`` events onto
the closed set of error kinds in ``core.exceptions``.
"""

import builtins
import email.utils
import json
import logging
import math
import time
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import httpx

from .exceptions import (
    APIError,
    AuthenticationError,
    ClaudeHubError,
    InvalidRequestError,
    NetworkError,
    ProtocolError,
    RateLimitError,
    ServerError,
    TimeoutError,
)

# Set up logger
logger = logging.getLogger(__name__)

REQUEST_ID_HEADERS = ("request-id", "x-request-id")

# Status code the API uses for overload; classified as ServerError
OVERLOADED_STATUS = 529


def classify_response(
    status: int,
    headers: Optional[Mapping[str, str]] = None,
    body: Union[bytes, str, None] = None,
) -> APIError:
    """
    Classify a non-2xx HTTP response

    Args:
        status: HTTP status code
        headers: Response headers
        body: Raw response body

    Returns:
        The typed error for this response (not raised)
    """
    headers = _lower_keys(headers)
    text = _body_text(body)
    error_type, message = _error_fields(text)
    request_id = extract_request_id(headers)
    message = message or text or f"HTTP {status}"
    common = {
        "status": status,
        "body": text or None,
        "request_id": request_id,
        "error_type": error_type,
    }

    if status in (401, 403):
        error: APIError = AuthenticationError(message, **common)
    elif status == 429:
        error = RateLimitError(message, retry_after=parse_retry_after(headers, text), **common)
    elif status == 408:
        error = TimeoutError(message, status=status, body=text or None, request_id=request_id)
    elif 400 <= status < 500:
        error = InvalidRequestError(message, **common)
    else:
        error = ServerError(message, **common)

    logger.debug(f"Classified HTTP {status} as {error.kind.value} (request_id={request_id})")
    return error


def classify_exception(exc: BaseException, timeout: Optional[float] = None) -> APIError:
    """
    Classify a failure raised by the transport before a response arrived

    Args:
        exc: The exception raised by the HTTP client
        timeout: Configured timeout in seconds, for reporting

    Returns:
        TimeoutError for deadline failures, NetworkError for everything else
    """
    if isinstance(exc, APIError):
        return exc
    if isinstance(exc, (httpx.TimeoutException, builtins.TimeoutError)):
        return TimeoutError(f"{type(exc).__name__}: {exc}", timeout=timeout)
    if isinstance(exc, (httpx.TransportError, OSError)):
        return NetworkError(f"Connection failed: {type(exc).__name__}: {exc}", cause=exc)
    return NetworkError(f"Transport failure: {type(exc).__name__}: {exc}", cause=exc)


def classify_stream_error(error: Any) -> APIError:
    """
    Classify an ``error`` event received in the middle of a stream

    Args:
        error: The event's ``error`` object (model or dict with type/message)

    Returns:
        The typed error for this event (not raised)
    """
    if isinstance(error, dict):
        error_type = error.get("type") or "api_error"
        message = error.get("message") or error_type
    else:
        error_type = getattr(error, "type", None) or "api_error"
        message = getattr(error, "message", None) or error_type
    body = json.dumps({"type": "error", "error": {"type": error_type, "message": message}})

    if error_type == "overloaded_error":
        return ServerError(message, status=OVERLOADED_STATUS, body=body, error_type=error_type)
    if error_type == "api_error":
        return ServerError(message, status=500, body=body, error_type=error_type)
    if error_type == "rate_limit_error":
        return RateLimitError(message, status=None, body=body, error_type=error_type)
    if error_type in ("authentication_error", "permission_error"):
        return AuthenticationError(message, body=body, error_type=error_type)
    if error_type in ("invalid_request_error", "not_found_error", "request_too_large"):
        return InvalidRequestError(message, body=body, error_type=error_type)
    if error_type == "timeout_error":
        return TimeoutError(message, body=body)
    return ProtocolError(f"Unrecognised stream error '{error_type}': {message}", body=body, error_type=error_type)


def is_retryable(error: BaseException) -> bool:
    """True for RateLimit, ServerError, Network and Timeout errors"""
    return isinstance(error, ClaudeHubError) and error.retryable


def user_message(error: BaseException) -> str:
    if isinstance(error, ClaudeHubError):
        return error.user_message()
    return str(error)


def debug_info(error: BaseException) -> str:
    if isinstance(error, ClaudeHubError):
        return error.debug_info()
    return f"{type(error).__name__}: {error!r}"


def extract_request_id(headers: Optional[Mapping[str, str]]) -> Optional[str]:
    headers = _lower_keys(headers)
    for name in REQUEST_ID_HEADERS:
        if headers.get(name):
            return headers[name]
    return None


def parse_retry_after(
    headers: Optional[Mapping[str, str]],
    body: Optional[str] = None,
) -> Optional[float]:
    """
    Read the server-requested wait, in seconds

    Checks ``retry-after-ms``, then ``retry-after`` (seconds or HTTP date),
    then ``error.retry_after`` in the JSON body.

    Returns:
        The wait in seconds, or None if the server did not specify one
    """
    headers = _lower_keys(headers)

    millis = _finite_float(headers.get("retry-after-ms"))
    if millis is not None:
        return max(millis / 1000.0, 0.0)

    value = headers.get("retry-after")
    if value:
        seconds = _finite_float(value)
        if seconds is not None:
            return max(seconds, 0.0)
        parsed = email.utils.parsedate_tz(value)
        if parsed is not None:
            return max(email.utils.mktime_tz(parsed) - time.time(), 0.0)

    if body:
        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            return None
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            seconds = _finite_float(data["error"].get("retry_after"))
            if seconds is not None:
                return max(seconds, 0.0)
    return None


def _error_fields(text: str) -> Tuple[Optional[str], Optional[str]]:
    # Vendor error bodies look like {"type": "error", "error": {"type": ..., "message": ...}}
    if not text:
        return None, None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None, None
    if not isinstance(data, dict):
        return None, None
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("type"), error.get("message")
    if isinstance(error, str):
        return None, error
    return None, data.get("message")


def _finite_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _body_text(body: Union[bytes, str, None]) -> str:
    if body is None:
        return ""
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return body


def _lower_keys(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    if not headers:
        return {}
    return {str(k).lower(): v for k, v in headers.items()}
