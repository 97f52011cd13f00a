"""
Request logging middleware for Claude Hub
"""

import functools
import inspect
import json
import logging
import time
import uuid
from typing import Any, Callable, Dict, Mapping, Optional

from ...utils.logging import log_error, log_request, log_response

# Set up logger
logger = logging.getLogger(__name__)


class RequestLoggingMiddleware:
    """
    Middleware for logging every HTTP attempt

    Wraps a single-attempt function with the signature
    ``(path, payload, headers)``; placed inside the retry middleware it logs
    each retry separately, under its own trace id. The ``x-api-key`` header is
    always redacted.
    """

    def __init__(
        self,
        log_requests: bool = True,
        log_responses: bool = True,
        log_headers: bool = False,
        log_body: bool = False,
        log_level: int = logging.INFO,
        trace_id_generator: Optional[Callable[[], str]] = None,
    ):
        """
        Initialize the request logging middleware

        Args:
            log_requests: Whether to log outgoing requests
            log_responses: Whether to log responses (errors are logged either way)
            log_headers: Whether to include headers in the log events
            log_body: Whether to include request and response bodies
            log_level: Logging level for request/response events
            trace_id_generator: Function to generate trace IDs (defaults to UUID)
        """
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.log_headers = log_headers
        self.log_body = log_body
        self.log_level = log_level
        self.trace_id_generator = trace_id_generator or (lambda: str(uuid.uuid4()))

    def wrap(self, func: Callable) -> Callable:
        """
        Wrap a function with request logging

        Args:
            func: The function to wrap

        Returns:
            Wrapped function
        """
        @functools.wraps(func)
        def wrapped_sync(path: str, payload: Dict[str, Any], headers: Mapping[str, str]):
            trace_id = self.trace_id_generator()
            self._before(trace_id, path, payload, headers)
            start_time = time.monotonic()
            try:
                response = func(path, payload, headers)
            except Exception as e:
                self._failed(trace_id, e, time.monotonic() - start_time)
                raise
            self._after(trace_id, payload, response, time.monotonic() - start_time)
            return response

        @functools.wraps(func)
        async def wrapped_async(path: str, payload: Dict[str, Any], headers: Mapping[str, str]):
            trace_id = self.trace_id_generator()
            self._before(trace_id, path, payload, headers)
            start_time = time.monotonic()
            try:
                response = await func(path, payload, headers)
            except Exception as e:
                self._failed(trace_id, e, time.monotonic() - start_time)
                raise
            self._after(trace_id, payload, response, time.monotonic() - start_time)
            return response

        if inspect.iscoroutinefunction(func):
            return wrapped_async
        return wrapped_sync

    def _before(self, trace_id: str, path: str, payload: Dict[str, Any], headers: Mapping[str, str]) -> None:
        if not self.log_requests:
            return
        log_request(
            request_id=trace_id,
            model=payload.get("model"),
            path=path,
            payload=payload if self.log_body else None,
            headers=headers if self.log_headers else None,
            metadata={"stream": bool(payload.get("stream"))},
            level=self.log_level,
        )

    def _after(self, trace_id: str, payload: Dict[str, Any], response: Any, duration: float) -> None:
        if not self.log_responses:
            return
        body = getattr(response, "body", None)
        usage = None
        if isinstance(body, (bytes, str)) and body:
            usage = _usage_of(body)
        log_response(
            request_id=trace_id,
            model=payload.get("model"),
            status=getattr(response, "status", None),
            latency=duration,
            usage=usage,
            body=_text(body) if self.log_body and body is not None else None,
            headers=getattr(response, "headers", None) if self.log_headers else None,
            level=self.log_level,
        )

    def _failed(self, trace_id: str, error: Exception, duration: float) -> None:
        metadata: Dict[str, Any] = {"duration": duration}
        for attr in ("status", "request_id"):
            value = getattr(error, attr, None)
            if value is not None:
                metadata[attr] = value
        log_error(
            request_id=trace_id,
            error_type=type(error).__name__,
            error_message=str(error),
            metadata=metadata,
            level=logging.WARNING,
        )


def _usage_of(body: Any) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
        return None
    if isinstance(data, dict) and isinstance(data.get("usage"), dict):
        return data["usage"]
    return None


def _text(body: Any) -> str:
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return str(body)
