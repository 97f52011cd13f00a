"""
Standardized exceptions for Claude Hub
"""

from enum import Enum
from typing import Any, Dict, List, Optional

# Upper bound on how much of a response body is echoed into debug output
BODY_SNIPPET_LIMIT = 500


class ErrorKind(str, Enum):
    """Closed set of runtime failure kinds produced by the error classifier"""

    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    INVALID_REQUEST = "invalid_request"
    SERVER_ERROR = "server_error"
    NETWORK = "network"
    PROTOCOL = "protocol"
    TIMEOUT = "timeout"


RETRYABLE_KINDS = frozenset(
    {ErrorKind.RATE_LIMIT, ErrorKind.SERVER_ERROR, ErrorKind.NETWORK, ErrorKind.TIMEOUT}
)


class ClaudeHubError(Exception):
    """Base exception for all Claude Hub errors"""

    kind: Optional[ErrorKind] = None
    summary = "Claude Hub error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        error_str = self.message
        if self.kind is not None:
            error_str = f"[{self.kind.value}] {error_str}"
        if self.details:
            error_str = f"{error_str} - Details: {self.details}"
        return error_str

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def user_message(self) -> str:
        """
        Short, human-readable description of the failure
        """
        return f"{self.summary}: {self.message}"

    def debug_info(self) -> str:
        """
        Full diagnostic detail: everything in user_message() plus the
        underlying status, request id, body snippet and cause chain
        """
        lines = [
            self.user_message(),
            f"kind: {self.kind.value if self.kind else 'configuration'}",
            f"error: {type(self).__module__}.{type(self).__name__}",
            f"retryable: {self.retryable}",
            f"message: {self.message}",
        ]
        lines.extend(self._debug_fields())
        if self.details:
            lines.append(f"details: {self.details}")
        causes = _cause_chain(self)
        if causes:
            lines.append("caused by:")
            lines.extend(f"  {cause}" for cause in causes)
        return "\n".join(lines)

    def _debug_fields(self) -> List[str]:
        return []


class ConfigurationError(ClaudeHubError):
    """Exception raised for invalid client setup, detected before any request is sent"""

    summary = "Configuration error"


class APIError(ClaudeHubError):
    """
    Base for runtime failures of a single request attempt

    Attributes:
        status: HTTP status code, if the failure came from an HTTP response
        body: Raw response body (or offending payload), if any
        request_id: Vendor request id from the response headers, if any
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status: Optional[int] = None,
        body: Optional[str] = None,
        request_id: Optional[str] = None,
        error_type: Optional[str] = None,
    ):
        super().__init__(message, details)
        self.status = status
        self.body = body
        self.request_id = request_id
        self.error_type = error_type

    def _debug_fields(self) -> List[str]:
        fields = []
        if self.status is not None:
            fields.append(f"status: {self.status}")
        if self.error_type:
            fields.append(f"error_type: {self.error_type}")
        if self.request_id:
            fields.append(f"request_id: {self.request_id}")
        if self.body:
            snippet = self.body[:BODY_SNIPPET_LIMIT]
            if len(self.body) > BODY_SNIPPET_LIMIT:
                snippet += f"... ({len(self.body)} bytes total)"
            fields.append(f"body: {snippet}")
        return fields


class AuthenticationError(APIError):
    """Exception raised for authentication and permission failures (401/403)"""

    kind = ErrorKind.AUTHENTICATION
    summary = "Authentication failed"

    def user_message(self) -> str:
        return f"{self.summary}: check that your API key is valid and has access ({self.message})"


class RateLimitError(APIError):
    """Exception raised when rate limits are exceeded"""

    kind = ErrorKind.RATE_LIMIT
    summary = "Rate limit exceeded"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status: Optional[int] = 429,
        body: Optional[str] = None,
        request_id: Optional[str] = None,
        error_type: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, details, status, body, request_id, error_type)
        self.retry_after = retry_after

    def user_message(self) -> str:
        if self.retry_after is not None:
            return f"{self.summary}, retry after {self.retry_after:g}s"
        return f"{self.summary}, retry later"

    def _debug_fields(self) -> List[str]:
        fields = super()._debug_fields()
        fields.append(f"retry_after: {self.retry_after}")
        return fields


class InvalidRequestError(APIError):
    """Exception raised for requests the API (or local validation) rejects"""

    kind = ErrorKind.INVALID_REQUEST
    summary = "Invalid request"


class ServerError(APIError):
    """Exception raised for 5xx responses, including 529 overloaded"""

    kind = ErrorKind.SERVER_ERROR
    summary = "API server error"

    def user_message(self) -> str:
        return f"{self.summary} ({self.status}): {self.message}"


class NetworkError(APIError):
    """Exception raised for connection-level failures (DNS, TLS, refused, reset)"""

    kind = ErrorKind.NETWORK
    summary = "Network error"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, details)
        self.cause = cause

    def _debug_fields(self) -> List[str]:
        fields = super()._debug_fields()
        if self.cause is not None:
            fields.append(f"cause: {type(self.cause).__name__}: {self.cause}")
        return fields


class TimeoutError(APIError):
    """Exception raised when a request times out"""

    kind = ErrorKind.TIMEOUT
    summary = "Request timed out"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        status: Optional[int] = None,
        body: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message, details, status, body, request_id)
        self.timeout = timeout

    def user_message(self) -> str:
        if self.timeout is not None:
            return f"{self.summary} after {self.timeout:g}s"
        return self.summary

    def _debug_fields(self) -> List[str]:
        fields = super()._debug_fields()
        fields.append(f"timeout: {self.timeout}")
        return fields


class ProtocolError(APIError):
    """Exception raised when the event stream violates the documented event order"""

    kind = ErrorKind.PROTOCOL
    summary = "Malformed stream"


class MalformedResponseError(ProtocolError):
    """Exception raised when a response body or tool input cannot be decoded"""

    summary = "Malformed response"


class ToolError(ClaudeHubError):
    """Exception raised for tool-related errors"""

    summary = "Tool error"


class FileHandlingError(ClaudeHubError):
    """Exception raised for file handling errors"""

    summary = "File handling error"


def _cause_chain(error: BaseException) -> List[str]:
    chain = []
    seen = {id(error)}
    current = error.__cause__ or error.__context__
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        chain.append(f"{type(current).__name__}: {current}")
        current = current.__cause__ or current.__context__
    return chain
