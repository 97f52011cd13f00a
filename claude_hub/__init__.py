__version__ = "0.1.0"

from .client import ClaudeHub
from .client_sync import ClaudeHubSync
from .config import HubConfig
from .core.error_classifier import classify_exception, classify_response, debug_info, is_retryable, user_message
from .core.events import StreamEvent, parse_stream_event
from .core.exceptions import (
    APIError,
    AuthenticationError,
    ClaudeHubError,
    ConfigurationError,
    ErrorKind,
    FileHandlingError,
    InvalidRequestError,
    MalformedResponseError,
    NetworkError,
    ProtocolError,
    RateLimitError,
    ServerError,
    TimeoutError,
    ToolError,
)
from .core.middleware.retry import RetryDecision, RetryPolicy
from .core.request_builder import ChatRequestBuilder
from .core.types import (
    ChatRequest,
    ContentBlock,
    CountTokensRequest,
    DocumentBlock,
    DocumentMediaType,
    ImageBlock,
    ImageMediaType,
    Message,
    MessageParam,
    Model,
    Role,
    StopReason,
    TextBlock,
    TokenCount,
    ToolChoice,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
    UnknownBlock,
    Usage,
)
from .tools.function_calling import ToolBuilder, execute_tool_uses, function_to_tool
from .usage import UsageTotals
from .utils.streaming import AsyncMessageStream, MessageAccumulator, MessageStream

__all__ = [
    "__version__",
    "ClaudeHub",
    "ClaudeHubSync",
    "HubConfig",
    "RetryPolicy",
    "RetryDecision",
    "ChatRequestBuilder",
    "ChatRequest",
    "CountTokensRequest",
    "TokenCount",
    "Message",
    "MessageParam",
    "Model",
    "Role",
    "StopReason",
    "Usage",
    "ContentBlock",
    "TextBlock",
    "ImageBlock",
    "ImageMediaType",
    "DocumentBlock",
    "DocumentMediaType",
    "ToolUseBlock",
    "ToolResultBlock",
    "UnknownBlock",
    "ToolDefinition",
    "ToolChoice",
    "StreamEvent",
    "parse_stream_event",
    "MessageAccumulator",
    "MessageStream",
    "AsyncMessageStream",
    "ToolBuilder",
    "function_to_tool",
    "execute_tool_uses",
    "UsageTotals",
    "ErrorKind",
    "ClaudeHubError",
    "ConfigurationError",
    "APIError",
    "AuthenticationError",
    "RateLimitError",
    "InvalidRequestError",
    "ServerError",
    "NetworkError",
    "TimeoutError",
    "ProtocolError",
    "MalformedResponseError",
    "ToolError",
    "FileHandlingError",
    "classify_response",
    "classify_exception",
    "is_retryable",
    "user_message",
    "debug_info",
]
