"""
Logging utilities for Claude Hub
"""

import datetime
import json
import logging
import os
import sys
from typing import Any, Dict, Mapping, Optional

# Set up the default logger
logger = logging.getLogger("claude_hub")

# Header values that are never written to logs
SENSITIVE_HEADERS = frozenset({"x-api-key", "authorization"})
REDACTED = "***"


class ClaudeHubLogFormatter(logging.Formatter):
    """
    Custom formatter for Claude Hub logs

    JSON messages (as written by ``log_json``) stay JSON and gain timestamp,
    level and logger fields; plain messages are rendered on one line.
    """

    def __init__(self, include_timestamp: bool = True, include_level: bool = True):
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        try:
            message_dict = json.loads(message)
            is_json = isinstance(message_dict, dict)
        except (json.JSONDecodeError, TypeError):
            is_json = False
        if not is_json:
            message_dict = {"message": message}

        if self.include_timestamp:
            message_dict["timestamp"] = datetime.datetime.fromtimestamp(record.created).isoformat()
        if self.include_level:
            message_dict["level"] = record.levelname
        message_dict["logger"] = record.name

        if is_json:
            return json.dumps(message_dict, default=str)

        parts = []
        if self.include_timestamp:
            parts.append(message_dict.pop("timestamp"))
        if self.include_level:
            parts.append(f"[{message_dict.pop('level')}]")
        parts.append(f"({message_dict.pop('logger')})")
        parts.append(message_dict.pop("message"))
        text = " ".join(parts)
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def configure_logging(
    level: int = logging.INFO,
    console: bool = True,
    log_file: Optional[str] = None,
    json_format: bool = False,
) -> None:
    """
    Configure logging for Claude Hub

    Args:
        level: Logging level
        console: Whether to log to console
        log_file: Path to log file (if None, no file logging)
        json_format: Whether to emit raw JSON lines instead of the Claude Hub format
    """
    root_logger = logging.getLogger("claude_hub")
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    if json_format:
        formatter = logging.Formatter("%(message)s")
    else:
        formatter = ClaudeHubLogFormatter()

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def log_json(
    logger_instance: logging.Logger,
    level: int,
    data: Dict[str, Any],
) -> None:
    """
    Log a dictionary as JSON
    """
    if logger_instance.isEnabledFor(level):
        logger_instance.log(level, json.dumps(data, default=str))


def redact_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Copy of ``headers`` with credentials replaced by ``***``"""
    if not headers:
        return {}
    return {
        k: (REDACTED if k.lower() in SENSITIVE_HEADERS else v)
        for k, v in headers.items()
    }


def log_request(
    request_id: str,
    model: Optional[str],
    path: str,
    payload: Optional[Dict[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    level: int = logging.INFO,
) -> None:
    """
    Log an API request

    Args:
        request_id: Trace id of this attempt
        model: Model name
        path: API path, e.g. ``/v1/messages``
        payload: JSON body (omitted when None)
        headers: Request headers; credentials are always redacted
        metadata: Additional metadata
        level: Logging level
    """
    log_data: Dict[str, Any] = {
        "event": "claude_request",
        "request_id": request_id,
        "timestamp": datetime.datetime.now().isoformat(),
        "model": model,
        "path": path,
    }
    if headers is not None:
        log_data["headers"] = redact_headers(headers)
    if payload is not None:
        log_data["payload"] = payload
    if metadata:
        log_data["metadata"] = metadata

    log_json(logger, level, log_data)


def log_response(
    request_id: str,
    model: Optional[str],
    status: Optional[int],
    latency: float,
    usage: Optional[Dict[str, Any]] = None,
    body: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    level: int = logging.INFO,
) -> None:
    """
    Log an API response

    Args:
        request_id: Trace id of this attempt
        model: Model name
        status: HTTP status code
        latency: Response time in seconds
        usage: Token usage reported by the API
        body: Response body (omitted when None)
        headers: Response headers
        metadata: Additional metadata
        level: Logging level
    """
    log_data: Dict[str, Any] = {
        "event": "claude_response",
        "request_id": request_id,
        "timestamp": datetime.datetime.now().isoformat(),
        "model": model,
        "status": status,
        "latency": latency,
    }
    if usage:
        log_data["usage"] = usage
    if headers is not None:
        log_data["headers"] = redact_headers(headers)
    if body is not None:
        log_data["body"] = body
    if metadata:
        log_data["metadata"] = metadata

    log_json(logger, level, log_data)


def log_error(
    request_id: str,
    error_type: str,
    error_message: str,
    metadata: Optional[Dict[str, Any]] = None,
    level: int = logging.ERROR,
) -> None:
    """
    Log an API error
    """
    log_data: Dict[str, Any] = {
        "event": "claude_error",
        "request_id": request_id,
        "timestamp": datetime.datetime.now().isoformat(),
        "error_type": error_type,
        "error_message": error_message,
    }
    if metadata:
        log_data["metadata"] = metadata

    log_json(logger, level, log_data)


class LoggingContext:
    """
    Context manager for request-scoped logging

    Logs an error event when the block raises; the exception still propagates.
    """

    def __init__(
        self,
        request_id: str,
        model: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.request_id = request_id
        self.model = model
        self.metadata = metadata or {}
        self.start_time: Optional[datetime.datetime] = None

    @property
    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        return (datetime.datetime.now() - self.start_time).total_seconds()

    def __enter__(self) -> "LoggingContext":
        self.start_time = datetime.datetime.now()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            metadata = {**self.metadata, "elapsed": self.elapsed}
            if self.model:
                metadata["model"] = self.model
            log_error(
                request_id=self.request_id,
                error_type=exc_type.__name__,
                error_message=str(exc_val),
                metadata=metadata,
            )
