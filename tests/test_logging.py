"""Tests for logging helpers and the request logging middleware."""

import json
import logging

import pytest

from helpers import API_KEY, MODEL

from claude_hub.core.exceptions import ServerError
from claude_hub.core.middleware.request_logging import RequestLoggingMiddleware
from claude_hub.transport import TransportResponse
from claude_hub.utils.logging import (
    ClaudeHubLogFormatter,
    LoggingContext,
    configure_logging,
    log_request,
    redact_headers,
)

HEADERS = {"x-api-key": API_KEY, "anthropic-version": "2023-06-01"}
PAYLOAD = {"model": MODEL, "max_tokens": 10, "messages": []}


def _events(caplog):
    return [json.loads(record.getMessage()) for record in caplog.records if record.name == "claude_hub"]


@pytest.fixture
def restore_claude_hub_logger():
    logger = logging.getLogger("claude_hub")
    level, handlers = logger.level, logger.handlers[:]
    yield logger
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)


class TestHelpers:
    """Formatting and redaction."""

    def test_redact_headers(self):
        redacted = redact_headers({"X-Api-Key": "secret", "Authorization": "Bearer x", "accept": "*/*"})
        assert redacted == {"X-Api-Key": "***", "Authorization": "***", "accept": "*/*"}

    def test_log_request_redacts(self, caplog):
        with caplog.at_level(logging.INFO, logger="claude_hub"):
            log_request("trace-1", MODEL, "/v1/messages", headers=HEADERS)
        (event,) = _events(caplog)
        assert event["event"] == "claude_request"
        assert event["headers"]["x-api-key"] == "***"
        assert API_KEY not in caplog.text

    def test_formatter_keeps_json(self):
        record = logging.LogRecord("claude_hub", logging.INFO, __file__, 1, '{"event": "x"}', None, None)
        data = json.loads(ClaudeHubLogFormatter().format(record))
        assert data["event"] == "x"
        assert data["level"] == "INFO"
        assert data["logger"] == "claude_hub"

    def test_formatter_plain_text(self):
        record = logging.LogRecord("claude_hub.client", logging.WARNING, __file__, 1, "hello %s", ("there",), None)
        line = ClaudeHubLogFormatter(include_timestamp=False).format(record)
        assert line == "[WARNING] (claude_hub.client) hello there"

    def test_configure_logging_to_file(self, tmp_path, restore_claude_hub_logger):
        log_file = tmp_path / "logs" / "hub.log"
        configure_logging(level=logging.DEBUG, console=False, log_file=str(log_file), json_format=True)
        log_request("trace-2", MODEL, "/v1/messages", level=logging.DEBUG)
        for handler in restore_claude_hub_logger.handlers:
            handler.flush()
        assert json.loads(log_file.read_text().strip())["request_id"] == "trace-2"

    def test_logging_context_logs_failures(self, caplog):
        with caplog.at_level(logging.INFO, logger="claude_hub"):
            with pytest.raises(ValueError):
                with LoggingContext("trace-3", model=MODEL):
                    raise ValueError("bad")
        (event,) = _events(caplog)
        assert event["event"] == "claude_error"
        assert event["error_type"] == "ValueError"
        assert event["metadata"]["model"] == MODEL


class TestRequestLoggingMiddleware:
    """Per-attempt request and response events."""

    def _middleware(self, **kwargs):
        ids = iter(["trace-a", "trace-b"])
        return RequestLoggingMiddleware(trace_id_generator=lambda: next(ids), **kwargs)

    def test_request_and_response(self, caplog):
        body = json.dumps({"usage": {"input_tokens": 3, "output_tokens": 4}}).encode()

        def attempt(path, payload, headers):
            return TransportResponse(200, {"request-id": "req_1"}, body)

        wrapped = self._middleware(log_headers=True).wrap(attempt)
        with caplog.at_level(logging.INFO, logger="claude_hub"):
            assert wrapped("/v1/messages", PAYLOAD, HEADERS).status == 200
        request, response = _events(caplog)
        assert request["request_id"] == response["request_id"] == "trace-a"
        assert request["headers"]["x-api-key"] == "***"
        assert "payload" not in request
        assert response["usage"] == {"input_tokens": 3, "output_tokens": 4}
        assert "body" not in response

    def test_body_logging(self, caplog):
        wrapped = self._middleware(log_body=True).wrap(lambda p, pl, h: TransportResponse(200, {}, b"{}"))
        with caplog.at_level(logging.INFO, logger="claude_hub"):
            wrapped("/v1/messages", PAYLOAD, HEADERS)
        request, response = _events(caplog)
        assert request["payload"] == PAYLOAD
        assert response["body"] == "{}"

    def test_failures_logged_as_warnings(self, caplog):
        def attempt(path, payload, headers):
            raise ServerError("down", status=503, request_id="req_2")

        wrapped = self._middleware(log_requests=False).wrap(attempt)
        with caplog.at_level(logging.INFO, logger="claude_hub"):
            with pytest.raises(ServerError):
                wrapped("/v1/messages", PAYLOAD, HEADERS)
        (error,) = _events(caplog)
        assert error["event"] == "claude_error"
        assert error["metadata"]["status"] == 503
        assert error["metadata"]["request_id"] == "req_2"
        assert caplog.records[-1].levelno == logging.WARNING

    @pytest.mark.asyncio
    async def test_async_attempts_get_their_own_trace_ids(self, caplog):
        async def attempt(path, payload, headers):
            return TransportResponse(200, {}, b"")

        wrapped = self._middleware(log_responses=False).wrap(attempt)
        with caplog.at_level(logging.INFO, logger="claude_hub"):
            await wrapped("/v1/messages", PAYLOAD, HEADERS)
            await wrapped("/v1/messages", PAYLOAD, HEADERS)
        assert [e["request_id"] for e in _events(caplog)] == ["trace-a", "trace-b"]
