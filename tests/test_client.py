"""Tests for the sync and async Messages API clients over a mock transport."""

import httpx
import pytest

from helpers import (
    API_KEY,
    BASE_URL,
    MODEL,
    Recorder,
    TrackingStream,
    error_json,
    make_config,
    message_json,
    sse_body,
    text_events,
    tool_events,
)

from claude_hub import ClaudeHub, ClaudeHubSync
from claude_hub.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    InvalidRequestError,
    MalformedResponseError,
    NetworkError,
    ProtocolError,
    RateLimitError,
    ServerError,
)
from claude_hub.core.request_builder import ChatRequestBuilder
from claude_hub.core.types import CountTokensRequest, Message, StopReason

SSE_HEADERS = {"content-type": "text/event-stream"}


def _request(text="Hi"):
    return ChatRequestBuilder().user(text).build()


def _ok(text="Hello!", **overrides):
    return httpx.Response(200, json=message_json(text, **overrides))


def _error(status, error_type="api_error", message="boom", headers=None):
    return httpx.Response(status, json=error_json(error_type, message), headers=headers)


def _sse(events):
    return httpx.Response(200, content=sse_body(events), headers=SSE_HEADERS)


class FailingStream(httpx.SyncByteStream, httpx.AsyncByteStream):
    """Body that delivers one chunk and then drops the connection."""

    def __init__(self, first: bytes):
        self.first = first

    def __iter__(self):
        yield self.first
        raise httpx.ReadError("connection dropped")

    async def __aiter__(self):
        yield self.first
        raise httpx.ReadError("connection dropped")


class TestCreateMessage:
    """Blocking create_message."""

    def test_request_shape(self, sync_hub_factory):
        hub, recorder = sync_hub_factory(_ok())
        message = hub.create_message(_request())
        assert isinstance(message, Message)
        assert message.text == "Hello!"
        assert message.stop_reason is StopReason.END_TURN

        sent = recorder.requests[0]
        assert str(sent.url) == f"{BASE_URL}/v1/messages"
        assert sent.headers["x-api-key"] == API_KEY
        assert sent.headers["anthropic-version"] == "2023-06-01"
        body = recorder.json()
        assert body["model"] == MODEL
        assert body["max_tokens"] == 1024
        assert body["messages"] == [{"role": "user", "content": [{"type": "text", "text": "Hi"}]}]
        assert "stream" not in body

    def test_configured_sampling_defaults(self, sync_hub_factory):
        hub, recorder = sync_hub_factory(_ok(), _ok(), temperature=0.2)
        hub.create_message(_request())
        hub.create_message(ChatRequestBuilder().user("Hi").temperature(0.7).build())
        assert recorder.json(0)["temperature"] == 0.2
        assert recorder.json(1)["temperature"] == 0.7

    def test_builder_accepted(self, sync_hub_factory):
        hub, recorder = sync_hub_factory(_ok())
        hub.create_message(hub.chat_builder().user("Hi").max_tokens(99))
        assert recorder.json()["max_tokens"] == 99

    def test_non_request_rejected(self, sync_hub_factory):
        hub, recorder = sync_hub_factory()
        with pytest.raises(InvalidRequestError):
            hub.create_message({"messages": []})
        assert recorder.calls == 0

    def test_server_errors_retried(self, sync_hub_factory, sleeps):
        delays = sleeps[0]
        hub, recorder = sync_hub_factory(_error(500), _error(529, "overloaded_error", "Overloaded"), _ok())
        assert hub.create_message(_request()).text == "Hello!"
        assert recorder.calls == 3
        assert delays == [0.5, 1.0]

    def test_rate_limit_honours_retry_after(self, sync_hub_factory, sleeps):
        delays = sleeps[0]
        hub, _ = sync_hub_factory(
            _error(429, "rate_limit_error", "slow down", headers={"retry-after": "2"}),
            _ok(),
        )
        hub.create_message(_request())
        assert delays == [2.0]

    def test_gives_up_after_max_retries(self, sync_hub_factory, sleeps):
        hub, recorder = sync_hub_factory(_error(503), _error(503), _error(503, message="still down"))
        with pytest.raises(ServerError, match="still down") as exc_info:
            hub.create_message(_request())
        assert exc_info.value.status == 503
        assert recorder.calls == 3

    @pytest.mark.parametrize(
        "status,error_type,expected",
        [
            (401, "authentication_error", AuthenticationError),
            (400, "invalid_request_error", InvalidRequestError),
        ],
    )
    def test_client_errors_not_retried(self, sync_hub_factory, sleeps, status, error_type, expected):
        hub, recorder = sync_hub_factory(
            _error(status, error_type, "nope", headers={"request-id": "req_1"})
        )
        with pytest.raises(expected) as exc_info:
            hub.create_message(_request())
        assert exc_info.value.request_id == "req_1"
        assert recorder.calls == 1
        assert sleeps[0] == []

    def test_connection_errors_become_network_errors(self, sync_hub_factory):
        hub, recorder = sync_hub_factory(
            httpx.ConnectError("refused"), httpx.ConnectError("refused"), httpx.ConnectError("refused")
        )
        with pytest.raises(NetworkError) as exc_info:
            hub.create_message(_request())
        assert isinstance(exc_info.value.cause, httpx.ConnectError)
        assert recorder.calls == 3

    def test_timeout_then_success(self, sync_hub_factory):
        hub, recorder = sync_hub_factory(httpx.ReadTimeout("slow"), _ok())
        assert hub.create_message(_request()).text == "Hello!"
        assert recorder.calls == 2

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, content=b"<html>not json</html>"),
            httpx.Response(200, json={"id": "msg_01", "content": []}),
        ],
    )
    def test_malformed_body(self, sync_hub_factory, response):
        hub, recorder = sync_hub_factory(response)
        with pytest.raises(MalformedResponseError):
            hub.create_message(_request())
        assert recorder.calls == 1
        assert hub.usage.requests == 0

    def test_tracing_enabled(self, sync_hub_factory):
        hub, _ = sync_hub_factory(_ok(), enable_tracing=True)
        assert hub.create_message(_request()).text == "Hello!"


class TestUsage:
    """Per-model usage totals."""

    def test_aggregated_per_model(self, sync_hub_factory):
        hub, _ = sync_hub_factory(
            _ok(),
            _ok(usage={"input_tokens": 3, "output_tokens": 4, "cache_read_input_tokens": 2}),
            _ok(model="claude-3-5-haiku-20241022"),
        )
        for _ in range(3):
            hub.create_message(_request())
        sonnet = hub.usage.get(MODEL)
        assert (sonnet.requests, sonnet.input_tokens, sonnet.output_tokens) == (2, 13, 9)
        assert sonnet.cache_read_input_tokens == 2
        assert hub.usage.requests == 3
        assert hub.usage.total_tokens == 13 + 9 + 15

    def test_failed_requests_not_counted(self, sync_hub_factory):
        hub, _ = sync_hub_factory(_error(400, "invalid_request_error", "bad"))
        with pytest.raises(InvalidRequestError):
            hub.create_message(_request())
        assert hub.usage.requests == 0


class TestStream:
    """Blocking streams."""

    def test_text_and_final_message(self, sync_hub_factory):
        hub, recorder = sync_hub_factory(_sse(text_events(("Hel", "lo", "!"))))
        with hub.stream(_request()) as stream:
            assert list(stream.text_stream) == ["Hel", "lo", "!"]
            message = stream.get_final_message()
        assert message == Message.model_validate(message_json("Hello!"))
        assert recorder.json()["stream"] is True
        assert hub.usage.get(MODEL).output_tokens == 5

    def test_tool_use_stream(self, sync_hub_factory):
        hub, _ = sync_hub_factory(_sse(tool_events()))
        with hub.stream(_request()) as stream:
            message = stream.get_final_message()
        assert message.tool_uses[0].input == {"city": "Paris"}

    def test_open_retried(self, sync_hub_factory, sleeps):
        hub, recorder = sync_hub_factory(_error(500), httpx.ConnectError("refused"), _sse(text_events()))
        with hub.stream(_request()) as stream:
            assert stream.get_final_message().text == "Hello!"
        assert recorder.calls == 3
        assert sleeps[0] == [0.5, 1.0]

    def test_open_failure_not_retried_for_auth(self, sync_hub_factory):
        hub, recorder = sync_hub_factory(_error(401, "authentication_error", "bad key"))
        with pytest.raises(AuthenticationError):
            with hub.stream(_request()):
                pass
        assert recorder.calls == 1

    def test_response_released_on_early_exit(self, sync_hub_factory):
        body = TrackingStream(sse_body(text_events(("a", "b", "c"))))
        hub, _ = sync_hub_factory(httpx.Response(200, stream=body, headers=SSE_HEADERS))
        with hub.stream(_request()) as stream:
            for _ in stream.text_stream:
                break
        assert body.closed
        assert hub.usage.requests == 0

    def test_error_event_mid_stream(self, sync_hub_factory):
        events = text_events(("a",))[:3]
        events.append({"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}})
        hub, recorder = sync_hub_factory(_sse(events))
        with pytest.raises(ServerError) as exc_info:
            with hub.stream(_request()) as stream:
                stream.get_final_message()
        assert exc_info.value.status == 529
        assert recorder.calls == 1

    def test_truncated_stream(self, sync_hub_factory):
        hub, _ = sync_hub_factory(_sse(text_events()[:-1]))
        with pytest.raises(ProtocolError):
            with hub.stream(_request()) as stream:
                stream.get_final_message()
        assert hub.usage.requests == 0

    def test_connection_dropped_mid_stream(self, sync_hub_factory):
        first = sse_body(text_events(("a",))[:2])
        hub, recorder = sync_hub_factory(httpx.Response(200, stream=FailingStream(first), headers=SSE_HEADERS))
        with pytest.raises(NetworkError):
            with hub.stream(_request()) as stream:
                stream.get_final_message()
        assert recorder.calls == 1


class TestCountTokens:
    """Token counting endpoint."""

    def test_count_tokens(self, sync_hub_factory):
        hub, recorder = sync_hub_factory(httpx.Response(200, json={"input_tokens": 42}))
        count = hub.count_tokens(ChatRequestBuilder().system("S").user("Hi").max_tokens(10).build())
        assert count.input_tokens == 42
        assert recorder.requests[0].url.path == "/v1/messages/count_tokens"
        body = recorder.json()
        assert body["model"] == MODEL
        assert body["system"] == [{"type": "text", "text": "S"}]
        assert "max_tokens" not in body

    def test_count_tokens_request(self, sync_hub_factory):
        hub, recorder = sync_hub_factory(httpx.Response(200, json={"input_tokens": 7}))
        request = CountTokensRequest(model="claude-3-5-haiku-20241022", messages=[{"role": "user", "content": "x"}])
        assert hub.count_tokens(request).input_tokens == 7
        assert recorder.json()["model"] == "claude-3-5-haiku-20241022"
        assert hub.usage.requests == 0


class TestLifecycle:
    """Construction and closing."""

    def test_caller_client_left_open(self):
        http_client = httpx.Client(transport=httpx.MockTransport(Recorder()))
        with ClaudeHubSync(make_config(), http_client=http_client):
            pass
        assert not http_client.is_closed
        http_client.close()

    def test_config_and_keywords_conflict(self):
        with pytest.raises(ConfigurationError):
            ClaudeHubSync(make_config(), model="other")

    def test_keyword_settings(self):
        hub = ClaudeHubSync(api_key=API_KEY, base_url=BASE_URL, max_tokens=12)
        assert hub.cfg.max_tokens == 12
        hub.close()

    def test_request_logging_redacts_key(self, sync_hub_factory, caplog):
        hub, _ = sync_hub_factory(
            _ok(), log_requests=True, log_responses=True, log_headers=True, log_body=True
        )
        with caplog.at_level("INFO", logger="claude_hub"):
            hub.create_message(_request())
        assert "claude_request" in caplog.text
        assert "claude_response" in caplog.text
        assert API_KEY not in caplog.text


class TestAsyncClient:
    """The async client mirrors the blocking one."""

    @pytest.mark.asyncio
    async def test_create_message_with_retry(self, async_hub_factory, sleeps):
        hub, recorder = async_hub_factory(_error(529, "overloaded_error", "Overloaded"), _ok())
        async with hub:
            message = await hub.create_message(_request())
        assert message.text == "Hello!"
        assert recorder.calls == 2
        assert sleeps[0] == [0.5]
        assert hub.usage.requests == 1

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self, async_hub_factory):
        responses = [_error(429, "rate_limit_error", "slow", headers={"retry-after": "1"}) for _ in range(3)]
        hub, recorder = async_hub_factory(*responses)
        with pytest.raises(RateLimitError) as exc_info:
            await hub.create_message(_request())
        assert exc_info.value.retry_after == 1.0
        assert recorder.calls == 3

    @pytest.mark.asyncio
    async def test_stream(self, async_hub_factory):
        hub, _ = async_hub_factory(_sse(text_events(("x", "y"))))
        async with hub.stream(_request()) as stream:
            texts = [t async for t in stream.text_stream]
            message = await stream.get_final_message()
        assert texts == ["x", "y"]
        assert message.text == "xy"
        assert hub.usage.get(MODEL).requests == 1

    @pytest.mark.asyncio
    async def test_stream_open_retried(self, async_hub_factory, sleeps):
        hub, recorder = async_hub_factory(_error(503), _sse(text_events()))
        async with hub.stream(_request()) as stream:
            assert (await stream.get_final_message()).text == "Hello!"
        assert recorder.calls == 2
        assert sleeps[0] == [0.5]

    @pytest.mark.asyncio
    async def test_stream_released_on_early_exit(self, async_hub_factory):
        body = TrackingStream(sse_body(text_events(("a", "b"))))
        hub, _ = async_hub_factory(httpx.Response(200, stream=body, headers=SSE_HEADERS))
        async with hub.stream(_request()) as stream:
            async for snapshot in stream:
                if snapshot.text:
                    break
        assert body.closed

    @pytest.mark.asyncio
    async def test_stream_error_event(self, async_hub_factory):
        events = text_events(("a",))[:2]
        events.append({"type": "error", "error": {"type": "rate_limit_error", "message": "slow"}})
        hub, recorder = async_hub_factory(_sse(events))
        with pytest.raises(RateLimitError):
            async with hub.stream(_request()) as stream:
                await stream.get_final_message()
        assert recorder.calls == 1

    @pytest.mark.asyncio
    async def test_count_tokens(self, async_hub_factory):
        hub, _ = async_hub_factory(httpx.Response(200, json={"input_tokens": 5}))
        assert (await hub.count_tokens(_request())).input_tokens == 5

    @pytest.mark.asyncio
    async def test_caller_client_left_open(self):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(Recorder()))
        async with ClaudeHub(make_config(), http_client=http_client):
            pass
        assert not http_client.is_closed
        await http_client.aclose()
