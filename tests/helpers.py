"""Shared builders for claude_hub tests."""

import json
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import httpx

from claude_hub import HubConfig, RetryPolicy

API_KEY = "sk-test-key"
BASE_URL = "https://api.test"
MODEL = "claude-sonnet-4-20250514"


def make_config(**overrides: Any) -> HubConfig:
    settings: Dict[str, Any] = {
        "api_key": API_KEY,
        "base_url": BASE_URL,
        "model": MODEL,
        "max_tokens": 1024,
        "retry": RetryPolicy(max_retries=2, initial_delay=0.5, max_delay=4.0, jitter=False),
    }
    settings.update(overrides)
    return HubConfig(**settings)


def message_json(text: str = "Hello!", **overrides: Any) -> Dict[str, Any]:
    data = {
        "id": "msg_01",
        "type": "message",
        "role": "assistant",
        "model": MODEL,
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 10, "output_tokens": 5},
    }
    data.update(overrides)
    return data


def error_json(error_type: str, message: str) -> Dict[str, Any]:
    return {"type": "error", "error": {"type": error_type, "message": message}}


def text_events(chunks: Sequence[str] = ("Hel", "lo!")) -> List[Dict[str, Any]]:
    """Event sequence whose fold equals message_json("".join(chunks))."""
    events: List[Dict[str, Any]] = [
        {
            "type": "message_start",
            "message": {
                "id": "msg_01",
                "type": "message",
                "role": "assistant",
                "model": MODEL,
                "content": [],
                "stop_reason": None,
                "stop_sequence": None,
                "usage": {"input_tokens": 10, "output_tokens": 1},
            },
        },
        {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
        {"type": "ping"},
    ]
    for chunk in chunks:
        events.append(
            {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": chunk}}
        )
    events += [
        {"type": "content_block_stop", "index": 0},
        {
            "type": "message_delta",
            "delta": {"stop_reason": "end_turn", "stop_sequence": None},
            "usage": {"output_tokens": 5},
        },
        {"type": "message_stop"},
    ]
    return events


def tool_events(partial_json: Sequence[str] = ('{"city": ', '"Paris"}')) -> List[Dict[str, Any]]:
    """A text block followed by a tool_use block streamed as JSON fragments."""
    events = text_events(("Checking",))[:-3]
    events += [
        {"type": "content_block_stop", "index": 0},
        {
            "type": "content_block_start",
            "index": 1,
            "content_block": {"type": "tool_use", "id": "toolu_01", "name": "get_weather", "input": {}},
        },
    ]
    for fragment in partial_json:
        events.append(
            {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": fragment}}
        )
    events += [
        {"type": "content_block_stop", "index": 1},
        {"type": "message_delta", "delta": {"stop_reason": "tool_use"}, "usage": {"output_tokens": 20}},
        {"type": "message_stop"},
    ]
    return events


def sse_body(events: Iterable[Dict[str, Any]]) -> bytes:
    return "".join(
        f"event: {event['type']}\ndata: {json.dumps(event)}\n\n" for event in events
    ).encode("utf-8")


ResponseLike = Union[httpx.Response, Exception]


class Recorder:
    """
    MockTransport handler that records requests and replays queued responses

    Each queued response is served once, in order. Exceptions in the queue
    are raised instead of returned.
    """

    def __init__(self, *responses: ResponseLike):
        self.responses: List[ResponseLike] = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        assert self.responses, f"unexpected request #{len(self.requests)} to {request.url}"
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def calls(self) -> int:
        return len(self.requests)

    def json(self, index: int = -1) -> Dict[str, Any]:
        return json.loads(self.requests[index].content)


class TrackingStream(httpx.SyncByteStream, httpx.AsyncByteStream):
    """Response body that records whether it was closed."""

    def __init__(self, body: bytes, chunk_size: int = 16):
        self.chunks = [body[i:i + chunk_size] for i in range(0, len(body), chunk_size)]
        self.closed = False

    def __iter__(self):
        yield from self.chunks

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk

    def close(self) -> None:
        self.closed = True

    async def aclose(self) -> None:
        self.closed = True


def recorded_sleeps(delays: Optional[List[float]] = None):
    delays = [] if delays is None else delays

    def sleep(delay: float) -> None:
        delays.append(delay)

    async def async_sleep(delay: float) -> None:
        delays.append(delay)

    return delays, sleep, async_sleep
