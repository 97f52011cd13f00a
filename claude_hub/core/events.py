"""
Server-sent stream event types for Claude Hub

One model per ``type`` of the Messages API streaming protocol, plus
fallbacks for event and delta types this library does not know about.
"""

import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import ConfigDict, Discriminator, Field, NonNegativeInt, Tag, TypeAdapter, ValidationError

from .exceptions import ProtocolError
from .types import ContentBlock, Message, StopReasonValue, WireModel


# ---- content deltas ----------------------------------------------------------

class TextDelta(WireModel):
    type: Literal["text_delta"] = "text_delta"
    text: str


class InputJsonDelta(WireModel):
    type: Literal["input_json_delta"] = "input_json_delta"
    partial_json: str


class UnknownDelta(WireModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    type: str


def _delta_tag(value: Any) -> str:
    tag = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return tag if tag in ("text_delta", "input_json_delta") else "unknown"


ContentDelta = Annotated[
    Union[
        Annotated[TextDelta, Tag("text_delta")],
        Annotated[InputJsonDelta, Tag("input_json_delta")],
        Annotated[UnknownDelta, Tag("unknown")],
    ],
    Discriminator(_delta_tag),
]


# ---- events ------------------------------------------------------------------

class MessageStartEvent(WireModel):
    type: Literal["message_start"] = "message_start"
    message: Message


class ContentBlockStartEvent(WireModel):
    type: Literal["content_block_start"] = "content_block_start"
    index: NonNegativeInt
    content_block: ContentBlock


class ContentBlockDeltaEvent(WireModel):
    type: Literal["content_block_delta"] = "content_block_delta"
    index: NonNegativeInt
    delta: ContentDelta


class ContentBlockStopEvent(WireModel):
    type: Literal["content_block_stop"] = "content_block_stop"
    index: NonNegativeInt


class MessageDeltaBody(WireModel):
    stop_reason: Optional[StopReasonValue] = None
    stop_sequence: Optional[str] = None


class MessageDeltaUsage(WireModel):
    # Every counter present here replaces the running value
    input_tokens: Optional[NonNegativeInt] = None
    output_tokens: Optional[NonNegativeInt] = None
    cache_creation_input_tokens: Optional[NonNegativeInt] = None
    cache_read_input_tokens: Optional[NonNegativeInt] = None


class MessageDeltaEvent(WireModel):
    type: Literal["message_delta"] = "message_delta"
    delta: MessageDeltaBody = Field(default_factory=MessageDeltaBody)
    usage: Optional[MessageDeltaUsage] = None


class MessageStopEvent(WireModel):
    type: Literal["message_stop"] = "message_stop"


class PingEvent(WireModel):
    type: Literal["ping"] = "ping"


class StreamErrorBody(WireModel):
    type: str = "api_error"
    message: str = ""


class ErrorEvent(WireModel):
    type: Literal["error"] = "error"
    error: StreamErrorBody = Field(default_factory=StreamErrorBody)


class UnknownEvent(WireModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    type: str


KNOWN_EVENT_TYPES = frozenset(
    {
        "message_start",
        "content_block_start",
        "content_block_delta",
        "content_block_stop",
        "message_delta",
        "message_stop",
        "ping",
        "error",
    }
)


def _event_tag(value: Any) -> str:
    tag = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return tag if tag in KNOWN_EVENT_TYPES else "unknown"


StreamEvent = Annotated[
    Union[
        Annotated[MessageStartEvent, Tag("message_start")],
        Annotated[ContentBlockStartEvent, Tag("content_block_start")],
        Annotated[ContentBlockDeltaEvent, Tag("content_block_delta")],
        Annotated[ContentBlockStopEvent, Tag("content_block_stop")],
        Annotated[MessageDeltaEvent, Tag("message_delta")],
        Annotated[MessageStopEvent, Tag("message_stop")],
        Annotated[PingEvent, Tag("ping")],
        Annotated[ErrorEvent, Tag("error")],
        Annotated[UnknownEvent, Tag("unknown")],
    ],
    Discriminator(_event_tag),
]

_event_adapter: TypeAdapter = TypeAdapter(StreamEvent)


def parse_stream_event(data: Union[str, bytes, dict], event_name: Optional[str] = None) -> Any:
    """
    Decode one SSE payload into a stream event

    Args:
        data: The ``data:`` payload of the event (JSON text or decoded dict)
        event_name: The SSE ``event:`` field, used when the payload has no type

    Returns:
        The matching stream event model (UnknownEvent for unrecognised types)

    Raises:
        ProtocolError: If the payload is not a JSON object or fails validation
    """
    raw = data
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError(f"Stream event is not valid JSON: {e}", body=_text(raw)) from e

    if not isinstance(data, dict):
        raise ProtocolError("Stream event payload is not a JSON object", body=_text(raw))

    if "type" not in data:
        if not event_name:
            raise ProtocolError("Stream event has no type", body=_text(raw))
        data = {**data, "type": event_name}

    try:
        return _event_adapter.validate_python(data)
    except ValidationError as e:
        raise ProtocolError(f"Invalid '{data['type']}' event: {e}", body=_text(raw)) from e


def _text(raw: Any) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        return raw
    return repr(raw)
