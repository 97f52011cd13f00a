"""
Streaming response utilities for Claude Hub

``MessageAccumulator`` folds the ordered stream events of one response into
a ``Message``; ``MessageStream`` / ``AsyncMessageStream`` wrap an event
source and expose snapshots, text deltas, raw events and the final message.
"""

import json
import logging
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Union,
)

import httpx

from ..core.error_classifier import classify_exception, classify_stream_error
from ..core.events import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    ErrorEvent,
    InputJsonDelta,
    MessageDeltaEvent,
    MessageStartEvent,
    MessageStopEvent,
    PingEvent,
    TextDelta,
    parse_stream_event,
)
from ..core.exceptions import MalformedResponseError, ProtocolError
from ..core.types import Message, TextBlock, ToolUseBlock, UnknownBlock
from .sse import aiter_sse, iter_sse

# Set up logger
logger = logging.getLogger(__name__)


class MessageAccumulator:
    """
    Fold stream events into a complete Message

    Events must arrive in protocol order: ``message_start``, then for each
    content block a ``content_block_start``, its deltas and a
    ``content_block_stop``, then ``message_delta`` and ``message_stop``.
    Any violation raises ProtocolError. An accumulator is single-use.
    """

    def __init__(self):
        self._message: Optional[Message] = None
        self._blocks: List[Any] = []
        self._open: List[bool] = []
        self._partial_json: Dict[int, List[str]] = {}
        self._done = False

    @property
    def started(self) -> bool:
        return self._message is not None

    @property
    def done(self) -> bool:
        return self._done

    def add(self, event: Any) -> Optional[Message]:
        """
        Apply one event

        Args:
            event: A parsed stream event

        Returns:
            The partial message after this event, or None before message_start

        Raises:
            ProtocolError: If the event violates the stream protocol
            MalformedResponseError: If a tool_use block's input is not a JSON object
            APIError: The classified error when the event is an ``error`` event
        """
        event_type = getattr(event, "type", type(event).__name__)
        if self._done:
            raise ProtocolError(f"Received '{event_type}' event after message_stop")

        if isinstance(event, ErrorEvent):
            raise classify_stream_error(event.error)
        if isinstance(event, PingEvent):
            return self.snapshot()
        if isinstance(event, MessageStartEvent):
            self._start(event)
            return self.snapshot()

        if not isinstance(
            event,
            (ContentBlockStartEvent, ContentBlockDeltaEvent, ContentBlockStopEvent,
             MessageDeltaEvent, MessageStopEvent),
        ):
            logger.debug(f"Ignoring unknown stream event '{event_type}'")
            return self.snapshot()

        if self._message is None:
            raise ProtocolError(f"Received '{event_type}' event before message_start")

        if isinstance(event, ContentBlockStartEvent):
            self._start_block(event)
        elif isinstance(event, ContentBlockDeltaEvent):
            self._apply_delta(event)
        elif isinstance(event, ContentBlockStopEvent):
            self._stop_block(event)
        elif isinstance(event, MessageDeltaEvent):
            self._apply_message_delta(event)
        else:
            self._stop_message()
        return self.snapshot()

    def snapshot(self) -> Optional[Message]:
        """The message as accumulated so far, None before message_start"""
        if self._message is None:
            return None
        return self._message.model_copy(update={"content": tuple(self._blocks)})

    def final_message(self) -> Message:
        """
        The completed message

        Raises:
            ProtocolError: If message_stop has not been received
        """
        if not self._done:
            raise ProtocolError("Stream ended before message_stop")
        return self.snapshot()

    # ---- event handlers ------------------------------------------------------

    def _start(self, event: MessageStartEvent) -> None:
        if self._message is not None:
            raise ProtocolError("Received a second message_start event")
        self._message = event.message
        self._blocks = list(event.message.content)
        self._open = [False] * len(self._blocks)

    def _start_block(self, event: ContentBlockStartEvent) -> None:
        if event.index != len(self._blocks):
            raise ProtocolError(
                f"content_block_start index {event.index} out of order "
                f"(expected {len(self._blocks)})"
            )
        self._blocks.append(event.content_block)
        self._open.append(True)
        if isinstance(event.content_block, ToolUseBlock):
            self._partial_json[event.index] = []

    def _open_block(self, index: int, event_type: str) -> Any:
        if index >= len(self._blocks):
            raise ProtocolError(f"{event_type} for unknown content block {index}")
        if not self._open[index]:
            raise ProtocolError(f"{event_type} for content block {index}, which is already stopped")
        return self._blocks[index]

    def _apply_delta(self, event: ContentBlockDeltaEvent) -> None:
        block = self._open_block(event.index, "content_block_delta")
        delta = event.delta
        if isinstance(block, UnknownBlock):
            logger.debug(
                f"Ignoring {delta.type} for content block {event.index} of unknown type '{block.type}'"
            )
        elif isinstance(delta, TextDelta):
            if not isinstance(block, TextBlock):
                raise ProtocolError(
                    f"text_delta for content block {event.index} of type '{block.type}'"
                )
            self._blocks[event.index] = block.model_copy(update={"text": block.text + delta.text})
        elif isinstance(delta, InputJsonDelta):
            if not isinstance(block, ToolUseBlock):
                raise ProtocolError(
                    f"input_json_delta for content block {event.index} of type '{block.type}'"
                )
            self._partial_json[event.index].append(delta.partial_json)
        else:
            logger.debug(f"Ignoring unknown delta '{delta.type}' for content block {event.index}")

    def _stop_block(self, event: ContentBlockStopEvent) -> None:
        block = self._open_block(event.index, "content_block_stop")
        if isinstance(block, ToolUseBlock):
            raw = "".join(self._partial_json.pop(event.index, []))
            if raw.strip():
                self._blocks[event.index] = block.model_copy(update={"input": _parse_tool_input(block, raw)})
        self._open[event.index] = False

    def _apply_message_delta(self, event: MessageDeltaEvent) -> None:
        update: Dict[str, Any] = {}
        if event.delta.stop_reason is not None:
            update["stop_reason"] = event.delta.stop_reason
        if event.delta.stop_sequence is not None:
            update["stop_sequence"] = event.delta.stop_sequence
        if event.usage is not None:
            counters = {k: v for k, v in event.usage if v is not None}
            if counters:
                update["usage"] = self._message.usage.model_copy(update=counters)
        if update:
            self._message = self._message.model_copy(update=update)

    def _stop_message(self) -> None:
        still_open = [i for i, is_open in enumerate(self._open) if is_open]
        if still_open:
            raise ProtocolError(f"message_stop while content blocks {still_open} are still open")
        self._done = True


def _parse_tool_input(block: ToolUseBlock, raw: str) -> Dict[str, Any]:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(
            f"Input of tool_use block '{block.id}' is not valid JSON: {e}", body=raw
        ) from e
    if not isinstance(value, dict):
        raise MalformedResponseError(
            f"Input of tool_use block '{block.id}' is not a JSON object", body=raw
        )
    return value


# ---- event sources -----------------------------------------------------------

def iter_stream_events(lines: Iterable[Union[str, bytes]], timeout: Optional[float] = None) -> Iterator[Any]:
    """
    Decode SSE lines into stream events

    Transport failures while reading are raised as classified errors. A line
    that is not valid UTF-8 raises ProtocolError.
    """
    try:
        for sse in iter_sse(lines):
            yield parse_stream_event(sse.data or "{}", sse.event)
    except UnicodeDecodeError as e:
        raise _undecodable_line(e) from e
    except (httpx.HTTPError, OSError) as e:
        raise classify_exception(e, timeout) from e


async def aiter_stream_events(
    lines: AsyncIterable[Union[str, bytes]],
    timeout: Optional[float] = None,
) -> AsyncIterator[Any]:
    """
    Decode async SSE lines into stream events
    """
    try:
        async for sse in aiter_sse(lines):
            yield parse_stream_event(sse.data or "{}", sse.event)
    except UnicodeDecodeError as e:
        raise _undecodable_line(e) from e
    except (httpx.HTTPError, OSError) as e:
        raise classify_exception(e, timeout) from e


def _undecodable_line(error: UnicodeDecodeError) -> ProtocolError:
    raw = bytes(error.object).decode("utf-8", errors="replace")
    return ProtocolError(f"Stream line is not valid UTF-8: {error.reason}", body=raw)


# ---- lazy folds --------------------------------------------------------------

def accumulate(events: Iterable[Any]) -> Iterator[Message]:
    """
    Yield the partial message after every event

    Events before message_start yield nothing. Closing the generator early
    closes the event source.
    """
    accumulator = MessageAccumulator()
    source = iter(events)
    try:
        for event in source:
            snapshot = accumulator.add(event)
            if snapshot is not None:
                yield snapshot
    finally:
        _close(source)


async def aaccumulate(events: AsyncIterable[Any]) -> AsyncIterator[Message]:
    accumulator = MessageAccumulator()
    source = events.__aiter__()
    try:
        async for event in source:
            snapshot = accumulator.add(event)
            if snapshot is not None:
                yield snapshot
    finally:
        await _aclose(source)


def collect_message(events: Iterable[Any]) -> Message:
    """
    Fold every event and return the final message

    Raises:
        ProtocolError: If the events do not form a complete message
    """
    accumulator = MessageAccumulator()
    source = iter(events)
    try:
        for event in source:
            accumulator.add(event)
    finally:
        _close(source)
    return accumulator.final_message()


async def acollect_message(events: AsyncIterable[Any]) -> Message:
    accumulator = MessageAccumulator()
    source = events.__aiter__()
    try:
        async for event in source:
            accumulator.add(event)
    finally:
        await _aclose(source)
    return accumulator.final_message()


def _close(source: Any) -> None:
    close = getattr(source, "close", None)
    if close is not None:
        close()


async def _aclose(source: Any) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is not None:
        await aclose()


# ---- message streams ---------------------------------------------------------

class MessageStream:
    """
    A streamed response

    Iterating yields the partial message after each event; ``text_stream``
    yields text deltas; ``events()`` yields the raw events. All three consume
    the same source, so mix them only to pick up where another left off.
    """

    def __init__(
        self,
        events: Iterable[Any],
        on_message: Optional[Callable[[Message], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            events: Source of parsed stream events
            on_message: Called once with the final message when the stream completes
            on_close: Called once when the stream is closed
        """
        self._source = iter(events)
        self._on_message = on_message
        self._on_close = on_close
        self._accumulator = MessageAccumulator()
        self._closed = False

    @property
    def current_message(self) -> Optional[Message]:
        return self._accumulator.snapshot()

    def events(self) -> Iterator[Any]:
        for event in self._source:
            self._accumulator.add(event)
            if self._accumulator.done and self._on_message is not None:
                self._on_message(self._accumulator.final_message())
            yield event

    def __iter__(self) -> Iterator[Message]:
        for _ in self.events():
            snapshot = self._accumulator.snapshot()
            if snapshot is not None:
                yield snapshot

    @property
    def text_stream(self) -> Iterator[str]:
        for event in self.events():
            if isinstance(event, ContentBlockDeltaEvent) and isinstance(event.delta, TextDelta):
                yield event.delta.text

    def get_final_message(self) -> Message:
        """
        Consume the rest of the stream and return the complete message

        Raises:
            ProtocolError: If the stream ended before message_stop
        """
        for _ in self.events():
            pass
        return self._accumulator.final_message()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            _close(self._source)
        finally:
            if self._on_close is not None:
                self._on_close()

    def __enter__(self) -> "MessageStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class AsyncMessageStream:
    """
    Async counterpart of MessageStream
    """

    def __init__(
        self,
        events: AsyncIterable[Any],
        on_message: Optional[Callable[[Message], None]] = None,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self._source = events.__aiter__()
        self._on_message = on_message
        self._on_close = on_close
        self._accumulator = MessageAccumulator()
        self._closed = False

    @property
    def current_message(self) -> Optional[Message]:
        return self._accumulator.snapshot()

    async def events(self) -> AsyncIterator[Any]:
        async for event in self._source:
            self._accumulator.add(event)
            if self._accumulator.done and self._on_message is not None:
                self._on_message(self._accumulator.final_message())
            yield event

    async def __aiter__(self) -> AsyncIterator[Message]:
        async for _ in self.events():
            snapshot = self._accumulator.snapshot()
            if snapshot is not None:
                yield snapshot

    @property
    async def text_stream(self) -> AsyncIterator[str]:
        async for event in self.events():
            if isinstance(event, ContentBlockDeltaEvent) and isinstance(event.delta, TextDelta):
                yield event.delta.text

    async def get_final_message(self) -> Message:
        async for _ in self.events():
            pass
        return self._accumulator.final_message()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await _aclose(self._source)
        finally:
            if self._on_close is not None:
                await self._on_close()

    async def __aenter__(self) -> "AsyncMessageStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
