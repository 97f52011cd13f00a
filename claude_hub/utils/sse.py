"""
Server-sent events decoding for Claude Hub

Splits a line stream into events: ``field: value`` lines accumulate until a
blank line dispatches the event, ``:`` lines are comments, and multiple
``data`` lines are joined with ``\\n``.
"""

from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator, List, Optional, Union


@dataclass(frozen=True)
class ServerSentEvent:
    data: str
    event: Optional[str] = None
    id: Optional[str] = None
    retry: Optional[int] = None


class SSEDecoder:
    """
    Incremental line-based SSE decoder

    Feed it one line at a time with ``decode``; it returns an event whenever a
    blank line completes one. ``flush`` returns the event still pending when
    the stream ends without a trailing blank line.
    """

    def __init__(self):
        self._event: Optional[str] = None
        self._data: List[str] = []
        self._id: Optional[str] = None
        self._retry: Optional[int] = None

    def decode(self, line: Union[str, bytes]) -> Optional[ServerSentEvent]:
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        line = line.rstrip("\r\n")

        if not line:
            return self.flush()
        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            if "\0" not in value:
                self._id = value
        elif name == "retry":
            if value.isdigit():
                self._retry = int(value)
        # Unknown field names are ignored
        return None

    def flush(self) -> Optional[ServerSentEvent]:
        if not self._data and self._event is None:
            return None
        event = ServerSentEvent(
            data="\n".join(self._data),
            event=self._event,
            id=self._id,
            retry=self._retry,
        )
        self._event = None
        self._data = []
        self._retry = None
        return event


def iter_sse(lines: Iterable[Union[str, bytes]]) -> Iterator[ServerSentEvent]:
    """
    Decode an iterable of lines into server-sent events
    """
    decoder = SSEDecoder()
    for line in lines:
        event = decoder.decode(line)
        if event is not None:
            yield event
    event = decoder.flush()
    if event is not None:
        yield event


async def aiter_sse(lines: AsyncIterable[Union[str, bytes]]) -> AsyncIterator[ServerSentEvent]:
    """
    Decode an async iterable of lines into server-sent events
    """
    decoder = SSEDecoder()
    async for line in lines:
        event = decoder.decode(line)
        if event is not None:
            yield event
    event = decoder.flush()
    if event is not None:
        yield event
