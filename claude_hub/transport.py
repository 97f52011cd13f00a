"""
HTTP transport for Claude Hub

Thin wrappers over httpx that send JSON bodies and open streaming responses.
Transport errors are raised as-is; the clients classify them.
"""

from __future__ import annotations
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Iterator, Mapping, Optional

import httpx


def _lower(headers: httpx.Headers) -> Dict[str, str]:
    return {k.lower(): v for k, v in headers.items()}


@dataclass(frozen=True)
class TransportResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class StreamResponse:
    """An open streaming response; the body is read line by line"""

    def __init__(self, response: httpx.Response):
        self._response = response
        self.status = response.status_code
        self.headers = _lower(response.headers)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def iter_lines(self) -> Iterator[str]:
        return self._response.iter_lines()

    def read(self) -> bytes:
        return self._response.read()


class AsyncStreamResponse:
    def __init__(self, response: httpx.Response):
        self._response = response
        self.status = response.status_code
        self.headers = _lower(response.headers)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def aiter_lines(self) -> AsyncIterator[str]:
        return self._response.aiter_lines()

    async def aread(self) -> bytes:
        return await self._response.aread()


class HTTPTransport:
    """
    Blocking transport backed by ``httpx.Client``

    A client passed in by the caller is used as-is and never closed here.
    """

    def __init__(self, base_url: str, timeout: Optional[float] = None, client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._request_timeout = timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT
        self._owns_client = client is None
        self.client = client if client is not None else httpx.Client(timeout=timeout)

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def send(self, path: str, body: Dict[str, Any], headers: Mapping[str, str]) -> TransportResponse:
        response = self.client.post(self.url(path), json=body, headers=dict(headers), timeout=self._request_timeout)
        return TransportResponse(response.status_code, _lower(response.headers), response.content)

    @contextmanager
    def open_stream(self, path: str, body: Dict[str, Any], headers: Mapping[str, str]) -> Iterator[StreamResponse]:
        with self.client.stream(
            "POST", self.url(path), json=body, headers=dict(headers), timeout=self._request_timeout
        ) as response:
            yield StreamResponse(response)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()


class AsyncHTTPTransport:
    """
    Async transport backed by ``httpx.AsyncClient``
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._request_timeout = timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT
        self._owns_client = client is None
        self.client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def send(self, path: str, body: Dict[str, Any], headers: Mapping[str, str]) -> TransportResponse:
        response = await self.client.post(self.url(path), json=body, headers=dict(headers), timeout=self._request_timeout)
        return TransportResponse(response.status_code, _lower(response.headers), response.content)

    @asynccontextmanager
    async def open_stream(
        self, path: str, body: Dict[str, Any], headers: Mapping[str, str]
    ) -> AsyncIterator[AsyncStreamResponse]:
        async with self.client.stream(
            "POST", self.url(path), json=body, headers=dict(headers), timeout=self._request_timeout
        ) as response:
            yield AsyncStreamResponse(response)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
