from __future__ import annotations
import logging
import random
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional, Union

import httpx

from .config import HubConfig
from .core.error_classifier import classify_exception, classify_response
from .core.exceptions import ConfigurationError, InvalidRequestError
from .core.middleware.request_logging import RequestLoggingMiddleware
from .core.middleware.retry import RetryMiddleware
from .core.request_builder import ChatRequestBuilder
from .core.types import ChatRequest, CountTokensRequest, Message, TokenCount, parse_json_body, parse_model
from .middleware.tracing import traced_span
from .transport import AsyncHTTPTransport, TransportResponse
from .usage import UsageTotals
from .utils.streaming import AsyncMessageStream, aiter_stream_events

# Set up logger
logger = logging.getLogger(__name__)

MESSAGES_PATH = "/v1/messages"
COUNT_TOKENS_PATH = "/v1/messages/count_tokens"


def build_middleware(
    cfg: HubConfig,
    sleep: Optional[Callable[[float], None]] = None,
    async_sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    rng: Optional[random.Random] = None,
) -> List[Any]:
    # First entry is the outermost wrapper: retries see every logged attempt
    middleware: List[Any] = [RetryMiddleware(cfg.retry, sleep=sleep, async_sleep=async_sleep, rng=rng)]
    if cfg.log_requests or cfg.log_responses:
        middleware.append(
            RequestLoggingMiddleware(
                log_requests=cfg.log_requests,
                log_responses=cfg.log_responses,
                log_headers=cfg.log_headers,
                log_body=cfg.log_body,
            )
        )
    return middleware


def request_payload(cfg: HubConfig, request: Union[ChatRequest, ChatRequestBuilder], stream: bool = False) -> Dict[str, Any]:
    """
    JSON body for a chat request, with configured defaults filled in

    Raises:
        InvalidRequestError: If the request is not a ChatRequest or lacks model/max_tokens
    """
    if isinstance(request, ChatRequestBuilder):
        request = request.build()
    if not isinstance(request, ChatRequest):
        raise InvalidRequestError(f"Expected a ChatRequest, got {type(request).__name__}")
    payload = request.to_payload(cfg.model, cfg.max_tokens, stream=stream)
    for name in ("temperature", "top_p", "top_k"):
        value = getattr(cfg, name)
        if value is not None and name not in payload:
            payload[name] = value
    return payload


def count_tokens_payload(cfg: HubConfig, request: Union[ChatRequest, CountTokensRequest]) -> Dict[str, Any]:
    if isinstance(request, ChatRequest):
        request = CountTokensRequest.from_chat_request(request)
    if not isinstance(request, CountTokensRequest):
        raise InvalidRequestError(f"Expected a ChatRequest or CountTokensRequest, got {type(request).__name__}")
    return request.to_payload(cfg.model)


def _resolve_config(cfg: Optional[HubConfig], overrides: Dict[str, Any]) -> HubConfig:
    if cfg is not None and overrides:
        raise ConfigurationError("Pass either a HubConfig or keyword settings, not both")
    if cfg is None:
        try:
            cfg = HubConfig(**overrides)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
    return cfg.resolved()


class OpenedStream:
    """A streaming response that answered 2xx, plus the stack that releases it"""

    def __init__(self, response: Any, stack: Any):
        self.response = response
        self.stack = stack
        self.status = response.status
        self.headers = response.headers


class ClaudeHub:
    """
    Async client for the Messages API:
      - create_message(request)
      - stream(request)
      - count_tokens(request)
      - chat_builder() for requests seeded with the configured defaults
    """

    def __init__(
        self,
        cfg: Optional[HubConfig] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        rng: Optional[random.Random] = None,
        **overrides: Any,
    ):
        """
        Args:
            cfg: Client configuration (or pass HubConfig fields as keywords)
            http_client: httpx client to send requests with; not closed by this client
            sleep: Coroutine used for retry waits (defaults to asyncio.sleep)
            rng: Random source for retry jitter

        Raises:
            ConfigurationError: If the configuration is invalid or no API key is available
        """
        self.cfg = _resolve_config(cfg, overrides)
        self.transport = AsyncHTTPTransport(self.cfg.base_url, self.cfg.timeout, client=http_client)
        self.usage = UsageTotals()
        self.middleware = build_middleware(self.cfg, async_sleep=sleep, rng=rng)

    def chat_builder(self) -> ChatRequestBuilder:
        return ChatRequestBuilder(
            model=self.cfg.model,
            max_tokens=self.cfg.max_tokens,
            temperature=self.cfg.temperature,
            top_p=self.cfg.top_p,
            top_k=self.cfg.top_k,
        )

    # ---- core APIs -----------------------------------------------------------

    async def create_message(self, request: Union[ChatRequest, ChatRequestBuilder]) -> Message:
        payload = request_payload(self.cfg, request)
        attributes = {"model": payload["model"], "max_tokens": payload["max_tokens"]}
        async with traced_span(self.cfg.enable_tracing, "claude.create_message", attributes, self.cfg.tracer_name):
            response = await self._apply_middleware(self._post_once)(MESSAGES_PATH, payload, self.cfg.headers())
            message = parse_model(Message, parse_json_body(response.body))
        self._record_usage(message)
        return message

    @asynccontextmanager
    async def stream(self, request: Union[ChatRequest, ChatRequestBuilder]) -> AsyncIterator[AsyncMessageStream]:
        """
        Open a streamed response

        Only opening the stream is retried; errors after that reach the
        consumer. The HTTP response is released when the block exits.

        Example:
            async with hub.stream(request) as stream:
                async for text in stream.text_stream:
                    print(text, end="")
                message = await stream.get_final_message()
        """
        payload = request_payload(self.cfg, request, stream=True)
        attributes = {"model": payload["model"], "max_tokens": payload["max_tokens"]}
        async with traced_span(self.cfg.enable_tracing, "claude.stream", attributes, self.cfg.tracer_name):
            opened = await self._apply_middleware(self._open_stream_once)(MESSAGES_PATH, payload, self.cfg.headers())
            async with opened.stack:
                stream = AsyncMessageStream(
                    aiter_stream_events(opened.response.aiter_lines(), self.cfg.timeout),
                    on_message=self._record_usage,
                )
                try:
                    yield stream
                finally:
                    await stream.aclose()

    async def count_tokens(self, request: Union[ChatRequest, CountTokensRequest]) -> TokenCount:
        payload = count_tokens_payload(self.cfg, request)
        async with traced_span(self.cfg.enable_tracing, "claude.count_tokens", {"model": payload["model"]}, self.cfg.tracer_name):
            response = await self._apply_middleware(self._post_once)(COUNT_TOKENS_PATH, payload, self.cfg.headers())
            return parse_model(TokenCount, parse_json_body(response.body))

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> "ClaudeHub":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ---- single attempts -----------------------------------------------------

    async def _post_once(self, path: str, payload: Dict[str, Any], headers: Mapping[str, str]) -> TransportResponse:
        try:
            response = await self.transport.send(path, payload, headers)
        except (httpx.HTTPError, OSError) as e:
            raise classify_exception(e, self.cfg.timeout) from e
        if not response.ok:
            raise classify_response(response.status, response.headers, response.body)
        return response

    async def _open_stream_once(self, path: str, payload: Dict[str, Any], headers: Mapping[str, str]) -> OpenedStream:
        stack = AsyncExitStack()
        try:
            response = await stack.enter_async_context(self.transport.open_stream(path, payload, headers))
            if not response.ok:
                body = await response.aread()
                raise classify_response(response.status, response.headers, body)
        except (httpx.HTTPError, OSError) as e:
            await stack.aclose()
            raise classify_exception(e, self.cfg.timeout) from e
        except BaseException:
            await stack.aclose()
            raise
        return OpenedStream(response, stack)

    # ---- utils ---------------------------------------------------------------

    def _apply_middleware(self, func: Callable) -> Callable:
        """
        Wrap a single-attempt function in the middleware stack

        The first middleware in the list is the outermost.
        """
        result_func = func
        for middleware in reversed(self.middleware):
            result_func = middleware.wrap(result_func)
        return result_func

    def _record_usage(self, message: Message) -> None:
        self.usage.add(message.model, message.usage)
        logger.debug(
            f"Usage for {message.model}: {message.usage.input_tokens} in, "
            f"{message.usage.output_tokens} out"
        )
