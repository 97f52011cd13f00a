from __future__ import annotations
import logging
import random
from contextlib import ExitStack, contextmanager
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Union

import httpx

from .client import (
    COUNT_TOKENS_PATH,
    MESSAGES_PATH,
    OpenedStream,
    _resolve_config,
    build_middleware,
    count_tokens_payload,
    request_payload,
)
from .config import HubConfig
from .core.error_classifier import classify_exception, classify_response
from .core.request_builder import ChatRequestBuilder
from .core.types import ChatRequest, CountTokensRequest, Message, TokenCount, parse_json_body, parse_model
from .middleware.tracing import traced_span_sync
from .transport import HTTPTransport, TransportResponse
from .usage import UsageTotals
from .utils.streaming import MessageStream, iter_stream_events

# Set up logger
logger = logging.getLogger(__name__)


class ClaudeHubSync:
    """
    Blocking counterpart of ClaudeHub
    """

    def __init__(
        self,
        cfg: Optional[HubConfig] = None,
        *,
        http_client: Optional[httpx.Client] = None,
        sleep: Optional[Callable[[float], None]] = None,
        rng: Optional[random.Random] = None,
        **overrides: Any,
    ):
        self.cfg = _resolve_config(cfg, overrides)
        self.transport = HTTPTransport(self.cfg.base_url, self.cfg.timeout, client=http_client)
        self.usage = UsageTotals()
        self.middleware = build_middleware(self.cfg, sleep=sleep, rng=rng)

    def chat_builder(self) -> ChatRequestBuilder:
        return ChatRequestBuilder(
            model=self.cfg.model,
            max_tokens=self.cfg.max_tokens,
            temperature=self.cfg.temperature,
            top_p=self.cfg.top_p,
            top_k=self.cfg.top_k,
        )

    # ---- sync core -----------------------------------------------------------

    def create_message(self, request: Union[ChatRequest, ChatRequestBuilder]) -> Message:
        payload = request_payload(self.cfg, request)
        attributes = {"model": payload["model"], "max_tokens": payload["max_tokens"]}
        with traced_span_sync(self.cfg.enable_tracing, "claude.create_message.sync", attributes, self.cfg.tracer_name):
            response = self._apply_middleware(self._post_once)(MESSAGES_PATH, payload, self.cfg.headers())
            message = parse_model(Message, parse_json_body(response.body))
        self._record_usage(message)
        return message

    @contextmanager
    def stream(self, request: Union[ChatRequest, ChatRequestBuilder]) -> Iterator[MessageStream]:
        payload = request_payload(self.cfg, request, stream=True)
        attributes = {"model": payload["model"], "max_tokens": payload["max_tokens"]}
        with traced_span_sync(self.cfg.enable_tracing, "claude.stream.sync", attributes, self.cfg.tracer_name):
            opened = self._apply_middleware(self._open_stream_once)(MESSAGES_PATH, payload, self.cfg.headers())
            with opened.stack:
                stream = MessageStream(
                    iter_stream_events(opened.response.iter_lines(), self.cfg.timeout),
                    on_message=self._record_usage,
                )
                try:
                    yield stream
                finally:
                    stream.close()

    def count_tokens(self, request: Union[ChatRequest, CountTokensRequest]) -> TokenCount:
        payload = count_tokens_payload(self.cfg, request)
        with traced_span_sync(self.cfg.enable_tracing, "claude.count_tokens.sync", {"model": payload["model"]}, self.cfg.tracer_name):
            response = self._apply_middleware(self._post_once)(COUNT_TOKENS_PATH, payload, self.cfg.headers())
            return parse_model(TokenCount, parse_json_body(response.body))

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "ClaudeHubSync":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ---- single attempts -----------------------------------------------------

    def _post_once(self, path: str, payload: Dict[str, Any], headers: Mapping[str, str]) -> TransportResponse:
        try:
            response = self.transport.send(path, payload, headers)
        except (httpx.HTTPError, OSError) as e:
            raise classify_exception(e, self.cfg.timeout) from e
        if not response.ok:
            raise classify_response(response.status, response.headers, response.body)
        return response

    def _open_stream_once(self, path: str, payload: Dict[str, Any], headers: Mapping[str, str]) -> OpenedStream:
        stack = ExitStack()
        try:
            response = stack.enter_context(self.transport.open_stream(path, payload, headers))
            if not response.ok:
                body = response.read()
                raise classify_response(response.status, response.headers, body)
        except (httpx.HTTPError, OSError) as e:
            stack.close()
            raise classify_exception(e, self.cfg.timeout) from e
        except BaseException:
            stack.close()
            raise
        return OpenedStream(response, stack)

    # ---- utils ---------------------------------------------------------------

    def _apply_middleware(self, func: Callable) -> Callable:
        result_func = func
        for middleware in reversed(self.middleware):
            result_func = middleware.wrap(result_func)
        return result_func

    def _record_usage(self, message: Message) -> None:
        self.usage.add(message.model, message.usage)
