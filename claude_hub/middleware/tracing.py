from __future__ import annotations
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

DEFAULT_TRACER_NAME = "claude_hub"


def _set_attributes(span: Any, attributes: Optional[Dict[str, Any]]) -> None:
    for k, v in (attributes or {}).items():
        # OpenTelemetry only accepts primitives (and sequences of them) as attributes
        if v is None:
            continue
        if not isinstance(v, (str, bool, int, float)):
            v = str(v)
        span.set_attribute(k, v)


def _record_failure(span: Any, error: BaseException) -> None:
    span.record_exception(error)
    span.set_status(Status(StatusCode.ERROR, str(error)))
    kind = getattr(error, "kind", None)
    if kind is not None:
        span.set_attribute("claude_hub.error_kind", kind.value)


@asynccontextmanager
async def traced_span(
    enabled: bool,
    name: str,
    attributes: Optional[Dict[str, Any]] = None,
    tracer_name: str = DEFAULT_TRACER_NAME,
) -> AsyncIterator[None]:
    if not enabled:
        yield
        return
    tracer = trace.get_tracer(tracer_name)
    with tracer.start_as_current_span(name, record_exception=False, set_status_on_exception=False) as span:
        _set_attributes(span, attributes)
        try:
            yield
        except Exception as e:
            _record_failure(span, e)
            raise


@contextmanager
def traced_span_sync(
    enabled: bool,
    name: str,
    attributes: Optional[Dict[str, Any]] = None,
    tracer_name: str = DEFAULT_TRACER_NAME,
) -> Iterator[None]:
    if not enabled:
        yield
        return
    tracer = trace.get_tracer(tracer_name)
    with tracer.start_as_current_span(name, record_exception=False, set_status_on_exception=False) as span:
        _set_attributes(span, attributes)
        try:
            yield
        except Exception as e:
            _record_failure(span, e)
            raise
