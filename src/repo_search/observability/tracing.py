"""OpenTelemetry tracing helpers for index, query and snapshot operations."""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, Tracer


logger = logging.getLogger(__name__)

# Extra attributes (e.g. the corpus being served) attached to every log line.
log_context: ContextVar[dict[str, str] | None] = ContextVar("log_context", default=None)

_tracer_holder: dict[str, Any] = {"tracer": None, "provider": None}


def init_tracing(
    service_name: str = "repo-search",
    resource_attributes: dict[str, str] | None = None,
) -> TracerProvider:
    """Install a tracer provider; exporters are left to the host application."""
    provider = _tracer_holder.get("provider")
    if isinstance(provider, TracerProvider):
        return provider

    attributes = {"service.name": service_name}
    if resource_attributes:
        attributes.update(resource_attributes)
    provider = TracerProvider(resource=Resource.create(attributes))
    trace.set_tracer_provider(provider)
    _tracer_holder["provider"] = provider
    _tracer_holder["tracer"] = trace.get_tracer(__name__)
    logger.info("Tracing initialized for service: %s", service_name)
    return provider


def get_tracer() -> Tracer:
    """Return the module tracer, falling back to the global provider."""
    if _tracer_holder["tracer"] is None:
        _tracer_holder["tracer"] = trace.get_tracer(__name__)
    return _tracer_holder["tracer"]  # type: ignore[return-value]


def current_trace_ids() -> dict[str, str]:
    """Return hex trace/span ids of the active span, or an empty dict."""
    ctx = trace.get_current_span().get_span_context()
    if not ctx.is_valid:
        return {}
    return {"trace_id": format(ctx.trace_id, "032x"), "span_id": format(ctx.span_id, "016x")}


@contextmanager
def bind_log_context(**values: str) -> Generator[None, None, None]:
    """Attach key/value pairs to log records emitted inside the block."""
    token = log_context.set({**(log_context.get() or {}), **values})
    try:
        yield
    finally:
        log_context.reset(token)


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Open a span and mark it as failed if the block raises."""
    with get_tracer().start_as_current_span(name, kind=kind, record_exception=False) as span:
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.record_exception(exc)
            raise
