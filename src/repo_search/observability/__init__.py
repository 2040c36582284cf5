"""Logging, metrics and tracing for repo-search."""

from repo_search.observability.logging import JsonFormatter, configure_logging
from repo_search.observability.metrics import (
    INDEX_DOC_COUNT,
    SEARCH_LATENCY,
    SNAPSHOT_OPERATIONS,
    MetricBridge,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    track_latency,
)
from repo_search.observability.tracing import (
    bind_log_context,
    create_span,
    current_trace_ids,
    get_tracer,
    init_tracing,
)


__all__ = [
    "INDEX_DOC_COUNT",
    "SEARCH_LATENCY",
    "SNAPSHOT_OPERATIONS",
    "JsonFormatter",
    "MetricBridge",
    "bind_log_context",
    "configure_logging",
    "create_span",
    "current_trace_ids",
    "get_metrics",
    "get_metrics_content_type",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "track_latency",
]
