"""Prometheus metrics for kubesource.

All collectors live in the default prometheus_client registry; the host
bootstrap exposes them when ``KUBESOURCE_METRICS_PORT`` is set.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

adapter_queries_total = Counter(
    "kubesource_adapter_queries_total",
    "Adapter get/list/search calls by outcome.",
    ["kind", "method", "outcome"],
)

adapter_query_duration_seconds = Histogram(
    "kubesource_adapter_query_duration_seconds",
    "Wall time of adapter get/list/search calls, including conversion.",
    ["kind", "method"],
)

adapter_rebuilds_total = Counter(
    "kubesource_adapter_rebuilds_total",
    "Adapter batches built by the namespace reconciliation loop.",
)

adapters_registered = Gauge(
    "kubesource_adapters_registered",
    "Adapters in the batch currently served.",
)

watch_reconnect_failures_total = Counter(
    "kubesource_watch_reconnect_failures_total",
    "Failed attempts to reopen the namespace watch.",
    ["transient"],
)

watch_fatal_total = Counter(
    "kubesource_watch_fatal_total",
    "Transitions of the namespace watcher to FATAL.",
)
