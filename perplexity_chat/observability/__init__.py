"""Observability module for usage telemetry."""

from perplexity_chat.observability.metrics import (
    USAGE_TOKENS,
    CounterCollector,
    CounterRecord,
    PrometheusUsageSink,
    UsageSink,
    get_metrics,
)

__all__ = [
    "USAGE_TOKENS",
    "CounterCollector",
    "CounterRecord",
    "PrometheusUsageSink",
    "UsageSink",
    "get_metrics",
]
