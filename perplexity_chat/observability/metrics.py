"""Usage telemetry sinks for Perplexity chat completions.

Token usage is side-channel telemetry: the response processor emits it to a
``UsageSink`` passed in by the caller instead of returning it.

Usage:
    from perplexity_chat.observability.metrics import CounterCollector

    sink = CounterCollector()
    result = await task.run(usage_sink=sink)
    sink.as_dict()  # {"usage.prompt.tokens": 5, ...}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from prometheus_client import CollectorRegistry, Counter, generate_latest

logger = logging.getLogger(__name__)

# Custom registry to avoid conflicts with the default one
REGISTRY = CollectorRegistry()

USAGE_TOKENS = Counter(
    "perplexity_usage_tokens_total",
    "Total tokens reported by Perplexity chat completions",
    ["model", "type"],
    registry=REGISTRY,
)

# usage.prompt.tokens -> prompt
_TOKEN_TYPE_BY_COUNTER = {
    "usage.prompt.tokens": "prompt",
    "usage.completion.tokens": "completion",
    "usage.total.tokens": "total",
}


@runtime_checkable
class UsageSink(Protocol):
    """Emit-only destination for numeric usage counters."""

    def counter(self, name: str, value: int) -> None: ...


@dataclass(frozen=True, slots=True)
class CounterRecord:
    name: str
    value: int


@dataclass(slots=True)
class CounterCollector:
    """In-memory sink keeping counters in emission order."""

    records: list[CounterRecord] = field(default_factory=list)

    def counter(self, name: str, value: int) -> None:
        self.records.append(CounterRecord(name=name, value=value))

    def as_dict(self) -> dict[str, int]:
        """Sum counters by name."""
        totals: dict[str, int] = {}
        for record in self.records:
            totals[record.name] = totals.get(record.name, 0) + record.value
        return totals


class PrometheusUsageSink:
    """Sink incrementing ``perplexity_usage_tokens_total`` for one model."""

    def __init__(self, model: str, counter: Counter = USAGE_TOKENS) -> None:
        self._model = model
        self._counter = counter

    def counter(self, name: str, value: int) -> None:
        token_type = _TOKEN_TYPE_BY_COUNTER.get(name)
        if token_type is None:
            logger.debug("unknown_usage_counter", extra={"counter": name})
            return
        if value > 0:
            self._counter.labels(model=self._model, type=token_type).inc(value)


def get_metrics() -> bytes:
    """Generate Prometheus metrics in text format."""
    return generate_latest(REGISTRY)
