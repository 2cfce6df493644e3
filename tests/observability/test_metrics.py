from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter

from perplexity_chat.observability.metrics import (
    CounterCollector,
    PrometheusUsageSink,
    UsageSink,
    get_metrics,
)


def _fresh_counter() -> tuple[CollectorRegistry, Counter]:
    registry = CollectorRegistry()
    counter = Counter(
        "perplexity_usage_tokens_total",
        "Total tokens reported by Perplexity chat completions",
        ["model", "type"],
        registry=registry,
    )
    return registry, counter


class TestCounterCollector:
    def test_keeps_emission_order_and_sums(self) -> None:
        sink = CounterCollector()

        sink.counter("usage.prompt.tokens", 5)
        sink.counter("usage.total.tokens", 6)
        sink.counter("usage.prompt.tokens", 2)

        assert [r.name for r in sink.records] == [
            "usage.prompt.tokens",
            "usage.total.tokens",
            "usage.prompt.tokens",
        ]
        assert sink.as_dict() == {"usage.prompt.tokens": 7, "usage.total.tokens": 6}

    def test_is_a_usage_sink(self) -> None:
        assert isinstance(CounterCollector(), UsageSink)


class TestPrometheusUsageSink:
    def test_increments_labelled_counter(self) -> None:
        registry, counter = _fresh_counter()
        sink = PrometheusUsageSink("sonar", counter=counter)

        sink.counter("usage.prompt.tokens", 5)
        sink.counter("usage.completion.tokens", 1)
        sink.counter("usage.total.tokens", 6)

        def sample(token_type: str) -> float | None:
            return registry.get_sample_value(
                "perplexity_usage_tokens_total", {"model": "sonar", "type": token_type}
            )

        assert sample("prompt") == 5.0
        assert sample("completion") == 1.0
        assert sample("total") == 6.0

    def test_ignores_unknown_and_zero(self) -> None:
        registry, counter = _fresh_counter()
        sink = PrometheusUsageSink("sonar", counter=counter)

        sink.counter("usage.cached.tokens", 3)
        sink.counter("usage.prompt.tokens", 0)

        assert (
            registry.get_sample_value(
                "perplexity_usage_tokens_total", {"model": "sonar", "type": "prompt"}
            )
            is None
        )

    def test_default_registry_exposition(self) -> None:
        assert b"perplexity_usage_tokens" in get_metrics()
