import time
from contextlib import contextmanager
from typing import Iterator, Protocol

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram


class MetricsSink(Protocol):
    def increment(self, name: str) -> None: ...

    def timer(self, name: str): ...


class PrometheusMetrics:
    """Counters and timers registered lazily, one collector per metric name."""

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self._registry = registry
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}

    def increment(self, name: str) -> None:
        counter = self._counters.get(name)
        if counter is None:
            # prometheus_client appends _total itself
            base = name[: -len("_total")] if name.endswith("_total") else name
            counter = Counter(base, name.replace("_", " "), registry=self._registry)
            self._counters[name] = counter
        counter.inc()

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        histogram = self._histograms.get(name)
        if histogram is None:
            histogram = Histogram(f"{name}_seconds", name.replace("_", " "), registry=self._registry)
            self._histograms[name] = histogram
        started = time.perf_counter()
        try:
            yield
        finally:
            histogram.observe(time.perf_counter() - started)
