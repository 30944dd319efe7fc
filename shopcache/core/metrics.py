"""
Cache Metrics

Prometheus counters for read-through cache outcomes and rebuild activity.
Metrics live on a dedicated registry so several clients can coexist in one
process (and in tests).
"""

from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


class CacheMetrics:
    """Prometheus metrics for a cache client instance."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.prom_cache_lookups_total = Counter(
            "shopcache_lookups_total",
            "Cache lookups by strategy and outcome",
            ["strategy", "outcome"],
            registry=self.registry,
        )
        self.prom_fallback_calls_total = Counter(
            "shopcache_fallback_calls_total",
            "Backing store reads issued through a fallback",
            ["strategy"],
            registry=self.registry,
        )
        self.prom_rebuilds_total = Counter(
            "shopcache_rebuilds_total",
            "Asynchronous rebuild tasks by result",
            ["result"],
            registry=self.registry,
        )
        self.prom_rebuild_duration_seconds = Histogram(
            "shopcache_rebuild_duration_seconds",
            "Time spent in asynchronous rebuild tasks",
            buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )

    def record_lookup(self, strategy: str, outcome: str) -> None:
        self.prom_cache_lookups_total.labels(strategy=strategy, outcome=outcome).inc()

    def record_fallback(self, strategy: str) -> None:
        self.prom_fallback_calls_total.labels(strategy=strategy).inc()

    def record_rebuild(self, result: str, duration_seconds: float) -> None:
        self.prom_rebuilds_total.labels(result=result).inc()
        self.prom_rebuild_duration_seconds.observe(duration_seconds)

    def lookup_count(self, strategy: str, outcome: str) -> float:
        """Current value of a lookup counter."""
        value = self.registry.get_sample_value(
            "shopcache_lookups_total", {"strategy": strategy, "outcome": outcome}
        )
        return value or 0.0

    def rebuild_count(self, result: str) -> float:
        """Current value of a rebuild counter."""
        value = self.registry.get_sample_value(
            "shopcache_rebuilds_total", {"result": result}
        )
        return value or 0.0

    def snapshot(self) -> Dict[str, float]:
        """Flatten counter samples into a name -> value mapping."""
        samples: Dict[str, float] = {}
        for metric in self.registry.collect():
            for sample in metric.samples:
                if not sample.name.endswith("_total"):
                    continue
                labels = ",".join(f"{k}={v}" for k, v in sorted(sample.labels.items()))
                samples[f"{sample.name}{{{labels}}}"] = sample.value
        return samples

    def export(self) -> bytes:
        """Render metrics in the Prometheus text exposition format."""
        return generate_latest(self.registry)
