"""
Prometheus metrics for grant store operations.

Counts store operations, token lookups by kind and outcome, and grants
removed by expiry sweeps. Every collector owns its registry so that
several stores can live in one process.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


logger = logging.getLogger(__name__)


@dataclass
class MetricConfig:
    """Configuration for metrics collection."""

    enabled: bool = True
    namespace: str = "grantstore"


class StoreMetrics:
    """Metrics collector for authorization store operations."""

    def __init__(self, config: Optional[MetricConfig] = None,
                 registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics collector.

        Args:
            config: Metrics configuration
            registry: Registry to register into, a private one by default
        """
        self.config = config or MetricConfig()
        self.registry = registry or CollectorRegistry()

        if not self.config.enabled:
            logger.info("Metrics collection disabled")
            return

        ns = self.config.namespace
        self.operations = Counter(
            f"{ns}_operations_total",
            "Total number of store operations",
            ["operation", "status"],
            registry=self.registry,
        )
        self.operation_latency = Histogram(
            f"{ns}_operation_duration_seconds",
            "Store operation duration in seconds",
            ["operation"],
            buckets=[0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
            registry=self.registry,
        )
        self.token_lookups = Counter(
            f"{ns}_token_lookups_total",
            "Token lookups by matched kind and outcome",
            ["kind", "outcome"],
            registry=self.registry,
        )
        self.grants_swept = Counter(
            f"{ns}_grants_swept_total",
            "Grants removed by expiry sweeps",
            registry=self.registry,
        )

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def record_operation(self, operation: str, status: str, duration: float = 0.0) -> None:
        if not self.enabled:
            return
        self.operations.labels(operation=operation, status=status).inc()
        self.operation_latency.labels(operation=operation).observe(duration)

    @contextmanager
    def track(self, operation: str):
        """Time an operation and count it as success or error."""
        start = time.perf_counter()
        status = "success"
        try:
            yield
        except Exception:
            status = "error"
            raise
        finally:
            self.record_operation(operation, status, time.perf_counter() - start)

    def record_lookup(self, kind: str, hit: bool) -> None:
        if not self.enabled:
            return
        self.token_lookups.labels(kind=kind, outcome="hit" if hit else "miss").inc()

    def record_sweep(self, deleted: int) -> None:
        if not self.enabled or deleted <= 0:
            return
        self.grants_swept.inc(deleted)

    def get_value(self, name: str, **labels) -> float:
        """Read a sample value from the registry, 0.0 when absent."""
        value = self.registry.get_sample_value(name, labels or None)
        return value or 0.0

    def export(self) -> bytes:
        """Text exposition of all collected metrics."""
        return generate_latest(self.registry)
