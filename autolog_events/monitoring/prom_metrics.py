"""
Prometheus metrics for autolog-events
=====================================

- Broadcast counters (events, notify failures and timeouts)
- Liveness sweeper evictions
- Plan extraction failures
- Registered subscriber gauge and broadcast latency histogram

Each AutologMetrics owns a CollectorRegistry unless one is passed in, so any
number of publishers can coexist in one process.
"""

from __future__ import annotations

from typing import Optional
import logging

from prometheus_client import (
    Counter, Gauge, Histogram,
    CollectorRegistry, generate_latest, start_http_server,
)

logger = logging.getLogger(__name__)


class AutologMetrics:
    """Prometheus metrics for one EventPublisher."""

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        metrics_port: int = 8000,
        auto_start_server: bool = False,
    ):
        self.registry = registry if registry is not None else CollectorRegistry()
        self.metrics_port = int(metrics_port)
        self.server_started = False

        self._init_broadcast_metrics()
        self._init_subscriber_metrics()

        if auto_start_server:
            self.start_metrics_server()

    # ------------------------------------------------------------------ init
    def _init_broadcast_metrics(self) -> None:
        self.events_published = Counter(
            "autolog_datasource_events_total",
            "Datasource events broadcast to subscribers",
            ["format"],
            registry=self.registry,
        )
        self.notify_failures = Counter(
            "autolog_notify_failures_total",
            "Subscriber notify() calls that raised",
            registry=self.registry,
        )
        self.notify_timeouts = Counter(
            "autolog_notify_timeouts_total",
            "Subscriber notify() calls abandoned after the notify timeout",
            registry=self.registry,
        )
        self.extraction_failures = Counter(
            "autolog_plan_extraction_failures_total",
            "Query executions whose plan could not be inspected",
            registry=self.registry,
        )
        self.broadcast_duration = Histogram(
            "autolog_broadcast_duration_seconds",
            "Time taken to broadcast one event to all subscribers",
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0],
            registry=self.registry,
        )

    def _init_subscriber_metrics(self) -> None:
        self.registered_subscribers = Gauge(
            "autolog_registered_subscribers",
            "Subscribers currently registered with the publisher",
            registry=self.registry,
        )
        self.evictions = Counter(
            "autolog_subscribers_evicted_total",
            "Subscribers removed by the liveness sweeper",
            registry=self.registry,
        )

    # --------------------------------------------------------------- record
    def record_event(self, data_format: str) -> None:
        self.events_published.labels(format=data_format or "unknown").inc()

    def record_notify_failure(self, timed_out: bool = False) -> None:
        if timed_out:
            self.notify_timeouts.inc()
        else:
            self.notify_failures.inc()

    def record_eviction(self, count: int = 1) -> None:
        if count > 0:
            self.evictions.inc(count)

    def record_extraction_failure(self) -> None:
        self.extraction_failures.inc()

    def set_subscriber_count(self, count: int) -> None:
        self.registered_subscribers.set(count)

    # --------------------------------------------------------------- server
    def start_metrics_server(self, port: Optional[int] = None) -> bool:
        if self.server_started:
            return True
        try:
            start_http_server(int(port or self.metrics_port), registry=self.registry)
            self.server_started = True
            logger.info(f"Autolog metrics server on :{port or self.metrics_port}")
            return True
        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

    def export(self) -> bytes:
        """Current metrics in the Prometheus text exposition format"""
        return generate_latest(self.registry)

    def sample(self, name: str, labels: Optional[dict] = None) -> float:
        """Read one sample value back from the registry (0.0 if never recorded)."""
        value = self.registry.get_sample_value(name, labels or {})
        return float(value) if value is not None else 0.0
