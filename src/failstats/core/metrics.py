"""
Prometheus metrics collection.

In-process counters for reporting cycles; exposed over HTTP only when a
metrics port is configured.
"""

from datetime import datetime
from typing import Optional

import structlog
from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram, Info, start_http_server

from .. import __version__

logger = structlog.get_logger(__name__)


class MetricsCollector:
    """
    Centralized metrics collection for the agent.

    A registry can be injected so tests do not share the global one.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else REGISTRY

        self.agent_info = Info(
            "failstats_agent",
            "failstats agent information",
            registry=self.registry,
        )
        self.agent_info.info({"version": __version__})

        # Cycle metrics
        self.cycles_total = Counter(
            "failstats_cycles_total",
            "Reporting cycles by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.cycle_duration = Histogram(
            "failstats_cycle_duration_seconds",
            "Reporting cycle duration in seconds",
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0],
            registry=self.registry,
        )

        self.log_files_scanned = Histogram(
            "failstats_log_files_scanned",
            "Log files opened per cycle",
            buckets=[1, 2, 3, 5, 10, 25],
            registry=self.registry,
        )

        # Reporting metrics
        self.bans_reported_total = Counter(
            "failstats_bans_reported_total",
            "Bans acknowledged by the collector",
            registry=self.registry,
        )

        self.collector_requests_total = Counter(
            "failstats_collector_requests_total",
            "Uploads to the collector by result",
            ["result"],
            registry=self.registry,
        )

        self.watermark_timestamp = Gauge(
            "failstats_watermark_timestamp_seconds",
            "Unix time of the persisted watermark",
            registry=self.registry,
        )

        logger.debug("Metrics collector initialized")

    def record_cycle(self, outcome: str, duration_seconds: float, files_scanned: int) -> None:
        self.cycles_total.labels(outcome=outcome).inc()
        self.cycle_duration.observe(duration_seconds)
        self.log_files_scanned.observe(files_scanned)

    def record_upload(self, success: bool, bans: int = 0) -> None:
        self.collector_requests_total.labels(result="success" if success else "failure").inc()
        if success:
            self.bans_reported_total.inc(bans)

    def record_watermark(self, watermark: datetime) -> None:
        self.watermark_timestamp.set(watermark.timestamp())


def start_metrics_server(port: int, registry: Optional[CollectorRegistry] = None) -> None:
    """Expose metrics on the given port."""
    start_http_server(port, registry=registry if registry is not None else REGISTRY)
    logger.info("Metrics exporter started", port=port)
