"""
Metrics for cloud sync task scheduling and reconciliation.

Tracks reconciliation runs, detected host changes, confirmation traffic,
and the number of tasks scheduled in this process.
"""

import logging
from typing import Optional

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
    REGISTRY,
)

logger = logging.getLogger(__name__)


class SyncMetrics:
    """
    Metrics for cloud sync runs

    Tracks run outcomes, durations, host changes and signal traffic.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize cloud sync metrics

        Args:
            registry: Custom Prometheus registry (default: global REGISTRY)
        """
        self.registry = registry or REGISTRY

        self.runs_total = Counter(
            "cloudsync_runs_total",
            "Total number of cloud sync reconciliation runs",
            ["status"],
            registry=self.registry,
        )

        self.run_duration_seconds = Histogram(
            "cloudsync_run_duration_seconds",
            "Duration of cloud sync reconciliation runs in seconds",
            buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1800),
            registry=self.registry,
        )

        self.hosts_detected_total = Counter(
            "cloudsync_hosts_detected_total",
            "Hosts detected as new or changed by reconciliation",
            ["kind"],
            registry=self.registry,
        )

        self.confirmations_submitted_total = Counter(
            "cloudsync_confirmations_submitted_total",
            "Confirmation requests submitted for operator review",
            ["resource_type"],
            registry=self.registry,
        )

        self.active_tasks = Gauge(
            "cloudsync_active_tasks",
            "Number of cloud sync tasks scheduled in this process",
            registry=self.registry,
        )

        self.stop_signals_total = Counter(
            "cloudsync_stop_signals_total",
            "Stop signals consumed from the pending-stop queue",
            ["result"],  # stopped, ignored, malformed
            registry=self.registry,
        )

    def record_run(self, success: bool, duration: float, new_add: int, attr_changed: int) -> None:
        """
        Record a finished reconciliation run

        Args:
            success: Whether the run completed successfully
            duration: Duration in seconds
            new_add: Number of newly discovered hosts
            attr_changed: Number of hosts with changed attributes
        """
        status = "success" if success else "fail"
        self.runs_total.labels(status=status).inc()
        self.run_duration_seconds.observe(duration)
        if new_add:
            self.hosts_detected_total.labels(kind="new").inc(new_add)
        if attr_changed:
            self.hosts_detected_total.labels(kind="changed").inc(attr_changed)

        logger.debug(
            f"Recorded cloud sync run: status={status}, duration={duration:.2f}s, "
            f"new={new_add}, changed={attr_changed}"
        )

    def record_confirmations(self, resource_type: str, count: int) -> None:
        if count:
            self.confirmations_submitted_total.labels(resource_type=resource_type).inc(count)

    def record_stop_signal(self, result: str) -> None:
        self.stop_signals_total.labels(result=result).inc()

    def set_active_tasks(self, count: int) -> None:
        self.active_tasks.set(count)
