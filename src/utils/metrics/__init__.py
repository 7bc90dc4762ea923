"""
Prometheus metrics for the cloud host sync service

Usage:
    from utils.metrics import initialize_metrics

    metrics = initialize_metrics(port=9091)
    metrics["sync"].record_run(success=True, duration=12.5, new_add=3, attr_changed=1)
"""

import logging
import threading
from typing import Any

from prometheus_client import CollectorRegistry

from .publisher import ApplicationInfo, MetricsPublisher
from .sync import SyncMetrics

logger = logging.getLogger(__name__)

_default_sync_metrics: SyncMetrics | None = None
_default_lock = threading.Lock()


def default_sync_metrics() -> SyncMetrics:
    """
    SyncMetrics bound to the global registry, created once per process

    Prometheus refuses to register the same metric name twice on a registry,
    so every component that is not handed explicit metrics shares this one.
    """
    global _default_sync_metrics

    with _default_lock:
        if _default_sync_metrics is None:
            _default_sync_metrics = SyncMetrics()
        return _default_sync_metrics


def initialize_metrics(
    port: int = 9091,
    registry: CollectorRegistry | None = None,
    owner_id: str = "0",
) -> dict[str, Any]:
    """
    Initialize all metrics and start the metrics server

    Args:
        port: Port to expose metrics on (default: 9091)
        registry: Custom Prometheus registry (default: global REGISTRY)
        owner_id: Tenant served by this process

    Returns:
        Dictionary with "publisher", "sync" and "app_info"
    """
    logger.info(f"Initializing metrics on port {port}")

    publisher = MetricsPublisher(port=port, registry=registry)
    publisher.start()

    sync = SyncMetrics(registry=registry) if registry is not None else default_sync_metrics()

    return {
        "publisher": publisher,
        "sync": sync,
        "app_info": ApplicationInfo(owner_id=owner_id, registry=registry),
    }


__all__ = [
    "MetricsPublisher",
    "SyncMetrics",
    "ApplicationInfo",
    "initialize_metrics",
    "default_sync_metrics",
]
