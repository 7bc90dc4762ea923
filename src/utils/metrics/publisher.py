"""
Metrics publisher for Prometheus HTTP server.

Starts the HTTP server that exposes the service metrics on /metrics and
publishes application metadata.
"""

import logging
import time
from typing import Optional

from prometheus_client import (
    start_http_server,
    Gauge,
    Info,
    CollectorRegistry,
    REGISTRY,
)

logger = logging.getLogger(__name__)


class MetricsPublisher:
    """Starts an HTTP server that exposes metrics on /metrics."""

    def __init__(
        self,
        port: int = 9091,
        registry: Optional[CollectorRegistry] = None,
    ):
        """
        Initialize metrics publisher

        Args:
            port: Port to expose metrics on (default: 9091)
            registry: Custom Prometheus registry (default: global REGISTRY)
        """
        self.port = port
        self.registry = registry or REGISTRY
        self._server_started = False

    def start(self) -> None:
        """Start the metrics HTTP server"""
        if self._server_started:
            logger.warning(f"Metrics server already running on port {self.port}")
            return

        try:
            start_http_server(self.port, registry=self.registry)
        except OSError as e:
            logger.error(f"Cannot start metrics server on port {self.port}: {e}")
            raise RuntimeError(
                f"Metrics server port {self.port} is unavailable: {e}"
            ) from e

        self._server_started = True
        logger.info(f"Metrics server started on port {self.port}")

    def is_started(self) -> bool:
        return self._server_started


class ApplicationInfo:
    """Application name/version info and process uptime."""

    def __init__(
        self,
        app_name: str = "cloud-host-sync",
        version: str = "1.0.0",
        owner_id: str = "0",
        registry: Optional[CollectorRegistry] = None,
    ):
        self.registry = registry or REGISTRY

        self.info = Info(
            "cloudsync_application",
            "Application metadata",
            registry=self.registry,
        )
        self.info.info({
            "name": app_name,
            "version": version,
            "owner_id": owner_id,
        })

        self._start_time = time.time()

        self.uptime_seconds = Gauge(
            "cloudsync_uptime_seconds",
            "Application uptime in seconds",
            registry=self.registry,
        )
        self.uptime_seconds.set_function(self.get_uptime)

    def get_uptime(self) -> float:
        return time.time() - self._start_time
