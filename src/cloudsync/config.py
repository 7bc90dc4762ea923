"""
Service configuration.

Settings come from the environment; CLI flags override individual values.
"""

import os
from dataclasses import dataclass, replace
from typing import Optional

DEFAULT_POLL_INTERVAL_MINUTES = 5


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {value!r}")


@dataclass(frozen=True)
class SyncSettings:
    """
    Runtime settings of a sync service instance

    Environment variables:
        INVENTORY_URL: Inventory service API root (required to serve)
        REDIS_URL: Shared signal store (default: redis://localhost:6379/0)
        CLOUDSYNC_OWNER_ID: Tenant served by this instance (default: "0")
        POLL_INTERVAL_MINUTES: Global poll loop interval (default: 5)
        SIGNAL_POP_TIMEOUT: Seconds to wait for a stop signal per pop (default: 1)
        INVENTORY_TIMEOUT: Inventory request timeout in seconds (default: 10)
        METRICS_PORT: Prometheus port, 0 disables the server (default: 9091)
        OTLP_ENDPOINT: OpenTelemetry collector endpoint (default: none)
    """

    inventory_url: str = ""
    redis_url: str = "redis://localhost:6379/0"
    owner_id: str = "0"
    poll_interval_minutes: float = DEFAULT_POLL_INTERVAL_MINUTES
    signal_pop_timeout: float = 1.0
    inventory_timeout: float = 10.0
    metrics_port: int = 9091
    otlp_endpoint: Optional[str] = None

    @classmethod
    def from_env(cls) -> "SyncSettings":
        return cls(
            inventory_url=os.getenv("INVENTORY_URL", ""),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            owner_id=os.getenv("CLOUDSYNC_OWNER_ID", "0"),
            poll_interval_minutes=_env_float("POLL_INTERVAL_MINUTES", DEFAULT_POLL_INTERVAL_MINUTES),
            signal_pop_timeout=_env_float("SIGNAL_POP_TIMEOUT", 1.0),
            inventory_timeout=_env_float("INVENTORY_TIMEOUT", 10.0),
            metrics_port=int(_env_float("METRICS_PORT", 9091)),
            otlp_endpoint=os.getenv("OTLP_ENDPOINT") or None,
        )

    def override(self, **values) -> "SyncSettings":
        """Copy with every non-None value in ``values`` applied."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})

    def validate(self) -> None:
        if not self.inventory_url:
            raise ValueError("Inventory URL not configured. Set INVENTORY_URL or pass --inventory-url.")
        if self.poll_interval_minutes <= 0:
            raise ValueError("Poll interval must be positive")
        if self.signal_pop_timeout < 0:
            raise ValueError("Signal pop timeout cannot be negative")
