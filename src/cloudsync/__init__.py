"""
Cloud host inventory synchronization

Keeps an internal host inventory in step with the hosts reported by a cloud
provider. Each tenant-owned task runs on its own daily, hourly or
five-minute schedule, across several cooperating service instances that
coordinate task starts and stops over shared Redis sets.

Components:
- manager: global poll loop (task adoption and stop-signal eviction)
- worker: per-task timer-or-cancellation loop
- period: next-trigger calculation
- registry: in-process table of running tasks
- signals: cross-instance start/stop signaling
- reconcile: cloud vs. inventory diff and apply/confirm policy
- clients: inventory service and cloud provider clients
"""

from .errors import (
    CloudProviderError,
    CloudSyncError,
    DuplicateTaskNameError,
    FieldCoercionError,
    InvalidPeriodError,
    InventoryError,
    SignalDecodeError,
    UpstreamError,
)
from .manager import SyncManager
from .models import CloudSyncTask, HostRecord, SyncOutcome
from .period import next_trigger, parse_period
from .registry import TaskRegistry
from .signals import SignalQueue

__version__ = "1.0.0"

__all__ = [
    "SyncManager",
    "TaskRegistry",
    "SignalQueue",
    "CloudSyncTask",
    "HostRecord",
    "SyncOutcome",
    "parse_period",
    "next_trigger",
    "CloudSyncError",
    "DuplicateTaskNameError",
    "InvalidPeriodError",
    "UpstreamError",
    "InventoryError",
    "CloudProviderError",
    "FieldCoercionError",
    "SignalDecodeError",
]
