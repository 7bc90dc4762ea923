"""
Pytest configuration and fixtures for cloud sync tests.
Provides shared fakes for the inventory service, the shared Redis sets and
the cloud provider.
"""

import fnmatch
import os
import threading
from pathlib import Path

import pytest
from prometheus_client import CollectorRegistry

from cloudsync.clients.base import CloudClient, Instance
from cloudsync.models import (
    BK_ACCOUNT_ADMIN,
    BK_ACCOUNT_TYPE,
    BK_ATTR_CONFIRM,
    BK_CONFIRM,
    BK_OBJ_ID,
    BK_PERIOD,
    BK_PERIOD_TYPE,
    BK_STATUS,
    BK_SUPPLIER_ACCOUNT,
    BK_TASK_ID,
    BK_TASK_NAME,
)
from utils.metrics import SyncMetrics


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(autouse=True)
def set_test_env_vars() -> None:
    """Set default test environment variables if not already set."""
    defaults = {
        "INVENTORY_URL": "http://inventory.test/api/v3",
        "REDIS_URL": "redis://localhost:6379/15",
        "VAULT_ADDR": "http://localhost:8200",
        "VAULT_TOKEN": "dev-root-token",
    }

    for key, value in defaults.items():
        if key not in os.environ:
            os.environ[key] = value


class FakeRedis:
    """In-memory stand-in for the redis.Redis set commands the service uses."""

    def __init__(self):
        self.sets: dict[str, set] = {}
        self._lock = threading.Lock()

    def sadd(self, name, *values):
        with self._lock:
            members = self.sets.setdefault(name, set())
            before = len(members)
            members.update(values)
            return len(members) - before

    def spop(self, name):
        with self._lock:
            members = self.sets.get(name)
            if not members:
                return None
            return members.pop()

    def smembers(self, name):
        with self._lock:
            return set(self.sets.get(name, set()))

    def srem(self, name, *values):
        with self._lock:
            members = self.sets.get(name, set())
            removed = len(members & set(values))
            members.difference_update(values)
            return removed

    def sdiffstore(self, dest, keys):
        with self._lock:
            first, *rest = keys
            result = set(self.sets.get(first, set()))
            for key in rest:
                result -= self.sets.get(key, set())
            self.sets[dest] = result
            return len(result)

    def keys(self, pattern="*"):
        return [k for k in self.sets if fnmatch.fnmatch(k, pattern)]


class FakeInventory:
    """In-memory inventory service with the InventoryClient interface."""

    def __init__(self, tasks=None, hosts=None, pending=None, unique=True):
        self.tasks = list(tasks or [])
        self.hosts = list(hosts or [])
        self.pending = list(pending or [])
        self.unique = unique
        self.created_tasks = []
        self.added_hosts = []
        self.updated_hosts = []
        self.confirmations = []
        self.summaries = []
        self.history = []
        self._lock = threading.Lock()

    def check_task_name_unique(self, name):
        return self.unique

    def create_task(self, task):
        self.created_tasks.append(task)

    def list_tasks(self, condition=None):
        condition = condition or {}
        return [t for t in self.tasks if all(t.get(k) == v for k, v in condition.items())]

    def get_task(self, task_id):
        matches = self.list_tasks({BK_TASK_ID: task_id})
        return matches[0] if matches else None

    def update_task_summary(self, task_id, fields):
        with self._lock:
            self.summaries.append((task_id, fields))

    def append_history(self, entry):
        with self._lock:
            self.history.append(entry)

    def list_hosts(self, condition=None):
        return list(self.hosts)

    def update_host(self, host_id, fields):
        self.updated_hosts.append((host_id, fields))

    def add_hosts(self, hosts):
        self.added_hosts.extend(hosts)

    def list_pending_confirmations(self, condition=None):
        return list(self.pending)

    def submit_confirmation(self, confirmation):
        self.confirmations.append(confirmation)


class FakeCloudClient(CloudClient):
    """Cloud client serving fixed instances per region."""

    def __init__(self, instances_by_region):
        self.instances_by_region = instances_by_region

    def list_regions(self):
        return list(self.instances_by_region)

    def list_instances(self, region):
        return list(self.instances_by_region[region])


def task_record(task_id=1, period_type="minute", period="", status=True, owner="0", **overrides):
    """Raw inventory record of a cloud sync task."""
    record = {
        BK_TASK_ID: task_id,
        BK_TASK_NAME: f"task-{task_id}",
        BK_SUPPLIER_ACCOUNT: owner,
        BK_PERIOD_TYPE: period_type,
        BK_PERIOD: period,
        BK_STATUS: status,
        BK_ACCOUNT_TYPE: "tencent_cloud",
        BK_ACCOUNT_ADMIN: "admin",
        BK_OBJ_ID: "host",
        BK_ATTR_CONFIRM: False,
        BK_CONFIRM: False,
    }
    record.update(overrides)
    return record


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def fake_inventory() -> FakeInventory:
    return FakeInventory()


@pytest.fixture
def sync_metrics() -> SyncMetrics:
    """SyncMetrics on an isolated registry."""
    return SyncMetrics(registry=CollectorRegistry())


@pytest.fixture
def cloud_instance():
    """Factory for cloud instances."""
    def make(inner_ip, outer_ip="", os_name="CentOS 7.9", instance_id=None):
        return Instance(
            os_name=os_name,
            private_ips=[inner_ip] if inner_ip else [],
            public_ips=[outer_ip] if outer_ip else [],
            instance_id=instance_id or f"ins-{inner_ip}",
        )
    return make
