"""
Integration tests for the cloud sync flow.

Two service instances share one in-memory signal store and one inventory.
Workers run on real threads with a shortened scheduling minute so that
task firings, reconciliation and history writes happen within the test.
"""

import time

import pytest

from cloudsync.manager import SyncManager
from cloudsync.models import StartAnnouncement, StopRequest
from cloudsync.reconcile import CloudSyncReconciler
from cloudsync.signals import STARTED_SET, SignalQueue
from conftest import FakeCloudClient, FakeInventory, task_record

pytestmark = pytest.mark.integration

# 5-minute tasks fire every 10ms
FAST = 0.002


def wait_for(condition, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


@pytest.fixture
def inventory():
    return FakeInventory(
        tasks=[task_record(1), task_record(2, bk_confirm=True)],
        hosts=[{
            "bk_host_id": 11,
            "bk_host_innerip": "10.0.0.1",
            "bk_host_outerip": "1.1.1.1",
            "bk_os_name": "A",
        }],
    )


@pytest.fixture
def cloud(cloud_instance):
    return FakeCloudClient({
        "ap-guangzhou": [
            cloud_instance("10.0.0.1", outer_ip="1.1.1.1", os_name="B"),
            cloud_instance("10.0.0.2", outer_ip="2.2.2.2", os_name="A"),
        ],
    })


@pytest.fixture
def instances(inventory, cloud, fake_redis, sync_metrics):
    created = []

    def make():
        reconciler = CloudSyncReconciler(
            inventory,
            cloud_client_factory=lambda task: cloud,
            metrics=sync_metrics,
        )
        manager = SyncManager(
            inventory,
            SignalQueue(fake_redis, poll_interval=0.001),
            reconciler,
            signal_pop_timeout=0,
            metrics=sync_metrics,
            seconds_per_minute=FAST,
        )
        created.append(manager)
        return manager

    yield make

    for manager in created:
        manager.shutdown(join_timeout=2.0)


def test_adopted_tasks_reconcile_and_record_history(instances, inventory):
    manager = instances()

    assert manager.adoption_pass() == [1, 2]

    assert wait_for(lambda: {h["bk_task_id"] for h in inventory.history} == {1, 2})
    manager.shutdown(join_timeout=2.0)

    by_task = {}
    for entry in inventory.history:
        by_task.setdefault(entry["bk_task_id"], entry)
    assert by_task[1]["bk_status"] == "success"
    assert by_task[1]["new_add"] == 1
    assert by_task[1]["attr_changed"] == 1

    # Task 1 applies directly, task 2 queues its new host for confirmation
    assert any(h["bk_host_innerip"] == "10.0.0.2" for h in inventory.added_hosts)
    assert any(host_id == 11 for host_id, _ in inventory.updated_hosts)
    assert any(c["bk_host_innerip"] == "10.0.0.2" and c["bk_task_id"] == 2 for c in inventory.confirmations)


def test_stop_request_from_another_instance(instances, fake_redis):
    serving = instances()
    controller = instances()

    serving.adoption_pass()
    worker = serving.registry.lookup(1).worker

    controller.signals.request_stop(StopRequest(task_id=1, owner_id="0"))
    assert serving.eviction_pass() == [1]

    worker.join(timeout=2.0)
    assert not worker.is_alive()
    assert serving.registry.task_ids() == [2]
    announced = {StartAnnouncement.from_json(m).task_id for m in fake_redis.smembers(STARTED_SET)}
    assert announced == {2}


def test_disabled_task_is_not_adopted(instances, inventory):
    inventory.tasks[1]["bk_status"] = False
    manager = instances()

    assert manager.adoption_pass() == [1]
    assert wait_for(lambda: len(inventory.history) > 0)
    assert {h["bk_task_id"] for h in inventory.history} == {1}


def test_running_task_finishes_before_stopping(instances, inventory):
    manager = instances()
    manager.adoption_pass()
    assert wait_for(lambda: manager.registry.lookup(1).worker.runs > 0)

    manager.signals.request_stop(StopRequest(task_id=1, owner_id="0"))
    state = manager.registry.lookup(1)
    manager.eviction_pass()
    state.worker.join(timeout=2.0)

    runs = state.worker.runs
    entries = [h for h in inventory.history if h["bk_task_id"] == 1]
    assert len(entries) == runs
