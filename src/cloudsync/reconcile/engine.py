"""
Reconciliation engine for one cloud sync task run.

A run fetches the inventory hosts of the task's object type and the cloud
hosts visible to the task's credentials, diffs them by inner IP, and either
applies the differences or queues them for operator confirmation:

- with neither confirm policy set, new hosts are created and changed hosts
  are updated directly
- with "confirm new" set, new hosts are submitted as ``new_add``
  confirmations (hosts already waiting in the queue are not submitted again)
- with "confirm attribute-change" set, changed hosts are submitted as
  ``change`` confirmations

Setting either policy holds back all direct writes, so with only one of them
set the other kind of difference is neither written nor queued.

A run that only queued confirmations still finishes with status ``success``.
The first failing step aborts the run with status ``fail``. Nothing is
retried and hosts already created or updated are not rolled back. A history
entry is written on every path.
"""

import logging
import time
from typing import Callable, Optional

from opentelemetry import trace

from utils.logging import ContextLogger
from utils.metrics import SyncMetrics, default_sync_metrics
from utils.tracing import add_span_attributes, add_span_event, trace_operation

from ..clients.credentials import CloudClientFactory, tencent_client_factory
from ..errors import CloudSyncError
from ..models import (
    BK_OBJ_ID,
    RESOURCE_TYPE_CHANGE,
    RESOURCE_TYPE_NEW_ADD,
    SYNC_STATUS_FAIL,
    SYNC_STATUS_SUCCESS,
    CloudSyncTask,
    ConfirmationRequest,
    HostRecord,
    SyncOutcome,
)
from .diff import filter_pending, find_changed_hosts, find_new_hosts, index_existing
from .history import HistoryRecorder

logger = logging.getLogger(__name__)


class CloudSyncReconciler:
    """
    Executes reconciliation runs

    Args:
        inventory: InventoryClient
        cloud_client_factory: Builds the cloud client for a task
            (default: Tencent Cloud with Vault-aware credential resolution)
        recorder: History recorder (default: HistoryRecorder(inventory))
        metrics: SyncMetrics (default: process-wide metrics)
        clock: Returns the current time as epoch seconds
    """

    def __init__(
        self,
        inventory,
        cloud_client_factory: Optional[CloudClientFactory] = None,
        recorder: Optional[HistoryRecorder] = None,
        metrics: Optional[SyncMetrics] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.inventory = inventory
        self.cloud_client_factory = cloud_client_factory or tencent_client_factory()
        self.clock = clock
        self.recorder = recorder or HistoryRecorder(inventory, clock=clock)
        self.metrics = metrics or default_sync_metrics()

    def execute(self, task: CloudSyncTask) -> SyncOutcome:
        """
        Run one reconciliation for ``task``

        Never raises for run-level failures; they are reported through the
        returned outcome and the history entry.

        Returns:
            The recorded outcome
        """
        log = ContextLogger(__name__, task_id=task.task_id, owner_id=task.owner_id)
        outcome = SyncOutcome(task_id=task.task_id, obj_id=task.obj_id)
        started_at = self.clock()

        try:
            with trace_operation(
                "cloud_sync",
                kind=trace.SpanKind.INTERNAL,
                task_id=task.task_id,
                owner_id=task.owner_id,
                obj_id=task.obj_id,
            ):
                self._reconcile(task, outcome, log)
                add_span_attributes(new_add=outcome.new_add, attr_changed=outcome.attr_changed)
            outcome.status = SYNC_STATUS_SUCCESS

        except CloudSyncError as e:
            outcome.status = SYNC_STATUS_FAIL
            outcome.error = str(e)
            log.error(f"Cloud sync of task {task.task_id} failed: {e}")

        except Exception as e:
            outcome.status = SYNC_STATUS_FAIL
            outcome.error = f"{type(e).__name__}: {e}"
            log.error(f"Unexpected error in cloud sync of task {task.task_id}: {e}", exc_info=True)

        finally:
            duration = self.clock() - started_at
            self.recorder.record(outcome, started_at)
            self.metrics.record_run(
                success=outcome.succeeded,
                duration=duration,
                new_add=outcome.new_add,
                attr_changed=outcome.attr_changed,
            )

        return outcome

    def _reconcile(self, task: CloudSyncTask, outcome: SyncOutcome, log: ContextLogger) -> None:
        existing = index_existing(self.inventory.list_hosts({BK_OBJ_ID: task.obj_id}))
        add_span_event("inventory_hosts_listed", count=len(existing))

        cloud_hosts = self.cloud_client_factory(task).list_hosts()
        add_span_event("cloud_hosts_listed", count=len(cloud_hosts))

        new_hosts = find_new_hosts(cloud_hosts, existing)
        changed_hosts = find_changed_hosts(cloud_hosts, existing)

        outcome.new_add = len(new_hosts)
        outcome.attr_changed = len(changed_hosts)

        log.info(
            f"Task {task.task_id}: {len(cloud_hosts)} cloud host(s), {len(existing)} known, "
            f"{len(new_hosts)} new, {len(changed_hosts)} changed"
        )

        if task.resource_confirm:
            # Only hosts actually queued count; a failure partway records 0
            outcome.new_add = 0
            outcome.new_add = self._confirm_new_hosts(task, new_hosts)

        if task.attr_confirm and changed_hosts:
            self._submit(task, changed_hosts, RESOURCE_TYPE_CHANGE)

        if not task.resource_confirm and not task.attr_confirm:
            if new_hosts:
                self.inventory.add_hosts([host.attributes() for host in new_hosts])
            for host in changed_hosts:
                self.inventory.update_host(host.host_id, host.attributes())

    def _confirm_new_hosts(self, task: CloudSyncTask, new_hosts: list[HostRecord]) -> int:
        """
        Queue new hosts for confirmation, skipping ones already queued

        Returns:
            Number of hosts newly queued
        """
        if not new_hosts:
            return 0

        pending = self.inventory.list_pending_confirmations({})
        to_submit = filter_pending(new_hosts, pending)

        skipped = len(new_hosts) - len(to_submit)
        if skipped:
            logger.debug(f"Task {task.task_id}: {skipped} new host(s) already awaiting confirmation")

        self._submit(task, to_submit, RESOURCE_TYPE_NEW_ADD)
        return len(to_submit)

    def _submit(self, task: CloudSyncTask, hosts: list[HostRecord], resource_type: str) -> None:
        for host in hosts:
            request = ConfirmationRequest.for_host(task, host, resource_type)
            self.inventory.submit_confirmation(request.to_record())
        self.metrics.record_confirmations(resource_type, len(hosts))
