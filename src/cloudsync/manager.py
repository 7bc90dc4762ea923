"""
Task lifecycle management across cooperating service instances.

SyncManager drives the global poll loop. Every poll interval two
independent passes run:

- adoption: list all tasks and start a worker for every enabled task that is
  not yet scheduled in this process, announcing each start on the shared
  started set
- eviction: drain the shared pending-stop set, stopping and deregistering
  the local tasks it names, then drop stopped tasks from the started set

Any instance may request a stop; the instance that consumes the request
stops its local worker. Tasks are not pinned to one process.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

import redis

from utils.metrics import SyncMetrics, default_sync_metrics
from utils.tracing import add_span_attributes, trace_operation

from .errors import (
    CloudSyncError,
    DuplicateTaskNameError,
    FieldCoercionError,
    InvalidPeriodError,
    SignalDecodeError,
    UpstreamError,
)
from .models import CloudSyncTask, RunningTaskState, StartAnnouncement, StopRequest, SyncOutcome
from .period import next_trigger, parse_period
from .registry import TaskRegistry
from .scheduler import SyncScheduler
from .signals import SignalQueue
from .worker import TaskWorker

logger = logging.getLogger(__name__)

ADOPTION_JOB_ID = "cloudsync-adoption"
EVICTION_JOB_ID = "cloudsync-eviction"

SWITCH_STARTED = "started"
SWITCH_ALREADY_RUNNING = "already_running"
SWITCH_STOP_REQUESTED = "stop_requested"


class SyncManager:
    """
    Owns the task registry and the poll loop of one service instance

    Args:
        inventory: InventoryClient
        signals: SignalQueue over the shared store
        reconciler: Object whose ``execute(task)`` runs one reconciliation
        owner_id: Tenant served by this instance
        registry: Task registry (default: a new TaskRegistry)
        scheduler: Poll loop scheduler (default: background SyncScheduler)
        poll_interval_minutes: Interval of both poll loop passes
        signal_pop_timeout: Seconds the eviction pass waits on an empty queue
        metrics: SyncMetrics (default: process-wide metrics)
        seconds_per_minute: Length of a scheduling minute for task workers
        clock: Returns the current local time
    """

    def __init__(
        self,
        inventory,
        signals: SignalQueue,
        reconciler,
        owner_id: str = "0",
        registry: Optional[TaskRegistry] = None,
        scheduler: Optional[SyncScheduler] = None,
        poll_interval_minutes: float = 5,
        signal_pop_timeout: float = 1.0,
        metrics: Optional[SyncMetrics] = None,
        seconds_per_minute: float = 60.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.inventory = inventory
        self.signals = signals
        self.reconciler = reconciler
        self.owner_id = owner_id
        self.registry = registry or TaskRegistry()
        self.scheduler = scheduler or SyncScheduler()
        self.poll_interval_minutes = poll_interval_minutes
        self.signal_pop_timeout = signal_pop_timeout
        self.metrics = metrics or default_sync_metrics()
        self.seconds_per_minute = seconds_per_minute
        self.clock = clock
        self._stopped = threading.Event()

    # ------------------------------------------------------------ lifecycle

    def start(self, block: bool = False, run_immediately: bool = False) -> None:
        """
        Schedule both poll loop passes and start the scheduler

        Args:
            block: Keep the calling thread until shutdown or Ctrl+C
            run_immediately: Run both passes once right away instead of
                waiting for the first interval
        """
        self.scheduler.add_interval_job(
            self.adoption_pass, self.poll_interval_minutes, ADOPTION_JOB_ID,
            run_immediately=run_immediately,
        )
        self.scheduler.add_interval_job(
            self.eviction_pass, self.poll_interval_minutes, EVICTION_JOB_ID,
            run_immediately=run_immediately,
        )
        logger.info(
            f"Cloud sync manager for owner {self.owner_id} polling every "
            f"{self.poll_interval_minutes} minute(s)"
        )
        self.scheduler.start()

        if block:
            try:
                while not self._stopped.wait(1.0):
                    pass
            except KeyboardInterrupt:
                logger.info("Interrupted, shutting down")
                self.shutdown()

    def shutdown(self, join_timeout: float = 0.0) -> None:
        """
        Stop polling and cancel every local task

        Args:
            join_timeout: Seconds to wait for each worker to finish; a worker
                in the middle of a run finishes that run first
        """
        self.scheduler.stop()
        states = self.registry.shutdown()
        if join_timeout > 0:
            for state in states:
                if state.worker is not None:
                    state.worker.join(timeout=join_timeout)
        self.metrics.set_active_tasks(0)
        self._stopped.set()
        logger.info(f"Cloud sync manager stopped {len(states)} task(s)")

    # --------------------------------------------------------- task control

    def _start_task(self, task: CloudSyncTask) -> Optional[RunningTaskState]:
        """
        Register and start a worker for ``task`` unless it is already local

        Raises:
            InvalidPeriodError: If the task period cannot be parsed
        """
        period = parse_period(task.period_type, task.period)
        state = RunningTaskState(
            task_id=task.task_id,
            period=period,
            next_trigger=next_trigger(period, now=self.clock()),
            task=task,
        )

        if not self.registry.register(task.task_id, state):
            return None

        worker = TaskWorker(state, self.reconciler.execute, seconds_per_minute=self.seconds_per_minute)
        state.worker = worker
        worker.start()

        self.metrics.set_active_tasks(len(self.registry))
        return state

    def _stop_local(self, task_id: int) -> bool:
        state = self.registry.remove(task_id)
        if state is None:
            return False
        state.cancel()
        self.metrics.set_active_tasks(len(self.registry))
        return True

    def _announce(self, tasks: list[CloudSyncTask]) -> None:
        if not tasks:
            return
        announcements = [
            StartAnnouncement(task_id=t.task_id, owner_id=self.owner_id, account_admin=t.account_admin)
            for t in tasks
        ]
        try:
            self.signals.announce_start(*announcements)
        except redis.RedisError as e:
            logger.error(f"Announcing {len(tasks)} started task(s) failed: {e}")

    # ------------------------------------------------------ poll loop passes

    def adoption_pass(self) -> list[int]:
        """
        Start every enabled task that is not yet scheduled in this process

        Returns:
            Ids of the tasks started by this pass
        """
        with trace_operation("cloudsync_adoption_pass", owner_id=self.owner_id):
            try:
                records = self.inventory.list_tasks({})
            except UpstreamError as e:
                logger.error(f"Listing cloud sync tasks failed: {e}")
                return []

            started: list[CloudSyncTask] = []
            for record in records:
                try:
                    task = CloudSyncTask.from_record(record)
                except FieldCoercionError as e:
                    logger.error(f"Skipping malformed cloud sync task record: {e}")
                    continue

                if not task.status or task.task_id in self.registry:
                    continue

                try:
                    state = self._start_task(task)
                except InvalidPeriodError as e:
                    logger.error(f"Cannot schedule task {task.task_id}: {e}")
                    continue

                if state is not None:
                    started.append(task)

            self._announce(started)
            add_span_attributes(listed=len(records), started=len(started))

        if started:
            logger.info(f"Adopted {len(started)} cloud sync task(s): {[t.task_id for t in started]}")
        return [t.task_id for t in started]

    def eviction_pass(self) -> list[int]:
        """
        Consume pending stop requests and stop the matching local tasks

        Requests for another owner or for tasks not scheduled here are
        consumed without effect. Malformed requests are logged and skipped.

        Returns:
            Ids of the tasks stopped by this pass
        """
        stopped: list[int] = []

        with trace_operation("cloudsync_eviction_pass", owner_id=self.owner_id):
            while True:
                try:
                    raw = self.signals.take_stop_request(timeout=self.signal_pop_timeout)
                except redis.RedisError as e:
                    logger.error(f"Reading stop requests failed: {e}")
                    break

                if raw is None:
                    break

                try:
                    request = self.signals.decode_stop(raw)
                except SignalDecodeError as e:
                    logger.warning(f"Skipping stop request: {e}")
                    self.metrics.record_stop_signal("malformed")
                    continue

                if request.owner_id != self.owner_id or not self._stop_local(request.task_id):
                    logger.debug(
                        f"Stop request for task {request.task_id} (owner {request.owner_id}) "
                        f"does not match a local task"
                    )
                    self.metrics.record_stop_signal("ignored")
                    continue

                self.metrics.record_stop_signal("stopped")
                stopped.append(request.task_id)
                logger.info(f"Stopped cloud sync task {request.task_id} on request")

                try:
                    self.signals.forget_started(request.task_id)
                except redis.RedisError as e:
                    logger.warning(f"Cannot remove start announcement of task {request.task_id}: {e}")

            try:
                self.signals.compact_started()
            except redis.RedisError as e:
                logger.warning(f"Compacting the started set failed: {e}")

            add_span_attributes(stopped=len(stopped))

        return stopped

    # ------------------------------------------------------------ operations

    def add_task(self, task: CloudSyncTask) -> None:
        """
        Create a cloud sync task after validating it

        Raises:
            InvalidPeriodError: If the period cannot be parsed
            DuplicateTaskNameError: If a task with the same name exists
            InventoryError: If the inventory service fails
        """
        parse_period(task.period_type, task.period)

        if not self.inventory.check_task_name_unique(task.task_name):
            logger.error(f"Add task failed, task name {task.task_name} already exists")
            raise DuplicateTaskNameError(task.task_name)

        self.inventory.create_task(task)
        logger.info(f"Created cloud sync task '{task.task_name}'")

    def _fetch_task(self, task_id: int) -> CloudSyncTask:
        record = self.inventory.get_task(task_id)
        if record is None:
            raise CloudSyncError(f"Cloud sync task {task_id} not found")
        return CloudSyncTask.from_record(record)

    def switch_task(self, task_id: int) -> str:
        """
        Apply the current enabled flag of a task

        An enabled task that is not scheduled here is started and announced;
        a disabled task gets a stop request on the shared queue so whichever
        instance runs it stops it.

        Returns:
            "started", "already_running" or "stop_requested"

        Raises:
            CloudSyncError: If the task does not exist or cannot be read
            InvalidPeriodError: If an enabled task has an invalid period
        """
        task = self._fetch_task(task_id)

        if not task.status:
            self.signals.request_stop(StopRequest(task_id=task_id, owner_id=self.owner_id))
            return SWITCH_STOP_REQUESTED

        if self._start_task(task) is None:
            return SWITCH_ALREADY_RUNNING

        self._announce([task])
        logger.info(f"Started cloud sync task {task_id} on request")
        return SWITCH_STARTED

    def run_once(self, task_id: int) -> SyncOutcome:
        """Execute one reconciliation of a task synchronously."""
        return self.reconciler.execute(self._fetch_task(task_id))
