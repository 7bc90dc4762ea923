"""
Per-task scheduler: one worker thread per running cloud sync task.

The worker alternates between WAITING (timer armed) and RUNNING (a
reconciliation executing synchronously). A stop request on the task's
cancellation token moves it to STOPPED at the next wait point; a
reconciliation that is already running always completes first.
"""

import enum
import logging
import threading
from typing import Any, Callable

from utils.logging import ContextLogger

from .models import RunningTaskState
from .period import describe, rearm_interval

logger = logging.getLogger(__name__)


class WorkerState(enum.Enum):
    """Lifecycle of a task worker. There is no paused state."""

    WAITING = "waiting"
    RUNNING = "running"
    STOPPED = "stopped"


class TaskWorker(threading.Thread):
    """
    Timer-or-cancellation loop for a single task

    Args:
        state: Registered running state; its token is the cancellation token
        reconcile: Callable executed with the task snapshot on every firing
        seconds_per_minute: Length of a scheduling minute; tests shrink it
    """

    def __init__(
        self,
        state: RunningTaskState,
        reconcile: Callable[[Any], Any],
        seconds_per_minute: float = 60.0,
    ):
        super().__init__(name=f"cloudsync-task-{state.task_id}", daemon=True)
        self.task_state = state
        self.reconcile = reconcile
        self.seconds_per_minute = seconds_per_minute
        self.runs = 0
        self._state = WorkerState.WAITING
        self._state_lock = threading.Lock()
        self.log = ContextLogger(
            __name__,
            task_id=state.task_id,
            owner_id=state.task.owner_id,
        )

    @property
    def state(self) -> WorkerState:
        with self._state_lock:
            return self._state

    def _set_state(self, value: WorkerState) -> None:
        with self._state_lock:
            self._state = value

    @property
    def next_trigger(self) -> int:
        return self.task_state.next_trigger

    def stop(self) -> None:
        """Request termination; takes effect at the next wait point."""
        self.task_state.cancel()

    def run(self) -> None:
        state = self.task_state
        period = state.period
        self.log.info(
            f"Cloud sync task {state.task_id} scheduled {describe(period)}, "
            f"first run in {state.next_trigger} minute(s)"
        )

        while True:
            self._set_state(WorkerState.WAITING)
            if state.token.wait(timeout=state.next_trigger * self.seconds_per_minute):
                break

            self._set_state(WorkerState.RUNNING)
            try:
                self.reconcile(state.task)
            except Exception as e:
                # The run has already written its own fail history.
                self.log.error(f"Cloud sync run for task {state.task_id} raised: {e}", exc_info=True)
            self.runs += 1

            state.next_trigger = rearm_interval(period)

        self._set_state(WorkerState.STOPPED)
        self.log.info(f"Stopped cloud sync task {state.task_id} after {self.runs} run(s)")
