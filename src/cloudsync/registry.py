"""
Process-wide registry of running cloud sync tasks.

The registry is the single source of truth for "is this task scheduled in
this process". One instance is created at process start and torn down at
shutdown; all operations take the same lock.
"""

import logging
import threading
from typing import Optional

from .models import RunningTaskState

logger = logging.getLogger(__name__)


class TaskRegistry:
    """
    Thread-safe mapping of task id to running task state

    At most one RunningTaskState exists per task id. ``register`` checks and
    inserts under the lock, so concurrent adoption attempts for the same task
    cannot both succeed.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._tasks: dict[int, RunningTaskState] = {}
        self._closed = False

    def register(self, task_id: int, state: RunningTaskState) -> bool:
        """
        Insert a task state if the task is not already registered

        Args:
            task_id: Task identifier
            state: State to register

        Returns:
            True if inserted, False if the task was already present or the
            registry has been shut down
        """
        with self._lock:
            if self._closed:
                logger.warning(f"Registry closed, refusing to register task {task_id}")
                return False
            if task_id in self._tasks:
                return False
            self._tasks[task_id] = state
            return True

    def lookup(self, task_id: int) -> Optional[RunningTaskState]:
        with self._lock:
            return self._tasks.get(task_id)

    def remove(self, task_id: int) -> Optional[RunningTaskState]:
        with self._lock:
            return self._tasks.pop(task_id, None)

    def task_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._tasks

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def shutdown(self) -> list[RunningTaskState]:
        """
        Cancel every registered task and empty the registry

        Returns:
            The states that were registered at shutdown
        """
        with self._lock:
            self._closed = True
            states = list(self._tasks.values())
            self._tasks.clear()

        for state in states:
            state.cancel()

        logger.info(f"Task registry shut down, cancelled {len(states)} task(s)")
        return states
