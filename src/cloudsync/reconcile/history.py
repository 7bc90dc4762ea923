"""
Sync history recording.

Runs after every reconciliation, successful or not, and writes the task's
last-sync summary plus one history row.
"""

import logging
import time
from datetime import datetime
from typing import Callable

from ..errors import UpstreamError
from ..models import TIME_LAYOUT, SyncOutcome

logger = logging.getLogger(__name__)


def format_elapsed(seconds: float) -> str:
    """
    Format a run duration

    Example:
        >>> format_elapsed(75)
        '1min15s'
        >>> format_elapsed(42)
        '42s'
    """
    total = max(int(seconds), 0)
    if total >= 60:
        return f"{total // 60}min{total % 60}s"
    return f"{total}s"


class HistoryRecorder:
    """
    Writes reconciliation outcomes to the inventory service

    Args:
        inventory: InventoryClient (or anything with update_task_summary and
            append_history)
        clock: Returns the current time as epoch seconds
    """

    def __init__(self, inventory, clock: Callable[[], float] = time.time):
        self.inventory = inventory
        self.clock = clock

    def record(self, outcome: SyncOutcome, started_at: float) -> bool:
        """
        Finalize timing fields on ``outcome`` and persist it

        The outcome status must already be set. Write failures are logged and
        reported, never raised: the run itself is over.

        Returns:
            True if both the summary update and the history row were written
        """
        finished_at = self.clock()
        outcome.time_consume = format_elapsed(finished_at - started_at)
        outcome.start_time = datetime.fromtimestamp(started_at).strftime(TIME_LAYOUT)

        summary = {
            "bk_last_sync_time": datetime.fromtimestamp(finished_at).strftime(TIME_LAYOUT),
            "bk_sync_status": outcome.status,
            "new_add": outcome.new_add,
            "attr_changed": outcome.attr_changed,
        }

        try:
            self.inventory.update_task_summary(outcome.task_id, summary)
        except UpstreamError as e:
            logger.error(f"Update of task {outcome.task_id} sync summary failed: {e}")
            return False

        try:
            self.inventory.append_history(outcome.to_history_record())
        except UpstreamError as e:
            logger.error(f"Adding sync history for task {outcome.task_id} failed: {e}")
            return False

        logger.info(
            f"Task {outcome.task_id} sync {outcome.status} in {outcome.time_consume}: "
            f"new={outcome.new_add}, changed={outcome.attr_changed}"
        )
        return True
