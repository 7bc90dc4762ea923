"""
Unit tests for sync history recording
"""

from datetime import datetime
from unittest.mock import Mock

import pytest

from cloudsync.errors import InventoryError
from cloudsync.models import SYNC_STATUS_FAIL, SYNC_STATUS_SUCCESS, SyncOutcome
from cloudsync.reconcile.history import HistoryRecorder, format_elapsed


class TestFormatElapsed:
    @pytest.mark.parametrize("seconds,expected", [
        (0, "0s"),
        (0.9, "0s"),
        (42, "42s"),
        (59.99, "59s"),
        (60, "1min0s"),
        (75, "1min15s"),
        (3725, "62min5s"),
        (-3, "0s"),
    ])
    def test_format(self, seconds, expected):
        assert format_elapsed(seconds) == expected


class TestHistoryRecorder:
    """Test HistoryRecorder.record"""

    def setup_method(self):
        self.started_at = datetime(2024, 5, 1, 10, 0, 0).timestamp()
        self.inventory = Mock()
        self.recorder = HistoryRecorder(self.inventory, clock=lambda: self.started_at + 75)

    def test_writes_summary_and_history(self):
        outcome = SyncOutcome(task_id=3, new_add=1, attr_changed=2, status=SYNC_STATUS_SUCCESS)

        assert self.recorder.record(outcome, self.started_at) is True

        assert outcome.time_consume == "1min15s"
        assert outcome.start_time == "2024-05-01 10:00:00"

        self.inventory.update_task_summary.assert_called_once_with(3, {
            "bk_last_sync_time": "2024-05-01 10:01:15",
            "bk_sync_status": "success",
            "new_add": 1,
            "attr_changed": 2,
        })
        self.inventory.append_history.assert_called_once_with(outcome.to_history_record())

    def test_records_failures(self):
        outcome = SyncOutcome(task_id=3, status=SYNC_STATUS_FAIL)

        self.recorder.record(outcome, self.started_at)

        entry = self.inventory.append_history.call_args[0][0]
        assert entry["bk_status"] == "fail"

    def test_summary_failure_is_reported_not_raised(self):
        self.inventory.update_task_summary.side_effect = InventoryError("update_task_summary", "down")

        assert self.recorder.record(SyncOutcome(task_id=3), self.started_at) is False
        self.inventory.append_history.assert_not_called()

    def test_history_failure_is_reported_not_raised(self):
        self.inventory.append_history.side_effect = InventoryError("append_history", "down")

        assert self.recorder.record(SyncOutcome(task_id=3), self.started_at) is False
