"""
Unit tests for the cloud sync data model

Tests verify:
- Typed coercion of raw inventory records
- Task, host and confirmation wire forms
- Signal message encoding and decoding
"""

import json

import pytest

from cloudsync.errors import FieldCoercionError, SignalDecodeError
from cloudsync.models import (
    BK_ATTR_CONFIRM,
    BK_CONFIRM,
    BK_HOST_ID,
    BK_HOST_INNERIP,
    BK_RESOURCE_TYPE,
    BK_SOURCE_TYPE,
    BK_TASK_ID,
    RESOURCE_TYPE_CHANGE,
    RESOURCE_TYPE_NEW_ADD,
    SYNC_STATUS_FAIL,
    SYNC_STATUS_SUCCESS,
    CloudSyncTask,
    ConfirmationRequest,
    HostRecord,
    RunningTaskState,
    StartAnnouncement,
    StopRequest,
    SyncOutcome,
    coerce_bool,
    coerce_int,
    coerce_str,
)
from cloudsync.period import EveryFiveMinutes
from conftest import task_record


class TestCoercion:
    """Test coerce_* helpers"""

    def test_coerce_str(self):
        assert coerce_str({"a": "x"}, "a") == "x"

    def test_coerce_str_missing_required(self):
        with pytest.raises(FieldCoercionError) as exc_info:
            coerce_str({}, "a")
        assert exc_info.value.field == "a"

    def test_coerce_str_missing_optional(self):
        assert coerce_str({}, "a", required=False) == ""
        assert coerce_str({"a": None}, "a", required=False) == ""

    def test_coerce_str_wrong_type(self):
        with pytest.raises(FieldCoercionError) as exc_info:
            coerce_str({"a": 5}, "a")
        assert exc_info.value.expected == "str"

    @pytest.mark.parametrize("value,expected", [(7, 7), ("12", 12), (" 3 ", 3), (4.0, 4)])
    def test_coerce_int(self, value, expected):
        assert coerce_int({"n": value}, "n") == expected

    @pytest.mark.parametrize("value", [True, "abc", 1.5, [1], None])
    def test_coerce_int_rejects(self, value):
        with pytest.raises(FieldCoercionError):
            coerce_int({"n": value}, "n")

    def test_coerce_bool(self):
        assert coerce_bool({"b": True}, "b") is True
        assert coerce_bool({"b": "false"}, "b") is False
        assert coerce_bool({"b": "TRUE"}, "b") is True
        assert coerce_bool({}, "b", default=True) is True

    def test_coerce_bool_rejects(self):
        with pytest.raises(FieldCoercionError):
            coerce_bool({"b": "yes"}, "b")


class TestCloudSyncTask:
    """Test CloudSyncTask record conversion"""

    def test_from_record(self):
        task = CloudSyncTask.from_record(
            task_record(task_id="7", period_type="hour", period="15", bk_confirm=True)
        )

        assert task.task_id == 7
        assert task.task_name == "task-7"
        assert task.period_type == "hour"
        assert task.period == "15"
        assert task.status is True
        assert task.resource_confirm is True
        assert task.attr_confirm is False
        assert task.obj_id == "host"

    def test_from_record_missing_id(self):
        record = task_record()
        del record[BK_TASK_ID]

        with pytest.raises(FieldCoercionError):
            CloudSyncTask.from_record(record)

    def test_from_record_bad_flag(self):
        with pytest.raises(FieldCoercionError) as exc_info:
            CloudSyncTask.from_record(task_record(bk_attr_confirm="maybe"))
        assert exc_info.value.field == BK_ATTR_CONFIRM

    def test_missing_status_means_disabled(self):
        record = task_record()
        del record["bk_status"]

        assert CloudSyncTask.from_record(record).status is False

    def test_to_record_round_trip_fields(self):
        task = CloudSyncTask.from_record(task_record(task_id=3, bk_credential_path="cloud/prod"))
        record = task.to_record()

        assert record[BK_TASK_ID] == 3
        assert record["bk_credential_path"] == "cloud/prod"
        assert CloudSyncTask.from_record(record) == task

    def test_new_task_has_no_id(self):
        task = CloudSyncTask(task_id=0, task_name="t", owner_id="0", period_type="minute", period="")
        assert BK_TASK_ID not in task.to_record()


class TestHostRecord:
    """Test HostRecord"""

    def test_from_inventory_record(self):
        host = HostRecord.from_record({
            "bk_host_id": 11,
            "bk_host_innerip": "10.0.0.1",
            "bk_host_outerip": "1.1.1.1",
            "bk_os_name": "A",
        })

        assert host == HostRecord(inner_ip="10.0.0.1", outer_ip="1.1.1.1", os_name="A", host_id=11)

    def test_inventory_record_requires_id(self):
        with pytest.raises(FieldCoercionError):
            HostRecord.from_record({"bk_host_innerip": "10.0.0.1"})

    def test_without_id(self):
        host = HostRecord.from_record({"bk_host_innerip": "10.0.0.1"}, with_id=False)
        assert host.host_id is None
        assert host.outer_ip == ""

    def test_attributes_exclude_id(self):
        host = HostRecord(inner_ip="10.0.0.1", host_id=4)

        assert BK_HOST_ID not in host.attributes()
        assert host.to_record()[BK_HOST_ID] == 4


class TestSyncOutcome:
    def test_defaults_to_fail(self):
        outcome = SyncOutcome(task_id=1)
        assert outcome.status == SYNC_STATUS_FAIL
        assert not outcome.succeeded

    def test_history_record(self):
        outcome = SyncOutcome(
            task_id=2, new_add=1, attr_changed=3, status=SYNC_STATUS_SUCCESS,
            time_consume="5s", start_time="2024-05-01 10:00:00",
        )

        assert outcome.to_history_record() == {
            "bk_obj_id": "host",
            "bk_task_id": 2,
            "bk_status": "success",
            "new_add": 1,
            "attr_changed": 3,
            "bk_time_consume": "5s",
            "bk_start_time": "2024-05-01 10:00:00",
        }


class TestConfirmationRequest:
    """Test ConfirmationRequest wire form"""

    def setup_method(self):
        self.task = CloudSyncTask.from_record(task_record(task_id=9))

    def test_new_add(self):
        host = HostRecord(inner_ip="10.0.0.2", outer_ip="2.2.2.2", os_name="A")
        record = ConfirmationRequest.for_host(self.task, host, RESOURCE_TYPE_NEW_ADD).to_record()

        assert record[BK_RESOURCE_TYPE] == "new_add"
        assert record[BK_CONFIRM] is True
        assert record[BK_ATTR_CONFIRM] is False
        assert record[BK_SOURCE_TYPE] == "cloud_sync"
        assert record[BK_TASK_ID] == 9
        assert record[BK_HOST_INNERIP] == "10.0.0.2"
        assert BK_HOST_ID not in record

    def test_change_carries_host_id(self):
        host = HostRecord(inner_ip="10.0.0.1", os_name="B", host_id=5)
        record = ConfirmationRequest.for_host(self.task, host, RESOURCE_TYPE_CHANGE).to_record()

        assert record[BK_RESOURCE_TYPE] == "change"
        assert record[BK_CONFIRM] is False
        assert record[BK_ATTR_CONFIRM] is True
        assert record[BK_HOST_ID] == 5


class TestRunningTaskState:
    def test_cancel_sets_token(self):
        task = CloudSyncTask.from_record(task_record())
        state = RunningTaskState(task_id=1, period=EveryFiveMinutes(), next_trigger=5, task=task)

        assert not state.cancelled
        state.cancel()
        assert state.cancelled
        assert state.token.is_set()


class TestSignalMessages:
    """Test StartAnnouncement and StopRequest encoding"""

    def test_stop_request_round_trip(self):
        request = StopRequest(task_id=4, owner_id="0")
        assert StopRequest.from_json(request.to_json()) == request

    def test_stop_request_bytes(self):
        assert StopRequest.from_json(b'{"bk_task_id": 4, "bk_supplier_account": "0"}').task_id == 4

    def test_encoding_is_stable(self):
        """Equal messages encode identically so set membership deduplicates them"""
        first = StartAnnouncement(task_id=1, owner_id="0", account_admin="a", start_time="t")
        second = StartAnnouncement(task_id=1, owner_id="0", account_admin="a", start_time="t")

        assert first.to_json() == second.to_json()
        assert json.loads(first.to_json())["bk_task_id"] == 1

    @pytest.mark.parametrize("raw", [None, "", b"", "not json", "[1, 2]", '{"bk_task_id": "x"}', "{}"])
    def test_malformed_stop_request(self, raw):
        with pytest.raises(SignalDecodeError):
            StopRequest.from_json(raw)

    def test_start_announcement_round_trip(self):
        announcement = StartAnnouncement(task_id=2, owner_id="1", account_admin="ops", start_time="2024-01-01 00:00:00")
        assert StartAnnouncement.from_json(announcement.to_json()) == announcement
