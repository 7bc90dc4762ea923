"""
Data model for cloud sync tasks, host records and signal messages.

Records exchanged with the inventory service keep the inventory attribute
keys verbatim (``bk_host_innerip``, ``bk_os_name``, ...) because they are the
join keys used for matching hosts across inventories.
"""

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .errors import FieldCoercionError, SignalDecodeError

# Host attribute keys
BK_HOST_ID = "bk_host_id"
BK_HOST_INNERIP = "bk_host_innerip"
BK_HOST_OUTERIP = "bk_host_outerip"
BK_OS_NAME = "bk_os_name"
BK_CLOUD_REGION = "bk_cloud_region"

# Task attribute keys
BK_TASK_ID = "bk_task_id"
BK_TASK_NAME = "bk_task_name"
BK_SUPPLIER_ACCOUNT = "bk_supplier_account"
BK_PERIOD_TYPE = "bk_period_type"
BK_PERIOD = "bk_period"
BK_STATUS = "bk_status"
BK_ACCOUNT_TYPE = "bk_account_type"
BK_ACCOUNT_ADMIN = "bk_account_admin"
BK_SECRET_ID = "bk_secret_id"
BK_SECRET_KEY = "bk_secret_key"
BK_CREDENTIAL_PATH = "bk_credential_path"
BK_OBJ_ID = "bk_obj_id"
BK_ATTR_CONFIRM = "bk_attr_confirm"
BK_CONFIRM = "bk_confirm"
BK_RESOURCE_TYPE = "bk_resource_type"
BK_SOURCE_TYPE = "bk_source_type"

SYNC_STATUS_SUCCESS = "success"
SYNC_STATUS_FAIL = "fail"

RESOURCE_TYPE_NEW_ADD = "new_add"
RESOURCE_TYPE_CHANGE = "change"

SOURCE_TYPE_CLOUD_SYNC = "cloud_sync"

TIME_LAYOUT = "%Y-%m-%d %H:%M:%S"


def _require(record: dict[str, Any], key: str) -> Any:
    if key not in record or record[key] is None:
        raise FieldCoercionError(key, None, "a value")
    return record[key]


def coerce_str(record: dict[str, Any], key: str, required: bool = True) -> str:
    """
    Read a string attribute from a raw record

    Args:
        record: Raw record as returned by a collaborator
        key: Attribute key
        required: Whether a missing value is an error (default: True)

    Returns:
        The attribute value, or an empty string for a missing optional value

    Raises:
        FieldCoercionError: If the value is missing (when required) or not a string
    """
    if not required and record.get(key) is None:
        return ""
    value = _require(record, key)
    if not isinstance(value, str):
        raise FieldCoercionError(key, value, "str")
    return value


def coerce_int(record: dict[str, Any], key: str) -> int:
    """Read an integer attribute, accepting numeric strings."""
    value = _require(record, key)
    if isinstance(value, bool):
        raise FieldCoercionError(key, value, "int")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise FieldCoercionError(key, value, "int")


def coerce_bool(record: dict[str, Any], key: str, default: bool = False) -> bool:
    """Read a boolean attribute; a missing value falls back to ``default``."""
    value = record.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise FieldCoercionError(key, value, "bool")


@dataclass
class CloudSyncTask:
    """A scheduled cloud inventory synchronization job owned by a tenant."""

    task_id: int
    task_name: str
    owner_id: str
    period_type: str
    period: str
    status: bool = True
    account_type: str = ""
    account_admin: str = ""
    secret_id: str = ""
    secret_key: str = ""
    credential_path: str = ""
    obj_id: str = "host"
    attr_confirm: bool = False
    resource_confirm: bool = False

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "CloudSyncTask":
        """
        Build a task from an inventory service record

        Raises:
            FieldCoercionError: If a field is missing or has an unexpected type
        """
        owner = record.get(BK_SUPPLIER_ACCOUNT, "0")
        return cls(
            task_id=coerce_int(record, BK_TASK_ID),
            task_name=coerce_str(record, BK_TASK_NAME),
            owner_id=str(owner) if owner is not None else "0",
            period_type=coerce_str(record, BK_PERIOD_TYPE),
            period=coerce_str(record, BK_PERIOD, required=False),
            status=coerce_bool(record, BK_STATUS, default=False),
            account_type=coerce_str(record, BK_ACCOUNT_TYPE, required=False),
            account_admin=coerce_str(record, BK_ACCOUNT_ADMIN, required=False),
            secret_id=coerce_str(record, BK_SECRET_ID, required=False),
            secret_key=coerce_str(record, BK_SECRET_KEY, required=False),
            credential_path=coerce_str(record, BK_CREDENTIAL_PATH, required=False),
            obj_id=coerce_str(record, BK_OBJ_ID, required=False) or "host",
            attr_confirm=coerce_bool(record, BK_ATTR_CONFIRM),
            resource_confirm=coerce_bool(record, BK_CONFIRM),
        )

    def to_record(self) -> dict[str, Any]:
        record = {
            BK_TASK_NAME: self.task_name,
            BK_SUPPLIER_ACCOUNT: self.owner_id,
            BK_PERIOD_TYPE: self.period_type,
            BK_PERIOD: self.period,
            BK_STATUS: self.status,
            BK_ACCOUNT_TYPE: self.account_type,
            BK_ACCOUNT_ADMIN: self.account_admin,
            BK_SECRET_ID: self.secret_id,
            BK_SECRET_KEY: self.secret_key,
            BK_OBJ_ID: self.obj_id,
            BK_ATTR_CONFIRM: self.attr_confirm,
            BK_CONFIRM: self.resource_confirm,
        }
        if self.task_id:
            record[BK_TASK_ID] = self.task_id
        if self.credential_path:
            record[BK_CREDENTIAL_PATH] = self.credential_path
        return record


@dataclass
class HostRecord:
    """A host as seen by either the cloud provider or the inventory."""

    inner_ip: str
    outer_ip: str = ""
    os_name: str = ""
    host_id: Optional[int] = None
    cloud_region: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any], with_id: bool = True) -> "HostRecord":
        """
        Build a host from an inventory record

        Args:
            record: Raw host attributes
            with_id: Whether ``bk_host_id`` is required (inventory records)

        Raises:
            FieldCoercionError: If a field is missing or has an unexpected type
        """
        return cls(
            inner_ip=coerce_str(record, BK_HOST_INNERIP),
            outer_ip=coerce_str(record, BK_HOST_OUTERIP, required=False),
            os_name=coerce_str(record, BK_OS_NAME, required=False),
            host_id=coerce_int(record, BK_HOST_ID) if with_id else None,
            cloud_region=coerce_str(record, BK_CLOUD_REGION, required=False),
        )

    def attributes(self) -> dict[str, Any]:
        """Host attributes in inventory form, without the host id."""
        return {
            BK_HOST_INNERIP: self.inner_ip,
            BK_HOST_OUTERIP: self.outer_ip,
            BK_OS_NAME: self.os_name,
            BK_CLOUD_REGION: self.cloud_region,
        }

    def to_record(self) -> dict[str, Any]:
        record = self.attributes()
        if self.host_id is not None:
            record[BK_HOST_ID] = self.host_id
        return record


@dataclass
class SyncOutcome:
    """Result of one reconciliation run, persisted as a history entry."""

    task_id: int
    obj_id: str = "host"
    new_add: int = 0
    attr_changed: int = 0
    status: str = SYNC_STATUS_FAIL
    time_consume: str = ""
    start_time: str = ""
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SYNC_STATUS_SUCCESS

    def to_history_record(self) -> dict[str, Any]:
        return {
            BK_OBJ_ID: self.obj_id,
            BK_TASK_ID: self.task_id,
            "bk_status": self.status,
            "new_add": self.new_add,
            "attr_changed": self.attr_changed,
            "bk_time_consume": self.time_consume,
            "bk_start_time": self.start_time,
        }


@dataclass
class ConfirmationRequest:
    """A pending change awaiting operator approval."""

    resource_type: str
    host: HostRecord
    task_id: int
    task_name: str
    obj_id: str
    account_type: str = ""
    account_admin: str = ""

    @classmethod
    def for_host(
        cls, task: CloudSyncTask, host: HostRecord, resource_type: str
    ) -> "ConfirmationRequest":
        return cls(
            resource_type=resource_type,
            host=host,
            task_id=task.task_id,
            task_name=task.task_name,
            obj_id=task.obj_id,
            account_type=task.account_type,
            account_admin=task.account_admin,
        )

    def to_record(self) -> dict[str, Any]:
        is_new = self.resource_type == RESOURCE_TYPE_NEW_ADD
        record = {
            BK_OBJ_ID: self.obj_id,
            BK_HOST_INNERIP: self.host.inner_ip,
            BK_HOST_OUTERIP: self.host.outer_ip,
            BK_OS_NAME: self.host.os_name,
            BK_CLOUD_REGION: self.host.cloud_region,
            BK_SOURCE_TYPE: SOURCE_TYPE_CLOUD_SYNC,
            BK_TASK_ID: self.task_id,
            BK_TASK_NAME: self.task_name,
            BK_ACCOUNT_TYPE: self.account_type,
            BK_ACCOUNT_ADMIN: self.account_admin,
            BK_CONFIRM: is_new,
            BK_ATTR_CONFIRM: not is_new,
            BK_RESOURCE_TYPE: self.resource_type,
        }
        if self.host.host_id is not None:
            record[BK_HOST_ID] = self.host.host_id
        return record


@dataclass
class RunningTaskState:
    """In-process state of a scheduled task. Never persisted."""

    task_id: int
    period: Any
    next_trigger: int
    task: CloudSyncTask
    token: threading.Event = field(default_factory=threading.Event)
    worker: Any = None

    def cancel(self) -> None:
        """Request termination; honoured at the worker's next wait point."""
        self.token.set()

    @property
    def cancelled(self) -> bool:
        return self.token.is_set()


@dataclass
class StartAnnouncement:
    """Published to the started set when an instance adopts a task."""

    task_id: int
    owner_id: str
    account_admin: str = ""
    start_time: str = field(default_factory=lambda: datetime.now().strftime(TIME_LAYOUT))

    def to_json(self) -> str:
        return json.dumps({
            BK_TASK_ID: self.task_id,
            BK_SUPPLIER_ACCOUNT: self.owner_id,
            BK_ACCOUNT_ADMIN: self.account_admin,
            "start_time": self.start_time,
        }, sort_keys=True)

    @classmethod
    def from_json(cls, raw: str | bytes | None) -> "StartAnnouncement":
        data = _decode_message(raw)
        try:
            return cls(
                task_id=coerce_int(data, BK_TASK_ID),
                owner_id=str(data.get(BK_SUPPLIER_ACCOUNT, "")),
                account_admin=str(data.get(BK_ACCOUNT_ADMIN, "")),
                start_time=str(data.get("start_time", "")),
            )
        except FieldCoercionError as e:
            raise SignalDecodeError(raw, str(e)) from e


@dataclass
class StopRequest:
    """Published to the pending-stop set to stop a task on any instance."""

    task_id: int
    owner_id: str

    def to_json(self) -> str:
        return json.dumps({
            BK_TASK_ID: self.task_id,
            BK_SUPPLIER_ACCOUNT: self.owner_id,
        }, sort_keys=True)

    @classmethod
    def from_json(cls, raw: str | bytes | None) -> "StopRequest":
        data = _decode_message(raw)
        try:
            return cls(
                task_id=coerce_int(data, BK_TASK_ID),
                owner_id=str(data.get(BK_SUPPLIER_ACCOUNT, "")),
            )
        except FieldCoercionError as e:
            raise SignalDecodeError(raw, str(e)) from e


def _decode_message(raw: str | bytes | None) -> dict[str, Any]:
    if raw is None or raw == "" or raw == b"":
        raise SignalDecodeError(raw, "empty message")
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SignalDecodeError(raw, f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SignalDecodeError(raw, "expected a JSON object")
    return data
