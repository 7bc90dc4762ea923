"""
HTTP client for the inventory service.

Every call is a JSON request answered with the envelope
``{"result": bool, "bk_error_code": int, "bk_error_msg": str, "data": ...}``.
Transport failures, non-2xx statuses and ``result: false`` all surface as
``InventoryError``; callers decide whether that aborts their work.
"""

import logging
from typing import Any, Optional

import requests

from ..errors import FieldCoercionError, InventoryError
from ..models import (
    BK_HOST_INNERIP,
    BK_HOST_OUTERIP,
    BK_OS_NAME,
    BK_TASK_ID,
    BK_TASK_NAME,
    CloudSyncTask,
    coerce_int,
)

logger = logging.getLogger(__name__)

OWNER_HEADER = "HTTP_BLUEKING_SUPPLIER_ACCOUNT"
USER_HEADER = "BK_User"

DEFAULT_RESOURCE_MODULE = "idle host"
IMPORT_FROM_CLOUD_SYNC = "3"
DEFAULT_CLOUD_ID = 1


class InventoryClient:
    """
    Request/response access to tasks, hosts, confirmations and sync history

    Args:
        base_url: Inventory API root (e.g. "http://cmdb:8080/api/v3")
        owner_id: Tenant the requests are made for
        user: Operator name sent with every request
        session: Optional pre-configured requests.Session
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        owner_id: str = "0",
        user: str = "cloudsync",
        session: Optional[requests.Session] = None,
        timeout: float = 10,
    ):
        if not base_url:
            raise ValueError("Inventory base URL not provided. Set INVENTORY_URL.")

        self.base_url = base_url.rstrip("/")
        self.owner_id = owner_id
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            OWNER_HEADER: owner_id,
            USER_HEADER: user,
            "Content-Type": "application/json",
        })

    def _call(self, operation: str, method: str, path: str, body: Optional[dict] = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug(f"{operation}: {method} {url}")

        try:
            response = self.session.request(method, url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise InventoryError(operation, str(e)) from e

        if not 200 <= response.status_code < 300:
            raise InventoryError(operation, response.text[:200], status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise InventoryError(operation, f"invalid JSON response: {e}") from e

        if not isinstance(payload, dict):
            raise InventoryError(operation, "response is not a JSON object")

        if not payload.get("result", False):
            code = payload.get("bk_error_code")
            message = payload.get("bk_error_msg") or "request rejected"
            raise InventoryError(operation, f"[{code}] {message}")

        return payload.get("data")

    @staticmethod
    def _info(operation: str, data: Any) -> list[dict[str, Any]]:
        if data is None:
            return []
        if not isinstance(data, dict):
            raise InventoryError(operation, "expected an object with 'info'")
        info = data.get("info") or []
        if not isinstance(info, list) or not all(isinstance(item, dict) for item in info):
            raise InventoryError(operation, "'info' is not a list of objects")
        return info

    # ---------------------------------------------------------------- tasks

    def check_task_name_unique(self, name: str) -> bool:
        """True if no task named ``name`` exists yet."""
        data = self._call("check_task_name_unique", "POST", "hosts/cloud/nameCheck", {BK_TASK_NAME: name})
        try:
            count = coerce_int({"count": data}, "count")
        except FieldCoercionError as e:
            raise InventoryError("check_task_name_unique", str(e)) from e
        return count == 0

    def create_task(self, task: CloudSyncTask) -> Any:
        return self._call("create_task", "POST", "hosts/cloud/add", task.to_record())

    def list_tasks(self, condition: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        """Raw task records matching ``condition`` (all tasks if empty)."""
        data = self._call("list_tasks", "POST", "hosts/cloud/search", condition or {})
        return self._info("list_tasks", data)

    def get_task(self, task_id: int) -> Optional[dict[str, Any]]:
        tasks = self.list_tasks({BK_TASK_ID: task_id})
        return tasks[0] if tasks else None

    def update_task_summary(self, task_id: int, fields: dict[str, Any]) -> Any:
        return self._call("update_task_summary", "PUT", "hosts/cloud/update", {BK_TASK_ID: task_id, **fields})

    def append_history(self, entry: dict[str, Any]) -> Any:
        return self._call("append_history", "POST", "hosts/cloud/syncHistory", entry)

    # ---------------------------------------------------------------- hosts

    def list_hosts(self, condition: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        """
        Host attribute maps matching ``condition``

        Search results wrap each host as ``{"host": {...}, ...}``; the host
        maps are returned unwrapped.
        """
        data = self._call("list_hosts", "POST", "hosts/search", {"condition": condition or {}})
        hosts = []
        for item in self._info("list_hosts", data):
            host = item.get("host", item)
            if not isinstance(host, dict):
                raise FieldCoercionError("host", host, "object")
            hosts.append(host)
        return hosts

    def update_host(self, host_id: int, fields: dict[str, Any]) -> Any:
        body = {"condition": {"bk_host_id": host_id}, "data": fields}
        return self._call("update_host", "PUT", "object/host/instance", body)

    def get_default_app_id(self) -> int:
        data = self._call("get_default_app_id", "POST", f"biz/default/{self.owner_id}/search", {})
        apps = self._info("get_default_app_id", data)
        if not apps:
            raise InventoryError("get_default_app_id", "no default business found")
        try:
            return coerce_int(apps[0], "bk_biz_id")
        except FieldCoercionError as e:
            raise InventoryError("get_default_app_id", str(e)) from e

    def get_resource_pool_module_id(self, app_id: int) -> int:
        body = {"bk_biz_id": app_id, "bk_module_name": DEFAULT_RESOURCE_MODULE, "default": 1}
        data = self._call("get_resource_pool_module_id", "POST", "module/search", body)
        modules = self._info("get_resource_pool_module_id", data)
        if not modules:
            raise InventoryError("get_resource_pool_module_id", f"no resource pool module in business {app_id}")
        try:
            return coerce_int(modules[0], "bk_module_id")
        except FieldCoercionError as e:
            raise InventoryError("get_resource_pool_module_id", str(e)) from e

    def add_hosts(self, hosts: list[dict[str, Any]]) -> Any:
        """
        Create hosts in the resource pool of the default business

        Args:
            hosts: Host attribute maps carrying inner IP, outer IP and OS name
        """
        if not hosts:
            return None

        app_id = self.get_default_app_id()
        module_id = self.get_resource_pool_module_id(app_id)

        host_info = {}
        for index, host in enumerate(hosts):
            host_info[str(index)] = {
                BK_HOST_INNERIP: host.get(BK_HOST_INNERIP),
                BK_HOST_OUTERIP: host.get(BK_HOST_OUTERIP, ""),
                BK_OS_NAME: host.get(BK_OS_NAME, ""),
                "import_from": IMPORT_FROM_CLOUD_SYNC,
                "bk_cloud_id": DEFAULT_CLOUD_ID,
            }

        body = {"bk_biz_id": app_id, "bk_module_id": [module_id], "host_info": host_info}
        logger.info(f"Adding {len(hosts)} cloud host(s) to business {app_id} module {module_id}")
        return self._call("add_hosts", "POST", "hosts/add", body)

    # -------------------------------------------------------- confirmations

    def list_pending_confirmations(self, condition: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        data = self._call("list_pending_confirmations", "POST", "hosts/cloud/searchConfirm", condition or {})
        return self._info("list_pending_confirmations", data)

    def submit_confirmation(self, confirmation: dict[str, Any]) -> Any:
        return self._call("submit_confirmation", "POST", "hosts/cloud/resourceConfirm", confirmation)
