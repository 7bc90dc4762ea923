"""
Cloud credential resolution and cloud client construction.

A task either carries its API key pair inline or names a Vault path that
holds it. Vault is only contacted for tasks that reference it.
"""

import logging
from typing import Callable, Optional

import requests

from utils.vault_client import VaultClient

from ..errors import CloudProviderError
from ..models import CloudSyncTask
from .base import CloudClient
from .tencent import TencentCloudClient

logger = logging.getLogger(__name__)

CloudClientFactory = Callable[[CloudSyncTask], CloudClient]


def get_credentials_from_vault_or_task(
    task: CloudSyncTask,
    vault_client: Optional[VaultClient] = None,
) -> tuple[str, str]:
    """
    Resolve the API key pair of a task

    Args:
        task: Task whose credentials are needed
        vault_client: Vault client to use (default: built from VAULT_* env vars)

    Returns:
        Tuple of (secret_id, secret_key)

    Raises:
        CloudProviderError: If Vault cannot supply the credentials
    """
    if not task.credential_path:
        return task.secret_id, task.secret_key

    try:
        vault = vault_client or VaultClient()
        creds = vault.get_cloud_credentials(task.credential_path)
    except (ValueError, requests.RequestException) as e:
        raise CloudProviderError(
            f"Cannot resolve credentials for task {task.task_id} from Vault: {e}"
        ) from e

    return creds["secret_id"], creds["secret_key"]


def tencent_client_factory(vault_client: Optional[VaultClient] = None, timeout: int = 10) -> CloudClientFactory:
    """Factory building a TencentCloudClient for each task run."""

    def build(task: CloudSyncTask) -> CloudClient:
        secret_id, secret_key = get_credentials_from_vault_or_task(task, vault_client)
        return TencentCloudClient(secret_id, secret_key, timeout=timeout)

    return build
