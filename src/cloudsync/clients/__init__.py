"""
Clients for the services the sync engine collaborates with

- InventoryClient: tasks, hosts, confirmations and history over HTTP
- CloudClient: abstract cloud provider listing
- TencentCloudClient: CVM implementation of CloudClient
"""

from .base import CloudClient, Instance
from .credentials import CloudClientFactory, get_credentials_from_vault_or_task, tencent_client_factory
from .inventory import InventoryClient
from .tencent import TencentCloudClient

__all__ = [
    "CloudClient",
    "CloudClientFactory",
    "Instance",
    "InventoryClient",
    "TencentCloudClient",
    "get_credentials_from_vault_or_task",
    "tencent_client_factory",
]
