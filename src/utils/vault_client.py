"""
HashiCorp Vault client for fetching cloud provider credentials

Cloud sync tasks may reference their API credentials by Vault path instead
of carrying the secret key in the task record. This module reads those
secrets from the KV v2 secrets engine.
"""

import logging
import os
import re
from typing import Any, Dict, Optional

import requests

from utils.retry import is_transient_error, retry_with_backoff

logger = logging.getLogger(__name__)

_SAFE_PATH = re.compile(r'^[a-zA-Z0-9/_-]+$')


class VaultClient:
    """
    HashiCorp Vault client for secrets management

    This client uses the KV v2 secrets engine.
    """

    def __init__(
        self,
        vault_addr: Optional[str] = None,
        vault_token: Optional[str] = None,
        namespace: Optional[str] = None,
        timeout: float = 10,
    ):
        """
        Initialize Vault client

        Args:
            vault_addr: Vault server address (default: from VAULT_ADDR env var)
            vault_token: Vault authentication token (default: from VAULT_TOKEN env var)
            namespace: Vault namespace (optional, for Vault Enterprise)
            timeout: Request timeout in seconds

        Raises:
            ValueError: If vault_addr or vault_token are not provided
        """
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_token = vault_token or os.getenv("VAULT_TOKEN")
        self.namespace = namespace
        self.timeout = timeout

        if not self.vault_addr:
            raise ValueError(
                "Vault address not provided. Set VAULT_ADDR environment variable "
                "or pass vault_addr parameter."
            )

        if not self.vault_token:
            raise ValueError(
                "Vault token not provided. Set VAULT_TOKEN environment variable "
                "or pass vault_token parameter."
            )

        self.vault_addr = self.vault_addr.rstrip("/")

        self.headers = {
            "X-Vault-Token": self.vault_token,
            "Content-Type": "application/json"
        }

        if self.namespace:
            self.headers["X-Vault-Namespace"] = self.namespace

        logger.info(f"Initialized Vault client for {self.vault_addr}")

    @staticmethod
    def _kv2_path(secret_path: str) -> str:
        if not secret_path or not isinstance(secret_path, str):
            raise ValueError("secret_path must be a non-empty string")

        if '..' in secret_path or secret_path.startswith('/'):
            raise ValueError(
                f"Invalid secret_path: {secret_path}. "
                "Path traversal attempts are not allowed."
            )

        if not _SAFE_PATH.match(secret_path):
            raise ValueError(
                f"Invalid secret_path: {secret_path}. "
                "Only alphanumeric characters, slashes, underscores, and hyphens are allowed."
            )

        # KV v2 requires /data/ after the mount point
        if "/data/" in secret_path:
            return secret_path
        mount, _, rest = secret_path.partition("/")
        return f"{mount}/data/{rest}" if rest else f"{mount}/data"

    @retry_with_backoff(max_retries=2, base_delay=0.5, retry_if=is_transient_error)
    def get_secret(self, secret_path: str) -> Dict[str, Any]:
        """
        Fetch secret from Vault KV v2 secrets engine

        Args:
            secret_path: Path to secret (e.g., "secret/cloud/tencent-prod")

        Returns:
            Dictionary containing secret data

        Raises:
            ValueError: If secret_path is invalid or the secret is empty
            requests.RequestException: If Vault request fails
        """
        url = f"{self.vault_addr}/v1/{self._kv2_path(secret_path)}"

        logger.debug(f"Fetching secret from: {url}")

        response = requests.get(url, headers=self.headers, timeout=self.timeout)

        if response.status_code == 404:
            raise ValueError(f"Secret not found at path: {secret_path}")

        response.raise_for_status()

        secret_data = response.json().get("data", {}).get("data", {})

        if not secret_data:
            raise ValueError(f"No data found in secret at path: {secret_path}")

        return secret_data

    def get_cloud_credentials(self, credential_path: str) -> Dict[str, str]:
        """
        Fetch a cloud provider API key pair

        Args:
            credential_path: Vault path holding ``secret_id`` and ``secret_key``

        Returns:
            Dictionary with ``secret_id`` and ``secret_key``

        Raises:
            ValueError: If the secret lacks either field
        """
        secret_data = self.get_secret(credential_path)

        missing_fields = [
            field for field in ("secret_id", "secret_key") if not secret_data.get(field)
        ]
        if missing_fields:
            raise ValueError(
                f"Missing required fields in secret {credential_path}: {', '.join(missing_fields)}"
            )

        logger.info(f"Fetched cloud credentials from Vault path {credential_path}")

        return {
            "secret_id": str(secret_data["secret_id"]),
            "secret_key": str(secret_data["secret_key"]),
        }
