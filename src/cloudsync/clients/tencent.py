"""
Tencent Cloud CVM client.

Lists regions and instances through the official SDK
(``tencentcloud-sdk-python``).
"""

import logging
from typing import Any, Callable, Optional

from tencentcloud.common import credential
from tencentcloud.common.exception.tencent_cloud_sdk_exception import TencentCloudSDKException
from tencentcloud.common.profile.client_profile import ClientProfile
from tencentcloud.common.profile.http_profile import HttpProfile
from tencentcloud.cvm.v20170312 import cvm_client, models

from ..errors import CloudProviderError
from .base import CloudClient, Instance

logger = logging.getLogger(__name__)

CVM_ENDPOINT = "cvm.tencentcloudapi.com"
DEFAULT_REGION = "ap-guangzhou"
PAGE_SIZE = 100


class TencentCloudClient(CloudClient):
    """
    CVM client scoped to one API key pair

    Args:
        secret_id: API secret id
        secret_key: API secret key
        timeout: Request timeout in seconds
        client_factory: Builds a CVM client for (credential, region, profile);
            defaults to ``cvm_client.CvmClient``
    """

    def __init__(
        self,
        secret_id: str,
        secret_key: str,
        timeout: int = 10,
        client_factory: Optional[Callable[..., Any]] = None,
    ):
        if not secret_id or not secret_key:
            raise CloudProviderError("Tencent Cloud credentials are incomplete")

        self.credential = credential.Credential(secret_id, secret_key)

        http_profile = HttpProfile()
        http_profile.reqMethod = "GET"
        http_profile.reqTimeout = timeout
        http_profile.endpoint = CVM_ENDPOINT

        self.profile = ClientProfile()
        self.profile.httpProfile = http_profile
        self.profile.signMethod = "HmacSHA1"

        self.client_factory = client_factory or cvm_client.CvmClient

    def _client(self, region: str):
        return self.client_factory(self.credential, region, self.profile)

    def list_regions(self) -> list[str]:
        try:
            response = self._client(DEFAULT_REGION).DescribeRegions(models.DescribeRegionsRequest())
        except TencentCloudSDKException as e:
            raise CloudProviderError(f"DescribeRegions failed: {e}") from e

        regions = [
            region.Region
            for region in (response.RegionSet or [])
            if getattr(region, "RegionState", "AVAILABLE") in (None, "AVAILABLE")
        ]
        logger.debug(f"Tencent Cloud regions: {regions}")
        return regions

    def list_instances(self, region: str) -> list[Instance]:
        client = self._client(region)
        instances: list[Instance] = []
        offset = 0

        while True:
            request = models.DescribeInstancesRequest()
            request.Offset = offset
            request.Limit = PAGE_SIZE

            try:
                response = client.DescribeInstances(request)
            except TencentCloudSDKException as e:
                raise CloudProviderError(f"DescribeInstances failed in {region}: {e}") from e

            page = response.InstanceSet or []
            for item in page:
                instances.append(Instance(
                    os_name=item.OsName or "",
                    private_ips=list(item.PrivateIpAddresses or []),
                    public_ips=list(item.PublicIpAddresses or []),
                    instance_id=item.InstanceId or "",
                ))

            offset += len(page)
            if not page or offset >= (response.TotalCount or 0):
                break

        return instances
