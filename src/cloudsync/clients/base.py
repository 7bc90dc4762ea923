"""
Abstract cloud provider client.

A concrete client only has to list regions and the instances of one region;
flattening instances into host records is shared.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ..models import HostRecord

logger = logging.getLogger(__name__)


@dataclass
class Instance:
    """A cloud instance as reported by the provider."""

    os_name: str
    private_ips: list[str] = field(default_factory=list)
    public_ips: list[str] = field(default_factory=list)
    instance_id: str = ""


class CloudClient(ABC):
    """
    Credential-scoped view of a cloud provider account

    Subclasses raise ``CloudProviderError`` for any listing failure.
    """

    @abstractmethod
    def list_regions(self) -> list[str]:
        """Names of the regions available to the account."""
        pass

    @abstractmethod
    def list_instances(self, region: str) -> list[Instance]:
        """All instances of the account in ``region``."""
        pass

    def list_hosts(self) -> list[HostRecord]:
        """
        Current cloud inventory as host records

        Each instance with at least one private address becomes one record,
        keyed by its first private address; the first public address, if
        any, is the outer IP. An inner IP seen twice keeps its first record.

        Raises:
            CloudProviderError: If any region or instance listing fails
        """
        hosts: dict[str, HostRecord] = {}

        for region in self.list_regions():
            instances = self.list_instances(region)
            logger.debug(f"Region {region}: {len(instances)} instance(s)")

            for instance in instances:
                if not instance.private_ips:
                    logger.debug(f"Skipping instance {instance.instance_id or '?'} without private IP")
                    continue

                inner_ip = instance.private_ips[0]
                if inner_ip in hosts:
                    logger.warning(
                        f"Inner IP {inner_ip} reported in {hosts[inner_ip].cloud_region} "
                        f"and {region}, keeping the first"
                    )
                    continue

                hosts[inner_ip] = HostRecord(
                    inner_ip=inner_ip,
                    outer_ip=instance.public_ips[0] if instance.public_ips else "",
                    os_name=instance.os_name or "",
                    cloud_region=region,
                )

        return list(hosts.values())
