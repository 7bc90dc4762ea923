"""
Host set comparison between cloud and inventory.

Hosts are matched by inner IP only. A cloud host is either new (its inner
IP is unknown to the inventory), changed (known, but OS name or outer IP
differ), or unchanged; never more than one of these.
"""

import logging
from dataclasses import replace
from typing import Any, Iterable

from ..models import BK_HOST_INNERIP, HostRecord, coerce_str

logger = logging.getLogger(__name__)


def index_existing(records: Iterable[dict[str, Any]]) -> dict[str, HostRecord]:
    """
    Index inventory host records by inner IP

    Raises:
        FieldCoercionError: If a record lacks a string inner IP or a host id
    """
    existing: dict[str, HostRecord] = {}
    for record in records:
        host = HostRecord.from_record(record, with_id=True)
        if host.inner_ip in existing:
            logger.warning(
                f"Inventory has several hosts with inner IP {host.inner_ip}, "
                f"matching against host {existing[host.inner_ip].host_id}"
            )
            continue
        existing[host.inner_ip] = host
    return existing


def find_new_hosts(cloud_hosts: Iterable[HostRecord], existing: dict[str, HostRecord]) -> list[HostRecord]:
    return [host for host in cloud_hosts if host.inner_ip not in existing]


def find_changed_hosts(cloud_hosts: Iterable[HostRecord], existing: dict[str, HostRecord]) -> list[HostRecord]:
    """
    Cloud hosts whose OS name or outer IP differ from the inventory

    Returns:
        Copies of the cloud records carrying the matched inventory host id
    """
    changed = []
    for host in cloud_hosts:
        known = existing.get(host.inner_ip)
        if known is None:
            continue
        if host.os_name != known.os_name or host.outer_ip != known.outer_ip:
            changed.append(replace(host, host_id=known.host_id))
    return changed


def pending_inner_ips(confirmations: Iterable[dict[str, Any]]) -> set[str]:
    """
    Inner IPs already waiting in the confirmation queue

    Raises:
        FieldCoercionError: If a confirmation lacks a string inner IP
    """
    return {coerce_str(record, BK_HOST_INNERIP) for record in confirmations}


def filter_pending(hosts: Iterable[HostRecord], confirmations: Iterable[dict[str, Any]]) -> list[HostRecord]:
    """Drop hosts whose inner IP is already queued for confirmation."""
    pending = pending_inner_ips(confirmations)
    return [host for host in hosts if host.inner_ip not in pending]
