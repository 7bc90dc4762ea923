"""
Property-based tests for cloud/inventory host comparison using Hypothesis.

Tests invariants that should hold for all host sets:
- A cloud host is new, changed or unchanged, never more than one
- Changed hosts always carry the inventory host id they matched
- Filtering pending confirmations never adds hosts
"""

from hypothesis import given, strategies as st

from cloudsync.models import BK_HOST_ID, BK_HOST_INNERIP, BK_HOST_OUTERIP, BK_OS_NAME, HostRecord
from cloudsync.reconcile.diff import filter_pending, find_changed_hosts, find_new_hosts, index_existing

inner_ips = st.sampled_from([f"10.0.0.{i}" for i in range(1, 16)])
os_names = st.sampled_from(["CentOS 7.9", "Ubuntu 22.04", "TencentOS Server 3.1"])
outer_ips = st.sampled_from(["", "1.1.1.1", "2.2.2.2"])

cloud_hosts = st.lists(
    st.builds(HostRecord, inner_ip=inner_ips, outer_ip=outer_ips, os_name=os_names),
    max_size=15,
    unique_by=lambda h: h.inner_ip,
)

inventory_records = st.lists(
    st.fixed_dictionaries({
        BK_HOST_INNERIP: inner_ips,
        BK_HOST_OUTERIP: outer_ips,
        BK_OS_NAME: os_names,
        BK_HOST_ID: st.integers(min_value=1, max_value=10_000),
    }),
    max_size=15,
)


@given(cloud=cloud_hosts, records=inventory_records)
def test_new_and_changed_are_disjoint(cloud, records):
    existing = index_existing(records)

    new = {h.inner_ip for h in find_new_hosts(cloud, existing)}
    changed = {h.inner_ip for h in find_changed_hosts(cloud, existing)}

    assert not new & changed
    assert new | changed <= {h.inner_ip for h in cloud}
    assert new == {h.inner_ip for h in cloud} - set(existing)


@given(cloud=cloud_hosts, records=inventory_records)
def test_changed_hosts_carry_inventory_id(cloud, records):
    existing = index_existing(records)

    for host in find_changed_hosts(cloud, existing):
        known = existing[host.inner_ip]
        assert host.host_id == known.host_id
        assert (host.os_name, host.outer_ip) != (known.os_name, known.outer_ip)


@given(cloud=cloud_hosts)
def test_inventory_matching_cloud_has_no_changes(cloud):
    records = [
        {**h.attributes(), BK_HOST_ID: i} for i, h in enumerate(cloud, start=1)
    ]
    existing = index_existing(records)

    assert find_new_hosts(cloud, existing) == []
    assert find_changed_hosts(cloud, existing) == []


@given(cloud=cloud_hosts, pending=st.lists(inner_ips, max_size=10))
def test_filter_pending_only_removes_queued_hosts(cloud, pending):
    confirmations = [{BK_HOST_INNERIP: ip} for ip in pending]

    kept = filter_pending(cloud, confirmations)

    assert {h.inner_ip for h in kept} == {h.inner_ip for h in cloud} - set(pending)
    assert all(h in cloud for h in kept)
