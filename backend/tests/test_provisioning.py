"""Tests for subnet provisioning and occupancy statistics"""
import asyncio

import pytest
from hypothesis import given, strategies as st, settings
from sqlalchemy import event

from app.models.cidr import IPType
from app.models.ipam import GenerateIPsOptions, Subnet, Vlan
from app.services.cidr import parse_cidr
from app.services.ipam_store import IPAMStore
from app.services.provisioning import ProvisioningService, usage_percent


class RecordingStore(IPAMStore):
    """Store that remembers the size of every upsert batch."""

    def __init__(self, file_path):
        super().__init__(file_path)
        self.batches = []

    async def upsert_ip_addresses(self, subnet_id, records, ignore_duplicates=True):
        records = list(records)
        self.batches.append(len(records))
        return await super().upsert_ip_addresses(subnet_id, records, ignore_duplicates)


class FailingStore(IPAMStore):
    """Store whose upsert fails on a given call."""

    def __init__(self, file_path, fail_on_call: int):
        super().__init__(file_path)
        self.fail_on_call = fail_on_call
        self.calls = 0

    async def upsert_ip_addresses(self, subnet_id, records, ignore_duplicates=True):
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise RuntimeError("disk full")
        return await super().upsert_ip_addresses(subnet_id, records, ignore_duplicates)


class BrokenStore(IPAMStore):
    async def list_subnets(self, vlan_uuid=None):
        raise RuntimeError("store unavailable")

    async def count_ip_addresses(self, subnet_ids):
        raise RuntimeError("store unavailable")


class CountFailsStore(IPAMStore):
    async def count_ip_addresses(self, subnet_ids):
        raise RuntimeError("store unavailable")


def add_subnet(store: IPAMStore, cidr: str, name: str = "lan", vlan_uuid=None) -> Subnet:
    info = parse_cidr(cidr)
    subnet = Subnet(
        name=name,
        ip_version=info.version,
        cidr=info.cidr,
        network_address=info.network_address,
        prefix_length=info.prefix_length,
        gateway_ip=info.gateway_address,
        broadcast_address=info.broadcast_address,
        total_addresses=info.total_addresses,
        usable_addresses=info.usable_addresses,
        vlan_uuid=vlan_uuid,
    )
    return asyncio.run(store.add_subnet(subnet))


def provision(service: ProvisioningService, subnet_id: str, cidr: str, **kwargs):
    options = GenerateIPsOptions(subnet_id=subnet_id, cidr=cidr, **kwargs)
    return asyncio.run(service.generate_and_upsert_ips_for_subnet(options))


def test_provision_small_subnet(store, service):
    subnet = add_subnet(store, "192.168.1.0/30")

    result = provision(service, subnet.id, "192.168.1.0/30")

    assert result.success is True
    assert result.count == 4
    assert result.error is None

    stored = asyncio.run(store.list_ip_addresses(subnet_ids=[subnet.id]))
    assert [(ip.ip_address, ip.ip_type) for ip in stored] == [
        ("192.168.1.0", IPType.NETWORK),
        ("192.168.1.1", IPType.GATEWAY),
        ("192.168.1.2", IPType.HOST),
        ("192.168.1.3", IPType.BROADCAST),
    ]
    assert stored[1].name == "Gateway"


def test_provision_rerun_is_idempotent(store, service):
    subnet = add_subnet(store, "10.0.0.0/28")

    first = provision(service, subnet.id, "10.0.0.0/28")
    before = asyncio.run(store.list_ip_addresses(subnet_ids=[subnet.id]))
    second = provision(service, subnet.id, "10.0.0.0/28")
    after = asyncio.run(store.list_ip_addresses(subnet_ids=[subnet.id]))

    assert first.count == 16
    assert second.success is True
    assert second.count == 0
    assert after == before


# **Feature: ipam-panel, Property 7: Batches cover every record in order**
@given(
    prefix=st.integers(min_value=22, max_value=30),
    batch_size=st.integers(min_value=50, max_value=700),
)
@settings(max_examples=20, deadline=None)
def test_batches_partition_records(tmp_path_factory, prefix: int, batch_size: int):
    """Batch sizes sum to the record count and only the last one may be short."""
    store = RecordingStore(tmp_path_factory.mktemp("prov") / "ipam.db")
    service = ProvisioningService(store, batch_size=batch_size)
    total = 2 ** (32 - prefix)

    result = provision(service, "s", f"10.128.0.0/{prefix}")

    assert result.success is True
    assert result.count == total
    assert sum(store.batches) == total
    assert all(size == batch_size for size in store.batches[:-1])
    assert 0 < store.batches[-1] <= batch_size


def test_provision_batches_of_500(tmp_path):
    store = RecordingStore(tmp_path / "ipam.db")
    service = ProvisioningService(store, batch_size=500)

    result = provision(service, "s", "10.4.0.0/22")

    assert result.count == 1024
    assert store.batches == [500, 500, 24]


def test_partial_failure_then_retry(tmp_path):
    path = tmp_path / "ipam.db"
    failing = ProvisioningService(FailingStore(path, fail_on_call=2), batch_size=500)

    result = provision(failing, "s", "10.4.0.0/22")

    assert result.success is False
    assert result.count == 500
    assert result.error.startswith("Error inserting IPs")
    assert "disk full" in result.error

    store = IPAMStore(path)
    retry = provision(ProvisioningService(store, batch_size=500), "s", "10.4.0.0/22")

    assert retry.success is True
    assert retry.count == 524
    assert asyncio.run(store.count_ip_addresses(["s"])) == 1024


def test_provision_failure_on_first_batch(tmp_path):
    service = ProvisioningService(FailingStore(tmp_path / "ipam.db", fail_on_call=1))

    result = provision(service, "s", "10.0.0.0/24")

    assert result.success is False
    assert result.count == 0


def test_failed_write_keeps_other_subnets(store, service):
    provision(service, "a", "10.1.0.0/24")

    def disk_full(conn, cursor, statement, parameters, context, executemany):
        if statement.startswith("INSERT INTO ip_addresses"):
            raise OSError("No space left on device")

    event.listen(store.engine, "before_cursor_execute", disk_full)
    try:
        failed = provision(service, "b", "10.2.0.0/24")
    finally:
        event.remove(store.engine, "before_cursor_execute", disk_full)

    assert failed.success is False
    assert failed.count == 0
    assert "No space left on device" in failed.error
    assert asyncio.run(store.count_ip_addresses(["a"])) == 256
    assert asyncio.run(store.count_ip_addresses(["b"])) == 0

    retry = provision(service, "b", "10.2.0.0/24")
    assert retry.success is True
    assert retry.count == 256


def test_provisioning_does_not_block_event_loop(store, service):
    async def run():
        ticks = 0
        done = False

        async def ticker():
            nonlocal ticks
            while not done:
                ticks += 1
                await asyncio.sleep(0)

        task = asyncio.create_task(ticker())
        result = await service.generate_and_upsert_ips_for_subnet(
            GenerateIPsOptions(subnet_id="s", cidr="10.4.0.0/22")
        )
        done = True
        await task
        return result, ticks

    result, ticks = asyncio.run(run())

    assert result.count == 1024
    assert ticks > 0


@pytest.mark.parametrize("cidr,error", [
    ("2001:db8::/120", "Automatic IP generation is only available for IPv4"),
    ("not-a-cidr", "Invalid CIDR"),
    ("10.0.0.0/33", "Invalid CIDR"),
])
def test_provision_rejects(store, service, cidr, error):
    result = provision(service, "s", cidr)

    assert result.success is False
    assert result.count == 0
    assert result.error == error
    assert asyncio.run(store.count_ip_addresses(["s"])) == 0


def test_provision_large_subnet_stores_structural_records(store, service):
    result = provision(service, "s", "10.50.0.0/16", gateway_name="core")

    assert result.success is True
    assert result.count == 3

    stored = asyncio.run(store.list_ip_addresses(subnet_ids=["s"]))
    assert [(ip.ip_address, ip.ip_type, ip.name) for ip in stored] == [
        ("10.50.0.0", IPType.NETWORK, "Network"),
        ("10.50.0.1", IPType.GATEWAY, "core"),
        ("10.50.255.255", IPType.BROADCAST, "Broadcast"),
    ]


def test_provision_without_gateway_reservation(store, service):
    provision(service, "s", "10.0.0.0/29", reserve_gateway=False)

    gateways = asyncio.run(store.list_ip_addresses(subnet_ids=["s"], ip_type=IPType.GATEWAY))
    assert gateways == []
    assert len(asyncio.run(store.list_available_ips(subnet_ids=["s"]))) == 6


def test_batch_size_must_be_positive(store):
    with pytest.raises(ValueError):
        ProvisioningService(store, batch_size=0)


def test_check_subnet_has_ips(store, service, tmp_path):
    subnet = add_subnet(store, "10.0.0.0/30")

    assert asyncio.run(service.check_subnet_has_ips(subnet.id)) is False
    provision(service, subnet.id, subnet.cidr)
    assert asyncio.run(service.check_subnet_has_ips(subnet.id)) is True

    broken = ProvisioningService(BrokenStore(tmp_path / "broken.db"))
    assert asyncio.run(broken.check_subnet_has_ips(subnet.id)) is False


def test_check_vlan_has_subnets_with_ips(store, service):
    vlan = asyncio.run(store.add_vlan(Vlan(vlan_id=100, name="office")))

    empty = asyncio.run(service.check_vlan_has_subnets_with_ips(vlan.id))
    assert empty.has_subnets is False
    assert empty.has_ips is False
    assert empty.subnet_id is None

    second = add_subnet(store, "10.1.0.0/30", name="b-floor", vlan_uuid=vlan.id)
    first = add_subnet(store, "10.2.0.0/30", name="a-floor", vlan_uuid=vlan.id)

    bare = asyncio.run(service.check_vlan_has_subnets_with_ips(vlan.id))
    assert bare.has_subnets is True
    assert bare.has_ips is False
    assert bare.subnet_id == first.id

    provision(service, second.id, second.cidr)
    filled = asyncio.run(service.check_vlan_has_subnets_with_ips(vlan.id))
    assert filled.has_ips is True
    assert filled.subnet_id == first.id


def test_check_vlan_store_errors(tmp_path):
    broken = ProvisioningService(BrokenStore(tmp_path / "a.db"))
    check = asyncio.run(broken.check_vlan_has_subnets_with_ips("v"))
    assert (check.has_subnets, check.has_ips) == (False, False)

    store = CountFailsStore(tmp_path / "b.db")
    subnet = add_subnet(store, "10.0.0.0/30", vlan_uuid="v")
    check = asyncio.run(ProvisioningService(store).check_vlan_has_subnets_with_ips("v"))
    assert check.has_subnets is True
    assert check.has_ips is False
    assert check.subnet_id == subnet.id


def test_statistics(store, service):
    vlan = asyncio.run(store.add_vlan(Vlan(vlan_id=30, name="voice", category="voice")))
    tagged = add_subnet(store, "10.30.0.0/30", name="phones", vlan_uuid=vlan.id)
    untagged = add_subnet(store, "10.1.0.0/29", name="mgmt")
    provision(service, tagged.id, tagged.cidr)
    provision(service, untagged.id, untagged.cidr)

    host = asyncio.run(store.list_available_ips(subnet_ids=[tagged.id]))[0]
    asyncio.run(store.claim_ip_address(host.id, "phone-1"))

    summary = asyncio.run(service.get_summary())
    assert summary.total_vlans == 1
    assert summary.total_subnets == 2
    assert summary.total_ips == 12
    assert summary.used_ips == 1
    assert summary.reserved_ips == 6
    assert summary.available_ips == 5
    assert summary.overall_usage_percent == 8

    subnet_stats = asyncio.run(service.get_subnet_stats())
    assert [s.cidr for s in subnet_stats] == ["10.1.0.0/29", "10.30.0.0/30"]
    phones = subnet_stats[1]
    assert phones.vlan_number == 30
    assert phones.vlan_name == "voice"
    assert (phones.total_ips, phones.used_ips, phones.reserved_ips) == (4, 1, 3)
    assert phones.usage_percent == 25
    assert subnet_stats[0].vlan_id is None

    vlan_stats = asyncio.run(service.get_vlan_stats())
    assert len(vlan_stats) == 1
    assert vlan_stats[0].color == "#6b7280"
    assert vlan_stats[0].category == "voice"
    assert vlan_stats[0].total_ips == 4
    assert vlan_stats[0].usage_percent == 25


def test_statistics_empty_store(service):
    summary = asyncio.run(service.get_summary())
    assert summary.total_ips == 0
    assert summary.overall_usage_percent == 0
    assert asyncio.run(service.get_subnet_stats()) == []
    assert asyncio.run(service.get_vlan_stats()) == []


@pytest.mark.parametrize("used,total,expected", [
    (0, 0, 0),
    (0, 10, 0),
    (1, 200, 1),
    (1, 3, 33),
    (2, 3, 67),
    (1, 12, 8),
    (5, 5, 100),
])
def test_usage_percent(used, total, expected):
    assert usage_percent(used, total) == expected
