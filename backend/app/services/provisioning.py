"""Subnet provisioning: persist generated address records and report occupancy"""
from typing import Dict, List

from app.config import settings
from app.logger import get_logger
from app.models.cidr import IPStatus, IPVersion
from app.models.ipam import (
    GenerateIPsOptions,
    GenerateIPsResult,
    IPAddress,
    IPAMSummary,
    SubnetIPStats,
    VlanIPCheck,
    VlanIPStats,
)
from app.services.cidr import generate_ip_records, parse_cidr
from app.services.ipam_store import IPAMStore, ipam_store

logger = get_logger("services.provisioning")

DEFAULT_VLAN_COLOR = "#6b7280"


def usage_percent(used: int, total: int) -> int:
    # Half-up rounding, 0.5% reads as 1%
    return int(used * 100 / total + 0.5) if total > 0 else 0


def count_by_status(addresses: List[IPAddress]) -> Dict[IPStatus, int]:
    counts = {status: 0 for status in IPStatus}
    for ip in addresses:
        counts[ip.status] += 1
    return counts


class ProvisioningService:
    """Turns CIDR engine output into stored address records.

    Batches go to the store one at a time. Upserts ignore rows that already
    exist, so running the same provisioning again (or after a partial
    failure) never duplicates addresses.
    """

    def __init__(self, store: IPAMStore, batch_size: int = 500):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.batch_size = batch_size

    async def generate_and_upsert_ips_for_subnet(self, options: GenerateIPsOptions) -> GenerateIPsResult:
        """Generate the subnet's address records and upsert them in batches.

        Args:
            options: Subnet id, CIDR and gateway reservation settings

        Returns:
            Result with the number of newly inserted rows; on a store error
            success is False and count holds what was inserted before it
        """
        parsed = parse_cidr(options.cidr)
        if not parsed:
            return GenerateIPsResult(success=False, count=0, error="Invalid CIDR")

        if parsed.version != IPVersion.IPV4:
            return GenerateIPsResult(
                success=False, count=0, error="Automatic IP generation is only available for IPv4"
            )

        records = generate_ip_records(
            options.cidr,
            reserve_gateway=options.reserve_gateway,
            gateway_name=options.gateway_name,
        )
        if not records:
            return GenerateIPsResult(success=False, count=0, error="No IPs generated")

        inserted_count = 0
        for start in range(0, len(records), self.batch_size):
            batch = records[start:start + self.batch_size]
            try:
                inserted_count += await self.store.upsert_ip_addresses(
                    options.subnet_id, batch, ignore_duplicates=True
                )
            except Exception as e:
                logger.error(f"Error inserting IPs for subnet {options.subnet_id}: {e}")
                return GenerateIPsResult(
                    success=False,
                    count=inserted_count,
                    error=f"Error inserting IPs: {e}",
                )
            logger.debug(
                f"Subnet {options.subnet_id}: batch {start // self.batch_size + 1} "
                f"({len(batch)} records) stored"
            )

        logger.info(
            f"Provisioned {parsed.cidr} for subnet {options.subnet_id}: "
            f"{inserted_count} new of {len(records)} records"
        )
        return GenerateIPsResult(success=True, count=inserted_count)

    async def check_subnet_has_ips(self, subnet_id: str) -> bool:
        """Check whether provisioning has already stored any address for the subnet."""
        try:
            count = await self.store.count_ip_addresses([subnet_id])
        except Exception as e:
            logger.error(f"Error checking subnet IPs: {e}")
            return False
        return count > 0

    async def check_vlan_has_subnets_with_ips(self, vlan_id: str) -> VlanIPCheck:
        """Check whether a VLAN has subnets and whether any of them has addresses.

        subnet_id is the first subnet of the VLAN, the one the UI offers to
        provision.
        """
        try:
            subnets = await self.store.list_subnets(vlan_uuid=vlan_id)
        except Exception as e:
            logger.error(f"Error loading VLAN subnets: {e}")
            return VlanIPCheck(has_subnets=False, has_ips=False)

        if not subnets:
            return VlanIPCheck(has_subnets=False, has_ips=False)

        first_id = subnets[0].id
        try:
            count = await self.store.count_ip_addresses([s.id for s in subnets])
        except Exception as e:
            logger.error(f"Error checking VLAN IPs: {e}")
            return VlanIPCheck(has_subnets=True, has_ips=False, subnet_id=first_id)

        return VlanIPCheck(has_subnets=True, has_ips=count > 0, subnet_id=first_id)

    async def get_summary(self) -> IPAMSummary:
        vlans = await self.store.list_vlans()
        subnets = await self.store.list_subnets()
        counts = count_by_status(await self.store.list_ip_addresses())
        total = sum(counts.values())

        return IPAMSummary(
            total_vlans=len(vlans),
            total_subnets=len(subnets),
            total_ips=total,
            used_ips=counts[IPStatus.USED],
            available_ips=counts[IPStatus.AVAILABLE],
            reserved_ips=counts[IPStatus.RESERVED],
            overall_usage_percent=usage_percent(counts[IPStatus.USED], total),
        )

    async def get_subnet_stats(self) -> List[SubnetIPStats]:
        """Occupancy per subnet, ordered by CIDR."""
        vlans = {v.id: v for v in await self.store.list_vlans()}
        subnets = sorted(await self.store.list_subnets(), key=lambda s: s.cidr)

        stats = []
        for subnet in subnets:
            counts = count_by_status(await self.store.list_ip_addresses(subnet_ids=[subnet.id]))
            total = sum(counts.values())
            vlan = vlans.get(subnet.vlan_uuid) if subnet.vlan_uuid else None

            stats.append(SubnetIPStats(
                subnet_id=subnet.id,
                subnet_name=subnet.name,
                cidr=subnet.cidr,
                vlan_id=vlan.id if vlan else None,
                vlan_name=vlan.name if vlan else None,
                vlan_number=vlan.vlan_id if vlan else None,
                total_ips=total,
                used_ips=counts[IPStatus.USED],
                available_ips=counts[IPStatus.AVAILABLE],
                reserved_ips=counts[IPStatus.RESERVED],
                usage_percent=usage_percent(counts[IPStatus.USED], total),
            ))

        return stats

    async def get_vlan_stats(self) -> List[VlanIPStats]:
        """Occupancy per VLAN across all of its subnets."""
        stats = []
        for vlan in await self.store.list_vlans():
            subnets = await self.store.list_subnets(vlan_uuid=vlan.id)
            addresses = []
            if subnets:
                addresses = await self.store.list_ip_addresses(subnet_ids=[s.id for s in subnets])

            counts = count_by_status(addresses)
            total = sum(counts.values())

            stats.append(VlanIPStats(
                vlan_id=vlan.id,
                vlan_name=vlan.name,
                vlan_number=vlan.vlan_id,
                category=vlan.category,
                color=vlan.color or DEFAULT_VLAN_COLOR,
                total_ips=total,
                used_ips=counts[IPStatus.USED],
                available_ips=counts[IPStatus.AVAILABLE],
                reserved_ips=counts[IPStatus.RESERVED],
                usage_percent=usage_percent(counts[IPStatus.USED], total),
            ))

        return stats


# Global instance
provisioning_service = ProvisioningService(ipam_store, batch_size=settings.batch_size)
