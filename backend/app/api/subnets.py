"""Subnet API endpoints"""
from fastapi import APIRouter, HTTPException, Depends, Query
from pydantic import BaseModel
from typing import List, Optional

from app.api.deps import get_operator, get_provisioning, get_store
from app.logger import log_operation
from app.models.cidr import IPStatus, IPType
from app.models.ipam import (
    GenerateIPsOptions,
    GenerateIPsRequest,
    GenerateIPsResult,
    IPAddress,
    IPAddressCreate,
    Subnet,
    SubnetCreate,
    SubnetUpdate,
    SubnetWithUsage,
)
from app.services.cidr import check_overlap, is_ip_in_cidr, normalize_ip, parse_cidr, validate_cidr
from app.services.ipam_store import DuplicateIPError, IPAMStore
from app.services.provisioning import ProvisioningService, count_by_status

router = APIRouter(prefix="/api/ipam/subnets", tags=["subnets"])

USE_CLAIM_DETAIL = "Addresses become used only by claiming them (POST /api/ipam/ips/{id}/claim)"


class HasIPsResponse(BaseModel):
    has_ips: bool


async def get_subnet_or_404(subnet_id: str, store: IPAMStore) -> Subnet:
    subnet = await store.get_subnet(subnet_id)
    if not subnet:
        raise HTTPException(status_code=404, detail="Subnet not found")
    return subnet


async def find_overlapping_subnet(store: IPAMStore, cidr: str) -> Optional[Subnet]:
    """Return the first stored subnet whose range overlaps cidr."""
    for subnet in await store.list_subnets():
        if check_overlap(cidr, subnet.cidr):
            return subnet
    return None


@router.get("", response_model=List[SubnetWithUsage])
async def get_subnets(
    vlan_uuid: Optional[str] = Query(None, description="Filter by VLAN"),
    store: IPAMStore = Depends(get_store),
):
    """Get subnets with address usage counts."""
    subnets = await store.list_subnets(vlan_uuid=vlan_uuid)

    result = []
    for subnet in subnets:
        counts = count_by_status(await store.list_ip_addresses(subnet_ids=[subnet.id]))
        result.append(SubnetWithUsage(
            **subnet.model_dump(),
            used_count=counts[IPStatus.USED],
            reserved_count=counts[IPStatus.RESERVED],
            available_count=counts[IPStatus.AVAILABLE],
        ))
    return result


@router.get("/{subnet_id}", response_model=Subnet)
async def get_subnet(subnet_id: str, store: IPAMStore = Depends(get_store)):
    """Get a single subnet."""
    return await get_subnet_or_404(subnet_id, store)


@router.post("", response_model=Subnet)
async def create_subnet(
    request: SubnetCreate,
    store: IPAMStore = Depends(get_store),
    operator: str = Depends(get_operator),
):
    """Create a subnet. The CIDR is normalized and must not overlap existing subnets."""
    validation = validate_cidr(request.cidr)
    if not validation.valid:
        raise HTTPException(status_code=400, detail="; ".join(validation.errors))

    info = parse_cidr(request.cidr)

    if request.vlan_uuid and not await store.get_vlan(request.vlan_uuid):
        raise HTTPException(status_code=400, detail="VLAN not found")

    conflict = await find_overlapping_subnet(store, info.cidr)
    if conflict:
        raise HTTPException(
            status_code=409,
            detail=f"Conflicts with existing subnet: {conflict.name} ({conflict.cidr})",
        )

    subnet = Subnet(
        name=request.name,
        description=request.description,
        ip_version=info.version,
        cidr=info.cidr,
        network_address=info.network_address,
        prefix_length=info.prefix_length,
        gateway_ip=info.gateway_address,
        gateway_name=request.gateway_name,
        broadcast_address=info.broadcast_address,
        total_addresses=info.total_addresses,
        usable_addresses=info.usable_addresses,
        vlan_uuid=request.vlan_uuid,
    )
    await store.add_subnet(subnet)

    log_operation(operator, "CREATE", f"subnet:{subnet.cidr}", subnet.name)
    return subnet


@router.patch("/{subnet_id}", response_model=Subnet)
async def update_subnet(
    subnet_id: str,
    request: SubnetUpdate,
    store: IPAMStore = Depends(get_store),
    operator: str = Depends(get_operator),
):
    """Update subnet metadata."""
    subnet = await get_subnet_or_404(subnet_id, store)
    changes = request.model_dump(exclude_unset=True)
    # name and is_active cannot be cleared
    for field in ("name", "is_active"):
        if field in changes and changes[field] is None:
            del changes[field]

    if changes.get("vlan_uuid") and not await store.get_vlan(changes["vlan_uuid"]):
        raise HTTPException(status_code=400, detail="VLAN not found")

    updated = subnet.model_copy(update=changes)
    await store.update_subnet(updated)

    log_operation(operator, "UPDATE", f"subnet:{subnet.cidr}", ", ".join(sorted(changes)))
    return updated


@router.delete("/{subnet_id}")
async def delete_subnet(
    subnet_id: str,
    store: IPAMStore = Depends(get_store),
    operator: str = Depends(get_operator),
):
    """Delete a subnet and all of its IP addresses."""
    subnet = await get_subnet_or_404(subnet_id, store)
    await store.delete_subnet(subnet_id)

    log_operation(operator, "DELETE", f"subnet:{subnet.cidr}")
    return {"message": "Subnet deleted"}


@router.post("/{subnet_id}/generate", response_model=GenerateIPsResult)
async def generate_ips(
    subnet_id: str,
    request: GenerateIPsRequest,
    store: IPAMStore = Depends(get_store),
    service: ProvisioningService = Depends(get_provisioning),
    operator: str = Depends(get_operator),
):
    """Generate and store the subnet's addresses. Safe to repeat."""
    subnet = await get_subnet_or_404(subnet_id, store)

    result = await service.generate_and_upsert_ips_for_subnet(GenerateIPsOptions(
        subnet_id=subnet.id,
        cidr=subnet.cidr,
        reserve_gateway=request.reserve_gateway,
        gateway_name=request.gateway_name or subnet.gateway_name or "Gateway",
    ))

    log_operation(
        operator,
        "GENERATE",
        f"subnet:{subnet.cidr}",
        f"count={result.count}" if result.success else f"count={result.count} error={result.error}",
    )
    return result


@router.get("/{subnet_id}/has-ips", response_model=HasIPsResponse)
async def has_ips(
    subnet_id: str,
    service: ProvisioningService = Depends(get_provisioning),
):
    """Check whether addresses were already generated for the subnet."""
    return HasIPsResponse(has_ips=await service.check_subnet_has_ips(subnet_id))


@router.get("/{subnet_id}/ips", response_model=List[IPAddress])
async def get_subnet_ips(
    subnet_id: str,
    status: Optional[IPStatus] = Query(None),
    ip_type: Optional[IPType] = Query(None),
    search: Optional[str] = Query(None, description="Substring of address or name"),
    store: IPAMStore = Depends(get_store),
):
    """List the subnet's addresses in numeric order."""
    await get_subnet_or_404(subnet_id, store)
    return await store.list_ip_addresses(
        subnet_ids=[subnet_id], status=status, ip_type=ip_type, search=search
    )


@router.post("/{subnet_id}/ips", response_model=IPAddress)
async def create_subnet_ip(
    subnet_id: str,
    request: IPAddressCreate,
    store: IPAMStore = Depends(get_store),
    operator: str = Depends(get_operator),
):
    """Add a single address to the subnet."""
    subnet = await get_subnet_or_404(subnet_id, store)

    if request.status == IPStatus.USED:
        raise HTTPException(status_code=400, detail=USE_CLAIM_DETAIL)

    ip_address = normalize_ip(request.ip_address)
    if not ip_address:
        raise HTTPException(status_code=400, detail="Invalid IP format")
    if not is_ip_in_cidr(ip_address, subnet.cidr):
        raise HTTPException(status_code=400, detail=f"{ip_address} is outside {subnet.cidr}")

    ip = IPAddress(subnet_id=subnet.id, **{**request.model_dump(), "ip_address": ip_address})
    try:
        await store.create_ip_address(ip)
    except DuplicateIPError as e:
        raise HTTPException(status_code=409, detail=str(e))

    log_operation(operator, "CREATE", f"ip:{ip.ip_address}", f"subnet={subnet.cidr}")
    return ip
