"""IP address API endpoints"""
from fastapi import APIRouter, HTTPException, Depends, Query
from typing import List, Optional

from app.api.deps import get_operator, get_store
from app.api.subnets import USE_CLAIM_DETAIL
from app.logger import log_operation
from app.models.ipam import IPAddress, IPAddressUpdate, IPClaimRequest
from app.services.ipam_store import IPAMStore, IPConflictError

router = APIRouter(prefix="/api/ipam/ips", tags=["ip-addresses"])


@router.get("/search", response_model=List[IPAddress])
async def search_ips(
    q: str = Query(..., min_length=2, description="Substring of address or name"),
    limit: int = Query(50, ge=1, le=500),
    store: IPAMStore = Depends(get_store),
):
    """Search addresses across all subnets."""
    return await store.search_ip_addresses(q, limit=limit)


@router.get("/available", response_model=List[IPAddress])
async def get_available_ips(
    subnet_id: Optional[str] = Query(None),
    vlan_uuid: Optional[str] = Query(None),
    store: IPAMStore = Depends(get_store),
):
    """Addresses that can be assigned, optionally limited to a subnet or VLAN."""
    subnet_ids = None
    if subnet_id:
        subnet_ids = [subnet_id]
    elif vlan_uuid:
        subnet_ids = [s.id for s in await store.list_subnets(vlan_uuid=vlan_uuid)]
        if not subnet_ids:
            return []

    return await store.list_available_ips(subnet_ids=subnet_ids)


@router.patch("/{ip_id}", response_model=IPAddress)
async def update_ip(
    ip_id: str,
    request: IPAddressUpdate,
    store: IPAMStore = Depends(get_store),
    operator: str = Depends(get_operator),
):
    """Update address name, status or notes."""
    changes = request.model_dump(exclude_unset=True)
    try:
        ip = await store.update_ip_address(ip_id, changes)
    except IPConflictError:
        raise HTTPException(status_code=400, detail=USE_CLAIM_DETAIL)
    if not ip:
        raise HTTPException(status_code=404, detail="IP address not found")

    log_operation(operator, "UPDATE", f"ip:{ip.ip_address}", ", ".join(sorted(changes)))
    return ip


@router.delete("/{ip_id}")
async def delete_ip(
    ip_id: str,
    store: IPAMStore = Depends(get_store),
    operator: str = Depends(get_operator),
):
    """Delete a single address."""
    ip = await store.get_ip_address(ip_id)
    if not ip or not await store.delete_ip_address(ip_id):
        raise HTTPException(status_code=404, detail="IP address not found")

    log_operation(operator, "DELETE", f"ip:{ip.ip_address}")
    return {"message": "IP address deleted"}


@router.post("/{ip_id}/claim", response_model=IPAddress)
async def claim_ip(
    ip_id: str,
    request: IPClaimRequest,
    store: IPAMStore = Depends(get_store),
    operator: str = Depends(get_operator),
):
    """Assign an available address to equipment."""
    try:
        ip = await store.claim_ip_address(ip_id, request.equipment_id, name=request.name)
    except IPConflictError as e:
        raise HTTPException(status_code=409, detail=f"IP address is not available: {e}")

    if not ip:
        raise HTTPException(status_code=404, detail="IP address not found")

    log_operation(operator, "CLAIM", f"ip:{ip.ip_address}", f"equipment={request.equipment_id}")
    return ip


@router.post("/{ip_id}/release", response_model=IPAddress)
async def release_ip(
    ip_id: str,
    store: IPAMStore = Depends(get_store),
    operator: str = Depends(get_operator),
):
    """Detach an address from its equipment."""
    ip = await store.release_ip_address(ip_id)
    if not ip:
        raise HTTPException(status_code=404, detail="IP address not found")

    log_operation(operator, "RELEASE", f"ip:{ip.ip_address}")
    return ip
