"""VLAN API endpoints"""
from fastapi import APIRouter, HTTPException, Depends, Query
from typing import List

from app.api.deps import get_operator, get_provisioning, get_store
from app.logger import log_operation
from app.models.ipam import Vlan, VlanCreate, VlanIdCheck, VlanIPCheck, VlanUpdate, VlanWithCounts
from app.services.ipam_store import DuplicateVlanError, IPAMStore
from app.services.provisioning import ProvisioningService
from app.services.vlans import reserved_vlan_warning

router = APIRouter(prefix="/api/ipam/vlans", tags=["vlans"])


@router.get("", response_model=List[VlanWithCounts])
async def get_vlans(store: IPAMStore = Depends(get_store)):
    """Get all VLANs ordered by VLAN number, with their subnet counts."""
    vlans = await store.list_vlans()
    counts = await store.count_subnets_by_vlan()
    return [VlanWithCounts(**vlan.model_dump(), subnet_count=counts.get(vlan.id, 0)) for vlan in vlans]


@router.get("/check-id", response_model=VlanIdCheck)
async def check_vlan_id(
    vlan_id: int = Query(..., ge=1, le=4094),
    store: IPAMStore = Depends(get_store),
):
    """Check whether a VLAN number is free and whether it is a reserved one."""
    return VlanIdCheck(
        vlan_id=vlan_id,
        available=await store.is_vlan_id_available(vlan_id),
        warning=reserved_vlan_warning(vlan_id),
    )


@router.get("/{vlan_uuid}", response_model=Vlan)
async def get_vlan(vlan_uuid: str, store: IPAMStore = Depends(get_store)):
    vlan = await store.get_vlan(vlan_uuid)
    if not vlan:
        raise HTTPException(status_code=404, detail="VLAN not found")
    return vlan


@router.post("", response_model=Vlan)
async def create_vlan(
    vlan: VlanCreate,
    store: IPAMStore = Depends(get_store),
    operator: str = Depends(get_operator),
):
    """Create a new VLAN."""
    try:
        new_vlan = await store.add_vlan(Vlan(**vlan.model_dump()))
    except DuplicateVlanError as e:
        raise HTTPException(status_code=409, detail=str(e))

    warning = reserved_vlan_warning(new_vlan.vlan_id)
    details = f"{new_vlan.name} ({warning})" if warning else new_vlan.name
    log_operation(operator, "CREATE", f"vlan:{new_vlan.vlan_id}", details)
    return new_vlan


@router.patch("/{vlan_uuid}", response_model=Vlan)
async def update_vlan(
    vlan_uuid: str,
    request: VlanUpdate,
    store: IPAMStore = Depends(get_store),
    operator: str = Depends(get_operator),
):
    """Update VLAN metadata."""
    changes = request.model_dump(exclude_unset=True)
    # name, category and is_active cannot be cleared
    for field in ("name", "category", "is_active"):
        if field in changes and changes[field] is None:
            del changes[field]

    vlan = await store.update_vlan(vlan_uuid, changes)
    if not vlan:
        raise HTTPException(status_code=404, detail="VLAN not found")

    log_operation(operator, "UPDATE", f"vlan:{vlan.vlan_id}", ", ".join(sorted(changes)))
    return vlan


@router.delete("/{vlan_uuid}")
async def delete_vlan(
    vlan_uuid: str,
    store: IPAMStore = Depends(get_store),
    operator: str = Depends(get_operator),
):
    """Delete a VLAN. Its subnets are detached, not deleted."""
    vlan = await store.get_vlan(vlan_uuid)
    if not vlan or not await store.delete_vlan(vlan_uuid):
        raise HTTPException(status_code=404, detail="VLAN not found")

    log_operation(operator, "DELETE", f"vlan:{vlan.vlan_id}")
    return {"message": "VLAN deleted"}


@router.get("/{vlan_uuid}/ip-check", response_model=VlanIPCheck)
async def check_vlan_ips(
    vlan_uuid: str,
    service: ProvisioningService = Depends(get_provisioning),
):
    """Check whether the VLAN has subnets and whether they have addresses."""
    return await service.check_vlan_has_subnets_with_ips(vlan_uuid)
