"""IPAM occupancy statistics endpoints"""
from fastapi import APIRouter, Depends
from typing import List

from app.api.deps import get_provisioning
from app.models.ipam import IPAMSummary, SubnetIPStats, VlanIPStats
from app.services.provisioning import ProvisioningService

router = APIRouter(prefix="/api/ipam/stats", tags=["stats"])


@router.get("/summary", response_model=IPAMSummary)
async def get_summary(service: ProvisioningService = Depends(get_provisioning)):
    """Totals across all VLANs, subnets and addresses."""
    return await service.get_summary()


@router.get("/subnets", response_model=List[SubnetIPStats])
async def get_subnet_stats(service: ProvisioningService = Depends(get_provisioning)):
    """Address occupancy per subnet."""
    return await service.get_subnet_stats()


@router.get("/vlans", response_model=List[VlanIPStats])
async def get_vlan_stats(service: ProvisioningService = Depends(get_provisioning)):
    """Address occupancy per VLAN."""
    return await service.get_vlan_stats()
