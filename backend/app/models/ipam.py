"""IPAM models: VLANs, subnets and persisted IP addresses"""
from pydantic import BaseModel, Field
from typing import Optional
import uuid

from app.models.cidr import IPStatus, IPType, IPVersion


class Vlan(BaseModel):
    """VLAN model."""
    id: str = ""
    vlan_id: int = Field(..., ge=1, le=4094)
    name: str
    description: Optional[str] = None
    category: str = "data"
    color: Optional[str] = None
    is_active: bool = True

    def __init__(self, **data):
        super().__init__(**data)
        if not self.id:
            self.id = str(uuid.uuid4())


class VlanCreate(BaseModel):
    """Model for creating a VLAN."""
    vlan_id: int = Field(..., ge=1, le=4094)
    name: str
    description: Optional[str] = None
    category: str = "data"
    color: Optional[str] = None
    is_active: bool = True


class VlanUpdate(BaseModel):
    """Model for updating a VLAN. The VLAN number cannot change."""
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None


class VlanWithCounts(Vlan):
    """VLAN with the number of subnets attached to it."""
    subnet_count: int = 0


class VlanIdCheck(BaseModel):
    vlan_id: int
    available: bool
    warning: Optional[str] = None


class Subnet(BaseModel):
    """Subnet model. Address fields are derived from the CIDR."""
    id: str = ""
    name: str
    description: Optional[str] = None
    ip_version: IPVersion
    cidr: str  # canonical, "10.0.0.0/24"
    network_address: str
    prefix_length: int
    gateway_ip: Optional[str] = None
    gateway_name: Optional[str] = None
    broadcast_address: Optional[str] = None
    total_addresses: int
    usable_addresses: int
    vlan_uuid: Optional[str] = None
    is_active: bool = True

    def __init__(self, **data):
        super().__init__(**data)
        if not self.id:
            self.id = str(uuid.uuid4())


class SubnetCreate(BaseModel):
    """Model for creating a subnet."""
    name: str
    cidr: str
    description: Optional[str] = None
    gateway_name: Optional[str] = None
    vlan_uuid: Optional[str] = None


class SubnetUpdate(BaseModel):
    """Model for updating a subnet. The CIDR cannot change."""
    name: Optional[str] = None
    description: Optional[str] = None
    gateway_name: Optional[str] = None
    vlan_uuid: Optional[str] = None
    is_active: Optional[bool] = None


class SubnetWithUsage(Subnet):
    """Subnet with address counts by status."""
    used_count: int = 0
    reserved_count: int = 0
    available_count: int = 0


class IPAddress(BaseModel):
    """Persisted IP address, unique per (subnet_id, ip_address)."""
    id: str = ""
    subnet_id: str
    ip_address: str
    ip_type: IPType = IPType.HOST
    status: IPStatus = IPStatus.AVAILABLE
    name: Optional[str] = None
    equipment_id: Optional[str] = None
    notes: Optional[str] = None

    def __init__(self, **data):
        super().__init__(**data)
        if not self.id:
            self.id = str(uuid.uuid4())


class IPAddressCreate(BaseModel):
    """Model for creating a single IP address."""
    ip_address: str
    name: Optional[str] = None
    ip_type: IPType = IPType.HOST
    status: IPStatus = IPStatus.AVAILABLE
    notes: Optional[str] = None


class IPAddressUpdate(BaseModel):
    """Model for updating an IP address. Ownership goes through claim/release."""
    name: Optional[str] = None
    status: Optional[IPStatus] = None
    notes: Optional[str] = None


class IPClaimRequest(BaseModel):
    equipment_id: str
    name: Optional[str] = None


class GenerateIPsOptions(BaseModel):
    """Options for provisioning the addresses of a subnet."""
    subnet_id: str
    cidr: str
    reserve_gateway: bool = True
    gateway_name: str = "Gateway"


class GenerateIPsRequest(BaseModel):
    reserve_gateway: bool = True
    gateway_name: Optional[str] = None


class GenerateIPsResult(BaseModel):
    success: bool
    count: int
    error: Optional[str] = None


class VlanIPCheck(BaseModel):
    has_subnets: bool
    has_ips: bool
    subnet_id: Optional[str] = None


class SubnetIPStats(BaseModel):
    subnet_id: str
    subnet_name: str
    cidr: str
    vlan_id: Optional[str] = None
    vlan_name: Optional[str] = None
    vlan_number: Optional[int] = None
    total_ips: int = 0
    used_ips: int = 0
    available_ips: int = 0
    reserved_ips: int = 0
    usage_percent: int = 0


class VlanIPStats(BaseModel):
    vlan_id: str
    vlan_name: str
    vlan_number: int
    category: str
    color: str
    total_ips: int = 0
    used_ips: int = 0
    available_ips: int = 0
    reserved_ips: int = 0
    usage_percent: int = 0


class IPAMSummary(BaseModel):
    total_vlans: int = 0
    total_subnets: int = 0
    total_ips: int = 0
    used_ips: int = 0
    available_ips: int = 0
    reserved_ips: int = 0
    overall_usage_percent: int = 0
