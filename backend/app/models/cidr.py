"""CIDR engine models"""
from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum


class IPVersion(str, Enum):
    IPV4 = "ipv4"
    IPV6 = "ipv6"


class IPType(str, Enum):
    NETWORK = "network"
    GATEWAY = "gateway"
    HOST = "host"
    BROADCAST = "broadcast"
    RESERVED = "reserved"


class IPStatus(str, Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    USED = "used"


class CIDRInfo(BaseModel):
    """Derived information about a CIDR block."""
    version: IPVersion
    cidr: str  # canonical, e.g. "192.168.1.0/24"
    network_address: str
    prefix_length: int
    broadcast_address: Optional[str] = None
    gateway_address: Optional[str] = None
    total_addresses: int
    usable_addresses: int


class ValidationResult(BaseModel):
    """Result of CIDR validation."""
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class IPValidation(BaseModel):
    """Result of single address validation."""
    valid: bool
    version: Optional[IPVersion] = None
    error: Optional[str] = None


class IPAddressRecord(BaseModel):
    """Address record produced by generation, ready for persistence."""
    ip_address: str
    ip_type: IPType
    status: IPStatus
    name: Optional[str] = None
