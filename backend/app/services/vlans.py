"""VLAN numbering rules"""
from typing import Optional

# VLAN numbers that switches reserve or treat specially
RESERVED_VLAN_IDS = {
    1: "Default VLAN, not recommended for use",
    1002: "Reserved for FDDI (legacy)",
    1003: "Reserved for Token Ring (legacy)",
    1004: "Reserved for FDDINET (legacy)",
    1005: "Reserved for TRNET (legacy)",
}


def reserved_vlan_warning(vlan_id: int) -> Optional[str]:
    return RESERVED_VLAN_IDS.get(vlan_id)
