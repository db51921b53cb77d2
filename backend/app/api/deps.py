"""Shared API dependencies"""
from fastapi import Header, HTTPException
from typing import Optional

from app.services.ipam_store import IPAMStore, ipam_store
from app.services.provisioning import ProvisioningService, provisioning_service


def get_store() -> IPAMStore:
    return ipam_store


def get_provisioning() -> ProvisioningService:
    return provisioning_service


def get_operator(x_operator: Optional[str] = Header(None)) -> str:
    """Operator name recorded in the operation log.

    "|" separates fields in the log file, so it is not allowed in the name.
    """
    operator = x_operator.strip() if x_operator else ""
    if not operator:
        return "system"
    if "|" in operator or not operator.isprintable():
        raise HTTPException(status_code=400, detail="Invalid X-Operator header")
    return operator
