"""CIDR calculator API endpoints"""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from app.models.cidr import CIDRInfo, ValidationResult
from app.services.cidr import (
    check_overlap,
    format_ip_count,
    is_ip_in_cidr,
    parse_cidr,
    validate_cidr,
)

router = APIRouter(prefix="/api/ipam/cidr", tags=["cidr"])


class CIDRRequest(BaseModel):
    cidr: str


class CIDRParseResponse(CIDRInfo):
    total_display: str


class OverlapRequest(BaseModel):
    cidr_a: str
    cidr_b: str


class OverlapResponse(BaseModel):
    overlap: bool


class ContainsRequest(BaseModel):
    ip: str
    cidr: str


class ContainsResponse(BaseModel):
    contains: bool


@router.post("/parse", response_model=CIDRParseResponse)
async def parse(request: CIDRRequest):
    """Parse CIDR notation into network information."""
    info = parse_cidr(request.cidr)
    if not info:
        raise HTTPException(status_code=400, detail="Invalid CIDR format")

    return CIDRParseResponse(**info.model_dump(), total_display=format_ip_count(info.total_addresses))


@router.post("/validate", response_model=ValidationResult)
async def validate(request: CIDRRequest):
    """Validate CIDR notation, returning errors and warnings."""
    return validate_cidr(request.cidr)


@router.post("/overlap", response_model=OverlapResponse)
async def overlap(request: OverlapRequest):
    """Check whether two CIDR blocks overlap."""
    return OverlapResponse(overlap=check_overlap(request.cidr_a, request.cidr_b))


@router.post("/contains", response_model=ContainsResponse)
async def contains(request: ContainsRequest):
    """Check whether an address lies inside a CIDR block."""
    return ContainsResponse(contains=is_ip_in_cidr(request.ip, request.cidr))
