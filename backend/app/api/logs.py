"""Operation logs API endpoints"""
from fastapi import APIRouter, Query
from typing import Optional, List
from pydantic import BaseModel

from app.logger import operation_logger

router = APIRouter(prefix="/api/logs", tags=["logs"])


class LogEntry(BaseModel):
    timestamp: str
    level: str
    operator: str
    action: str
    object: str
    details: Optional[str] = None


@router.get("", response_model=List[LogEntry])
async def get_logs(
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of entries"),
    operator: Optional[str] = Query(None, description="Filter by operator"),
):
    """Get IPAM operation logs, newest first."""
    logs = operation_logger.get_logs(limit=limit, filter_operator=operator)
    return [LogEntry(**log) for log in logs]
