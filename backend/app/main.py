"""IPAM Panel - IP address management backend"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import cidr, ip_addresses, logs, stats, subnets, vlans
from app.config import settings
from app.logger import cleanup_old_logs

app = FastAPI(
    title=settings.app_name,
    description="IP address management: CIDR calculation, subnet provisioning and occupancy",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(cidr.router)
app.include_router(vlans.router)
app.include_router(subnets.router)
app.include_router(ip_addresses.router)
app.include_router(stats.router)
app.include_router(logs.router)

cleanup_old_logs(settings.logs_dir)


@app.get("/api/health")
async def health_check():
    return {"status": "ok"}
