"""
Health API endpoints for the Device Pairing Service.
"""

from fastapi import APIRouter, Depends

from ..service import PairingService
from .dependencies import get_service

router = APIRouter()


@router.get("/health")
async def health(service: PairingService = Depends(get_service)):
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "device-pairing-service",
        "version": service.config.app_version,
        "connected_devices": service.registry.connection_count,
        "announcer": service.announcer.state.value,
    }


@router.get("/")
async def root(service: PairingService = Depends(get_service)):
    """Root endpoint with service information."""
    config = service.config

    return {
        "service": config.app_name,
        "version": config.app_version,
        "description": "LAN device pairing and session registry",
        "port": config.port,
        "announcer": service.announcer.to_dict(),
        "connected_devices": service.registry.connection_count,
        "endpoints": {
            "devices": "/api/devices",
            "send": "/api/devices/{id}/send",
            "kick": "/api/devices/{id}/kick",
            "broadcast": "/api/devices/broadcast",
            "settings": "/api/settings",
            "events": "/api/events",
            "network": "/api/network/addresses",
            "websocket": "/api/ws",
        },
    }
