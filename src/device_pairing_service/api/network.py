"""
Network info endpoints used by the host UI to show how devices can reach the server.
"""

from fastapi import APIRouter

from ..utils import NetworkDiscovery

router = APIRouter(tags=["network"])


@router.get("/network/addresses")
async def local_addresses():
    return {"addresses": NetworkDiscovery.get_local_addresses()}


@router.get("/network/default-address")
async def default_address():
    return {"address": NetworkDiscovery.get_default_address()}


@router.get("/network/hostname")
async def hostname():
    return {"hostname": NetworkDiscovery.get_hostname()}
