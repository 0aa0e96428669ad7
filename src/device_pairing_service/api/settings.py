"""
Settings API - reads and changes the settings pushed to devices
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..service import PairingService
from .dependencies import get_service

router = APIRouter(tags=["settings"])


class SettingsUpdate(BaseModel):
    output_profiles: Optional[List[Dict[str, Any]]] = None
    quantity_enabled: Optional[bool] = None


@router.get("/settings")
async def get_settings(service: PairingService = Depends(get_service)):
    return service.settings.to_dict()


@router.put("/settings")
async def update_settings(body: SettingsUpdate, service: PairingService = Depends(get_service)):
    """Change settings; connected devices receive the changed values."""
    changes = service.settings.update(
        output_profiles=body.output_profiles,
        quantity_enabled=body.quantity_enabled,
    )
    return {
        "status": "ok",
        "changed": list(changes),
        "settings": service.settings.to_dict(),
    }
