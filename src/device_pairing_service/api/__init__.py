"""
Device Pairing Service API endpoints.
"""

from .devices import router as devices_router
from .settings import router as settings_router
from .network import router as network_router
from .health import router as health_router

__all__ = ["devices_router", "settings_router", "network_router", "health_router"]
