"""
Device Pairing Service - LAN discovery and device session registry.

This service handles:
- Announcing the server on the local network (platform mDNS, zeroconf fallback)
- WebSocket connections from devices
- Routing messages to devices by their identity
- Pushing settings changes to every connected device
"""

from .main import main, create_app

__version__ = "1.0.0"
__all__ = ["main", "create_app"]
