"""
Utility modules for the Device Pairing Service.
"""

from .network import NetworkDiscovery

__all__ = ["NetworkDiscovery"]
