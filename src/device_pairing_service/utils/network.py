"""
Network utilities for the Device Pairing Service.
"""

import ipaddress
import logging
import socket
from typing import List

import psutil

logger = logging.getLogger(__name__)


class NetworkDiscovery:
    """Network discovery utilities."""

    @staticmethod
    def get_host_ip() -> str:
        """Get the primary host IP address."""
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
                # No packet is sent; this only selects the outbound interface
                s.connect(("8.8.8.8", 80))
                return s.getsockname()[0]
        except OSError as e:
            logger.error(f"Error detecting host IP: {e}")
            return "127.0.0.1"

    @staticmethod
    def get_local_addresses() -> List[str]:
        """IPv4 addresses of every interface, loopback excluded."""
        addresses = []
        for interface, addrs in psutil.net_if_addrs().items():
            for addr in addrs:
                if addr.family != socket.AF_INET:
                    continue
                if ipaddress.ip_address(addr.address).is_loopback:
                    continue
                addresses.append(addr.address)
        return addresses

    @staticmethod
    def get_default_address() -> str:
        """Private address of the default route, falling back to the first private one."""
        host_ip = NetworkDiscovery.get_host_ip()
        if ipaddress.ip_address(host_ip).is_private and not ipaddress.ip_address(host_ip).is_loopback:
            return host_ip
        for address in NetworkDiscovery.get_local_addresses():
            if ipaddress.ip_address(address).is_private:
                return address
        return host_ip

    @staticmethod
    def get_hostname() -> str:
        return socket.gethostname()

    @staticmethod
    def get_network_info() -> dict:
        """Get basic network information."""
        return {
            "hostname": NetworkDiscovery.get_hostname(),
            "host_ip": NetworkDiscovery.get_host_ip(),
            "addresses": NetworkDiscovery.get_local_addresses(),
        }
