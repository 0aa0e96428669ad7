"""
Configuration for the Device Pairing Service.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


def _parse_profiles(raw: str) -> List[Dict[str, Any]]:
    """Parse the output profile list from its JSON env representation."""
    if not raw:
        return []
    try:
        profiles = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring malformed PAIRING_OUTPUT_PROFILES: {e}")
        return []
    if not isinstance(profiles, list):
        logger.warning("Ignoring PAIRING_OUTPUT_PROFILES: expected a JSON list")
        return []
    return profiles


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PairingServiceConfig:
    """Device Pairing Service configuration settings."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 5002

    # Application identity (advertised on the LAN and sent in handshakes)
    app_name: str = "Device Pairing Service"
    app_version: str = "1.0.0"

    # Discovery settings
    service_type: str = "_http._tcp.local."
    unique_name_length: int = 10  # Digits of the host-derived suffix
    responder_startup_grace: float = 0.5  # Seconds the platform responder gets to fail

    # Settings pushed to connected devices
    output_profiles: List[Dict[str, Any]] = field(default_factory=list)
    quantity_enabled: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: str = ""

    @classmethod
    def from_env(cls) -> "PairingServiceConfig":
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("PAIRING_HOST", "0.0.0.0"),
            port=int(os.getenv("PAIRING_PORT", "5002")),
            app_name=os.getenv("PAIRING_APP_NAME", "Device Pairing Service"),
            app_version=os.getenv("PAIRING_APP_VERSION", "1.0.0"),
            service_type=os.getenv("PAIRING_SERVICE_TYPE", "_http._tcp.local."),
            unique_name_length=int(os.getenv("PAIRING_UNIQUE_NAME_LENGTH", "10")),
            responder_startup_grace=float(os.getenv("PAIRING_RESPONDER_STARTUP_GRACE", "0.5")),
            output_profiles=_parse_profiles(os.getenv("PAIRING_OUTPUT_PROFILES", "")),
            quantity_enabled=_parse_bool(os.getenv("PAIRING_QUANTITY_ENABLED", "false")),
            log_level=os.getenv("PAIRING_LOG_LEVEL", "INFO"),
            log_file=os.getenv("PAIRING_LOG_FILE", ""),
        )
