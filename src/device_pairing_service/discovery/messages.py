"""
Wire messages exchanged with connected devices.

Every message is a JSON object carrying an ``action`` discriminant. Inbound
requests recognized here are ``PING`` and ``HELO``; everything else is
ignored by the registry. Field names on the wire are camelCase.
"""

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DeviceId = str


class Action(str, Enum):
    """Action discriminants used on the wire."""
    PING = "PING"
    PONG = "PONG"
    HELO = "HELO"
    KICK = "KICK"
    UPDATE_OUTPUT_PROFILES = "UPDATE_OUTPUT_PROFILES"
    UPDATE_QUANTITY_ENABLED = "UPDATE_QUANTITY_ENABLED"


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)


# ==================== REQUESTS ====================

class HeloRequest(WireModel):
    """Identification handshake sent by a device."""
    action: Action = Action.HELO
    device_id: Optional[Union[str, int]] = Field(default=None, alias="deviceId")
    last_sync: Optional[Union[str, int, float]] = Field(default=None, alias="lastSync")


# ==================== RESPONSES ====================

class PongResponse(WireModel):
    action: Action = Action.PONG


class HeloResponse(WireModel):
    """Handshake acknowledgment with server capability metadata."""
    action: Action = Action.HELO
    version: str
    output_profiles: List[Dict[str, Any]] = Field(default_factory=list, alias="outputProfiles")
    # Deprecated, kept for older clients
    quantity_enabled: bool = Field(default=False, alias="quantityEnabled")


class KickResponse(WireModel):
    action: Action = Action.KICK
    message: Optional[str] = None


class UpdateOutputProfilesResponse(WireModel):
    action: Action = Action.UPDATE_OUTPUT_PROFILES
    output_profiles: List[Dict[str, Any]] = Field(default_factory=list, alias="outputProfiles")


class UpdateQuantityEnabledResponse(WireModel):
    action: Action = Action.UPDATE_QUANTITY_ENABLED
    quantity_enabled: bool = Field(alias="quantityEnabled")


Message = Union[WireModel, Dict[str, Any]]


def normalize_device_id(value: Any) -> Optional[DeviceId]:
    """Return the canonical registry key for a client-supplied identity.

    Numeric and string identities name the same device (``42 == "42"``).
    ``None``, the empty string and anything that is not a string or an
    integer mean the identity is absent.
    """
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    device_id = str(value).strip()
    return device_id or None


def encode_message(message: Message) -> str:
    """Serialize an outbound message to its JSON text form."""
    if isinstance(message, BaseModel):
        return message.model_dump_json(by_alias=True)
    return json.dumps(message)


def decode_message(raw: Union[str, bytes, Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Parse an inbound message; returns None for anything that is not a JSON object."""
    if isinstance(raw, dict):
        return raw
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        payload = json.loads(raw)
    except (UnicodeDecodeError, TypeError, ValueError) as e:
        logger.debug(f"Dropping undecodable message: {e}")
        return None
    if not isinstance(payload, dict):
        logger.debug(f"Dropping non-object message: {type(payload).__name__}")
        return None
    return payload
