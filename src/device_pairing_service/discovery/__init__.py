"""
Discovery module - handles LAN announcement and device sessions.
"""

from .events import EventType, Event, EventBus
from .messages import Action, normalize_device_id, encode_message, decode_message
from .handles import ConnectionHandle, WebSocketHandle
from .session_registry import SessionRegistry
from .notifier import Notifier, EventNotifier
from .advertisers import StartResult, PlatformAdvertiser, ZeroconfAdvertiser
from .announcer import Announcer, AnnouncerState, derive_unique_suffix

__all__ = [
    "EventType", "Event", "EventBus",
    "Action", "normalize_device_id", "encode_message", "decode_message",
    "ConnectionHandle", "WebSocketHandle",
    "SessionRegistry",
    "Notifier", "EventNotifier",
    "StartResult", "PlatformAdvertiser", "ZeroconfAdvertiser",
    "Announcer", "AnnouncerState", "derive_unique_suffix",
]
