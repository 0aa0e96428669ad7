"""
Event System for the Device Pairing Service.
"""

import logging
from enum import Enum
from dataclasses import dataclass
from typing import Any, Dict, Callable, List
from datetime import datetime

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event types for the Device Pairing Service."""
    # Device events
    DEVICE_REGISTERED = "device_registered"
    DEVICE_REPLACED = "device_replaced"
    DEVICE_DISCONNECTED = "device_disconnected"
    DEVICE_ERROR = "device_error"

    # Settings events
    SETTINGS_CHANGED = "settings_changed"

    # Announcement events
    ANNOUNCE_STARTED = "announce_started"
    ANNOUNCE_STOPPED = "announce_stopped"

    # User-facing alerts
    ALERT = "alert"


@dataclass
class Event:
    """Event data structure."""
    event_type: EventType
    data: Dict[str, Any]
    timestamp: datetime
    source: str = "pairing_service"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.event_type.value,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
        }


class EventBus:
    """Event bus connecting the registry and announcer to their owning shell."""

    def __init__(self, max_history: int = 1000):
        self._subscribers: Dict[EventType, List[Callable[[Event], None]]] = {}
        self._event_history: List[Event] = []
        self._max_history = max_history

    def subscribe(self, event_type: EventType, callback: Callable[[Event], None]):
        """Subscribe to an event type."""
        self._subscribers.setdefault(event_type, []).append(callback)
        logger.debug(f"Subscribed to {event_type.value}")

    def unsubscribe(self, event_type: EventType, callback: Callable[[Event], None]):
        """Unsubscribe from an event type."""
        callbacks = self._subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event_type: EventType, data: Dict[str, Any], source: str = "pairing_service") -> Event:
        """Emit an event to all subscribers."""
        event = Event(
            event_type=event_type,
            data=data,
            timestamp=datetime.now(),
            source=source
        )

        self._event_history.append(event)
        if len(self._event_history) > self._max_history:
            self._event_history.pop(0)

        # Copy so a callback may unsubscribe itself
        for callback in list(self._subscribers.get(event_type, [])):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in event callback for {event_type.value}: {e}")

        logger.debug(f"Emitted event: {event_type.value} from {source}")
        return event

    def get_recent_events(self, count: int = 50) -> List[Event]:
        """Get recent events."""
        return self._event_history[-count:]
