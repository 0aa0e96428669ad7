"""
User-facing alerts raised by the discovery layer.
"""

import logging
from typing import Protocol

from .events import EventBus, EventType

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Non-blocking alert sink owned by the UI shell."""

    def warning(self, title: str, message: str) -> None:
        ...

    def error(self, title: str, message: str) -> None:
        ...


class EventNotifier:
    """Logs alerts and publishes them as ALERT events for whatever UI is listening."""

    def __init__(self, event_bus: EventBus):
        self._event_bus = event_bus

    def _alert(self, level: str, title: str, message: str):
        self._event_bus.emit(EventType.ALERT, {
            "level": level,
            "title": title,
            "message": message,
        })

    def warning(self, title: str, message: str) -> None:
        logger.warning(f"{title}: {message}")
        self._alert("warning", title, message)

    def error(self, title: str, message: str) -> None:
        logger.error(f"{title}: {message}")
        self._alert("error", title, message)
