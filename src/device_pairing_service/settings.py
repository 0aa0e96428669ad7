"""
Settings Store - runtime settings pushed to connected devices
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional

from .discovery.events import EventBus, EventType

logger = logging.getLogger(__name__)

SettingsListener = Callable[[Dict[str, Any]], None]


class SettingsStore:
    """Holds the settings devices observe and notifies listeners when they change"""

    def __init__(
        self,
        output_profiles: Optional[List[Dict[str, Any]]] = None,
        quantity_enabled: bool = False,
        event_bus: Optional[EventBus] = None,
    ):
        self._output_profiles: List[Dict[str, Any]] = list(output_profiles or [])
        self._quantity_enabled = quantity_enabled
        self._listeners: List[SettingsListener] = []
        self._event_bus = event_bus

    @property
    def output_profiles(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._output_profiles)

    @property
    def quantity_enabled(self) -> bool:
        return self._quantity_enabled

    def subscribe(self, listener: SettingsListener):
        self._listeners.append(listener)

    def unsubscribe(self, listener: SettingsListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def update(
        self,
        output_profiles: Optional[List[Dict[str, Any]]] = None,
        quantity_enabled: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Apply new values; listeners only hear about fields that actually changed.

        Returns:
            Dict of changed field name to new value (empty when nothing changed)
        """
        changes: Dict[str, Any] = {}

        if output_profiles is not None and output_profiles != self._output_profiles:
            self._output_profiles = list(output_profiles)
            changes["output_profiles"] = self.output_profiles
        if quantity_enabled is not None and quantity_enabled != self._quantity_enabled:
            self._quantity_enabled = quantity_enabled
            changes["quantity_enabled"] = quantity_enabled

        if not changes:
            return changes

        logger.info(f"Settings changed: {', '.join(changes)}")
        for listener in list(self._listeners):
            try:
                listener(changes)
            except Exception as e:
                logger.error(f"Settings listener failed: {e}")

        if self._event_bus:
            self._event_bus.emit(EventType.SETTINGS_CHANGED, {"changed": list(changes)})

        return changes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_profiles": self.output_profiles,
            "quantity_enabled": self._quantity_enabled,
        }
