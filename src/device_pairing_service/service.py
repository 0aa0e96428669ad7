"""
Pairing service - the operations the hosting process drives.
"""

import logging
from typing import Any, Dict, List, Optional

from .config import PairingServiceConfig
from .discovery import (
    Announcer,
    AnnouncerState,
    ConnectionHandle,
    EventBus,
    EventNotifier,
    Notifier,
    SessionRegistry,
)
from .discovery.messages import DeviceId, Message
from .settings import SettingsStore

logger = logging.getLogger(__name__)


class PairingService:
    """
    Wires the session registry and the announcer together.

    Built once by the entry point and handed to the transport; nothing
    here is looked up globally.
    """

    def __init__(
        self,
        config: PairingServiceConfig,
        event_bus: EventBus,
        settings: SettingsStore,
        registry: SessionRegistry,
        announcer: Announcer
    ):
        self.config = config
        self.event_bus = event_bus
        self.settings = settings
        self.registry = registry
        self.announcer = announcer

    @classmethod
    def create(
        cls,
        config: PairingServiceConfig,
        notifier: Optional[Notifier] = None,
        announcer: Optional[Announcer] = None
    ) -> "PairingService":
        event_bus = EventBus()
        settings = SettingsStore(
            output_profiles=config.output_profiles,
            quantity_enabled=config.quantity_enabled,
            event_bus=event_bus,
        )
        registry = SessionRegistry(settings, version=config.app_version, event_bus=event_bus)
        if announcer is None:
            announcer = Announcer.from_config(config, notifier or EventNotifier(event_bus), event_bus)
        return cls(config, event_bus, settings, registry, announcer)

    # Announcement

    def start_announcing(self) -> AnnouncerState:
        return self.announcer.start()

    async def stop_announcing(self):
        await self.announcer.stop()

    # Connection lifecycle, driven by the transport

    def on_connection_opened(self, handle: ConnectionHandle):
        self.registry.on_connection_opened(handle)

    async def on_connection_message(self, handle: ConnectionHandle, message: Any):
        await self.registry.handle_inbound(handle, message)

    def on_connection_closed(self, handle: ConnectionHandle) -> List[DeviceId]:
        return self.registry.handle_closed(handle)

    def on_connection_error(self, handle: ConnectionHandle, err: BaseException) -> List[DeviceId]:
        return self.registry.handle_error(handle, err)

    # Routing

    async def route_to_device(self, device_id: Any, message: Message) -> bool:
        return await self.registry.route(device_id, message)

    async def broadcast_to_all(self, message: Message) -> Dict[DeviceId, bool]:
        return await self.registry.broadcast(message)

    async def shutdown(self):
        await self.registry.flush()
        await self.stop_announcing()
        logger.info("Pairing service stopped")
