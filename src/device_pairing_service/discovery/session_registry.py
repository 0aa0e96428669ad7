"""
Session registry mapping device identities to their live connections.

Devices are only known once they identify themselves with a HELO handshake.
Messages are routed by device identity; a device that reconnects simply
replaces its previous connection in the map. Closing connections is left to
the transport that accepted them.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from pydantic import ValidationError

from .events import EventBus, EventType
from .handles import ConnectionHandle
from .messages import (
    Action,
    DeviceId,
    HeloRequest,
    HeloResponse,
    KickResponse,
    Message,
    PongResponse,
    UpdateOutputProfilesResponse,
    UpdateQuantityEnabledResponse,
    decode_message,
    encode_message,
    normalize_device_id,
)

if TYPE_CHECKING:
    from ..settings import SettingsStore

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Routes messages to devices by identity.

    Usage:
        registry = SessionRegistry(settings, version="1.0.0", event_bus=bus)
        await registry.handle_inbound(handle, '{"action": "HELO", "deviceId": "42"}')
        await registry.route("42", {"action": "KICK"})
        await registry.broadcast(UpdateOutputProfilesResponse(output_profiles=[...]))
        registry.handle_closed(handle)

    All methods are meant to run on a single event loop; no locking is done.
    """

    def __init__(self, settings: "SettingsStore", version: str, event_bus: EventBus):
        self._connections: Dict[DeviceId, ConnectionHandle] = {}
        self._settings = settings
        self._version = version
        self._event_bus = event_bus
        self._pending: Set[asyncio.Task] = set()

        settings.subscribe(self._on_settings_changed)

    # ==================== MAPPING ====================

    def register(
        self,
        device_id: Any,
        handle: ConnectionHandle,
        info: Optional[Dict[str, Any]] = None
    ):
        """
        Map a device identity to a connection, replacing any previous one.
        The replaced connection is left open.
        """
        key = normalize_device_id(device_id)
        if key is None:
            logger.debug(f"Not registering {handle}: no device identity")
            return

        previous = self._connections.get(key)
        self._connections[key] = handle

        data = {"device_id": key, **(info or {})}
        if previous is not None and previous is not handle:
            logger.info(f"Replaced connection for device {key}")
            self._event_bus.emit(EventType.DEVICE_REPLACED, data)
        else:
            logger.info(f"Device {key} registered")
            self._event_bus.emit(EventType.DEVICE_REGISTERED, data)

    def find_device_ids(self, handle: ConnectionHandle) -> List[DeviceId]:
        """Reverse lookup: every identity currently mapped to ``handle``."""
        return [key for key, h in self._connections.items() if h is handle]

    def get_handle(self, device_id: Any) -> Optional[ConnectionHandle]:
        key = normalize_device_id(device_id)
        return self._connections.get(key) if key is not None else None

    def is_registered(self, device_id: Any) -> bool:
        return self.get_handle(device_id) is not None

    @property
    def device_ids(self) -> List[DeviceId]:
        return list(self._connections.keys())

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def get_all_devices(self) -> List[Dict[str, Any]]:
        """Registered devices as dicts for API responses."""
        devices = []
        for key, handle in self._connections.items():
            connected_at = getattr(handle, "connected_at", None)
            last_seen = getattr(handle, "last_seen", None)
            devices.append({
                "device_id": key,
                "is_open": handle.is_open,
                "peer": getattr(handle, "peer", None),
                "connected_at": connected_at.isoformat() if connected_at else None,
                "last_seen": last_seen.isoformat() if last_seen else None,
            })
        return devices

    # ==================== OUTBOUND ====================

    async def _send(self, handle: ConnectionHandle, payload: str, label: str) -> bool:
        if not handle.is_open:
            logger.debug(f"Skipping send to {label}: connection not open")
            return False
        try:
            await handle.send(payload)
            return True
        except Exception as e:
            logger.warning(f"Send to {label} failed: {e}")
            return False

    async def route(self, device_id: Any, message: Message) -> bool:
        """
        Send a message to the current connection of a device.

        Returns False when the device is unknown, its connection is no longer
        open, or the send fails. Nothing is queued or retried.
        """
        key = normalize_device_id(device_id)
        handle = self._connections.get(key) if key is not None else None
        if handle is None:
            logger.debug(f"Dropping message for unknown device {device_id}")
            return False
        return await self._send(handle, encode_message(message), f"device {key}")

    async def broadcast(self, message: Message) -> Dict[DeviceId, bool]:
        """
        Send a message to every registered connection that is open.

        Returns:
            Dict mapping device id to send success
        """
        payload = encode_message(message)
        targets = list(self._connections.items())
        results: Dict[DeviceId, bool] = {}

        for key, handle in targets:
            results[key] = await self._send(handle, payload, f"device {key}")

        sent = sum(1 for ok in results.values() if ok)
        logger.info(f"Broadcast to {sent}/{len(targets)} devices")
        return results

    async def kick(self, device_id: Any, message: Optional[str] = None) -> bool:
        """Tell a device it has been kicked out; the device closes on its side."""
        logger.info(f"Kicking device {device_id}")
        return await self.route(device_id, KickResponse(message=message))

    # ==================== INBOUND ====================

    def on_connection_opened(self, handle: ConnectionHandle):
        # Connections stay anonymous until they send HELO
        logger.debug(f"Connection opened: {handle}")

    async def handle_inbound(self, handle: ConnectionHandle, raw: Any):
        """Dispatch one inbound message. Malformed and unknown messages are ignored."""
        message = decode_message(raw)
        if message is None:
            return

        action = message.get("action")
        if action == Action.PING.value:
            await self._send(handle, encode_message(PongResponse()), f"{handle}")
        elif action == Action.HELO.value:
            await self._handle_helo(handle, message)
        else:
            logger.debug(f"Ignoring message with action {action!r}")

    async def _handle_helo(self, handle: ConnectionHandle, message: Dict[str, Any]):
        device_id = normalize_device_id(message.get("deviceId"))
        if device_id is not None:
            self.register(device_id, handle, self._helo_info(handle, message))

        response = HeloResponse(
            version=self._version,
            output_profiles=self._settings.output_profiles,
            quantity_enabled=False,
        )
        await self._send(handle, encode_message(response), f"{handle}")

    def _helo_info(self, handle: ConnectionHandle, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        # Extra handshake fields never block registration
        try:
            request = HeloRequest.model_validate(message)
        except ValidationError as e:
            logger.debug(f"Ignoring malformed HELO fields from {handle}: {e.error_count()} errors")
            return None
        return {"last_sync": request.last_sync} if request.last_sync is not None else None

    def handle_closed(self, handle: ConnectionHandle) -> List[DeviceId]:
        """Forget every identity mapped to a closed connection."""
        device_ids = self._remove(handle)
        for key in device_ids:
            logger.info(f"Device {key} disconnected")
            self._event_bus.emit(EventType.DEVICE_DISCONNECTED, {"device_id": key})
        return device_ids

    def handle_error(self, handle: ConnectionHandle, err: BaseException) -> List[DeviceId]:
        """Forget every identity mapped to a failed connection."""
        device_ids = self._remove(handle)
        for key in device_ids:
            logger.warning(f"Device {key} connection error: {err}")
            self._event_bus.emit(EventType.DEVICE_ERROR, {"device_id": key, "error": str(err)})
        return device_ids

    def _remove(self, handle: ConnectionHandle) -> List[DeviceId]:
        device_ids = self.find_device_ids(handle)
        for key in device_ids:
            del self._connections[key]
        return device_ids

    # ==================== SETTINGS ====================

    def _on_settings_changed(self, changes: Dict[str, Any]):
        messages: List[Message] = []
        if "output_profiles" in changes:
            messages.append(UpdateOutputProfilesResponse(output_profiles=changes["output_profiles"]))
        if "quantity_enabled" in changes:
            messages.append(UpdateQuantityEnabledResponse(quantity_enabled=changes["quantity_enabled"]))
        if not messages:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, settings update not pushed to devices")
            return

        for message in messages:
            task = loop.create_task(self.broadcast(message))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def flush(self):
        """Wait for settings broadcasts that are still in flight."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
