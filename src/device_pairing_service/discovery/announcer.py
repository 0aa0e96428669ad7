"""
LAN announcer for the Device Pairing Service.
Advertises the server through the platform mDNS responder and falls back to
a pure-Python responder when the platform one is unavailable.
"""

import logging
import socket
import sys
from enum import Enum
from typing import Optional

from .advertisers import PlatformAdvertiser, StartResult, ZeroconfAdvertiser, uses_bonjour
from .events import EventBus, EventType
from .notifier import Notifier

logger = logging.getLogger(__name__)

UNIQUE_NAME_LENGTH = 10


class AnnouncerState(Enum):
    """Announcement lifecycle state."""
    INACTIVE = "inactive"
    PRIMARY_ACTIVE = "primary-active"
    FALLBACK_ACTIVE = "fallback-active"
    STOPPED = "stopped"


def derive_unique_suffix(hostname: str, length: int = UNIQUE_NAME_LENGTH) -> str:
    """
    Digits-only suffix that tells apart instances on different hosts.

    Each character of the host name is replaced by its decimal code point
    and the result is cut to ``length`` characters. Collisions are possible.
    """
    return "".join(str(ord(ch)) for ch in hostname)[:length]


def remediation_message(platform: str, app_name: str) -> str:
    """Explain degraded discovery and how to fix it on this platform family."""
    if uses_bonjour(platform):
        return (
            "Apple Bonjour is missing.\n"
            "Devices may fail to find the server automatically.\n"
            "If they do find it, you can ignore this message.\n\n"
            f"To remove this alert, reinstall {app_name} with an administrator "
            "account and reboot your system."
        )
    return (
        "The Avahi mDNS daemon is missing.\n"
        "Devices may fail to find the server automatically.\n"
        "To remove this alert, install these packages: "
        "avahi-daemon avahi-discover libnss-mdns libavahi-compat-libdnssd1"
    )


class Announcer:
    """
    Makes the server discoverable on the local network.

    Usage:
        announcer = Announcer.from_config(config, notifier, event_bus)
        announcer.start()       # never raises
        ...
        await announcer.stop()  # safe to call repeatedly
    """

    def __init__(
        self,
        app_name: str,
        notifier: Notifier,
        primary: PlatformAdvertiser,
        fallback: ZeroconfAdvertiser,
        event_bus: Optional[EventBus] = None,
        hostname: Optional[str] = None,
        platform: Optional[str] = None,
        unique_name_length: int = UNIQUE_NAME_LENGTH
    ):
        self.app_name = app_name
        self.primary = primary
        self.fallback = fallback
        self.hostname = hostname or socket.gethostname()
        self.platform = platform or sys.platform
        self.unique_name_length = unique_name_length
        self.state = AnnouncerState.INACTIVE
        self._notifier = notifier
        self._event_bus = event_bus

    @classmethod
    def from_config(cls, config, notifier: Notifier, event_bus: Optional[EventBus] = None) -> "Announcer":
        primary = PlatformAdvertiser(
            name=config.app_name,
            service_type=config.service_type,
            port=config.port,
            startup_grace=config.responder_startup_grace,
        )
        fallback = ZeroconfAdvertiser(
            service_type=config.service_type,
            port=config.port,
            properties={"version": config.app_version},
        )
        return cls(
            app_name=config.app_name,
            notifier=notifier,
            primary=primary,
            fallback=fallback,
            event_bus=event_bus,
            unique_name_length=config.unique_name_length,
        )

    @property
    def fallback_name(self) -> str:
        return f"{self.app_name} {derive_unique_suffix(self.hostname, self.unique_name_length)}"

    @property
    def is_active(self) -> bool:
        return self.state in (AnnouncerState.PRIMARY_ACTIVE, AnnouncerState.FALLBACK_ACTIVE)

    def start_primary(self) -> StartResult:
        try:
            return self.primary.start(on_exit=self._on_primary_exit)
        except Exception as e:
            return StartResult.failure(e)

    def start_fallback(self) -> StartResult:
        try:
            return self.fallback.publish(self.fallback_name, self._on_fallback_error)
        except Exception as e:
            return StartResult.failure(e)

    def start(self) -> AnnouncerState:
        """Start advertising; ends in PRIMARY_ACTIVE or FALLBACK_ACTIVE."""
        if self.is_active:
            logger.warning("Announcer already running")
            return self.state

        try:
            result = self.start_primary()
            if result.ok:
                self.state = AnnouncerState.PRIMARY_ACTIVE
                logger.info(f"Announcing {self.app_name} through the platform responder")
                self._emit(EventType.ANNOUNCE_STARTED, {"mechanism": "primary", "name": self.app_name})
                return self.state

            self._fall_back(result.error)
        except Exception as e:
            logger.error(f"Unexpected error while starting announcement: {e}")

        return self.state

    def _fall_back(self, error: Optional[BaseException]):
        logger.warning(f"Platform responder unavailable ({error}), falling back to zeroconf")
        self.state = AnnouncerState.FALLBACK_ACTIVE
        try:
            self._notifier.warning("Error", remediation_message(self.platform, self.app_name))
        except Exception as e:
            logger.error(f"Notifier failed: {e}")

        fallback_result = self.start_fallback()
        if not fallback_result.ok:
            self._on_fallback_error(fallback_result.error)
        self._emit(EventType.ANNOUNCE_STARTED, {"mechanism": "fallback", "name": self.fallback_name})

    def _on_primary_exit(self, error: BaseException):
        """The platform responder died after a successful start."""
        if self.state != AnnouncerState.PRIMARY_ACTIVE:
            return
        try:
            self._fall_back(error)
        except Exception as e:
            logger.error(f"Unexpected error while switching to fallback announcement: {e}")

    def _on_fallback_error(self, error: Optional[BaseException]):
        logger.error(f"Fallback announcement failed: {error}")
        try:
            self._notifier.error("Error", "An error occurred while announcing the server.")
        except Exception as e:
            logger.error(f"Notifier failed: {e}")

    async def stop(self):
        """Remove whichever advertisement is live. No-op when nothing is."""
        state = self.state
        if state not in (AnnouncerState.PRIMARY_ACTIVE, AnnouncerState.FALLBACK_ACTIVE):
            return

        self.state = AnnouncerState.STOPPED
        try:
            if state == AnnouncerState.FALLBACK_ACTIVE:
                await self.fallback.unpublish_all()
            else:
                self.primary.stop()
        except Exception as e:
            logger.error(f"Error while removing announcement: {e}")

        logger.info("Announcement stopped")
        self._emit(EventType.ANNOUNCE_STOPPED, {"mechanism": state.value})

    def _emit(self, event_type: EventType, data: dict):
        if self._event_bus:
            self._event_bus.emit(event_type, data)

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "app_name": self.app_name,
            "hostname": self.hostname,
            "fallback_name": self.fallback_name,
        }
