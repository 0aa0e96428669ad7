"""
LAN service advertisement mechanisms.

PlatformAdvertiser drives the host's native mDNS responder (Apple Bonjour's
``dns-sd`` or Avahi's ``avahi-publish-service``) as a child process.
ZeroconfAdvertiser is a pure-Python responder used when the native one is
missing.
"""

import asyncio
import contextlib
import logging
import shutil
import socket
import subprocess
import sys
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from zeroconf import ServiceInfo
from zeroconf.asyncio import AsyncZeroconf

from ..utils.network import NetworkDiscovery

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[BaseException], None]


@dataclass
class StartResult:
    """Outcome of starting an advertisement mechanism."""
    ok: bool
    error: Optional[BaseException] = None

    @classmethod
    def success(cls) -> "StartResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: BaseException) -> "StartResult":
        return cls(ok=False, error=error)


def uses_bonjour(platform: str) -> bool:
    """macOS and Windows rely on Apple Bonjour; everything else on Avahi."""
    return platform in ("darwin", "win32")


def registration_type(service_type: str) -> str:
    """``_http._tcp.local.`` -> ``_http._tcp``"""
    regtype = service_type.rstrip(".")
    if regtype.endswith(".local"):
        regtype = regtype[:-len(".local")]
    return regtype


class PlatformAdvertiser:
    """
    Advertises through the platform mDNS daemon.

    Usage:
        advertiser = PlatformAdvertiser(name="My App", service_type="_http._tcp.local.", port=5002)
        result = advertiser.start()
        ...
        advertiser.stop()
    """

    def __init__(
        self,
        name: str,
        service_type: str,
        port: int,
        platform: Optional[str] = None,
        startup_grace: float = 0.5,
        stop_timeout: float = 2.0
    ):
        self.name = name
        self.service_type = service_type
        self.port = port
        self.platform = platform or sys.platform
        self.startup_grace = startup_grace
        self.stop_timeout = stop_timeout
        self._process: Optional[subprocess.Popen] = None
        self._watcher: Optional[asyncio.Task] = None

    def command(self) -> List[str]:
        """Build the responder command line for this platform."""
        regtype = registration_type(self.service_type)
        if uses_bonjour(self.platform):
            return ["dns-sd", "-R", self.name, regtype, "local", str(self.port)]
        return ["avahi-publish-service", self.name, regtype, str(self.port)]

    def start(self, on_exit: Optional[ErrorCallback] = None) -> StartResult:
        """
        Launch the responder and give it ``startup_grace`` seconds to fail.

        A responder whose daemon is not running exits shortly after launch;
        that counts as a failed start. When ``on_exit`` is given and an event
        loop is running, a later unexpected exit is reported through it.
        """
        cmd = self.command()
        executable = shutil.which(cmd[0])
        if not executable:
            return StartResult.failure(FileNotFoundError(f"{cmd[0]} not found on PATH"))

        try:
            process = subprocess.Popen(
                [executable, *cmd[1:]],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            return StartResult.failure(e)

        try:
            returncode = process.wait(timeout=self.startup_grace)
        except subprocess.TimeoutExpired:
            returncode = None
        if returncode is not None:
            return StartResult.failure(RuntimeError(f"{cmd[0]} exited with code {returncode}"))

        self._process = process
        logger.info(f"Platform advertisement started: {' '.join(cmd)}")
        if on_exit is not None:
            self._watch(process, on_exit)
        return StartResult.success()

    def _watch(self, process: subprocess.Popen, on_exit: ErrorCallback):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, platform responder exit is not watched")
            return
        self._watcher = loop.create_task(self._wait_for_exit(process, on_exit))

    async def _wait_for_exit(self, process: subprocess.Popen, on_exit: ErrorCallback):
        loop = asyncio.get_running_loop()
        returncode = await loop.run_in_executor(None, process.wait)
        if self._process is not process:
            # stopped on purpose
            return

        self._process = None
        self._watcher = None
        logger.warning(f"Platform responder exited with code {returncode}")
        on_exit(RuntimeError(f"{self.command()[0]} exited with code {returncode}"))

    def stop(self):
        process, self._process = self._process, None
        self._watcher = None
        if process is None or process.poll() is not None:
            return

        process.terminate()
        try:
            process.wait(timeout=self.stop_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Platform responder did not exit, killing it")
            process.kill()
        logger.info("Platform advertisement stopped")

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None


class ZeroconfAdvertiser:
    """
    Advertises with python-zeroconf on the running event loop.

    Registration finishes asynchronously; failures after publish() returned
    are reported through the error callback.
    """

    def __init__(
        self,
        service_type: str,
        port: int,
        properties: Optional[Dict[str, str]] = None,
        zeroconf_factory: Callable[[], AsyncZeroconf] = AsyncZeroconf
    ):
        self.service_type = service_type
        self.port = port
        self.properties = properties or {}
        self._zeroconf_factory = zeroconf_factory
        self._zeroconf: Optional[AsyncZeroconf] = None
        self._info: Optional[ServiceInfo] = None
        self._task: Optional[asyncio.Task] = None

    def build_info(self, name: str) -> ServiceInfo:
        hostname = socket.gethostname()
        return ServiceInfo(
            type_=self.service_type,
            name=f"{name}.{self.service_type}",
            port=self.port,
            properties=self.properties,
            parsed_addresses=[NetworkDiscovery.get_host_ip()],
            server=f"{hostname}.local.",
        )

    def publish(self, name: str, on_error: ErrorCallback) -> StartResult:
        try:
            loop = asyncio.get_running_loop()
            info = self.build_info(name)
            self._zeroconf = self._zeroconf_factory()
        except Exception as e:
            return StartResult.failure(e)

        self._info = info
        self._task = loop.create_task(self._register(info, on_error))
        logger.info(f"Publishing {info.name} on port {self.port}")
        return StartResult.success()

    async def _register(self, info: ServiceInfo, on_error: ErrorCallback):
        try:
            # The first await queues the registration, the second waits for the announcement
            registration = await self._zeroconf.async_register_service(info)
            await registration
            logger.info(f"Zeroconf advertisement registered: {info.name}")
        except Exception as e:
            logger.error(f"Zeroconf registration failed: {e}")
            on_error(e)

    async def unpublish_all(self):
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        zeroconf, self._zeroconf = self._zeroconf, None
        self._info = None
        if zeroconf is None:
            return

        try:
            await zeroconf.async_unregister_all_services()
        finally:
            await zeroconf.async_close()
        logger.info("Zeroconf advertisement removed")
