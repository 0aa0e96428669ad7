"""
Shared fixtures for the Device Pairing Service tests.
"""

import json
import os
import sys

import pytest

from device_pairing_service.discovery import EventBus, SessionRegistry, StartResult
from device_pairing_service.settings import SettingsStore


class FakeHandle:
    """In-memory connection handle recording what was sent."""

    def __init__(self, name: str = "h", is_open: bool = True, fail: bool = False):
        self.name = name
        self.is_open = is_open
        self.fail = fail
        self.sent = []

    async def send(self, data: str) -> None:
        if self.fail:
            raise ConnectionError(f"{self.name} broken")
        self.sent.append(data)

    @property
    def messages(self):
        return [json.loads(data) for data in self.sent]

    def __repr__(self):
        return f"<FakeHandle {self.name}>"


class RecordingNotifier:
    def __init__(self):
        self.warnings = []
        self.errors = []

    def warning(self, title, message):
        self.warnings.append((title, message))

    def error(self, title, message):
        self.errors.append((title, message))


class FakePrimary:
    def __init__(self, result=None, raises=None):
        self.result = result or StartResult.success()
        self.raises = raises
        self.start_calls = 0
        self.stop_calls = 0
        self.on_exit = None

    def start(self, on_exit=None):
        self.start_calls += 1
        self.on_exit = on_exit
        if self.raises:
            raise self.raises
        return self.result

    def stop(self):
        self.stop_calls += 1


class FakeFallback:
    def __init__(self, result=None):
        self.result = result or StartResult.success()
        self.published = []
        self.on_error = None
        self.unpublish_calls = 0

    def publish(self, name, on_error):
        self.published.append(name)
        self.on_error = on_error
        return self.result

    async def unpublish_all(self):
        self.unpublish_calls += 1


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def settings(event_bus):
    return SettingsStore(
        output_profiles=[{"name": "Default", "id": 1}],
        quantity_enabled=False,
        event_bus=event_bus,
    )


@pytest.fixture
def registry(settings, event_bus):
    return SessionRegistry(settings, version="2.3.4", event_bus=event_bus)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def fake_responder(tmp_path, monkeypatch):
    """Put an ``avahi-publish-service`` stand-in on PATH that exits after a delay."""
    if sys.platform == "win32":
        pytest.skip("needs a POSIX shell")

    def install(delay: float, code: int = 1):
        script = tmp_path / "avahi-publish-service"
        script.write_text(f"#!/bin/sh\nexec sh -c 'sleep {delay}; exit {code}'\n")
        script.chmod(0o755)
        monkeypatch.setenv("PATH", f"{tmp_path}{os.pathsep}{os.environ.get('PATH', '')}")
        return script

    return install
