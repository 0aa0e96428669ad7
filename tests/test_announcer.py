"""
Tests for the LAN announcer lifecycle and fallback behaviour.
"""

import asyncio

import pytest

from conftest import FakeFallback, FakePrimary

from device_pairing_service.config import PairingServiceConfig
from device_pairing_service.discovery import (
    Announcer,
    AnnouncerState,
    EventType,
    PlatformAdvertiser,
    StartResult,
    ZeroconfAdvertiser,
    derive_unique_suffix,
)
from device_pairing_service.discovery.announcer import remediation_message


def make_announcer(notifier, primary=None, fallback=None, event_bus=None, platform="linux"):
    return Announcer(
        app_name="Scanner",
        notifier=notifier,
        primary=primary or FakePrimary(),
        fallback=fallback or FakeFallback(),
        event_bus=event_bus,
        hostname="office-pc",
        platform=platform,
    )


class TestUniqueSuffix:

    def test_concatenates_code_points(self):
        # o=111 f=102 f=102 i=105
        assert derive_unique_suffix("offi") == "111102102105"[:10]

    def test_deterministic_and_bounded(self):
        first = derive_unique_suffix("office-pc")
        assert first == derive_unique_suffix("office-pc")
        assert len(first) == 10
        assert first.isdigit()

    def test_short_hostname_is_not_padded(self):
        assert derive_unique_suffix("a") == "97"

    def test_custom_length(self):
        assert derive_unique_suffix("office-pc", length=4) == "1111"

    def test_non_ascii_hostname(self):
        assert derive_unique_suffix("é") == "233"


class TestStart:

    def test_primary_success(self, notifier, event_bus):
        primary = FakePrimary()
        fallback = FakeFallback()
        announcer = make_announcer(notifier, primary, fallback, event_bus)

        assert announcer.start() == AnnouncerState.PRIMARY_ACTIVE
        assert primary.start_calls == 1
        assert fallback.published == []
        assert notifier.warnings == []
        assert event_bus.get_recent_events()[-1].event_type == EventType.ANNOUNCE_STARTED

    def test_primary_failure_falls_back_with_one_warning(self, notifier):
        primary = FakePrimary(result=StartResult.failure(FileNotFoundError("dns-sd")))
        fallback = FakeFallback()
        announcer = make_announcer(notifier, primary, fallback)

        assert announcer.start() == AnnouncerState.FALLBACK_ACTIVE
        assert len(notifier.warnings) == 1
        assert notifier.errors == []
        assert len(fallback.published) == 1
        assert fallback.published[0].endswith(derive_unique_suffix("office-pc"))
        assert fallback.published[0].startswith("Scanner")

    def test_primary_raising_is_contained(self, notifier):
        primary = FakePrimary(raises=OSError("permission denied"))
        fallback = FakeFallback()
        announcer = make_announcer(notifier, primary, fallback)

        assert announcer.start() == AnnouncerState.FALLBACK_ACTIVE
        assert len(notifier.warnings) == 1
        assert len(fallback.published) == 1

    def test_late_fallback_error_raises_second_notification(self, notifier):
        primary = FakePrimary(result=StartResult.failure(RuntimeError("no daemon")))
        fallback = FakeFallback()
        announcer = make_announcer(notifier, primary, fallback)
        announcer.start()

        fallback.on_error(RuntimeError("name conflict"))

        assert len(notifier.warnings) == 1
        assert len(notifier.errors) == 1
        assert announcer.state == AnnouncerState.FALLBACK_ACTIVE

    def test_fallback_failing_to_start_still_counts_as_fallback(self, notifier):
        primary = FakePrimary(result=StartResult.failure(RuntimeError("no daemon")))
        fallback = FakeFallback(result=StartResult.failure(RuntimeError("no loop")))
        announcer = make_announcer(notifier, primary, fallback)

        assert announcer.start() == AnnouncerState.FALLBACK_ACTIVE
        assert len(notifier.warnings) == 1
        assert len(notifier.errors) == 1

    def test_notifier_failure_does_not_escape(self):
        class BrokenNotifier:
            def warning(self, title, message):
                raise RuntimeError("no window")

            def error(self, title, message):
                raise RuntimeError("no window")

        primary = FakePrimary(result=StartResult.failure(RuntimeError("no daemon")))
        fallback = FakeFallback(result=StartResult.failure(RuntimeError("no loop")))
        announcer = make_announcer(BrokenNotifier(), primary, fallback)

        assert announcer.start() == AnnouncerState.FALLBACK_ACTIVE

    def test_responder_without_daemon_falls_back(self, notifier, fake_responder):
        fake_responder(delay=0.2)
        fallback = FakeFallback()
        primary = PlatformAdvertiser("Scanner", "_http._tcp.local.", 5002, platform="linux", startup_grace=2.0)
        announcer = make_announcer(notifier, primary, fallback)

        assert announcer.start() == AnnouncerState.FALLBACK_ACTIVE
        assert len(notifier.warnings) == 1
        assert fallback.published == [announcer.fallback_name]

    async def test_responder_exiting_later_switches_to_fallback(self, notifier, fake_responder):
        fake_responder(delay=0.3)
        fallback = FakeFallback()
        primary = PlatformAdvertiser("Scanner", "_http._tcp.local.", 5002, platform="linux", startup_grace=0.05)
        announcer = make_announcer(notifier, primary, fallback)

        assert announcer.start() == AnnouncerState.PRIMARY_ACTIVE
        for _ in range(60):
            if announcer.state == AnnouncerState.FALLBACK_ACTIVE:
                break
            await asyncio.sleep(0.05)

        assert announcer.state == AnnouncerState.FALLBACK_ACTIVE
        assert len(notifier.warnings) == 1
        assert fallback.published == [announcer.fallback_name]

        await announcer.stop()
        assert fallback.unpublish_calls == 1

    async def test_primary_exit_is_ignored_once_stopped(self, notifier):
        primary = FakePrimary()
        fallback = FakeFallback()
        announcer = make_announcer(notifier, primary, fallback)
        announcer.start()
        await announcer.stop()

        primary.on_exit(RuntimeError("terminated"))

        assert announcer.state == AnnouncerState.STOPPED
        assert notifier.warnings == []
        assert fallback.published == []

    def test_start_twice_does_not_restart(self, notifier):
        primary = FakePrimary()
        announcer = make_announcer(notifier, primary)
        announcer.start()
        announcer.start()
        assert primary.start_calls == 1

    @pytest.mark.parametrize("platform", ["darwin", "win32"])
    def test_bonjour_platforms_get_bonjour_advice(self, notifier, platform):
        primary = FakePrimary(result=StartResult.failure(RuntimeError("missing")))
        announcer = make_announcer(notifier, primary, platform=platform)
        announcer.start()

        _, message = notifier.warnings[0]
        assert "Bonjour" in message
        assert "Scanner" in message

    def test_other_platforms_get_avahi_advice(self):
        message = remediation_message("linux", "Scanner")
        assert "avahi-daemon" in message
        assert "libnss-mdns" in message


class TestStop:

    async def test_stop_when_never_started(self, notifier):
        primary = FakePrimary()
        fallback = FakeFallback()
        announcer = make_announcer(notifier, primary, fallback)

        await announcer.stop()
        await announcer.stop()

        assert announcer.state == AnnouncerState.INACTIVE
        assert primary.stop_calls == 0
        assert fallback.unpublish_calls == 0

    async def test_stop_primary_once(self, notifier):
        primary = FakePrimary()
        fallback = FakeFallback()
        announcer = make_announcer(notifier, primary, fallback)
        announcer.start()

        await announcer.stop()
        await announcer.stop()

        assert announcer.state == AnnouncerState.STOPPED
        assert primary.stop_calls == 1
        assert fallback.unpublish_calls == 0

    async def test_stop_fallback_once(self, notifier):
        primary = FakePrimary(result=StartResult.failure(RuntimeError("missing")))
        fallback = FakeFallback()
        announcer = make_announcer(notifier, primary, fallback)
        announcer.start()

        await announcer.stop()
        await announcer.stop()

        assert fallback.unpublish_calls == 1
        assert primary.stop_calls == 0

    async def test_stop_errors_are_contained(self, notifier):
        class ExplodingFallback(FakeFallback):
            async def unpublish_all(self):
                raise OSError("socket gone")

        primary = FakePrimary(result=StartResult.failure(RuntimeError("missing")))
        announcer = make_announcer(notifier, primary, ExplodingFallback())
        announcer.start()

        await announcer.stop()

        assert announcer.state == AnnouncerState.STOPPED

    async def test_can_start_again_after_stop(self, notifier):
        primary = FakePrimary()
        announcer = make_announcer(notifier, primary)
        announcer.start()
        await announcer.stop()

        assert announcer.start() == AnnouncerState.PRIMARY_ACTIVE
        assert primary.start_calls == 2


class TestFromConfig:

    def test_builds_real_mechanisms(self, notifier):
        config = PairingServiceConfig(app_name="Scanner", port=6000, app_version="9.9")
        announcer = Announcer.from_config(config, notifier)

        assert isinstance(announcer.primary, PlatformAdvertiser)
        assert isinstance(announcer.fallback, ZeroconfAdvertiser)
        assert announcer.primary.port == 6000
        assert announcer.primary.startup_grace == config.responder_startup_grace
        assert announcer.fallback.properties == {"version": "9.9"}
        assert announcer.state == AnnouncerState.INACTIVE
