"""
==============================================================================
Scanner Support Tests
==============================================================================

Tests for history, key event hub, camera session, frame decoder and
classifier profiles.

==============================================================================
"""

import base64
from datetime import datetime, timezone
from types import SimpleNamespace

import numpy as np
import pytest

from app.config import Settings
from app.core.exceptions import PermissionDeniedError
from app.scanner.camera import CameraSession
from app.scanner.decoder import FrameDecoder
from app.scanner.events import KeyEventHub
from app.scanner.history import ScanHistory
from app.scanner.models import KeyEvent, ScanEvent, ScanMode
from app.scanner.profiles import GLOBAL_PROFILE, SURFACE_PROFILE, profile_from_settings


def make_event(code: str) -> ScanEvent:
    return ScanEvent(code=code, mode=ScanMode.LOOKUP, timestamp=datetime.now(timezone.utc))


class FakeCapture:
    def __init__(self, opened=True, frames=None):
        self.opened = opened
        self.frames = list(frames or [])
        self.released = 0

    def isOpened(self):
        return self.opened

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self):
        self.released += 1


class FakeDecoder:
    def decode_frame(self, frame):
        return [frame]


class TestScanHistory:
    """Tests for the bounded history."""

    def test_newest_first_with_eviction(self):
        history = ScanHistory(capacity=2)
        for code in ("first", "second", "third"):
            history.add(make_event(code))

        assert [event.code for event in history] == ["third", "second"]
        assert history.latest.code == "third"
        assert len(history) == 2

    def test_empty_history(self):
        history = ScanHistory()
        assert history.latest is None
        assert history.capacity == 10
        assert history.to_list() == []

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            ScanHistory(capacity=0)


class TestKeyEventHub:
    """Tests for subscribe/unsubscribe."""

    def test_publish_reaches_subscribers_until_cancelled(self):
        hub = KeyEventHub()
        received = []
        subscription = hub.subscribe(received.append)

        hub.publish(KeyEvent(key="A"))
        subscription.cancel()
        subscription.cancel()
        hub.publish(KeyEvent(key="B"))

        assert [event.key for event in received] == ["A"]
        assert subscription.active is False
        assert hub.listener_count == 0

    @pytest.mark.parametrize("target,expected", [
        ("input", True),
        ("TEXTAREA", True),
        ("select", True),
        ("contenteditable", True),
        ("body", False),
        (None, False),
    ])
    def test_text_input_targets(self, target, expected):
        assert KeyEvent.from_target("A", target=target).target_is_text_input is expected


class TestCameraSession:
    """Tests for scoped camera acquisition."""

    def test_open_and_close_release_once(self):
        capture = FakeCapture()
        camera = CameraSession(0, capture_factory=lambda index: capture, decoder=FakeDecoder())

        with camera:
            assert camera.is_open is True
        camera.close()

        assert camera.is_open is False
        assert capture.released == 1

    def test_unopened_device_denied_and_released(self):
        capture = FakeCapture(opened=False)
        camera = CameraSession(3, capture_factory=lambda index: capture)

        with pytest.raises(PermissionDeniedError) as exc_info:
            camera.open()

        assert exc_info.value.code == "CAMERA_PERMISSION_DENIED"
        assert exc_info.value.status_code == 403
        assert capture.released == 1
        assert camera.is_open is False

    def test_factory_failure_denied(self):
        def broken(index):
            raise OSError("device busy")

        with pytest.raises(PermissionDeniedError) as exc_info:
            CameraSession(0, capture_factory=broken).open()
        assert exc_info.value.details["reason"] == "device busy"

    def test_read_codes(self):
        capture = FakeCapture(frames=["WDG-001"])
        camera = CameraSession(0, capture_factory=lambda index: capture, decoder=FakeDecoder())

        assert camera.read_codes() == []
        camera.open()
        assert camera.read_codes() == ["WDG-001"]
        # Failed read
        assert camera.read_codes() == []
        camera.close()


class TestFrameDecoder:
    """Tests for frame and base64 decoding."""

    def test_dedupes_and_skips_undecodable(self):
        decoder = FrameDecoder()
        decoder._decode = lambda frame: [
            SimpleNamespace(data=b" WDG-001 ", type="CODE128"),
            SimpleNamespace(data=b"WDG-001", type="CODE128"),
            SimpleNamespace(data=b"\xff\xfe", type="QRCODE"),
            SimpleNamespace(data=b"4006381333931", type="EAN13"),
        ]

        codes = decoder.decode_frame(np.zeros((4, 4, 3), dtype=np.uint8))
        assert codes == ["WDG-001", "4006381333931"]

    def test_empty_frame(self):
        decoder = FrameDecoder()
        assert decoder.decode_frame(None) == []
        assert decoder.decode_frame(np.zeros((0,), dtype=np.uint8)) == []

    @pytest.mark.parametrize("payload", [
        "",
        "not base64!!",
        "data:image/jpeg;base64," + base64.b64encode(b"not an image").decode(),
    ])
    def test_bad_payloads(self, payload):
        assert FrameDecoder().decode_base64(payload) == []


class TestProfiles:
    """Tests for classifier profile presets."""

    def test_presets(self):
        assert SURFACE_PROFILE.require_open_surface is True
        assert SURFACE_PROFILE.requires_rapid_input is False
        assert GLOBAL_PROFILE.require_open_surface is False
        assert GLOBAL_PROFILE.min_length == 5
        assert GLOBAL_PROFILE.inter_key_threshold_ms == 20.0
        assert GLOBAL_PROFILE.quiet_period_ms == 300.0

    def test_thresholds_from_settings(self):
        settings = Settings(_env_file=None, global_min_length=8, surface_inactivity_timeout_ms=250)

        assert profile_from_settings("global", settings).min_length == 8
        assert profile_from_settings("Surface", settings).inactivity_timeout_ms == 250

    def test_unknown_profile(self, settings):
        with pytest.raises(ValueError):
            profile_from_settings("kiosk", settings)
