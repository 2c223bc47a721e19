"""
==============================================================================
Scan Station Service Tests
==============================================================================

Tests for station ownership, listener fan-out and the station registry.

==============================================================================
"""

import asyncio

import pytest

from app.config import Settings
from app.core.exceptions import AppException, EmptyInputError
from app.scanner.camera import CameraSession
from app.scanner.models import KeyEvent, ScanMode, ScanSource
from app.scanner.timers import ManualScheduler
from app.services.station_service import ScanStationManager, parse_mode


class FakeCapture:
    """Stands in for cv2.VideoCapture."""

    def __init__(self):
        self.released = 0

    def isOpened(self):
        return True

    def read(self):
        return True, object()

    def release(self):
        self.released += 1


class FakeDecoder:
    def __init__(self, codes):
        self.codes = codes

    def decode_frame(self, frame):
        return list(self.codes)


class TestParseMode:
    def test_normalizes(self):
        assert parse_mode(" Picking ") == ScanMode.PICKING

    def test_unknown_mode(self):
        with pytest.raises(AppException) as exc_info:
            parse_mode("shipping")
        assert exc_info.value.code == "INVALID_MODE"


class TestScanStation:
    """Tests for a single station."""

    def test_listeners_receive_scans_and_notices(self, manager: ScanStationManager):
        station = manager.get_or_create("dock-1")
        scans, notices = [], []
        remove = station.add_listener(scans.append, notices.append)

        station.open_surface()
        for key in ("A", "B", "C", "Enter"):
            station.key_down(KeyEvent(key=key))

        assert [event.code for event in scans] == ["ABC"]
        assert scans[0].source == ScanSource.KEYBOARD
        assert notices[0]["type"] == "notice"
        assert notices[0]["title"] == "Barcode Scanned"

        remove()
        station.submit_manual("XYZ")
        assert len(scans) == 1

    def test_empty_manual_sends_notice_and_raises(self, manager: ScanStationManager):
        station = manager.get_or_create("dock-1")
        notices = []
        station.add_listener(lambda event: None, notices.append)

        with pytest.raises(EmptyInputError):
            station.submit_manual("   ")

        assert notices == [{
            "type": "notice",
            "title": "Empty Barcode",
            "description": "Please enter a valid barcode.",
            "variant": "destructive",
        }]

    def test_snapshot(self, manager: ScanStationManager):
        station = manager.get_or_create("dock-1", profile_name="global", mode="receiving")
        station.submit_manual("PAL-7")

        snapshot = station.snapshot()
        assert snapshot["station_id"] == "dock-1"
        assert snapshot["profile"] == "global"
        assert snapshot["mode"] == "receiving"
        assert snapshot["state"] == "idle"
        assert snapshot["observed_code"] is None
        assert snapshot["history"][0]["code"] == "PAL-7"
        assert snapshot["history"][0]["source"] == "manual"

    def test_camera_disabled_denies(self, manager: ScanStationManager):
        station = manager.get_or_create("dock-1")
        station.open_surface(request_camera=True)

        snapshot = station.snapshot()
        assert snapshot["surface_open"] is True
        assert snapshot["camera_active"] is False
        assert snapshot["camera_permission_denied"] is True

    def test_set_mode(self, manager: ScanStationManager):
        station = manager.get_or_create("dock-1")
        assert station.set_mode("INVENTORY") == ScanMode.INVENTORY
        assert station.classifier.mode == ScanMode.INVENTORY


class TestScanStationManager:
    """Tests for the station registry."""

    def test_get_or_create_reuses(self, manager: ScanStationManager):
        first = manager.get_or_create("dock-1")
        assert manager.get_or_create("dock-1") is first
        assert manager.station_ids == ["dock-1"]
        assert len(manager) == 1

    @pytest.mark.parametrize("station_id", ["", "-dock", "dock 1", "x" * 65])
    def test_invalid_station_id(self, manager: ScanStationManager, station_id):
        with pytest.raises(AppException) as exc_info:
            manager.get_or_create(station_id)
        assert exc_info.value.code == "INVALID_STATION_ID"

    def test_invalid_profile(self, manager: ScanStationManager):
        with pytest.raises(AppException) as exc_info:
            manager.get_or_create("dock-1", profile_name="kiosk")
        assert exc_info.value.code == "INVALID_PROFILE"
        assert len(manager) == 0

    def test_remove_closes_station(self, manager: ScanStationManager):
        station = manager.get_or_create("dock-1")
        manager.remove("dock-1")

        assert station.classifier.closed is True
        assert station.hub.listener_count == 0
        with pytest.raises(AppException) as exc_info:
            manager.get("dock-1")
        assert exc_info.value.status_code == 404

    def test_remove_unknown(self, manager: ScanStationManager):
        with pytest.raises(AppException) as exc_info:
            manager.remove("nowhere")
        assert exc_info.value.code == "STATION_NOT_FOUND"

    def test_close_all(self, manager: ScanStationManager):
        stations = [manager.get_or_create(name) for name in ("a", "b")]
        manager.close_all()

        assert len(manager) == 0
        assert all(station.classifier.closed for station in stations)

    def test_station_limit(self):
        manager = ScanStationManager(
            settings=Settings(_env_file=None, camera_enabled=False, max_stations=2),
            scheduler_factory=ManualScheduler,
        )
        manager.get_or_create("a")
        manager.get_or_create("b")

        with pytest.raises(AppException) as exc_info:
            manager.get_or_create("c")
        assert exc_info.value.code == "STATION_LIMIT_REACHED"
        assert exc_info.value.status_code == 409

        # Existing stations are still reachable, and removing one frees a slot
        assert manager.get_or_create("a") is manager.get("a")
        manager.remove("b")
        manager.get_or_create("c")
        assert manager.station_ids == ["a", "c"]
        manager.close_all()

    def test_contains(self, manager: ScanStationManager):
        manager.get_or_create("dock-1")
        assert "dock-1" in manager
        assert "dock-2" not in manager


class TestListenerIsolation:
    """A failing listener must not break the scan for everyone else."""

    def test_failing_scan_listener(self, manager: ScanStationManager):
        station = manager.get_or_create("dock-1")
        scans, notices = [], []

        def explode(event):
            raise RuntimeError("socket gone")

        station.add_listener(explode)
        station.add_listener(scans.append, notices.append)

        station.open_surface()
        for key in ("A", "B", "C", "Enter"):
            station.key_down(KeyEvent(key=key))

        assert station.classifier.history.latest.code == "ABC"
        assert [event.code for event in scans] == ["ABC"]
        assert notices[0]["title"] == "Barcode Scanned"
        assert station.classifier.surface_open is False

    def test_failing_notice_listener(self, manager: ScanStationManager):
        station = manager.get_or_create("dock-1")

        def explode(notice):
            raise RuntimeError("socket gone")

        station.add_listener(lambda event: None, explode)
        event = station.submit_manual("WDG-001")

        assert event.code == "WDG-001"
        assert len(station.classifier.history) == 1


class TestStationOptions:
    """Tests for options applied to a running station."""

    def test_mode_and_actor_applied(self, manager: ScanStationManager):
        station = manager.get_or_create("dock-1")
        ignored = station.apply_options(mode="picking", actor_id=9)

        assert ignored == []
        assert station.classifier.mode == ScanMode.PICKING
        assert station.classifier.actor_id == 9

    def test_different_profile_reported(self, manager: ScanStationManager):
        station = manager.get_or_create("dock-1")
        assert station.apply_options(profile_name="Global") == ["profile"]
        assert station.apply_options(profile_name="surface") == []
        assert station.classifier.profile.name == "surface"

    def test_unknown_profile(self, manager: ScanStationManager):
        station = manager.get_or_create("dock-1")
        with pytest.raises(AppException) as exc_info:
            station.apply_options(profile_name="kiosk")
        assert exc_info.value.code == "INVALID_PROFILE"


class TestStationCamera:
    """Camera acquisition and reads run on a worker thread."""

    @pytest.fixture
    def capture(self) -> FakeCapture:
        return FakeCapture()

    @pytest.fixture
    def camera_manager(self, settings: Settings, capture: FakeCapture):
        instance = ScanStationManager(
            settings=settings,
            scheduler_factory=ManualScheduler,
            camera_factory=lambda: CameraSession(
                0,
                capture_factory=lambda index: capture,
                decoder=FakeDecoder(["4006381333931"])
            ),
        )
        yield instance
        instance.close_all()

    def test_request_and_poll(self, camera_manager, capture):
        station = camera_manager.get_or_create("dock-1")
        station.open_surface()

        async def scenario():
            assert await station.request_camera() is True
            return await station.poll_camera()

        events = asyncio.run(scenario())

        assert [event.code for event in events] == ["4006381333931"]
        assert events[0].source == ScanSource.CAMERA
        assert capture.released == 1
        assert station.snapshot()["camera_active"] is False

    def test_denied_without_camera(self, manager: ScanStationManager):
        station = manager.get_or_create("dock-1")
        station.open_surface()

        assert asyncio.run(station.request_camera()) is False
        assert station.snapshot()["camera_permission_denied"] is True

    def test_poll_without_camera(self, camera_manager):
        station = camera_manager.get_or_create("dock-1")
        assert asyncio.run(station.poll_camera()) == []
