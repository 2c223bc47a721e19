"""
==============================================================================
Scan Station Service Module
==============================================================================

Per-station ownership of scan classifiers.

This module implements:
- ScanStation: one classifier, its key event hub, and the listeners that
  want its scans and notices (WebSocket sessions, REST callers)
- ScanStationManager: registry creating stations on demand and tearing them
  down deterministically

A station is a physical workstation or browser tab identified by a short
id, e.g. "dock-3" or "packing-1".

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Callable, Dict, List, Optional

from app.config import Settings, get_settings
from app.core.exceptions import (
    AppException,
    PermissionDeniedError,
    invalid_mode,
    invalid_profile,
    station_limit_reached,
    station_not_found,
)
from app.scanner.camera import CameraSession
from app.scanner.classifier import ScanAuditSink, ScanClassifier
from app.scanner.events import KeyEventHub
from app.scanner.models import KeyEvent, ScanEvent, ScanMode
from app.scanner.profiles import PROFILE_NAMES, profile_from_settings
from app.scanner.timers import Scheduler


# Module logger
logger = logging.getLogger(__name__)

STATION_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$")

ScanListener = Callable[[ScanEvent], None]
NoticeListener = Callable[[dict], None]


def parse_mode(value: str) -> ScanMode:
    """Convert a client-supplied mode string, raising INVALID_MODE."""
    try:
        return ScanMode(str(value).lower().strip())
    except ValueError:
        raise invalid_mode(str(value))


class ScanStation:
    """
    One scanning station.

    Key events published to `hub` reach the station's classifier; completed
    scans and notices fan out to every registered listener.

    Attributes:
        station_id: Station identifier
        classifier: The station's ScanClassifier
        hub: Key event source the classifier is attached to
    """

    def __init__(
        self,
        station_id: str,
        settings: Settings,
        profile_name: Optional[str] = None,
        mode: Optional[ScanMode] = None,
        scheduler: Optional[Scheduler] = None,
        audit: Optional[ScanAuditSink] = None,
        actor_id: Optional[int] = None,
        camera_factory: Optional[Callable[[], CameraSession]] = None
    ) -> None:
        self.station_id = station_id
        self._settings = settings
        self._scan_listeners: List[ScanListener] = []
        self._notice_listeners: List[NoticeListener] = []

        profile_name = profile_name or settings.default_profile
        try:
            profile = profile_from_settings(profile_name, settings)
        except ValueError:
            raise invalid_profile(profile_name)

        if camera_factory is None and settings.camera_enabled:
            camera_factory = lambda: CameraSession(settings.camera_index)

        self.hub = KeyEventHub()
        self.classifier = ScanClassifier(
            self._dispatch,
            profile=profile,
            mode=mode or ScanMode(settings.default_scan_mode),
            scheduler=scheduler,
            history_size=settings.history_size,
            audit=audit,
            actor_id=actor_id or settings.default_actor_id,
            camera_factory=camera_factory,
            notifier=self._notify
        )
        self.classifier.attach(self.hub)

        logger.info(f"🖥️ Station {station_id} ready (profile={profile.name})")

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def add_listener(
        self,
        on_scan: ScanListener,
        on_notice: Optional[NoticeListener] = None
    ) -> Callable[[], None]:
        """
        Register scan (and optionally notice) listeners.

        Returns:
            A callable that removes both listeners again
        """
        self._scan_listeners.append(on_scan)
        if on_notice is not None:
            self._notice_listeners.append(on_notice)

        def remove() -> None:
            if on_scan in self._scan_listeners:
                self._scan_listeners.remove(on_scan)
            if on_notice is not None and on_notice in self._notice_listeners:
                self._notice_listeners.remove(on_notice)

        return remove

    def _dispatch(self, code: str, mode: ScanMode) -> None:
        # History is appended before dispatch, so latest is this scan
        event = self.classifier.history.latest
        for listener in list(self._scan_listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Scan listener failed on station {self.station_id}")

    def _notify(self, title: str, description: str, variant: str) -> None:
        notice = {
            "type": "notice",
            "title": title,
            "description": description,
            "variant": variant,
        }
        for listener in list(self._notice_listeners):
            try:
                listener(notice)
            except Exception:
                logger.exception(f"Notice listener failed on station {self.station_id}")

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def key_down(self, event: KeyEvent) -> None:
        self.hub.publish(event)

    def submit_manual(self, text: str) -> ScanEvent:
        """Submit a typed code; EmptyInputError is also sent as a notice."""
        try:
            return self.classifier.submit_manual(text)
        except AppException as e:
            self._notify(getattr(e, "title", "Error"), e.message, "destructive")
            raise

    def set_mode(self, mode: str) -> ScanMode:
        parsed = parse_mode(mode)
        self.classifier.set_mode(parsed)
        return parsed

    def open_surface(self, request_camera: bool = False) -> None:
        self.classifier.open_surface(request_camera=request_camera)

    def close_surface(self) -> None:
        self.classifier.close_surface()

    async def request_camera(self) -> bool:
        """
        Acquire the camera on a worker thread, then install it on the loop.

        Returns:
            True if a camera session is active
        """
        classifier = self.classifier
        if classifier.camera_active:
            return True

        try:
            camera = await asyncio.to_thread(classifier.acquire_camera)
        except PermissionDeniedError as e:
            classifier.deny_camera(e)
            return False

        return classifier.install_camera(camera)

    async def poll_camera(self) -> List[ScanEvent]:
        """Read and decode one frame on a worker thread, dispatch on the loop."""
        camera = self.classifier.camera
        if camera is None:
            return []

        codes = await asyncio.to_thread(camera.read_codes)

        # The surface may have closed while the frame was being read
        if self.classifier.camera is not camera:
            return []
        return self.classifier.dispatch_camera_codes(codes)

    def apply_options(
        self,
        profile_name: Optional[str] = None,
        mode: Optional[str] = None,
        actor_id: Optional[int] = None
    ) -> List[str]:
        """
        Apply session options to an already running station.

        Mode and actor are switched in place. The profile is fixed when the
        station is created, so a different one is reported back, not applied.

        Returns:
            Names of the options that were not applied

        Raises:
            AppException: INVALID_MODE or INVALID_PROFILE
        """
        ignored = []

        if profile_name:
            name = str(profile_name).lower().strip()
            if name not in PROFILE_NAMES:
                raise invalid_profile(profile_name)
            if name != self.classifier.profile.name:
                ignored.append("profile")

        if mode:
            self.set_mode(mode)
        if actor_id is not None:
            self.classifier.actor_id = actor_id

        return ignored

    def snapshot(self) -> dict:
        """Current station state for REST and WebSocket `state` messages."""
        classifier = self.classifier
        return {
            "station_id": self.station_id,
            "mode": classifier.mode.value,
            "mode_description": classifier.mode.description,
            "profile": classifier.profile.name,
            "state": classifier.state.value,
            "surface_open": classifier.surface_open,
            "observed_code": classifier.observed_code or None,
            "camera_active": classifier.camera_active,
            "camera_permission_denied": classifier.camera_permission_denied,
            "history": [
                {
                    "code": event.code,
                    "mode": event.mode.value,
                    "timestamp": event.timestamp.isoformat(),
                    "source": event.source.value,
                }
                for event in classifier.history
            ],
        }

    def close(self) -> None:
        self.classifier.close()
        self._scan_listeners.clear()
        self._notice_listeners.clear()
        logger.info(f"🛑 Station {self.station_id} closed")


class ScanStationManager:
    """
    Registry of scan stations.

    At most `settings.max_stations` stations exist at once; creating another
    fails with STATION_LIMIT_REACHED until one is removed.

    Example:
        >>> manager = ScanStationManager()
        >>> station = manager.get_or_create("dock-3")
        >>> station.submit_manual("WDG-001")
        >>> manager.remove("dock-3")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        audit: Optional[ScanAuditSink] = None,
        scheduler_factory: Optional[Callable[[], Scheduler]] = None,
        camera_factory: Optional[Callable[[], CameraSession]] = None
    ) -> None:
        self._settings = settings or get_settings()
        self._audit = audit
        self._scheduler_factory = scheduler_factory
        self._camera_factory = camera_factory
        self._stations: Dict[str, ScanStation] = {}

    @staticmethod
    def validate_station_id(station_id: str) -> str:
        if not STATION_ID_PATTERN.match(station_id or ""):
            raise AppException(
                "Station id must be 1-64 letters, digits, '.', '_' or '-'",
                "INVALID_STATION_ID",
                400,
                {"station_id": station_id}
            )
        return station_id

    def get_or_create(
        self,
        station_id: str,
        profile_name: Optional[str] = None,
        mode: Optional[str] = None,
        actor_id: Optional[int] = None
    ) -> ScanStation:
        """Return the station, creating it with the given options if new."""
        station = self._stations.get(station_id)
        if station is not None:
            return station

        self.validate_station_id(station_id)
        if len(self._stations) >= self._settings.max_stations:
            raise station_limit_reached(self._settings.max_stations)

        scheduler = self._scheduler_factory() if self._scheduler_factory else None

        station = ScanStation(
            station_id,
            self._settings,
            profile_name=profile_name,
            mode=parse_mode(mode) if mode else None,
            scheduler=scheduler,
            audit=self._audit,
            actor_id=actor_id,
            camera_factory=self._camera_factory
        )
        self._stations[station_id] = station
        return station

    def get(self, station_id: str) -> ScanStation:
        station = self._stations.get(station_id)
        if station is None:
            raise station_not_found(station_id)
        return station

    def remove(self, station_id: str) -> None:
        station = self._stations.pop(station_id, None)
        if station is None:
            raise station_not_found(station_id)
        station.close()

    def close_all(self) -> None:
        for station_id in list(self._stations):
            self._stations.pop(station_id).close()

    @property
    def station_ids(self) -> List[str]:
        return sorted(self._stations)

    def __contains__(self, station_id: str) -> bool:
        return station_id in self._stations

    def __len__(self) -> int:
        return len(self._stations)


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

_manager: Optional[ScanStationManager] = None


def get_station_manager() -> ScanStationManager:
    """Get the process-wide station manager (FastAPI dependency)."""
    global _manager
    if _manager is None:
        _manager = ScanStationManager()
    return _manager


def set_station_manager(manager: Optional[ScanStationManager]) -> None:
    """Install (or clear) the process-wide station manager."""
    global _manager
    _manager = manager
