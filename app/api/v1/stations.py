"""
==============================================================================
Scan Station Endpoints
==============================================================================

State, manual entry, mode switching and surface control for scan stations.

==============================================================================
"""

from typing import Optional
from fastapi import APIRouter, Depends

from app.services.station_service import ScanStationManager, get_station_manager
from app.schemas.station import (
    ManualScanRequest,
    ModeUpdate,
    ScanEventResponse,
    ScanResponse,
    StationResponse,
    StationState,
    SurfaceOpenRequest,
)
from app.schemas.common import MessageResponse


router = APIRouter(prefix="/stations", tags=["Stations"])


class StationController:
    """Controller for scan station operations."""

    def __init__(self, manager: ScanStationManager):
        self._manager = manager

    def _state(self, station_id: str) -> StationState:
        return StationState(**self._manager.get(station_id).snapshot())

    def get(self, station_id: str) -> StationResponse:
        """Get station state; unknown stations are STATION_NOT_FOUND."""
        return StationResponse(station=self._state(station_id))

    def submit_manual(self, station_id: str, data: ManualScanRequest) -> ScanResponse:
        """Submit a typed code."""
        station = self._manager.get_or_create(station_id)
        event = station.submit_manual(data.text)
        return ScanResponse(
            scan=ScanEventResponse.from_event(event),
            station=self._state(station_id)
        )

    def set_mode(self, station_id: str, data: ModeUpdate) -> StationResponse:
        """Switch scan mode."""
        self._manager.get_or_create(station_id).set_mode(data.mode)
        return StationResponse(station=self._state(station_id))

    async def open_surface(self, station_id: str, data: SurfaceOpenRequest) -> StationResponse:
        """Open the scanning surface."""
        station = self._manager.get_or_create(station_id)
        station.open_surface()
        if data.request_camera:
            await station.request_camera()
        return StationResponse(station=self._state(station_id))

    def close_surface(self, station_id: str) -> StationResponse:
        """Close the scanning surface."""
        self._manager.get(station_id).close_surface()
        return StationResponse(station=self._state(station_id))

    def delete(self, station_id: str) -> MessageResponse:
        """Tear the station down."""
        self._manager.remove(station_id)
        return MessageResponse(message=f"Station '{station_id}' closed")


@router.get("/{station_id}", response_model=StationResponse)
async def get_station(
    station_id: str,
    manager: ScanStationManager = Depends(get_station_manager)
):
    """
    Get station state: mode, surface, observed code and recent scans.

    Reading never creates a station; unknown ids are 404.
    """
    return StationController(manager).get(station_id)


@router.post("/{station_id}/manual", response_model=ScanResponse)
async def submit_manual_code(
    station_id: str,
    data: ManualScanRequest,
    manager: ScanStationManager = Depends(get_station_manager)
):
    """
    Submit a manually entered code.

    Blank input is rejected with EMPTY_INPUT (400).
    """
    return StationController(manager).submit_manual(station_id, data)


@router.put("/{station_id}/mode", response_model=StationResponse)
async def set_station_mode(
    station_id: str,
    data: ModeUpdate,
    manager: ScanStationManager = Depends(get_station_manager)
):
    """Switch the station to lookup, inventory, picking or receiving."""
    return StationController(manager).set_mode(station_id, data)


@router.post("/{station_id}/surface/open", response_model=StationResponse)
async def open_station_surface(
    station_id: str,
    data: Optional[SurfaceOpenRequest] = None,
    manager: ScanStationManager = Depends(get_station_manager)
):
    """Open the scanning surface, optionally acquiring the camera."""
    return await StationController(manager).open_surface(station_id, data or SurfaceOpenRequest())


@router.post("/{station_id}/surface/close", response_model=StationResponse)
async def close_station_surface(
    station_id: str,
    manager: ScanStationManager = Depends(get_station_manager)
):
    """Close the scanning surface and release the camera."""
    return StationController(manager).close_surface(station_id)


@router.delete("/{station_id}", response_model=MessageResponse)
async def delete_station(
    station_id: str,
    manager: ScanStationManager = Depends(get_station_manager)
):
    """Tear down a station: detach, cancel timers, release the camera."""
    return StationController(manager).delete(station_id)
