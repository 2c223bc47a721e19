"""
==============================================================================
Health Check Endpoints
==============================================================================

System health status endpoints for monitoring and orchestration.

==============================================================================
"""

from fastapi import APIRouter, Depends

from app.config import get_settings
from app.services.station_service import ScanStationManager, get_station_manager


router = APIRouter(prefix="/health", tags=["Health"])


class HealthController:
    """Controller for health check operations."""

    def __init__(self, manager: ScanStationManager):
        self._manager = manager
        self._settings = get_settings()

    def check_stations(self) -> dict:
        """Check station registry status."""
        return {"status": "healthy", "stations": len(self._manager)}

    def get_health(self) -> dict:
        """Get full health status."""
        stations_info = self.check_stations()

        return {
            "status": "healthy",
            "components": {
                "api": "healthy",
                "stations": stations_info["status"],
                "camera": "enabled" if self._settings.camera_enabled else "disabled",
                "audit": "enabled" if self._settings.audit_enabled else "disabled"
            },
            "details": {
                "active_stations": stations_info["stations"]
            }
        }


@router.get("")
async def health_check(manager: ScanStationManager = Depends(get_station_manager)):
    """
    Health check endpoint.

    Returns system status including API, stations, camera and audit.
    """
    controller = HealthController(manager)
    return controller.get_health()


@router.get("/ready")
async def readiness_check():
    """Readiness probe for container orchestration."""
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """Liveness probe for container orchestration."""
    return {"alive": True}
