"""
==============================================================================
Scan Station Service - Application Entry Point
==============================================================================

Builds the FastAPI app serving:
- /api/v1 station, mode and health endpoints
- /ws/stations/{station_id} live scanning sessions
- optional scan audit posting to an external service

Run with:
---------
    uvicorn app.main:app --reload
    uvicorn app.main:app --host 0.0.0.0 --port 8000

==============================================================================
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.router import api_router
from app.config import Settings, get_settings
from app.core.exceptions import register_exception_handlers
from app.services.audit_service import HttpScanAuditLogger
from app.services.station_service import ScanStationManager, set_station_manager
from app.websockets import station_router


settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)

logger = logging.getLogger(__name__)


class Application:
    """
    Owns the FastAPI instance and the process-wide scanning services.

    On startup the station registry is created (with an audit client when
    `audit_enabled`) and installed for the route dependencies; on shutdown
    every station is closed, releasing cameras and timers, and pending audit
    posts are drained.
    """

    def __init__(self, config: Optional[Settings] = None):
        self._settings = config or get_settings()
        self._manager: Optional[ScanStationManager] = None
        self._audit: Optional[HttpScanAuditLogger] = None
        self._app = self._build()

    def _build(self) -> FastAPI:
        app = FastAPI(
            title=self._settings.app_name,
            version="1.0.0",
            description="Keyboard-wedge, camera and manual barcode capture for scan stations",
            lifespan=self._lifespan,
        )

        app.add_middleware(
            CORSMiddleware,
            allow_origins=self._settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        register_exception_handlers(app)

        app.include_router(api_router)
        app.include_router(station_router)

        @app.get("/")
        async def root():
            """Service banner with entry points."""
            return {
                "name": self._settings.app_name,
                "docs": "/docs",
                "websocket": "/ws/stations/{station_id}"
            }

        return app

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        self._start_services()
        try:
            yield
        finally:
            await self._stop_services()

    def _start_services(self) -> None:
        if self._settings.audit_enabled:
            self._audit = HttpScanAuditLogger.from_settings(self._settings)

        self._manager = ScanStationManager(settings=self._settings, audit=self._audit)
        set_station_manager(self._manager)

        logger.info(
            f"🚀 {self._settings.app_name} on {self._settings.host}:{self._settings.port} "
            f"(profile={self._settings.default_profile}, "
            f"camera={'on' if self._settings.camera_enabled else 'off'}, "
            f"audit={self._settings.audit_base_url if self._audit else 'off'})"
        )

    async def _stop_services(self) -> None:
        if self._manager is not None:
            logger.info(f"🛑 Closing {len(self._manager)} station(s)")
            self._manager.close_all()
            self._manager = None
        set_station_manager(None)

        if self._audit is not None:
            await self._audit.aclose()
            logger.info(f"📝 Audit log closed (sent={self._audit.sent}, failed={self._audit.failed})")
            self._audit = None

    @property
    def app(self) -> FastAPI:
        return self._app


application = Application()
app = application.app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info"
    )
