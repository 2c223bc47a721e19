"""
==============================================================================
Station WebSocket Module
==============================================================================

Real-time scan station session over WebSocket.

Protocol:
---------
1. Client connects to /ws/stations/{station_id}
2. Client sends `init` with optional mode, profile and user_id
3. Client forwards every keydown as `key` (and `manual`, `mode`, `open`,
   `close`, `camera`, `poll`, `frame` as the operator acts)
4. Server pushes `scan`, `notice`, `state` and `error` messages
5. Client sends `stop` (or disconnects); the surface is closed and any
   camera released

Messages that are not JSON objects, or that carry fields of the wrong type,
get an INVALID_MESSAGE error and the session carries on.

==============================================================================
"""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.core.exceptions import AppException
from app.scanner import FrameDecoder, KeyEvent, ScanEvent
from app.scanner.models import ScanMode
from app.services.station_service import ScanStation, ScanStationManager, get_station_manager


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter()


class StationWebSocketHandler:
    """
    Handler for one station WebSocket connection.

    Manages the lifecycle of a station session including:
    - Station attachment and listener registration
    - Key, manual, mode, surface and camera messages
    - Pushing scans and notices back to the client
    """

    def __init__(self, websocket: WebSocket, manager: ScanStationManager, station_id: str):
        self._websocket = websocket
        self._manager = manager
        self._station_id = station_id
        self._station: Optional[ScanStation] = None
        self._decoder = FrameDecoder()
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._remove_listener = None

    # =========================================================================
    # OUTBOUND
    # =========================================================================

    def _enqueue(self, message: dict) -> None:
        """Queue a message for the client. Safe to call from any thread."""
        self._loop.call_soon_threadsafe(self._outbox.put_nowait, message)

    def _on_scan(self, event: ScanEvent) -> None:
        self._enqueue(event.to_message())

    def send_error(self, message: str, code: str = "ERROR") -> None:
        """Queue an error message for the client."""
        self._enqueue({
            "type": "error",
            "code": code,
            "message": message
        })

    def send_state(self) -> None:
        self._enqueue({"type": "state", "station": self._station.snapshot()})

    async def _pump(self) -> None:
        while True:
            message = await self._outbox.get()
            if message is None:
                break
            await self._websocket.send_json(message)

    # =========================================================================
    # INBOUND
    # =========================================================================

    def handle_init(self, data: dict) -> None:
        """
        Attach to (or create) the station and send its state.

        A station that is already running takes the requested mode and user
        but keeps its profile; the client is told with a notice.
        """
        user_id = data.get("user_id")
        profile_name = data.get("profile")
        mode = data.get("mode")
        actor_id = int(user_id) if user_id is not None else None

        ignored = []
        if self._station_id in self._manager:
            self._station = self._manager.get(self._station_id)
            ignored = self._station.apply_options(profile_name, mode, actor_id)
        else:
            self._station = self._manager.get_or_create(
                self._station_id,
                profile_name=profile_name,
                mode=mode,
                actor_id=actor_id
            )
        self._remove_listener = self._station.add_listener(self._on_scan, self._enqueue)

        logger.info(f"Init: station={self._station_id}, profile={self._station.classifier.profile.name}")

        self._enqueue({
            "type": "init",
            "station": self._station.snapshot(),
            "modes": [
                {"mode": mode.value, "label": mode.label, "description": mode.description}
                for mode in ScanMode
            ]
        })

        if ignored:
            self._enqueue({
                "type": "notice",
                "title": "Station already running",
                "description": (
                    f"Station {self._station_id} keeps its "
                    f"{self._station.classifier.profile.name} profile"
                ),
                "variant": "default",
            })

    async def handle_message(self, data: dict) -> None:
        """Dispatch one client message to the station."""
        station = self._station
        message_type = data.get("type")

        if message_type == "key":
            station.key_down(KeyEvent.from_target(
                data.get("key", ""),
                target=data.get("target"),
                timestamp_ms=data.get("timestamp")
            ))

        elif message_type == "manual":
            station.submit_manual(data.get("text", ""))

        elif message_type == "mode":
            station.set_mode(data.get("mode", ""))
            self.send_state()

        elif message_type == "open":
            station.open_surface()
            if data.get("camera", False):
                await station.request_camera()
            self.send_state()

        elif message_type == "close":
            station.close_surface()
            self.send_state()

        elif message_type == "camera":
            await station.request_camera()
            self.send_state()

        elif message_type == "poll":
            await station.poll_camera()

        elif message_type == "frame":
            await self.handle_frame(data)

        else:
            self.send_error(f"Unknown message type: {message_type}", "UNKNOWN_MESSAGE")

    async def handle_frame(self, data: dict) -> None:
        """Decode a client camera frame; the first code found is dispatched."""
        frame = data.get("frame", "")
        if not isinstance(frame, str):
            self.send_error("Frame must be a base64 string", "INVALID_MESSAGE")
            return

        codes = await asyncio.to_thread(self._decoder.decode_base64, frame)
        self._station.classifier.dispatch_camera_codes(codes[:1])

    async def _receive(self) -> Optional[dict]:
        """Next client message, or None if it is not a JSON object."""
        text = await self._websocket.receive_text()
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return None
        return data if isinstance(data, dict) else None

    async def run(self) -> None:
        """Main handler loop."""
        await self._websocket.accept()
        self._loop = asyncio.get_running_loop()
        pump = asyncio.create_task(self._pump())
        disconnected = False
        logger.info(f"📱 Station WebSocket connected: {self._station_id}")

        try:
            init_data = await self._receive()
            if init_data is None or init_data.get("type") != "init":
                self.send_error("First message must be init", "INIT_REQUIRED")
                return

            try:
                self.handle_init(init_data)
            except (AppException, ValueError, TypeError) as e:
                self.send_error(getattr(e, "message", str(e)), getattr(e, "code", "INVALID_INIT"))
                return

            while True:
                data = await self._receive()
                if data is None:
                    self.send_error("Messages must be JSON objects", "INVALID_MESSAGE")
                    continue

                if data.get("type") == "stop":
                    logger.info("🛑 Client requested stop")
                    break

                try:
                    await self.handle_message(data)
                except AppException as e:
                    self.send_error(e.message, e.code)
                except ValidationError as e:
                    self.send_error(str(e), "INVALID_MESSAGE")
                except Exception as e:
                    logger.exception(f"Failed to handle {data.get('type')!r} on station {self._station_id}")
                    self.send_error(f"Could not handle message: {e}", "INVALID_MESSAGE")

        except WebSocketDisconnect:
            logger.info("📱 Client disconnected")
            disconnected = True
        finally:
            if self._remove_listener is not None:
                self._remove_listener()
            if self._station is not None:
                self._station.close_surface()

            if disconnected:
                pump.cancel()
            else:
                # Sentinel goes through the same queue, so queued messages are sent first
                self._enqueue(None)
                try:
                    await pump
                    await self._websocket.close()
                except Exception as e:
                    logger.debug(f"WebSocket close failed: {e}")
            logger.info(f"✅ Station WebSocket closed: {self._station_id}")


@router.websocket("/ws/stations/{station_id}")
async def websocket_station(
    websocket: WebSocket,
    station_id: str,
    manager: ScanStationManager = Depends(get_station_manager)
):
    """Real-time scan station session."""
    handler = StationWebSocketHandler(websocket, manager, station_id)
    await handler.run()
