"""
==============================================================================
Scan Classifier Module
==============================================================================

Decides which keystrokes are a barcode scan and dispatches completed scans.

Keyboard-wedge scanners type a code much faster than a person and usually
finish with Enter. The classifier buffers code characters, debounces them
with an inactivity timer, and at Enter accepts or rejects the buffer using
the active ClassifierProfile. Manual entry and camera decodes skip timing
analysis and go straight to dispatch.

Keystroke rules (evaluated per keydown):
---------------------------------------
1. Events aimed at a text-input control are ignored.
2. With `require_open_surface`, events are ignored while the surface is closed.
3. Enter: emit the buffer, else the observed code, else swallow. The candidate
   must be at least `min_length` long and, when `inter_key_threshold_ms` is
   set, every gap between its characters must have been rapid.
4. A code character ([A-Za-z0-9_-]) is appended and the inactivity timer is
   replaced. A gap longer than `quiet_period_ms` first discards the stale
   buffer. On timer expiry the buffer becomes the observed code.
5. Any other key is ignored and does not interrupt the buffer.

On a successful scan:
--------------------
history (newest first) → dispatch callback (code, mode) → audit hand-off
(fire-and-forget, failures only logged) → notice → back to idle, surface
closed when the profile says so.

==============================================================================
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

from app.core.exceptions import EmptyInputError, PermissionDeniedError
from app.scanner.camera import CameraSession
from app.scanner.events import KeyEventHub, Subscription
from app.scanner.history import DEFAULT_HISTORY_SIZE, ScanHistory
from app.scanner.models import (
    ClassifierState,
    KeyEvent,
    ScanAuditEntry,
    ScanEvent,
    ScanMode,
    ScanSource,
)
from app.scanner.profiles import SURFACE_PROFILE, ClassifierProfile
from app.scanner.timers import AsyncioScheduler, Scheduler, TimerHandle


# Module logger
logger = logging.getLogger(__name__)

CODE_CHARACTER = re.compile(r"[A-Za-z0-9_-]")

# (code, mode) -> None, supplied by the host
ScanCallback = Callable[[str, ScanMode], None]

# (title, description, variant) -> None, non-blocking operator notice
Notifier = Callable[[str, str, str], None]


class ScanAuditSink(Protocol):
    """Receives audit entries. `record` must not block."""

    def record(self, entry: ScanAuditEntry) -> None:
        ...


class ScanClassifier:
    """
    Keystroke classifier and scan dispatcher for one scanning station.

    Attributes:
        mode: Current scan mode (labels the next scan)
        profile: Active classification parameters
        state: IDLE or ACCUMULATING
        history: Recent scans, newest first

    Example:
        >>> scans = []
        >>> classifier = ScanClassifier(
        ...     lambda code, mode: scans.append((code, mode)),
        ...     scheduler=ManualScheduler(),
        ... )
        >>> classifier.open_surface()
        >>> for key in ("A", "B", "C", "Enter"):
        ...     classifier.on_key_down(KeyEvent(key=key))
        >>> scans
        [('ABC', <ScanMode.LOOKUP: 'lookup'>)]
    """

    def __init__(
        self,
        on_scanned: ScanCallback,
        *,
        profile: ClassifierProfile = SURFACE_PROFILE,
        mode: ScanMode = ScanMode.LOOKUP,
        scheduler: Optional[Scheduler] = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
        audit: Optional[ScanAuditSink] = None,
        actor_id: int = 1,
        camera_factory: Optional[Callable[[], CameraSession]] = None,
        notifier: Optional[Notifier] = None
    ) -> None:
        """
        Initialize the classifier.

        Args:
            on_scanned: Host callback invoked once per completed scan
            profile: Classification parameters (surface or global preset)
            mode: Initial scan mode
            scheduler: Clock and timer source (event loop by default)
            history_size: Number of recent scans kept
            audit: Fire-and-forget audit sink (None = no auditing)
            actor_id: Actor recorded on audit entries
            camera_factory: Builds a CameraSession (None = no camera)
            notifier: Receives operator notices
        """
        self._on_scanned = on_scanned
        self._profile = profile
        self._mode = ScanMode(mode)
        self._scheduler = scheduler or AsyncioScheduler()
        self._history = ScanHistory(history_size)
        self._audit = audit
        self._actor_id = actor_id
        self._camera_factory = camera_factory
        self._notifier = notifier

        # === INPUT BUFFER ===
        self._buffer: List[str] = []
        self._observed_code = ""
        self._last_key_ms: Optional[float] = None
        self._last_key_host_ms: Optional[float] = None
        self._host_clock = True
        self._rapid = True
        self._state = ClassifierState.IDLE

        # === INACTIVITY TIMER ===
        self._timer: Optional[TimerHandle] = None
        self._timer_generation = 0

        # === SURFACE / CAMERA ===
        self._surface_open = False
        self._camera: Optional[CameraSession] = None
        self._camera_permission_denied = False

        self._subscription: Optional[Subscription] = None
        self._closed = False

        logger.debug(f"Classifier created (profile={profile.name}, mode={self._mode})")

    # =========================================================================
    # READ-ONLY STATE
    # =========================================================================

    @property
    def mode(self) -> ScanMode:
        return self._mode

    @property
    def profile(self) -> ClassifierProfile:
        return self._profile

    @property
    def state(self) -> ClassifierState:
        return self._state

    @property
    def buffer(self) -> str:
        return "".join(self._buffer)

    @property
    def observed_code(self) -> str:
        """Code the operator sees as "current barcode" after a pause."""
        return self._observed_code

    @property
    def surface_open(self) -> bool:
        return self._surface_open

    @property
    def camera(self) -> Optional[CameraSession]:
        return self._camera

    @property
    def camera_active(self) -> bool:
        return self._camera is not None

    @property
    def camera_permission_denied(self) -> bool:
        return self._camera_permission_denied

    @property
    def actor_id(self) -> int:
        """Actor recorded on audit entries."""
        return self._actor_id

    @actor_id.setter
    def actor_id(self, value: int) -> None:
        self._actor_id = int(value)

    @property
    def history(self) -> ScanHistory:
        return self._history

    @property
    def closed(self) -> bool:
        return self._closed

    # =========================================================================
    # MODE / SURFACE
    # =========================================================================

    def set_mode(self, mode: ScanMode) -> None:
        """
        Replace the current mode.

        The buffer and history are left alone; a scan in progress is labelled
        with whatever mode is current when it completes.

        Raises:
            ValueError: If mode is not a valid ScanMode value
        """
        self._mode = ScanMode(mode)
        logger.info(f"🔀 Scan mode set to {self._mode}")

    def open_surface(self, request_camera: bool = False) -> None:
        """Open the scanning surface, optionally acquiring the camera."""
        if not self._surface_open:
            self._surface_open = True
            logger.debug("Scanning surface opened")

        if request_camera:
            self.request_camera_capture()

    def close_surface(self) -> None:
        """Close the surface: release the camera and drop any pending input."""
        self._release_camera()
        self._reset_input()
        if self._surface_open:
            self._surface_open = False
            logger.debug("Scanning surface closed")

    # =========================================================================
    # KEYBOARD PATH
    # =========================================================================

    def attach(self, hub: KeyEventHub) -> None:
        """Subscribe to a key event hub, replacing any previous subscription."""
        self.detach()
        self._subscription = hub.subscribe(self.on_key_down)

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def on_key_down(self, event: KeyEvent) -> None:
        """Feed one raw keydown through the classification rules."""
        if self._closed or event.target_is_text_input:
            return

        if self._profile.require_open_surface and not self._surface_open:
            return

        if event.is_terminator:
            self._terminate(self._gap_since_last_key(event.timestamp_ms))
        elif CODE_CHARACTER.fullmatch(event.key):
            gap = self._gap_since_last_key(event.timestamp_ms)
            self._accumulate(event.key, gap, event.timestamp_ms)

    def _gap_since_last_key(self, host_ms: Optional[float]) -> Optional[float]:
        """
        Milliseconds since the previous code character, or None for the first.

        Host timestamps are used while every event of the buffer carries one;
        after the first unstamped event the rest of the buffer is timed on the
        scheduler clock.
        """
        if self._last_key_ms is None:
            return None

        if host_ms is None or self._last_key_host_ms is None:
            self._host_clock = False

        if self._host_clock:
            return host_ms - self._last_key_host_ms
        return self._scheduler.now_ms() - self._last_key_ms

    def _accumulate(self, key: str, gap: Optional[float], host_ms: Optional[float]) -> None:
        if self._has_pending_input() and gap is not None:
            if self._is_stale(gap):
                logger.debug(f"Discarding stale buffer after {gap:.0f}ms")
                self._reset_input()
            elif self._profile.requires_rapid_input and gap >= self._profile.inter_key_threshold_ms:
                self._rapid = False

        # Typing resumed after the debounce published the observed code
        if not self._buffer and self._observed_code:
            self._buffer.extend(self._observed_code)
            self._observed_code = ""

        self._buffer.append(key)
        self._last_key_ms = self._scheduler.now_ms()
        self._last_key_host_ms = host_ms
        self._state = ClassifierState.ACCUMULATING
        self._restart_timer()

    def _terminate(self, gap: Optional[float]) -> None:
        self._cancel_timer()

        if gap is not None and self._is_stale(gap):
            self._reset_input()
            return

        candidate = self.buffer or self._observed_code
        if not candidate:
            return

        if len(candidate) < self._profile.min_length or (
            self._profile.requires_rapid_input and not self._rapid
        ):
            logger.debug(
                f"Rejected {len(candidate)}-character burst "
                f"(profile={self._profile.name}, rapid={self._rapid})"
            )
            self._reset_input()
            return

        self._emit(candidate, ScanSource.KEYBOARD)

    def _is_stale(self, gap: float) -> bool:
        quiet = self._profile.quiet_period_ms
        return quiet is not None and gap > quiet

    def _has_pending_input(self) -> bool:
        return bool(self._buffer) or bool(self._observed_code)

    # =========================================================================
    # INACTIVITY TIMER
    # =========================================================================

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._timer_generation += 1
        generation = self._timer_generation
        self._timer = self._scheduler.call_later(
            self._profile.inactivity_timeout_ms,
            lambda: self._on_inactivity(generation)
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._timer_generation += 1

    def _on_inactivity(self, generation: int) -> None:
        # A replaced or cancelled timer must not touch a newer buffer
        if generation != self._timer_generation or self._closed:
            return

        self._timer = None
        self._observed_code = self.buffer
        self._buffer.clear()
        self._state = ClassifierState.IDLE
        logger.debug(f"Observed code {self._observed_code!r}")

    # =========================================================================
    # MANUAL / CAMERA PATH
    # =========================================================================

    def submit_manual(self, text: str) -> ScanEvent:
        """
        Submit a manually typed code.

        Returns:
            The dispatched ScanEvent

        Raises:
            EmptyInputError: If the text is empty after trimming
        """
        return self._submit(text, ScanSource.MANUAL)

    def on_camera_decoded(self, text: str) -> ScanEvent:
        """Handle a camera decode exactly like a manual submission."""
        return self._submit(text, ScanSource.CAMERA)

    def _submit(self, text: str, source: ScanSource) -> ScanEvent:
        code = (text or "").strip()
        if not code:
            raise EmptyInputError()

        self._cancel_timer()
        return self._emit(code, source)

    def request_camera_capture(self) -> bool:
        """
        Acquire the camera.

        On failure the permission-denied flag is set and a notice is sent;
        keyboard and manual entry keep working. Calling again retries.

        Returns:
            True if a camera session is active
        """
        if self._camera is not None:
            return True

        try:
            camera = self.acquire_camera()
        except PermissionDeniedError as e:
            self.deny_camera(e)
            return False

        return self.install_camera(camera)

    def acquire_camera(self) -> CameraSession:
        """
        Open a new camera session without touching classifier state.

        This is the blocking half of `request_camera_capture`; hosts running
        an event loop call it from a worker thread and hand the result to
        `install_camera` (or the error to `deny_camera`) on the loop.

        Raises:
            PermissionDeniedError: If no camera is configured or it cannot be opened
        """
        if self._camera_factory is None:
            raise PermissionDeniedError("No camera configured")
        return self._camera_factory().open()

    def install_camera(self, camera: CameraSession) -> bool:
        """
        Make an opened session the active camera.

        The session is released straight away when the classifier was closed,
        or the surface closed, while it was being acquired.

        Returns:
            True if a camera session is active
        """
        if self._closed or self._camera is not None or (
            self._profile.require_open_surface and not self._surface_open
        ):
            camera.close()
            return self._camera is not None

        self._camera = camera
        self._camera_permission_denied = False
        return True

    def deny_camera(self, error: PermissionDeniedError) -> None:
        """Record a failed acquisition and tell the operator."""
        self._camera_permission_denied = True
        logger.warning(f"📷 Camera unavailable: {error.details.get('reason')}")
        self._send_notice(error.title, error.message, "destructive")

    def poll_camera(self) -> List[ScanEvent]:
        """Read one frame from the active camera and dispatch what it decodes."""
        if self._camera is None:
            return []

        return self.dispatch_camera_codes(self._camera.read_codes())

    def dispatch_camera_codes(self, codes: List[str]) -> List[ScanEvent]:
        """Dispatch codes decoded from one frame; blank codes are skipped."""
        events = []
        for code in codes:
            if not code.strip():
                continue
            events.append(self.on_camera_decoded(code))
            # Dispatch may have closed the surface and released the camera
            if self._camera is None:
                break
        return events

    def _release_camera(self) -> None:
        camera, self._camera = self._camera, None
        if camera is not None:
            camera.close()

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def _emit(self, code: str, source: ScanSource) -> ScanEvent:
        event = ScanEvent(
            code=code,
            mode=self._mode,
            timestamp=datetime.now(timezone.utc),
            source=source
        )

        self._history.add(event)
        self._reset_input()

        logger.info(f"✅ Scan {event.code!r} ({event.mode}, {event.source})")
        self._on_scanned(event.code, event.mode)

        self._record_audit(event)
        self._send_notice("Barcode Scanned", f"{event.mode.label}: {event.code}", "default")

        if self._profile.close_surface_on_scan:
            self.close_surface()

        return event

    def _record_audit(self, event: ScanEvent) -> None:
        if self._audit is None:
            return
        try:
            self._audit.record(ScanAuditEntry.from_event(event, self._actor_id))
        except Exception as e:
            logger.warning(f"Scan audit hand-off failed: {e}")

    def _send_notice(self, title: str, description: str, variant: str) -> None:
        if self._notifier is not None:
            self._notifier(title, description, variant)

    def _reset_input(self) -> None:
        self._cancel_timer()
        self._buffer.clear()
        self._observed_code = ""
        self._last_key_ms = None
        self._last_key_host_ms = None
        self._host_clock = True
        self._rapid = True
        self._state = ClassifierState.IDLE

    # =========================================================================
    # TEARDOWN
    # =========================================================================

    def close(self) -> None:
        """Detach from the key source, cancel timers and release the camera."""
        if self._closed:
            return

        self.detach()
        self.close_surface()
        self._closed = True
        logger.debug("Classifier closed")
