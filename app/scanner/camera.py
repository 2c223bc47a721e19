"""
==============================================================================
Camera Session Module
==============================================================================

Scoped acquisition of a local capture device.

A CameraSession acquires the device on `open()` and releases it exactly
once on `close()`, on leaving a `with` block, or on classifier teardown,
whichever comes first.

==============================================================================
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List, Optional

import cv2

from app.core.exceptions import PermissionDeniedError
from app.scanner.decoder import FrameDecoder


# Module logger
logger = logging.getLogger(__name__)

# Anything with isOpened() / read() / release(), e.g. cv2.VideoCapture
CaptureFactory = Callable[[int], Any]


class CameraSession:
    """
    One acquisition of a capture device.

    Attributes:
        camera_index: Device index passed to the capture factory
        is_open: True between a successful open() and close()

    Example:
        >>> with CameraSession(0) as camera:
        ...     codes = camera.read_codes()
    """

    def __init__(
        self,
        camera_index: int = 0,
        capture_factory: CaptureFactory = cv2.VideoCapture,
        decoder: Optional[FrameDecoder] = None
    ) -> None:
        self._camera_index = camera_index
        self._capture_factory = capture_factory
        self._decoder = decoder or FrameDecoder()
        self._cap = None
        # read_codes may run on a worker thread while close runs on the loop
        self._lock = threading.Lock()

    @property
    def camera_index(self) -> int:
        return self._camera_index

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def open(self) -> "CameraSession":
        """
        Acquire the device.

        Raises:
            PermissionDeniedError: If the device cannot be opened
        """
        if self._cap is not None:
            return self

        try:
            cap = self._capture_factory(self._camera_index)
        except Exception as e:
            logger.warning(f"Camera {self._camera_index} acquisition failed: {e}")
            raise PermissionDeniedError(str(e)) from e

        if not cap.isOpened():
            cap.release()
            logger.warning(f"Cannot open camera {self._camera_index}")
            raise PermissionDeniedError(f"Cannot open camera {self._camera_index}")

        self._cap = cap
        logger.info(f"📷 Camera {self._camera_index} acquired")
        return self

    def read_codes(self) -> List[str]:
        """Grab one frame and decode it. Returns [] when closed or on a bad read."""
        with self._lock:
            if self._cap is None:
                return []
            ret, frame = self._cap.read()

        if not ret:
            logger.warning("Failed to read frame")
            return []

        return self._decoder.decode_frame(frame)

    def close(self) -> None:
        """Release the device. Safe to call more than once."""
        with self._lock:
            cap, self._cap = self._cap, None
        if cap is None:
            return
        try:
            cap.release()
        finally:
            logger.info(f"📷 Camera {self._camera_index} released")

    def __enter__(self) -> "CameraSession":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
