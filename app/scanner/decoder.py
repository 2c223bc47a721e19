"""
==============================================================================
Barcode Frame Decoder Module
==============================================================================

Decodes barcodes from camera frames with OpenCV and pyzbar.

Features:
---------
- Frame decoding (numpy / OpenCV images)
- Base64 image decoding for frames streamed by browser clients
- De-duplication of codes seen more than once in the same frame

pyzbar loads the native zbar library when it is imported, so the import is
deferred to the first decode. Stations that only use the keyboard wedge and
manual entry never need zbar installed.

==============================================================================
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import List, Optional

import cv2
import numpy as np


# Module logger
logger = logging.getLogger(__name__)


class FrameDecoder:
    """
    Barcode decoder for single frames.

    Example:
        >>> decoder = FrameDecoder()
        >>> decoder.decode_frame(frame)
        ['4006381333931']
        >>> decoder.decode_base64(payload["frame"])
        ['WDG-001']
    """

    def __init__(self) -> None:
        self._decode = None

    def _decoder(self):
        if self._decode is None:
            from pyzbar.pyzbar import decode

            self._decode = decode
        return self._decode

    def decode_frame(self, frame: Optional[np.ndarray]) -> List[str]:
        """
        Decode every barcode visible in a frame.

        Args:
            frame: OpenCV image (numpy array)

        Returns:
            Decoded codes in detection order, duplicates removed
        """
        if frame is None or frame.size == 0:
            return []

        try:
            barcodes = self._decoder()(frame)
        except Exception as e:
            logger.error(f"Decode error: {e}")
            return []

        codes: List[str] = []
        for barcode in barcodes:
            try:
                code = barcode.data.decode("utf-8").strip()
            except UnicodeDecodeError:
                logger.warning(f"Skipping non UTF-8 {barcode.type} barcode")
                continue

            if code and code not in codes:
                codes.append(code)

        if codes:
            logger.debug(f"📷 Decoded {len(codes)} barcode(s) from frame")
        return codes

    def decode_base64(self, payload: str) -> List[str]:
        """
        Decode barcodes from a base64-encoded JPEG/PNG frame.

        Accepts raw base64 or a `data:image/...;base64,` URL.
        """
        if not payload:
            return []

        if payload.startswith("data:") and "," in payload:
            payload = payload.split(",", 1)[1]

        try:
            img_data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning(f"Invalid base64 frame: {e}")
            return []

        nparr = np.frombuffer(img_data, np.uint8)
        frame = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

        if frame is None:
            logger.warning("Could not decode frame image")
            return []

        return self.decode_frame(frame)
