"""
==============================================================================
Schemas Package
==============================================================================

Pydantic request/response schemas for the REST API.

Modules:
--------
- common: Generic message wrapper
- station: Scan station requests and responses

==============================================================================
"""

from .common import MessageResponse
from .station import (
    ManualScanRequest,
    ModeInfo,
    ModeListResponse,
    ModeUpdate,
    ScanEventResponse,
    ScanResponse,
    StationResponse,
    StationState,
    SurfaceOpenRequest,
)

__all__ = [
    "MessageResponse",
    "ManualScanRequest",
    "ModeInfo",
    "ModeListResponse",
    "ModeUpdate",
    "ScanEventResponse",
    "ScanResponse",
    "StationResponse",
    "StationState",
    "SurfaceOpenRequest",
]
