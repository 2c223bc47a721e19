"""
==============================================================================
Station Schemas Module
==============================================================================

Request and response schemas for scan station operations.

==============================================================================
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from app.scanner.models import ScanEvent, ScanMode, ScanSource


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class ManualScanRequest(BaseModel):
    """
    Manually typed code.

    Blank text passes validation; the station rejects it with EMPTY_INPUT.
    """
    text: str = Field(default="", max_length=256)


class ModeUpdate(BaseModel):
    """Switch the station's scan mode."""
    mode: str = Field(..., min_length=1, max_length=32)

    @field_validator("mode")
    @classmethod
    def normalize_mode(cls, v: str) -> str:
        return v.lower().strip()


class SurfaceOpenRequest(BaseModel):
    """Open the scanning surface."""
    request_camera: bool = Field(default=False)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class ScanEventResponse(BaseModel):
    """One completed scan."""
    code: str
    mode: ScanMode
    timestamp: datetime
    source: ScanSource

    @classmethod
    def from_event(cls, event: ScanEvent) -> "ScanEventResponse":
        return cls(
            code=event.code,
            mode=event.mode,
            timestamp=event.timestamp,
            source=event.source
        )


class StationState(BaseModel):
    """Snapshot of a station."""
    station_id: str
    mode: ScanMode
    mode_description: str
    profile: str
    state: str
    surface_open: bool
    observed_code: Optional[str] = None
    camera_active: bool
    camera_permission_denied: bool
    history: List[ScanEventResponse] = Field(default_factory=list)


class StationResponse(BaseModel):
    """Station state wrapper."""
    success: bool = Field(default=True)
    station: StationState


class ScanResponse(BaseModel):
    """Result of a manual submission."""
    success: bool = Field(default=True)
    scan: ScanEventResponse
    station: StationState


class ModeInfo(BaseModel):
    """One entry of the mode catalogue."""
    mode: ScanMode
    label: str
    description: str


class ModeListResponse(BaseModel):
    """Available scan modes."""
    success: bool = Field(default=True)
    modes: List[ModeInfo]
