"""
==============================================================================
Scan Mode Endpoints
==============================================================================

Catalogue of scan modes with their labels and descriptions.

==============================================================================
"""

from fastapi import APIRouter

from app.scanner.models import ScanMode
from app.schemas.station import ModeInfo, ModeListResponse


router = APIRouter(prefix="/modes", tags=["Modes"])


@router.get("", response_model=ModeListResponse)
async def list_modes():
    """List the scan modes a station can be switched to."""
    return ModeListResponse(
        modes=[
            ModeInfo(mode=mode, label=mode.label, description=mode.description)
            for mode in ScanMode
        ]
    )
