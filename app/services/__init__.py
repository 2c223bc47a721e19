"""
==============================================================================
Services Package - Business Logic Layer
==============================================================================

Service classes sitting between the transports and the scanner core.

This package provides:
- ScanStationManager / ScanStation: per-station classifier ownership
- HttpScanAuditLogger: fire-and-forget scan audit posting

Architecture Pattern: Service Layer
----------------------------------

    ┌──────────────────────────┐
    │  REST API / WebSocket    │
    └────────────┬─────────────┘
                 │
    ┌────────────▼─────────────┐
    │  ScanStationManager      │  ← Station lifecycle
    └────────────┬─────────────┘
                 │
    ┌────────────▼─────────────┐      ┌──────────────────────┐
    │  ScanClassifier          │ ───▶ │ HttpScanAuditLogger  │
    └──────────────────────────┘      └──────────────────────┘

Usage:
------
    from app.services import get_station_manager

    station = get_station_manager().get_or_create("dock-3")
    station.submit_manual("WDG-001")

==============================================================================
"""

from .audit_service import HttpScanAuditLogger
from .station_service import (
    ScanStation,
    ScanStationManager,
    get_station_manager,
    set_station_manager,
)

__all__ = [
    "HttpScanAuditLogger",
    "ScanStation",
    "ScanStationManager",
    "get_station_manager",
    "set_station_manager",
]
