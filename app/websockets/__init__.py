"""
==============================================================================
WebSocket Package
==============================================================================

Real-time WebSocket handlers for scan stations.

Handlers:
---------
- scanner: Station session (keystroke classification, manual entry,
  camera frames, mode and surface control)

==============================================================================
"""

from .scanner import router as station_router

__all__ = ["station_router"]
