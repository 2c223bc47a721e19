"""
==============================================================================
API v1 Endpoints
==============================================================================

Version 1 of the REST API.

Routers:
--------
- health: Health check endpoints
- modes: Scan mode catalogue
- stations: Scan station state, manual entry, mode and surface control

==============================================================================
"""

from . import health, modes, stations

__all__ = ["health", "modes", "stations"]
