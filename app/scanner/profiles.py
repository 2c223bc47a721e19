"""
==============================================================================
Classifier Profiles Module
==============================================================================

One parameter set drives the keystroke classifier for both the open
scanning surface and page-wide ("global") listening.

Presets:
--------
- surface: lenient. Only listens while the surface is open, accepts any
  non-empty code, debounces with a 100ms inactivity timer.
- global: strict. Listens with the surface closed, needs at least 5
  characters all typed less than 20ms apart, discards buffers idle for
  more than 300ms.

==============================================================================
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.config.settings import PROFILE_NAMES, Settings


class ClassifierProfile(BaseModel):
    """
    Keystroke classification parameters.

    Attributes:
        name: Profile name (surface / global / custom)
        require_open_surface: Ignore keystrokes while the surface is closed
        min_length: Shortest code accepted at Enter
        inter_key_threshold_ms: Every gap must be below this (None = no check)
        quiet_period_ms: Discard a buffer idle for longer (None = never)
        inactivity_timeout_ms: Debounce before the buffer becomes the observed code
        close_surface_on_scan: Close the surface after a successful scan
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="custom")
    require_open_surface: bool = Field(default=True)
    min_length: int = Field(default=1, ge=1)
    inter_key_threshold_ms: Optional[float] = Field(default=None, gt=0)
    quiet_period_ms: Optional[float] = Field(default=None, gt=0)
    inactivity_timeout_ms: float = Field(default=100.0, gt=0)
    close_surface_on_scan: bool = Field(default=True)

    @property
    def requires_rapid_input(self) -> bool:
        return self.inter_key_threshold_ms is not None


SURFACE_PROFILE = ClassifierProfile(
    name="surface",
    require_open_surface=True,
    min_length=1,
    inactivity_timeout_ms=100.0,
)

GLOBAL_PROFILE = ClassifierProfile(
    name="global",
    require_open_surface=False,
    min_length=5,
    inter_key_threshold_ms=20.0,
    quiet_period_ms=300.0,
    inactivity_timeout_ms=100.0,
)


def profile_from_settings(name: str, settings: Settings) -> ClassifierProfile:
    """
    Build a named preset with the thresholds from settings.

    Raises:
        ValueError: If the profile name is unknown
    """
    name = str(name).lower().strip()

    if name == "surface":
        return SURFACE_PROFILE.model_copy(update={
            "inactivity_timeout_ms": settings.surface_inactivity_timeout_ms,
        })

    if name == "global":
        return GLOBAL_PROFILE.model_copy(update={
            "min_length": settings.global_min_length,
            "inter_key_threshold_ms": settings.global_inter_key_threshold_ms,
            "quiet_period_ms": settings.global_quiet_period_ms,
            "inactivity_timeout_ms": settings.global_inactivity_timeout_ms,
        })

    raise ValueError(f"Unknown classifier profile {name!r}, expected one of {PROFILE_NAMES}")
