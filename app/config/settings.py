"""
==============================================================================
Scan Station Settings
==============================================================================

Environment-driven configuration for the scan station service, loaded once
per process through `get_settings()`.

Values come from environment variables first, then `.env`, then the
defaults below. Names are case-insensitive (`GLOBAL_MIN_LENGTH=8` sets
`global_min_length`).

Calibration Notes:
-----------------
The keystroke thresholds are tuning values carried over from the browser
scanner dialog. They are defaults, not measurements: calibrate them against
the scanner hardware actually deployed on the floor.

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Module logger
logger = logging.getLogger(__name__)

SCAN_MODE_NAMES = ("lookup", "inventory", "picking", "receiving")
PROFILE_NAMES = ("surface", "global")


class Settings(BaseSettings):
    """
    Scan station service configuration.

    Attributes:
        app_name: Service name shown in the API docs and logs
        app_env: development, staging or production
        debug: Verbose logging and uvicorn reload
        host / port: Bind address
        cors_origins: JSON array of allowed origins
        default_scan_mode: Mode a new station starts in
        default_profile: Classifier profile for new stations (surface/global)
        history_size: Recent scans kept per station
        max_stations: Most stations open at once
        surface_inactivity_timeout_ms: Debounce while the surface is open
        global_min_length: Shortest implicit (global) scan accepted
        global_inter_key_threshold_ms: Every gap of a global burst must be below this
        global_quiet_period_ms: Idle gap after which a global buffer is discarded
        global_inactivity_timeout_ms: Debounce in global mode
        camera_enabled / camera_index: Local capture device
        audit_enabled / audit_base_url / audit_timeout_seconds: Scan audit posting
        default_actor_id: Actor recorded when a client does not identify itself

    Example:
        >>> Settings(global_min_length=8).global_min_length
        8
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # === SERVICE ===
    app_name: str = Field(default="Scan Station Service")
    app_env: str = Field(default="development")
    debug: bool = Field(default=True)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: str = Field(default='["*"]', description="JSON array of allowed origins")

    # === SCANNER ===
    default_scan_mode: str = Field(default="lookup")
    default_profile: str = Field(default="surface")
    history_size: int = Field(default=10, ge=1, le=100)
    max_stations: int = Field(default=100, ge=1, le=10000)

    surface_inactivity_timeout_ms: float = Field(default=100.0, gt=0, le=5000)

    global_min_length: int = Field(default=5, ge=1, le=128)
    global_inter_key_threshold_ms: float = Field(default=20.0, gt=0, le=1000)
    global_quiet_period_ms: float = Field(default=300.0, gt=0, le=10000)
    global_inactivity_timeout_ms: float = Field(default=100.0, gt=0, le=5000)

    # === CAMERA ===
    camera_enabled: bool = Field(
        default=False,
        description="Let stations open a local capture device with OpenCV"
    )
    camera_index: int = Field(default=0, ge=0)

    # === SCAN AUDIT ===
    audit_enabled: bool = Field(default=False)
    audit_base_url: str = Field(
        default="http://localhost:5000/api",
        description="Audit service base URL; entries go to {base}/scan-logs"
    )
    audit_timeout_seconds: float = Field(default=2.0, gt=0, le=60)
    default_actor_id: int = Field(default=1, ge=1)

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        env = value.lower().strip()
        if env not in ("development", "staging", "production"):
            logger.warning(f"Unknown APP_ENV '{value}', using development")
            return "development"
        return env

    @field_validator("default_scan_mode")
    @classmethod
    def validate_default_scan_mode(cls, value: str) -> str:
        """
        Raises:
            ValueError: If the mode is not a known scan mode
        """
        mode = value.lower().strip()
        if mode not in SCAN_MODE_NAMES:
            raise ValueError(f"default_scan_mode must be one of {', '.join(SCAN_MODE_NAMES)}")
        return mode

    @field_validator("default_profile")
    @classmethod
    def validate_default_profile(cls, value: str) -> str:
        profile = value.lower().strip()
        if profile not in PROFILE_NAMES:
            raise ValueError(f"default_profile must be one of {', '.join(PROFILE_NAMES)}")
        return profile

    @field_validator("audit_base_url")
    @classmethod
    def strip_audit_base_url(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def cors_origins_list(self) -> List[str]:
        """CORS origins as a list; malformed JSON falls back to ["*"]."""
        try:
            origins = json.loads(self.cors_origins)
        except json.JSONDecodeError:
            logger.warning(f"CORS_ORIGINS is not valid JSON ({self.cors_origins!r}), allowing all")
            return ["*"]
        return origins if isinstance(origins, list) else ["*"]

    def __repr__(self) -> str:
        return (
            f"Settings(app_env={self.app_env!r}, "
            f"default_profile={self.default_profile!r}, "
            f"camera_enabled={self.camera_enabled}, "
            f"audit_enabled={self.audit_enabled})"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide Settings, built on first call."""
    settings = Settings()
    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")
    return settings
