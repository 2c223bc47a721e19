"""
Error Types

AppException carries a machine-readable code and HTTP status; the scanner
errors below derive from it so REST handlers and WebSocket sessions report
them the same way.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppException(Exception):
    """
    Base error with a code, an HTTP status and optional details.

    Usage:
        raise AppException("Station not found", "STATION_NOT_FOUND", 404)
        raise EmptyInputError()

    Error Codes:
        Scanner:
            - EMPTY_INPUT (400)
            - CAMERA_PERMISSION_DENIED (403)
            - AUDIT_LOG_FAILED (502, never surfaced to clients)

        Stations:
            - INVALID_MODE (400)
            - INVALID_PROFILE (400)
            - INVALID_STATION_ID (400)
            - STATION_NOT_FOUND (404)
            - STATION_LIMIT_REACHED (409)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        error_dict = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }

        if self.details:
            error_dict["error"]["details"] = self.details

        return error_dict


# ============================================
# SCANNER ERRORS
# ============================================

class EmptyInputError(AppException):
    """A manual or camera submission contained nothing but whitespace."""

    title = "Empty Barcode"

    def __init__(self) -> None:
        super().__init__("Please enter a valid barcode.", "EMPTY_INPUT", 400)


class PermissionDeniedError(AppException):
    """The camera could not be acquired."""

    title = "Camera permission denied"

    def __init__(self, reason: str = "Camera unavailable") -> None:
        super().__init__(
            "You can still enter the barcode manually.",
            "CAMERA_PERMISSION_DENIED",
            403,
            {"reason": reason}
        )


class AuditLogError(AppException):
    """Posting a scan audit entry failed. Only ever logged."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            "Failed to log barcode scan",
            "AUDIT_LOG_FAILED",
            502,
            {"reason": reason}
        )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render an AppException as `{"success": false, "error": {...}}`."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the AppException handler on the app."""
    app.add_exception_handler(AppException, app_exception_handler)


# ============================================
# FACTORIES
# ============================================

def invalid_mode(mode: str) -> AppException:
    """Create invalid scan mode exception."""
    return AppException(
        f"Unknown scan mode '{mode}'",
        "INVALID_MODE",
        400,
        {"mode": mode}
    )


def invalid_profile(profile: str) -> AppException:
    """Create invalid classifier profile exception."""
    return AppException(
        f"Unknown classifier profile '{profile}'",
        "INVALID_PROFILE",
        400,
        {"profile": profile}
    )


def station_not_found(station_id: str) -> AppException:
    """Create station not found exception."""
    return AppException(
        "Scan station not found",
        "STATION_NOT_FOUND",
        404,
        {"station_id": station_id}
    )


def station_limit_reached(limit: int) -> AppException:
    """Create station registry full exception."""
    return AppException(
        f"No more than {limit} scan stations can be open at once",
        "STATION_LIMIT_REACHED",
        409,
        {"max_stations": limit}
    )
