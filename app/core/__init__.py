"""
==============================================================================
Core Package
==============================================================================

Core utilities and infrastructure for the application.

This package provides:
- Custom exception handling with consistent error responses
- The scanner error taxonomy (empty input, camera permission, audit failure)
- Exception factory functions for common error scenarios

Modules:
--------
- exceptions: AppException class, scanner errors and factory functions

Usage:
------
    from app.core import AppException, EmptyInputError

    # Or use exception factory functions via module
    from app.core import exceptions
    raise exceptions.station_not_found("dock-1")

==============================================================================
"""

from .exceptions import (
    AppException,
    AuditLogError,
    EmptyInputError,
    PermissionDeniedError,
    register_exception_handlers,
)

__all__ = [
    "AppException",
    "AuditLogError",
    "EmptyInputError",
    "PermissionDeniedError",
    "register_exception_handlers",
]
