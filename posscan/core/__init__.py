"""
==============================================================================
Core Package
==============================================================================

Core infrastructure for the application.

This package provides:
- Custom exception handling with consistent error responses
- Exception factory functions for camera, image and decoder errors
- FastAPI dependency providers for the capture and decode capabilities

Modules:
--------
- exceptions: AppException class and error factory functions
- dependencies: FastAPI dependency injection functions

Usage:
------
    from posscan.core import exceptions
    raise exceptions.camera_not_found()

==============================================================================
"""

from .exceptions import (
    AppException,
    register_exception_handlers,
)

__all__ = [
    "AppException",
    "register_exception_handlers",
]
