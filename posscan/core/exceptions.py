"""
Application Exception Handling

Single AppException class for all scanner errors with FastAPI integration.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# User-facing messages shared by the live scanner and the HTTP surface
INVALID_FORMAT_MESSAGE = "Unsupported barcode format. Scan a JAN code (8 or 13 digits)."
INVALID_CHECKSUM_MESSAGE = "The JAN code check digit is incorrect."
CAMERA_UNAVAILABLE_MESSAGE = "Failed to access the camera. Check camera permissions."

class AppException(Exception):
    """
    Unified application exception for all error scenarios.

    Usage:
        raise AppException("Camera busy", "CAMERA_NOT_READABLE", 503)
        raise AppException("Bad image", "INVALID_IMAGE", 400, {"size": 0})

    Error Codes:
        Camera:
            - CAMERA_NOT_ALLOWED (403)
            - CAMERA_NOT_FOUND (404)
            - CAMERA_OVERCONSTRAINED (409)
            - CAMERA_NOT_READABLE (503)
            - CAMERA_UNAVAILABLE (503)

        Input:
            - INVALID_IMAGE (400)

        General:
            - DECODER_UNAVAILABLE (503)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize application exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "CAMERA_NOT_FOUND")
            status_code: HTTP status code (default: 400)
            details: Additional error context (optional)
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    @property
    def is_camera_error(self) -> bool:
        """True for device acquisition failures."""
        return self.code.startswith("CAMERA_")

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

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    FastAPI exception handler for AppException.

    Converts AppException to consistent JSON error response.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)

# ============================================
# CONVENIENCE FACTORY FUNCTIONS
# ============================================

def _strategy_details(strategy: Optional[str]) -> Dict[str, Any]:
    return {"strategy": strategy} if strategy else {}

def camera_not_allowed(strategy: Optional[str] = None) -> AppException:
    """Create camera permission denied exception."""
    return AppException(
        "Camera access was denied",
        "CAMERA_NOT_ALLOWED",
        403,
        _strategy_details(strategy)
    )

def camera_not_found(strategy: Optional[str] = None) -> AppException:
    """Create no camera device exception."""
    return AppException(
        "No camera device found",
        "CAMERA_NOT_FOUND",
        404,
        _strategy_details(strategy)
    )

def camera_overconstrained(constraint: str, strategy: Optional[str] = None) -> AppException:
    """Create unsatisfiable constraint exception."""
    details = _strategy_details(strategy)
    details["constraint"] = constraint
    return AppException(
        f"No camera satisfies constraint: {constraint}",
        "CAMERA_OVERCONSTRAINED",
        409,
        details
    )

def camera_not_readable(device: str, strategy: Optional[str] = None) -> AppException:
    """Create device open failure exception."""
    details = _strategy_details(strategy)
    details["device"] = device
    return AppException(
        f"Camera device could not be opened: {device}",
        "CAMERA_NOT_READABLE",
        503,
        details
    )

def camera_unavailable(attempts: Optional[Dict[str, str]] = None) -> AppException:
    """Create exception for an exhausted negotiation chain."""
    return AppException(
        CAMERA_UNAVAILABLE_MESSAGE,
        "CAMERA_UNAVAILABLE",
        503,
        {"attempts": attempts} if attempts else None
    )

def invalid_image(reason: str) -> AppException:
    """Create undecodable image exception."""
    return AppException(
        f"Invalid image: {reason}",
        "INVALID_IMAGE",
        400,
        {"reason": reason}
    )

def decoder_unavailable(reason: str) -> AppException:
    """Create missing decode capability exception."""
    return AppException(
        f"Barcode decoder unavailable: {reason}",
        "DECODER_UNAVAILABLE",
        503
    )
