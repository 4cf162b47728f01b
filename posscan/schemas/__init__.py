"""
==============================================================================
Schemas Package - Pydantic Models
==============================================================================

Request and response schemas using Pydantic for validation.

==============================================================================
"""

from .scan import (
    CameraDeviceListResponse,
    CameraDeviceResponse,
    CodeCheckRequest,
    CodeCheckResponse,
    ImageScanRequest,
    ImageScanResponse,
)

__all__ = [
    "CameraDeviceListResponse",
    "CameraDeviceResponse",
    "CodeCheckRequest",
    "CodeCheckResponse",
    "ImageScanRequest",
    "ImageScanResponse",
]
