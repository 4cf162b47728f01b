"""
==============================================================================
Scan Schemas Module
==============================================================================

Request and response schemas for scanning and camera endpoints.

==============================================================================
"""

import base64
import binascii
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from posscan.scanner.models import FacingMode, ValidationStatus


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class CodeCheckRequest(BaseModel):
    """Code typed or pasted by the operator."""
    code: str = Field(..., max_length=64)


class ImageScanRequest(BaseModel):
    """Still image as base64 (a data URL prefix is accepted)."""
    image: str = Field(..., min_length=1)

    @field_validator("image")
    @classmethod
    def strip_data_url(cls, v: str) -> str:
        v = v.strip()
        if v.startswith("data:") and "," in v:
            v = v.split(",", 1)[1]
        return v

    def image_bytes(self) -> Optional[bytes]:
        """Decoded image, None when the payload is not valid base64."""
        try:
            return base64.b64decode(self.image, validate=True)
        except (binascii.Error, ValueError):
            return None


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class CodeCheckResponse(BaseModel):
    """Validation outcome of a code."""
    success: bool = Field(default=True)
    code: str
    status: ValidationStatus
    valid: bool
    message: Optional[str] = None


class ImageScanResponse(BaseModel):
    """Result of a still image scan."""
    success: bool = Field(default=True)
    found: bool
    code: Optional[str] = None
    status: Optional[ValidationStatus] = None
    valid: bool = False
    message: Optional[str] = None


class CameraDeviceResponse(BaseModel):
    """Enumerated capture device."""
    device_id: str
    label: str
    facing: FacingMode


class CameraDeviceListResponse(BaseModel):
    """All enumerated devices."""
    success: bool = Field(default=True)
    total: int = Field(ge=0)
    devices: List[CameraDeviceResponse]
