"""
==============================================================================
Scanner Models Module
==============================================================================

Pydantic models and enums shared by the acquisition pipeline.

==============================================================================
"""

from __future__ import annotations

import enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class FacingMode(str, enum.Enum):
    """Which way a camera points."""
    FRONT = "front"
    REAR = "rear"
    UNKNOWN = "unknown"


class CameraState(str, enum.Enum):
    """Lifecycle of a camera session."""
    IDLE = "idle"
    NEGOTIATING = "negotiating"
    ACTIVE = "active"
    STOPPED = "stopped"
    ERROR = "error"


class ValidationStatus(str, enum.Enum):
    """Result tag of a code validation."""
    VALID = "valid"
    INVALID_FORMAT = "invalid_format"
    INVALID_CHECKSUM = "invalid_checksum"


class CameraDevice(BaseModel):
    """
    Capture device as reported by enumeration.

    Attributes:
        device_id: Backend identifier used to open the device
        label: Human-readable name
        facing: Facing hint derived from the label
    """

    model_config = ConfigDict(frozen=True)

    device_id: str = Field(..., description="Backend device identifier")
    label: str = Field(default="", description="Human-readable device name")
    facing: FacingMode = Field(default=FacingMode.UNKNOWN)


class StreamConstraints(BaseModel):
    """
    Constraints passed to the capture capability.

    ``facing_mode`` follows the browser vocabulary: ``"environment"`` is the
    rear camera, ``"user"`` the front one. ``exact`` turns the facing mode
    from a preference into a requirement.
    """

    model_config = ConfigDict(frozen=True)

    facing_mode: Optional[str] = None
    exact: bool = False
    device_id: Optional[str] = None
    width: int = Field(default=1920, ge=1)
    height: int = Field(default=1080, ge=1)

    def describe(self) -> str:
        """Short description used in logs and error details."""
        if self.device_id is not None:
            return f"deviceId={self.device_id}"
        if self.facing_mode is None:
            return "default"
        kind = "exact" if self.exact else "ideal"
        return f"facingMode={{{kind}: {self.facing_mode}}}"


class ScanCandidate(BaseModel):
    """
    One symbol returned by the decode capability.

    The payload is either text or raw bytes; ``text`` normalises both to a
    string using UTF-8 with replacement of invalid sequences.
    """

    model_config = ConfigDict(frozen=True)

    payload: Union[str, bytes]
    symbology: Optional[str] = None

    @property
    def text(self) -> str:
        if isinstance(self.payload, bytes):
            return self.payload.decode("utf-8", errors="replace")
        return self.payload


class ValidationOutcome(BaseModel):
    """
    Tagged validation result.

    Example:
        >>> ValidationOutcome.valid("49123452").is_valid
        True
    """

    model_config = ConfigDict(frozen=True)

    status: ValidationStatus
    code: Optional[str] = None

    @classmethod
    def valid(cls, code: str) -> "ValidationOutcome":
        return cls(status=ValidationStatus.VALID, code=code)

    @classmethod
    def invalid_format(cls) -> "ValidationOutcome":
        return cls(status=ValidationStatus.INVALID_FORMAT)

    @classmethod
    def invalid_checksum(cls) -> "ValidationOutcome":
        return cls(status=ValidationStatus.INVALID_CHECKSUM)

    @property
    def is_valid(self) -> bool:
        return self.status is ValidationStatus.VALID
