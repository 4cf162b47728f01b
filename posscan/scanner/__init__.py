"""
==============================================================================
Scanner Package - Live Barcode Acquisition
==============================================================================

Camera negotiation, frame preprocessing, decoding, validation and
debouncing of JAN codes with OpenCV and pyzbar.

Classes:
--------
- CameraSession: Stream ownership with a negotiation fallback chain
- OpenCVVideoCapture: Local camera capture capability
- ImagePreprocessor: Zoom, ROI, contrast and sharpen
- DecodeAdapter / PyzbarDecoder: Decode capability boundary
- JANCodeValidator: Format and check digit validation
- ResultDebouncer: Time-windowed emission gate
- FrameSampler: The scan loop
- ImageScanner: Still image decoding

==============================================================================
"""

from .camera import CameraSession, MediaTrack, VideoCapture, VideoStream
from .debouncer import ResultDebouncer
from .debug import FileDebugSink
from .decoder import DecodeAdapter, PyzbarDecoder
from .image import ImageScanner, ImageScanResult
from .models import (
    CameraDevice,
    CameraState,
    FacingMode,
    ScanCandidate,
    StreamConstraints,
    ValidationOutcome,
    ValidationStatus,
)
from .opencv_capture import OpenCVVideoCapture
from .preprocessor import ImagePreprocessor, RegionOfInterest
from .sampler import FrameSampler
from .validator import JANCodeValidator, validate

__all__ = [
    "CameraSession",
    "MediaTrack",
    "VideoCapture",
    "VideoStream",
    "ResultDebouncer",
    "FileDebugSink",
    "DecodeAdapter",
    "PyzbarDecoder",
    "ImageScanner",
    "ImageScanResult",
    "CameraDevice",
    "CameraState",
    "FacingMode",
    "ScanCandidate",
    "StreamConstraints",
    "ValidationOutcome",
    "ValidationStatus",
    "OpenCVVideoCapture",
    "ImagePreprocessor",
    "RegionOfInterest",
    "FrameSampler",
    "JANCodeValidator",
    "validate",
]
