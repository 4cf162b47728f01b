"""
==============================================================================
FastAPI Dependencies Module
==============================================================================

Dependency providers wiring settings into the scanner pipeline.

Routes never build capture or decode capabilities themselves; they depend
on the providers below, which tests replace through
``app.dependency_overrides``.

Usage:
------
    @router.get("/devices")
    async def devices(capture: VideoCapture = Depends(get_video_capture)):
        ...

==============================================================================
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends

from posscan.config import Settings, get_settings
from posscan.scanner import (
    CameraSession,
    DecodeAdapter,
    FileDebugSink,
    FrameSampler,
    ImagePreprocessor,
    ImageScanner,
    OpenCVVideoCapture,
    PyzbarDecoder,
    ResultDebouncer,
    VideoCapture,
)
from posscan.scanner.sampler import Callback


# Module logger
logger = logging.getLogger(__name__)


class ScannerFactory:
    """
    Builds per-session pipeline objects from settings.

    Every call to ``create_sampler`` yields a fresh CameraSession,
    debouncer and sampler; capabilities are shared.

    Attributes:
        _settings: Application settings
        _capture: Capture capability
        _decoder: Decode adapter
    """

    def __init__(
        self,
        settings: Settings,
        capture: VideoCapture,
        decoder: DecodeAdapter
    ) -> None:
        self._settings = settings
        self._capture = capture
        self._decoder = decoder

    @property
    def capture(self) -> VideoCapture:
        return self._capture

    def create_session(self) -> CameraSession:
        """New camera session using the configured ideal resolution."""
        return CameraSession(
            self._capture,
            width=self._settings.camera_width,
            height=self._settings.camera_height
        )

    def create_preprocessor(self) -> ImagePreprocessor:
        return ImagePreprocessor(
            contrast_factor=self._settings.contrast_factor,
            zoom=self._settings.zoom,
            enabled=self._settings.preprocess_enabled
        )

    def create_sampler(
        self,
        on_scan: Callback,
        on_error: Optional[Callback] = None
    ) -> FrameSampler:
        """New sampler with its own camera session and debounce window."""
        debug_file = self._settings.debug_roi_file
        return FrameSampler(
            camera=self.create_session(),
            decoder=self._decoder,
            on_scan=on_scan,
            on_error=on_error,
            preprocessor=self.create_preprocessor(),
            debouncer=ResultDebouncer(self._settings.debounce_window_ms),
            debug_sink=FileDebugSink(debug_file) if debug_file else None,
            frame_interval=self._settings.frame_interval_seconds
        )

    def create_image_scanner(self) -> ImageScanner:
        return ImageScanner(self._decoder)


# =============================================================================
# DEPENDENCY PROVIDERS
# =============================================================================

def get_video_capture(settings: Settings = Depends(get_settings)) -> VideoCapture:
    """Capture capability for the local cameras."""
    return OpenCVVideoCapture(
        default_index=settings.camera_index,
        max_probe=settings.camera_max_probe
    )


@lru_cache(maxsize=1)
def get_decoder() -> DecodeAdapter:
    """
    Shared pyzbar-backed decode adapter.

    Raises:
        AppException: DECODER_UNAVAILABLE when zbar cannot be loaded
    """
    adapter = DecodeAdapter(PyzbarDecoder())
    logger.info("Barcode decoder ready (pyzbar)")
    return adapter


def get_scanner_factory(
    settings: Settings = Depends(get_settings),
    capture: VideoCapture = Depends(get_video_capture),
    decoder: DecodeAdapter = Depends(get_decoder)
) -> ScannerFactory:
    """Factory for scanner sessions bound to the current settings."""
    return ScannerFactory(settings, capture, decoder)
