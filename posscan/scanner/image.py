"""
==============================================================================
Still Image Scanner Module
==============================================================================

Decodes a barcode from a still image (file or encoded bytes).

Unlike the live loop there is no ROI, no preprocessing and no debouncing:
the whole image is handed to the decoder and the first candidate is
returned together with its validation outcome.

==============================================================================
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NamedTuple, Optional

import cv2
import numpy as np

from posscan.core import exceptions
from .decoder import DecodeAdapter
from .models import ValidationOutcome
from .validator import JANCodeValidator


# Module logger
logger = logging.getLogger(__name__)


class ImageScanResult(NamedTuple):
    """Decoded text of a still image and its validation."""
    text: Optional[str]
    outcome: Optional[ValidationOutcome]

    @property
    def found(self) -> bool:
        return self.text is not None


class ImageScanner:
    """
    Still image barcode scanner.

    Example:
        >>> scanner = ImageScanner(DecodeAdapter(PyzbarDecoder()))
        >>> result = await scanner.scan_file(Path("label.png"))
        >>> result.text
        '4901234567894'
    """

    def __init__(
        self,
        decoder: DecodeAdapter,
        validator: Optional[JANCodeValidator] = None
    ) -> None:
        self._decoder = decoder
        self._validator = validator or JANCodeValidator()

    @staticmethod
    def load_bytes(data: bytes) -> np.ndarray:
        """
        Decode encoded image bytes (PNG, JPEG, ...) into an RGBA frame.

        Raises:
            AppException: INVALID_IMAGE when the bytes are not an image
        """
        if not data:
            raise exceptions.invalid_image("empty image")

        buffer = np.frombuffer(data, np.uint8)
        frame = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if frame is None:
            raise exceptions.invalid_image("unsupported or corrupt image data")

        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGBA)

    async def scan_frame(self, frame: np.ndarray) -> ImageScanResult:
        """Decode an RGBA frame and validate the first candidate."""
        candidates = await self._decoder.decode(frame)
        if not candidates:
            logger.info("No barcode found in image")
            return ImageScanResult(text=None, outcome=None)

        text = candidates[0].text.strip()
        outcome = self._validator.validate(text)
        logger.info(f"Image scan: {text!r} ({outcome.status.value})")
        return ImageScanResult(text=text, outcome=outcome)

    async def scan_bytes(self, data: bytes) -> ImageScanResult:
        """Scan encoded image bytes."""
        return await self.scan_frame(self.load_bytes(data))

    async def scan_file(self, path: Path) -> ImageScanResult:
        """
        Scan an image file.

        Raises:
            AppException: INVALID_IMAGE when the file is missing or unreadable
        """
        path = Path(path)
        if not path.is_file():
            raise exceptions.invalid_image(f"file not found: {path}")

        return await self.scan_bytes(path.read_bytes())
