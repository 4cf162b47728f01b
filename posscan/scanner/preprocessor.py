"""
==============================================================================
Image Preprocessor Module
==============================================================================

Frame preparation ahead of barcode decoding.

Pipeline:
---------
1. Optional centered digital zoom (crop, then resize back)
2. Region of interest: horizontal band across the middle of the frame
3. Luminance + linear contrast stretch around 128
4. 3x3 sharpen, border pixels keep the contrast-only value

Frames are RGBA ``uint8`` arrays of shape (height, width, 4). Inputs are
never modified.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import NamedTuple

import cv2
import numpy as np


# Module logger
logger = logging.getLogger(__name__)


# ITU-R BT.601 luma weights
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)

SHARPEN_KERNEL = np.array(
    [[0, -1, 0],
     [-1, 5, -1],
     [0, -1, 0]],
    dtype=np.float32
)


class RegionOfInterest(NamedTuple):
    """Sub-rectangle of a frame, expressed as fractions of its size."""
    x: float
    y: float
    width: float
    height: float

    def bounds(self, frame_width: int, frame_height: int):
        """Pixel rectangle (x, y, w, h) for a frame of the given size."""
        return (
            int(frame_width * self.x),
            int(frame_height * self.y),
            int(frame_width * self.width),
            int(frame_height * self.height),
        )


# Band 80% wide, 30% tall, starting 35% down the frame
DEFAULT_ROI = RegionOfInterest(x=0.1, y=0.35, width=0.8, height=0.3)


def apply_zoom(frame: np.ndarray, zoom: float) -> np.ndarray:
    """
    Crop the centered 1/zoom portion of a frame and stretch it back.

    Args:
        frame: RGBA frame
        zoom: Zoom factor, 1.0 returns a copy of the frame

    Returns:
        New frame with the input's dimensions
    """
    height, width = frame.shape[:2]
    if zoom <= 1.0 or width == 0 or height == 0:
        return frame.copy()

    crop_w = max(1, int(round(width / zoom)))
    crop_h = max(1, int(round(height / zoom)))
    x0 = (width - crop_w) // 2
    y0 = (height - crop_h) // 2

    cropped = frame[y0:y0 + crop_h, x0:x0 + crop_w]
    return cv2.resize(cropped, (width, height), interpolation=cv2.INTER_LINEAR)


def extract_roi(frame: np.ndarray, roi: RegionOfInterest = DEFAULT_ROI) -> np.ndarray:
    """Copy the ROI band out of a frame."""
    height, width = frame.shape[:2]
    x, y, w, h = roi.bounds(width, height)
    return frame[y:y + h, x:x + w].copy()


def enhance_contrast(frame: np.ndarray, factor: float) -> np.ndarray:
    """
    Convert to luminance and stretch contrast around midpoint 128.

    The result is grayscale replicated into R, G and B with the input
    alpha preserved, rounded to 8 bits.
    """
    luminance = frame[..., :3].astype(np.float64) @ LUMA_WEIGHTS
    enhanced = np.clip(factor * (luminance - 128.0) + 128.0, 0, 255)
    gray = np.rint(enhanced).astype(np.uint8)

    out = np.empty_like(frame)
    out[..., 0] = gray
    out[..., 1] = gray
    out[..., 2] = gray
    out[..., 3] = frame[..., 3]
    return out


def sharpen(frame: np.ndarray) -> np.ndarray:
    """
    Apply the 3x3 sharpen kernel to the interior of a grayscale RGBA frame.

    The one pixel border and the alpha channel are left untouched.
    """
    out = frame.copy()
    height, width = frame.shape[:2]
    if height < 3 or width < 3:
        return out

    gray = frame[..., 0].astype(np.float32)
    filtered = cv2.filter2D(gray, -1, SHARPEN_KERNEL, borderType=cv2.BORDER_REPLICATE)
    interior = np.clip(filtered[1:-1, 1:-1], 0, 255).astype(np.uint8)

    for channel in range(3):
        out[1:-1, 1:-1, channel] = interior
    return out


class ImagePreprocessor:
    """
    Prepares camera frames for decoding.

    Attributes:
        contrast_factor: Linear contrast factor (1.5 by default)
        zoom: Centered zoom applied before ROI extraction (1.0 = off)
        enabled: When False only zoom and ROI extraction are applied
        roi: Fixed region of interest

    Example:
        >>> preprocessor = ImagePreprocessor()
        >>> roi = preprocessor.preprocess(frame)
    """

    def __init__(
        self,
        contrast_factor: float = 1.5,
        zoom: float = 1.0,
        enabled: bool = True,
        roi: RegionOfInterest = DEFAULT_ROI
    ) -> None:
        self.contrast_factor = contrast_factor
        self.zoom = zoom
        self.enabled = enabled
        self.roi = roi

        logger.debug(
            f"Preprocessor created (contrast={contrast_factor}, zoom={zoom}, enabled={enabled})"
        )

    def enhance(self, frame: np.ndarray) -> np.ndarray:
        """Contrast stretch then sharpen a frame (no cropping)."""
        if not self.enabled:
            return frame.copy()
        return sharpen(enhance_contrast(frame, self.contrast_factor))

    def preprocess(self, frame: np.ndarray) -> np.ndarray:
        """
        Run the full pipeline on a captured frame.

        Args:
            frame: RGBA frame straight from the camera

        Returns:
            Processed ROI, a new array
        """
        zoomed = apply_zoom(frame, self.zoom)
        return self.enhance(extract_roi(zoomed, self.roi))
