"""Debug sinks receiving the processed region of interest."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import cv2
import numpy as np


logger = logging.getLogger(__name__)


DebugSink = Callable[[np.ndarray], None]


class FileDebugSink:
    """Overwrites one image file with the latest processed ROI."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def __call__(self, roi: np.ndarray) -> None:
        if roi.size == 0:
            return
        image = cv2.cvtColor(roi, cv2.COLOR_RGBA2BGRA) if roi.ndim == 3 else roi
        if not cv2.imwrite(str(self.path), image):
            logger.warning(f"Could not write debug ROI to {self.path}")
