"""
==============================================================================
OpenCV Capture Module
==============================================================================

Capture capability backed by ``cv2.VideoCapture``.

Device Enumeration:
-------------------
- Linux: ``/sys/class/video4linux/video*/name`` provides index and label
- Elsewhere: indices 0..max_probe-1 are opened and kept if they respond

Facing constraints are resolved against the label heuristic since OpenCV
has no notion of camera orientation. Each stream runs a reader thread
that keeps only the latest frame, so ``read_frame`` never blocks.

==============================================================================
"""

from __future__ import annotations

import logging
import os
import re
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional

import cv2
import numpy as np

from posscan.core import exceptions
from .camera import MediaTrack, VideoCapture, VideoStream, facing_from_label
from .models import CameraDevice, FacingMode, StreamConstraints


# Module logger
logger = logging.getLogger(__name__)


SYSFS_VIDEO_ROOT = Path("/sys/class/video4linux")
DEV_ROOT = Path("/dev")

_INDEX_PATTERN = re.compile(r"video(\d+)$")


class OpenCVTrack(MediaTrack):
    """
    Reader thread plus device handle of one stream.

    The device is released exactly once, and never while the reader thread
    may still be inside ``cap.read()``: when the thread outlives the join
    timeout it releases the device itself on exit.
    """

    JOIN_TIMEOUT = 2.0

    def __init__(self, cap: Any, label: str) -> None:
        self._cap = cap
        self.label = label
        self._frame: Optional[np.ndarray] = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._reader_done = False
        self._orphaned = False
        self._released = False
        self._thread = threading.Thread(
            target=self._reader_loop,
            name=f"camera-reader[{label}]",
            daemon=True
        )

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    @property
    def released(self) -> bool:
        return self._released

    def start(self) -> None:
        self._thread.start()

    def latest(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._frame

    def _reader_loop(self) -> None:
        logger.debug(f"Reader thread started for {self.label}")
        try:
            while not self._stop_event.is_set():
                ok, frame = self._cap.read()
                if not ok or frame is None or frame.size == 0:
                    # Device still warming up or momentarily starved
                    self._stop_event.wait(0.01)
                    continue

                rgba = cv2.cvtColor(frame, cv2.COLOR_BGR2RGBA)
                with self._lock:
                    self._frame = rgba
        finally:
            with self._lock:
                self._reader_done = True
                release_here = self._orphaned
            if release_here:
                self._release()
            logger.debug(f"Reader thread finished for {self.label}")

    def _release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        self._cap.release()

    def stop(self) -> None:
        if self._stop_event.is_set():
            return
        self._stop_event.set()

        if self._thread.ident is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.JOIN_TIMEOUT)

        with self._lock:
            self._frame = None
            reader_gone = self._reader_done or self._thread.ident is None
            if not reader_gone:
                self._orphaned = True

        if reader_gone:
            self._release()
        else:
            logger.warning(f"Reader thread for {self.label} still busy, deferring release")


class OpenCVStream(VideoStream):
    """Stream over a single OpenCV device."""

    def __init__(self, cap: Any, label: str) -> None:
        self._track = OpenCVTrack(cap, label)
        self._track.start()

    @property
    def label(self) -> str:
        return self._track.label

    def get_tracks(self) -> List[MediaTrack]:
        return [self._track]

    def read_frame(self) -> Optional[np.ndarray]:
        if self._track.stopped:
            return None
        frame = self._track.latest()
        if frame is None or frame.shape[0] == 0 or frame.shape[1] == 0:
            return None
        return frame


class OpenCVVideoCapture(VideoCapture):
    """
    Capture capability for local cameras.

    Attributes:
        default_index: Device opened when no constraint selects another
        max_probe: Number of indices probed without sysfs

    Example:
        >>> capture = OpenCVVideoCapture(default_index=0)
        >>> capture.enumerate_devices()
        [CameraDevice(device_id='0', label='HD Webcam', facing=<FacingMode.UNKNOWN: 'unknown'>)]
    """

    def __init__(
        self,
        default_index: int = 0,
        max_probe: int = 4,
        opener: Callable[[int], Any] = cv2.VideoCapture,
        sysfs_root: Path = SYSFS_VIDEO_ROOT,
        dev_root: Path = DEV_ROOT
    ) -> None:
        self.default_index = default_index
        self.max_probe = max_probe
        self._opener = opener
        self._sysfs_root = sysfs_root
        self._dev_root = dev_root

    # =========================================================================
    # ENUMERATION
    # =========================================================================

    def enumerate_devices(self) -> List[CameraDevice]:
        devices = self._list_sysfs_devices()
        if devices:
            return devices
        return self._probe_devices()

    def _list_sysfs_devices(self) -> List[CameraDevice]:
        if not self._sysfs_root.is_dir():
            return []

        found = []
        for entry in self._sysfs_root.glob("video*"):
            match = _INDEX_PATTERN.search(entry.name)
            if not match:
                continue
            try:
                label = (entry / "name").read_text(encoding="utf-8").strip()
            except OSError:
                label = ""
            found.append((int(match.group(1)), label or entry.name))

        return [
            CameraDevice(device_id=str(index), label=label, facing=facing_from_label(label))
            for index, label in sorted(found)
        ]

    def _probe_devices(self) -> List[CameraDevice]:
        devices = []
        for index in range(self.max_probe):
            cap = self._opener(index)
            try:
                if cap.isOpened():
                    label = f"Camera {index}"
                    devices.append(CameraDevice(
                        device_id=str(index), label=label, facing=FacingMode.UNKNOWN
                    ))
            finally:
                cap.release()
        return devices

    # =========================================================================
    # STREAM ACQUISITION
    # =========================================================================

    def _resolve_index(self, constraints: StreamConstraints) -> int:
        if constraints.device_id is not None:
            try:
                return int(constraints.device_id)
            except ValueError:
                raise exceptions.camera_not_found()

        if constraints.facing_mode is None:
            return self.default_index

        wanted = FacingMode.REAR if constraints.facing_mode == "environment" else FacingMode.FRONT
        for device in self.enumerate_devices():
            if device.facing is wanted:
                return int(device.device_id)

        if constraints.exact:
            raise exceptions.camera_overconstrained(constraints.describe())

        logger.debug(f"No {wanted.value} camera labelled, using default device")
        return self.default_index

    def request_stream(self, constraints: StreamConstraints) -> VideoStream:
        index = self._resolve_index(constraints)

        node = self._dev_root / f"video{index}"
        if node.exists() and not os.access(node, os.R_OK):
            raise exceptions.camera_not_allowed()

        cap = self._opener(index)
        if not cap.isOpened():
            cap.release()
            raise exceptions.camera_not_readable(str(index))

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height)

        logger.info(f"📷 Opened camera {index} ({constraints.describe()})")
        return OpenCVStream(cap, label=str(index))
