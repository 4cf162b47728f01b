"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides fake capture/decode capabilities, sample frames and an API
client wired to the fakes.

==============================================================================
"""

import asyncio
import threading
from typing import Dict, Generator, List, Optional

import numpy as np
import pytest
from fastapi.testclient import TestClient

from posscan.config import get_settings
from posscan.core import exceptions
from posscan.core.dependencies import get_decoder, get_video_capture
from posscan.main import app
from posscan.scanner import (
    CameraDevice,
    DecodeAdapter,
    MediaTrack,
    StreamConstraints,
    VideoCapture,
    VideoStream,
)


VALID_EAN13 = "4901234567894"
VALID_EAN8 = "49123452"


# ============================================================================
# FAKE CAPTURE CAPABILITY
# ============================================================================

class FakeTrack(MediaTrack):
    """Track counting its releases."""

    def __init__(self, fail: bool = False):
        self.stop_calls = 0
        self._fail = fail

    def stop(self) -> None:
        self.stop_calls += 1
        if self._fail:
            raise RuntimeError("device busy")


class FakeStream(VideoStream):
    """Stream serving a fixed frame (or nothing)."""

    def __init__(self, frame: Optional[np.ndarray] = None, tracks: Optional[List[FakeTrack]] = None):
        self.frame = frame
        self.tracks = tracks if tracks is not None else [FakeTrack()]

    def get_tracks(self) -> List[MediaTrack]:
        return list(self.tracks)

    def read_frame(self) -> Optional[np.ndarray]:
        return self.frame


def constraint_kind(constraints: StreamConstraints) -> str:
    """Map constraints back to the negotiation strategy that produced them."""
    if constraints.device_id is not None:
        return "device"
    if constraints.facing_mode is None:
        return "default"
    return "exact" if constraints.exact else "ideal"


class FakeCapture(VideoCapture):
    """
    Scriptable capture capability.

    ``accept`` lists the constraint kinds ("exact", "ideal", "device",
    "default") that succeed; every other request is rejected.
    """

    def __init__(
        self,
        accept=("exact",),
        devices: Optional[List[CameraDevice]] = None,
        frame: Optional[np.ndarray] = None
    ):
        self.accept = set(accept)
        self.devices = devices or []
        self.frame = frame
        self.requests: List[StreamConstraints] = []
        self.enumerate_calls = 0
        self.streams: List[FakeStream] = []

    @property
    def request_kinds(self) -> List[str]:
        return [constraint_kind(c) for c in self.requests]

    def request_stream(self, constraints: StreamConstraints) -> VideoStream:
        self.requests.append(constraints)
        kind = constraint_kind(constraints)
        if kind not in self.accept:
            if kind == "exact":
                raise exceptions.camera_overconstrained(constraints.describe())
            raise exceptions.camera_not_readable(constraints.describe())

        stream = FakeStream(self.frame)
        self.streams.append(stream)
        return stream

    def enumerate_devices(self) -> List[CameraDevice]:
        self.enumerate_calls += 1
        return list(self.devices)


class GatedCapture(FakeCapture):
    """
    Capture whose requests block until ``proceed`` is set.

    ``entered`` is set as soon as negotiation reaches the capability, so a
    test can stop the session while it is provably mid-negotiation.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.entered = threading.Event()
        self.proceed = threading.Event()

    def request_stream(self, constraints: StreamConstraints) -> VideoStream:
        self.entered.set()
        self.proceed.wait(timeout=5.0)
        return super().request_stream(constraints)


# ============================================================================
# FAKE DECODE CAPABILITY
# ============================================================================

class FakeDecoder:
    """Decode capability returning scripted payloads and recording calls."""

    def __init__(self, payloads=None, delay: float = 0.0, error: Optional[Exception] = None):
        self.payloads = list(payloads or [])
        self.delay = delay
        self.error = error
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.shapes = []

    async def __call__(self, pixels: np.ndarray, width: int, height: int):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.shapes.append((height, width))
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return [{"payload": p} for p in self.payloads]
        finally:
            self.active -= 1


# ============================================================================
# FRAME FIXTURES
# ============================================================================

def make_frame(width: int = 160, height: int = 120, value: int = 100) -> np.ndarray:
    """Uniform opaque RGBA frame."""
    frame = np.full((height, width, 4), value, dtype=np.uint8)
    frame[..., 3] = 255
    return frame


@pytest.fixture
def frame() -> np.ndarray:
    return make_frame()


@pytest.fixture
def fake_capture(frame: np.ndarray) -> FakeCapture:
    return FakeCapture(accept=("exact",), frame=frame)


@pytest.fixture
def fake_decoder() -> FakeDecoder:
    return FakeDecoder(payloads=[VALID_EAN13])


# ============================================================================
# API CLIENT FIXTURES
# ============================================================================

@pytest.fixture
def client(fake_capture: FakeCapture, fake_decoder: FakeDecoder) -> Generator[TestClient, None, None]:
    """Test client with capture and decode capabilities replaced by fakes."""
    app.dependency_overrides[get_video_capture] = lambda: fake_capture
    app.dependency_overrides[get_decoder] = lambda: DecodeAdapter(fake_decoder)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def fast_settings(monkeypatch) -> Generator[None, None, None]:
    """Short frame interval for live session tests."""
    settings = get_settings()
    monkeypatch.setattr(settings, "frame_interval_ms", 5)
    monkeypatch.setattr(settings, "debug_roi_path", None)
    yield


def event_types(events: List[Dict]) -> List[str]:
    return [e["type"] for e in events]
