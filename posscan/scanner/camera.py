"""
==============================================================================
Camera Session Module
==============================================================================

Device negotiation and stream ownership for one scanning instance.

States:
-------
IDLE -> NEGOTIATING -> ACTIVE -> STOPPED
              |
              +-> ERROR

Negotiation Chain (first success wins):
--------------------------------------
1. exact-rear:     required rear-facing constraint
2. preferred-rear: rear-facing as a preference only
3. enumerated:     pick a device from enumeration by label heuristic
4. default:        no facing constraint at all

==============================================================================
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

import numpy as np

from posscan.core import exceptions
from posscan.core.exceptions import AppException
from .models import CameraDevice, CameraState, FacingMode, StreamConstraints


# Module logger
logger = logging.getLogger(__name__)


REAR_TERMS = (
    "back", "rear", "environment",
    "背面", "リア", "後",
    "arrière", "trasera", "posterior",
    "hinten", "rück",
)

FRONT_TERMS = (
    "front", "user", "facetime",
    "前面", "フロント",
    "avant", "frontal", "vorne",
)


def is_rear_facing(label: str) -> bool:
    """Check a device label against the rear camera vocabulary."""
    lowered = (label or "").lower()
    return any(term in lowered for term in REAR_TERMS)


def facing_from_label(label: str) -> FacingMode:
    """Derive a facing hint from a device label."""
    if is_rear_facing(label):
        return FacingMode.REAR
    lowered = (label or "").lower()
    if any(term in lowered for term in FRONT_TERMS):
        return FacingMode.FRONT
    return FacingMode.UNKNOWN


def select_rear_device(devices: Sequence[CameraDevice]) -> Optional[CameraDevice]:
    """
    Pick the most likely rear camera.

    A label match wins; otherwise the last enumerated device, which on
    phones and tablets is usually the rear one.
    """
    if not devices:
        return None
    for device in devices:
        if is_rear_facing(device.label):
            return device
    return devices[-1]


# =============================================================================
# CAPTURE CAPABILITY CONTRACT
# =============================================================================

class MediaTrack(ABC):
    """Hardware track of a stream; stopping it releases the device."""

    @abstractmethod
    def stop(self) -> None:
        ...


class VideoStream(ABC):
    """Live video stream acquired from a capture capability."""

    @abstractmethod
    def get_tracks(self) -> List[MediaTrack]:
        ...

    @abstractmethod
    def read_frame(self) -> Optional[np.ndarray]:
        """Current RGBA frame, or None while no frame is ready."""
        ...


class VideoCapture(ABC):
    """Host capability for acquiring camera streams."""

    @abstractmethod
    def request_stream(self, constraints: StreamConstraints) -> VideoStream:
        """
        Acquire a stream matching the constraints.

        Raises:
            AppException: With a CAMERA_* code when acquisition fails
        """
        ...

    @abstractmethod
    def enumerate_devices(self) -> List[CameraDevice]:
        ...


# =============================================================================
# NEGOTIATION STRATEGIES
# =============================================================================

class Strategy(NamedTuple):
    """Named acquisition attempt."""
    name: str
    attempt: Callable[[VideoCapture], VideoStream]


def _exact_rear(capture: VideoCapture, width: int, height: int) -> VideoStream:
    return capture.request_stream(StreamConstraints(
        facing_mode="environment", exact=True, width=width, height=height
    ))


def _preferred_rear(capture: VideoCapture, width: int, height: int) -> VideoStream:
    return capture.request_stream(StreamConstraints(
        facing_mode="environment", exact=False, width=width, height=height
    ))


def _enumerated(capture: VideoCapture, width: int, height: int) -> VideoStream:
    devices = capture.enumerate_devices()
    logger.debug(f"Enumerated {len(devices)} camera(s): {[d.label for d in devices]}")

    device = select_rear_device(devices)
    if device is None:
        raise exceptions.camera_not_found()

    logger.info(f"Selected camera by enumeration: {device.label or device.device_id}")
    return capture.request_stream(StreamConstraints(
        device_id=device.device_id, width=width, height=height
    ))


def _default(capture: VideoCapture, width: int, height: int) -> VideoStream:
    return capture.request_stream(StreamConstraints(width=width, height=height))


def build_strategies(width: int = 1920, height: int = 1080) -> List[Strategy]:
    """The ordered negotiation chain for the given ideal resolution."""
    return [
        Strategy("exact-rear", lambda c: _exact_rear(c, width, height)),
        Strategy("preferred-rear", lambda c: _preferred_rear(c, width, height)),
        Strategy("enumerated", lambda c: _enumerated(c, width, height)),
        Strategy("default", lambda c: _default(c, width, height)),
    ]


def first_success(capture: VideoCapture, strategies: Sequence[Strategy]):
    """
    Try strategies in order and return the first acquired stream.

    Camera errors raised by a strategy get its name under
    ``details["strategy"]`` unless the raiser already set one.

    Returns:
        Tuple of (strategy name, stream, failures). Name and stream are
        None when every strategy failed; failures maps each failed
        strategy name to its error code or message.
    """
    failures: Dict[str, str] = {}

    for strategy in strategies:
        try:
            stream = strategy.attempt(capture)
        except AppException as e:
            if e.is_camera_error:
                e.details.setdefault("strategy", strategy.name)
            logger.warning(f"Camera strategy '{strategy.name}' failed: [{e.code}] {e.message}")
            failures[strategy.name] = e.code
            continue
        except Exception as e:
            logger.warning(f"Camera strategy '{strategy.name}' failed: {e}")
            failures[strategy.name] = str(e) or type(e).__name__
            continue

        return strategy.name, stream, failures

    return None, None, failures


# =============================================================================
# CAMERA SESSION
# =============================================================================

class CameraSession:
    """
    Exclusive owner of one camera stream.

    Attributes:
        state: Current CameraState
        strategy: Name of the strategy that acquired the stream
        error: Failure raised when negotiation was exhausted

    Example:
        >>> session = CameraSession(OpenCVVideoCapture())
        >>> session.start()
        >>> frame = session.read_frame()
        >>> session.stop()
    """

    def __init__(
        self,
        capture: VideoCapture,
        strategies: Optional[Sequence[Strategy]] = None,
        width: int = 1920,
        height: int = 1080
    ) -> None:
        """
        Initialize session in the IDLE state.

        Args:
            capture: Host capture capability
            strategies: Negotiation chain override
            width: Ideal frame width
            height: Ideal frame height
        """
        self._capture = capture
        self._strategies = list(strategies) if strategies is not None else build_strategies(width, height)
        self._stream: Optional[VideoStream] = None
        # _lock guards state only; _negotiation_lock serialises start()
        self._lock = threading.Lock()
        self._negotiation_lock = threading.Lock()
        self._cancelled = False
        self.state = CameraState.IDLE
        self.strategy: Optional[str] = None
        self.error: Optional[AppException] = None

    @property
    def is_active(self) -> bool:
        return self.state is CameraState.ACTIVE

    @property
    def stream(self) -> Optional[VideoStream]:
        return self._stream

    def start(self) -> Optional[VideoStream]:
        """
        Negotiate a stream through the fallback chain.

        The chain runs without holding the session lock, so stop() never
        waits on negotiation. A stop() arriving mid-negotiation cancels it:
        any stream acquired afterwards is released and None is returned.

        Returns:
            The acquired stream, or None when stopped during negotiation

        Raises:
            AppException: CAMERA_UNAVAILABLE when every strategy failed
        """
        with self._negotiation_lock:
            with self._lock:
                if self.state is CameraState.ACTIVE and self._stream is not None:
                    return self._stream

                self.state = CameraState.NEGOTIATING
                self.error = None
                self._cancelled = False

            logger.info("📷 Negotiating camera stream")
            name, stream, failures = first_success(self._capture, self._strategies)

            with self._lock:
                cancelled = self._cancelled
                if not cancelled:
                    if stream is None:
                        self.state = CameraState.ERROR
                        self.error = exceptions.camera_unavailable(failures)
                    else:
                        self._stream = stream
                        self.strategy = name
                        self.state = CameraState.ACTIVE

            if cancelled:
                logger.info("Camera negotiation cancelled by stop()")
                if stream is not None:
                    self._release(stream)
                return None

            if stream is None:
                logger.error(f"❌ All camera strategies failed: {failures}")
                raise self.error

            logger.info(f"✅ Camera active via '{name}'")
            return stream

    def read_frame(self) -> Optional[np.ndarray]:
        """Current frame of the live stream, None when inactive or not ready."""
        stream = self._stream
        if stream is None or self.state is not CameraState.ACTIVE:
            return None
        return stream.read_frame()

    def stop(self) -> None:
        """
        Release every track of the stream.

        Idempotent and never waits for a negotiation in progress; release
        failures are logged and never propagate.
        """
        with self._lock:
            stream, self._stream = self._stream, None

            if self.state is CameraState.NEGOTIATING:
                self._cancelled = True

            if self.state is not CameraState.ERROR:
                self.state = CameraState.STOPPED

        if stream is not None:
            self._release(stream)

    @staticmethod
    def _release(stream: VideoStream) -> None:
        try:
            tracks = stream.get_tracks()
        except Exception as e:
            logger.warning(f"Could not list stream tracks: {e}")
            return

        for track in tracks:
            try:
                track.stop()
            except Exception as e:
                logger.warning(f"Track release failed: {e}")

        logger.info("🛑 Camera released")

    def __enter__(self) -> "CameraSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
