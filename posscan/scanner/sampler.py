"""
==============================================================================
Frame Sampler Module
==============================================================================

The live scan loop.

Each tick:
----------
1. Stop scheduling once the sampler is no longer running
2. Skip while a decode is still in flight (``busy``)
3. Skip while the camera has no frame ready
4. Preprocess -> decode -> validate -> debounce -> callback
5. Log and swallow any failure of steps 3-4
6. Clear ``busy`` and schedule the next tick

Ticks are driven by the asyncio event loop (``call_later``) and never
overlap; the only suspension point is the decode call.

==============================================================================
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Optional

import numpy as np

from posscan.core.exceptions import AppException
from .camera import CameraSession
from .debouncer import ResultDebouncer
from .debug import DebugSink
from .decoder import DecodeAdapter
from .models import ValidationStatus
from .preprocessor import ImagePreprocessor
from .validator import JANCodeValidator


# Module logger
logger = logging.getLogger(__name__)


Callback = Callable[[str], Any]


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class FrameSampler:
    """
    Orchestrates one scanning instance.

    Owns the CameraSession/DebounceWindow pair for its lifetime and allows
    at most one decode in flight.

    Attributes:
        running: Session-level flag, cleared by stop()
        busy: Per-tick gate, set while a frame is being decoded

    Example:
        >>> sampler = FrameSampler(session, DecodeAdapter(PyzbarDecoder()),
        ...                        on_scan=print, on_error=print)
        >>> await sampler.start()
        >>> ...
        >>> sampler.stop()
    """

    def __init__(
        self,
        camera: CameraSession,
        decoder: DecodeAdapter,
        on_scan: Callback,
        on_error: Optional[Callback] = None,
        preprocessor: Optional[ImagePreprocessor] = None,
        validator: Optional[JANCodeValidator] = None,
        debouncer: Optional[ResultDebouncer] = None,
        debug_sink: Optional[DebugSink] = None,
        frame_interval: float = 1 / 30,
        clock: Callable[[], float] = monotonic_ms
    ) -> None:
        """
        Initialize sampler.

        Args:
            camera: Session negotiated on start() and released on stop()
            decoder: Adapter over the decode capability
            on_scan: Called with each accepted code
            on_error: Called with user-facing messages
            preprocessor: Frame preparation (defaults to ImagePreprocessor())
            validator: Code validation (defaults to JANCodeValidator())
            debouncer: Emission gate (defaults to a 1000ms window)
            debug_sink: Receives the processed ROI each tick
            frame_interval: Seconds between ticks
            clock: Millisecond clock used for debouncing
        """
        self._camera = camera
        self._decoder = decoder
        self._on_scan = on_scan
        self._on_error = on_error
        self._preprocessor = preprocessor or ImagePreprocessor()
        self._validator = validator or JANCodeValidator()
        self._debouncer = debouncer or ResultDebouncer()
        self._debug_sink = debug_sink
        self._frame_interval = frame_interval
        self._clock = clock

        self.running = False
        self.busy = False
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        # Bumped by stop(); a start() that sees it change has been cancelled
        self._generation = 0

    @property
    def camera(self) -> CameraSession:
        return self._camera

    @property
    def debug_sink(self) -> Optional[DebugSink]:
        return self._debug_sink

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> bool:
        """
        Negotiate the camera and begin sampling.

        A stop() issued while the camera is still negotiating wins: the
        camera is released and no tick is ever scheduled.

        Returns:
            False when the camera could not be acquired (on_error has then
            been called once) or when stopped during negotiation
        """
        if self.running:
            return True

        self._loop = asyncio.get_running_loop()
        self._debouncer.reset()
        self.busy = False
        generation = self._generation

        try:
            await self._loop.run_in_executor(None, self._camera.start)
        except AppException as e:
            self._camera.stop()
            if generation != self._generation:
                logger.info("Scanner stopped during camera negotiation")
                return False
            logger.error(f"❌ Scanner not started: {e.message}")
            await self._notify(self._on_error, e.message)
            return False

        if generation != self._generation:
            logger.info("Scanner stopped during camera negotiation")
            self._camera.stop()
            return False

        self.running = True
        logger.info("🚀 Scan loop started")
        self._schedule()
        return True

    def stop(self) -> None:
        """
        Stop sampling and release the camera.

        Safe to call repeatedly, and before start() has finished. A decode
        already in flight completes but its result is discarded.
        """
        was_running = self.running
        self.running = False
        self._generation += 1

        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

        self._camera.stop()

        if was_running:
            logger.info("🛑 Scan loop stopped")

    async def __aenter__(self) -> "FrameSampler":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    def _schedule(self) -> None:
        if not self.running or self._loop is None:
            return
        self._handle = self._loop.call_later(self._frame_interval, self._on_frame)

    def _on_frame(self) -> None:
        self._handle = None
        if not self.running:
            return
        if self.busy:
            self._schedule()
            return
        self._task = self._loop.create_task(self._run_tick())

    async def _run_tick(self) -> None:
        try:
            await self.tick()
        finally:
            self._schedule()

    # =========================================================================
    # TICK
    # =========================================================================

    async def tick(self) -> bool:
        """
        Run one sampling pass.

        Returns:
            True when a frame was decoded during this pass
        """
        if not self.running or self.busy:
            return False

        self.busy = True
        try:
            frame = self._camera.read_frame()
            if frame is None or frame.size == 0:
                return False

            await self._process(frame)
            return True

        except Exception as e:
            logger.error(f"Scan tick failed: {e}", exc_info=True)
            return True

        finally:
            self.busy = False

    async def _process(self, frame: np.ndarray) -> None:
        roi = self._preprocessor.preprocess(frame)
        self._publish_debug(roi)

        candidates = await self._decoder.decode(roi)

        if not self.running:
            logger.debug("Discarding decode result after stop")
            return

        if not candidates:
            return

        text = candidates[0].text.strip()
        if not text:
            return

        outcome = self._validator.validate(text)

        if outcome.status is ValidationStatus.VALID:
            if self._debouncer.should_emit(outcome.code, self._clock()):
                logger.info(f"✅ Scanned: {outcome.code}")
                await self._notify(self._on_scan, outcome.code)
            return

        message = self._validator.error_message(outcome)
        logger.debug(f"Rejected {text!r}: {outcome.status.value}")
        await self._notify(self._on_error, message)

    def _publish_debug(self, roi: np.ndarray) -> None:
        if self._debug_sink is None:
            return
        try:
            self._debug_sink(roi)
        except Exception as e:
            logger.warning(f"Debug sink failed: {e}")

    @staticmethod
    async def _notify(callback: Optional[Callback], value: str) -> None:
        if callback is None:
            return
        try:
            result = callback(value)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Scanner callback failed: {e}", exc_info=True)
