"""
==============================================================================
Frame Sampler Tests
==============================================================================

Tests for the live scan loop: validation, debouncing, overlap protection,
failure containment and shutdown.

==============================================================================
"""

import asyncio
import time

import pytest

from posscan.core.exceptions import (
    CAMERA_UNAVAILABLE_MESSAGE,
    INVALID_CHECKSUM_MESSAGE,
    INVALID_FORMAT_MESSAGE,
)
from posscan.scanner import (
    CameraSession,
    CameraState,
    DecodeAdapter,
    FrameSampler,
    ResultDebouncer,
)

from conftest import VALID_EAN13, FakeCapture, FakeDecoder, GatedCapture, make_frame


# Long enough that the scheduled tick never fires during manual-tick tests
IDLE_INTERVAL = 60.0


class Recorder:
    """Collects callback values."""

    def __init__(self):
        self.values = []

    def __call__(self, value):
        self.values.append(value)


def build(capture=None, decoder=None, frame_interval=IDLE_INTERVAL, clock=None, **kwargs):
    capture = capture or FakeCapture(accept=("exact",), frame=make_frame())
    decoder = decoder or FakeDecoder(payloads=[VALID_EAN13])
    scans, errors = Recorder(), Recorder()
    now = [0.0]

    sampler = FrameSampler(
        camera=CameraSession(capture),
        decoder=DecodeAdapter(decoder),
        on_scan=scans,
        on_error=errors,
        frame_interval=frame_interval,
        clock=clock or (lambda: now[0]),
        **kwargs
    )
    return sampler, capture, decoder, scans, errors, now


class TestScanResults:
    """Tests for what a tick emits."""

    @pytest.mark.asyncio
    async def test_valid_code_emitted_once_per_window(self):
        """A code held steady is emitted once within the window."""
        sampler, _, _, scans, errors, now = build()
        assert await sampler.start()

        for t in (0, 100, 500, 999):
            now[0] = t
            assert await sampler.tick()
        assert scans.values == [VALID_EAN13]

        now[0] = 1000
        await sampler.tick()
        assert scans.values == [VALID_EAN13, VALID_EAN13]
        assert errors.values == []
        sampler.stop()

    @pytest.mark.asyncio
    async def test_invalid_format(self):
        """Wrong shaped codes report the format message."""
        sampler, _, _, scans, errors, _ = build(decoder=FakeDecoder(payloads=["12345"]))
        await sampler.start()
        await sampler.tick()

        assert scans.values == []
        assert errors.values == [INVALID_FORMAT_MESSAGE]
        sampler.stop()

    @pytest.mark.asyncio
    async def test_invalid_checksum(self):
        """Wrong check digits report the checksum message."""
        sampler, _, _, scans, errors, _ = build(decoder=FakeDecoder(payloads=["1234567890123"]))
        await sampler.start()
        await sampler.tick()

        assert scans.values == []
        assert errors.values == [INVALID_CHECKSUM_MESSAGE]
        sampler.stop()

    @pytest.mark.asyncio
    async def test_invalid_codes_not_debounced(self):
        """Every rejected frame reports an error."""
        sampler, _, _, _, errors, _ = build(decoder=FakeDecoder(payloads=["12345"]))
        await sampler.start()
        await sampler.tick()
        await sampler.tick()

        assert len(errors.values) == 2
        sampler.stop()

    @pytest.mark.asyncio
    async def test_only_first_candidate_used(self):
        """The first decoded symbol decides the outcome."""
        sampler, _, _, scans, errors, _ = build(decoder=FakeDecoder(payloads=["12345", VALID_EAN13]))
        await sampler.start()
        await sampler.tick()

        assert scans.values == []
        assert errors.values == [INVALID_FORMAT_MESSAGE]
        sampler.stop()

    @pytest.mark.asyncio
    async def test_whitespace_is_trimmed(self):
        """Decoded text is trimmed before validation."""
        sampler, _, _, scans, _, _ = build(decoder=FakeDecoder(payloads=[f" {VALID_EAN13}\n"]))
        await sampler.start()
        await sampler.tick()

        assert scans.values == [VALID_EAN13]
        sampler.stop()

    @pytest.mark.asyncio
    async def test_blank_and_missing_results_ignored(self):
        """No symbol or blank text: no callback at all."""
        for payloads in ([], ["   "]):
            sampler, _, decoder, scans, errors, _ = build(decoder=FakeDecoder(payloads=payloads))
            await sampler.start()
            assert await sampler.tick()
            assert decoder.calls == 1
            assert scans.values == errors.values == []
            sampler.stop()

    @pytest.mark.asyncio
    async def test_decoder_sees_roi(self):
        """The decoder receives the preprocessed band, not the full frame."""
        sink_frames = []
        sampler, _, decoder, _, _, _ = build(debug_sink=sink_frames.append)
        await sampler.start()
        await sampler.tick()

        assert decoder.shapes == [(36, 128)]
        assert sink_frames[0].shape == (36, 128, 4)
        sampler.stop()

    @pytest.mark.asyncio
    async def test_async_callbacks(self):
        """Coroutine callbacks are awaited."""
        received = []

        async def on_scan(code):
            received.append(code)

        sampler = FrameSampler(
            camera=CameraSession(FakeCapture(accept=("exact",), frame=make_frame())),
            decoder=DecodeAdapter(FakeDecoder(payloads=[VALID_EAN13])),
            on_scan=on_scan,
            frame_interval=IDLE_INTERVAL
        )
        await sampler.start()
        await sampler.tick()

        assert received == [VALID_EAN13]
        sampler.stop()


class TestTickGuards:
    """Tests for skipping and containment."""

    @pytest.mark.asyncio
    async def test_no_overlapping_decodes(self):
        """Ticks arriving during a decode are skipped."""
        decoder = FakeDecoder(payloads=[VALID_EAN13], delay=0.05)
        sampler, _, _, _, _, _ = build(decoder=decoder)
        await sampler.start()

        results = await asyncio.gather(sampler.tick(), sampler.tick(), sampler.tick())

        assert results == [True, False, False]
        assert decoder.calls == 1
        assert decoder.max_active == 1
        assert sampler.busy is False
        sampler.stop()

    @pytest.mark.asyncio
    async def test_no_frame_skips_decode(self):
        """A camera without a ready frame is skipped silently."""
        capture = FakeCapture(accept=("exact",), frame=None)
        sampler, _, decoder, _, errors, _ = build(capture=capture)
        await sampler.start()

        assert not await sampler.tick()
        assert decoder.calls == 0
        assert errors.values == []
        sampler.stop()

    @pytest.mark.asyncio
    async def test_decoder_failure_is_contained(self, caplog):
        """A decode exception is logged and the next tick runs normally."""
        decoder = FakeDecoder(payloads=[VALID_EAN13], error=RuntimeError("zbar crashed"))
        sampler, _, _, scans, errors, _ = build(decoder=decoder)
        await sampler.start()

        await sampler.tick()
        assert scans.values == errors.values == []
        assert sampler.busy is False
        assert "Scan tick failed" in caplog.text

        decoder.error = None
        await sampler.tick()
        assert scans.values == [VALID_EAN13]
        sampler.stop()

    @pytest.mark.asyncio
    async def test_callback_failure_is_contained(self, caplog):
        """A raising callback does not break the loop."""
        def on_scan(code):
            raise ValueError("POS offline")

        sampler = FrameSampler(
            camera=CameraSession(FakeCapture(accept=("exact",), frame=make_frame())),
            decoder=DecodeAdapter(FakeDecoder(payloads=[VALID_EAN13])),
            on_scan=on_scan,
            frame_interval=IDLE_INTERVAL
        )
        await sampler.start()
        assert await sampler.tick()
        assert "Scanner callback failed" in caplog.text
        sampler.stop()

    @pytest.mark.asyncio
    async def test_tick_before_start(self):
        """Ticks do nothing until the sampler runs."""
        sampler, _, decoder, _, _, _ = build()
        assert not await sampler.tick()
        assert decoder.calls == 0


class TestLifecycle:
    """Tests for start and stop."""

    @pytest.mark.asyncio
    async def test_camera_failure(self):
        """Unavailable camera: one error, no ticks, not running."""
        sampler, _, decoder, scans, errors, _ = build(capture=FakeCapture(accept=()))

        assert await sampler.start() is False
        assert errors.values == [CAMERA_UNAVAILABLE_MESSAGE]
        assert sampler.running is False
        assert sampler.camera.state is CameraState.ERROR

        assert not await sampler.tick()
        assert decoder.calls == 0
        assert scans.values == []

    @pytest.mark.asyncio
    async def test_result_discarded_after_stop(self):
        """A decode finishing after stop emits nothing."""
        decoder = FakeDecoder(payloads=[VALID_EAN13], delay=0.05)
        sampler, capture, _, scans, errors, _ = build(decoder=decoder)
        await sampler.start()

        pending = asyncio.ensure_future(sampler.tick())
        await asyncio.sleep(0.01)
        sampler.stop()
        await pending

        assert decoder.calls == 1
        assert scans.values == errors.values == []
        assert capture.streams[0].tracks[0].stop_calls == 1

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        """Repeated stops release the camera once."""
        sampler, capture, _, _, _, _ = build()
        await sampler.start()
        sampler.stop()
        sampler.stop()

        assert sampler.running is False
        assert capture.streams[0].tracks[0].stop_calls == 1
        assert sampler.camera.state is CameraState.STOPPED

    @pytest.mark.asyncio
    async def test_scheduled_loop(self):
        """Started samplers tick on their own until stopped."""
        decoder = FakeDecoder(payloads=[VALID_EAN13])
        sampler, _, _, scans, _, _ = build(decoder=decoder, frame_interval=0.005)

        await sampler.start()
        await asyncio.sleep(0.2)
        sampler.stop()
        calls = decoder.calls
        await asyncio.sleep(0.05)

        assert calls > 1
        assert decoder.calls == calls
        assert scans.values == [VALID_EAN13]

    @pytest.mark.asyncio
    async def test_restart_resets_debounce(self):
        """A new start clears the previous emission window."""
        debouncer = ResultDebouncer()
        sampler, capture, _, scans, _, _ = build(debouncer=debouncer)

        await sampler.start()
        await sampler.tick()
        sampler.stop()

        await sampler.start()
        await sampler.tick()
        sampler.stop()

        assert scans.values == [VALID_EAN13, VALID_EAN13]
        assert len(capture.streams) == 2

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        """Leaving the block stops the sampler."""
        sampler, capture, _, _, _, _ = build()
        async with sampler:
            assert sampler.running
        assert not sampler.running
        assert capture.streams[0].tracks[0].stop_calls == 1

    @pytest.mark.asyncio
    async def test_stop_during_negotiation(self):
        """Stopping mid-negotiation cancels the start without blocking the loop."""
        capture = GatedCapture(accept=("exact",), frame=make_frame())
        sampler, _, decoder, scans, errors, _ = build(capture=capture, frame_interval=0.005)
        loop = asyncio.get_running_loop()

        starting = asyncio.ensure_future(sampler.start())
        assert await loop.run_in_executor(None, capture.entered.wait, 5.0)

        began = time.monotonic()
        sampler.stop()
        blocked = time.monotonic() - began
        capture.proceed.set()

        assert await starting is False
        assert blocked < 0.1
        assert sampler.running is False
        assert sampler.camera.state is CameraState.STOPPED
        assert capture.streams[0].tracks[0].stop_calls == 1

        await asyncio.sleep(0.05)
        assert decoder.calls == 0
        assert scans.values == errors.values == []

    @pytest.mark.asyncio
    async def test_stop_during_failing_negotiation(self):
        """A cancelled start reports no camera error even if negotiation fails."""
        capture = GatedCapture(accept=())
        sampler, _, _, _, errors, _ = build(capture=capture)
        loop = asyncio.get_running_loop()

        starting = asyncio.ensure_future(sampler.start())
        assert await loop.run_in_executor(None, capture.entered.wait, 5.0)
        sampler.stop()
        capture.proceed.set()

        assert await starting is False
        assert errors.values == []
        assert sampler.running is False

    @pytest.mark.asyncio
    async def test_start_after_cancelled_start(self):
        """A sampler stopped mid-negotiation can be started again."""
        capture = GatedCapture(accept=("exact",), frame=make_frame())
        sampler, _, _, scans, _, _ = build(capture=capture)
        loop = asyncio.get_running_loop()

        starting = asyncio.ensure_future(sampler.start())
        assert await loop.run_in_executor(None, capture.entered.wait, 5.0)
        sampler.stop()
        capture.proceed.set()
        assert await starting is False

        assert await sampler.start() is True
        await sampler.tick()
        assert scans.values == [VALID_EAN13]
        sampler.stop()
