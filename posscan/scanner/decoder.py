"""
==============================================================================
Decode Adapter Module
==============================================================================

Boundary between the scan loop and an external pixel-decoding capability.

Capability Contract:
--------------------
A callable ``decode(pixels, width, height)`` returning an iterable of
candidates, either synchronously or as an awaitable. A candidate can be:

- an object with a ``data`` or ``payload`` attribute (pyzbar ``Decoded``)
- a mapping with a ``payload`` key
- a bare ``str`` or ``bytes``

Payloads are normalised to ``ScanCandidate`` so callers never see whether
the decoder produced text or bytes.

==============================================================================
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from functools import partial
from typing import Any, Callable, List, Mapping, Optional, Sequence

import numpy as np

from posscan.core import exceptions
from .models import ScanCandidate


# Module logger
logger = logging.getLogger(__name__)


DecodeCapability = Callable[[np.ndarray, int, int], Any]


def to_candidate(raw: Any) -> Optional[ScanCandidate]:
    """
    Normalise one decoder result into a ScanCandidate.

    Returns None for results that carry no usable payload.
    """
    if isinstance(raw, ScanCandidate):
        return raw

    if isinstance(raw, (str, bytes)):
        return ScanCandidate(payload=raw)

    symbology = None
    if isinstance(raw, Mapping):
        payload = raw.get("payload", raw.get("data"))
        symbology = raw.get("type")
    else:
        payload = getattr(raw, "payload", None)
        if payload is None:
            payload = getattr(raw, "data", None)
        symbology = getattr(raw, "type", None)

    if isinstance(payload, (bytearray, memoryview)):
        payload = bytes(payload)

    if not isinstance(payload, (str, bytes)):
        return None

    return ScanCandidate(
        payload=payload,
        symbology=str(symbology) if symbology is not None else None
    )


class DecodeAdapter:
    """
    Wraps a decode capability behind an async, normalising interface.

    Synchronous capabilities run in the loop's default executor so the
    sampling loop only suspends at the decode call.

    Example:
        >>> adapter = DecodeAdapter(PyzbarDecoder())
        >>> candidates = await adapter.decode(roi)
    """

    def __init__(self, capability: DecodeCapability, run_in_executor: bool = True) -> None:
        """
        Initialize adapter.

        Args:
            capability: External decode callable
            run_in_executor: Offload synchronous capabilities to a thread
        """
        self._capability = capability
        self._run_in_executor = run_in_executor
        self._is_async = (
            inspect.iscoroutinefunction(capability)
            or inspect.iscoroutinefunction(getattr(capability, "__call__", None))
        )

    async def decode(self, frame: np.ndarray) -> List[ScanCandidate]:
        """
        Decode a frame into zero or more candidates.

        Exceptions from the capability propagate to the caller.

        Args:
            frame: Pixel buffer, (height, width[, channels])

        Returns:
            Normalised candidates in decoder order
        """
        height, width = frame.shape[:2]

        if self._is_async or not self._run_in_executor:
            result = self._capability(frame, width, height)
        else:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(
                None, partial(self._capability, frame, width, height)
            )

        if inspect.isawaitable(result):
            result = await result

        return self._normalise(result)

    @staticmethod
    def _normalise(result: Optional[Sequence[Any]]) -> List[ScanCandidate]:
        if not result:
            return []

        candidates = []
        for raw in result:
            candidate = to_candidate(raw)
            if candidate is None:
                logger.debug(f"Ignoring decoder result without payload: {raw!r}")
                continue
            candidates.append(candidate)
        return candidates


class PyzbarDecoder:
    """
    Decode capability backed by pyzbar/zbar.

    Decodes the luminance plane of an RGBA frame (the red channel after
    preprocessing, a proper luma conversion otherwise).
    """

    def __init__(self, symbols: Optional[Sequence[str]] = None) -> None:
        """
        Initialize decoder.

        Args:
            symbols: Restrict zbar to these symbology names (e.g. "EAN13")

        Raises:
            AppException: If the zbar shared library cannot be loaded
        """
        try:
            from pyzbar import pyzbar
        except ImportError as e:
            raise exceptions.decoder_unavailable(str(e)) from e

        self._pyzbar = pyzbar
        self._symbols = None
        if symbols:
            self._symbols = [pyzbar.ZBarSymbol[name.upper()] for name in symbols]

    def __call__(self, pixels: np.ndarray, width: int, height: int):
        if pixels.ndim == 3:
            channel = pixels[..., 0]
            if not (np.array_equal(channel, pixels[..., 1])
                    and np.array_equal(channel, pixels[..., 2])):
                channel = np.rint(pixels[..., :3].astype(np.float64) @ [0.299, 0.587, 0.114])
            pixels = np.ascontiguousarray(channel, dtype=np.uint8)

        return self._pyzbar.decode(pixels, symbols=self._symbols)
