"""
==============================================================================
Result Debouncer Module
==============================================================================

Time-windowed suppression of repeated scan results.

A barcode held in front of the camera decodes on many consecutive frames;
the debouncer lets one emission through per window.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Optional


# Module logger
logger = logging.getLogger(__name__)


DEFAULT_WINDOW_MS = 1000


class ResultDebouncer:
    """
    Gate for accepted scan codes.

    The window applies to every accepted code, not per code: once a code is
    emitted, nothing else is emitted until ``window_ms`` has elapsed.

    Example:
        >>> debouncer = ResultDebouncer()
        >>> debouncer.should_emit("49012345", 0)
        True
        >>> debouncer.should_emit("49012345", 999)
        False
        >>> debouncer.should_emit("49012345", 1000)
        True
    """

    def __init__(self, window_ms: float = DEFAULT_WINDOW_MS) -> None:
        self.window_ms = window_ms
        self._last_timestamp: Optional[float] = None
        self._last_code: Optional[str] = None

    @property
    def last_timestamp(self) -> Optional[float]:
        return self._last_timestamp

    @property
    def last_code(self) -> Optional[str]:
        return self._last_code

    def should_emit(self, code: str, now_ms: float) -> bool:
        """
        Decide whether ``code`` observed at ``now_ms`` is emitted.

        Args:
            code: Validated code
            now_ms: Monotonic timestamp in milliseconds

        Returns:
            True, recording the timestamp, when the window has elapsed
        """
        if self._last_timestamp is not None and now_ms - self._last_timestamp < self.window_ms:
            logger.debug(f"Suppressed {code} within {self.window_ms}ms window")
            return False

        self._last_timestamp = now_ms
        self._last_code = code
        return True

    def reset(self) -> None:
        """Forget the last emission."""
        self._last_timestamp = None
        self._last_code = None
