"""
Peak-to-trough (AC) amplitude of the red channel.

Pairs the first peak and the first trough reported after the previous
amplitude was emitted.  Further detections of an already latched kind are
ignored until the opposite kind arrives.
"""

from __future__ import annotations

from typing import Optional

from pulse_quality.peak_detector import ExtremumKind, ExtremumResult


class AcRangeTracker:

    def __init__(self) -> None:
        self._peak: Optional[float] = None
        self._trough: Optional[float] = None

    def update(self, result: ExtremumResult) -> float:
        """Return ``|peak - trough|`` once a pair is complete, else ``0.0``."""
        if result.kind is ExtremumKind.PEAK and self._peak is None:
            self._peak = result.value
        elif result.kind is ExtremumKind.TROUGH and self._trough is None:
            self._trough = result.value

        if self._peak is None or self._trough is None:
            return 0.0

        ac = abs(self._peak - self._trough)
        self.reset()
        return ac

    @property
    def pending_peak(self) -> Optional[float]:
        return self._peak

    @property
    def pending_trough(self) -> Optional[float]:
        return self._trough

    def reset(self) -> None:
        self._peak = None
        self._trough = None
