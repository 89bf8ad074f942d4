"""
Streaming peak / trough detector for the red channel.

Algorithm
---------
1. Drop the first ``garbage_frames`` samples (auto-exposure is still moving).
2. Seed the low-pass output with the next raw sample, then seed the
   high-pass output to zero one frame later.
3. Run every further sample through the low-pass → high-pass cascade from
   :mod:`pulse_quality.filters` and keep the last ``window_size`` raw and
   filtered values.
4. Once the windows are full, test the centre of the filtered window for a
   strict local extremum.  Each side must rise (peak) or fall (trough)
   monotonically towards the centre.

Because the centre sits ``mapping_offset`` frames behind the newest sample,
detections are reported against that earlier frame.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Deque, Sequence, Tuple

import numpy as np

from pulse_quality.config import DetectorConfig
from pulse_quality.errors import InvalidArgumentError
from pulse_quality.filters import high_pass, low_pass

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

class ExtremumKind(IntEnum):
    NONE   = 0   # arbitrary point
    PEAK   = 1
    TROUGH = 2


@dataclass(frozen=True)
class ExtremumResult:
    kind:        ExtremumKind = ExtremumKind.NONE
    frame_index: int = 0       # frame the centre sample was captured on
    value:       float = 0.0   # raw red value at that frame

    @property
    def is_extremum(self) -> bool:
        return self.kind is not ExtremumKind.NONE


NO_EXTREMUM = ExtremumResult()


@dataclass(frozen=True)
class FrameSample:
    """Average channel values of one video frame (0 – 255 each)."""

    red:   float
    green: float
    blue:  float

    @classmethod
    def from_bgr(cls, frame: np.ndarray) -> "FrameSample":
        """
        Reduce a BGR image array (H × W × 3) to its channel averages.

        Channel order follows OpenCV: 0 = blue, 1 = green, 2 = red.
        """
        if frame.ndim != 3 or frame.shape[2] < 3:
            raise InvalidArgumentError(
                f"expected an H x W x 3 BGR array, got shape {frame.shape}"
            )
        return cls(
            red=float(np.mean(frame[:, :, 2])),
            green=float(np.mean(frame[:, :, 1])),
            blue=float(np.mean(frame[:, :, 0])),
        )


@dataclass
class FilterState:
    """Persistent state of the low-pass → high-pass cascade."""

    window_size:    int
    lpf_output:     float = 0.0
    hpf_output:     float = 0.0
    prev_hpf_input: float = 0.0   # low-pass output of the last frame
    raw_window:      Deque[float] = field(init=False)
    filtered_window: Deque[float] = field(init=False)

    def __post_init__(self) -> None:
        self.raw_window = deque(maxlen=self.window_size)
        self.filtered_window = deque(maxlen=self.window_size)

    @property
    def windows_full(self) -> bool:
        return len(self.filtered_window) == self.window_size


# ---------------------------------------------------------------------------
# Window test
# ---------------------------------------------------------------------------

def classify_window(values: Sequence[float]) -> ExtremumKind:
    """
    Classify the centre of an odd-length window.

    PEAK when the values rise strictly towards the centre from both ends,
    TROUGH when they fall strictly, NONE otherwise.  For five values this is
    ``v2 > v1 > v0`` and ``v2 > v3 > v4`` (and the mirror for a trough).
    """
    values = list(values)
    n = len(values)
    if n < 3 or n % 2 == 0:
        raise InvalidArgumentError(f"window length must be odd and >= 3, got {n}")
    c = n // 2
    left = values[: c + 1]
    right = values[c:]

    if all(a < b for a, b in zip(left, left[1:])) and \
            all(a > b for a, b in zip(right, right[1:])):
        return ExtremumKind.PEAK
    if all(a > b for a, b in zip(left, left[1:])) and \
            all(a < b for a, b in zip(right, right[1:])):
        return ExtremumKind.TROUGH
    return ExtremumKind.NONE


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------

class PeakTroughDetector:
    """
    Per-frame peak / trough detector.

    Parameters
    ----------
    frame_count:
        Initial value of the external frame counter.
    config:
        Detector constants; defaults to :class:`DetectorConfig`.

    Notes
    -----
    The caller advances the frame counter (:meth:`update_frame_count`)
    *before* each :meth:`detect` call, and calls :meth:`detect` exactly once
    per frame.  Skipped frames shift every reported frame index.
    """

    def __init__(
        self,
        frame_count: int = 0,
        config: DetectorConfig | None = None,
    ) -> None:
        self.config = config if config is not None else DetectorConfig()
        self._frame_count = frame_count
        self._state = FilterState(window_size=self.config.window_size)

    # ------------------------------------------------------------------
    # Frame counter
    # ------------------------------------------------------------------

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def update_frame_count(self, frame_count: int) -> None:
        """
        Store *frame_count* as the current frame.

        Raises :class:`InvalidArgumentError` when the counter held *before*
        this call is negative; the new value itself is not checked.
        """
        if self._frame_count < 0:
            raise InvalidArgumentError(
                f"stored frame count is negative ({self._frame_count})"
            )
        self._frame_count = frame_count

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect(self, raw_red: float) -> ExtremumResult:
        """
        Feed the red average of the current frame and classify the lagged
        window centre.

        Returns :data:`NO_EXTREMUM` during warm-up and for ordinary samples.
        """
        cfg = self.config
        st = self._state
        frame = self._frame_count
        garbage = cfg.garbage_frames

        if frame <= garbage:
            return NO_EXTREMUM

        if frame == garbage + 1:
            st.lpf_output = raw_red
            return NO_EXTREMUM

        st.lpf_output = low_pass(cfg.low_pass_smoothing, raw_red, st.lpf_output)

        if frame == garbage + 2:
            st.hpf_output = 0.0
            st.prev_hpf_input = st.lpf_output
            return NO_EXTREMUM

        st.hpf_output = high_pass(
            cfg.high_pass_smoothing, st.lpf_output, st.hpf_output, st.prev_hpf_input
        )
        st.prev_hpf_input = st.lpf_output

        if not st.windows_full:
            st.raw_window.append(raw_red)
            st.filtered_window.append(st.hpf_output)
            return NO_EXTREMUM

        result = NO_EXTREMUM
        kind = classify_window(st.filtered_window)
        if kind is not ExtremumKind.NONE:
            result = ExtremumResult(
                kind=kind,
                frame_index=frame - cfg.mapping_offset,
                value=st.raw_window[cfg.window_center],
            )
            logger.debug("%s at frame %d (red=%.2f)",
                         kind.name, result.frame_index, result.value)

        # Bounded deques evict the oldest element on append.
        st.raw_window.append(raw_red)
        st.filtered_window.append(st.hpf_output)
        return result

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> FilterState:
        return self._state

    @property
    def raw_window(self) -> Tuple[float, ...]:
        return tuple(self._state.raw_window)

    @property
    def filtered_window(self) -> Tuple[float, ...]:
        return tuple(self._state.filtered_window)
