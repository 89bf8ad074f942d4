"""
Finger-coverage classifier.

Decides, every ``batch_size`` frames, whether a finger is correctly,
partially or not at all covering the lens.

Phases
------
CALIBRATING
    The red channel is fed through the :class:`PeakTroughDetector` until
    ``calibration_target`` peaks and troughs have been seen.  Their average
    amplitudes and frame positions are accumulated.
ARMED
    Calibration is complete but the constants have not been derived yet.
    The next frame derives them once and records a baseline frame.
STEADY
    Every new red value is compared with the value one signal width
    earlier.  The absolute difference, together with the green and blue
    averages, is voted into one of four buckets.  Every ``batch_size``-th
    frame the buckets are thresholded against the caller's confidence level
    and cleared.

A well placed fingertip is dark in green and blue (the flesh absorbs them)
while the red channel still pulses with a bounded amplitude.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum, IntEnum, auto
from typing import Deque, List, Optional, Tuple

from pulse_quality.config import DetectorConfig
from pulse_quality.errors import DataInsufficientError, InvalidArgumentError
from pulse_quality.peak_detector import ExtremumKind, ExtremumResult, PeakTroughDetector

logger = logging.getLogger(__name__)


class Phase(Enum):
    CALIBRATING = auto()
    ARMED       = auto()
    STEADY      = auto()


class Verdict(IntEnum):
    NONE              = 0
    WELL_COVERED      = 1
    PARTIALLY_COVERED = 2
    SHIFTED           = 3
    NOT_COVERED       = 4

    @property
    def message(self) -> str:
        return _VERDICT_MESSAGES[self]


_VERDICT_MESSAGES = {
    Verdict.NONE:              "Calculating ...",
    Verdict.WELL_COVERED:      "Finger is accurately on camera!",
    Verdict.PARTIALLY_COVERED: "Finger not covering camera correctly!",
    Verdict.SHIFTED:           "Finger has shifted on camera!",
    Verdict.NOT_COVERED:       "Finger not on camera!",
}

# Bucket i votes for _BUCKET_VERDICTS[i].
_BUCKET_VERDICTS = (
    Verdict.WELL_COVERED,
    Verdict.PARTIALLY_COVERED,
    Verdict.SHIFTED,
    Verdict.NOT_COVERED,
)


# ---------------------------------------------------------------------------
# Calibration statistics
# ---------------------------------------------------------------------------

@dataclass
class CalibrationStats:
    peak_count:       int = 0
    trough_count:     int = 0
    peak_sum:         float = 0.0
    trough_sum:       float = 0.0
    peak_frame_sum:   int = 0
    trough_frame_sum: int = 0

    def add(self, result: ExtremumResult) -> None:
        if result.kind is ExtremumKind.PEAK:
            self.peak_sum += result.value
            self.peak_frame_sum += result.frame_index
            self.peak_count += 1
        elif result.kind is ExtremumKind.TROUGH:
            self.trough_sum += result.value
            self.trough_frame_sum += result.frame_index
            self.trough_count += 1

    def derive(self, error_tolerance: float) -> Tuple[float, int]:
        """
        Return ``(calc_diff, signal_width)``.

        ``calc_diff`` is the mean peak-to-trough amplitude plus the
        tolerance; ``signal_width`` is the truncated distance between the
        mean peak frame and the mean trough frame, plus the tolerance.

        Raises :class:`DataInsufficientError` if no peak or no trough has
        been recorded.
        """
        if self.peak_count == 0 or self.trough_count == 0:
            raise DataInsufficientError(
                f"cannot calibrate from {self.peak_count} peaks and "
                f"{self.trough_count} troughs"
            )
        avg_peak = self.peak_sum / self.peak_count
        avg_trough = self.trough_sum / self.trough_count
        calc_diff = (avg_peak - avg_trough) + error_tolerance

        frame_gap = (self.peak_frame_sum // self.peak_count
                     - self.trough_frame_sum // self.trough_count)
        signal_width = int(abs(frame_gap + error_tolerance))
        return calc_diff, signal_width


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class QualityClassifier:
    """
    Adaptive coverage classifier driven one frame at a time.

    Parameters
    ----------
    detector:
        Peak/trough detector used during calibration.  It also owns the
        frame counter this classifier reads.
    """

    def __init__(self, detector: PeakTroughDetector) -> None:
        self.detector = detector
        self.config: DetectorConfig = detector.config
        self.stats = CalibrationStats()

        self._calibrated = False
        self._calc_diff: float = 0.0
        self._signal_width: int = 0
        self._baseline_frame: Optional[int] = None

        self._lag: Deque[float] = deque()
        self._confidence: List[int] = [0] * self.config.max_buckets

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def assess(self, red: float, green: float, blue: float,
               confidence_level: int) -> Verdict:
        """
        Process one frame and return a verdict.

        Parameters
        ----------
        red, green, blue:
            Channel averages of the current frame (0 – 255).
        confidence_level:
            Minimum votes (out of ``batch_size``) a bucket needs to produce
            its verdict; ``0 ... batch_size - 1``.

        Returns
        -------
        Verdict
            A coverage verdict on frames divisible by ``batch_size`` once
            steady, :attr:`Verdict.NONE` otherwise.
        """
        cfg = self.config
        if red < 0 or green < 0 or blue < 0:
            raise InvalidArgumentError(
                f"channel averages must be non-negative, got ({red}, {green}, {blue})"
            )
        if confidence_level < 0 or confidence_level > cfg.batch_size - 1:
            raise InvalidArgumentError(
                f"confidence_level must be in [0, {cfg.batch_size - 1}], "
                f"got {confidence_level}"
            )

        phase = self.phase
        if phase is Phase.CALIBRATING:
            self.stats.add(self.detector.detect(red))
            return Verdict.NONE

        if phase is Phase.ARMED:
            self._arm()
            return Verdict.NONE

        frame = self.detector.frame_count
        self._lag.append(red)
        if frame - self._baseline_frame <= self._signal_width:
            return Verdict.NONE

        difference = abs(red - self._lag.popleft())
        self._confidence[self._bucket(difference, green, blue)] += 1

        if frame % cfg.batch_size == 0:
            verdict = self._confidence_check(confidence_level)
            self._confidence = [0] * cfg.max_buckets
            return verdict
        return Verdict.NONE

    @property
    def phase(self) -> Phase:
        if self._calibrated:
            return Phase.STEADY
        target = self.config.calibration_target
        s = self.stats
        # A zero count would leave nothing to average.
        if (s.peak_count < target or s.trough_count < target
                or s.peak_count == 0 or s.trough_count == 0):
            return Phase.CALIBRATING
        return Phase.ARMED

    @property
    def calc_diff(self) -> float:
        return self._calc_diff

    @property
    def signal_width(self) -> int:
        return self._signal_width

    @property
    def baseline_frame(self) -> Optional[int]:
        return self._baseline_frame

    @property
    def confidence_counts(self) -> Tuple[int, ...]:
        return tuple(self._confidence)

    @property
    def lag_length(self) -> int:
        return len(self._lag)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _arm(self) -> None:
        self._calc_diff, self._signal_width = self.stats.derive(
            self.config.error_tolerance
        )
        self._baseline_frame = self.detector.frame_count
        self._calibrated = True
        logger.debug(
            "Calibrated at frame %d: calc_diff=%.3f signal_width=%d "
            "(peaks=%d troughs=%d)",
            self._baseline_frame, self._calc_diff, self._signal_width,
            self.stats.peak_count, self.stats.trough_count,
        )

    def _bucket(self, difference: float, green: float, blue: float) -> int:
        cfg = self.config
        pulsatile = cfg.minimum_difference < difference < self._calc_diff
        if pulsatile and green < cfg.light_cover_max and blue < cfg.light_cover_max:
            return 0
        if pulsatile and (green < cfg.partial_cover_max or blue < cfg.partial_cover_max):
            return 1
        if difference > self._calc_diff:
            return 2
        return 3

    def _confidence_check(self, confidence_level: int) -> Verdict:
        for count, verdict in zip(self._confidence, _BUCKET_VERDICTS):
            if count >= confidence_level:
                return verdict
        return Verdict.NONE
