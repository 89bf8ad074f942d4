"""
Tunable constants for the peak/trough detector and coverage classifier.

The defaults reproduce the values the detector was tuned with on phone
cameras.  Tests and callers override individual fields instead of patching
module constants.
"""

from __future__ import annotations

from dataclasses import dataclass

from pulse_quality.errors import InvalidArgumentError


@dataclass(frozen=True)
class DetectorConfig:
    """
    Parameters
    ----------
    garbage_frames:
        Number of leading frames ignored while the sensor settles.
    window_size:
        Length of the sliding extremum window.  Must be odd and >= 3.
    mapping_offset:
        Lag (in frames) between the newest sample and the reported extremum.
    low_pass_smoothing:
        ``a`` in ``y[n] = y[n-1] + (x[n] - y[n-1]) / a``.
    high_pass_smoothing:
        ``a2`` in ``b = 1 - 1 / a2`` for ``y[n] = b * (y[n-1] + x[n] - x[n-1])``.
    error_tolerance:
        Additive slack applied to the calibrated amplitude and signal width.
    minimum_difference:
        Smallest lagged difference still counted as pulsatile.
    light_cover_max:
        Green/blue ceiling for a well covered lens.
    partial_cover_max:
        Green/blue ceiling for a partially covered lens.
    batch_size:
        Frames per verdict; also bounds the confidence level.
    max_buckets:
        Number of confidence counters.
    calibration_target:
        Peaks *and* troughs that must be seen before calibrating.
    """

    garbage_frames: int = 50
    window_size: int = 5
    mapping_offset: int = 3
    low_pass_smoothing: float = 5.65
    high_pass_smoothing: float = 2.0
    error_tolerance: float = 1.75
    minimum_difference: float = 0.15
    light_cover_max: float = 5.0
    partial_cover_max: float = 35.0
    batch_size: int = 10
    max_buckets: int = 4
    calibration_target: int = 3

    def __post_init__(self) -> None:
        if self.garbage_frames < 0:
            raise InvalidArgumentError("garbage_frames must be >= 0")
        if self.window_size < 3 or self.window_size % 2 == 0:
            raise InvalidArgumentError("window_size must be odd and >= 3")
        if self.mapping_offset < 0:
            raise InvalidArgumentError("mapping_offset must be >= 0")
        if self.batch_size < 1:
            raise InvalidArgumentError("batch_size must be >= 1")
        # One counter per coverage verdict.
        if self.max_buckets != 4:
            raise InvalidArgumentError("max_buckets must be 4")
        if self.calibration_target < 0:
            raise InvalidArgumentError("calibration_target must be >= 0")

    @property
    def window_center(self) -> int:
        return self.window_size // 2
