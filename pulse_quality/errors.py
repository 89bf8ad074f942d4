"""
Exception hierarchy for the pulse quality core.

Every failure raised by the core is a caller-side contract violation or a
calibration that cannot be completed; nothing here is transient, so none of
these are retried internally.
"""

from __future__ import annotations


class PulseQualityError(Exception):
    """Base class for all errors raised by :mod:`pulse_quality`."""


class InvalidArgumentError(PulseQualityError, ValueError):
    """
    Raised for malformed inputs.

    Negative channel averages, an out-of-range confidence level, a filter
    smoothing factor ``<= 1``, a stale negative frame count or an invalid
    :class:`~pulse_quality.config.DetectorConfig`.
    """


class DataInsufficientError(PulseQualityError):
    """Raised when calibration constants are derived without a peak or trough."""
