"""
First-order IIR stages used to isolate the pulsatile part of the red channel.

Two difference equations are cascaded, low-pass first:

    low-pass   y[n] = y[n-1] + (x[n] - y[n-1]) / a
    high-pass  y[n] = b * (y[n-1] + x[n] - x[n-1]),   b = 1 - 1 / a2

The streaming detector applies them one sample at a time through
:func:`low_pass` and :func:`high_pass`.  :func:`condition_signal` runs the
identical cascade over a whole recording with :func:`scipy.signal.lfilter`,
seeded the same way the streaming path is (low-pass output starts at the
first input, high-pass output starts at zero on the second).
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from scipy.signal import lfilter

from pulse_quality.errors import InvalidArgumentError


def _check_smoothing(smoothing: float) -> None:
    if smoothing <= 1:
        raise InvalidArgumentError(
            f"smoothing factor must be greater than 1, got {smoothing!r}"
        )


def low_pass(smoothing: float, value: float, prev_output: float) -> float:
    """Single low-pass step; *smoothing* sets how sharp the peaks stay."""
    _check_smoothing(smoothing)
    return prev_output + (value - prev_output) / smoothing


def high_pass(
    smoothing: float,
    value: float,
    prev_output: float,
    prev_input: float,
) -> float:
    """Single high-pass step; removes the slow drift left by the low-pass."""
    _check_smoothing(smoothing)
    b = 1 - (1 / smoothing)
    return b * (prev_output + value - prev_input)


# ---------------------------------------------------------------------------
# Transfer-function form
# ---------------------------------------------------------------------------

def low_pass_coefficients(smoothing: float) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(b, a)`` of the low-pass stage for :func:`scipy.signal.lfilter`."""
    _check_smoothing(smoothing)
    k = 1.0 / smoothing
    return np.array([k]), np.array([1.0, -(1.0 - k)])


def high_pass_coefficients(smoothing: float) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(b, a)`` of the high-pass stage for :func:`scipy.signal.lfilter`."""
    _check_smoothing(smoothing)
    g = 1.0 - 1.0 / smoothing
    return np.array([g, -g]), np.array([1.0, -g])


def condition_signal(
    raw: np.ndarray,
    low_pass_smoothing: float,
    high_pass_smoothing: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Run the low-pass → high-pass cascade over a recorded red-channel trace.

    Parameters
    ----------
    raw:
        1-D array of red averages, starting at the first frame after the
        garbage frames.
    low_pass_smoothing, high_pass_smoothing:
        Same factors as the streaming detector.

    Returns
    -------
    (low, high):
        ``low`` has one value per input sample.  ``high`` starts at the
        second sample (where the high-pass is seeded to zero), so it is one
        element shorter.  Both match the streaming outputs sample for sample.
    """
    x = np.asarray(raw, dtype=np.float64).ravel()
    b_lo, a_lo = low_pass_coefficients(low_pass_smoothing)
    b_hi, a_hi = high_pass_coefficients(high_pass_smoothing)

    if x.size == 0:
        return np.array([]), np.array([])

    # Seed the delay line so that y[-1] == x[0].
    zi_lo = np.array([-a_lo[1] * x[0]])
    low_tail, _ = lfilter(b_lo, a_lo, x[1:], zi=zi_lo)
    low = np.concatenate(([x[0]], low_tail))

    if low.size < 2:
        return low, np.array([])

    u = low[1:]
    # Seed so the first high-pass output is exactly zero.
    zi_hi = np.array([-b_hi[0] * u[0]])
    high, _ = lfilter(b_hi, a_hi, u, zi=zi_hi)
    return low, high
