"""
Unit tests for QualityClassifier, CalibrationStats, AcRangeTracker and the
PulseDetector facade.
Run with:  pytest tests/test_quality_classifier.py
"""

from __future__ import annotations

import numpy as np
import pytest

from pulse_quality.ac_range import AcRangeTracker
from pulse_quality.config import DetectorConfig
from pulse_quality.detector import PulseDetector
from pulse_quality.errors import DataInsufficientError, InvalidArgumentError
from pulse_quality.peak_detector import (
    ExtremumKind,
    ExtremumResult,
    FrameSample,
    PeakTroughDetector,
)
from pulse_quality.quality_classifier import (
    CalibrationStats,
    Phase,
    QualityClassifier,
    Verdict,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

BASELINE = 100


def _steady_classifier() -> QualityClassifier:
    """
    Return a classifier armed at frame 100 with calc_diff = 11.75 and
    signal_width = 2.
    """
    det = PeakTroughDetector(0)
    clf = QualityClassifier(det)
    clf.stats = CalibrationStats(
        peak_count=3, trough_count=3,
        peak_sum=3 * 110.0, trough_sum=3 * 100.0,
        peak_frame_sum=3 * 10, trough_frame_sum=3 * 14,
    )
    assert clf.phase is Phase.ARMED
    det.update_frame_count(BASELINE)
    assert clf.assess(100.0, 2.0, 2.0, 7) is Verdict.NONE
    assert clf.phase is Phase.STEADY
    return clf


def _run(clf: QualityClassifier, first: int, last: int, red_of, green: float,
         blue: float, confidence: int = 7) -> dict[int, Verdict]:
    verdicts = {}
    for frame in range(first, last + 1):
        clf.detector.update_frame_count(frame)
        verdicts[frame] = clf.assess(red_of(frame), green, blue, confidence)
    return verdicts


def _ramp(step: float):
    """Red rises by *step* per frame, so the 2-frame lagged diff is 2·step."""
    return lambda frame: 100.0 + step * (frame - BASELINE)


def _result(kind: ExtremumKind, value: float, frame: int = 0) -> ExtremumResult:
    return ExtremumResult(kind=kind, frame_index=frame, value=value)


# ---------------------------------------------------------------------------
# CalibrationStats
# ---------------------------------------------------------------------------

class TestCalibrationStats:

    def test_accumulates_by_kind(self):
        stats = CalibrationStats()
        stats.add(_result(ExtremumKind.PEAK, 130.0, 10))
        stats.add(_result(ExtremumKind.TROUGH, 70.0, 20))
        stats.add(_result(ExtremumKind.NONE, 999.0, 25))
        stats.add(_result(ExtremumKind.PEAK, 128.0, 30))
        assert (stats.peak_count, stats.trough_count) == (2, 1)
        assert stats.peak_sum == pytest.approx(258.0)
        assert stats.trough_sum == pytest.approx(70.0)
        assert (stats.peak_frame_sum, stats.trough_frame_sum) == (40, 20)

    def test_derive(self):
        stats = CalibrationStats(
            peak_count=2, trough_count=2,
            peak_sum=130.0 + 128.0, trough_sum=70.0 + 72.0,
            peak_frame_sum=10 + 30, trough_frame_sum=20 + 40,
        )
        calc_diff, width = stats.derive(1.75)
        assert calc_diff == pytest.approx((129.0 - 71.0) + 1.75)
        # |(20 - 30) + 1.75| = 8.25 → 8
        assert width == 8

    @pytest.mark.parametrize("peaks, troughs", [(0, 0), (3, 0), (0, 3)])
    def test_derive_without_peak_or_trough(self, peaks, troughs):
        stats = CalibrationStats(peak_count=peaks, trough_count=troughs)
        with pytest.raises(DataInsufficientError):
            stats.derive(1.75)


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

class TestValidation:

    @pytest.mark.parametrize("red, green, blue", [
        (100.0, -0.1, 2.0),
        (-1.0, 2.0, 2.0),
        (100.0, 2.0, -5.0),
    ])
    def test_negative_channel(self, red, green, blue):
        clf = QualityClassifier(PeakTroughDetector(0))
        with pytest.raises(InvalidArgumentError):
            clf.assess(red, green, blue, 5)

    def test_negative_green_fails_in_every_phase(self):
        clf = _steady_classifier()
        with pytest.raises(InvalidArgumentError):
            clf.assess(100.0, -1.0, 0.0, 0)

    @pytest.mark.parametrize("level", [-1, 10, 42])
    def test_confidence_out_of_range(self, level):
        clf = QualityClassifier(PeakTroughDetector(0))
        with pytest.raises(InvalidArgumentError):
            clf.assess(100.0, 2.0, 2.0, level)

    @pytest.mark.parametrize("level", [0, 9])
    def test_confidence_bounds_accepted(self, level):
        clf = QualityClassifier(PeakTroughDetector(0))
        assert clf.assess(100.0, 2.0, 2.0, level) is Verdict.NONE


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

class TestPhases:

    def test_starts_calibrating(self):
        clf = QualityClassifier(PeakTroughDetector(0))
        assert clf.phase is Phase.CALIBRATING
        assert clf.baseline_frame is None

    def test_one_peak_short_keeps_calibrating(self):
        clf = QualityClassifier(PeakTroughDetector(0))
        clf.stats = CalibrationStats(peak_count=2, trough_count=5)
        assert clf.phase is Phase.CALIBRATING

    def test_zero_target_waits_for_a_peak_and_a_trough(self):
        cfg = DetectorConfig(garbage_frames=0, calibration_target=0)
        det = PeakTroughDetector(0, cfg)
        clf = QualityClassifier(det)
        for frame in range(1, 80):
            det.update_frame_count(frame)
            assert clf.assess(120.0, 2.0, 2.0, 5) is Verdict.NONE
        assert clf.phase is Phase.CALIBRATING

    def test_arming_is_one_shot(self):
        clf = _steady_classifier()
        assert clf.baseline_frame == BASELINE
        assert clf.calc_diff == pytest.approx(11.75)
        assert clf.signal_width == 2

        _run(clf, BASELINE + 1, BASELINE + 60, _ramp(2.5), 2.0, 2.0)
        clf.stats.add(_result(ExtremumKind.PEAK, 250.0, 150))
        assert clf.baseline_frame == BASELINE
        assert clf.calc_diff == pytest.approx(11.75)
        assert clf.signal_width == 2


# ---------------------------------------------------------------------------
# Steady state
# ---------------------------------------------------------------------------

class TestSteadyState:

    def test_lag_line_fills_then_slides(self):
        clf = _steady_classifier()
        _run(clf, 101, 102, _ramp(2.5), 2.0, 2.0)
        assert clf.lag_length == 2
        assert clf.confidence_counts == (0, 0, 0, 0)
        for frame in range(103, 130):
            _run(clf, frame, frame, _ramp(2.5), 2.0, 2.0)
            assert clf.lag_length == clf.signal_width

    def test_well_covered(self):
        clf = _steady_classifier()
        verdicts = _run(clf, 101, 109, _ramp(2.5), green=2.0, blue=2.0)
        # Frames 103..109 voted, diff = 5.0
        assert clf.confidence_counts == (7, 0, 0, 0)
        assert all(v is Verdict.NONE for v in verdicts.values())
        verdicts = _run(clf, 110, 110, _ramp(2.5), green=2.0, blue=2.0)
        assert verdicts[110] is Verdict.WELL_COVERED
        assert clf.confidence_counts == (0, 0, 0, 0)

    def test_partially_covered(self):
        clf = _steady_classifier()
        verdicts = _run(clf, 101, 110, _ramp(2.5), green=20.0, blue=50.0)
        assert verdicts[110] is Verdict.PARTIALLY_COVERED

    def test_shifted(self):
        clf = _steady_classifier()
        # diff = 20 > calc_diff
        verdicts = _run(clf, 101, 110, _ramp(10.0), green=2.0, blue=2.0)
        assert verdicts[110] is Verdict.SHIFTED

    def test_not_covered(self):
        clf = _steady_classifier()
        verdicts = _run(clf, 101, 110, lambda f: 100.0, green=90.0, blue=90.0)
        assert verdicts[110] is Verdict.NOT_COVERED

    def test_below_minimum_difference_is_not_covered_even_when_dark(self):
        clf = _steady_classifier()
        verdicts = _run(clf, 101, 110, _ramp(0.05), green=1.0, blue=1.0)
        assert verdicts[110] is Verdict.NOT_COVERED

    def test_no_bucket_reaches_confidence(self):
        clf = _steady_classifier()
        verdicts = _run(clf, 101, 110, _ramp(2.5), 2.0, 2.0, confidence=9)
        assert verdicts[110] is Verdict.NONE
        assert clf.confidence_counts == (0, 0, 0, 0)

    def test_zero_confidence_always_reports_first_bucket(self):
        clf = _steady_classifier()
        verdicts = _run(clf, 101, 110, _ramp(10.0), 2.0, 2.0, confidence=0)
        assert verdicts[110] is Verdict.WELL_COVERED

    def test_counters_reset_after_every_emission(self):
        clf = _steady_classifier()
        for batch_end in (110, 120, 130, 140):
            _run(clf, batch_end - 9 if batch_end > 110 else 101, batch_end,
                 _ramp(2.5), 2.0, 2.0, confidence=3)
            assert clf.confidence_counts == (0, 0, 0, 0)

    def test_full_batch_after_first(self):
        clf = _steady_classifier()
        _run(clf, 101, 110, _ramp(2.5), 2.0, 2.0)
        _run(clf, 111, 119, _ramp(2.5), 2.0, 2.0)
        assert clf.confidence_counts == (9, 0, 0, 0)

    def test_verdict_messages(self):
        assert Verdict.WELL_COVERED.message == "Finger is accurately on camera!"
        assert Verdict.NOT_COVERED.message == "Finger not on camera!"
        assert Verdict.NONE.message == "Calculating ..."
        assert int(Verdict.SHIFTED) == 3


# ---------------------------------------------------------------------------
# AC range
# ---------------------------------------------------------------------------

class TestAcRangeTracker:

    def test_pairs_first_peak_and_trough(self):
        ac = AcRangeTracker()
        assert ac.update(_result(ExtremumKind.NONE, 0.0)) == 0.0
        assert ac.update(_result(ExtremumKind.PEAK, 130.0)) == 0.0
        # A second peak before any trough is ignored.
        assert ac.update(_result(ExtremumKind.PEAK, 140.0)) == 0.0
        assert ac.pending_peak == 130.0
        assert ac.update(_result(ExtremumKind.TROUGH, 70.0)) == pytest.approx(60.0)
        assert ac.pending_peak is None and ac.pending_trough is None

    def test_trough_first(self):
        ac = AcRangeTracker()
        assert ac.update(_result(ExtremumKind.TROUGH, 75.0)) == 0.0
        assert ac.update(_result(ExtremumKind.TROUGH, 60.0)) == 0.0
        assert ac.update(_result(ExtremumKind.PEAK, 120.0)) == pytest.approx(45.0)
        assert ac.update(_result(ExtremumKind.NONE, 0.0)) == 0.0


# ---------------------------------------------------------------------------
# Facade / end to end
# ---------------------------------------------------------------------------

class TestPulseDetector:

    def test_sinusoid_calibrates_once(self):
        """Period 20, amplitude 30, offset 100, 50 garbage frames."""
        det = PulseDetector(0, DetectorConfig(garbage_frames=50))
        phases = []
        verdicts = []
        for frame in range(1, 601):
            det.update_frame_count(frame)
            red = 100 + 30 * np.sin(2 * np.pi * frame / 20)
            verdicts.append((frame, det.assess_quality(red, 2.0, 2.0, 5)))
            phases.append(det.phase)

        transitions = [
            i for i in range(1, len(phases))
            if phases[i] is Phase.STEADY and phases[i - 1] is not Phase.STEADY
        ]
        assert len(transitions) == 1
        assert phases[-1] is Phase.STEADY
        assert Phase.ARMED in phases

        clf = det.classifier
        stats = clf.stats
        assert stats.peak_count >= 3 and stats.trough_count >= 3
        assert clf.baseline_frame == transitions[0] + 1

        expected_diff = (stats.peak_sum / stats.peak_count
                         - stats.trough_sum / stats.trough_count) + 1.75
        expected_width = int(abs(
            stats.peak_frame_sum // stats.peak_count
            - stats.trough_frame_sum // stats.trough_count
            + 1.75
        ))
        assert clf.calc_diff == pytest.approx(expected_diff)
        assert clf.signal_width == expected_width
        assert clf.lag_length == expected_width

        for frame, verdict in verdicts:
            assert isinstance(verdict, Verdict)
            if verdict is not Verdict.NONE:
                assert frame % 10 == 0

    def test_process_advances_frame_counter(self):
        det = PulseDetector(0)
        sample = FrameSample(120.0, 3.0, 3.0)
        for _ in range(5):
            assert det.process(sample, 5) is Verdict.NONE
        assert det.frame_count == 5

    def test_detect_and_ac_range(self):
        det = PulseDetector(0, DetectorConfig(garbage_frames=10))
        amplitudes = []
        for frame in range(1, 301):
            det.update_frame_count(frame)
            result = det.detect_peak_trough(100 + 30 * np.sin(2 * np.pi * frame / 20))
            ac = det.ac_range(result)
            if ac:
                amplitudes.append(ac)
        assert len(amplitudes) >= 5
        assert all(0.0 < a <= 60.0 for a in amplitudes)

    def test_update_frame_count_on_stale_negative(self):
        det = PulseDetector(-5)
        with pytest.raises(InvalidArgumentError):
            det.update_frame_count(1)
