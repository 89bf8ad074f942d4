"""
One monitoring session: frame counter, peak/trough detector, coverage
classifier and AC-range tracker behind a single object.
"""

from __future__ import annotations

from pulse_quality.ac_range import AcRangeTracker
from pulse_quality.config import DetectorConfig
from pulse_quality.peak_detector import ExtremumResult, FrameSample, PeakTroughDetector
from pulse_quality.quality_classifier import Phase, QualityClassifier, Verdict


class PulseDetector:
    """
    Per-session facade.

    Parameters
    ----------
    initial_frame_count:
        Value of the frame counter before the first frame.
    config:
        Shared constants for every component.

    Usage::

        det = PulseDetector()
        for n, sample in enumerate(samples, start=1):
            det.update_frame_count(n)
            verdict = det.assess_quality(sample.red, sample.green, sample.blue, 7)

    Not thread-safe; feed frames from one thread, in capture order.
    """

    def __init__(
        self,
        initial_frame_count: int = 0,
        config: DetectorConfig | None = None,
    ) -> None:
        self.config = config if config is not None else DetectorConfig()
        self.peak_detector = PeakTroughDetector(initial_frame_count, self.config)
        self.classifier = QualityClassifier(self.peak_detector)
        self.ac_tracker = AcRangeTracker()

    @property
    def frame_count(self) -> int:
        return self.peak_detector.frame_count

    @property
    def phase(self) -> Phase:
        return self.classifier.phase

    def update_frame_count(self, frame_count: int) -> None:
        self.peak_detector.update_frame_count(frame_count)

    def detect_peak_trough(self, red: float) -> ExtremumResult:
        return self.peak_detector.detect(red)

    def assess_quality(self, red: float, green: float, blue: float,
                       confidence_level: int) -> Verdict:
        return self.classifier.assess(red, green, blue, confidence_level)

    def ac_range(self, result: ExtremumResult) -> float:
        return self.ac_tracker.update(result)

    def process(self, sample: FrameSample, confidence_level: int) -> Verdict:
        """Advance the frame counter by one and assess *sample*."""
        self.update_frame_count(self.frame_count + 1)
        return self.assess_quality(sample.red, sample.green, sample.blue,
                                   confidence_level)
