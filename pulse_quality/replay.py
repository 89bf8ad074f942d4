"""
Offline replay of recorded channel averages through :class:`PulseDetector`.

Replays a recording the way the capture pipeline would feed it live.

Usage
-----
    pulse-quality RECORDING [OPTIONS]

RECORDING is a text file with one frame per line: ``red green blue``
(comma or whitespace separated, ``#`` starts a comment).

Options
-------
    --mode {quality,peaks}  Report coverage verdicts or peaks/AC amplitude
                            (default: quality)
    --confidence INT        Votes per batch needed for a verdict (default: 7)
    --garbage-frames INT    Leading frames to ignore (default: 50)
    --log-every INT         Log progress every N frames (0 = never)
    --verbose               Enable debug logging
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

from pulse_quality.config import DetectorConfig
from pulse_quality.detector import PulseDetector
from pulse_quality.errors import PulseQualityError
from pulse_quality.peak_detector import FrameSample
from pulse_quality.quality_classifier import Verdict

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replay recorded RGB frame averages through the pulse detector",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("recording", type=Path,
                        help="Text file with one 'red green blue' row per frame")
    parser.add_argument("--mode", choices=("quality", "peaks"), default="quality",
                        help="Report coverage verdicts or peaks and AC amplitude")
    parser.add_argument("--confidence", type=int, default=7,
                        help="Votes per batch required for a verdict")
    parser.add_argument("--garbage-frames", type=int, default=50,
                        help="Leading frames ignored while the sensor settles")
    parser.add_argument("--log-every", type=int, default=0,
                        help="Log a progress line every N frames (0 = never)")
    parser.add_argument("--verbose", action="store_true",
                        help="Enable debug logging")
    return parser.parse_args(argv)


def load_recording(path: Path) -> np.ndarray:
    """Return an (N × 3) float array of red, green, blue averages."""
    text = path.read_text()
    delimiter = "," if "," in text else None
    data = np.loadtxt(path, delimiter=delimiter, comments="#", ndmin=2)
    if data.shape[1] < 3:
        raise ValueError(
            f"{path}: expected at least 3 columns (red green blue), got {data.shape[1]}"
        )
    return data[:, :3]


# ---------------------------------------------------------------------------
# Replay loops
# ---------------------------------------------------------------------------

def replay_quality(detector: PulseDetector, frames: np.ndarray,
                   confidence: int, log_every: int) -> dict[Verdict, int]:
    tally = {v: 0 for v in Verdict}
    for red, green, blue in frames:
        verdict = detector.process(FrameSample(red, green, blue), confidence)
        if verdict is not Verdict.NONE:
            tally[verdict] += 1
            logger.info("frame %d: %s", detector.frame_count, verdict.message)
        if log_every and detector.frame_count % log_every == 0:
            logger.info("frame %d: phase=%s", detector.frame_count, detector.phase.name)
    return tally


def replay_peaks(detector: PulseDetector, frames: np.ndarray,
                 log_every: int) -> list[float]:
    amplitudes: list[float] = []
    for red, _green, _blue in frames:
        detector.update_frame_count(detector.frame_count + 1)
        result = detector.detect_peak_trough(float(red))
        if result.is_extremum:
            logger.info("%s at frame %d (red=%.2f)",
                        result.kind.name, result.frame_index, result.value)
        ac = detector.ac_range(result)
        if ac > 0.0:
            amplitudes.append(ac)
            logger.info("AC amplitude %.3f", ac)
        if log_every and detector.frame_count % log_every == 0:
            logger.info("frame %d processed", detector.frame_count)
    return amplitudes


def run(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        frames = load_recording(args.recording)
        config = DetectorConfig(garbage_frames=args.garbage_frames)
        detector = PulseDetector(initial_frame_count=0, config=config)

        if args.mode == "peaks":
            amplitudes = replay_peaks(detector, frames, args.log_every)
            if amplitudes:
                logger.info("%d AC amplitudes, mean %.3f",
                            len(amplitudes), float(np.mean(amplitudes)))
            else:
                logger.info("No complete peak/trough pair found.")
        else:
            tally = replay_quality(detector, frames, args.confidence, args.log_every)
            summary = ", ".join(f"{v.name}={n}" for v, n in tally.items()
                                if v is not Verdict.NONE)
            logger.info("Replayed %d frames – %s", len(frames), summary)
    except (PulseQualityError, ValueError, OSError) as exc:
        logger.error("Replay failed: %s", exc)
        return 1

    return 0


def main(argv: list[str] | None = None) -> int:
    return run(parse_args(argv))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
