"""
Slide Boundary Detection
=========================
Turns the sequence of per-pair difference scores into the frame indices
where new slides begin.

``scores[i]`` is the difference between frame ``i`` and frame ``i + 1``, so a
change detected at score position ``i`` starts a slide at frame ``i + 1``.

Thresholds adapt to each video's own score distribution:

    conservative     max(base,       p75)
    moderate         max(0.8 * base, 1.5 * p50)
    aggressive       max(0.6 * base, mean + std)
    very_aggressive  max(0.4 * base, 2 * p25)      <- default

Two signals are combined:

* **Local peaks** -- a score that is the maximum of its +/-3 window and above
  the active threshold.
* **Sustained runs** -- a run of consecutive scores above the threshold
  contributes one boundary at its midpoint, unless that lands within one
  frame of the nearest earlier boundary.  "Earlier" means the closest
  accepted boundary at or before the midpoint (peaks included), not the
  last one accepted, so a run that precedes a later peak still counts.

The result always starts with 0 and ends with the sentinel ``frame_count``
(exclusive end).  Everything here is a pure function of its inputs.
"""

import bisect
import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

logger = logging.getLogger(__name__)

THRESHOLD_MODES = ("conservative", "moderate", "aggressive", "very_aggressive")
DEFAULT_THRESHOLD_MODE = "very_aggressive"
DEFAULT_BASE_THRESHOLD = 0.15

PEAK_WINDOW = 3
MIN_PEAK_SPACING = 1
MIN_RUN_SPACING = 2


@dataclass(frozen=True)
class ScoreStatistics:
    """Descriptive statistics of a score sequence.

    Percentiles use the nearest-rank rule on the sorted scores
    (``sorted[floor(n * q)]``); ``std_dev`` is the population deviation.
    """
    p25: float
    p50: float
    p75: float
    p90: float
    mean: float
    std_dev: float

    @classmethod
    def from_scores(cls, scores: Sequence[float]) -> "ScoreStatistics":
        if len(scores) == 0:
            raise ValueError("Cannot compute statistics of an empty score sequence")
        values = np.asarray(scores, dtype=np.float64)
        ordered = np.sort(values)
        n = len(ordered)

        def percentile(q: float) -> float:
            return float(ordered[int(n * q)])

        return cls(
            p25=percentile(0.25),
            p50=percentile(0.50),
            p75=percentile(0.75),
            p90=percentile(0.90),
            mean=float(values.mean()),
            std_dev=float(values.std()),
        )


@dataclass(frozen=True)
class DetectionThresholds:
    conservative: float
    moderate: float
    aggressive: float
    very_aggressive: float

    @classmethod
    def from_statistics(cls, stats: ScoreStatistics,
                        base: float = DEFAULT_BASE_THRESHOLD) -> "DetectionThresholds":
        return cls(
            conservative=max(base, stats.p75),
            moderate=max(0.8 * base, 1.5 * stats.p50),
            aggressive=max(0.6 * base, stats.mean + stats.std_dev),
            very_aggressive=max(0.4 * base, 2 * stats.p25),
        )

    def select(self, mode: str = DEFAULT_THRESHOLD_MODE) -> float:
        if mode not in THRESHOLD_MODES:
            raise ValueError(
                f"Unknown threshold mode '{mode}'. Supported: {', '.join(THRESHOLD_MODES)}"
            )
        return getattr(self, mode)


# ---------------------------------------------------------------------------
# Boundary signals
# ---------------------------------------------------------------------------

def find_local_peaks(scores: Sequence[float], threshold: float,
                     window: int = PEAK_WINDOW) -> List[int]:
    """Frame indices following scores that peak above *threshold*.

    Only positions with a full window on both sides are considered.
    """
    peaks: List[int] = []
    last = 0
    for i in range(window, len(scores) - window):
        center = scores[i]
        if center == max(scores[i - window:i + window + 1]) and center > threshold:
            candidate = i + 1
            if candidate - last >= MIN_PEAK_SPACING:
                peaks.append(candidate)
                last = candidate
    return peaks


def find_sustained_runs(scores: Sequence[float], threshold: float,
                        existing: Sequence[int] = (0,)) -> List[int]:
    """One boundary per run of consecutive scores above *threshold*.

    A run spanning score positions ``[start, end)`` maps to frame
    ``(start + end) // 2 + 1``.  The candidate is dropped if it duplicates a
    known boundary or sits less than ``MIN_RUN_SPACING`` frames after the
    nearest boundary at or before it (peaks in *existing* included).
    """
    known = sorted(set(existing) | {0})
    emitted: List[int] = []

    def emit(start: int, end: int) -> None:
        midpoint = (start + end) // 2 + 1
        position = bisect.bisect_right(known, midpoint)
        preceding = known[position - 1]
        if midpoint - preceding >= MIN_RUN_SPACING:
            bisect.insort(known, midpoint)
            emitted.append(midpoint)

    run_start = None
    for i, value in enumerate(scores):
        if value > threshold:
            if run_start is None:
                run_start = i
        elif run_start is not None:
            emit(run_start, i)
            run_start = None
    if run_start is not None:
        emit(run_start, len(scores))

    return emitted


def find_boundaries(
    scores: Sequence[float],
    base_threshold: float = DEFAULT_BASE_THRESHOLD,
    mode: str = DEFAULT_THRESHOLD_MODE,
) -> List[int]:
    """Compute slide-start boundaries for ``len(scores) + 1`` frames.

    Args:
        scores         : Per-pair difference scores in frame order.
        base_threshold : Sensitivity; smaller values detect more slides.
        mode           : Which derived threshold drives detection.

    Returns:
        Strictly increasing frame indices: ``0``, every slide start, and
        the sentinel ``len(scores) + 1``.
    """
    frame_count = len(scores) + 1
    if len(scores) == 0:
        return [0, frame_count]

    stats = ScoreStatistics.from_scores(scores)
    thresholds = DetectionThresholds.from_statistics(stats, base_threshold)
    active = thresholds.select(mode)

    logger.debug(
        "Scores - mean %.3f, std %.3f, p25 %.3f, p50 %.3f, p75 %.3f, p90 %.3f",
        stats.mean, stats.std_dev, stats.p25, stats.p50, stats.p75, stats.p90,
    )
    logger.debug(
        "Thresholds - conservative %.3f, moderate %.3f, aggressive %.3f, "
        "very aggressive %.3f (using %s)",
        thresholds.conservative, thresholds.moderate,
        thresholds.aggressive, thresholds.very_aggressive, mode,
    )

    peaks = find_local_peaks(scores, active)
    runs = find_sustained_runs(scores, active, existing=peaks)

    boundaries = sorted(set([0] + peaks + runs))
    if boundaries[-1] != frame_count:
        boundaries.append(frame_count)

    logger.info(
        "Active threshold %.3f: %d peak(s), %d sustained run(s), %d slide(s)",
        active, len(peaks), len(runs), len(boundaries) - 1,
    )
    return boundaries
