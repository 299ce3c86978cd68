"""
Slide Detector
===============
Groups a sequence of sampled frames into slides.

Pipeline::

    frames -> pair scores -> boundaries -> slides -> merged slides

* Pair scores come from a ``SimilarityScorer`` (one call per adjacent pair,
  left to right).  A pair that fails to score counts as "no change".
* Boundaries come from ``boundaries.find_boundaries``.
* Slides are the frame ranges between consecutive boundaries; segments
  shorter than ``min_slide_frames`` are dropped.
* A single left-to-right pass merges pairs of adjacent slides that are both
  shorter than one second (typically transition animations).  The pass is
  not repeated, so a run of three or more short slides can still leave two
  short neighbours.

Nothing in this module raises on empty or degenerate input: zero frames
give no slides and one frame gives one slide.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from tqdm import tqdm

from slidescribe.video.boundaries import (
    DEFAULT_BASE_THRESHOLD,
    DEFAULT_THRESHOLD_MODE,
    find_boundaries,
)
from slidescribe.video.frame_sampler import Frame
from slidescribe.video.similarity import SimilarityScorer, WeightedFrameScorer

logger = logging.getLogger(__name__)

# Slides shorter than this (seconds) are merge candidates.
SHORT_SLIDE_SECONDS = 1.0


@dataclass
class Slide:
    """A run of consecutive frames showing the same content.

    Attributes
    ----------
    start_time : float
        Timestamp of the first frame (seconds).
    end_time : float
        Timestamp of the last frame (seconds).
    frames : list of Frame
        Non-empty, in timestamp order.
    ocr_text : str
        Recognised text; empty until OCR runs.
    ocr_confidence : float
        Mean recognition confidence in [0, 1].
    """
    start_time: float
    end_time: float
    frames: List[Frame]
    ocr_text: str = ""
    ocr_confidence: float = 0.0
    _ocr_attached: bool = field(default=False, repr=False, compare=False)

    @classmethod
    def from_frames(cls, frames: Sequence[Frame]) -> "Slide":
        if not frames:
            raise ValueError("A slide needs at least one frame")
        return cls(
            start_time=frames[0].timestamp,
            end_time=frames[-1].timestamp,
            frames=list(frames),
        )

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def has_ocr(self) -> bool:
        return self._ocr_attached

    def representative_frame(self) -> Frame:
        return select_representative_frame(self)

    def attach_ocr(self, text: str, confidence: float = 0.0) -> None:
        """Record the OCR result for this slide.  Allowed once."""
        if self._ocr_attached:
            raise ValueError(
                f"OCR text already attached to slide at {self.start_time:.1f}s"
            )
        self.ocr_text = text
        self.ocr_confidence = confidence
        self._ocr_attached = True


# ---------------------------------------------------------------------------
# Slide assembly
# ---------------------------------------------------------------------------

def assemble_slides(frames: Sequence[Frame], boundaries: Sequence[int],
                    min_slide_frames: int = 1) -> List[Slide]:
    """One slide per ``[boundaries[k], boundaries[k + 1])`` frame range."""
    slides: List[Slide] = []
    for start, end in zip(boundaries, boundaries[1:]):
        segment = frames[start:end]
        if len(segment) >= min_slide_frames:
            slides.append(Slide.from_frames(segment))
        else:
            logger.debug("Dropping %d-frame segment [%d, %d)", len(segment), start, end)
    return slides


def merge_short_slides(slides: Sequence[Slide],
                       min_duration: float = SHORT_SLIDE_SECONDS) -> List[Slide]:
    """Merge adjacent pairs of slides that are both shorter than *min_duration*.

    Single pass: after a merge the scan resumes after the pair.
    """
    merged: List[Slide] = []
    i = 0
    while i < len(slides):
        current = slides[i]
        if i + 1 < len(slides) and current.duration < min_duration:
            following = slides[i + 1]
            if following.duration < min_duration:
                merged.append(Slide(
                    start_time=current.start_time,
                    end_time=following.end_time,
                    frames=list(current.frames) + list(following.frames),
                ))
                i += 2
                continue
        merged.append(current)
        i += 1
    return merged


def select_representative_frame(slide: Slide) -> Frame:
    """The frame at the slide's temporal midpoint (``frames[len // 2]``)."""
    return slide.frames[len(slide.frames) // 2]


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------

class SlideDetector:
    """Detect slides in a sampled frame sequence.

    Usage::

        detector = SlideDetector(threshold=0.15)
        slides = detector.detect_slides(frames)
        for s in slides:
            print(f"{s.start_time:.1f}s - {s.end_time:.1f}s ({s.frame_count} frames)")

    Parameters
    ----------
    threshold : float
        Base sensitivity in (0, 1); smaller values detect more slides.
    min_slide_frames : int
        Segments with fewer frames are dropped (default: 1).
    scorer : SimilarityScorer, optional
        Pair scorer.  Defaults to ``WeightedFrameScorer``.
    threshold_mode : str
        Which adaptive threshold drives boundary detection.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_BASE_THRESHOLD,
        min_slide_frames: int = 1,
        scorer: Optional[SimilarityScorer] = None,
        threshold_mode: str = DEFAULT_THRESHOLD_MODE,
    ):
        self.threshold = threshold
        self.min_slide_frames = min_slide_frames
        self.scorer = scorer or WeightedFrameScorer()
        self.threshold_mode = threshold_mode

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compute_scores(
        self,
        frames: Sequence[Frame],
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> List[float]:
        """Score every adjacent frame pair, in order.

        ``on_progress`` receives the completed fraction in (0, 1].
        """
        scores: List[float] = []
        pairs = len(frames) - 1
        for i in tqdm(range(1, len(frames)), desc="Comparing frames",
                      unit="pair", leave=False):
            previous, current = frames[i - 1], frames[i]
            try:
                value = float(self.scorer.score(previous.frame_path, current.frame_path))
            except Exception as exc:
                logger.warning(
                    "Scoring failed for frames %d/%d (%s); using 0.0",
                    previous.frame_index, current.frame_index, exc,
                )
                value = 0.0
            scores.append(value)
            if on_progress is not None:
                on_progress(i / pairs)
        return scores

    def find_boundaries(self, scores: Sequence[float]) -> List[int]:
        return find_boundaries(scores, self.threshold, self.threshold_mode)

    def detect_slides(
        self,
        frames: Sequence[Frame],
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> List[Slide]:
        """Group *frames* into slides (after short-slide merging)."""
        if not frames:
            return []
        if len(frames) == 1:
            return [Slide.from_frames(frames)]

        logger.info("Detecting slides in %d frames", len(frames))
        scores = self.compute_scores(frames, on_progress)
        boundaries = self.find_boundaries(scores)

        slides = assemble_slides(frames, boundaries, self.min_slide_frames)
        logger.info("Assembled %d slides from %d boundaries", len(slides), len(boundaries))

        merged = merge_short_slides(slides)
        if len(merged) != len(slides):
            logger.info("Merged short slides: %d -> %d", len(slides), len(merged))
        return merged
