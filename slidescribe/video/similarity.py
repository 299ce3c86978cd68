"""
Frame Similarity
=================
Scores how different two consecutive sampled frames are, on a 0-1 scale
(0 = identical, 1 = completely different).

Two interchangeable scorers implement the ``SimilarityScorer`` interface:

* ``WeightedFrameScorer`` (default) -- blends three signals computed on
  frames downscaled to 320x240:

    ======================  ======  ==========================================
    Signal                  Weight  Measure
    ======================  ======  ==========================================
    pixel difference        0.4     mean absolute per-pixel difference / 255
    colour histogram        0.3     chi-squared distance of 16-bin R,G,B
                                    histograms (normalised by pixel count),
                                    divided by 100 and clamped to 1
    edge gradient           0.3     mean absolute difference of gradient
                                    magnitudes on a 4-pixel sample grid / 255
    ======================  ======  ==========================================

* ``PixelDifferenceScorer`` -- pixel difference only.  Cheaper, but brittle
  on decks where slide changes differ mostly in layout rather than colour.

A frame that cannot be read scores 0.0 ("no change"): detection then
under-splits rather than inventing a slide boundary.

Dependencies:
    pip install opencv-python numpy
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# Comparison resolution (width, height).
COMPARE_SIZE = (320, 240)

HISTOGRAM_BINS = 16
# Chi-squared distances are divided by this before clamping to [0, 1].
HISTOGRAM_SCALE = 100.0

# Sample every Nth interior pixel when comparing gradients.
EDGE_SAMPLE_STEP = 4

PIXEL_WEIGHT = 0.4
HISTOGRAM_WEIGHT = 0.3
EDGE_WEIGHT = 0.3


class SimilarityScorer(ABC):
    """Scores the visual difference between two frames."""

    @abstractmethod
    def score(self, previous_path: str, current_path: str) -> float:
        """Return a dissimilarity in [0, 1]; higher means more different."""


# ---------------------------------------------------------------------------
# Signal components (operate on already-resized BGR arrays)
# ---------------------------------------------------------------------------

def pixel_difference(img1: np.ndarray, img2: np.ndarray) -> float:
    """Mean absolute per-pixel difference, normalised to [0, 1]."""
    diff = np.abs(img1.astype(np.int16) - img2.astype(np.int16))
    return float(np.mean(diff) / 255.0)


def color_histogram(img: np.ndarray, bins: int = HISTOGRAM_BINS) -> np.ndarray:
    """Concatenated per-channel histograms, each normalised by pixel count.

    Channel order follows OpenCV (B, G, R); the distance below is symmetric
    across channels so the order is irrelevant.
    """
    pixels = img.shape[0] * img.shape[1]
    channels = [
        cv2.calcHist([img], [c], None, [bins], [0, 256]).ravel()
        for c in range(3)
    ]
    return np.concatenate(channels).astype(np.float64) / pixels


def histogram_difference(img1: np.ndarray, img2: np.ndarray,
                         bins: int = HISTOGRAM_BINS) -> float:
    """Chi-squared distance between colour histograms, scaled into [0, 1]."""
    h1 = color_histogram(img1, bins)
    h2 = color_histogram(img2, bins)
    total = h1 + h2
    mask = total > 0
    distance = float(np.sum((h1[mask] - h2[mask]) ** 2 / total[mask]))
    return min(distance / HISTOGRAM_SCALE, 1.0)


def gradient_magnitudes(gray: np.ndarray, step: int = EDGE_SAMPLE_STEP) -> np.ndarray:
    """Central-difference gradient magnitude on a regular interior grid."""
    height, width = gray.shape
    ys = np.arange(1, height - 1, step)
    xs = np.arange(1, width - 1, step)
    g = gray.astype(np.float64)
    gx = g[np.ix_(ys, xs + 1)] - g[np.ix_(ys, xs - 1)]
    gy = g[np.ix_(ys + 1, xs)] - g[np.ix_(ys - 1, xs)]
    return np.sqrt(gx * gx + gy * gy)


def edge_difference(img1: np.ndarray, img2: np.ndarray,
                    step: int = EDGE_SAMPLE_STEP) -> float:
    """Mean absolute difference of sampled gradient magnitudes, in [0, 1]."""
    e1 = gradient_magnitudes(cv2.cvtColor(img1, cv2.COLOR_BGR2GRAY), step)
    e2 = gradient_magnitudes(cv2.cvtColor(img2, cv2.COLOR_BGR2GRAY), step)
    if e1.size == 0:
        return 0.0
    return min(float(np.mean(np.abs(e1 - e2))) / 255.0, 1.0)


# ---------------------------------------------------------------------------
# Scorers
# ---------------------------------------------------------------------------

class _ResizingScorer(SimilarityScorer):
    """Shared image loading: read both frames and resize to ``size``."""

    def __init__(self, size: Tuple[int, int] = COMPARE_SIZE):
        self.size = size

    def _load(self, path: str) -> Optional[np.ndarray]:
        img = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if img is None:
            return None
        return cv2.resize(img, self.size, interpolation=cv2.INTER_AREA)

    def score(self, previous_path: str, current_path: str) -> float:
        try:
            img1 = self._load(previous_path)
            img2 = self._load(current_path)
            if img1 is None or img2 is None:
                logger.warning(
                    "Could not read frame pair (%s, %s); treating as unchanged",
                    previous_path, current_path,
                )
                return 0.0
            value = self._compare(img1, img2)
        except (cv2.error, ValueError, MemoryError) as exc:
            logger.warning(
                "Error comparing frames %s and %s: %s", previous_path, current_path, exc
            )
            return 0.0
        return float(min(max(value, 0.0), 1.0))

    @abstractmethod
    def _compare(self, img1: np.ndarray, img2: np.ndarray) -> float:
        ...


class WeightedFrameScorer(_ResizingScorer):
    """Weighted blend of pixel, histogram and edge differences.

    Usage::

        scorer = WeightedFrameScorer()
        diff = scorer.score("frame-0001.png", "frame-0002.png")
    """

    def __init__(
        self,
        size: Tuple[int, int] = COMPARE_SIZE,
        pixel_weight: float = PIXEL_WEIGHT,
        histogram_weight: float = HISTOGRAM_WEIGHT,
        edge_weight: float = EDGE_WEIGHT,
    ):
        super().__init__(size)
        self.pixel_weight = pixel_weight
        self.histogram_weight = histogram_weight
        self.edge_weight = edge_weight

    def _compare(self, img1: np.ndarray, img2: np.ndarray) -> float:
        return (
            self.pixel_weight * pixel_difference(img1, img2)
            + self.histogram_weight * histogram_difference(img1, img2)
            + self.edge_weight * edge_difference(img1, img2)
        )


class PixelDifferenceScorer(_ResizingScorer):
    """Mean pixel difference only."""

    def _compare(self, img1: np.ndarray, img2: np.ndarray) -> float:
        return pixel_difference(img1, img2)


SCORERS = {
    "weighted": WeightedFrameScorer,
    "pixel": PixelDifferenceScorer,
}


def create_scorer(name: str = "weighted") -> SimilarityScorer:
    """Instantiate a scorer by its configuration name."""
    try:
        return SCORERS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown scorer '{name}'. Supported: {', '.join(sorted(SCORERS))}"
        )
