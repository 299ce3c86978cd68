"""
Test Configuration
==================

Pytest fixtures shared across the slidescribe test suite.

Frames are synthetic: solid colours or simple shapes written with OpenCV
into ``tmp_path``.
"""

from pathlib import Path
from typing import List, Sequence

import cv2
import numpy as np
import pytest

from slidescribe.errors import OCRError
from slidescribe.ocr.tesseract_engine import OCRResult
from slidescribe.video.frame_sampler import Frame
from slidescribe.video.similarity import SimilarityScorer


class ScriptedScorer(SimilarityScorer):
    """Returns pre-set scores in call order; raises at chosen positions."""

    def __init__(self, scores: Sequence[float], fail_at: Sequence[int] = ()):
        self.scores = list(scores)
        self.fail_at = set(fail_at)
        self.calls = []

    def score(self, previous_path: str, current_path: str) -> float:
        position = len(self.calls)
        self.calls.append((previous_path, current_path))
        if position in self.fail_at:
            raise RuntimeError("frame decode failed")
        return self.scores[position]


class FakeEngine:
    """OCR engine returning text derived from the image file name."""

    def __init__(self, fail_on: Sequence[str] = ()):
        self.fail_on = set(fail_on)
        self.seen: List[str] = []

    def recognize(self, image_path: str) -> OCRResult:
        self.seen.append(image_path)
        name = Path(image_path).stem
        if name in self.fail_on:
            raise OCRError(f"cannot read {image_path}", image_path)
        return OCRResult(text=f"Text of {name}", confidence=0.9, word_count=3)


def make_frames(timestamps: Sequence[float], prefix: str = "frame") -> List[Frame]:
    return [
        Frame(frame_path=f"{prefix}-{i:05d}.png", timestamp=float(t), frame_index=i)
        for i, t in enumerate(timestamps)
    ]


@pytest.fixture
def frames_at():
    """Factory: ``frames_at([0, 2, 4])`` -> Frames with fake paths."""
    return make_frames


@pytest.fixture
def write_image(tmp_path):
    """Factory writing a 640x480 BGR image and returning its path."""
    def _write(name: str, color=(0, 0, 0), rectangle=None) -> str:
        img = np.zeros((480, 640, 3), dtype=np.uint8)
        img[:] = color
        if rectangle is not None:
            (x1, y1, x2, y2), rect_color = rectangle
            cv2.rectangle(img, (x1, y1), (x2, y2), rect_color, thickness=-1)
        path = tmp_path / name
        assert cv2.imwrite(str(path), img)
        return str(path)
    return _write


@pytest.fixture
def sample_video(tmp_path):
    """A 3-second, 10 fps MJPEG AVI: black for 1.5s, then white."""
    path = tmp_path / "lecture.avi"
    fourcc = cv2.VideoWriter_fourcc(*"MJPG")
    writer = cv2.VideoWriter(str(path), fourcc, 10.0, (320, 240))
    assert writer.isOpened()
    for i in range(30):
        value = 0 if i < 15 else 255
        writer.write(np.full((240, 320, 3), value, dtype=np.uint8))
    writer.release()
    return str(path)
