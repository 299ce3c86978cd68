"""
Video processing subpackage -- from a video file to slides with text.

    YouTubeDownloader -> FrameSampler -> SlideDetector -> SlideOCR -> DocumentBuilder

``SlideDetector`` combines a ``SimilarityScorer`` with the adaptive
boundary detector in ``boundaries``.
"""

from slidescribe.video.downloader import VideoMetadata, YouTubeDownloader
from slidescribe.video.frame_sampler import Frame, FrameSampler
from slidescribe.video.similarity import (
    PixelDifferenceScorer,
    SimilarityScorer,
    WeightedFrameScorer,
    create_scorer,
)
from slidescribe.video.boundaries import find_boundaries
from slidescribe.video.slide_detector import Slide, SlideDetector
from slidescribe.video.slide_ocr import SlideOCR
from slidescribe.video.document_builder import DocumentBuilder
