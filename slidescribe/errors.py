"""
Error Types
============
Exception hierarchy shared by every stage of the video-to-text pipeline.

Every error carries a short machine-readable ``code`` so the CLI can report
failures consistently and the retry helpers can decide whether an attempt
is worth repeating.

Recovery policy:
  - Frame scoring failures never surface as exceptions (score defaults to 0).
  - OCR failures are caught per slide by ``SlideOCR`` (text defaults to "").
  - Download, frame extraction and validation errors abort the run.
"""

from typing import Optional

# Substrings of network-level failures that are worth retrying.
_RETRYABLE_MESSAGES = (
    "ECONNRESET",
    "ETIMEDOUT",
    "timed out",
    "connection reset",
    "temporarily unavailable",
)


class SlidescribeError(Exception):
    """Base class for all errors raised by this package."""

    code = "SLIDESCRIBE_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(SlidescribeError):
    """Invalid user input or configuration."""

    code = "VALIDATION_ERROR"


class VideoDownloadError(SlidescribeError):
    """Video metadata lookup or download failed."""

    code = "VIDEO_DOWNLOAD_ERROR"

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class FrameExtractionError(SlidescribeError):
    """Frames could not be sampled from a video file."""

    code = "FRAME_EXTRACTION_ERROR"

    def __init__(self, message: str, video_path: Optional[str] = None):
        super().__init__(message)
        self.video_path = video_path


class OCRError(SlidescribeError):
    """Text recognition failed for a single image."""

    code = "OCR_ERROR"

    def __init__(self, message: str, image_path: Optional[str] = None):
        super().__init__(message)
        self.image_path = image_path


class FileSystemError(SlidescribeError):
    code = "FILE_SYSTEM_ERROR"

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class DependencyError(SlidescribeError):
    """A required library or external binary is missing."""

    code = "DEPENDENCY_ERROR"

    def __init__(self, message: str, dependency: str = ""):
        super().__init__(message)
        self.dependency = dependency


def is_retryable_error(error: BaseException) -> bool:
    """Return True if *error* looks transient.

    Network-style failures are retryable regardless of type; among the
    package's own errors only downloads and OCR calls are retried.
    """
    message = str(error)
    if any(fragment.lower() in message.lower() for fragment in _RETRYABLE_MESSAGES):
        return True
    return isinstance(error, (VideoDownloadError, OCRError))

