"""
Video Acquisition
==================
Fetches a YouTube video with yt-dlp (or probes a local file) and reports
its metadata.

Downloads land in ``<temp_dir>/<job_id>.mp4`` and are limited to
``max_duration`` seconds; the limit is checked against the metadata before
anything is downloaded.  Transient yt-dlp failures are retried with
exponential backoff (tenacity).

Dependencies:
    pip install yt-dlp opencv-python tenacity
"""

import logging
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import cv2

from slidescribe.errors import FrameExtractionError, VideoDownloadError
from slidescribe.retry import retrying
from slidescribe.validators import validate_youtube_url

logger = logging.getLogger(__name__)

DEFAULT_MAX_DURATION = 600.0
DOWNLOAD_FORMAT = "best[ext=mp4]/best"


@dataclass
class VideoMetadata:
    """Basic facts about the source video."""
    title: str
    duration: float
    resolution: str = ""
    url: str = ""
    video_id: str = ""

    def to_dict(self) -> Dict:
        return asdict(self)


class YouTubeDownloader:
    """Download YouTube videos for processing.

    Usage::

        downloader = YouTubeDownloader(temp_dir="temp")
        video_path, metadata = downloader.download(
            "https://www.youtube.com/watch?v=aqz-KE-bpKQ"
        )
        ...
        downloader.cleanup(video_path)

    Parameters
    ----------
    temp_dir : str
        Directory for downloaded video files.
    max_duration : float
        Longest accepted video in seconds (default: 600).
    max_retries : int
        Attempts per yt-dlp call, including the first.
    retry_delay : float
        Base backoff delay in seconds.
    """

    def __init__(
        self,
        temp_dir: str,
        max_duration: float = DEFAULT_MAX_DURATION,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        self.temp_dir = Path(temp_dir)
        self.max_duration = max_duration
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_metadata(self, url: str) -> VideoMetadata:
        """Look up title, duration and resolution without downloading."""
        url, video_id = validate_youtube_url(url)
        info = self._retrying()(
            self._run_yt_dlp, url, {"skip_download": True}, download=False
        )
        width, height = info.get("width"), info.get("height")
        return VideoMetadata(
            title=info.get("title") or video_id,
            duration=float(info.get("duration") or 0.0),
            resolution=f"{width}x{height}" if width and height else "",
            url=url,
            video_id=info.get("id") or video_id,
        )

    def download(self, url: str, job_id: Optional[str] = None) -> Tuple[str, VideoMetadata]:
        """Download *url* into the temp directory.

        Returns:
            ``(video_path, metadata)``

        Raises:
            VideoDownloadError: invalid/unavailable video, duration over the
            limit, or download failure after retries.
        """
        metadata = self.get_metadata(url)
        if metadata.duration > self.max_duration:
            raise VideoDownloadError(
                f"Video too long: {int(metadata.duration // 60)} minutes. "
                f"Videos up to {int(self.max_duration // 60)} minutes are supported.",
                url,
            )

        self.temp_dir.mkdir(parents=True, exist_ok=True)
        output_path = self.temp_dir / f"{job_id or uuid.uuid4()}.mp4"
        options = {
            "format": DOWNLOAD_FORMAT,
            "outtmpl": str(output_path),
        }
        self._retrying()(self._run_yt_dlp, metadata.url, options, download=True)
        if not output_path.exists():
            raise VideoDownloadError(f"yt-dlp finished but {output_path} is missing", url)

        logger.info("Video downloaded successfully: %s", output_path)
        return str(output_path), metadata

    @staticmethod
    def probe_local(video_path: str) -> VideoMetadata:
        """Build metadata for a local video file using OpenCV."""
        path = Path(video_path)
        if not path.exists():
            raise FrameExtractionError(f"Video file not found: {video_path}", str(video_path))

        cap = cv2.VideoCapture(str(path))
        if not cap.isOpened():
            raise FrameExtractionError(f"OpenCV could not open video: {video_path}", str(video_path))
        try:
            fps = cap.get(cv2.CAP_PROP_FPS)
            total = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
            width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        finally:
            cap.release()

        return VideoMetadata(
            title=path.stem,
            duration=round(total / fps, 3) if fps > 0 else 0.0,
            resolution=f"{width}x{height}" if width and height else "",
            url="",
            video_id=path.stem,
        )

    @staticmethod
    def cleanup(video_path: str) -> None:
        """Delete a downloaded video; failures are logged, not raised."""
        try:
            Path(video_path).unlink()
            logger.info("Cleaned up video file: %s", video_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.error("Failed to clean up video file %s: %s", video_path, exc)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _retrying(self):
        return retrying(max_retries=self.max_retries, retry_delay=self.retry_delay)

    @staticmethod
    def _run_yt_dlp(url: str, extra_options: Dict, download: bool) -> Dict:
        import yt_dlp

        options = {
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
            **extra_options,
        }
        try:
            with yt_dlp.YoutubeDL(options) as ydl:
                info = ydl.extract_info(url, download=download)
        except yt_dlp.utils.DownloadError as exc:
            raise VideoDownloadError(f"yt-dlp failed for {url}: {exc}", url)
        return info or {}
