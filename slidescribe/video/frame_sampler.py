"""
Frame Sampler
==============
Extracts frames from video files at configurable intervals using OpenCV.

Frames are saved as PNG images (lossless, for OCR accuracy) under
``<output_dir>/<video_id>/`` and returned in timestamp order for slide
detection.

Dependencies:
    pip install opencv-python
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import cv2
from tqdm import tqdm

from slidescribe.errors import FrameExtractionError

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 0.5


@dataclass(frozen=True)
class Frame:
    """A single frame sampled from a video.

    Attributes
    ----------
    frame_path : str
        Path to the saved frame image.
    timestamp : float
        Position in the video (seconds).
    frame_index : int
        Ordinal index of this sampled frame.
    """
    frame_path: str
    timestamp: float
    frame_index: int


class FrameSampler:
    """Extract frames from a video at fixed intervals.

    Usage::

        sampler = FrameSampler(output_dir="temp/frames", interval_seconds=2)
        frames = sampler.sample("temp/3f2a.mp4")
        for f in frames:
            print(f"Frame {f.frame_index} @ {f.timestamp:.1f}s -> {f.frame_path}")

    Parameters
    ----------
    output_dir : str
        Directory under which a per-video frame directory is created.
    interval_seconds : float
        Extract one frame every N seconds (default: 2).
    image_format : str
        Output image format (``"png"`` or ``"jpg"``).
    """

    def __init__(
        self,
        output_dir: str,
        interval_seconds: float = 2.0,
        image_format: str = "png",
    ):
        self.output_dir = Path(output_dir)
        self.interval_seconds = max(MIN_INTERVAL_SECONDS, interval_seconds)
        self.image_format = image_format.lower().lstrip(".")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def frames_dir(self, video_id: str) -> Path:
        return self.output_dir / video_id

    def sample(self, video_path: str, video_id: Optional[str] = None) -> List[Frame]:
        """Extract frames from *video_path* at the configured interval.

        Parameters
        ----------
        video_path : str
            Path to the source video file.
        video_id : str, optional
            Name of the per-video frame directory.  Defaults to the video stem.

        Returns
        -------
        List[Frame]
            Extracted frames in timestamp order.  Empty if the video has
            zero duration.

        Raises
        ------
        FrameExtractionError
            If the file is missing or OpenCV cannot open it.
        """
        vp = Path(video_path)
        if not vp.exists():
            raise FrameExtractionError(f"Video file not found: {video_path}", str(video_path))

        if video_id is None:
            video_id = vp.stem

        cap = cv2.VideoCapture(str(vp))
        if not cap.isOpened():
            raise FrameExtractionError(f"OpenCV could not open video: {video_path}", str(video_path))

        try:
            fps = cap.get(cv2.CAP_PROP_FPS)
            total_frames = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
            duration = total_frames / fps if fps > 0 else 0.0

            if duration <= 0:
                logger.warning("Video has zero duration: %s", video_path)
                return []

            frame_interval = max(1, int(round(fps * self.interval_seconds)))
            expected_samples = (total_frames - 1) // frame_interval + 1

            video_frame_dir = self.frames_dir(video_id)
            video_frame_dir.mkdir(parents=True, exist_ok=True)

            logger.info("Sampling frames from %s (%.1fs, %.0f fps, interval=%.1fs)",
                        vp.name, duration, fps, self.interval_seconds)

            frames: List[Frame] = []
            frame_count = 0
            sample_idx = 0

            with tqdm(total=expected_samples, desc=f"Extracting frames: {vp.name}",
                      unit="frame", leave=False) as pbar:
                while True:
                    ret, image = cap.read()
                    if not ret:
                        break

                    if frame_count % frame_interval == 0:
                        fpath = video_frame_dir / f"frame-{sample_idx:05d}.{self.image_format}"
                        if not cv2.imwrite(str(fpath), image):
                            raise FrameExtractionError(
                                f"Failed to write frame {sample_idx} to {fpath}", str(video_path)
                            )
                        frames.append(Frame(
                            frame_path=str(fpath),
                            timestamp=round(frame_count / fps, 3),
                            frame_index=sample_idx,
                        ))
                        sample_idx += 1
                        pbar.update(1)

                    frame_count += 1
        finally:
            cap.release()

        logger.info("Extracted %d frames from %s", len(frames), vp.name)
        return frames

    def get_video_duration(self, video_path: str) -> float:
        """Return the duration of a video in seconds (0.0 if unreadable)."""
        cap = cv2.VideoCapture(str(video_path))
        if not cap.isOpened():
            return 0.0
        fps = cap.get(cv2.CAP_PROP_FPS)
        total = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        cap.release()
        return total / fps if fps > 0 else 0.0

    @staticmethod
    def cleanup_frames(frames_dir: str) -> None:
        """Delete a frame directory; failures are logged, not raised."""
        try:
            shutil.rmtree(frames_dir)
            logger.info("Cleaned up frames directory: %s", frames_dir)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.error("Failed to clean up frames in %s: %s", frames_dir, exc)
