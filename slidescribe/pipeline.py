"""
Video Processing Pipeline
==========================
Orchestrates one end-to-end run:

    acquire video -> sample frames -> detect slides -> OCR -> document

Each run is a ``ProcessingJob`` with a uuid id.  Status changes are pushed
to registered listeners as ``ProgressEvent`` objects:

    ===================  ========
    Status               Progress
    ===================  ========
    downloading          10
    extracting_frames    25
    detecting_slides     40 - 60
    running_ocr          60 - 85
    generating_document  85
    completed            100
    ===================  ========

A failed run keeps its last progress value and reports ``failed``.

Temp files (the downloaded video and the job's frame directory) are removed
when the run ends, successfully or not.  While the run is in progress its
job id is registered with the ``CleanupService`` so a concurrent sweep
leaves its files alone.  A local input video is never deleted.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from slidescribe.cleanup import CleanupService
from slidescribe.config import Settings
from slidescribe.ocr.tesseract_engine import TesseractEngine
from slidescribe.retry import with_cleanup
from slidescribe.validators import is_youtube_url
from slidescribe.video.document_builder import DocumentBuilder
from slidescribe.video.downloader import VideoMetadata, YouTubeDownloader
from slidescribe.video.frame_sampler import Frame, FrameSampler
from slidescribe.video.similarity import create_scorer
from slidescribe.video.slide_detector import Slide, SlideDetector
from slidescribe.video.slide_ocr import SlideOCR

logger = logging.getLogger(__name__)


class ProcessingStatus(str, Enum):
    IDLE = "idle"
    DOWNLOADING = "downloading"
    EXTRACTING_FRAMES = "extracting_frames"
    DETECTING_SLIDES = "detecting_slides"
    RUNNING_OCR = "running_ocr"
    GENERATING_DOCUMENT = "generating_document"
    COMPLETED = "completed"
    FAILED = "failed"


STATUS_PROGRESS = {
    ProcessingStatus.IDLE: 0.0,
    ProcessingStatus.DOWNLOADING: 10.0,
    ProcessingStatus.EXTRACTING_FRAMES: 25.0,
    ProcessingStatus.DETECTING_SLIDES: 40.0,
    ProcessingStatus.RUNNING_OCR: 60.0,
    ProcessingStatus.GENERATING_DOCUMENT: 85.0,
    ProcessingStatus.COMPLETED: 100.0,
}


@dataclass(frozen=True)
class ProgressEvent:
    job_id: str
    status: ProcessingStatus
    progress: float


@dataclass
class ProcessingResult:
    metadata: VideoMetadata
    slides: List[Slide]
    output_path: str
    processing_time: float


@dataclass
class ProcessingJob:
    id: str
    source: str
    status: ProcessingStatus = ProcessingStatus.IDLE
    progress: float = 0.0
    error: Optional[str] = None
    result: Optional[ProcessingResult] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


ProgressListener = Callable[[ProgressEvent], None]


class VideoProcessor:
    """Run the full video-to-document pipeline.

    Usage::

        processor = VideoProcessor(load_settings())
        processor.add_listener(lambda e: print(e.status.value, e.progress))
        result = processor.process("https://youtu.be/aqz-KE-bpKQ")
        print(result.output_path)

    Collaborators default to the production implementations built from
    *settings*; any of them can be injected (tests pass fakes).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        downloader: Optional[YouTubeDownloader] = None,
        sampler: Optional[FrameSampler] = None,
        detector: Optional[SlideDetector] = None,
        slide_ocr: Optional[SlideOCR] = None,
        builder: Optional[DocumentBuilder] = None,
        cleanup_service: Optional[CleanupService] = None,
        keep_temp: bool = False,
    ):
        self.settings = settings or Settings()
        cfg = self.settings
        temp_dir = Path(cfg.paths.temp_dir)

        self.downloader = downloader or YouTubeDownloader(
            temp_dir=str(temp_dir),
            max_duration=cfg.processing.max_video_duration,
            max_retries=cfg.processing.max_retry_attempts,
        )
        self.sampler = sampler or FrameSampler(
            output_dir=str(temp_dir / "frames"),
            interval_seconds=cfg.processing.frame_interval,
        )
        self.detector = detector or SlideDetector(
            threshold=cfg.detection.slide_detection_threshold,
            min_slide_frames=cfg.detection.min_slide_frames,
            scorer=create_scorer(cfg.detection.scorer),
            threshold_mode=cfg.detection.threshold_mode,
        )
        self._slide_ocr = slide_ocr
        self.builder = builder or DocumentBuilder(
            output_dir=cfg.paths.output_dir,
            output_format=cfg.processing.output_format,
        )
        self.cleanup_service = cleanup_service or CleanupService(str(temp_dir))
        self.keep_temp = keep_temp
        self._listeners: List[ProgressListener] = []

    @property
    def slide_ocr(self) -> SlideOCR:
        """The OCR stage, built on first use so detection alone needs no Tesseract."""
        if self._slide_ocr is None:
            cfg = self.settings.ocr
            engine = TesseractEngine(
                lang=cfg.language,
                confidence_threshold=cfg.confidence_threshold,
                psm=cfg.psm,
                oem=cfg.oem,
            )
            self._slide_ocr = SlideOCR(engine, max_workers=cfg.max_concurrent)
        return self._slide_ocr

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ProgressListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _update(self, job: ProcessingJob, status: ProcessingStatus,
                progress: Optional[float] = None) -> None:
        job.status = status
        job.progress = STATUS_PROGRESS[status] if progress is None else round(progress, 1)
        job.updated_at = datetime.now()
        log = logger.info if progress is None else logger.debug
        log("Job %s: %s (%.0f%%)", job.id, status.value, job.progress)

        event = ProgressEvent(job_id=job.id, status=status, progress=job.progress)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                logger.warning("Progress listener failed: %s", exc)

    def _stage_progress(self, job: ProcessingJob, status: ProcessingStatus,
                        start: float, end: float) -> Callable[[float], None]:
        def report(fraction: float) -> None:
            self._update(job, status, start + (end - start) * fraction)
        return report

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _acquire(self, job: ProcessingJob) -> Tuple[str, VideoMetadata, bool]:
        """Return ``(video_path, metadata, owned)``; owned files are deleted later."""
        self._update(job, ProcessingStatus.DOWNLOADING)
        if is_youtube_url(job.source):
            video_path, metadata = self.downloader.download(job.source, job_id=job.id)
            return video_path, metadata, True
        return job.source, self.downloader.probe_local(job.source), False

    def _cleanup(self, job: ProcessingJob, video_path: Optional[str], owned: bool) -> None:
        self.cleanup_service.unregister_job(job.id)
        if self.keep_temp:
            logger.info("Keeping temp files for job %s", job.id)
            return
        if owned and video_path:
            self.downloader.cleanup(video_path)
        self.sampler.cleanup_frames(str(self.sampler.frames_dir(job.id)))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_job(self, source: str) -> ProcessingJob:
        return ProcessingJob(id=str(uuid.uuid4()), source=source)

    def process(self, source: str, job: Optional[ProcessingJob] = None) -> ProcessingResult:
        """Convert a YouTube URL or local video file into a document.

        Raises whatever the failing stage raised, after marking the job
        ``failed`` and cleaning up.
        """
        job = job or self.create_job(source)
        started = time.monotonic()
        acquired = {"video_path": None, "owned": False}
        self.cleanup_service.register_active_job(job.id)

        def run() -> ProcessingResult:
            video_path, metadata, owned = self._acquire(job)
            acquired.update(video_path=video_path, owned=owned)

            self._update(job, ProcessingStatus.EXTRACTING_FRAMES)
            frames = self.sampler.sample(video_path, video_id=job.id)

            self._update(job, ProcessingStatus.DETECTING_SLIDES)
            slides = self.detector.detect_slides(
                frames, self._stage_progress(job, ProcessingStatus.DETECTING_SLIDES, 40, 60)
            )

            self._update(job, ProcessingStatus.RUNNING_OCR)
            self.slide_ocr.process_slides(
                slides, self._stage_progress(job, ProcessingStatus.RUNNING_OCR, 60, 85)
            )

            self._update(job, ProcessingStatus.GENERATING_DOCUMENT)
            document = self.builder.build(metadata, slides)
            output_path = self.builder.save(document)

            return ProcessingResult(
                metadata=metadata,
                slides=slides,
                output_path=output_path,
                processing_time=round(time.monotonic() - started, 2),
            )

        try:
            result = with_cleanup(
                run, lambda: self._cleanup(job, acquired["video_path"], acquired["owned"])
            )
        except Exception as exc:
            job.error = str(exc)
            self._update(job, ProcessingStatus.FAILED, job.progress)
            logger.error("Processing failed: %s", job.error)
            raise

        job.result = result
        self._update(job, ProcessingStatus.COMPLETED)
        logger.info("Processing completed in %.2fs", result.processing_time)
        return result

    def detect(self, video_path: str) -> Tuple[VideoMetadata, List[Frame], List[Slide]]:
        """Run frame sampling and slide detection only (no OCR, no document)."""
        job = self.create_job(video_path)
        self.cleanup_service.register_active_job(job.id)

        def run():
            metadata = self.downloader.probe_local(video_path)
            frames = self.sampler.sample(video_path, video_id=job.id)
            return metadata, frames, self.detector.detect_slides(frames)

        return with_cleanup(run, lambda: self._cleanup(job, None, False))
