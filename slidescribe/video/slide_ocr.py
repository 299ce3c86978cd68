"""
Slide OCR
==========
Runs OCR on one representative frame per slide and attaches the text to
the slide.

Slides are independent, so recognition fans out over a bounded thread
pool (Tesseract runs as a subprocess and releases the GIL).  Results are
written back to each slide by index on the calling thread.  A failure on
one slide is logged and leaves that slide with empty text; the others are
unaffected.

Dependencies:
    System: sudo apt install tesseract-ocr  (via TesseractEngine)
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence

from tqdm import tqdm

from slidescribe.ocr.tesseract_engine import OCRResult
from slidescribe.video.slide_detector import Slide, select_representative_frame

logger = logging.getLogger(__name__)


class SlideOCR:
    """Attach OCR text to slides.

    Usage::

        ocr = SlideOCR(TesseractEngine(lang="eng"), max_workers=4)
        ocr.process_slides(slides)
        for s in slides:
            print(f"[{s.start_time:.1f}s] {s.ocr_text[:80]}")

    Parameters
    ----------
    engine
        Any object with ``recognize(image_path) -> OCRResult``.
    max_workers : int
        Maximum number of slides recognised concurrently (default: 4).
    """

    def __init__(self, engine, max_workers: int = 4):
        self.engine = engine
        self.max_workers = max(1, max_workers)

    def _recognize(self, slide: Slide) -> OCRResult:
        frame = select_representative_frame(slide)
        return self.engine.recognize(frame.frame_path)

    def process_slides(
        self,
        slides: Sequence[Slide],
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> List[Slide]:
        """Recognise every slide in place and return them in input order.

        Slides that already carry OCR text are left untouched, so calling
        this again on the same list only fills in the missing ones.
        ``on_progress`` receives the completed fraction in (0, 1].
        """
        pending = [index for index, slide in enumerate(slides) if not slide.has_ocr]
        if len(pending) < len(slides):
            logger.debug("Skipping %d slides that already have OCR text",
                         len(slides) - len(pending))
        if not pending:
            return list(slides)

        logger.info("Running OCR on %d slides (%d workers)", len(pending), self.max_workers)
        failures = 0
        done = 0

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {pool.submit(self._recognize, slides[index]): index
                       for index in pending}
            for future in tqdm(as_completed(futures), total=len(futures),
                               desc="OCR", unit="slide", leave=False):
                index = futures[future]
                slide = slides[index]
                try:
                    result = future.result()
                except Exception as exc:
                    failures += 1
                    logger.error("OCR failed for slide at %.1fs: %s", slide.start_time, exc)
                    slide.attach_ocr("", 0.0)
                else:
                    slide.attach_ocr(result.text, result.confidence)
                    logger.debug("OCR for slide at %.1fs: %s",
                                 slide.start_time, result.text[:50])

                done += 1
                if on_progress is not None:
                    on_progress(done / len(pending))

        if failures:
            logger.warning("OCR failed for %d of %d slides", failures, len(pending))
        return list(slides)
