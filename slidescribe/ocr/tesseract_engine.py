"""
Tesseract OCR Engine
=====================
Recognises text on slide images using Tesseract via the pytesseract
Python binding.

Prerequisites:
    1. System package:   sudo apt install tesseract-ocr
    2. Python binding:   pip install pytesseract pillow

Design notes:
    - Images are preprocessed with Pillow (greyscale, contrast boost,
      autocontrast normalisation) before recognition.
    - Word-level results from ``image_to_data`` are filtered by confidence
      and reassembled into lines by position, so the engine reports a real
      mean confidence rather than a guess.
    - Failures raise ``OCRError``; callers decide whether that is fatal.
      ``SlideOCR`` treats it as "no text" for that slide.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from slidescribe.errors import DependencyError, OCRError
from slidescribe.ocr.text_postprocessor import (
    TextBlock,
    clean_ocr_output,
    extract_confident_text,
    merge_text_blocks,
)

logger = logging.getLogger(__name__)

# Guard imports -- pytesseract and PIL may not be installed yet.
try:
    import pytesseract
    TESSERACT_AVAILABLE = True
except ImportError:
    TESSERACT_AVAILABLE = False

try:
    from PIL import Image, ImageEnhance, ImageOps
    PIL_AVAILABLE = True
except ImportError:
    PIL_AVAILABLE = False

# Contrast enhancement factor (1.0 = unchanged).
CONTRAST_FACTOR = 1.3


@dataclass
class OCRResult:
    """Recognised text of one image and its mean word confidence (0-1)."""
    text: str
    confidence: float
    word_count: int = 0


class TesseractEngine:
    """
    Tesseract-based OCR for slide images.

    Usage::

        engine = TesseractEngine(lang="eng")
        result = engine.recognize("temp/frames/3f2a/frame-00004.png")
        print(result.text, result.confidence)
    """

    def __init__(
        self,
        lang: str = "eng",
        preprocess: bool = True,
        confidence_threshold: int = 40,
        psm: int = 3,
        oem: int = 3,
    ):
        """
        Args:
            lang                 : Tesseract language spec (e.g. "eng",
                                   "eng+deu").
            preprocess           : Apply greyscale/contrast preprocessing.
            confidence_threshold : Discard words with confidence below this
                                   value (0-100).
            psm                  : Page segmentation mode (0-13). Common:
                                   3 = Fully automatic (default)
                                   6 = Uniform block of text
                                   11 = Sparse text, find as much as possible
            oem                  : OCR engine mode (0-3, 3 = default).
        """
        if not TESSERACT_AVAILABLE:
            raise DependencyError(
                "pytesseract is required.  Install: pip install pytesseract  "
                "Also install the system binary: sudo apt install tesseract-ocr",
                dependency="pytesseract",
            )
        if not PIL_AVAILABLE:
            raise DependencyError(
                "Pillow is required.  Install: pip install pillow",
                dependency="Pillow",
            )

        self.lang = lang
        self.preprocess = preprocess
        self.confidence_threshold = confidence_threshold
        self.psm = psm
        self.oem = oem

    @property
    def config(self) -> str:
        return f"--psm {self.psm} --oem {self.oem}"

    # ------------------------------------------------------------------ #
    # Public API                                                          #
    # ------------------------------------------------------------------ #

    def recognize(self, image_path: str) -> OCRResult:
        """Recognise the text in *image_path*.

        Raises:
            OCRError: the image cannot be read or Tesseract fails.
        """
        img = self._load_image(image_path)
        if self.preprocess:
            img = self._preprocess(img)

        try:
            data = pytesseract.image_to_data(
                img, lang=self.lang, config=self.config,
                output_type=pytesseract.Output.DICT,
            )
        except (pytesseract.TesseractError, OSError, RuntimeError) as exc:
            raise OCRError(f"Tesseract failed for {image_path}: {exc}", image_path)

        words = extract_confident_text(self._word_blocks(data), self.confidence_threshold)
        if not words:
            logger.debug("No confident text in %s", image_path)
            return OCRResult(text="", confidence=0.0)

        text = clean_ocr_output(merge_text_blocks(words))
        confidence = sum(w.confidence for w in words) / len(words) / 100.0
        logger.debug(
            "OCR for %s: %d words (threshold=%d, mean confidence %.2f)",
            image_path, len(words), self.confidence_threshold, confidence,
        )
        return OCRResult(text=text, confidence=round(confidence, 4), word_count=len(words))

    def extract_text(self, image_path: str) -> str:
        """Plain-text convenience wrapper around ``recognize``."""
        return self.recognize(image_path).text

    # ------------------------------------------------------------------ #
    # Internal helpers                                                    #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _word_blocks(data: dict) -> List[TextBlock]:
        """Convert an ``image_to_data`` dict into word blocks.

        Layout rows (page/block/line markers) carry confidence -1 and empty
        text; they are skipped.
        """
        blocks: List[TextBlock] = []
        for i, raw in enumerate(data.get("text", [])):
            word = (raw or "").strip()
            try:
                conf = float(data["conf"][i])
            except (TypeError, ValueError):
                continue
            if not word or conf < 0:
                continue
            blocks.append(TextBlock(
                text=word,
                confidence=conf,
                x=int(data["left"][i]),
                y=int(data["top"][i]),
            ))
        return blocks

    @staticmethod
    def _load_image(image_path: str) -> "Image.Image":
        p = Path(image_path)
        if not p.exists():
            raise OCRError(f"Image not found: {image_path}", str(image_path))
        try:
            with Image.open(p) as img:
                img.load()
                return img.copy()
        except OSError as exc:
            raise OCRError(f"Failed to open image {image_path}: {exc}", str(image_path))

    @staticmethod
    def _preprocess(img: "Image.Image") -> "Image.Image":
        """
        Steps:
            1. Convert to greyscale
            2. Boost contrast
            3. Stretch the histogram to the full 0-255 range
        """
        gray = img.convert("L")
        boosted = ImageEnhance.Contrast(gray).enhance(CONTRAST_FACTOR)
        return ImageOps.autocontrast(boosted)
