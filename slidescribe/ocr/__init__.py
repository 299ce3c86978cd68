"""
OCR subpackage -- text extraction from slide images.

    TesseractEngine     -- pytesseract-backed recognition with confidences
    text_postprocessor  -- clean-up of raw OCR output
"""

from slidescribe.ocr.tesseract_engine import OCRResult, TesseractEngine
