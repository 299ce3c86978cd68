"""
Slidescribe -- root package.

Turns slide-based videos (lectures, talks, screen recordings) into text
documents:
    video      -> acquire, sample frames, detect slides, OCR slides, render
    ocr        -> Tesseract engine and OCR text clean-up
    pipeline   -> end-to-end orchestration with progress events
    cleanup    -> temp-directory housekeeping
    config     -> YAML + environment settings
"""

__version__ = "0.1.0"
