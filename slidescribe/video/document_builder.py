"""
Document Builder
=================
Renders detected slides and their OCR text into a document and saves it.

Supported formats:
  - **markdown**: title header, source details, one ``##`` section per slide
  - **txt**: the same layout as plain text
  - **json**: machine-readable dump of metadata and slides

Slides without recognised text are kept (so time ranges stay complete) and
rendered as "_No text detected_".
"""

import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from slidescribe.errors import FileSystemError, ValidationError
from slidescribe.video.downloader import VideoMetadata
from slidescribe.video.slide_detector import Slide

logger = logging.getLogger(__name__)

NO_TEXT_PLACEHOLDER = "_No text detected_"

FORMAT_EXTENSIONS = {
    "markdown": "md",
    "txt": "txt",
    "json": "json",
}


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_timestamp(seconds: float) -> str:
    """``75.4 -> "01:15"``; ``3725 -> "1:02:05"``."""
    total = int(max(0.0, seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_duration(seconds: float) -> str:
    """Human-readable duration: ``"1h 2m 5s"``, ``"4m 10s"``, ``"9s"``."""
    total = int(max(0.0, seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def _safe_filename(name: str, max_length: int = 60) -> str:
    slug = re.sub(r"[^\w\s-]", "", name).strip().lower()
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug[:max_length].strip("-") or "video"


def _make_doc_id(video_id: str) -> str:
    """Deterministic document ID from video identifier."""
    return "slides_" + hashlib.sha256(video_id.encode()).hexdigest()[:12]


# ---------------------------------------------------------------------------
# Document schema
# ---------------------------------------------------------------------------

@dataclass
class SlideSection:
    """One slide as it appears in the document."""
    index: int
    start_time: float
    end_time: float
    text: str = ""
    confidence: float = 0.0
    frame_count: int = 0

    @property
    def time_range(self) -> str:
        return f"{format_timestamp(self.start_time)} - {format_timestamp(self.end_time)}"


@dataclass
class SlideDocument:
    """A complete rendered-ready document for one video."""
    doc_id: str
    metadata: VideoMetadata
    sections: List[SlideSection] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Concatenated slide text, blank-line separated."""
        return "\n\n".join(s.text for s in self.sections if s.text)

    def to_dict(self) -> Dict:
        return {
            "doc_id": self.doc_id,
            "title": self.metadata.title,
            "url": self.metadata.url,
            "video_id": self.metadata.video_id,
            "duration": self.metadata.duration,
            "resolution": self.metadata.resolution,
            "slide_count": len(self.sections),
            "slides": [
                {
                    "index": s.index,
                    "start_time": s.start_time,
                    "end_time": s.end_time,
                    "text": s.text,
                    "confidence": s.confidence,
                    "frame_count": s.frame_count,
                }
                for s in self.sections
            ],
        }

    def to_markdown(self) -> str:
        lines = [
            f"# {self.metadata.title}",
            "",
        ]
        if self.metadata.url:
            lines.append(f"- **Source:** {self.metadata.url}")
        lines.extend([
            f"- **Duration:** {format_duration(self.metadata.duration)}",
            f"- **Slides:** {len(self.sections)}",
            "",
            "---",
            "",
        ])
        for s in self.sections:
            lines.extend([
                f"## Slide {s.index} ({s.time_range})",
                "",
                s.text or NO_TEXT_PLACEHOLDER,
                "",
            ])
        return "\n".join(lines).rstrip() + "\n"

    def to_text(self) -> str:
        title = self.metadata.title
        lines = [title, "=" * len(title), ""]
        if self.metadata.url:
            lines.append(f"Source: {self.metadata.url}")
        lines.extend([
            f"Duration: {format_duration(self.metadata.duration)}",
            f"Slides: {len(self.sections)}",
            "",
        ])
        for s in self.sections:
            lines.extend([
                f"[Slide {s.index}] {s.time_range}",
                s.text or NO_TEXT_PLACEHOLDER,
                "",
            ])
        return "\n".join(lines).rstrip() + "\n"

    def render(self, fmt: str) -> str:
        if fmt == "markdown":
            return self.to_markdown()
        if fmt == "txt":
            return self.to_text()
        if fmt == "json":
            return json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"
        raise ValidationError(
            f'Invalid output format "{fmt}". Allowed: {", ".join(FORMAT_EXTENSIONS)}'
        )


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class DocumentBuilder:
    """Turn ``Slide`` objects into a ``SlideDocument`` and write it to disk.

    Usage::

        builder = DocumentBuilder(output_dir="output", output_format="markdown")
        doc = builder.build(metadata, slides)
        path = builder.save(doc)

    Parameters
    ----------
    output_dir : str
        Directory for generated documents (created on save).
    output_format : str
        ``"markdown"``, ``"txt"`` or ``"json"``.
    """

    def __init__(self, output_dir: str, output_format: str = "markdown"):
        if output_format not in FORMAT_EXTENSIONS:
            raise ValidationError(
                f'Invalid output format "{output_format}". '
                f'Allowed: {", ".join(FORMAT_EXTENSIONS)}'
            )
        self.output_dir = Path(output_dir)
        self.output_format = output_format

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self, metadata: VideoMetadata, slides: List[Slide]) -> SlideDocument:
        sections = [
            SlideSection(
                index=i,
                start_time=round(slide.start_time, 2),
                end_time=round(slide.end_time, 2),
                text=slide.ocr_text.strip(),
                confidence=round(slide.ocr_confidence, 4),
                frame_count=slide.frame_count,
            )
            for i, slide in enumerate(slides, start=1)
        ]
        doc = SlideDocument(
            doc_id=_make_doc_id(metadata.video_id or metadata.title),
            metadata=metadata,
            sections=sections,
        )
        with_text = sum(1 for s in sections if s.text)
        logger.info(
            "Built document %s (%d slides, %d with text)",
            doc.doc_id, len(sections), with_text,
        )
        return doc

    def output_path(self, doc: SlideDocument, fmt: Optional[str] = None) -> Path:
        fmt = fmt or self.output_format
        stem = _safe_filename(doc.metadata.title)
        if doc.metadata.video_id:
            stem = f"{stem}-{doc.metadata.video_id}"
        return self.output_dir / f"{stem}.{FORMAT_EXTENSIONS[fmt]}"

    def save(self, doc: SlideDocument, fmt: Optional[str] = None) -> str:
        """Render *doc* and write it.  Returns the path of the written file."""
        fmt = fmt or self.output_format
        content = doc.render(fmt)
        out_path = self.output_path(doc, fmt)
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            with open(out_path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as exc:
            raise FileSystemError(f"Failed to write document {out_path}: {exc}", str(out_path))
        logger.info("Saved %s document: %s", fmt, out_path)
        return str(out_path)
