"""
Input Validation
=================
Validates user-facing inputs (YouTube URLs, CLI options, configuration
values) and the runtime environment (Tesseract / FFmpeg binaries, Python
packages) before anything reaches the pipeline.

All validators raise ``ValidationError`` with a human-readable message and
return the normalised value on success.
"""

import importlib
import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from slidescribe.errors import ValidationError

logger = logging.getLogger(__name__)

YOUTUBE_DOMAINS = {
    "m.youtube.com",
    "www.youtube-nocookie.com",
    "www.youtube.com",
    "youtu.be",
    "youtube-nocookie.com",
    "youtube.com",
}

# YouTube video IDs are exactly 11 characters of the base64url alphabet.
_VIDEO_ID_RE = re.compile(r"^[\w-]{11}$")

# Tesseract language codes: "eng", "chi_sim", "deu+eng", ...
_LANGUAGE_RE = re.compile(r"^[a-z]{3}(_[a-z]+)?(\+[a-z]{3}(_[a-z]+)?)*$")

OUTPUT_FORMATS = ("markdown", "txt", "json")

MIN_FRAME_INTERVAL = 1.0
MAX_FRAME_INTERVAL = 60.0


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------

def validate_youtube_url(url: str) -> Tuple[str, str]:
    """Validate a YouTube URL and extract its video ID.

    Accepts watch, short (youtu.be), embed and legacy ``/v/`` URLs.

    Returns:
        ``(normalised_url, video_id)``
    """
    if not url or not isinstance(url, str):
        raise ValidationError("URL must be a non-empty string")

    normalised = url.strip()
    if not re.match(r"^https?://", normalised, re.IGNORECASE):
        raise ValidationError("URL must start with http:// or https://")

    parsed = urlparse(normalised)
    hostname = (parsed.hostname or "").lower()
    if hostname not in YOUTUBE_DOMAINS:
        raise ValidationError(
            f'Invalid YouTube URL. Domain "{hostname}" is not a valid YouTube domain.'
        )

    video_id: Optional[str] = None
    if hostname == "youtu.be":
        video_id = parsed.path.lstrip("/").split("/")[0]
    else:
        query_ids = parse_qs(parsed.query).get("v")
        if query_ids:
            video_id = query_ids[0]
        else:
            match = re.search(r"/(?:embed|v)/([^/?#&]+)", parsed.path)
            if match:
                video_id = match.group(1)

    if not video_id or not _VIDEO_ID_RE.match(video_id):
        raise ValidationError(
            "Invalid YouTube video ID. Could not extract a valid 11-character "
            "video ID from the URL."
        )
    return normalised, video_id


def is_youtube_url(url: str) -> bool:
    try:
        validate_youtube_url(url)
        return True
    except ValidationError:
        return False


# ---------------------------------------------------------------------------
# Processing options
# ---------------------------------------------------------------------------

def validate_threshold(value) -> float:
    """Slide-detection sensitivity must lie strictly inside (0, 1)."""
    try:
        threshold = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Threshold must be a number, got {value!r}")
    if not 0.0 < threshold < 1.0:
        raise ValidationError(
            f"Threshold must be between 0 and 1 (exclusive), got {threshold}"
        )
    return threshold


def validate_interval(value) -> float:
    """Frame sampling interval in seconds, 1-60."""
    try:
        interval = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Interval must be a number, got {value!r}")
    if interval < MIN_FRAME_INTERVAL:
        raise ValidationError("Interval must be at least 1 second")
    if interval > MAX_FRAME_INTERVAL:
        raise ValidationError("Interval cannot exceed 60 seconds")
    return interval


def validate_min_slide_frames(value) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Minimum frames per slide must be an integer, got {value!r}")
    if count < 1:
        raise ValidationError("Minimum frames per slide must be at least 1")
    return count


def validate_output_format(value: str) -> str:
    fmt = (value or "").strip().lower()
    if fmt == "md":
        fmt = "markdown"
    if fmt not in OUTPUT_FORMATS:
        raise ValidationError(
            f'Invalid output format "{value}". Allowed: {", ".join(OUTPUT_FORMATS)}'
        )
    return fmt


def validate_language(code: str) -> str:
    """Validate a Tesseract language specification such as ``eng+deu``."""
    if not code or not _LANGUAGE_RE.match(code):
        raise ValidationError(
            f'Invalid OCR language "{code}". Use Tesseract codes, '
            f'e.g. "eng" or "eng+deu".'
        )
    return code


def validate_positive_int(value, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    if number < 1:
        raise ValidationError(f"{name} must be at least 1")
    return number


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------

def parse_version(version: str) -> Optional[Tuple[int, int, Optional[int]]]:
    """Parse ``"4.2.1"`` into ``(4, 2, 1)`` and ``"5.0"`` into ``(5, 0, None)``."""
    match = re.search(r"(\d+)\.(\d+)(?:\.(\d+))?", version or "")
    if not match:
        return None
    patch = int(match.group(3)) if match.group(3) is not None else None
    return int(match.group(1)), int(match.group(2)), patch


def compare_versions(version: str, min_version: str) -> bool:
    """Return True if *version* >= *min_version*.

    Handles semantic versions and yt-dlp style date versions
    (``YYYY.MM.DD``).
    """
    date_re = re.compile(r"^\d{4}\.\d{2}\.\d{2}$")
    if date_re.match(version or "") and date_re.match(min_version or ""):
        return version >= min_version

    v1 = parse_version(version)
    v2 = parse_version(min_version)
    if v1 is None or v2 is None:
        return False

    if v1[:2] != v2[:2]:
        return v1[:2] > v2[:2]
    if v1[2] is not None and v2[2] is not None:
        return v1[2] >= v2[2]
    return True


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

@dataclass
class ToolRequirement:
    name: str
    version_flag: str
    version_pattern: str
    min_version: str
    message: str
    required: bool = True


@dataclass
class ToolStatus:
    name: str
    found: bool
    version: Optional[str]
    error: Optional[str]
    required: bool


REQUIRED_TOOLS = [
    ToolRequirement(
        name="tesseract",
        version_flag="--version",
        version_pattern=r"tesseract v?(\d+\.\d+(?:\.\d+)?)",
        min_version="4.0",
        message="Tesseract 4.0+ is required for OCR (sudo apt install tesseract-ocr)",
    ),
    ToolRequirement(
        name="ffmpeg",
        version_flag="-version",
        version_pattern=r"ffmpeg version n?(\d+\.\d+)",
        min_version="4.0",
        message="FFmpeg 4.0+ is recommended for yt-dlp format merging",
        required=False,
    ),
]

# (module_name, display_name, required)
REQUIRED_PACKAGES = [
    ("numpy", "NumPy", True),
    ("cv2", "OpenCV", True),
    ("PIL", "Pillow", True),
    ("pytesseract", "pytesseract", True),
    ("yt_dlp", "yt-dlp", True),
    ("yaml", "PyYAML", True),
    ("tqdm", "tqdm", True),
    ("tenacity", "tenacity", True),
]


def _run_version_command(command: List[str]) -> Optional[str]:
    try:
        result = subprocess.run(command, capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("Version check failed for %s: %s", command[0], exc)
        return None
    # Older tesseract builds print their version to stderr.
    return (result.stdout or "") + (result.stderr or "")


def check_tool(tool: ToolRequirement) -> ToolStatus:
    """Check that *tool* is on PATH and new enough."""
    path = shutil.which(tool.name)
    if path is None:
        return ToolStatus(tool.name, False, None, tool.message, tool.required)

    output = _run_version_command([path, tool.version_flag]) or ""
    match = re.search(tool.version_pattern, output, re.IGNORECASE)
    version = match.group(1) if match else None
    if version is not None and not compare_versions(version, tool.min_version):
        return ToolStatus(
            tool.name, True, version,
            f"{tool.name} version {version} is too old. {tool.message}",
            tool.required,
        )
    return ToolStatus(tool.name, True, version, None, tool.required)


def check_package(module: str, display: str, required: bool) -> ToolStatus:
    """Try to import a package and report its version if available."""
    try:
        mod = importlib.import_module(module)
    except ImportError:
        return ToolStatus(display, False, None, f"pip install {display}", required)
    version = getattr(mod, "__version__", None)
    if version is None:
        version = getattr(getattr(mod, "version", None), "__version__", None)
    return ToolStatus(display, True, version, None, required)


def check_environment() -> List[ToolStatus]:
    statuses = [check_package(*spec) for spec in REQUIRED_PACKAGES]
    statuses.extend(check_tool(tool) for tool in REQUIRED_TOOLS)
    return statuses


def validate_environment() -> None:
    """Raise ``ValidationError`` listing every missing required dependency."""
    errors = [
        status.error
        for status in check_environment()
        if status.required and status.error
    ]
    if errors:
        raise ValidationError(
            "Environment validation failed:\n  - " + "\n  - ".join(errors)
        )
