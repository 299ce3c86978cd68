"""
Settings
=========
Loads run configuration from ``configs/settings.yaml`` and environment
variables into a small tree of dataclasses.

Configuration sources (highest precedence first):
    1. CLI flags (applied by ``cli.py`` via ``Settings.with_overrides``)
    2. Environment variables (``SLIDESCRIBE_*``)
    3. ``configs/settings.yaml``
    4. Dataclass defaults

Environment variable mapping:
    SLIDESCRIBE_TEMP_DIR            -> paths.temp_dir
    SLIDESCRIBE_OUTPUT_DIR          -> paths.output_dir
    SLIDESCRIBE_FRAME_INTERVAL      -> processing.frame_interval
    SLIDESCRIBE_OUTPUT_FORMAT       -> processing.output_format
    SLIDESCRIBE_MAX_VIDEO_DURATION  -> processing.max_video_duration
    SLIDESCRIBE_MAX_RETRY_ATTEMPTS  -> processing.max_retry_attempts
    SLIDESCRIBE_SLIDE_THRESHOLD     -> detection.slide_detection_threshold
    SLIDESCRIBE_OCR_LANGUAGE        -> ocr.language
    SLIDESCRIBE_MAX_CONCURRENT_OCR  -> ocr.max_concurrent
    SLIDESCRIBE_LOG_LEVEL           -> logging.level

Every value is validated once here, so the detection core can trust what
it receives.
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from slidescribe.errors import ValidationError
from slidescribe import validators
from slidescribe.video.boundaries import THRESHOLD_MODES
from slidescribe.video.similarity import SCORERS

logger = logging.getLogger(__name__)

# Path to the project settings file
SETTINGS_PATH = Path(__file__).resolve().parent.parent / "configs" / "settings.yaml"

SCORER_NAMES = tuple(sorted(SCORERS))
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_ENV_OVERRIDES = [
    ("SLIDESCRIBE_TEMP_DIR", "paths", "temp_dir", str),
    ("SLIDESCRIBE_OUTPUT_DIR", "paths", "output_dir", str),
    ("SLIDESCRIBE_FRAME_INTERVAL", "processing", "frame_interval", float),
    ("SLIDESCRIBE_OUTPUT_FORMAT", "processing", "output_format", str),
    ("SLIDESCRIBE_MAX_VIDEO_DURATION", "processing", "max_video_duration", float),
    ("SLIDESCRIBE_MAX_RETRY_ATTEMPTS", "processing", "max_retry_attempts", int),
    ("SLIDESCRIBE_SLIDE_THRESHOLD", "detection", "slide_detection_threshold", float),
    ("SLIDESCRIBE_OCR_LANGUAGE", "ocr", "language", str),
    ("SLIDESCRIBE_MAX_CONCURRENT_OCR", "ocr", "max_concurrent", int),
    ("SLIDESCRIBE_LOG_LEVEL", "logging", "level", str),
]


# ---------------------------------------------------------------------------
# Configuration sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PathsConfig:
    temp_dir: str = "./temp"
    output_dir: str = "./output"


@dataclass(frozen=True)
class ProcessingConfig:
    frame_interval: float = 2.0
    output_format: str = "markdown"
    max_video_duration: float = 600.0
    max_retry_attempts: int = 3


@dataclass(frozen=True)
class DetectionConfig:
    """Slide detection knobs.

    ``slide_detection_threshold`` is the base sensitivity (smaller = more
    slides).  ``threshold_mode`` picks which of the four derived thresholds
    drives detection; ``very_aggressive`` suits decks with many slide changes.
    """
    slide_detection_threshold: float = 0.15
    min_slide_frames: int = 1
    threshold_mode: str = "very_aggressive"
    scorer: str = "weighted"


@dataclass(frozen=True)
class OCRConfig:
    language: str = "eng"
    psm: int = 3
    oem: int = 3
    confidence_threshold: int = 40
    max_concurrent: int = 4


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class Settings:
    paths: PathsConfig = field(default_factory=PathsConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def with_overrides(self, **overrides: Any) -> "Settings":
        """Return a copy with ``section__key=value`` overrides applied.

        ``None`` values are ignored so argparse defaults can be passed
        straight through.  The result is re-validated.
        """
        sections: Dict[str, Dict[str, Any]] = {}
        for name, value in overrides.items():
            if value is None:
                continue
            section, _, key = name.partition("__")
            if not key:
                raise ValueError(f"Override must be 'section__key', got {name!r}")
            sections.setdefault(section, {})[key] = value

        updated = self
        for section, values in sections.items():
            updated = replace(updated, **{section: replace(getattr(updated, section), **values)})
        validate_settings(updated)
        return updated


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _load_yaml(config_path: Path) -> dict:
    if not config_path.exists():
        logger.debug("Settings file not found: %s", config_path)
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ValidationError(f"Failed to read settings file {config_path}: {exc}")
    if not isinstance(data, dict):
        raise ValidationError(f"Settings file {config_path} must contain a mapping")
    return data


def _apply_env_overrides(config_data: dict, environ) -> None:
    for env_name, section, key, cast in _ENV_OVERRIDES:
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            value = cast(raw)
        except ValueError:
            raise ValidationError(f"{env_name} has an invalid value: {raw!r}")
        config_data.setdefault(section, {})[key] = value


def _build_section(cls, data: Optional[dict], section: str):
    data = data or {}
    if not isinstance(data, dict):
        raise ValidationError(f"Settings section '{section}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown settings in '%s': %s", section, ", ".join(unknown))
    return cls(**{k: v for k, v in data.items() if k in known})


def validate_settings(settings: Settings) -> None:
    """Validate every field and raise one ``ValidationError`` listing all issues."""
    issues: List[str] = []

    def check(fn, *args):
        try:
            fn(*args)
        except ValidationError as exc:
            issues.append(exc.message)

    check(validators.validate_interval, settings.processing.frame_interval)
    check(validators.validate_output_format, settings.processing.output_format)
    check(validators.validate_positive_int, settings.processing.max_retry_attempts,
          "max_retry_attempts")
    if float(settings.processing.max_video_duration) <= 0:
        issues.append("max_video_duration must be positive")

    check(validators.validate_threshold, settings.detection.slide_detection_threshold)
    check(validators.validate_min_slide_frames, settings.detection.min_slide_frames)
    if settings.detection.threshold_mode not in THRESHOLD_MODES:
        issues.append(
            f"threshold_mode must be one of {', '.join(THRESHOLD_MODES)}, "
            f"got {settings.detection.threshold_mode!r}"
        )
    if settings.detection.scorer not in SCORER_NAMES:
        issues.append(
            f"scorer must be one of {', '.join(SCORER_NAMES)}, "
            f"got {settings.detection.scorer!r}"
        )

    check(validators.validate_language, settings.ocr.language)
    check(validators.validate_positive_int, settings.ocr.max_concurrent, "max_concurrent")
    if not 0 <= int(settings.ocr.confidence_threshold) <= 100:
        issues.append("confidence_threshold must be between 0 and 100")
    if not 0 <= int(settings.ocr.psm) <= 13:
        issues.append("psm must be between 0 and 13")
    if not 0 <= int(settings.ocr.oem) <= 3:
        issues.append("oem must be between 0 and 3")

    if str(settings.logging.level).upper() not in LOG_LEVELS:
        issues.append(f"Unknown log level {settings.logging.level!r}")

    if issues:
        if len(issues) == 1:
            raise ValidationError(f"Invalid setting: {issues[0]}")
        raise ValidationError("Invalid settings:\n  - " + "\n  - ".join(issues))


def load_settings(config_path: Optional[str] = None, environ=None) -> Settings:
    """Load and validate settings.

    Args:
        config_path : Explicit YAML file.  Defaults to ``configs/settings.yaml``
                      in the project root.
        environ     : Mapping used for env overrides (defaults to ``os.environ``).

    Returns:
        Settings
    """
    path = Path(config_path) if config_path else SETTINGS_PATH
    if config_path and not path.exists():
        raise ValidationError(f"Settings file not found: {config_path}")

    config_data = _load_yaml(path)
    _apply_env_overrides(config_data, os.environ if environ is None else environ)

    settings = Settings(
        paths=_build_section(PathsConfig, config_data.get("paths"), "paths"),
        processing=_build_section(ProcessingConfig, config_data.get("processing"), "processing"),
        detection=_build_section(DetectionConfig, config_data.get("detection"), "detection"),
        ocr=_build_section(OCRConfig, config_data.get("ocr"), "ocr"),
        logging=_build_section(LoggingConfig, config_data.get("logging"), "logging"),
    )
    validate_settings(settings)
    logger.debug("Loaded settings from %s", path)
    return settings
