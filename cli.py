"""
Slidescribe -- Command Line Interface
======================================
Entry point for all user-facing operations.

Commands:
  convert  -- Turn a YouTube URL or local video into a slide document
  detect   -- Run slide detection only and print slide time ranges
  clean    -- Remove stale files from the temp directory
  check    -- Verify Python packages and external tools

Usage examples:
  python cli.py convert "https://www.youtube.com/watch?v=aqz-KE-bpKQ"
  python cli.py convert lecture.mp4 --format txt --interval 5
  python cli.py detect lecture.mp4 --threshold 0.1
  python cli.py clean --max-age-hours 12 --dry-run
  python cli.py check

Design notes:
  - Uses argparse from the standard library.
  - Each command maps to a handler function that orchestrates the
    relevant pipeline modules.
  - Settings come from configs/settings.yaml and SLIDESCRIBE_* environment
    variables; command-line flags override both.
  - Logging is configured at startup from --verbose or the configured level.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# ---------------------------------------------------------------------------
# Project root (resolve regardless of where the script is invoked from)
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(PROJECT_ROOT))

from slidescribe import __version__  # noqa: E402
from slidescribe.config import Settings, load_settings  # noqa: E402
from slidescribe.errors import SlidescribeError, ValidationError  # noqa: E402
from slidescribe import validators  # noqa: E402


def setup_logging(verbose: bool = False, level: str = "INFO") -> None:
    """Configure root logger."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Validate command-line options and layer them over *settings*."""
    def opt(name, validate):
        value = getattr(args, name, None)
        return None if value is None else validate(value)

    return settings.with_overrides(
        paths__temp_dir=getattr(args, "temp", None),
        paths__output_dir=getattr(args, "output", None),
        processing__frame_interval=opt("interval", validators.validate_interval),
        processing__output_format=opt("format", validators.validate_output_format),
        detection__slide_detection_threshold=opt("threshold", validators.validate_threshold),
        detection__min_slide_frames=opt("min_frames", validators.validate_min_slide_frames),
        ocr__language=opt("language", validators.validate_language),
    )


# ===================================================================
# Command handlers
# ===================================================================

def cmd_convert(args: argparse.Namespace, settings: Settings) -> None:
    """
    Full pipeline: acquire -> sample frames -> detect slides -> OCR ->
    document.
    """
    from slidescribe.pipeline import VideoProcessor
    from slidescribe.video.document_builder import format_duration

    source = args.source
    if validators.is_youtube_url(source):
        source, _ = validators.validate_youtube_url(source)
    elif source.lower().startswith(("http://", "https://")):
        # Surface the specific URL problem.
        validators.validate_youtube_url(source)
    elif not Path(source).exists():
        raise ValidationError(f"Video file not found: {source}")

    settings = _apply_overrides(settings, args)
    processor = VideoProcessor(settings, keep_temp=args.keep_temp)

    last_status = {"value": None}

    def on_progress(event) -> None:
        if event.status != last_status["value"]:
            last_status["value"] = event.status
            print(f"  [{event.progress:5.1f}%] {event.status.value}")

    processor.add_listener(on_progress)

    print(f"\n{'='*60}")
    print(f"Converting: {source}")
    print(f"{'='*60}")
    result = processor.process(source)

    print(f"\nTitle:            {result.metadata.title}")
    print(f"Duration:         {format_duration(result.metadata.duration)}")
    print(f"Slides detected:  {len(result.slides)}")
    print(f"Processing time:  {result.processing_time:.2f}s")
    print(f"Output file:      {result.output_path}")

    with_text = [s for s in result.slides if s.ocr_text]
    if with_text:
        print("\nSample extracted text:")
        for i, slide in enumerate(with_text[:3], start=1):
            snippet = slide.ocr_text[:100].replace("\n", " ")
            print(f"  Slide {i}: {snippet}...")
    print(f"\n{'='*60}")


def cmd_detect(args: argparse.Namespace, settings: Settings) -> None:
    """Detect slides in a local video without OCR."""
    from slidescribe.pipeline import VideoProcessor
    from slidescribe.video.document_builder import format_timestamp

    if not Path(args.video).exists():
        raise ValidationError(f"Video file not found: {args.video}")

    settings = _apply_overrides(settings, args)
    processor = VideoProcessor(settings)
    metadata, frames, slides = processor.detect(args.video)

    print(f"\n{metadata.title}: {len(frames)} frames sampled, {len(slides)} slides\n")
    for i, slide in enumerate(slides, start=1):
        print(f"  Slide {i:3d}  {format_timestamp(slide.start_time)} - "
              f"{format_timestamp(slide.end_time)}  ({slide.frame_count} frames)")


def cmd_clean(args: argparse.Namespace, settings: Settings) -> None:
    """Remove stale downloads and frame directories."""
    from slidescribe.cleanup import CleanupService, format_bytes

    temp_dir = args.temp or settings.paths.temp_dir
    service = CleanupService(temp_dir)

    total_bytes, file_count = service.get_disk_usage()
    print(f"Temp directory: {temp_dir} ({file_count} files, {format_bytes(total_bytes)})")

    if args.all:
        result = service.clean_old_files(max_age_hours=0, dry_run=args.dry_run)
    else:
        result = service.clean_old_files(
            max_age_hours=args.max_age_hours,
            exclude_patterns=args.exclude or [],
            dry_run=args.dry_run,
        )

    prefix = "[DRY RUN] " if args.dry_run else ""
    print(f"{prefix}Deleted {result.files_deleted} files, "
          f"{result.directories_deleted} directories, "
          f"freed {format_bytes(result.bytes_freed)}")
    for error in result.errors:
        print(f"  ERROR: {error}")
    if result.errors:
        raise SlidescribeError(f"Cleanup finished with {len(result.errors)} errors")


def cmd_check(args: argparse.Namespace, settings: Settings) -> None:
    """Report installed packages and external tools."""
    print(f"\n{'='*60}")
    print("Environment check")
    print(f"{'='*60}\n")

    missing_required = 0
    for status in validators.check_environment():
        if status.found and not status.error:
            state = "OK"
        elif status.required:
            state = "MISSING" if not status.found else "TOO OLD"
            missing_required += 1
        else:
            state = "optional, not found" if not status.found else "optional, too old"
        version = f" ({status.version})" if status.version else ""
        print(f"  {status.name:12s} {state}{version}")
        if status.error:
            print(f"               {status.error}")

    print(f"\n{'='*60}")
    if missing_required:
        raise ValidationError(f"{missing_required} required dependencies missing")


# ===================================================================
# Argument parser
# ===================================================================

def _add_detection_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-i", "--interval",
        type=float,
        default=None,
        help="Frame extraction interval in seconds (default: from settings, 2)",
    )
    parser.add_argument(
        "-t", "--threshold",
        type=float,
        default=None,
        help="Slide detection sensitivity in (0, 1); smaller finds more slides",
    )
    parser.add_argument(
        "--min-frames",
        type=int,
        default=None,
        dest="min_frames",
        help="Minimum frames per slide (default: 1)",
    )
    parser.add_argument(
        "--temp",
        type=str,
        default=None,
        help="Temporary directory (default: ./temp)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slidescribe",
        description="Convert slide-based videos into text documents.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Settings file (default: configs/settings.yaml)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # -- convert --
    p_convert = subparsers.add_parser(
        "convert",
        help="Convert a YouTube video or local file into a document",
    )
    p_convert.add_argument(
        "source",
        type=str,
        help="YouTube URL or path to a local video file",
    )
    _add_detection_options(p_convert)
    p_convert.add_argument(
        "-f", "--format",
        type=str,
        default=None,
        help="Output format: markdown, txt or json (default: markdown)",
    )
    p_convert.add_argument(
        "-l", "--language",
        type=str,
        default=None,
        help="Tesseract language code, e.g. eng or eng+deu (default: eng)",
    )
    p_convert.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        help="Output directory (default: ./output)",
    )
    p_convert.add_argument(
        "--keep-temp",
        action="store_true",
        dest="keep_temp",
        help="Keep the downloaded video and extracted frames",
    )
    p_convert.set_defaults(func=cmd_convert)

    # -- detect --
    p_detect = subparsers.add_parser(
        "detect",
        help="Detect slides in a local video and print their time ranges",
    )
    p_detect.add_argument(
        "video",
        type=str,
        help="Path to a local video file",
    )
    _add_detection_options(p_detect)
    p_detect.set_defaults(func=cmd_detect)

    # -- clean --
    p_clean = subparsers.add_parser(
        "clean",
        help="Remove stale files from the temp directory",
    )
    p_clean.add_argument(
        "--max-age-hours",
        type=float,
        default=24.0,
        dest="max_age_hours",
        help="Delete entries older than this many hours (default: 24)",
    )
    p_clean.add_argument(
        "--exclude",
        action="append",
        default=None,
        help="Glob pattern to keep (repeatable)",
    )
    p_clean.add_argument(
        "--dry-run",
        action="store_true",
        dest="dry_run",
        help="Only report what would be deleted",
    )
    p_clean.add_argument(
        "--all",
        action="store_true",
        help="Delete everything regardless of age",
    )
    p_clean.add_argument(
        "--temp",
        type=str,
        default=None,
        help="Temporary directory (default: from settings)",
    )
    p_clean.set_defaults(func=cmd_clean)

    # -- check --
    p_check = subparsers.add_parser(
        "check",
        help="Verify Python packages and external tools",
    )
    p_check.set_defaults(func=cmd_check)

    return parser


# ===================================================================
# Main entry point
# ===================================================================

def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        settings = load_settings(args.config)
    except ValidationError as exc:
        setup_logging(verbose=args.verbose)
        logging.error("%s", exc)
        sys.exit(1)

    setup_logging(verbose=args.verbose, level=settings.logging.level)

    try:
        args.func(args, settings)
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        sys.exit(130)
    except SlidescribeError as exc:
        logging.error("%s", exc)
        sys.exit(1)
    except Exception as exc:
        logging.error("Command failed: %s", exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
