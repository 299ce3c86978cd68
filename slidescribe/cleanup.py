"""
Temp Cleanup
=============
Removes stale downloads and frame directories from the temp directory.

Files belonging to a running job are protected: the pipeline registers its
job id with the service while it runs, and any entry whose name contains an
active job id is skipped.  The registry is an explicit set owned by the
service instance.

Layout handled::

    temp/
        <job_id>.mp4
        frames/
            <job_id>/frame-00000.png ...

``frames/`` itself is never removed; its children are treated like
top-level entries.

Usage::

    service = CleanupService("temp")
    result = service.clean_old_files(max_age_hours=24, dry_run=True)
    print(result.files_deleted, format_bytes(result.bytes_freed))
"""

import fnmatch
import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

# Sub-directories whose children are cleaned, but which are kept themselves.
CONTAINER_DIRS = ("frames",)

STARTUP_MAX_AGE_HOURS = 48


@dataclass
class CleanupResult:
    files_deleted: int = 0
    directories_deleted: int = 0
    bytes_freed: int = 0
    errors: List[str] = field(default_factory=list)

    def merge(self, other: "CleanupResult") -> None:
        self.files_deleted += other.files_deleted
        self.directories_deleted += other.directories_deleted
        self.bytes_freed += other.bytes_freed
        self.errors.extend(other.errors)


def format_bytes(num_bytes: int) -> str:
    """``0 -> "0 B"``, ``1536 -> "1.5 KB"``, ``5 * 1024**3 -> "5.0 GB"``."""
    size = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            if unit == "B":
                return f"{int(size)} B"
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def _tree_size(path: Path) -> Tuple[int, int, int]:
    """Return ``(bytes, files, directories)`` under *path* (inclusive)."""
    total_bytes = files = dirs = 0
    for root, dirnames, filenames in os.walk(path):
        dirs += len(dirnames)
        for name in filenames:
            try:
                total_bytes += os.path.getsize(os.path.join(root, name))
            except OSError:
                continue
            files += 1
    return total_bytes, files, dirs + 1


class CleanupService:
    """Age-based cleanup of the temp directory with active-job protection.

    Parameters
    ----------
    temp_dir : str
        The directory to manage.
    active_jobs : set of str, optional
        Shared registry of running job ids.  A new empty set by default.
    """

    def __init__(self, temp_dir: str, active_jobs: Optional[Set[str]] = None):
        self.temp_dir = Path(temp_dir)
        self.active_jobs: Set[str] = active_jobs if active_jobs is not None else set()

    # ------------------------------------------------------------------
    # Active jobs
    # ------------------------------------------------------------------

    def register_active_job(self, job_id: str) -> None:
        self.active_jobs.add(job_id)
        logger.debug("Registered active job: %s", job_id)

    def unregister_job(self, job_id: str) -> None:
        self.active_jobs.discard(job_id)
        logger.debug("Unregistered job: %s", job_id)

    def is_active_job_file(self, name: str) -> bool:
        return any(job_id in name for job_id in self.active_jobs)

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def _entries(self) -> Iterable[Path]:
        for entry in sorted(self.temp_dir.iterdir()):
            if entry.is_dir() and entry.name in CONTAINER_DIRS:
                yield from sorted(entry.iterdir())
            else:
                yield entry

    @staticmethod
    def _is_excluded(name: str, exclude_patterns: Iterable[str]) -> bool:
        return any(fnmatch.fnmatchcase(name, pattern) for pattern in exclude_patterns)

    def _delete(self, path: Path, result: CleanupResult) -> None:
        if path.is_dir():
            size, files, dirs = _tree_size(path)
            shutil.rmtree(path)
            result.bytes_freed += size
            result.files_deleted += files
            result.directories_deleted += dirs
            logger.debug("Deleted directory: %s", path)
        else:
            size = path.stat().st_size
            path.unlink()
            result.bytes_freed += size
            result.files_deleted += 1
            logger.debug("Deleted file: %s", path)

    def clean_old_files(
        self,
        max_age_hours: float = 24,
        exclude_patterns: Iterable[str] = (),
        dry_run: bool = False,
        now: Optional[float] = None,
    ) -> CleanupResult:
        """Delete temp entries older than *max_age_hours*.

        Errors on individual entries are collected in ``result.errors`` and
        do not stop the sweep.
        """
        result = CleanupResult()
        exclude_patterns = list(exclude_patterns)
        now = time.time() if now is None else now
        max_age_seconds = max_age_hours * 3600

        if not self.temp_dir.exists():
            logger.debug("Temp directory does not exist: %s", self.temp_dir)
            return result

        for entry in self._entries():
            try:
                if self._is_excluded(entry.name, exclude_patterns):
                    logger.debug("Skipping excluded item: %s", entry.name)
                    continue
                if self.is_active_job_file(entry.name):
                    logger.debug("Skipping active job file: %s", entry.name)
                    continue
                age = now - entry.stat().st_mtime
                if age < max_age_seconds:
                    logger.debug("Skipping recent item: %s (age: %d minutes)",
                                 entry.name, round(age / 60))
                    continue

                if dry_run:
                    logger.info("[DRY RUN] Would delete: %s", entry)
                else:
                    self._delete(entry, result)
            except OSError as exc:
                message = f"Failed to clean {entry}: {exc}"
                logger.error(message)
                result.errors.append(message)

        logger.info(
            "Cleanup completed: %d files, %d directories, %s freed",
            result.files_deleted, result.directories_deleted, format_bytes(result.bytes_freed),
        )
        return result

    def clean_job_files(self, job_id: str) -> CleanupResult:
        """Delete every temp entry whose name contains *job_id*."""
        result = CleanupResult()
        if not self.temp_dir.exists():
            return result
        for entry in self._entries():
            if job_id not in entry.name:
                continue
            try:
                self._delete(entry, result)
            except OSError as exc:
                message = f"Failed to clean {entry}: {exc}"
                logger.error(message)
                result.errors.append(message)
        logger.info("Cleaned up files for job: %s", job_id)
        return result

    def clean_all(self) -> CleanupResult:
        """Delete everything not owned by an active job, regardless of age."""
        return self.clean_old_files(max_age_hours=0)

    def run_startup_cleanup(self) -> CleanupResult:
        logger.info("Running startup cleanup...")
        result = self.clean_old_files(max_age_hours=STARTUP_MAX_AGE_HOURS)
        if result.errors:
            logger.warning("Startup cleanup completed with %d errors", len(result.errors))
        return result

    def get_disk_usage(self) -> Tuple[int, int]:
        """Return ``(total_bytes, file_count)`` for the temp directory."""
        if not self.temp_dir.exists():
            return 0, 0
        total_bytes, files, _ = _tree_size(self.temp_dir)
        return total_bytes, files
