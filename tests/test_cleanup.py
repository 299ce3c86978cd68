"""
Temp Cleanup Tests
==================
"""

import os
import time

import pytest

from slidescribe.cleanup import CleanupResult, CleanupService, format_bytes

HOUR = 3600


@pytest.fixture
def temp_dir(tmp_path):
    root = tmp_path / "temp"
    root.mkdir()
    return root


def touch(path, size=10, age_hours=0.0):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    mtime = time.time() - age_hours * HOUR
    os.utime(path, (mtime, mtime))
    return path


def age(path, hours):
    mtime = time.time() - hours * HOUR
    os.utime(path, (mtime, mtime))


class TestFormatBytes:

    def test_units(self):
        assert format_bytes(0) == "0 B"
        assert format_bytes(512) == "512 B"
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(5 * 1024 * 1024) == "5.0 MB"
        assert format_bytes(3 * 1024 ** 3) == "3.0 GB"


class TestCleanOldFiles:

    def test_deletes_only_old_files(self, temp_dir):
        old = touch(temp_dir / "old.mp4", size=100, age_hours=30)
        new = touch(temp_dir / "new.mp4", age_hours=1)

        result = CleanupService(str(temp_dir)).clean_old_files(max_age_hours=24)
        assert not old.exists()
        assert new.exists()
        assert result.files_deleted == 1
        assert result.bytes_freed == 100
        assert result.errors == []

    def test_active_job_files_are_protected(self, temp_dir):
        video = touch(temp_dir / "job-123.mp4", age_hours=30)
        service = CleanupService(str(temp_dir))
        service.register_active_job("job-123")

        service.clean_old_files(max_age_hours=24)
        assert video.exists()

        service.unregister_job("job-123")
        service.clean_old_files(max_age_hours=24)
        assert not video.exists()

    def test_exclude_patterns(self, temp_dir):
        keep = touch(temp_dir / "keep.log", age_hours=30)
        drop = touch(temp_dir / "drop.mp4", age_hours=30)

        CleanupService(str(temp_dir)).clean_old_files(exclude_patterns=["*.log"])
        assert keep.exists()
        assert not drop.exists()

    def test_dry_run_deletes_nothing(self, temp_dir):
        old = touch(temp_dir / "old.mp4", age_hours=30)
        result = CleanupService(str(temp_dir)).clean_old_files(dry_run=True)
        assert old.exists()
        assert result.files_deleted == 0

    def test_frames_container_is_kept(self, temp_dir):
        frames = temp_dir / "frames"
        stale = temp_dir / "frames" / "job-old"
        touch(stale / "frame-00000.png", size=40)
        touch(stale / "frame-00001.png", size=60)
        fresh = touch(temp_dir / "frames" / "job-new" / "frame-00000.png")
        age(stale, 30)
        age(frames, 30)

        result = CleanupService(str(temp_dir)).clean_old_files(max_age_hours=24)
        assert frames.is_dir()
        assert not stale.exists()
        assert fresh.exists()
        assert result.files_deleted == 2
        assert result.directories_deleted == 1
        assert result.bytes_freed == 100

    def test_missing_temp_dir(self, tmp_path):
        result = CleanupService(str(tmp_path / "absent")).clean_old_files()
        assert result == CleanupResult()

    def test_clean_all_ignores_age(self, temp_dir):
        touch(temp_dir / "fresh.mp4")
        active = touch(temp_dir / "job-9.mp4")
        service = CleanupService(str(temp_dir), active_jobs={"job-9"})

        result = service.clean_all()
        assert result.files_deleted == 1
        assert active.exists()

    def test_startup_cleanup_uses_two_days(self, temp_dir):
        day_old = touch(temp_dir / "day.mp4", age_hours=30)
        stale = touch(temp_dir / "stale.mp4", age_hours=72)

        CleanupService(str(temp_dir)).run_startup_cleanup()
        assert day_old.exists()
        assert not stale.exists()


class TestJobFiles:

    def test_clean_job_files(self, temp_dir):
        video = touch(temp_dir / "job-5.mp4")
        frames = temp_dir / "frames" / "job-5"
        touch(frames / "frame-00000.png")
        other = touch(temp_dir / "job-6.mp4")

        result = CleanupService(str(temp_dir)).clean_job_files("job-5")
        assert not video.exists()
        assert not frames.exists()
        assert other.exists()
        assert result.files_deleted == 2

    def test_disk_usage(self, temp_dir):
        touch(temp_dir / "a.mp4", size=100)
        touch(temp_dir / "frames" / "job" / "frame-00000.png", size=50)
        assert CleanupService(str(temp_dir)).get_disk_usage() == (150, 2)

    def test_disk_usage_missing_dir(self, tmp_path):
        assert CleanupService(str(tmp_path / "absent")).get_disk_usage() == (0, 0)


class TestCleanupResult:

    def test_merge(self):
        total = CleanupResult(1, 0, 10, ["a"])
        total.merge(CleanupResult(2, 1, 5, ["b"]))
        assert total == CleanupResult(3, 1, 15, ["a", "b"])
