"""
Error Types and Retry Helper Tests
==================================
"""

import logging

import pytest
from tenacity import Retrying

from slidescribe.errors import (
    DependencyError,
    OCRError,
    SlidescribeError,
    ValidationError,
    VideoDownloadError,
    is_retryable_error,
)
from slidescribe.retry import MAX_RETRY_DELAY, retrying, with_cleanup, with_retry


class TestErrors:

    def test_codes_and_context(self):
        err = VideoDownloadError("gone", url="https://youtu.be/aqz-KE-bpKQ")
        assert isinstance(err, SlidescribeError)
        assert err.code == "VIDEO_DOWNLOAD_ERROR"
        assert err.url == "https://youtu.be/aqz-KE-bpKQ"
        assert str(err) == "gone"

    def test_code_override(self):
        assert SlidescribeError("x", code="CUSTOM").code == "CUSTOM"
        assert DependencyError("x", "tesseract").dependency == "tesseract"

    def test_retryable_errors(self):
        assert is_retryable_error(VideoDownloadError("HTTP 503"))
        assert is_retryable_error(OCRError("tesseract crashed"))
        assert is_retryable_error(RuntimeError("Connection reset by peer"))
        assert is_retryable_error(OSError("read ETIMEDOUT"))

    def test_non_retryable_errors(self):
        assert not is_retryable_error(ValidationError("bad threshold"))
        assert not is_retryable_error(ValueError("oops"))


class TestWithRetry:

    def test_builds_tenacity_controller(self):
        assert isinstance(retrying(), Retrying)

    def test_succeeds_after_transient_failures(self):
        attempts = []
        sleeps = []

        def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise VideoDownloadError("temporary")
            return "ok"

        assert with_retry(flaky, max_retries=3, sleep=sleeps.append) == "ok"
        assert len(attempts) == 3
        assert len(sleeps) == 2

    def test_backoff_is_bounded(self):
        sleeps = []

        def always_fails():
            raise VideoDownloadError("still down")

        with pytest.raises(VideoDownloadError):
            with_retry(always_fails, max_retries=3, retry_delay=1.0, sleep=sleeps.append)
        # Randomised exponential: below 1s after the first failure, 2s after the second.
        assert 0 <= sleeps[0] <= 1.0
        assert 0 <= sleeps[1] <= 2.0

    def test_backoff_is_capped(self):
        sleeps = []

        def always_fails():
            raise VideoDownloadError("still down")

        with pytest.raises(VideoDownloadError):
            with_retry(always_fails, max_retries=4, retry_delay=100.0, sleep=sleeps.append)
        assert len(sleeps) == 3
        assert all(0 <= s <= MAX_RETRY_DELAY for s in sleeps)

    def test_gives_up_and_reraises_last_error(self):
        attempts = []

        def always_fails():
            attempts.append(1)
            raise VideoDownloadError(f"attempt {len(attempts)}")

        with pytest.raises(VideoDownloadError, match="attempt 3"):
            with_retry(always_fails, max_retries=3, sleep=lambda _: None)
        assert len(attempts) == 3

    def test_non_retryable_error_raises_immediately(self):
        attempts = []

        def invalid():
            attempts.append(1)
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            with_retry(invalid, max_retries=5, sleep=lambda _: None)
        assert len(attempts) == 1

    def test_custom_predicate(self):
        attempts = []

        def fails_once():
            attempts.append(1)
            if len(attempts) == 1:
                raise ValueError("first")
            return 42

        result = with_retry(
            fails_once,
            should_retry=lambda error: isinstance(error, ValueError),
            sleep=lambda _: None,
        )
        assert result == 42
        assert len(attempts) == 2

    def test_retries_are_logged(self, caplog):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise VideoDownloadError("HTTP Error 503")
            return "ok"

        with caplog.at_level(logging.WARNING, logger="slidescribe.retry"):
            with_retry(flaky, sleep=lambda _: None)
        warnings = [r for r in caplog.records if r.name == "slidescribe.retry"]
        assert len(warnings) == 1
        assert warnings[0].levelno == logging.WARNING
        assert "HTTP Error 503" in warnings[0].getMessage()


class TestWithCleanup:

    def test_cleanup_runs_on_success(self):
        cleaned = []
        assert with_cleanup(lambda: 7, lambda: cleaned.append(True)) == 7
        assert cleaned == [True]

    def test_cleanup_runs_on_failure(self):
        cleaned = []

        def boom():
            raise RuntimeError("stage failed")

        with pytest.raises(RuntimeError, match="stage failed"):
            with_cleanup(boom, lambda: cleaned.append(True))
        assert cleaned == [True]

    def test_cleanup_error_does_not_mask_result(self):
        def bad_cleanup():
            raise OSError("disk gone")

        assert with_cleanup(lambda: "result", bad_cleanup) == "result"
