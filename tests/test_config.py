"""
Settings Loader Tests
=====================
"""

import pytest

from slidescribe.config import Settings, load_settings
from slidescribe.errors import ValidationError


@pytest.fixture
def settings_file(tmp_path):
    def _write(text):
        path = tmp_path / "settings.yaml"
        path.write_text(text, encoding="utf-8")
        return str(path)
    return _write


class TestLoadSettings:

    def test_defaults_from_empty_file(self, settings_file):
        settings = load_settings(settings_file(""), environ={})
        assert settings == Settings()
        assert settings.processing.frame_interval == 2.0
        assert settings.detection.slide_detection_threshold == 0.15
        assert settings.detection.threshold_mode == "very_aggressive"
        assert settings.ocr.language == "eng"
        assert settings.ocr.max_concurrent == 4

    def test_project_settings_file_is_valid(self):
        assert load_settings(environ={}) == Settings()

    def test_yaml_values(self, settings_file):
        path = settings_file(
            "processing:\n"
            "  frame_interval: 5\n"
            "  output_format: json\n"
            "detection:\n"
            "  threshold_mode: moderate\n"
            "ocr:\n"
            "  language: eng+deu\n"
        )
        settings = load_settings(path, environ={})
        assert settings.processing.frame_interval == 5
        assert settings.processing.output_format == "json"
        assert settings.detection.threshold_mode == "moderate"
        assert settings.ocr.language == "eng+deu"

    def test_env_overrides_yaml(self, settings_file):
        path = settings_file("processing:\n  frame_interval: 5\n")
        settings = load_settings(path, environ={
            "SLIDESCRIBE_FRAME_INTERVAL": "3.5",
            "SLIDESCRIBE_TEMP_DIR": "/tmp/slides",
            "SLIDESCRIBE_MAX_CONCURRENT_OCR": "2",
            "SLIDESCRIBE_LOG_LEVEL": "",
        })
        assert settings.processing.frame_interval == 3.5
        assert settings.paths.temp_dir == "/tmp/slides"
        assert settings.ocr.max_concurrent == 2
        assert settings.logging.level == "INFO"

    def test_unparseable_env_value(self, settings_file):
        with pytest.raises(ValidationError, match="SLIDESCRIBE_MAX_CONCURRENT_OCR"):
            load_settings(settings_file(""), environ={"SLIDESCRIBE_MAX_CONCURRENT_OCR": "many"})

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ValidationError, match="not found"):
            load_settings(str(tmp_path / "nope.yaml"), environ={})

    def test_non_mapping_file(self, settings_file):
        with pytest.raises(ValidationError, match="mapping"):
            load_settings(settings_file("- just\n- a list\n"), environ={})

    def test_unknown_keys_are_ignored(self, settings_file):
        settings = load_settings(settings_file("ocr:\n  engine: paddle\n"), environ={})
        assert settings.ocr == Settings().ocr


class TestValidation:

    def test_single_issue(self, settings_file):
        path = settings_file("detection:\n  slide_detection_threshold: 1.5\n")
        with pytest.raises(ValidationError, match="Invalid setting: Threshold"):
            load_settings(path, environ={})

    def test_all_issues_reported_together(self, settings_file):
        path = settings_file(
            "processing:\n"
            "  frame_interval: 120\n"
            "detection:\n"
            "  threshold_mode: reckless\n"
            "ocr:\n"
            "  psm: 20\n"
        )
        with pytest.raises(ValidationError) as excinfo:
            load_settings(path, environ={})
        message = excinfo.value.message
        assert message.startswith("Invalid settings:")
        assert "Interval cannot exceed 60 seconds" in message
        assert "threshold_mode" in message
        assert "psm" in message


class TestOverrides:

    def test_none_values_are_ignored(self):
        settings = Settings().with_overrides(
            detection__slide_detection_threshold=None,
            ocr__language="deu",
        )
        assert settings.detection.slide_detection_threshold == 0.15
        assert settings.ocr.language == "deu"

    def test_original_is_unchanged(self):
        base = Settings()
        base.with_overrides(processing__frame_interval=10.0)
        assert base.processing.frame_interval == 2.0

    def test_overrides_are_validated(self):
        with pytest.raises(ValidationError):
            Settings().with_overrides(processing__output_format="pdf")

    def test_malformed_override_name(self):
        with pytest.raises(ValueError):
            Settings().with_overrides(threshold=0.2)
