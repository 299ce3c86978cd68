"""
CLI Tests
=========
"""

import pytest

from cli import build_parser, main


class TestParser:

    def test_convert_options(self):
        args = build_parser().parse_args([
            "convert", "lecture.mp4", "-i", "5", "-t", "0.2", "-f", "json",
            "-l", "eng+deu", "-o", "docs", "--keep-temp",
        ])
        assert args.command == "convert"
        assert args.source == "lecture.mp4"
        assert args.interval == 5.0
        assert args.threshold == 0.2
        assert args.format == "json"
        assert args.language == "eng+deu"
        assert args.output == "docs"
        assert args.keep_temp

    def test_convert_defaults_defer_to_settings(self):
        args = build_parser().parse_args(["convert", "lecture.mp4"])
        assert args.interval is None
        assert args.threshold is None
        assert args.format is None
        assert not args.keep_temp

    def test_clean_options(self):
        args = build_parser().parse_args([
            "clean", "--max-age-hours", "6", "--exclude", "*.log",
            "--exclude", "keep-*", "--dry-run",
        ])
        assert args.max_age_hours == 6.0
        assert args.exclude == ["*.log", "keep-*"]
        assert args.dry_run
        assert not args.all


class TestMain:

    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 0
        assert "convert" in capsys.readouterr().out

    def test_invalid_url(self):
        with pytest.raises(SystemExit) as excinfo:
            main(["convert", "https://vimeo.com/123456"])
        assert excinfo.value.code == 1

    def test_missing_video(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["detect", str(tmp_path / "absent.mp4")])
        assert excinfo.value.code == 1

    def test_invalid_threshold(self, sample_video):
        with pytest.raises(SystemExit) as excinfo:
            main(["detect", sample_video, "--threshold", "1.5"])
        assert excinfo.value.code == 1

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["-c", str(tmp_path / "nope.yaml"), "clean"])
        assert excinfo.value.code == 1

    def test_clean_dry_run(self, tmp_path, capsys):
        temp = tmp_path / "temp"
        temp.mkdir()
        (temp / "old.mp4").write_bytes(b"x" * 10)

        main(["clean", "--temp", str(temp), "--all", "--dry-run"])
        out = capsys.readouterr().out
        assert "[DRY RUN] Deleted 0 files" in out
        assert (temp / "old.mp4").exists()

    def test_clean_all(self, tmp_path, capsys):
        temp = tmp_path / "temp"
        temp.mkdir()
        (temp / "old.mp4").write_bytes(b"x" * 10)

        main(["clean", "--temp", str(temp), "--all"])
        assert "Deleted 1 files" in capsys.readouterr().out
        assert not (temp / "old.mp4").exists()

    def test_detect(self, sample_video, tmp_path, capsys):
        main(["detect", sample_video, "--interval", "1", "--temp", str(tmp_path / "temp")])
        out = capsys.readouterr().out
        assert "lecture: 3 frames sampled" in out
        assert "Slide   1  00:00" in out
