"""
Tests for the command-line entry point: argument parsing and exit codes.
"""

import sys
from pathlib import Path

import pytest

from watchrun.cli import EXIT_STARTUP_FAILURE, build_parser, config_from_args, main


@pytest.fixture(autouse=True)
def child_environment(monkeypatch):
    """main() sets these for its children; keep them from leaking between tests."""
    monkeypatch.setenv("PYTHONUNBUFFERED", "1")
    monkeypatch.setenv("PYTHONIOENCODING", "utf-8")
    monkeypatch.setenv("PYTHONUTF8", "1")
    monkeypatch.delenv("WATCHRUN_DEBOUNCE", raising=False)
    monkeypatch.delenv("WATCHRUN_LOG_DIR", raising=False)


def parse(*argv):
    return config_from_args(build_parser().parse_args(list(argv)))


class TestArguments:
    def test_command_after_double_dash(self):
        config = parse("--watch", "--", "pytest", "-q", "--maxfail=1")

        assert config.watch is True
        assert config.command == ["pytest", "-q", "--maxfail=1"]

    def test_default_command_is_pytest(self):
        config = parse("-w")
        assert config.command == [sys.executable, "-m", "pytest"]

    def test_repeated_extension_flags_merge(self):
        config = parse("--extension", "xyz,js", "--extension", "py")
        assert config.extensions == ("xyz", "js", "py")

    def test_roots_and_ignores(self, tmp_path):
        config = parse("--root", str(tmp_path), "--ignore", "docs/", "--ignore", "*.gen.py")

        assert config.roots == [tmp_path]
        assert config.ignore_patterns == ["docs/", "*.gen.py"]

    def test_timing_flags(self):
        config = parse("--debounce", "0.5", "--grace", "3")
        assert (config.debounce, config.grace) == (0.5, 3.0)

    def test_environment_used_when_flag_absent(self, monkeypatch):
        monkeypatch.setenv("WATCHRUN_DEBOUNCE", "0.7")
        assert parse().debounce == 0.7
        assert parse("--debounce", "0.1").debounce == 0.1

    def test_watch_off_by_default(self):
        assert parse("--", "pytest").watch is False


class TestMain:
    def test_invalid_value_is_a_usage_error(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--debounce", "0"])

        assert exc.value.code == 2
        assert "debounce" in capsys.readouterr().err

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])

        assert exc.value.code == 0
        assert "watchrun" in capsys.readouterr().out

    def test_missing_root_fails_before_any_run(self, tmp_path, capsys):
        marker = tmp_path / "ran"
        code = main(
            [
                "--watch",
                "--root",
                str(tmp_path / "missing"),
                "--",
                sys.executable,
                "-c",
                f"open({str(marker)!r}, 'w').close()",
            ]
        )

        assert code == EXIT_STARTUP_FAILURE
        assert not marker.exists()
        assert "does not exist" in capsys.readouterr().err

    def test_unstartable_command(self, tmp_path):
        assert main(["--", str(tmp_path / "no-such-runner")]) == EXIT_STARTUP_FAILURE

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX exit statuses")
    def test_single_run_returns_the_command_status(self, tmp_path):
        assert main(["--root", str(tmp_path), "--", sys.executable, "-c", "raise SystemExit(4)"]) == 4
        assert main(["--root", str(tmp_path), "--", sys.executable, "-c", "pass"]) == 0

    def test_log_dir_receives_log_file(self, tmp_path):
        log_dir = tmp_path / "logs"
        main(["--log-dir", str(log_dir), "--log-level", "INFO", "--", sys.executable, "-c", "pass"])

        assert any(log_dir.glob("watchrun-*.log"))


def test_module_entry_point_exists():
    assert (Path(__file__).parents[1] / "watchrun" / "__main__.py").exists()
