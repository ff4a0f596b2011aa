from __future__ import annotations

import importlib
import signal
from pathlib import Path

from storage_bench.errors import BenchmarkInterrupted, StartupTimeout

# The package re-exports main(), so fetch the module itself.
main_module = importlib.import_module("storage_bench.benchmarks.main")


def test_defaults_follow_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("BENCHMARK_ITERATIONS", "5")
    monkeypatch.setenv("STORAGE_BENCH_ENDPOINT", "http://127.0.0.1:9100")
    monkeypatch.setenv("STORAGE_BENCH_ACCESS_KEY", "admin")

    config = main_module.config_from_args(main_module.parse_args(["--project-root", str(tmp_path)]))

    assert config.iterations == 5
    assert config.concurrency == 2
    assert config.endpoint == "http://127.0.0.1:9100"
    assert config.credentials.access_key == "admin"
    assert config.project_root == tmp_path.resolve()
    assert config.resolved_volumes_dir() == tmp_path.resolve() / "target" / "volume"
    assert config.output_dir is None


def test_dry_run_prints_plan(capsys, tmp_path):
    code = main_module.main(["--dry-run", "--benchmark-log", str(tmp_path / "bench.log")])

    assert code == 0
    out = capsys.readouterr().out
    assert "Benchmark plan:" in out
    assert "Test iterations: 3" in out


def test_invalid_configuration_exits_nonzero(tmp_path):
    code = main_module.main(["--iterations", "0", "--benchmark-log", str(tmp_path / "bench.log")])

    assert code == 1


class _FailingHarness:
    error: Exception = StartupTimeout(30, Path("/tmp/server.log"))

    def __init__(self, config, cancel_token=None):
        self.config = config

    def run(self):
        raise self.error


def test_fatal_error_exits_with_one(monkeypatch, tmp_path, caplog):
    monkeypatch.setattr(main_module, "BenchmarkHarness", _FailingHarness)

    code = main_module.main(["--benchmark-log", str(tmp_path / "bench.log")])

    assert code == 1
    assert "Benchmark failed" in caplog.text
    assert "/tmp/server.log" in caplog.text


def test_interruption_is_reported_distinctly(monkeypatch, tmp_path, caplog):
    class Interrupted(_FailingHarness):
        error = BenchmarkInterrupted(2)

    monkeypatch.setattr(main_module, "BenchmarkHarness", Interrupted)

    code = main_module.main(["--benchmark-log", str(tmp_path / "bench.log")])

    assert code == 1
    assert "Benchmark interrupted" in caplog.text
    assert "SIGINT" in caplog.text


def test_successful_run_prints_report(monkeypatch, tmp_path, capsys):
    rendered = []

    class Succeeding(_FailingHarness):
        def run(self):
            return "report"

    monkeypatch.setattr(main_module, "BenchmarkHarness", Succeeding)
    monkeypatch.setattr(main_module, "render_report", lambda report: rendered.append(report) or "RENDERED")

    code = main_module.main(["--benchmark-log", str(tmp_path / "bench.log")])

    assert code == 0
    assert rendered == ["report"]
    assert "RENDERED" in capsys.readouterr().out


def test_late_interruption_exits_with_one(monkeypatch, tmp_path, caplog, capsys):
    class CancelledAtExit:
        def __init__(self, config, cancel_token=None):
            self.token = cancel_token

        def run(self):
            self.token.cancel(signal.SIGINT)
            return "report"

    monkeypatch.setattr(main_module, "BenchmarkHarness", CancelledAtExit)

    code = main_module.main(["--benchmark-log", str(tmp_path / "bench.log")])

    assert code == 1
    assert "Benchmark interrupted" in caplog.text
    assert "FINAL PERFORMANCE REPORT" not in capsys.readouterr().out
