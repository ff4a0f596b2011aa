"""Shared fixtures: a throwaway server executable and an in-memory object store client."""

from __future__ import annotations

import sys
import threading
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, Optional

import pytest

from storage_bench.client import OperationResult
from storage_bench.benchmarks.config import BenchmarkConfig


def make_script(directory: Path, name: str, body: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    script = directory / name
    script.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
    script.chmod(0o755)
    return script


SLEEPER = "import time\nwhile True:\n    time.sleep(0.1)\n"


@pytest.fixture
def fake_server(tmp_path) -> Path:
    return make_script(tmp_path / "bin", "fake-server", SLEEPER)


@pytest.fixture
def dying_server(tmp_path) -> Path:
    return make_script(tmp_path / "bin", "dying-server", "import sys\nsys.exit(3)\n")


@pytest.fixture
def stubborn_server(tmp_path) -> Path:
    body = (
        "import signal, sys, time\n"
        "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        "print('ready', flush=True)\n"
        "while True:\n"
        "    time.sleep(0.1)\n"
    )
    return make_script(tmp_path / "bin", "stubborn-server", body)


@pytest.fixture
def bench_config(tmp_path, fake_server) -> BenchmarkConfig:
    return BenchmarkConfig(
        iterations=3,
        concurrency=2,
        file_size_mb=1,
        startup_timeout=5.0,
        endpoint="http://127.0.0.1:9000",
        address="127.0.0.1:9000",
        project_root=tmp_path,
        server_binary=fake_server,
        skip_build=True,
        volumes_dir=tmp_path / "volumes",
        test_files_dir=tmp_path / "payloads",
        server_log=tmp_path / "logs" / "server.log",
        benchmark_log=tmp_path / "logs" / "benchmark.log",
        poll_interval=0.05,
        readiness_grace=0.0,
        stop_poll_interval=0.05,
        stop_poll_attempts=10,
        operation_pause=0.0,
    )


@pytest.fixture
def config_factory(bench_config) -> Callable[..., BenchmarkConfig]:
    def factory(**changes) -> BenchmarkConfig:
        return replace(bench_config, **changes)

    return factory


class FakeObjectStore:
    """Stand-in for ObjectStoreClient that records calls instead of shelling out."""

    def __init__(
        self,
        failing: Iterable[str] = (),
        elapsed: float = 0.05,
        on_call: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.failing = set(failing)
        self.elapsed = elapsed
        self.on_call = on_call
        self.calls: list[tuple[str, ...]] = []
        self._lock = threading.Lock()
        self.bucket = "benchmark-bucket"

    def _record(self, operation: str, *params: str) -> OperationResult:
        with self._lock:
            self.calls.append((operation, *params))
        if self.on_call is not None:
            self.on_call(operation)
        if operation in self.failing:
            return OperationResult.failed(self.elapsed, f"{operation} failed")
        return OperationResult.succeeded(self.elapsed)

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]

    def create_bucket(self) -> OperationResult:
        return self._record("create_bucket")

    def put_object(self, key: str, body: Path) -> OperationResult:
        assert body.is_file()
        return self._record("put", key)

    def get_object(self, key: str, destination: Path) -> OperationResult:
        return self._record("get", key)

    def list_objects(self) -> OperationResult:
        return self._record("list")

    def delete_object(self, key: str) -> OperationResult:
        return self._record("delete", key)

    def copy_file(self, source: Path, key: str) -> OperationResult:
        assert source.is_file()
        return self._record("copy", key)


@pytest.fixture
def fake_store() -> FakeObjectStore:
    return FakeObjectStore()
