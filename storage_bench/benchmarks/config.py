from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path

from ..client import CONNECT_TIMEOUT_S_DEFAULT, READ_TIMEOUT_S_DEFAULT, Credentials

MEGABYTE = 1024 * 1024


class OperationKind(str, enum.Enum):
    PUT = "PUT"
    GET = "GET"
    LIST = "LIST"
    DELETE = "DELETE"

    def __str__(self) -> str:
        return self.value


# Later stages read what earlier ones wrote; the concurrent batch runs between GET and LIST.
SAMPLED_KINDS: tuple[OperationKind, ...] = (
    OperationKind.PUT,
    OperationKind.GET,
    OperationKind.LIST,
    OperationKind.DELETE,
)


@dataclass(frozen=True)
class BenchmarkConfig:
    """Everything a single harness run needs, fixed before the run starts."""

    iterations: int = 3
    concurrency: int = 2
    file_size_mb: int = 1
    startup_timeout: float = 30.0
    endpoint: str = "http://localhost:9000"
    address: str = ":9000"
    credentials: Credentials = field(
        default_factory=lambda: Credentials("rustfsadmin", "rustfsadmin")
    )
    bucket_name: str = "benchmark-bucket"

    project_root: Path = field(default_factory=Path.cwd)
    server_binary_name: str = "rustfs"
    server_binary: Path | None = None
    skip_build: bool = False
    clean_build: bool = False
    volumes_dir: Path | None = None
    volume_count: int = 4
    test_files_dir: Path = Path("/tmp/storage_bench_test_files")
    server_log: Path | None = None
    benchmark_log: Path | None = None
    output_dir: Path | None = None
    skip_charts: bool = False

    poll_interval: float = 2.0
    readiness_grace: float = 5.0
    stop_poll_interval: float = 1.0
    stop_poll_attempts: int = 10
    operation_pause: float = 0.1
    connect_timeout: int = CONNECT_TIMEOUT_S_DEFAULT
    read_timeout: int = READ_TIMEOUT_S_DEFAULT

    def __post_init__(self) -> None:
        if self.iterations < 1:
            raise ValueError("iterations must be >= 1")
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if self.file_size_mb < 1:
            raise ValueError("file_size_mb must be >= 1")
        if self.startup_timeout <= 0:
            raise ValueError("startup_timeout must be > 0")
        if self.volume_count < 1:
            raise ValueError("volume_count must be >= 1")

    @property
    def file_size_bytes(self) -> int:
        return self.file_size_mb * MEGABYTE

    @property
    def target_dir(self) -> Path:
        return self.project_root / "target"

    def resolved_server_binary(self) -> Path:
        if self.server_binary is not None:
            return self.server_binary
        return self.target_dir / "release" / self.server_binary_name

    def resolved_volumes_dir(self) -> Path:
        return self.volumes_dir or self.target_dir / "volume"

    def resolved_server_log(self) -> Path:
        return self.server_log or self.target_dir / "server.log"

    def resolved_benchmark_log(self) -> Path:
        return self.benchmark_log or Path("/tmp/benchmark.log")

    def describe(self) -> list[str]:
        return [
            f"Project root: {self.project_root}",
            f"Endpoint: {self.endpoint} (bind {self.address})",
            f"Test file size: {self.file_size_mb}MB",
            f"Test iterations: {self.iterations}",
            f"Concurrent operations: {self.concurrency}",
            f"Bucket name: {self.bucket_name}",
            f"Server binary: {self.resolved_server_binary()}"
            + (" (prebuilt)" if self.skip_build else ""),
            f"Volumes: {self.volume_count} under {self.resolved_volumes_dir()}",
            f"Server log: {self.resolved_server_log()}",
            f"Benchmark log: {self.resolved_benchmark_log()}",
        ]
