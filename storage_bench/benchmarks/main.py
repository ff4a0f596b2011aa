from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from ..cancellation import CancellationToken, install_signal_handlers
from ..client import Credentials
from ..errors import BenchmarkInterrupted, HarnessError
from .config import BenchmarkConfig
from .harness import BenchmarkHarness
from .report import render_report

LOGGER = logging.getLogger("storage_bench.benchmark")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    env = os.environ
    parser = argparse.ArgumentParser(description="Self-contained storage server benchmark")
    parser.add_argument(
        "--project-root",
        default=env.get("STORAGE_BENCH_PROJECT_ROOT", os.getcwd()),
        help="Server source tree containing Cargo.toml",
    )
    parser.add_argument(
        "--binary-name",
        default=env.get("STORAGE_BENCH_BINARY_NAME", "rustfs"),
        help="Cargo binary target to build and launch",
    )
    parser.add_argument(
        "--server-binary",
        default=env.get("STORAGE_BENCH_SERVER_BINARY"),
        help="Explicit path to a prebuilt server binary",
    )
    parser.add_argument(
        "--skip-build",
        action="store_true",
        help="Launch an existing binary instead of building one",
    )
    parser.add_argument(
        "--clean-build",
        action="store_true",
        help="Run 'cargo clean' before building",
    )
    parser.add_argument("--endpoint", default=env.get("STORAGE_BENCH_ENDPOINT", "http://localhost:9000"))
    parser.add_argument(
        "--address",
        default=env.get("STORAGE_BENCH_ADDRESS", ":9000"),
        help="Bind address passed to the server",
    )
    parser.add_argument("--access-key", default=env.get("STORAGE_BENCH_ACCESS_KEY", "rustfsadmin"))
    parser.add_argument("--secret-key", default=env.get("STORAGE_BENCH_SECRET_KEY", "rustfsadmin"))
    parser.add_argument("--region", default=env.get("STORAGE_BENCH_REGION", "us-east-1"))
    parser.add_argument("--bucket", default=env.get("STORAGE_BENCH_BUCKET", "benchmark-bucket"))
    parser.add_argument(
        "--iterations",
        type=int,
        default=int(env.get("BENCHMARK_ITERATIONS", "3")),
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=int(env.get("BENCHMARK_CONCURRENCY", "2")),
    )
    parser.add_argument(
        "--file-size-mb",
        type=int,
        default=int(env.get("BENCHMARK_FILE_SIZE_MB", "1")),
    )
    parser.add_argument(
        "--startup-timeout",
        type=float,
        default=float(env.get("BENCHMARK_STARTUP_TIMEOUT", "30")),
        help="Seconds to wait for the server to accept connections",
    )
    parser.add_argument(
        "--volumes-dir",
        default=env.get("STORAGE_BENCH_VOLUMES_DIR"),
        help="Scratch volume root (defaults to <project-root>/target/volume)",
    )
    parser.add_argument(
        "--test-files-dir",
        default=env.get("STORAGE_BENCH_TEST_FILES_DIR", "/tmp/storage_bench_test_files"),
    )
    parser.add_argument("--server-log", default=env.get("STORAGE_BENCH_SERVER_LOG"))
    parser.add_argument(
        "--benchmark-log",
        default=env.get("BENCHMARK_LOG_PATH", "/tmp/benchmark.log"),
    )
    parser.add_argument(
        "--output-dir",
        default=env.get("BENCHMARK_OUTPUT_DIR"),
        help="Directory to store benchmark artefacts (CSV, manifest and chart)",
    )
    parser.add_argument(
        "--skip-charts",
        action="store_true",
        help="Do not render the summary chart into --output-dir",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the resolved configuration without running anything",
    )
    parser.add_argument(
        "--log-level",
        default=env.get("BENCHMARK_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> BenchmarkConfig:
    project_root = Path(args.project_root).resolve()
    return BenchmarkConfig(
        iterations=args.iterations,
        concurrency=args.concurrency,
        file_size_mb=args.file_size_mb,
        startup_timeout=args.startup_timeout,
        endpoint=args.endpoint,
        address=args.address,
        credentials=Credentials(args.access_key, args.secret_key, args.region),
        bucket_name=args.bucket,
        project_root=project_root,
        server_binary_name=args.binary_name,
        server_binary=Path(args.server_binary) if args.server_binary else None,
        skip_build=args.skip_build,
        clean_build=args.clean_build,
        volumes_dir=Path(args.volumes_dir) if args.volumes_dir else None,
        test_files_dir=Path(args.test_files_dir),
        server_log=Path(args.server_log) if args.server_log else None,
        benchmark_log=Path(args.benchmark_log),
        output_dir=Path(args.output_dir) if args.output_dir else None,
        skip_charts=args.skip_charts,
    )


def setup_logging(level: str, log_path: Path | None = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="w", encoding="utf-8", delay=True))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = config_from_args(args)
    except ValueError as exc:
        print(f"invalid benchmark configuration: {exc}", file=sys.stderr)
        return 1

    setup_logging(args.log_level, config.resolved_benchmark_log())
    LOGGER.info("Configuration:")
    for line in config.describe():
        LOGGER.info("  - %s", line)

    if args.dry_run:
        _print_plan(config)
        return 0

    token = CancellationToken()
    restore_signals = install_signal_handlers(token)
    try:
        report = BenchmarkHarness(config, cancel_token=token).run()
    except HarnessError as exc:
        _report_failure(exc, config)
        return 1
    finally:
        restore_signals()

    if token.cancelled:
        _report_failure(BenchmarkInterrupted(token.signum), config)
        return 1

    print(render_report(report))
    return 0


def _report_failure(exc: HarnessError, config: BenchmarkConfig) -> None:
    if exc.interrupted:
        LOGGER.error("Benchmark interrupted: %s; all resources were cleaned up", exc)
    else:
        LOGGER.error("Benchmark failed: %s", exc)
    LOGGER.error("Check log file: %s", exc.log_path or config.resolved_benchmark_log())


def _print_plan(config: BenchmarkConfig) -> None:
    print("Benchmark plan:")
    for line in config.describe():
        print(f"  - {line}")
    print("  - Stages: PUT, GET, concurrent batch, LIST, DELETE")


if __name__ == "__main__":
    sys.exit(main())
