from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence

from .config import BenchmarkConfig, OperationKind
from .metrics import (
    BatchResult,
    OperationStats,
    OverallStatus,
    classify,
    combined_success_rate,
)

LOGGER = logging.getLogger("storage_bench.benchmark.report")

RULE = "=" * 63


@dataclass(frozen=True)
class RunReport:
    config: BenchmarkConfig
    stats: tuple[OperationStats, ...]
    batch: Optional[BatchResult]
    total_successes: int
    total_attempts: int
    overall_success_rate: float
    status: OverallStatus
    server_log: Path
    benchmark_log: Path
    system_info: Dict[str, str] = field(default_factory=dict)

    def stats_for(self, kind: OperationKind) -> OperationStats:
        for item in self.stats:
            if item.kind is kind:
                return item
        raise KeyError(kind)


def build_report(
    config: BenchmarkConfig,
    stats_by_kind: Mapping[OperationKind, OperationStats],
    batch: Optional[BatchResult],
    system_info: Optional[Dict[str, str]] = None,
) -> RunReport:
    stats = tuple(stats_by_kind.values())
    successes, attempts, rate = combined_success_rate(stats)
    return RunReport(
        config=config,
        stats=stats,
        batch=batch,
        total_successes=successes,
        total_attempts=attempts,
        overall_success_rate=rate,
        status=classify(stats),
        server_log=config.resolved_server_log(),
        benchmark_log=config.resolved_benchmark_log(),
        system_info=dict(system_info or {}),
    )


def render_report(report: RunReport) -> str:
    config = report.config
    lines = [
        RULE,
        "FINAL PERFORMANCE REPORT".center(len(RULE)),
        RULE,
        "",
        "Test Configuration:",
        f"  - Test iterations: {config.iterations}",
        f"  - File size: {config.file_size_mb} MB",
        f"  - Endpoint: {config.endpoint}",
        f"  - Bucket: {config.bucket_name}",
    ]
    if report.system_info:
        lines.extend(["", "System Information:"])
        lines.extend(f"  - {key}: {value}" for key, value in report.system_info.items())

    lines.extend(["", "Operation Performance Summary:"])
    for item in report.stats:
        lines.extend(["", *_render_stats(item)])

    if report.batch is not None:
        lines.extend(["", *_render_batch(report.batch)])

    lines.extend(
        [
            "",
            "Overall Assessment:",
            f"  - Total operations: {report.total_successes}/{report.total_attempts}",
            f"  - Overall success rate: {report.overall_success_rate:.1f}%",
            f"  - Status: {report.status.value} - {report.status.message}",
            "",
            "Log Information:",
            f"  - Server log: {report.server_log}",
            f"  - Benchmark log: {report.benchmark_log}",
            "",
            RULE,
        ]
    )
    return "\n".join(lines)


def _render_stats(stats: OperationStats) -> Sequence[str]:
    header = f"{stats.kind.value} Operations:"
    if stats.all_failed:
        return [header, "  All operations failed"]
    return [
        header,
        f"  Success rate: {stats.success_rate_pct:.1f}% ({stats.successful_count}/{stats.attempted_count})",
        f"  Average time: {stats.average_duration:.3f}s",
        f"  Throughput: {stats.throughput_ops_per_sec:.2f} ops/s",
    ]


def _render_batch(batch: BatchResult) -> Sequence[str]:
    return [
        "Concurrent Operations:",
        f"  Successful uploads: {batch.successful_count}/{batch.concurrency}",
        f"  Total data uploaded: {batch.total_megabytes:.2f}MB",
        f"  Time taken: {batch.elapsed:.3f}s",
        f"  Aggregate throughput: {batch.throughput_mb_per_sec:.2f} MB/s",
    ]


def report_payload(report: RunReport) -> dict:
    config = report.config
    payload = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "config": {
            "iterations": config.iterations,
            "concurrency": config.concurrency,
            "file_size_mb": config.file_size_mb,
            "endpoint": config.endpoint,
            "bucket": config.bucket_name,
        },
        "operations": {
            item.kind.value: {
                "successful": item.successful_count,
                "attempted": item.attempted_count,
                "average_duration_s": item.average_duration,
                "throughput_ops_per_sec": item.throughput_ops_per_sec,
                "success_rate_pct": item.success_rate_pct,
            }
            for item in report.stats
        },
        "overall": {
            "successful": report.total_successes,
            "attempted": report.total_attempts,
            "success_rate_pct": report.overall_success_rate,
            "status": report.status.value,
        },
        "logs": {"server": str(report.server_log), "benchmark": str(report.benchmark_log)},
        "system": report.system_info,
    }
    if report.batch is not None:
        payload["concurrent_batch"] = {
            "concurrency": report.batch.concurrency,
            "successful": report.batch.successful_count,
            "elapsed_s": report.batch.elapsed,
            "throughput_mb_per_sec": report.batch.throughput_mb_per_sec,
        }
    return payload


def write_manifest(report: RunReport, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report_payload(report), f, indent=2)
    LOGGER.info("Benchmark manifest written to %s", path)
    return path
