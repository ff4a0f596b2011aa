from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable, Sequence

from .config import MEGABYTE, OperationKind

EXCELLENT_THRESHOLD_PCT = 80.0
GOOD_THRESHOLD_PCT = 60.0


class OverallStatus(str, enum.Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    POOR = "POOR"

    @property
    def message(self) -> str:
        return _STATUS_MESSAGES[self]


_STATUS_MESSAGES = {
    OverallStatus.EXCELLENT: "server is performing well",
    OverallStatus.GOOD: "some operations may need optimization",
    OverallStatus.POOR: "server needs significant improvements",
}


@dataclass(frozen=True)
class OperationOutcome:
    kind: OperationKind
    iteration_index: int
    success: bool
    elapsed: float


@dataclass(frozen=True)
class OperationStats:
    kind: OperationKind
    successful_count: int
    attempted_count: int
    average_duration: float
    throughput_ops_per_sec: float
    success_rate_pct: float

    @property
    def all_failed(self) -> bool:
        return self.successful_count == 0


@dataclass(frozen=True)
class BatchResult:
    concurrency: int
    payload_bytes: int
    elapsed: float
    successful_count: int

    @property
    def total_megabytes(self) -> float:
        return self.concurrency * self.payload_bytes / MEGABYTE

    @property
    def throughput_mb_per_sec(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.total_megabytes / self.elapsed


def reduce_outcomes(
    outcomes: Sequence[OperationOutcome],
    kind: OperationKind | None = None,
) -> OperationStats:
    """Collapse per-iteration outcomes of one operation kind into summary stats.

    Averages and throughput only consider successful iterations and are reported
    as zero when nothing succeeded.
    """
    if kind is None:
        if not outcomes:
            raise ValueError("kind is required when there are no outcomes")
        kind = outcomes[0].kind

    attempted = len(outcomes)
    successes = [outcome.elapsed for outcome in outcomes if outcome.success]
    successful = len(successes)
    total_time = sum(successes)

    average = total_time / successful if successful else 0.0
    throughput = successful / total_time if successful and total_time > 0 else 0.0
    success_rate = 100.0 * successful / attempted if attempted else 0.0

    return OperationStats(
        kind=kind,
        successful_count=successful,
        attempted_count=attempted,
        average_duration=average,
        throughput_ops_per_sec=throughput,
        success_rate_pct=success_rate,
    )


def combined_success_rate(stats: Iterable[OperationStats]) -> tuple[int, int, float]:
    total_success = 0
    total_attempts = 0
    for item in stats:
        total_success += item.successful_count
        total_attempts += item.attempted_count
    if total_attempts == 0:
        return 0, 0, 0.0
    return total_success, total_attempts, 100.0 * total_success / total_attempts


def classify(
    stats: Iterable[OperationStats],
    excellent: float = EXCELLENT_THRESHOLD_PCT,
    good: float = GOOD_THRESHOLD_PCT,
) -> OverallStatus:
    _, _, rate = combined_success_rate(stats)
    if rate >= excellent:
        return OverallStatus.EXCELLENT
    if rate >= good:
        return OverallStatus.GOOD
    return OverallStatus.POOR
