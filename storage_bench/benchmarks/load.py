from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Optional

from ..cancellation import CancellationToken
from ..client import OperationResult
from ..errors import BenchmarkInterrupted
from .config import OperationKind
from .metrics import BatchResult, OperationOutcome

LOGGER = logging.getLogger("storage_bench.benchmark.load")

Invoker = Callable[[int], OperationResult]

BARRIER_TIMEOUT_S = 30.0


class TimedOperationSampler:
    """Run one operation kind a fixed number of times, one call after another."""

    def __init__(
        self,
        pause_seconds: float = 0.1,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        self._pause_seconds = pause_seconds
        self._cancel_token = cancel_token or CancellationToken()

    def run(self, kind: OperationKind, invoker: Invoker, iterations: int) -> tuple[OperationOutcome, ...]:
        LOGGER.info("Measuring %s performance (%d iterations)", kind, iterations)
        outcomes: list[OperationOutcome] = []
        for iteration in range(1, iterations + 1):
            self._cancel_token.raise_if_cancelled()
            result = _invoke(invoker, iteration)
            outcomes.append(
                OperationOutcome(
                    kind=kind,
                    iteration_index=iteration,
                    success=result.success,
                    elapsed=result.elapsed,
                )
            )
            if result.success:
                LOGGER.info("  %s %d/%d: ok in %.3fs", kind, iteration, iterations, result.elapsed)
            else:
                LOGGER.warning("  %s %d/%d: failed (%s)", kind, iteration, iterations, result.reason)

            if self._pause_seconds > 0 and self._cancel_token.wait(self._pause_seconds):
                raise BenchmarkInterrupted(self._cancel_token.signum)
        return tuple(outcomes)


class ConcurrentBatchRunner:
    """Fire a fixed number of invocations at once and time the whole batch."""

    def __init__(
        self,
        cancel_token: Optional[CancellationToken] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._cancel_token = cancel_token or CancellationToken()
        self._clock = clock

    def run(self, invoker: Invoker, concurrency: int, payload_bytes: int) -> BatchResult:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._cancel_token.raise_if_cancelled()
        LOGGER.info("Running %d concurrent operations", concurrency)

        barrier = threading.Barrier(concurrency)

        def worker(index: int) -> OperationResult:
            try:
                barrier.wait(timeout=BARRIER_TIMEOUT_S)
            except threading.BrokenBarrierError:
                return OperationResult.failed(0.0, "start barrier broken")
            return _invoke(invoker, index)

        with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="batch") as pool:
            started = self._clock()
            futures = [pool.submit(worker, index) for index in range(1, concurrency + 1)]
            wait(futures)
            elapsed = self._clock() - started

        successful = 0
        for index, future in enumerate(futures, start=1):
            exc = future.exception()
            if exc is not None:
                if isinstance(exc, BenchmarkInterrupted):
                    continue
                LOGGER.warning("  batch operation %d raised %r", index, exc)
                continue
            result = future.result()
            if result.success:
                successful += 1
            else:
                LOGGER.warning("  batch operation %d failed (%s)", index, result.reason)

        self._cancel_token.raise_if_cancelled()
        batch = BatchResult(
            concurrency=concurrency,
            payload_bytes=payload_bytes,
            elapsed=elapsed,
            successful_count=successful,
        )
        LOGGER.info(
            "Concurrent batch: %d/%d succeeded, %.2fMB in %.3fs (%.2f MB/s)",
            successful,
            concurrency,
            batch.total_megabytes,
            elapsed,
            batch.throughput_mb_per_sec,
        )
        return batch


def _invoke(invoker: Invoker, iteration: int) -> OperationResult:
    started = time.perf_counter()
    try:
        return invoker(iteration)
    except OSError as exc:
        return OperationResult.failed(time.perf_counter() - started, str(exc))
