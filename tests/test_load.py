from __future__ import annotations

import threading

import pytest

from storage_bench.cancellation import CancellationToken
from storage_bench.client import OperationResult
from storage_bench.errors import BenchmarkInterrupted
from storage_bench.benchmarks.config import OperationKind
from storage_bench.benchmarks.load import ConcurrentBatchRunner, TimedOperationSampler


@pytest.mark.parametrize("iterations", [1, 3, 7])
def test_sampler_returns_one_outcome_per_iteration(iterations):
    sampler = TimedOperationSampler(pause_seconds=0)

    outcomes = sampler.run(OperationKind.PUT, lambda i: OperationResult.succeeded(0.1), iterations)

    assert len(outcomes) == iterations
    assert [o.iteration_index for o in outcomes] == list(range(1, iterations + 1))
    assert all(o.kind is OperationKind.PUT for o in outcomes)


def test_sampler_continues_after_failures():
    seen = []

    def invoker(iteration):
        seen.append(iteration)
        if iteration % 2:
            return OperationResult.failed(0.2, "boom")
        return OperationResult.succeeded(0.1)

    outcomes = TimedOperationSampler(pause_seconds=0).run(OperationKind.GET, invoker, 4)

    assert seen == [1, 2, 3, 4]
    assert [o.success for o in outcomes] == [False, True, False, True]
    assert [o.elapsed for o in outcomes] == [0.2, 0.1, 0.2, 0.1]


def test_sampler_records_invoker_os_errors_as_failures():
    def invoker(_iteration):
        raise FileNotFoundError("aws")

    outcomes = TimedOperationSampler(pause_seconds=0).run(OperationKind.LIST, invoker, 3)

    assert len(outcomes) == 3
    assert not any(o.success for o in outcomes)


def test_sampler_outcomes_are_immutable():
    outcomes = TimedOperationSampler(pause_seconds=0).run(
        OperationKind.PUT, lambda i: OperationResult.succeeded(0.1), 1
    )

    with pytest.raises(AttributeError):
        outcomes[0].success = False


def test_sampler_stops_when_cancelled():
    token = CancellationToken()
    calls = []

    def invoker(iteration):
        calls.append(iteration)
        if iteration == 2:
            token.cancel()
        return OperationResult.succeeded(0.01)

    sampler = TimedOperationSampler(pause_seconds=0.01, cancel_token=token)

    with pytest.raises(BenchmarkInterrupted):
        sampler.run(OperationKind.DELETE, invoker, 5)
    assert calls == [1, 2]


def test_batch_runs_all_invocations_concurrently():
    active = []
    peak = []
    lock = threading.Lock()

    def invoker(index):
        with lock:
            active.append(index)
            peak.append(len(active))
        threading.Event().wait(0.05)
        with lock:
            active.remove(index)
        return OperationResult.succeeded(0.05)

    batch = ConcurrentBatchRunner().run(invoker, concurrency=4, payload_bytes=1024 * 1024)

    assert batch.successful_count == 4
    assert batch.concurrency == 4
    assert max(peak) == 4
    assert batch.elapsed > 0


def test_batch_tolerates_individual_failures():
    def invoker(index):
        if index == 1:
            return OperationResult.failed(0.01, "denied")
        if index == 2:
            raise RuntimeError("unexpected")
        return OperationResult.succeeded(0.01)

    batch = ConcurrentBatchRunner().run(invoker, concurrency=3, payload_bytes=10)

    assert batch.successful_count == 1


def test_batch_throughput_uses_measured_elapsed():
    ticks = iter([10.0, 10.5])
    runner = ConcurrentBatchRunner(clock=lambda: next(ticks))

    batch = runner.run(lambda i: OperationResult.succeeded(0.1), concurrency=2, payload_bytes=1024 * 1024)

    assert batch.elapsed == pytest.approx(0.5)
    assert batch.throughput_mb_per_sec == pytest.approx(4.0)


def test_batch_raises_after_join_when_cancelled():
    token = CancellationToken()
    finished = []

    def invoker(index):
        token.cancel()
        finished.append(index)
        return OperationResult.succeeded(0.01)

    with pytest.raises(BenchmarkInterrupted):
        ConcurrentBatchRunner(cancel_token=token).run(invoker, concurrency=3, payload_bytes=1)
    assert sorted(finished) == [1, 2, 3]


def test_batch_rejects_zero_concurrency():
    with pytest.raises(ValueError):
        ConcurrentBatchRunner().run(lambda i: OperationResult.succeeded(0.0), 0, 1)
