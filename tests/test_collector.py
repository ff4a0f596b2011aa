from __future__ import annotations

import pytest

from storage_bench.benchmarks.charts import CHART_FILENAME, render_run_charts
from storage_bench.benchmarks.collector import build_dataframe, flatten, summarise_dataframe, write_outcomes_csv
from storage_bench.benchmarks.config import OperationKind
from storage_bench.benchmarks.metrics import BatchResult, OperationOutcome, reduce_outcomes
from storage_bench.benchmarks.report import build_report


def _outcomes():
    put = tuple(
        OperationOutcome(OperationKind.PUT, i, True, elapsed)
        for i, elapsed in enumerate([0.1, 0.2, 0.15], start=1)
    )
    get = tuple(OperationOutcome(OperationKind.GET, i, False, 0.3) for i in range(1, 4))
    return {OperationKind.PUT: put, OperationKind.GET: get}


def test_build_dataframe_columns():
    df = build_dataframe(flatten(_outcomes()))

    assert list(df.columns) == ["kind", "iteration", "success", "elapsed_s"]
    assert len(df) == 6
    assert df["success"].sum() == 3


def test_empty_dataframe_keeps_columns():
    df = build_dataframe([])

    assert df.empty
    assert list(df.columns) == ["kind", "iteration", "success", "elapsed_s"]


def test_summary_counts_failures_as_zero():
    summary = summarise_dataframe(build_dataframe(flatten(_outcomes()))).set_index("kind")

    assert summary.loc["PUT", "successful"] == 3
    assert summary.loc["PUT", "mean_elapsed_s"] == pytest.approx(0.15)
    assert summary.loc["GET", "attempted"] == 3
    assert summary.loc["GET", "successful"] == 0
    assert summary.loc["GET", "mean_elapsed_s"] == 0.0


def test_write_outcomes_csv(tmp_path):
    path = write_outcomes_csv(build_dataframe(flatten(_outcomes())), tmp_path / "nested" / "outcomes.csv")

    assert path.read_text(encoding="utf-8").startswith("kind,iteration,success,elapsed_s")


def test_render_run_charts(bench_config, tmp_path):
    outcomes = _outcomes()
    stats = {kind: reduce_outcomes(items) for kind, items in outcomes.items()}
    report = build_report(bench_config, stats, BatchResult(2, 1024, 0.5, 2))

    path = render_run_charts(build_dataframe(flatten(outcomes)), report, tmp_path / "charts")

    assert path == tmp_path / "charts" / CHART_FILENAME
    assert path.stat().st_size > 0
