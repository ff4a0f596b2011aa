from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Sequence

import pandas as pd

from .config import OperationKind
from .metrics import OperationOutcome

LOGGER = logging.getLogger("storage_bench.benchmark.collector")

OUTCOME_COLUMNS = ["kind", "iteration", "success", "elapsed_s"]


def build_dataframe(outcomes: Iterable[OperationOutcome]) -> pd.DataFrame:
    rows = [
        {
            "kind": outcome.kind.value,
            "iteration": outcome.iteration_index,
            "success": outcome.success,
            "elapsed_s": outcome.elapsed,
        }
        for outcome in outcomes
    ]
    if not rows:
        return pd.DataFrame(columns=OUTCOME_COLUMNS)
    return pd.DataFrame(rows, columns=OUTCOME_COLUMNS)


def flatten(outcomes_by_kind: Mapping[OperationKind, Sequence[OperationOutcome]]) -> list[OperationOutcome]:
    return [outcome for outcomes in outcomes_by_kind.values() for outcome in outcomes]


def summarise_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    """Per-kind success counts and mean successful latency."""
    if df.empty:
        return pd.DataFrame(columns=["kind", "attempted", "successful", "mean_elapsed_s"])
    successes = df[df["success"]]
    summary = df.groupby("kind", sort=False).size().rename("attempted").to_frame()
    summary["successful"] = successes.groupby("kind").size()
    summary["mean_elapsed_s"] = successes.groupby("kind")["elapsed_s"].mean()
    summary = summary.fillna({"successful": 0, "mean_elapsed_s": 0.0})
    summary["successful"] = summary["successful"].astype(int)
    return summary.reset_index()


def write_outcomes_csv(df: pd.DataFrame, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    LOGGER.info("Saved %d outcome rows to %s", len(df), path)
    return path
