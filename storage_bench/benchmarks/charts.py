from __future__ import annotations

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .collector import summarise_dataframe
from .config import SAMPLED_KINDS
from .report import RunReport

LOGGER = logging.getLogger("storage_bench.benchmark.charts")

sns.set_style("whitegrid")
plt.rcParams["figure.dpi"] = 100
plt.rcParams["savefig.dpi"] = 200
plt.rcParams["font.size"] = 10
plt.rcParams["axes.labelsize"] = 11
plt.rcParams["axes.titlesize"] = 13

KIND_COLORS = {
    "PUT": "#2E86AB",
    "GET": "#6A994E",
    "LIST": "#F18F01",
    "DELETE": "#C73E1D",
}

CHART_FILENAME = "benchmark_summary.png"


def render_run_charts(outcomes: pd.DataFrame, report: RunReport, output_dir: Path) -> Path:
    """Render per-iteration latency and per-kind success rate side by side."""
    output_dir.mkdir(parents=True, exist_ok=True)
    chart_path = output_dir / CHART_FILENAME
    kind_order = [kind.value for kind in SAMPLED_KINDS]

    fig, (ax_latency, ax_success) = plt.subplots(1, 2, figsize=(13, 5))
    _render_latency_strip(outcomes, kind_order, ax_latency)
    _render_success_bars(outcomes, kind_order, ax_success)

    fig.suptitle(
        f"{report.config.endpoint} - overall {report.overall_success_rate:.1f}% ({report.status.value})",
        fontweight="bold",
    )
    fig.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white", edgecolor="none")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return chart_path


def _render_latency_strip(df: pd.DataFrame, kind_order: list[str], ax: plt.Axes) -> None:
    successes = df[df["success"]] if not df.empty else df
    if successes.empty:
        ax.text(0.5, 0.5, "No successful operations", ha="center", va="center", transform=ax.transAxes)
        ax.set_axis_off()
        return

    sns.stripplot(
        data=successes,
        x="kind",
        y="elapsed_s",
        hue="kind",
        order=kind_order,
        hue_order=kind_order,
        palette=KIND_COLORS,
        size=8,
        jitter=0.15,
        legend=False,
        ax=ax,
    )
    means = successes.groupby("kind")["elapsed_s"].mean()
    for idx, kind in enumerate(kind_order):
        if kind in means.index:
            ax.hlines(means[kind], idx - 0.3, idx + 0.3, colors="black", linewidth=1.5)

    ax.set_title("Per-iteration duration (successful)", fontweight="bold", pad=10)
    ax.set_xlabel("Operation", fontweight="semibold")
    ax.set_ylabel("Duration (seconds)", fontweight="semibold")
    ax.set_ylim(bottom=0)


def _render_success_bars(df: pd.DataFrame, kind_order: list[str], ax: plt.Axes) -> None:
    summary = summarise_dataframe(df).set_index("kind").reindex(kind_order)
    attempted = summary["attempted"].fillna(0).to_numpy(dtype=float)
    successful = summary["successful"].fillna(0).to_numpy(dtype=float)
    rates = np.divide(
        successful * 100.0,
        attempted,
        out=np.zeros_like(successful),
        where=attempted > 0,
    )

    positions = np.arange(len(kind_order))
    bars = ax.bar(
        positions,
        rates,
        color=[KIND_COLORS[kind] for kind in kind_order],
        edgecolor="black",
        linewidth=0.6,
    )
    for bar, ok, total in zip(bars, successful, attempted):
        ax.text(
            bar.get_x() + bar.get_width() / 2,
            bar.get_height() + 1.5,
            f"{int(ok)}/{int(total)}",
            ha="center",
            va="bottom",
            fontsize=9,
        )

    ax.set_xticks(positions)
    ax.set_xticklabels(kind_order)
    ax.set_ylim(0, 110)
    ax.set_title("Success rate", fontweight="bold", pad=10)
    ax.set_xlabel("Operation", fontweight="semibold")
    ax.set_ylabel("Success rate (%)", fontweight="semibold")
