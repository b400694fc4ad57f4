"""Flat-file output: per-run series, aggregate summary, diagnostics table.

Layout under an output directory::

    runs/<strategy_id>__<config_id[:12]>.csv   one file per run, overwritten on re-run
    summary.csv                                one row per strategy_id
    diagnostics.csv                            strategy_id, name, value

Summary and diagnostics rows are keyed by strategy_id: writing a strategy
replaces its previous rows and leaves every other strategy's rows alone.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Mapping, Sequence

import pandas as pd

from navsim.engine.simulate import PeriodResult
from navsim.eval.metrics import MetricsSummary
from navsim.eval.timeseries import results_to_frame

logger = logging.getLogger(__name__)

RUNS_DIR = "runs"
SUMMARY_FILE = "summary.csv"
DIAGNOSTICS_FILE = "diagnostics.csv"

SUMMARY_COLUMNS = (
    "strategy_id",
    "annualized_return",
    "annualized_volatility",
    "max_drawdown",
    "calmar_ratio",
    "sharpe_ratio",
    "sharpe_basis",
    "n_periods",
    "config_id",
)
DIAGNOSTICS_COLUMNS = ("strategy_id", "name", "value")


def series_path(output_dir: Path | str, run_name: str) -> Path:
    return Path(output_dir) / RUNS_DIR / f"{run_name}.csv"


def write_series(
    results: Sequence[PeriodResult],
    output_dir: Path | str,
    run_name: str,
) -> Path:
    """Write one run's per-period series; returns the file path."""
    path = series_path(output_dir, run_name)
    path.parent.mkdir(parents=True, exist_ok=True)
    results_to_frame(results).to_csv(path, index=False)
    logger.info("Wrote %d periods to %s", len(results), path)
    return path


def summary_row(
    strategy_id: str,
    summary: MetricsSummary,
    config_id: str,
) -> dict[str, Any]:
    row: dict[str, Any] = {"strategy_id": strategy_id}
    row.update(asdict(summary))
    row["config_id"] = config_id
    return row


def write_summary(output_dir: Path | str, row: Mapping[str, Any]) -> Path:
    """Insert or replace the summary row for ``row['strategy_id']``."""
    path = Path(output_dir) / SUMMARY_FILE
    new = pd.DataFrame([dict(row)], columns=list(SUMMARY_COLUMNS))
    _upsert(path, new, row["strategy_id"], SUMMARY_COLUMNS)
    logger.info("Updated %s for %s", path, row["strategy_id"])
    return path


def write_diagnostics(
    output_dir: Path | str,
    strategy_id: str,
    diagnostics: Mapping[str, float],
) -> Path:
    """Replace the diagnostics rows for *strategy_id*."""
    path = Path(output_dir) / DIAGNOSTICS_FILE
    new = pd.DataFrame(
        [
            {"strategy_id": strategy_id, "name": name, "value": value}
            for name, value in diagnostics.items()
        ],
        columns=list(DIAGNOSTICS_COLUMNS),
    )
    _upsert(path, new, strategy_id, DIAGNOSTICS_COLUMNS)
    return path


def read_summary(output_dir: Path | str) -> pd.DataFrame:
    path = Path(output_dir) / SUMMARY_FILE
    if not path.exists():
        return pd.DataFrame(columns=list(SUMMARY_COLUMNS))
    return pd.read_csv(path, dtype={"strategy_id": str})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _upsert(
    path: Path,
    new_rows: pd.DataFrame,
    strategy_id: str,
    columns: Sequence[str],
) -> None:
    """Drop *strategy_id*'s existing rows from *path*, append *new_rows*, rewrite."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        existing = pd.read_csv(path, dtype={"strategy_id": str})
        existing = existing[existing["strategy_id"] != strategy_id]
        combined = pd.concat(
            [frame for frame in (existing, new_rows) if not frame.empty],
            ignore_index=True,
        )
    else:
        combined = new_rows
    combined = combined.reindex(columns=list(columns))
    combined.to_csv(path, index=False)
