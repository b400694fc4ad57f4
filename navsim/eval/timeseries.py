"""Per-period series output: PeriodResult list -> tabular frame."""

from __future__ import annotations

from typing import Sequence

import pandas as pd

from navsim.engine.simulate import PeriodResult

SERIES_COLUMNS = (
    "period",
    "nav",
    "period_return",
    "turnover",
    "cost_paid",
    "funding_paid",
    "raw_return",
    "weight",
    "drawdown",
)


def compute_drawdown_series(nav: pd.Series) -> pd.Series:
    """Drawdown at each period as a positive fraction of the running peak."""
    running_max = nav.cummax()
    return (running_max - nav) / running_max


def results_to_frame(results: Sequence[PeriodResult]) -> pd.DataFrame:
    """One row per period, contract columns first, period rendered as a string."""
    df = pd.DataFrame({
        "period": [str(r.period) for r in results],
        "nav": [r.nav for r in results],
        "period_return": [r.period_return for r in results],
        "turnover": [r.turnover for r in results],
        "cost_paid": [r.cost_paid for r in results],
        "funding_paid": [r.funding_paid for r in results],
        "raw_return": [r.raw_return for r in results],
        "weight": [r.weight for r in results],
    })
    df["drawdown"] = compute_drawdown_series(df["nav"])
    return df[list(SERIES_COLUMNS)]
