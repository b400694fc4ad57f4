"""Run diagnostics for the auxiliary table: rebalance activity and quadrant counts.

Quadrants classify each rebalance by the direction of two macro fields since
the previous observation, e.g. ``growth_up|inflation_down``. Rebalances where
either field is NaN, or that happen on the first period, are counted as
``unlabeled``.
"""

from __future__ import annotations

import math
from collections import Counter
from typing import Sequence

import numpy as np

from navsim.data.dataset import Observation
from navsim.engine.errors import MalformedInputError
from navsim.engine.simulate import PeriodResult
from navsim.eval.metrics import compute_drawdown_duration

UNLABELED = "unlabeled"


def label_quadrant(
    prev: Observation,
    curr: Observation,
    fields: tuple[str, str],
) -> str:
    """Label the move from *prev* to *curr* on two macro fields."""
    parts: list[str] = []
    for name in fields:
        for obs in (prev, curr):
            if name not in obs.macro:
                raise MalformedInputError(
                    "missing quadrant field", period=obs.period, field=name,
                )
        a, b = prev.macro[name], curr.macro[name]
        if math.isnan(a) or math.isnan(b):
            return UNLABELED
        parts.append(f"{name}_{'up' if b >= a else 'down'}")
    return "|".join(parts)


def count_rebalance_quadrants(
    results: Sequence[PeriodResult],
    observations: Sequence[Observation],
    fields: tuple[str, str],
) -> dict[str, int]:
    """Rebalance counts per quadrant, keys sorted for stable output."""
    counts: Counter[str] = Counter()
    for i, result in enumerate(results):
        if not result.rebalanced:
            continue
        if i == 0:
            counts[UNLABELED] += 1
            continue
        counts[label_quadrant(observations[i - 1], observations[i], fields)] += 1
    return dict(sorted(counts.items()))


def compute_diagnostics(
    results: Sequence[PeriodResult],
    observations: Sequence[Observation],
    quadrant_fields: tuple[str, str] | None = None,
) -> dict[str, float]:
    """Flat name -> value mapping of run diagnostics."""
    navs = np.array([r.nav for r in results], dtype=np.float64)
    diagnostics: dict[str, float] = {
        "n_periods": float(len(results)),
        "n_rebalances": float(sum(1 for r in results if r.rebalanced)),
        "n_trades": float(sum(1 for r in results if r.turnover > 0)),
        "total_turnover": float(sum(r.turnover for r in results)),
        "cumulative_cost": float(sum(r.cost_paid for r in results)),
        "cumulative_funding": float(sum(r.funding_paid for r in results)),
        "final_nav": float(navs[-1]) if len(navs) else float("nan"),
        "max_drawdown_duration": float(compute_drawdown_duration(navs)),
    }
    if quadrant_fields is not None:
        for label, n in count_rebalance_quadrants(results, observations, quadrant_fields).items():
            diagnostics[f"quadrant:{label}"] = float(n)
    return diagnostics
