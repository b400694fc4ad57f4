"""Cost and funding adjustments applied by the simulation loop.

Both are capability interfaces: any callable with the right signature can be
passed to ``simulate()``. A cost model must be non-decreasing in trade size
and in volatility, and return 0 for a zero trade. A funding model maps the
held weight and a per-period rate to a charge (negative = credit).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol, Sequence

import numpy as np


class CostModel(Protocol):
    def __call__(self, trade_size: float, volatility: float) -> float: ...


class FundingModel(Protocol):
    def __call__(self, weight: float, rate: float) -> float: ...


# ---------------------------------------------------------------------------
# Default models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VolatilityScaledCost:
    """cost = trade_size * base_cost_bp / 1e4 * volatility / reference_vol.

    At ``volatility == reference_vol`` a full unit of turnover costs exactly
    ``base_cost_bp`` basis points.
    """

    base_cost_bp: float = 10.0
    reference_vol: float = 0.20

    def __call__(self, trade_size: float, volatility: float) -> float:
        if trade_size <= 0.0:
            return 0.0
        return trade_size * (self.base_cost_bp / 10_000.0) * (volatility / self.reference_vol)


@dataclass(frozen=True)
class WeightedFunding:
    """Funding proportional to exposure: longs pay the rate, shorts receive it."""

    def __call__(self, weight: float, rate: float) -> float:
        return weight * rate


# ---------------------------------------------------------------------------
# Volatility estimate
# ---------------------------------------------------------------------------

def trailing_volatility(
    asset_returns: Sequence[float],
    lookback: int,
    periods_per_year: int,
) -> float | None:
    """Annualized sample stddev of the last *lookback* returns.

    Returns None when there is not enough history or the window is flat,
    which the loop treats as "no cost adjustment this period".
    """
    if len(asset_returns) < lookback:
        return None
    window = np.asarray(asset_returns[-lookback:], dtype=np.float64)
    std = float(window.std(ddof=1))
    if not math.isfinite(std) or std <= 0.0:
        return None
    return std * math.sqrt(periods_per_year)
