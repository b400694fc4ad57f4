"""Metric computation from a simulated PeriodResult series.

Arithmetic annualization (mean * periods_per_year), sample volatility,
single-pass running-peak max drawdown, Calmar and Sharpe. Ratios with a
zero denominator are reported as NaN rather than inf or 0.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from navsim.engine.errors import ConfigurationError, InsufficientDataError
from navsim.engine.simulate import PeriodResult

SHARPE_BASES = ("excess", "raw")


@dataclass(frozen=True)
class MetricsSummary:
    annualized_return: float
    annualized_volatility: float
    max_drawdown: float
    calmar_ratio: float
    sharpe_ratio: float
    sharpe_basis: str
    n_periods: int


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

def compute_annualized_return(returns: np.ndarray, periods_per_year: int) -> float:
    """mean(returns) * periods_per_year (not compounded)."""
    if len(returns) == 0:
        return 0.0
    return float(np.mean(returns) * periods_per_year)


def compute_annualized_volatility(returns: np.ndarray, periods_per_year: int) -> float:
    """Sample stddev * sqrt(periods_per_year); 0.0 with fewer than 2 returns."""
    if len(returns) < 2:
        return 0.0
    return float(np.std(returns, ddof=1) * math.sqrt(periods_per_year))


def compute_max_drawdown(navs: np.ndarray) -> float:
    """Largest peak-to-trough decline as a positive fraction of the peak."""
    if len(navs) < 2:
        return 0.0
    running_peak = np.maximum.accumulate(navs)
    drawdowns = (running_peak - navs) / running_peak
    return float(drawdowns.max())


def compute_drawdown_duration(navs: np.ndarray) -> int:
    """Longest run of consecutive periods spent below a prior peak."""
    if len(navs) < 2:
        return 0
    running_peak = np.maximum.accumulate(navs)
    longest = current = 0
    for below in navs < running_peak:
        current = current + 1 if below else 0
        longest = max(longest, current)
    return longest


def compute_calmar(annualized_return: float, max_drawdown: float) -> float:
    if max_drawdown == 0:
        return float("nan")
    return float(annualized_return / max_drawdown)


def compute_sharpe(returns: np.ndarray, periods_per_year: int) -> float:
    """Annualized mean over annualized sample stddev of *returns*."""
    vol = compute_annualized_volatility(returns, periods_per_year)
    if vol == 0 or not math.isfinite(vol):
        return float("nan")
    return compute_annualized_return(returns, periods_per_year) / vol


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def summarize(
    results: Sequence[PeriodResult],
    periods_per_year: int,
    *,
    sharpe_basis: str,
) -> MetricsSummary:
    """Reduce a completed run to its summary statistics.

    The first result is the NAV seed and carries no return, so return
    statistics use results[1:]; drawdown uses every NAV including the seed.

    Args:
        results: Output of ``simulate``.
        periods_per_year: Annualization factor (252 for daily, 12 for monthly).
        sharpe_basis: ``"excess"`` computes Sharpe on ``period_return`` (post
            funding and cost); ``"raw"`` on the return before funding, with
            any cost drag still applied. Without funding the two coincide and
            Sharpe equals annualized_return / annualized_volatility. There is
            no default: the caller states which series it is handing over.
    """
    if sharpe_basis not in SHARPE_BASES:
        raise ConfigurationError(
            f"sharpe_basis must be one of {SHARPE_BASES}, got '{sharpe_basis}'",
            field="sharpe_basis",
        )
    if periods_per_year <= 0:
        raise ConfigurationError(
            "periods_per_year must be > 0", field="periods_per_year",
        )
    if len(results) < 2:
        raise InsufficientDataError(
            f"need at least 2 periods to summarize, got {len(results)}",
        )

    navs = np.array([r.nav for r in results], dtype=np.float64)
    returns = np.array([r.period_return for r in results[1:]], dtype=np.float64)
    if sharpe_basis == "excess":
        basis_returns = returns
    else:
        # Funding added back; cost drag stays in
        basis_returns = np.array(
            [r.period_return + r.funding_paid for r in results[1:]], dtype=np.float64,
        )

    ann_ret = compute_annualized_return(returns, periods_per_year)
    max_dd = compute_max_drawdown(navs)

    return MetricsSummary(
        annualized_return=ann_ret,
        annualized_volatility=compute_annualized_volatility(returns, periods_per_year),
        max_drawdown=max_dd,
        calmar_ratio=compute_calmar(ann_ret, max_dd),
        sharpe_ratio=compute_sharpe(basis_returns, periods_per_year),
        sharpe_basis=sharpe_basis,
        n_periods=len(results),
    )
