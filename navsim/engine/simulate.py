"""Simulation loop: replay a weight path over a price series into a NAV series.

For each period, in strictly increasing order:
1. asset return from consecutive prices (or a configured return column)
2. raw return = weight held since the last rebalance * asset return
3. on a rebalance period after the first, trade_size = |target - held|
4. cost = cost_model(trade_size, trailing vol)      (volatility-scaled mode)
5. funding = funding_model(held weight, rate)        (excess-return mode)
6. nav *= 1 + raw - funding - cost
7. on a rebalance period, held weight = target

The return attributed to a period always uses the weight held before that
period's rebalance, so a decision never earns the return of its own period.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from navsim.data.dataset import (
    AllocationDecision,
    Observation,
    Period,
    check_strictly_increasing,
    finite_float,
)
from navsim.engine.adjustments import (
    CostModel,
    FundingModel,
    VolatilityScaledCost,
    WeightedFunding,
    trailing_volatility,
)
from navsim.engine.errors import AlignmentError, ConfigurationError, MalformedInputError
from navsim.engine.state import PortfolioState
from navsim.experiments.spec import SimulationConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodResult:
    period: Period
    nav: float
    period_return: float
    turnover: float
    cost_paid: float
    funding_paid: float
    raw_return: float
    weight: float
    rebalanced: bool


def simulate(
    observations: Sequence[Observation],
    allocations: Sequence[AllocationDecision],
    config: SimulationConfig,
    *,
    cost_model: CostModel | None = None,
    funding_model: FundingModel | None = None,
) -> list[PeriodResult]:
    """Replay *allocations* over *observations* under *config*.

    Args:
        observations: Price/macro rows, strictly increasing periods.
        allocations: Target weights on exactly the same periods.
        config: Cadence, adjustment modes and their parameters.
        cost_model: Replaces the default VolatilityScaledCost; cost must be enabled.
        funding_model: Replaces the default WeightedFunding; funding must be enabled.

    Returns:
        One PeriodResult per input period, in period order.

    Raises:
        AlignmentError: period sets differ.
        ConfigurationError: a model was given for a disabled adjustment.
        MalformedInputError: empty input, non-monotonic periods, bad prices,
            weights or macro fields the run needs.
    """
    _validate_inputs(observations, allocations, config)

    if cost_model is not None and not config.cost_enabled:
        raise ConfigurationError(
            "cost_model given but cost_mode is 'none'", field="cost_mode",
        )
    if funding_model is not None and not config.funding_enabled:
        raise ConfigurationError(
            "funding_model given but funding_mode is 'none'", field="funding_mode",
        )
    if config.cost_enabled and cost_model is None:
        cost_model = VolatilityScaledCost(config.base_cost_bp, config.reference_vol)
    if config.funding_enabled and funding_model is None:
        funding_model = WeightedFunding()

    state = PortfolioState(nav=config.initial_nav)
    asset_returns: list[float] = []
    results: list[PeriodResult] = []

    for i, (obs, alloc) in enumerate(zip(observations, allocations)):
        held = state.current_weight

        if i == 0:
            asset_return = 0.0
        else:
            asset_return = _asset_return(observations[i - 1], obs, config)
            asset_returns.append(asset_return)
        raw_return = held * asset_return

        rebalanced = i % config.rebalance_every == 0
        # The seed period sets the opening weight without trading
        trade_size = state.trade_size(alloc.target_weight) if rebalanced and i > 0 else 0.0

        cost = 0.0
        if cost_model is not None and trade_size > 0.0:
            vol = trailing_volatility(
                asset_returns, config.vol_lookback, config.periods_per_year,
            )
            if vol is not None:
                cost = cost_model(trade_size, vol)

        funding = 0.0
        if funding_model is not None and i > 0:
            rate = _funding_rate(observations[i - 1], config)
            funding = funding_model(held, rate)

        period_return = raw_return - funding - cost
        state.apply_period(period_return, cost, funding)
        if rebalanced:
            state.rebalance(alloc.target_weight)

        results.append(PeriodResult(
            period=obs.period,
            nav=state.nav,
            period_return=period_return,
            turnover=trade_size,
            cost_paid=cost,
            funding_paid=funding,
            raw_return=raw_return,
            weight=held,
            rebalanced=rebalanced,
        ))

    logger.debug(
        "Simulated %d periods: final_nav=%.6f cost=%.6f funding=%.6f",
        len(results), state.nav, state.cumulative_cost, state.cumulative_funding,
    )
    return results


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _validate_inputs(
    observations: Sequence[Observation],
    allocations: Sequence[AllocationDecision],
    config: SimulationConfig,
) -> None:
    if not observations:
        raise MalformedInputError("no observations to simulate")

    check_strictly_increasing((o.period for o in observations), "observation")
    check_strictly_increasing((a.period for a in allocations), "allocation")

    obs_periods = [o.period for o in observations]
    alloc_periods = [a.period for a in allocations]
    if obs_periods != alloc_periods:
        raise AlignmentError(
            f"observation and allocation periods differ "
            f"({len(obs_periods)} vs {len(alloc_periods)} periods)",
            period=_first_mismatch(obs_periods, alloc_periods),
        )

    for obs in observations:
        price = finite_float(obs.price, period=obs.period, field_name=config.price_field)
        if price <= 0:
            raise MalformedInputError(
                f"price must be > 0, got {price}",
                period=obs.period, field=config.price_field,
            )

    for alloc in allocations:
        weight = finite_float(
            alloc.target_weight, period=alloc.period, field_name=config.weight_field,
        )
        if abs(weight) > config.max_abs_weight:
            raise MalformedInputError(
                f"target_weight {weight} outside [-{config.max_abs_weight}, "
                f"{config.max_abs_weight}]",
                period=alloc.period, field=config.weight_field,
            )


def _first_mismatch(a: Sequence[Period], b: Sequence[Period]) -> Period | None:
    for pa, pb in zip(a, b):
        if pa != pb:
            return min(pa, pb)
    if len(a) != len(b):
        longer = a if len(a) > len(b) else b
        return longer[min(len(a), len(b))]
    return None


def _asset_return(prev: Observation, curr: Observation, config: SimulationConfig) -> float:
    if config.return_field is not None:
        return _macro_value(curr, config.return_field)
    return curr.price / prev.price - 1.0


def _funding_rate(obs: Observation, config: SimulationConfig) -> float:
    """Per-period funding rate from the annualized rate in force at *obs*."""
    return _macro_value(obs, config.funding_field) / config.periods_per_year


def _macro_value(obs: Observation, name: str) -> float:
    if name not in obs.macro:
        raise MalformedInputError("missing macro field", period=obs.period, field=name)
    return finite_float(obs.macro[name], period=obs.period, field_name=name)
