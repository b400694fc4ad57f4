"""PortfolioState: mutable NAV/weight/accumulator state for one simulation run.

One instance per ``simulate()`` call, owned and updated only by the loop.
Never shared across runs, so independent runs can execute concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class PortfolioState:
    """Mutable portfolio state threaded through the simulation loop.

    Attributes:
        nav: Current net asset value.
        current_weight: Weight held during the next period (set at rebalances).
        cumulative_cost: Sum of cost charges (as return fractions) so far.
        cumulative_funding: Sum of funding charges (as return fractions) so far.
    """

    nav: float = 1.0
    current_weight: float = 0.0
    cumulative_cost: float = 0.0
    cumulative_funding: float = 0.0

    def apply_period(self, period_return: float, cost: float, funding: float) -> None:
        """Compound one period's adjusted return into NAV and book its charges."""
        self.nav = self.nav * (1.0 + period_return)
        self.cumulative_cost += cost
        self.cumulative_funding += funding

    def trade_size(self, target_weight: float) -> float:
        return abs(target_weight - self.current_weight)

    def rebalance(self, target_weight: float) -> None:
        self.current_weight = target_weight

