"""Tests for navsim.eval.diagnostics: rebalance counts and quadrant labels."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from navsim.data.dataset import AllocationDecision, Observation, Period
from navsim.engine.errors import MalformedInputError
from navsim.engine.simulate import simulate
from navsim.eval.diagnostics import (
    UNLABELED,
    compute_diagnostics,
    count_rebalance_quadrants,
    label_quadrant,
)
from navsim.experiments.spec import fixed_weight_config

FIELDS = ("growth", "inflation")


def _obs(day: int, growth: float, inflation: float, price: float = 100.0) -> Observation:
    return Observation(
        period=Period(date(2024, 1, 1) + timedelta(days=day)),
        price=price,
        macro={"growth": growth, "inflation": inflation},
    )


def _make_run(rebalance_every: int = 1):
    observations = [
        _obs(0, 1.0, 2.0, 100.0),
        _obs(1, 1.5, 1.8, 101.0),
        _obs(2, 1.2, 2.2, 99.0),
        _obs(3, 1.2, 2.1, 102.0),
        _obs(4, float("nan"), 2.0, 103.0),
    ]
    weights = [0.5, 0.5, 1.0, -0.5, -0.5]
    allocations = [
        AllocationDecision(o.period, w) for o, w in zip(observations, weights)
    ]
    config = fixed_weight_config(rebalance_every=rebalance_every)
    return simulate(observations, allocations, config), observations


class TestLabelQuadrant:
    def test_up_down(self):
        assert label_quadrant(_obs(0, 1.0, 2.0), _obs(1, 1.5, 1.8), FIELDS) == (
            "growth_up|inflation_down"
        )

    def test_unchanged_counts_as_up(self):
        assert label_quadrant(_obs(0, 1.0, 2.0), _obs(1, 1.0, 2.0), FIELDS) == (
            "growth_up|inflation_up"
        )

    def test_nan_is_unlabeled(self):
        assert label_quadrant(_obs(0, 1.0, 2.0), _obs(1, float("nan"), 2.0), FIELDS) == UNLABELED

    def test_missing_field(self):
        prev = _obs(0, 1.0, 2.0)
        curr = Observation(period=Period(date(2024, 1, 2)), price=100.0, macro={"growth": 1.0})
        with pytest.raises(MalformedInputError) as exc:
            label_quadrant(prev, curr, FIELDS)
        assert exc.value.field == "inflation"


class TestQuadrantCounts:
    def test_every_period(self):
        results, observations = _make_run()
        counts = count_rebalance_quadrants(results, observations, FIELDS)
        assert counts == {
            "growth_down|inflation_up": 1,
            "growth_up|inflation_down": 2,
            UNLABELED: 2,
        }
        assert sum(counts.values()) == len(results)

    def test_only_rebalance_periods(self):
        results, observations = _make_run(rebalance_every=2)
        counts = count_rebalance_quadrants(results, observations, FIELDS)
        assert counts == {"growth_down|inflation_up": 1, UNLABELED: 2}


class TestComputeDiagnostics:
    def test_values(self):
        results, observations = _make_run()
        diag = compute_diagnostics(results, observations)
        assert diag["n_periods"] == 5.0
        assert diag["n_rebalances"] == 5.0
        assert diag["n_trades"] == 2.0
        assert diag["total_turnover"] == pytest.approx(0.5 + 1.5)
        assert diag["cumulative_cost"] == 0.0
        assert diag["final_nav"] == pytest.approx(results[-1].nav)
        assert not any(k.startswith("quadrant:") for k in diag)

    def test_with_quadrants(self):
        results, observations = _make_run()
        diag = compute_diagnostics(results, observations, FIELDS)
        assert diag[f"quadrant:{UNLABELED}"] == 2.0
        assert diag["quadrant:growth_up|inflation_down"] == 2.0
