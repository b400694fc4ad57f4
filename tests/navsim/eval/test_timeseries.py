"""Tests for navsim.eval.timeseries."""

from __future__ import annotations

from datetime import date

import pandas as pd
import pytest

from navsim.data.dataset import AllocationDecision, Observation, Period
from navsim.engine.simulate import simulate
from navsim.eval.timeseries import SERIES_COLUMNS, compute_drawdown_series, results_to_frame
from navsim.experiments.spec import fixed_weight_config


def _make_results():
    periods = [Period(date(2024, 3, d)) for d in (1, 4, 5, 6)]
    obs = [Observation(p, price) for p, price in zip(periods, [100.0, 102.0, 99.0, 105.0])]
    alloc = [AllocationDecision(p, 1.0) for p in periods]
    return simulate(obs, alloc, fixed_weight_config())


class TestDrawdownSeries:
    def test_positive_fraction(self):
        dd = compute_drawdown_series(pd.Series([1.0, 1.2, 0.9, 1.3]))
        assert dd.tolist() == pytest.approx([0.0, 0.0, 0.25, 0.0])


class TestResultsToFrame:
    def test_columns_and_rows(self):
        df = results_to_frame(_make_results())
        assert tuple(df.columns) == SERIES_COLUMNS
        assert len(df) == 4

    def test_period_rendered_iso(self):
        df = results_to_frame(_make_results())
        assert df["period"].tolist() == ["2024-03-01", "2024-03-04", "2024-03-05", "2024-03-06"]

    def test_values(self):
        df = results_to_frame(_make_results())
        assert df["nav"].tolist() == pytest.approx([1.0, 1.02, 0.99, 1.05])
        assert df["turnover"].tolist() == [0.0, 0.0, 0.0, 0.0]
        assert df["drawdown"].iloc[2] == pytest.approx(0.03 / 1.02)
