"""Tests for navsim.data.dataset: CSV loading and validation."""

from __future__ import annotations

import math
from datetime import date

import pytest

from navsim.data.dataset import (
    Period,
    check_strictly_increasing,
    finite_float,
    load_allocations,
    load_observations,
)
from navsim.engine.errors import MalformedInputError


def _write(tmp_path, name: str, text: str):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestPeriod:
    def test_ordering(self):
        assert Period(date(2024, 1, 1)) < Period(date(2024, 1, 1), 1) < Period(date(2024, 1, 2))

    def test_str(self):
        assert str(Period(date(2024, 1, 5))) == "2024-01-05"
        assert str(Period(date(2024, 1, 5), 2)) == "2024-01-05#2"


class TestValidationHelpers:
    def test_finite_float(self):
        assert finite_float("1.5", period=None, field_name="x") == 1.5

    @pytest.mark.parametrize("value", ["abc", None, float("nan"), float("inf")])
    def test_finite_float_rejects(self, value):
        with pytest.raises(MalformedInputError) as exc:
            finite_float(value, period=None, field_name="x")
        assert exc.value.field == "x"

    def test_strictly_increasing(self):
        p = [Period(date(2024, 1, d)) for d in (1, 2, 2)]
        check_strictly_increasing(p[:2], "test")
        with pytest.raises(MalformedInputError) as exc:
            check_strictly_increasing(p, "test")
        assert exc.value.period == p[2]


class TestLoadObservations:
    def test_loads_price_and_macro(self, tmp_path):
        path = _write(
            tmp_path, "obs.csv",
            "date,price,funding_rate,growth\n"
            "2024-01-02,100.0,0.05,1.1\n"
            "2024-01-03,101.5,0.05,\n",
        )
        obs = load_observations(path)
        assert len(obs) == 2
        assert obs[0].period == Period(date(2024, 1, 2))
        assert obs[1].price == 101.5
        assert obs[0].macro == {"funding_rate": 0.05, "growth": 1.1}
        assert math.isnan(obs[1].macro["growth"])

    def test_column_order_irrelevant(self, tmp_path):
        path = _write(tmp_path, "obs.csv", "growth,price,date\n1.0,100,2024-01-02\n")
        obs = load_observations(path)
        assert obs[0].price == 100.0
        assert obs[0].macro == {"growth": 1.0}

    def test_custom_price_field_and_separator(self, tmp_path):
        path = _write(tmp_path, "obs.csv", "date;close\n2024-01-02;50\n2024-01-03;51\n")
        obs = load_observations(path, price_field="close", sep=";")
        assert [o.price for o in obs] == [50.0, 51.0]

    def test_seq_column(self, tmp_path):
        path = _write(
            tmp_path, "obs.csv",
            "date,seq,price\n2024-01-02,0,100\n2024-01-02,1,101\n",
        )
        obs = load_observations(path)
        assert [str(o.period) for o in obs] == ["2024-01-02", "2024-01-02#1"]

    def test_missing_price_column(self, tmp_path):
        path = _write(tmp_path, "obs.csv", "date,close\n2024-01-02,100\n")
        with pytest.raises(MalformedInputError) as exc:
            load_observations(path)
        assert exc.value.field == "price"

    def test_nan_price(self, tmp_path):
        path = _write(tmp_path, "obs.csv", "date,price\n2024-01-02,100\n2024-01-03,\n")
        with pytest.raises(MalformedInputError) as exc:
            load_observations(path)
        assert exc.value.field == "price"
        assert exc.value.period == Period(date(2024, 1, 3))

    def test_non_positive_price(self, tmp_path):
        path = _write(tmp_path, "obs.csv", "date,price\n2024-01-02,-1\n")
        with pytest.raises(MalformedInputError):
            load_observations(path)

    def test_non_numeric_macro(self, tmp_path):
        path = _write(tmp_path, "obs.csv", "date,price,growth\n2024-01-02,100,high\n")
        with pytest.raises(MalformedInputError) as exc:
            load_observations(path)
        assert exc.value.field == "growth"

    def test_unparseable_date(self, tmp_path):
        path = _write(tmp_path, "obs.csv", "date,price\nnot-a-date,100\n")
        with pytest.raises(MalformedInputError) as exc:
            load_observations(path)
        assert exc.value.field == "date"

    def test_non_monotonic(self, tmp_path):
        path = _write(
            tmp_path, "obs.csv",
            "date,price\n2024-01-03,100\n2024-01-02,101\n",
        )
        with pytest.raises(MalformedInputError):
            load_observations(path)


class TestLoadAllocations:
    def test_loads_weights(self, tmp_path):
        path = _write(
            tmp_path, "alloc.csv",
            "date,target_weight\n2024-01-02,0.5\n2024-01-03,-0.25\n",
        )
        alloc = load_allocations(path)
        assert [a.target_weight for a in alloc] == [0.5, -0.25]

    def test_custom_weight_field(self, tmp_path):
        path = _write(tmp_path, "alloc.csv", "date,w\n2024-01-02,1\n")
        assert load_allocations(path, weight_field="w")[0].target_weight == 1.0

    def test_nan_weight(self, tmp_path):
        path = _write(tmp_path, "alloc.csv", "date,target_weight\n2024-01-02,\n")
        with pytest.raises(MalformedInputError) as exc:
            load_allocations(path)
        assert exc.value.field == "target_weight"

    def test_duplicate_period(self, tmp_path):
        path = _write(
            tmp_path, "alloc.csv",
            "date,target_weight\n2024-01-02,0.5\n2024-01-02,0.6\n",
        )
        with pytest.raises(MalformedInputError):
            load_allocations(path)
