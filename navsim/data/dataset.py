"""Market dataset and allocation stream: typed rows, CSV loading, validation.

Both inputs are flat delimited files with a header row. Columns are looked up
by name, so column order is not part of the contract. Rows are validated on
load (finite numbers, strictly increasing periods) and are immutable afterwards.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

from navsim.engine.errors import MalformedInputError

logger = logging.getLogger(__name__)

DATE_COLUMN = "date"
SEQ_COLUMN = "seq"


@dataclass(frozen=True, order=True)
class Period:
    """Ordered row index: calendar date plus an intra-date sequence number."""

    date: date
    seq: int = 0

    def __str__(self) -> str:
        if self.seq:
            return f"{self.date.isoformat()}#{self.seq}"
        return self.date.isoformat()


@dataclass(frozen=True)
class Observation:
    period: Period
    price: float
    macro: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class AllocationDecision:
    period: Period
    target_weight: float


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def finite_float(value: Any, *, period: Period | None, field_name: str) -> float:
    """Coerce *value* to a finite float or raise MalformedInputError."""
    try:
        out = float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedInputError(
            f"non-numeric value {value!r}", period=period, field=field_name,
        ) from exc
    if not math.isfinite(out):
        raise MalformedInputError(
            f"non-finite value {out!r}", period=period, field=field_name,
        )
    return out


def check_strictly_increasing(periods: Iterable[Period], source: str) -> None:
    """Raise MalformedInputError on the first duplicate or out-of-order period."""
    prev: Period | None = None
    for p in periods:
        if prev is not None and p <= prev:
            raise MalformedInputError(
                f"{source} periods must be strictly increasing (previous {prev})",
                period=p,
                field=DATE_COLUMN,
            )
        prev = p


# ---------------------------------------------------------------------------
# CSV loading
# ---------------------------------------------------------------------------


def load_observations(
    path: Path | str,
    *,
    price_field: str = "price",
    sep: str = ",",
) -> list[Observation]:
    """Load price/macro observations from a delimited file.

    Every column other than ``date``, ``seq`` and *price_field* becomes a
    macro field. Blank macro cells load as NaN; a field is only checked for
    finiteness when the engine actually reads it.
    """
    df = _read_table(path, required=(DATE_COLUMN, price_field), sep=sep)
    periods = _parse_periods(df, path)

    macro_cols = [c for c in df.columns if c not in (DATE_COLUMN, SEQ_COLUMN, price_field)]
    for col in macro_cols:
        try:
            df[col] = pd.to_numeric(df[col], errors="raise")
        except (TypeError, ValueError) as exc:
            raise MalformedInputError(
                f"non-numeric macro column in {path}", field=col,
            ) from exc

    observations: list[Observation] = []
    for period, (_, row) in zip(periods, df.iterrows()):
        price = finite_float(row[price_field], period=period, field_name=price_field)
        if price <= 0:
            raise MalformedInputError(
                f"price must be > 0, got {price}", period=period, field=price_field,
            )
        macro = {col: float(row[col]) for col in macro_cols}
        observations.append(Observation(period=period, price=price, macro=macro))

    check_strictly_increasing((o.period for o in observations), "observation")
    logger.info("Loaded %d observations from %s", len(observations), path)
    return observations


def load_allocations(
    path: Path | str,
    *,
    weight_field: str = "target_weight",
    sep: str = ",",
) -> list[AllocationDecision]:
    """Load target allocation weights from a delimited file."""
    df = _read_table(path, required=(DATE_COLUMN, weight_field), sep=sep)
    periods = _parse_periods(df, path)

    allocations = [
        AllocationDecision(
            period=period,
            target_weight=finite_float(value, period=period, field_name=weight_field),
        )
        for period, value in zip(periods, df[weight_field].tolist())
    ]

    check_strictly_increasing((a.period for a in allocations), "allocation")
    logger.info("Loaded %d allocation decisions from %s", len(allocations), path)
    return allocations


def _read_table(path: Path | str, required: Sequence[str], sep: str = ",") -> pd.DataFrame:
    path = Path(path)
    df = pd.read_csv(path, sep=sep)
    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise MalformedInputError(
            f"{path} is missing required columns {missing}", field=missing[0],
        )
    return df


def _parse_periods(df: pd.DataFrame, path: Path | str) -> list[Period]:
    try:
        dates = pd.to_datetime(df[DATE_COLUMN], errors="raise")
    except (TypeError, ValueError) as exc:
        raise MalformedInputError(
            f"unparseable date in {path}", field=DATE_COLUMN,
        ) from exc
    if dates.isna().any():
        raise MalformedInputError(f"blank date in {path}", field=DATE_COLUMN)

    if SEQ_COLUMN in df.columns:
        seqs = [
            int(finite_float(v, period=None, field_name=SEQ_COLUMN))
            for v in df[SEQ_COLUMN].tolist()
        ]
    else:
        seqs = [0] * len(df)

    return [Period(ts.date(), seq) for ts, seq in zip(dates, seqs)]
