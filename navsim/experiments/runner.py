"""Run orchestration: run files, grid expansion, sequential or pooled runs.

A run file (YAML or JSON) lists strategies in the order they are executed::

    output_dir: output
    max_workers: 1
    defaults:                 # config overrides applied to every strategy
      periods_per_year: 252
    strategies:
      - strategy_id: sixty_forty
        observations: data/observations.csv
        allocations: data/allocations.csv
        variant: adjusted
        config: {rebalance_every: 5}
        quadrant_fields: [growth, inflation]
        grid:                 # optional: one run per combination
          rebalance_every: [1, 5, 21]

Runs are independent: each gets its own PortfolioState, so a pool of workers
can compute them concurrently. Outputs are always written by the calling
process in run-file order, one run at a time.
"""

from __future__ import annotations

import itertools
import json
import logging
import os
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import yaml

from navsim.data.dataset import load_allocations, load_observations
from navsim.engine.errors import ConfigurationError
from navsim.engine.simulate import PeriodResult, simulate
from navsim.eval.diagnostics import compute_diagnostics
from navsim.eval.export import summary_row, write_diagnostics, write_series, write_summary
from navsim.eval.metrics import MetricsSummary, summarize
from navsim.experiments.spec import StrategySpec

logger = logging.getLogger(__name__)

_RUN_FILE_KEYS = {"output_dir", "max_workers", "defaults", "strategies"}


@dataclass(frozen=True)
class RunPlan:
    output_dir: Path
    strategies: tuple[StrategySpec, ...]
    max_workers: int = 1


@dataclass(frozen=True)
class RunOutcome:
    strategy: StrategySpec
    results: tuple[PeriodResult, ...]
    summary: MetricsSummary
    diagnostics: Mapping[str, float]


# ---------------------------------------------------------------------------
# Running
# ---------------------------------------------------------------------------

def run_strategy(strategy: StrategySpec) -> RunOutcome:
    """Load inputs, simulate and summarize one strategy. Writes nothing."""
    config = strategy.config
    observations = load_observations(strategy.observations_path, price_field=config.price_field)
    allocations = load_allocations(strategy.allocations_path, weight_field=config.weight_field)

    results = simulate(observations, allocations, config)
    summary = summarize(results, config.periods_per_year, sharpe_basis=config.sharpe_basis)
    diagnostics = compute_diagnostics(results, observations, strategy.quadrant_fields)

    logger.info(
        "Run %s: %d periods, annualized_return=%.4f sharpe(%s)=%.4f max_dd=%.4f",
        strategy.run_name, len(results), summary.annualized_return,
        summary.sharpe_basis, summary.sharpe_ratio, summary.max_drawdown,
    )
    return RunOutcome(
        strategy=strategy,
        results=tuple(results),
        summary=summary,
        diagnostics=diagnostics,
    )


def write_outcome(outcome: RunOutcome, output_dir: Path | str) -> Path:
    """Persist one run's series, summary row and diagnostics; returns the series path."""
    strategy = outcome.strategy
    path = write_series(outcome.results, output_dir, strategy.run_name)
    write_summary(
        output_dir,
        summary_row(strategy.strategy_id, outcome.summary, strategy.config.config_id),
    )
    write_diagnostics(output_dir, strategy.strategy_id, outcome.diagnostics)
    return path


def run_strategies(
    strategies: Sequence[StrategySpec],
    output_dir: Path | str | None = None,
    *,
    max_workers: int = 1,
) -> list[RunOutcome]:
    """Run *strategies* in order; stop at the first failing run.

    With ``max_workers > 1`` runs are computed in a process pool, but
    outcomes are still consumed (and written) in input order, so the first
    error raised is the one of the earliest failing strategy and every run
    before it has already been written.
    """
    _check_unique_ids(strategies)
    workers = _resolve_workers(len(strategies), max_workers)
    logger.info("Running %d strategies (workers=%d)", len(strategies), workers)

    outcomes: list[RunOutcome] = []
    if workers == 1:
        for strategy in strategies:
            outcome = run_strategy(strategy)
            if output_dir is not None:
                write_outcome(outcome, output_dir)
            outcomes.append(outcome)
        return outcomes

    with ProcessPoolExecutor(max_workers=workers) as pool:
        for outcome in pool.map(run_strategy, strategies):
            if output_dir is not None:
                write_outcome(outcome, output_dir)
            outcomes.append(outcome)
    return outcomes


def run_plan(plan: RunPlan) -> list[RunOutcome]:
    return run_strategies(plan.strategies, plan.output_dir, max_workers=plan.max_workers)


# ---------------------------------------------------------------------------
# Run files
# ---------------------------------------------------------------------------

def load_run_file(path: Path | str) -> RunPlan:
    """Parse a YAML/JSON run file. Relative paths resolve against its directory."""
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        if path.suffix in (".yml", ".yaml"):
            raw = yaml.safe_load(f)
        else:
            raw = json.load(f)
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"run file {path} must contain a mapping")
    return build_run_plan(raw, base_dir=path.parent)


def build_run_plan(raw: Mapping[str, Any], *, base_dir: Path | None = None) -> RunPlan:
    ignored = sorted(set(raw) - _RUN_FILE_KEYS)
    if ignored:
        logger.warning("Run file keys ignored: %s", ", ".join(ignored))

    entries = raw.get("strategies") or []
    if not entries:
        raise ConfigurationError("run file lists no strategies", field="strategies")

    defaults = raw.get("defaults") or {}
    strategies: list[StrategySpec] = []
    for entry in entries:
        for expanded in expand_grid(entry):
            strategies.append(
                StrategySpec.from_dict(expanded, defaults=defaults, base_dir=base_dir)
            )
    _check_unique_ids(strategies)

    output_dir = Path(raw.get("output_dir", "output"))
    if base_dir is not None and not output_dir.is_absolute():
        output_dir = base_dir / output_dir

    max_workers = raw.get("max_workers", 1)
    if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
        raise ConfigurationError(
            f"max_workers must be a positive integer, got {max_workers!r}",
            field="max_workers",
        )

    return RunPlan(
        output_dir=output_dir,
        strategies=tuple(strategies),
        max_workers=max_workers,
    )


def expand_grid(entry: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Expand an entry's ``grid`` into one entry per combination.

    Keys are iterated in sorted order; each expanded strategy_id gets a
    ``key=value`` suffix per grid key, e.g. ``trend__rebalance_every=5``.
    """
    grid = entry.get("grid")
    base = {k: v for k, v in entry.items() if k != "grid"}
    if not grid:
        return [base]

    keys = sorted(grid)
    for key in keys:
        if not isinstance(grid[key], list) or not grid[key]:
            raise ConfigurationError(
                f"grid values for '{key}' must be a non-empty list", field=key,
            )

    expanded: list[dict[str, Any]] = []
    for combo in itertools.product(*(grid[k] for k in keys)):
        item = dict(base)
        config = dict(base.get("config") or {})
        config.update(zip(keys, combo))
        item["config"] = config
        suffix = "__".join(f"{k}={v}" for k, v in zip(keys, combo))
        item["strategy_id"] = f"{base.get('strategy_id', '')}__{suffix}"
        expanded.append(item)
    return expanded


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _check_unique_ids(strategies: Iterable[StrategySpec]) -> None:
    seen: set[str] = set()
    for s in strategies:
        if s.strategy_id in seen:
            raise ConfigurationError(
                f"duplicate strategy_id '{s.strategy_id}'", field="strategy_id",
            )
        seen.add(s.strategy_id)


def _resolve_workers(n_items: int, max_workers: int) -> int:
    cpu = os.cpu_count() or 1
    return max(1, min(max_workers, n_items, cpu))
