"""CLI entry points for simulation runs.

Usage:
    python -m navsim.experiments.cli run configs/strategies.yml [--output-dir DIR] [--max-workers N]
    python -m navsim.experiments.cli show <output_dir>
    python -m navsim.experiments.cli compare <output_dir> <strategy_a> <strategy_b>

``run`` exits with status 2 on the first input or configuration error;
outputs of runs that completed before it stay on disk.
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from navsim.engine.errors import ConfigurationError, SimulationError
from navsim.eval.export import read_summary
from navsim.experiments.runner import load_run_file, run_plan

logger = logging.getLogger(__name__)

_METRIC_KEYS = (
    "annualized_return",
    "annualized_volatility",
    "max_drawdown",
    "calmar_ratio",
    "sharpe_ratio",
)


def cmd_run(args: argparse.Namespace) -> int:
    """Run every strategy in a run file, in order."""
    plan = load_run_file(args.run_file)
    if args.output_dir:
        plan = replace(plan, output_dir=Path(args.output_dir))
    if args.max_workers is not None:
        if args.max_workers < 1:
            raise ConfigurationError(
                f"--max-workers must be >= 1, got {args.max_workers}", field="max_workers",
            )
        plan = replace(plan, max_workers=args.max_workers)

    outcomes = run_plan(plan)
    print(json.dumps({
        "output_dir": str(plan.output_dir),
        "runs": [
            {
                "strategy_id": o.strategy.strategy_id,
                "run_name": o.strategy.run_name,
                "sharpe_basis": o.summary.sharpe_basis,
            }
            for o in outcomes
        ],
    }))
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """Print the aggregate summary table as JSON records."""
    summary = read_summary(args.output_dir)
    records = [_clean(r) for r in summary.to_dict(orient="records")]
    print(json.dumps({"output_dir": args.output_dir, "summary": records}))
    return 0


def cmd_compare(args: argparse.Namespace) -> int:
    """Compare two strategies' summary metrics side-by-side."""
    records = {
        r["strategy_id"]: _clean(r)
        for r in read_summary(args.output_dir).to_dict(orient="records")
    }
    rows = {}
    for sid in (args.id_a, args.id_b):
        if sid not in records:
            logger.error("Strategy %s not found in %s", sid, args.output_dir)
            return 2
        rows[sid] = records[sid]

    a, b = rows[args.id_a], rows[args.id_b]
    comparison: dict[str, Any] = {}
    for key in _METRIC_KEYS:
        va, vb = a.get(key), b.get(key)
        diff = round(vb - va, 6) if va is not None and vb is not None else None
        comparison[key] = {"a": va, "b": vb, "diff": diff}

    output: dict[str, Any] = {
        "strategies": [args.id_a, args.id_b],
        "metric_comparison": comparison,
    }
    if a.get("sharpe_basis") != b.get("sharpe_basis"):
        output["note"] = "sharpe_ratio computed on different return bases; not comparable"
    print(json.dumps(output))
    return 0


def _clean(record: dict[str, Any]) -> dict[str, Any]:
    """NaN sentinels -> null so the output is valid JSON."""
    return {
        k: (None if isinstance(v, float) and math.isnan(v) else v)
        for k, v in record.items()
    }


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="navsim.experiments.cli")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    p_run = sub.add_parser("run")
    p_run.add_argument("run_file", help="YAML or JSON run file")
    p_run.add_argument("--output-dir", help="Override the run file's output_dir")
    p_run.add_argument("--max-workers", type=int, help="Override the run file's max_workers")

    p_show = sub.add_parser("show")
    p_show.add_argument("output_dir", help="Directory holding summary.csv")

    p_compare = sub.add_parser("compare")
    p_compare.add_argument("output_dir", help="Directory holding summary.csv")
    p_compare.add_argument("id_a", help="First strategy_id")
    p_compare.add_argument("id_b", help="Second strategy_id")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    commands = {"run": cmd_run, "show": cmd_show, "compare": cmd_compare}
    try:
        return commands[args.command](args)
    except (SimulationError, FileNotFoundError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
