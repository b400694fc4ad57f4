"""SimulationConfig and StrategySpec: canonical run configuration.

Frozen dataclasses validated on construction, canonical JSON serialization
and SHA256 content addressing. The engine variants (fixed-weight and
adjusted) are presets over the same SimulationConfig, not separate engines.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Mapping

from navsim.engine.errors import ConfigurationError

COST_MODES = ("none", "volatility-scaled")
FUNDING_MODES = ("none", "excess-return")

_FLOAT_FIELDS = ("initial_nav", "base_cost_bp", "reference_vol", "max_abs_weight")


# ---------------------------------------------------------------------------
# SimulationConfig
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SimulationConfig:
    """Everything that changes the numbers a run produces.

    Two configs with equal fields have equal ``config_id`` and, given the
    same inputs, produce bit-identical results.
    """

    rebalance_every: int = 1
    cost_mode: str = "none"
    funding_mode: str = "none"
    initial_nav: float = 1.0
    periods_per_year: int = 252

    # Cost adjustment
    vol_lookback: int = 20
    base_cost_bp: float = 10.0
    reference_vol: float = 0.20

    # Column names
    price_field: str = "price"
    weight_field: str = "target_weight"
    funding_field: str = "funding_rate"
    return_field: str | None = None

    max_abs_weight: float = 1.0

    def __post_init__(self):
        # YAML hands back ints for "1" and floats for "1.0"; config_id must not care
        for name in _FLOAT_FIELDS:
            val = getattr(self, name)
            if isinstance(val, bool) or not isinstance(val, (int, float)):
                raise ConfigurationError(f"{name} must be a number, got {val!r}", field=name)
            object.__setattr__(self, name, float(val))

        if isinstance(self.rebalance_every, bool) or not isinstance(self.rebalance_every, int):
            raise ConfigurationError(
                f"rebalance_every must be an integer, got {self.rebalance_every!r}",
                field="rebalance_every",
            )
        if self.rebalance_every < 1:
            raise ConfigurationError(
                f"rebalance_every must be >= 1, got {self.rebalance_every}",
                field="rebalance_every",
            )
        if self.cost_mode not in COST_MODES:
            raise ConfigurationError(
                f"cost_mode must be one of {COST_MODES}, got '{self.cost_mode}'",
                field="cost_mode",
            )
        if self.funding_mode not in FUNDING_MODES:
            raise ConfigurationError(
                f"funding_mode must be one of {FUNDING_MODES}, got '{self.funding_mode}'",
                field="funding_mode",
            )
        if not self.initial_nav > 0:
            raise ConfigurationError("initial_nav must be > 0", field="initial_nav")
        for name in ("periods_per_year", "vol_lookback"):
            val = getattr(self, name)
            if isinstance(val, bool) or not isinstance(val, int):
                raise ConfigurationError(f"{name} must be an integer, got {val!r}", field=name)
        if self.periods_per_year <= 0:
            raise ConfigurationError(
                "periods_per_year must be > 0", field="periods_per_year",
            )
        if self.vol_lookback < 2:
            raise ConfigurationError("vol_lookback must be >= 2", field="vol_lookback")
        if self.base_cost_bp < 0:
            raise ConfigurationError("base_cost_bp must be >= 0", field="base_cost_bp")
        if not self.reference_vol > 0:
            raise ConfigurationError("reference_vol must be > 0", field="reference_vol")
        if not self.max_abs_weight > 0:
            raise ConfigurationError("max_abs_weight must be > 0", field="max_abs_weight")

    @property
    def cost_enabled(self) -> bool:
        return self.cost_mode != "none"

    @property
    def funding_enabled(self) -> bool:
        return self.funding_mode != "none"

    @property
    def sharpe_basis(self) -> str:
        """Return series the Sharpe ratio is computed on for this config.

        Post-funding returns when funding is enabled, otherwise the return
        before funding (cost drag included). The two are not comparable, so
        the basis is recorded with every summary.
        """
        return "excess" if self.funding_enabled else "raw"

    def to_canonical_dict(self) -> dict[str, Any]:
        return {f.name: _normalize(getattr(self, f.name)) for f in fields(self)}

    @property
    def config_id(self) -> str:
        """SHA256 hex digest of canonical JSON."""
        return _dict_sha256(self.to_canonical_dict())

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> SimulationConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ConfigurationError(
                f"unknown config keys: {unknown}", field=unknown[0],
            )
        return cls(**dict(raw))


# ---------------------------------------------------------------------------
# Variant presets
# ---------------------------------------------------------------------------

def fixed_weight_config(**overrides: Any) -> SimulationConfig:
    """Weight path taken verbatim: no cost, no funding."""
    for key in ("cost_mode", "funding_mode"):
        if overrides.get(key, "none") != "none":
            raise ConfigurationError(
                f"fixed_weight variant does not allow {key}={overrides[key]!r}",
                field=key,
            )
    return SimulationConfig(**overrides)


def adjusted_config(**overrides: Any) -> SimulationConfig:
    """Cost and/or funding enabled; both on unless overridden."""
    params: dict[str, Any] = {
        "cost_mode": "volatility-scaled",
        "funding_mode": "excess-return",
    }
    params.update(overrides)
    config = SimulationConfig(**params)
    if not (config.cost_enabled or config.funding_enabled):
        raise ConfigurationError(
            "adjusted variant needs cost_mode or funding_mode enabled "
            "(use fixed_weight instead)",
            field="cost_mode",
        )
    return config


VARIANTS: dict[str, Callable[..., SimulationConfig]] = {
    "fixed_weight": fixed_weight_config,
    "adjusted": adjusted_config,
}


def make_config(variant: str, **overrides: Any) -> SimulationConfig:
    try:
        factory = VARIANTS[variant]
    except KeyError:
        raise ConfigurationError(
            f"variant must be one of {sorted(VARIANTS)}, got '{variant}'",
            field="variant",
        ) from None
    return factory(**overrides)


# ---------------------------------------------------------------------------
# StrategySpec
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StrategySpec:
    """One named run: input files plus the config to simulate them under."""

    strategy_id: str
    observations_path: Path
    allocations_path: Path
    variant: str
    config: SimulationConfig = field(default_factory=SimulationConfig)
    quadrant_fields: tuple[str, str] | None = None

    def __post_init__(self):
        if not self.strategy_id:
            raise ConfigurationError("strategy_id must be non-empty", field="strategy_id")
        if any(ch in self.strategy_id for ch in "/\\"):
            raise ConfigurationError(
                f"strategy_id may not contain path separators: {self.strategy_id!r}",
                field="strategy_id",
            )
        if self.variant not in VARIANTS:
            raise ConfigurationError(
                f"variant must be one of {sorted(VARIANTS)}, got '{self.variant}'",
                field="variant",
            )
        object.__setattr__(self, "observations_path", Path(self.observations_path))
        object.__setattr__(self, "allocations_path", Path(self.allocations_path))
        if self.quadrant_fields is not None:
            qf = tuple(self.quadrant_fields)
            if len(qf) != 2:
                raise ConfigurationError(
                    f"quadrant_fields must name exactly 2 macro fields, got {qf}",
                    field="quadrant_fields",
                )
            object.__setattr__(self, "quadrant_fields", qf)

    @property
    def run_name(self) -> str:
        """Deterministic per-run file stem: repeated runs overwrite, never accumulate."""
        return f"{self.strategy_id}__{self.config.config_id[:12]}"

    @classmethod
    def from_dict(
        cls,
        raw: Mapping[str, Any],
        *,
        defaults: Mapping[str, Any] | None = None,
        base_dir: Path | None = None,
    ) -> StrategySpec:
        """Build from a run-file entry; *defaults* are config overrides applied first."""
        for key in ("strategy_id", "observations", "allocations"):
            if key not in raw:
                raise ConfigurationError(f"strategy entry missing '{key}'", field=key)

        variant = raw.get("variant", "fixed_weight")
        overrides = dict(defaults or {})
        overrides.update(raw.get("config") or {})
        known = {f.name for f in fields(SimulationConfig)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigurationError(
                f"unknown config keys for {raw['strategy_id']}: {unknown}",
                field=unknown[0],
            )

        quadrant = raw.get("quadrant_fields")
        return cls(
            strategy_id=str(raw["strategy_id"]),
            observations_path=_resolve(raw["observations"], base_dir),
            allocations_path=_resolve(raw["allocations"], base_dir),
            variant=variant,
            config=make_config(variant, **overrides),
            quadrant_fields=tuple(quadrant) if quadrant is not None else None,
        )


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _resolve(path: str | Path, base_dir: Path | None) -> Path:
    p = Path(path)
    if base_dir is not None and not p.is_absolute():
        return base_dir / p
    return p


def _dict_sha256(d: dict[str, Any]) -> str:
    canonical = json.dumps(d, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _normalize(val: Any) -> Any:
    """Recursively normalize a value for canonical JSON."""
    if val is None or isinstance(val, (bool, int, float, str)):
        return val
    if isinstance(val, Path):
        return val.as_posix()
    if isinstance(val, (tuple, list)):
        return [_normalize(v) for v in val]
    if isinstance(val, Mapping):
        return {k: _normalize(v) for k, v in sorted(val.items())}
    return val
