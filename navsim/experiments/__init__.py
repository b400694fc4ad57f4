from navsim.experiments.spec import (
    COST_MODES,
    FUNDING_MODES,
    VARIANTS,
    SimulationConfig,
    StrategySpec,
    adjusted_config,
    fixed_weight_config,
    make_config,
)

__all__ = [
    "COST_MODES",
    "FUNDING_MODES",
    "VARIANTS",
    "SimulationConfig",
    "StrategySpec",
    "adjusted_config",
    "fixed_weight_config",
    "make_config",
]
