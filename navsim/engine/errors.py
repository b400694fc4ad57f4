"""Error taxonomy for simulation runs.

Every error is fail-fast and non-retryable. Each carries the offending period
and/or field so the CLI can report exactly where a run broke.
"""

from __future__ import annotations

from typing import Any


class SimulationError(ValueError):
    """Base class for all simulation input/config errors."""

    def __init__(
        self,
        message: str,
        *,
        period: Any | None = None,
        field: str | None = None,
    ) -> None:
        self.period = period
        self.field = field
        parts = [message]
        if period is not None:
            parts.append(f"period={period}")
        if field is not None:
            parts.append(f"field={field}")
        super().__init__(" | ".join(parts))


class AlignmentError(SimulationError):
    """Observation and allocation period sets differ."""


class MalformedInputError(SimulationError):
    """Non-numeric, NaN, non-monotonic or out-of-range input."""


class InsufficientDataError(SimulationError):
    """Too few usable periods to compute a metric."""


class ConfigurationError(SimulationError):
    """Invalid cadence, unknown adjustment mode or bad run file."""
