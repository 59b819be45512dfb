"""Execution metrics and reliability tracking for scheduling units."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, computed_field

from ..clock import utcnow
from ..config import Settings
from ..errors import ConfigurationError

# Multiplicative penalty applied to the success rate on a failed run
FAILURE_PENALTY = 0.9


class UnitMetrics(BaseModel):
    """Per-unit execution record. Written only by the orchestrator."""

    runs: int = 0
    failures: int = 0
    total_duration_ms: float = 0.0
    success_rate: float = Field(default=1.0, ge=0, le=1)
    last_summary: Optional[str] = None
    last_result: dict[str, Any] = Field(default_factory=dict)
    last_error: Optional[str] = None
    last_run_at: Optional[datetime] = None

    @computed_field
    @property
    def average_duration_ms(self) -> float:
        if self.runs == 0:
            return 0.0
        return round(self.total_duration_ms / self.runs, 3)


class ErrorEvent(BaseModel):
    """A failure recorded during a cycle."""

    kind: str  # unit_error, unit_timeout, market_context, observer_error, cycle_error
    message: str
    unit: Optional[str] = None
    cycle: int = 0
    timestamp: datetime = Field(default_factory=utcnow)


class OrchestratorMetrics(BaseModel):
    """Snapshot returned by Orchestrator.get_metrics()."""

    total_cycles: int = 0
    running: bool = False
    matches_created: int = 0
    uptime_seconds: float = 0.0
    last_cycle_at: Optional[datetime] = None
    units: dict[str, UnitMetrics] = Field(default_factory=dict)
    priorities: dict[str, int] = Field(default_factory=dict)
    errors: list[ErrorEvent] = Field(default_factory=list)
    state: dict[str, int] = Field(default_factory=dict)


class ReliabilityStrategy(ABC):
    """How a unit's success rate moves after each run."""

    initial_rate: float = 1.0

    @abstractmethod
    def on_success(self, rate: float, runs: int) -> float:
        """
        New rate after a successful run.

        Args:
            rate: Current success rate
            runs: Run count including this run
        """

    @abstractmethod
    def on_failure(self, rate: float, runs: int) -> float:
        """New rate after a failed run."""


class RunningMeanReliability(ReliabilityStrategy):
    """
    Lifetime running mean on success, multiplicative penalty on failure.

    No decay: old failures weigh as much as recent ones.
    """

    def on_success(self, rate: float, runs: int) -> float:
        return (rate * (runs - 1) + 1) / runs

    def on_failure(self, rate: float, runs: int) -> float:
        return rate * FAILURE_PENALTY


class EwmaReliability(ReliabilityStrategy):
    """Exponentially weighted moving average; recent runs dominate."""

    def __init__(self, alpha: float = 0.2):
        if not 0 < alpha <= 1:
            raise ConfigurationError(f"EWMA alpha must be within (0, 1], got {alpha}")
        self.alpha = alpha

    def on_success(self, rate: float, runs: int) -> float:
        return (1 - self.alpha) * rate + self.alpha

    def on_failure(self, rate: float, runs: int) -> float:
        return (1 - self.alpha) * rate


def reliability_from_settings(config: Settings) -> ReliabilityStrategy:
    """Build the strategy selected by RELIABILITY_STRATEGY."""
    if config.RELIABILITY_STRATEGY == "ewma":
        return EwmaReliability(config.RELIABILITY_EWMA_ALPHA)
    return RunningMeanReliability()
