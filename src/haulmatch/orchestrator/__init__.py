"""Cyclic scheduler for the haulmatch dispatch core."""

from .core import CycleReport, Orchestrator, RegisteredUnit, UnitOutcome, build_orchestrator
from .insights import InsightEngine
from .metrics import (
    ErrorEvent,
    EwmaReliability,
    OrchestratorMetrics,
    ReliabilityStrategy,
    RunningMeanReliability,
    UnitMetrics,
    reliability_from_settings,
)
from .observers import CollectingObserver, CycleObserver, LoggingObserver

__all__ = [
    "CycleReport",
    "Orchestrator",
    "RegisteredUnit",
    "UnitOutcome",
    "build_orchestrator",
    "InsightEngine",
    "ErrorEvent",
    "EwmaReliability",
    "OrchestratorMetrics",
    "ReliabilityStrategy",
    "RunningMeanReliability",
    "UnitMetrics",
    "reliability_from_settings",
    "CollectingObserver",
    "CycleObserver",
    "LoggingObserver",
]
