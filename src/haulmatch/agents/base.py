"""Scheduling unit contract shared by every decision agent."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Union

from ..state import DispatchState


@dataclass
class UnitResult:
    """Outcome of one unit execution."""

    summary: str = "OK"
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, value: Any) -> "UnitResult":
        """
        Normalize whatever a unit returned.

        Accepts a UnitResult, a dict with a "summary" key, a plain string or None.
        """
        if isinstance(value, UnitResult):
            return value
        if value is None:
            return cls()
        if isinstance(value, dict):
            details = dict(value)
            summary = str(details.pop("summary", "OK"))
            return cls(summary=summary, details=details)
        return cls(summary=str(value))

    def to_dict(self) -> dict:
        return {"summary": self.summary, **self.details}


class SchedulingUnit(ABC):
    """
    Abstract base class for scheduling units.

    A unit has a unique name, a priority between 0 and 100 (higher runs
    first) and an execute() that reads and mutates the shared state.
    execute() may be a plain method or a coroutine.

    Any object exposing `name`, `priority` and `execute` can be registered
    with the orchestrator; subclassing is a convenience.
    """

    name: str = "UNIT"
    priority: int = 50

    def init(self) -> None:
        """Hook called once when the orchestrator loop starts."""

    @abstractmethod
    def execute(self, state: DispatchState) -> Union[UnitResult, Awaitable[UnitResult]]:
        """
        Run one step over the shared state.

        Args:
            state: Shared state, valid only for the duration of the call

        Returns:
            UnitResult with at least a short summary
        """
