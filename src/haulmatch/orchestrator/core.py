"""
Orchestrator

The cyclic scheduler at the center of the dispatch core. Each cycle:

1. Drain externally submitted jobs and providers into the state
2. Refresh the market snapshot (keep the previous one if that fails)
3. Run every registered unit, highest priority first, one at a time
4. Derive cross-unit insights from the final state
5. Nudge unit priorities up or down by their success rate
6. Sleep until the next cycle

A failing unit is recorded and the cycle moves on; nothing raised inside
a cycle leaves the loop.
"""

import asyncio
import inspect
import logging
import queue
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..agents import MatchingAgent, PricingAgent, UnitResult
from ..clock import utcnow
from ..config import Settings, settings as default_settings
from ..errors import (
    ConfigurationError,
    DuplicateUnitError,
    UnitExecutionError,
    UnitTimeoutError,
)
from ..market import MarketContextProvider
from ..models import Insight, Job, Provider
from ..state import DispatchState
from .insights import InsightEngine
from .metrics import (
    ErrorEvent,
    OrchestratorMetrics,
    ReliabilityStrategy,
    UnitMetrics,
    reliability_from_settings,
)
from .observers import CycleObserver

logger = logging.getLogger(__name__)

MIN_PRIORITY = 0
MAX_PRIORITY = 100


@dataclass
class RegisteredUnit:
    """A unit plus its registration order (tie-break for equal priorities)."""

    unit: Any
    order: int

    @property
    def name(self) -> str:
        return self.unit.name

    @property
    def priority(self) -> int:
        return self.unit.priority


@dataclass
class UnitOutcome:
    """What happened to one unit during one cycle."""

    name: str
    success: bool
    duration_ms: float
    summary: str = ""
    error: Optional[str] = None


@dataclass
class CycleReport:
    """Result of one cycle."""

    cycle: int
    started_at: datetime
    duration_ms: float = 0.0
    market_stale: bool = False
    outcomes: list[UnitOutcome] = field(default_factory=list)
    insights: list[Insight] = field(default_factory=list)

    @property
    def failed_units(self) -> list[str]:
        return [o.name for o in self.outcomes if not o.success]


def _validate_unit(unit: Any) -> None:
    name = getattr(unit, "name", None)
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"Unit must have a non-empty string name, got {name!r}")

    priority = getattr(unit, "priority", None)
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ConfigurationError(f"Unit {name!r} priority must be an integer, got {priority!r}")
    if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise ConfigurationError(
            f"Unit {name!r} priority must be within [{MIN_PRIORITY}, {MAX_PRIORITY}], got {priority}"
        )

    if not callable(getattr(unit, "execute", None)):
        raise ConfigurationError(f"Unit {name!r} has no callable execute()")


class Orchestrator:
    """
    Runs scheduling units over a shared state in repeating cycles.

    The state is owned by the orchestrator. Units get it by reference for
    the length of their execute() call; outside writers go through
    submit_job() / submit_provider().
    """

    def __init__(
        self,
        state: Optional[DispatchState] = None,
        market_provider: Optional[MarketContextProvider] = None,
        insight_engine: Optional[InsightEngine] = None,
        reliability: Optional[ReliabilityStrategy] = None,
        observers: Optional[list[CycleObserver]] = None,
        config: Optional[Settings] = None,
        cycle_interval_ms: Optional[int] = None,
        unit_timeout: Optional[float] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            state: Initial state (empty if None)
            market_provider: Market context source (default provider if None)
            insight_engine: Insight rules (default rules if None)
            reliability: Success-rate strategy (from settings if None)
            observers: Insight/metrics subscribers
            config: Settings to read defaults from
            cycle_interval_ms: Pause between cycles (CYCLE_INTERVAL_MS if None)
            unit_timeout: Timeout in seconds for coroutine units (UNIT_TIMEOUT_SECONDS if None)

        Raises:
            ConfigurationError: If the interval or timeout is invalid
        """
        self.config = config or default_settings
        self.state = state or DispatchState()
        self.market_provider = market_provider or MarketContextProvider()
        self.insight_engine = insight_engine or InsightEngine()
        self.reliability = reliability or reliability_from_settings(self.config)
        self.observers: list[CycleObserver] = list(observers or [])

        self.cycle_interval_ms = (
            self.config.CYCLE_INTERVAL_MS if cycle_interval_ms is None else cycle_interval_ms
        )
        self.unit_timeout = self.config.UNIT_TIMEOUT_SECONDS if unit_timeout is None else unit_timeout
        if self.cycle_interval_ms < 0:
            raise ConfigurationError(f"cycle_interval_ms must be >= 0, got {self.cycle_interval_ms}")
        if self.unit_timeout is not None and self.unit_timeout <= 0:
            raise ConfigurationError(f"unit_timeout must be positive, got {self.unit_timeout}")

        self._units: dict[str, RegisteredUnit] = {}
        self._metrics: dict[str, UnitMetrics] = {}
        self._errors: deque[ErrorEvent] = deque(maxlen=self.config.ERROR_HISTORY_LIMIT)
        self._inbox: queue.SimpleQueue = queue.SimpleQueue()

        self._total_cycles = 0
        self._matches_created = 0
        self._last_cycle_at: Optional[datetime] = None

        self._running = False
        # True from start() until its loop has returned, even after stop()
        self._active = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None

    # =========================================================================
    # Registration
    # =========================================================================

    def register_unit(self, unit: Any) -> "Orchestrator":
        """
        Register a scheduling unit.

        Args:
            unit: Object with `name`, `priority` (0-100) and `execute(state)`

        Returns:
            self, for chaining

        Raises:
            DuplicateUnitError: If the name is already registered
            ConfigurationError: If the unit is malformed
        """
        _validate_unit(unit)
        if unit.name in self._units:
            raise DuplicateUnitError(unit.name)

        self._units[unit.name] = RegisteredUnit(unit=unit, order=len(self._units))
        logger.info("Unit registered: %s (priority %d)", unit.name, unit.priority)
        return self

    def add_observer(self, observer: CycleObserver) -> "Orchestrator":
        self.observers.append(observer)
        return self

    @property
    def units(self) -> list[Any]:
        """Registered units in execution order."""
        return [entry.unit for entry in self._ordered_units()]

    def _ordered_units(self) -> list[RegisteredUnit]:
        # Stable on ties: registration order
        return sorted(self._units.values(), key=lambda e: (-e.priority, e.order))

    # =========================================================================
    # External intake
    # =========================================================================

    def submit_job(self, job: Job) -> None:
        """Queue a job for the next cycle. Safe from any thread."""
        self._inbox.put(("job", job))

    def submit_provider(self, provider: Provider) -> None:
        """Queue a new or updated provider for the next cycle. Safe from any thread."""
        self._inbox.put(("provider", provider))

    def _drain_inbox(self) -> int:
        known_jobs = {j.id for j in self.state.jobs}
        drained = 0
        while True:
            try:
                kind, record = self._inbox.get_nowait()
            except queue.Empty:
                break
            drained += 1
            if kind == "job":
                if record.id in known_jobs:
                    logger.warning("Ignoring duplicate job submission: %s", record.id)
                    continue
                self.state.jobs.append(record)
                known_jobs.add(record.id)
            else:
                self.state.upsert_provider(record)
        return drained

    # =========================================================================
    # Cycle
    # =========================================================================

    def _record_error(self, kind: str, message: str, unit: Optional[str] = None) -> None:
        self._errors.append(
            ErrorEvent(kind=kind, message=message, unit=unit, cycle=self._total_cycles)
        )

    def _refresh_market(self) -> bool:
        """Replace the market snapshot. Returns False if the previous one was kept."""
        try:
            self.state.market = self.market_provider.refresh(len(self.state.eligible_providers()))
            return True
        except Exception as e:
            logger.warning("Market context refresh failed, keeping previous snapshot: %s", e)
            self._record_error("market_context", f"{type(e).__name__}: {e}")
        return False

    async def _call_unit(self, unit: Any) -> UnitResult:
        result = unit.execute(self.state)
        if inspect.isawaitable(result):
            if self.unit_timeout is not None:
                result = await asyncio.wait_for(result, timeout=self.unit_timeout)
            else:
                result = await result
        return UnitResult.coerce(result)

    async def _execute_unit(self, entry: RegisteredUnit) -> UnitOutcome:
        name = entry.name
        metrics = self._metrics.setdefault(name, UnitMetrics())

        start = time.perf_counter()
        failure: Optional[UnitExecutionError] = None
        kind = "unit_error"
        try:
            result = await self._call_unit(entry.unit)
        except asyncio.TimeoutError as e:
            if self.unit_timeout is None:
                failure = UnitExecutionError(name, f"{type(e).__name__}: {e}")
            else:
                kind = "unit_timeout"
                failure = UnitTimeoutError(name, self.unit_timeout)
        except Exception as e:
            failure = UnitExecutionError(name, f"{type(e).__name__}: {e}")
        duration_ms = (time.perf_counter() - start) * 1000

        metrics.runs += 1
        metrics.total_duration_ms += duration_ms
        metrics.last_run_at = utcnow()

        if failure is None:
            metrics.success_rate = self.reliability.on_success(metrics.success_rate, metrics.runs)
            metrics.last_summary = result.summary
            metrics.last_result = result.to_dict()
            logger.info("  %-15s %6.1fms | %s", name, duration_ms, result.summary)
            return UnitOutcome(name, True, duration_ms, summary=result.summary)

        error = failure.message
        metrics.failures += 1
        metrics.success_rate = self.reliability.on_failure(metrics.success_rate, metrics.runs)
        metrics.last_error = error
        self._record_error(kind, error, unit=name)
        logger.error("  %-15s %6.1fms | %s", name, duration_ms, error)
        return UnitOutcome(name, False, duration_ms, error=error)

    def _tune_priorities(self) -> None:
        """Reliable units move up, unreliable ones move down."""
        for name, metrics in self._metrics.items():
            entry = self._units.get(name)
            if entry is None:
                continue
            unit = entry.unit
            if metrics.success_rate > self.config.PRIORITY_PROMOTE_ABOVE:
                unit.priority = min(MAX_PRIORITY, unit.priority + 1)
            elif metrics.success_rate < self.config.PRIORITY_DEMOTE_BELOW:
                unit.priority = max(MIN_PRIORITY, unit.priority - 1)

    def _notify(self, insights: list[Insight], metrics: OrchestratorMetrics) -> None:
        for observer in self.observers:
            for insight in insights:
                try:
                    observer.on_insight(insight)
                except Exception as e:
                    logger.warning("Observer %s failed on insight: %s", type(observer).__name__, e)
                    self._record_error("observer_error", f"{type(e).__name__}: {e}")
            try:
                observer.on_cycle_complete(metrics)
            except Exception as e:
                logger.warning("Observer %s failed on cycle end: %s", type(observer).__name__, e)
                self._record_error("observer_error", f"{type(e).__name__}: {e}")

    async def run_cycle(self) -> CycleReport:
        """
        Run exactly one cycle.

        Returns:
            CycleReport with per-unit outcomes and insights
        """
        self._total_cycles += 1
        report = CycleReport(cycle=self._total_cycles, started_at=utcnow())
        start = time.perf_counter()
        logger.info("Cycle #%d started", report.cycle)

        drained = self._drain_inbox()
        if drained:
            logger.debug("Drained %d submitted record(s)", drained)

        report.market_stale = not self._refresh_market()

        pairs_before = len(self.state.matched_pairs)
        for entry in self._ordered_units():
            report.outcomes.append(await self._execute_unit(entry))

        cycle_pairs = self.state.matched_pairs[pairs_before:]
        self._matches_created += len(cycle_pairs)

        try:
            report.insights = self.insight_engine.generate(self.state, cycle_pairs)
        except Exception as e:
            logger.error("Insight generation failed: %s", e)
            self._record_error("cycle_error", f"insights: {type(e).__name__}: {e}")
            report.insights = []
        self.state.insights = report.insights
        if report.insights:
            logger.info("%d insight(s) generated", len(report.insights))

        self._tune_priorities()

        report.duration_ms = (time.perf_counter() - start) * 1000
        self._last_cycle_at = utcnow()
        logger.info("Cycle #%d finished in %.1fms", report.cycle, report.duration_ms)

        self._notify(report.insights, self.get_metrics())
        return report

    # =========================================================================
    # Loop control
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    async def _init_units(self) -> None:
        for entry in self._ordered_units():
            init = getattr(entry.unit, "init", None)
            if callable(init):
                result = init()
                if inspect.isawaitable(result):
                    await result

    async def _sleep(self) -> None:
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=self.cycle_interval_ms / 1000)
        except asyncio.TimeoutError:
            pass

    async def start(self, max_cycles: Optional[int] = None) -> None:
        """
        Run the cycle loop until stop() or until max_cycles cycles ran.

        Calling start() while a loop is still alive does nothing, including
        after stop() while the last cycle is finishing.
        """
        if self._active:
            if not self._running:
                logger.warning("start() ignored: the stopped loop is still finishing its cycle")
            return
        self._active = True
        self._running = True
        self._loop = asyncio.get_running_loop()
        self._wakeup = asyncio.Event()

        logger.info(
            "Orchestrator started | %d unit(s) | cycle %.1fs",
            len(self._units), self.cycle_interval_ms / 1000,
        )
        try:
            await self._init_units()
            completed = 0
            while self._running:
                await self.run_cycle()
                completed += 1
                if max_cycles is not None and completed >= max_cycles:
                    break
                if not self._running:
                    break
                await self._sleep()
        finally:
            self._running = False
            self._active = False
            logger.info("Orchestrator stopped after %d cycle(s)", self._total_cycles)

    def run(self, max_cycles: Optional[int] = None) -> None:
        """Blocking wrapper around start()."""
        asyncio.run(self.start(max_cycles=max_cycles))

    def stop(self) -> None:
        """
        Ask the loop to exit after the current cycle.

        Never interrupts a running unit. Safe from any thread.
        """
        self._running = False
        if self._loop is not None and self._wakeup is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._wakeup.set)

    # =========================================================================
    # Metrics
    # =========================================================================

    def get_metrics(self) -> OrchestratorMetrics:
        """Snapshot of unit metrics, cycle count and state sizes."""
        return OrchestratorMetrics(
            total_cycles=self._total_cycles,
            running=self._running,
            matches_created=self._matches_created,
            uptime_seconds=self._total_cycles * self.cycle_interval_ms / 1000,
            last_cycle_at=self._last_cycle_at,
            units={name: m.model_copy(deep=True) for name, m in self._metrics.items()},
            priorities={entry.name: entry.priority for entry in self._ordered_units()},
            errors=list(self._errors),
            state=self.state.sizes(),
        )

    @property
    def errors(self) -> list[ErrorEvent]:
        return list(self._errors)


# =============================================================================
# Convenience Functions
# =============================================================================

def build_orchestrator(
    state: Optional[DispatchState] = None,
    observers: Optional[list[CycleObserver]] = None,
    **kwargs: Any,
) -> Orchestrator:
    """
    Orchestrator with the pricing and matching units registered.

    Extra keyword arguments go to the Orchestrator constructor.
    """
    orchestrator = Orchestrator(state=state, observers=observers, **kwargs)
    orchestrator.register_unit(PricingAgent())
    orchestrator.register_unit(MatchingAgent())
    return orchestrator
