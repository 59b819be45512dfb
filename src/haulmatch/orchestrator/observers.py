"""Observer hooks for insights and cycle metrics."""

import logging

from ..models import Insight
from .metrics import OrchestratorMetrics

logger = logging.getLogger(__name__)


class CycleObserver:
    """
    Receives insights and end-of-cycle metrics.

    Observers cannot alter the cycle; anything they raise is logged and
    recorded by the orchestrator. Override only the hooks you need.
    """

    def on_insight(self, insight: Insight) -> None:
        pass

    def on_cycle_complete(self, metrics: OrchestratorMetrics) -> None:
        pass


class LoggingObserver(CycleObserver):
    """Writes insights and cycle summaries to the log."""

    def on_insight(self, insight: Insight) -> None:
        logger.info("[%s] %s: %s", insight.severity, insight.title, insight.message)

    def on_cycle_complete(self, metrics: OrchestratorMetrics) -> None:
        logger.info(
            "Cycle #%d done | jobs %d (open %d) | providers %d | pairs %d",
            metrics.total_cycles,
            metrics.state.get("jobs", 0),
            metrics.state.get("open_jobs", 0),
            metrics.state.get("providers", 0),
            metrics.state.get("matched_pairs", 0),
        )


class CollectingObserver(CycleObserver):
    """Keeps everything it receives in memory."""

    def __init__(self):
        self.insights: list[Insight] = []
        self.cycles: list[OrchestratorMetrics] = []

    def on_insight(self, insight: Insight) -> None:
        self.insights.append(insight)

    def on_cycle_complete(self, metrics: OrchestratorMetrics) -> None:
        self.cycles.append(metrics)
