"""
Matching Agent - Pair open jobs with providers once per cycle.
"""

import logging
from collections import deque
from typing import Optional

from ..matching import MatchingEngine
from ..state import DispatchState
from .base import SchedulingUnit, UnitResult

logger = logging.getLogger(__name__)


class MatchingAgent(SchedulingUnit):
    """
    Scheduling unit wrapping the matching engine.

    Applies every pair the engine proposes: the job is assigned, the
    provider is stamped and the pair is appended to the shared state.
    """

    def __init__(
        self,
        engine: Optional[MatchingEngine] = None,
        name: str = "MATCHER",
        priority: int = 80,
        history_size: int = 100,
    ):
        self.engine = engine or MatchingEngine()
        self.name = name
        self.priority = priority
        self.matches_created = 0
        self.empty_distance_reduced_km = 0.0
        self.score_history: deque[float] = deque(maxlen=history_size)

    @property
    def average_score(self) -> float:
        if not self.score_history:
            return 0.0
        return sum(self.score_history) / len(self.score_history)

    def init(self) -> None:
        logger.info(
            "Matching agent ready | min score %.0f%% | max %d per cycle",
            self.engine.config.min_score * 100,
            self.engine.config.max_matches,
        )

    def execute(self, state: DispatchState) -> UnitResult:
        open_jobs = state.open_jobs()
        if not open_jobs:
            return UnitResult(summary="No open jobs", details={"matches_created": 0})

        providers = state.eligible_providers()
        if not providers:
            return UnitResult(summary="No eligible providers", details={"matches_created": 0})

        pairs = self.engine.match(open_jobs, providers)

        jobs_by_id = {j.id: j for j in open_jobs}
        providers_by_id = {p.id: p for p in providers}
        empty_distance_saved = 0.0

        for pair in pairs:
            jobs_by_id[pair.job_id].assign(pair.provider_id, pair.score)
            providers_by_id[pair.provider_id].last_matched_at = pair.created_at
            state.matched_pairs.append(pair)

            self.matches_created += 1
            self.score_history.append(pair.score)
            if pair.return_opportunity:
                empty_distance_saved += pair.return_opportunity.empty_distance_saved_km

        self.empty_distance_reduced_km += empty_distance_saved

        top = pairs[0] if pairs else None
        return UnitResult(
            summary=f"{len(pairs)} matches | avg score {self.average_score:.0%}",
            details={
                "matches_created": len(pairs),
                "average_score": round(self.average_score, 3),
                "empty_distance_saved_km": round(empty_distance_saved, 1),
                "top_match": {
                    "job_id": top.job_id,
                    "provider_id": top.provider_id,
                    "score": round(top.score, 3),
                    "factors": top.factors.to_percentages(),
                } if top else None,
            },
        )
