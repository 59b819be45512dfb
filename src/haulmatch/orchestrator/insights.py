"""
Cross-unit insights

Rule-based correlations over the state left by all units at the end of a
cycle.
"""

from typing import Optional

from ..matching import MatchScorer
from ..models import Insight, InsightType, MatchedPair, Severity
from ..state import DispatchState

HIGH_DEMAND = 0.7
LOW_SUPPLY = 0.5


class InsightEngine:
    """
    Derives insights from the end-of-cycle state.

    Rules:
    - Market opportunity: demand high while supply is low
    - Job backlog: too many jobs still waiting
    - Matching opportunity: good pairs left unallocated
    - Return load: an open job starts where another open job ends
    - Risky match: a new pair targets a provider flagged by the risk service
    """

    def __init__(
        self,
        scorer: Optional[MatchScorer] = None,
        backlog_threshold: int = 50,
        opportunity_score: float = 0.7,
        risk_threshold: float = 0.5,
        max_suggestions: int = 10,
    ):
        self.scorer = scorer or MatchScorer()
        self.backlog_threshold = backlog_threshold
        self.opportunity_score = opportunity_score
        self.risk_threshold = risk_threshold
        self.max_suggestions = max_suggestions

    def market_opportunity(self, state: DispatchState) -> Optional[Insight]:
        market = state.market
        if market is None:
            return None
        if market.demand_index > HIGH_DEMAND and market.supply_index < LOW_SUPPLY:
            return Insight(
                type=InsightType.MARKET_OPPORTUNITY,
                severity=Severity.HIGH,
                title="Demand outpacing supply",
                message=(
                    f"Demand index {market.demand_index:.2f} against supply "
                    f"{market.supply_index:.2f}. Recruit more providers."
                ),
                action={"command": "increase_provider_outreach", "factor": 1.5},
            )
        return None

    def job_backlog(self, state: DispatchState) -> Optional[Insight]:
        open_jobs = state.open_jobs()
        if len(open_jobs) > self.backlog_threshold:
            return Insight(
                type=InsightType.JOB_BACKLOG,
                severity=Severity.MEDIUM,
                title="Job backlog",
                message=f"{len(open_jobs)} jobs are still waiting for a provider.",
                action={
                    "command": "review_backlog",
                    "job_ids": [j.id for j in open_jobs[: self.max_suggestions]],
                },
            )
        return None

    def matching_opportunity(
        self,
        state: DispatchState,
        cycle_pairs: list[MatchedPair],
    ) -> Optional[Insight]:
        open_jobs = state.open_jobs()
        booked = {p.provider_id for p in cycle_pairs}
        providers = [
            p for p in state.eligible_providers()
            if p.available is not False and p.id not in booked
        ]
        if not open_jobs or not providers:
            return None

        suggestions = []
        for job in open_jobs:
            for provider in providers:
                score, _ = self.scorer.score(job, provider)
                if score > self.opportunity_score:
                    suggestions.append(
                        {"job_id": job.id, "provider_id": provider.id, "score": round(score, 3)}
                    )
        if not suggestions:
            return None

        suggestions.sort(key=lambda s: s["score"], reverse=True)
        return Insight(
            type=InsightType.MATCHING_OPPORTUNITY,
            severity=Severity.HIGH,
            title="Unallocated matches",
            message=f"{len(suggestions)} promising pair(s) left after this cycle.",
            action={"command": "execute_matches", "pairs": suggestions[: self.max_suggestions]},
        )

    def return_loads(self, state: DispatchState) -> Optional[Insight]:
        open_jobs = state.open_jobs()
        by_pickup: dict[str, list[str]] = {}
        for job in open_jobs:
            city = job.pickup.city.strip().casefold()
            if city:
                by_pickup.setdefault(city, []).append(job.id)

        chains = []
        for job in open_jobs:
            city = job.delivery.city.strip().casefold()
            for follow_up in by_pickup.get(city, []):
                if follow_up != job.id:
                    chains.append({"job_id": job.id, "return_job_id": follow_up, "city": job.delivery.city})

        if not chains:
            return None
        return Insight(
            type=InsightType.RETURN_LOAD,
            severity=Severity.MEDIUM,
            title="Return loads available",
            message=f"{len(chains)} open job(s) could be chained with a return trip.",
            action={"command": "bundle_return_trips", "chains": chains[: self.max_suggestions]},
        )

    def risky_matches(
        self,
        state: DispatchState,
        cycle_pairs: list[MatchedPair],
    ) -> list[Insight]:
        providers = {p.id: p for p in state.providers}
        insights = []
        for pair in cycle_pairs:
            provider = providers.get(pair.provider_id)
            if provider is None or provider.risk_score is None:
                continue
            if provider.risk_score > self.risk_threshold:
                insights.append(
                    Insight(
                        type=InsightType.RISKY_MATCH,
                        severity=Severity.MEDIUM,
                        title="Match with a risky provider",
                        message=(
                            f"Pair {pair.id} targets provider {provider.name or provider.id} "
                            f"with risk score {provider.risk_score:.0%}."
                        ),
                        action={"command": "review_match", "match_id": pair.id},
                    )
                )
        return insights

    def generate(
        self,
        state: DispatchState,
        cycle_pairs: Optional[list[MatchedPair]] = None,
    ) -> list[Insight]:
        """
        Evaluate every rule.

        Args:
            state: End-of-cycle state
            cycle_pairs: Pairs created during this cycle

        Returns:
            List of insights, possibly empty
        """
        cycle_pairs = cycle_pairs or []
        insights = [
            self.market_opportunity(state),
            self.job_backlog(state),
            self.matching_opportunity(state, cycle_pairs),
            self.return_loads(state),
        ]
        result = [i for i in insights if i is not None]
        result.extend(self.risky_matches(state, cycle_pairs))
        return result
