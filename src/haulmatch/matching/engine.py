"""
Matching Engine

Pairs open jobs with eligible providers. Every candidate pair is scored,
pairs under the minimum score are dropped, and the rest are allocated
greedily from the highest score down so that no job and no provider
appears in more than one pair per pass.

Greedy allocation approximates a maximum-weight bipartite matching; it is
not optimal, but its cost is one sort over the candidate list.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..config import settings
from ..errors import ConfigurationError, ConsistencyError
from ..models import Job, MatchedPair, MatchFactors, Provider, ReturnOpportunity
from .scorer import MatchScorer

logger = logging.getLogger(__name__)

# Distance assumed for a job with no declared or priced distance
DEFAULT_DISTANCE_KM = 100.0

# Acceptance model
HIGH_EARNINGS_PER_KM = 1.5
LOW_EARNINGS_PER_KM = 1.0
FAST_RESPONSE_HOURS = 2
SLOW_RESPONSE_HOURS = 12
MIN_ACCEPTANCE = 0.10
MAX_ACCEPTANCE = 0.95


@dataclass
class MatchingConfig:
    """Limits for one allocation pass."""

    min_score: float = field(default_factory=lambda: settings.MIN_MATCH_SCORE)
    max_matches: int = field(default_factory=lambda: settings.MAX_MATCHES_PER_CYCLE)
    return_min_score: float = field(default_factory=lambda: settings.RETURN_OPPORTUNITY_MIN_SCORE)

    def __post_init__(self):
        if not 0 <= self.min_score <= 1:
            raise ConfigurationError(f"min_score must be within [0, 1], got {self.min_score}")
        if not 0 <= self.return_min_score <= 1:
            raise ConfigurationError(
                f"return_min_score must be within [0, 1], got {self.return_min_score}"
            )
        if self.max_matches < 1:
            raise ConfigurationError(f"max_matches must be at least 1, got {self.max_matches}")


@dataclass
class Candidate:
    """A scored job/provider pair awaiting allocation."""

    job: Job
    provider: Provider
    score: float
    factors: MatchFactors


def _job_distance(job: Job) -> float:
    if job.distance_km:
        return job.distance_km
    if job.price_breakdown is not None and job.price_breakdown.distance_km > 0:
        return job.price_breakdown.distance_km
    return DEFAULT_DISTANCE_KM


def _same_city(a: str, b: str) -> bool:
    return bool(a) and a.strip().casefold() == b.strip().casefold()


def _latest_by_id(records: list, kind: str) -> dict:
    """Index records by id; a repeated id keeps the last record."""
    latest = {}
    for record in records:
        if record.id in latest:
            logger.warning("Duplicate %s id %s, keeping the last record", kind, record.id)
        latest[record.id] = record
    return latest


class MatchingEngine:
    """
    Produces mutually exclusive job/provider pairs.

    The engine does not mutate its inputs; applying the pairs to the jobs
    and providers is left to the caller.
    """

    def __init__(
        self,
        config: Optional[MatchingConfig] = None,
        scorer: Optional[MatchScorer] = None,
    ):
        self.config = config or MatchingConfig()
        self.scorer = scorer or MatchScorer()

    def score_candidates(self, jobs: list[Job], providers: list[Provider]) -> list[Candidate]:
        """Score every pair and keep those at or above the minimum score."""
        candidates = []
        for job in jobs:
            for provider in providers:
                score, factors = self.scorer.score(job, provider)
                if score >= self.config.min_score:
                    candidates.append(Candidate(job, provider, score, factors))
        return candidates

    def allocate(
        self,
        candidates: list[Candidate],
        jobs_by_id: dict[str, Job],
        providers_by_id: dict[str, Provider],
    ) -> list[Candidate]:
        """
        Greedy highest-score-first allocation.

        Raises:
            ConsistencyError: If a candidate's job or provider is no longer in the input
        """
        ranked = sorted(candidates, key=lambda c: c.score, reverse=True)

        used_jobs: set[str] = set()
        used_providers: set[str] = set()
        accepted = []

        for candidate in ranked:
            if len(accepted) >= self.config.max_matches:
                break

            job_id, provider_id = candidate.job.id, candidate.provider.id
            if job_id in used_jobs or provider_id in used_providers:
                continue

            if jobs_by_id.get(job_id) is not candidate.job:
                raise ConsistencyError(f"job {job_id} disappeared before allocation")
            if providers_by_id.get(provider_id) is not candidate.provider:
                raise ConsistencyError(f"provider {provider_id} disappeared before allocation")

            used_jobs.add(job_id)
            used_providers.add(provider_id)
            accepted.append(candidate)

        return accepted

    def predict_acceptance(self, job: Job, provider: Provider, score: float) -> float:
        """
        Estimate the probability the provider accepts the job.

        Starts from the match score, moved by earnings per km and by the
        provider's usual response delay.
        """
        acceptance = score

        if job.price is not None and job.price_breakdown is not None:
            earnings_per_km = job.price_breakdown.provider_share / _job_distance(job)
            if earnings_per_km > HIGH_EARNINGS_PER_KM:
                acceptance += 0.10
            if earnings_per_km < LOW_EARNINGS_PER_KM:
                acceptance -= 0.15

        if provider.response_time_hours is not None:
            if provider.response_time_hours < FAST_RESPONSE_HOURS:
                acceptance += 0.05
            if provider.response_time_hours > SLOW_RESPONSE_HOURS:
                acceptance -= 0.10

        return min(MAX_ACCEPTANCE, max(MIN_ACCEPTANCE, acceptance))

    def find_return_opportunity(
        self,
        job: Job,
        provider: Provider,
        remaining: Iterable[Job],
    ) -> Optional[ReturnOpportunity]:
        """
        Find the best job leaving from this job's delivery city.

        Args:
            job: The matched job
            provider: The provider that will end up at the delivery city
            remaining: Jobs left unmatched after allocation

        Returns:
            ReturnOpportunity, or None when nothing scores high enough
        """
        best: Optional[Job] = None
        best_score = 0.0

        for candidate in remaining:
            if candidate.id == job.id or not _same_city(candidate.pickup.city, job.delivery.city):
                continue
            score, _ = self.scorer.score(candidate, provider)
            if score > best_score:
                best, best_score = candidate, score

        if best is None or best_score < self.config.return_min_score:
            return None

        return ReturnOpportunity(
            job_id=best.id,
            score=best_score,
            empty_distance_saved_km=_job_distance(job),
            combined_earnings=(job.price or 0.0) + (best.price or 0.0),
        )

    def match(self, jobs: list[Job], providers: list[Provider]) -> list[MatchedPair]:
        """
        Run one allocation pass.

        Args:
            jobs: Jobs to consider (only open ones are matched)
            providers: Providers to consider (only active/qualified ones are matched)

        Returns:
            MatchedPair list, best score first, no job or provider repeated
        """
        open_jobs = [j for j in jobs if j.is_open]
        if not open_jobs:
            return []

        eligible = [p for p in providers if p.is_eligible]
        if not eligible:
            return []

        jobs_by_id = _latest_by_id(open_jobs, "job")
        providers_by_id = _latest_by_id(eligible, "provider")

        candidates = self.score_candidates(list(jobs_by_id.values()), list(providers_by_id.values()))
        accepted = self.allocate(candidates, jobs_by_id, providers_by_id)

        matched_ids = {c.job.id for c in accepted}
        remaining = [j for j in jobs_by_id.values() if j.id not in matched_ids]

        pairs = []
        for candidate in accepted:
            pairs.append(
                MatchedPair(
                    job_id=candidate.job.id,
                    provider_id=candidate.provider.id,
                    score=candidate.score,
                    factors=candidate.factors,
                    acceptance_probability=self.predict_acceptance(
                        candidate.job, candidate.provider, candidate.score
                    ),
                    return_opportunity=self.find_return_opportunity(
                        candidate.job, candidate.provider, remaining
                    ),
                )
            )

        logger.debug(
            "Matched %d of %d open jobs (%d candidates over threshold)",
            len(pairs), len(jobs_by_id), len(candidates),
        )
        return pairs
