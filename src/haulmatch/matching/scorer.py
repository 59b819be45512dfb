"""
Match Scoring

Scores how well a provider fits a job on six weighted factors.
"""

from dataclasses import dataclass
from typing import Optional

from ..config import RESOURCE_CLASS_HIERARCHY
from ..errors import ConfigurationError
from ..models import Job, MatchFactors, Provider

# Neutral scores for missing data
NEUTRAL_SCORE = 0.5
DEFAULT_SUCCESS_RATE = 0.75
DEFAULT_RATING = 4.0
UNKNOWN_AVAILABILITY = 0.6

# Capability fit
EXACT_CLASS = 1.0
HIGHER_CLASS = 0.7
OTHER_CLASS = 0.3

# Route preference
ROUTE_MATCH = 1.0
ROUTE_MISMATCH = 0.3


@dataclass
class MatchWeights:
    """
    Factor weights for match scoring.

    All weights should sum to 1.0 for normalized scoring.
    """

    proximity: float = 0.25
    capability: float = 0.20
    history: float = 0.20
    availability: float = 0.15
    reputation: float = 0.10
    route_preference: float = 0.10

    def __post_init__(self):
        """Validate weights sum to 1.0."""
        values = (
            self.proximity,
            self.capability,
            self.history,
            self.availability,
            self.reputation,
            self.route_preference,
        )
        if any(v < 0 for v in values):
            raise ConfigurationError(f"Match weights must be non-negative, got {values}")
        total = sum(values)
        if abs(total - 1.0) > 0.01:
            raise ConfigurationError(f"Match weights must sum to 1.0, got {total}")


class MatchScorer:
    """
    Scores job/provider pairs.

    Score range: 0.0 (worst) to 1.0 (best)

    Factors:
    - Proximity: provider position to pickup, linear falloff to 0 at max distance
    - Capability: exact class, higher-capacity substitute, or other
    - History: provider success rate
    - Availability: known available, known unavailable, or unknown
    - Reputation: rating out of 5
    - Route preference: declared lanes covering the job's route
    """

    def __init__(
        self,
        weights: Optional[MatchWeights] = None,
        max_proximity_km: float = 100.0,
        hierarchy: Optional[list[str]] = None,
    ):
        if max_proximity_km <= 0:
            raise ConfigurationError("max_proximity_km must be positive")
        self.weights = weights or MatchWeights()
        self.max_proximity_km = max_proximity_km
        self.hierarchy = hierarchy or RESOURCE_CLASS_HIERARCHY

    def score_proximity(self, job: Job, provider: Provider) -> float:
        if provider.location is None:
            return NEUTRAL_SCORE
        distance = provider.location.distance_to(job.pickup)
        if distance is None:
            return NEUTRAL_SCORE
        return max(0.0, 1 - distance / self.max_proximity_km)

    def score_capability(self, job: Job, provider: Provider) -> float:
        required = job.resource_class
        if not required or not provider.resource_classes:
            return NEUTRAL_SCORE

        if required in provider.resource_classes:
            return EXACT_CLASS

        # A bigger vehicle can do the job
        if provider.can_serve(required, self.hierarchy):
            return HIGHER_CLASS

        return OTHER_CLASS

    def score_history(self, provider: Provider) -> float:
        if provider.success_rate is None:
            return DEFAULT_SUCCESS_RATE
        return provider.success_rate

    def score_availability(self, provider: Provider) -> float:
        if provider.available is True:
            return 1.0
        if provider.available is False:
            return 0.0
        return UNKNOWN_AVAILABILITY

    def score_reputation(self, provider: Provider) -> float:
        rating = DEFAULT_RATING if provider.rating is None else provider.rating
        return rating / 5

    def score_route_preference(self, job: Job, provider: Provider) -> float:
        if not provider.preferred_routes:
            return NEUTRAL_SCORE
        for route in provider.preferred_routes:
            if route.matches(job.pickup.city, job.delivery.city):
                return ROUTE_MATCH
        return ROUTE_MISMATCH

    def factors(self, job: Job, provider: Provider) -> MatchFactors:
        """Individual factor scores for a pair."""
        return MatchFactors(
            proximity=self.score_proximity(job, provider),
            capability=self.score_capability(job, provider),
            history=self.score_history(provider),
            availability=self.score_availability(provider),
            reputation=self.score_reputation(provider),
            route_preference=self.score_route_preference(job, provider),
        )

    def score(self, job: Job, provider: Provider) -> tuple[float, MatchFactors]:
        """
        Calculate the weighted match score.

        Args:
            job: Job to serve
            provider: Candidate provider

        Returns:
            Tuple of (score, factors)
        """
        f = self.factors(job, provider)
        w = self.weights
        total = (
            f.proximity * w.proximity
            + f.capability * w.capability
            + f.history * w.history
            + f.availability * w.availability
            + f.reputation * w.reputation
            + f.route_preference * w.route_preference
        )
        return min(1.0, total), f
