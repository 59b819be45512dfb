"""
Matching Engine Tests

Factor scoring, greedy exclusive allocation, acceptance estimates and
return opportunities.
"""

import asyncio

import pytest

from haulmatch.errors import ConfigurationError, ConsistencyError
from haulmatch.matching import Candidate, MatchingConfig, MatchingEngine, MatchScorer, MatchWeights
from haulmatch.models import Location, MatchFactors, PreferredRoute, ProviderStatus
from haulmatch.orchestrator import build_orchestrator
from haulmatch.pricing import PricingEngine
from haulmatch.state import DispatchState

from conftest import LYON, MARSEILLE, PARIS, make_job, make_provider


class ExplodingProviders:
    """Fails the test if the engine looks at the providers at all."""

    def __iter__(self):
        raise AssertionError("providers were iterated")

    def __len__(self):
        raise AssertionError("providers were counted")

    def __bool__(self):
        raise AssertionError("providers were inspected")


class TestCapabilityFit:
    """Resource class fit"""

    def test_exact_class(self):
        scorer = MatchScorer()
        assert scorer.score_capability(make_job(resource_class="PL"), make_provider(resource_classes=["PL"])) == 1.0

    def test_higher_class_substitutes(self):
        scorer = MatchScorer()
        assert scorer.score_capability(make_job(resource_class="VL"), make_provider(resource_classes=["SPL"])) == 0.7

    def test_lower_class_only(self):
        scorer = MatchScorer()
        assert scorer.score_capability(make_job(resource_class="SPL"), make_provider(resource_classes=["VL"])) == 0.3

    def test_unranked_class_mismatch(self):
        scorer = MatchScorer()
        assert scorer.score_capability(make_job(resource_class="Frigo"), make_provider(resource_classes=["SPL"])) == 0.3

    def test_missing_class_is_neutral(self):
        scorer = MatchScorer()
        assert scorer.score_capability(make_job(resource_class=None), make_provider()) == 0.5

    def test_can_serve(self):
        provider = make_provider(resource_classes=["PL"])

        assert provider.can_serve("PL")
        assert provider.can_serve("VL")
        assert not provider.can_serve("SPL")
        assert not provider.can_serve("Frigo")

    def test_custom_hierarchy(self):
        scorer = MatchScorer(hierarchy=["VL", "Frigo"])
        job, provider = make_job(resource_class="VL"), make_provider(resource_classes=["Frigo"])

        assert scorer.score_capability(job, provider) == 0.7
        assert scorer.score_capability(make_job(), make_provider(resource_classes=[])) == 0.5


class TestFactorDefaults:
    """Missing provider data scores neutrally"""

    def test_history_default(self):
        assert MatchScorer().score_history(make_provider(success_rate=None)) == 0.75

    @pytest.mark.parametrize("available,expected", [(True, 1.0), (False, 0.0), (None, 0.6)])
    def test_availability(self, available, expected):
        assert MatchScorer().score_availability(make_provider(available=available)) == expected

    def test_reputation(self):
        scorer = MatchScorer()
        assert scorer.score_reputation(make_provider(rating=5)) == 1.0
        assert scorer.score_reputation(make_provider(rating=None)) == pytest.approx(0.8)

    def test_proximity_without_location(self):
        assert MatchScorer().score_proximity(make_job(), make_provider(location=None)) == 0.5

    def test_proximity_without_coordinates(self):
        provider = make_provider(location=Location(city="Paris"))
        assert MatchScorer().score_proximity(make_job(), provider) == 0.5

    def test_proximity_falls_to_zero(self):
        assert MatchScorer().score_proximity(make_job(), make_provider(location=LYON)) == 0.0
        assert MatchScorer().score_proximity(make_job(), make_provider(location=PARIS)) == pytest.approx(1.0)


class TestRoutePreference:
    """Declared lanes"""

    def test_no_preferences(self):
        assert MatchScorer().score_route_preference(make_job(), make_provider()) == 0.5

    def test_matching_lane(self):
        provider = make_provider(preferred_routes=[PreferredRoute(from_city="Paris", to_city="Lyon")])
        assert MatchScorer().score_route_preference(make_job(), provider) == 1.0

    def test_substring_and_case(self):
        provider = make_provider(preferred_routes=[PreferredRoute(from_city="paris", to_city="LYON")])
        job = make_job(
            pickup=Location(city="Paris 15e"),
            delivery=Location(city="Lyon Part-Dieu"),
        )
        assert MatchScorer().score_route_preference(job, provider) == 1.0

    def test_other_lane(self):
        provider = make_provider(preferred_routes=[PreferredRoute(from_city="Lyon", to_city="Marseille")])
        assert MatchScorer().score_route_preference(make_job(), provider) == 0.3


class TestScoreMonotonicity:
    """Moving a provider closer never lowers the score"""

    def test_closer_is_never_worse(self):
        scorer = MatchScorer()
        job = make_job()
        offsets = [2.0, 1.0, 0.5, 0.3, 0.1, 0.05, 0.0]

        scores = []
        for offset in offsets:
            location = Location(city="Nearby", latitude=PARIS.latitude - offset, longitude=PARIS.longitude)
            score, _ = scorer.score(job, make_provider(location=location))
            scores.append(score)

        assert scores == sorted(scores)

    def test_score_is_capped(self):
        score, _ = MatchScorer().score(make_job(), make_provider())
        assert 0.0 <= score <= 1.0


class TestMatchWeights:
    """Weights must be non-negative and sum to 1"""

    def test_defaults_valid(self):
        MatchWeights()

    def test_sum_not_one(self):
        with pytest.raises(ConfigurationError):
            MatchWeights(proximity=0.5)

    def test_negative_weight(self):
        with pytest.raises(ConfigurationError):
            MatchWeights(proximity=0.45, capability=-0.20, history=0.40)

    def test_invalid_matching_config(self):
        with pytest.raises(ConfigurationError):
            MatchingConfig(min_score=1.5)
        with pytest.raises(ConfigurationError):
            MatchingConfig(max_matches=0)


class TestAllocation:
    """Greedy, exclusive, bounded allocation"""

    def test_exclusivity(self):
        jobs = [make_job() for _ in range(5)]
        providers = [make_provider() for _ in range(3)]

        pairs = MatchingEngine().match(jobs, providers)

        job_ids = [p.job_id for p in pairs]
        provider_ids = [p.provider_id for p in pairs]
        assert len(pairs) == 3
        assert len(set(job_ids)) == len(job_ids)
        assert len(set(provider_ids)) == len(provider_ids)

    def test_max_matches_bound(self):
        engine = MatchingEngine(MatchingConfig(max_matches=2))
        pairs = engine.match([make_job() for _ in range(5)], [make_provider() for _ in range(5)])

        assert len(pairs) == 2

    def test_highest_score_first(self):
        near = make_job(pickup=PARIS)
        far = make_job(pickup=Location(city="Paris Sud", latitude=48.40, longitude=2.3522))
        provider = make_provider()

        pairs = MatchingEngine().match([far, near], [provider])

        assert len(pairs) == 1
        assert pairs[0].job_id == near.id

    def test_pairs_sorted_by_score(self):
        jobs = [make_job(), make_job(pickup=Location(city="Paris Sud", latitude=48.60, longitude=2.3522))]
        providers = [make_provider(), make_provider(success_rate=0.5)]

        pairs = MatchingEngine().match(jobs, providers)

        scores = [p.score for p in pairs]
        assert scores == sorted(scores, reverse=True)

    def test_below_min_score_dropped(self):
        poor = make_provider(location=MARSEILLE, resource_classes=["VL"], available=False)
        assert MatchingEngine().match([make_job(resource_class="SPL")], [poor]) == []

    def test_ineligible_providers_skipped(self):
        provider = make_provider(status=ProviderStatus.UNAVAILABLE)
        assert MatchingEngine().match([make_job()], [provider]) == []

    def test_inputs_not_mutated(self):
        job, provider = make_job(), make_provider()
        pairs = MatchingEngine().match([job], [provider])

        assert len(pairs) == 1
        assert job.matched is False
        assert provider.last_matched_at is None

    def test_duplicate_provider_id_keeps_last_record(self):
        near = make_provider(id="x", location=PARIS)
        far = make_provider(id="x", location=MARSEILLE)
        engine = MatchingEngine(MatchingConfig(min_score=0.5))

        pairs = engine.match([make_job()], [near, far])

        assert len(pairs) == 1
        assert pairs[0].provider_id == "x"
        assert pairs[0].factors.proximity == 0.0

    def test_duplicate_job_id_matched_once(self):
        first = make_job(id="J1")
        second = make_job(id="J1", delivery=MARSEILLE)
        providers = [make_provider(), make_provider()]

        pairs = MatchingEngine().match([first, second], providers)

        assert [p.job_id for p in pairs] == ["J1"]

    def test_vanished_job_is_consistency_error(self):
        job, provider = make_job(), make_provider()
        candidate = Candidate(job=job, provider=provider, score=0.9, factors=MatchFactors())

        with pytest.raises(ConsistencyError):
            MatchingEngine().allocate([candidate], {}, {provider.id: provider})


class TestEmptyInput:
    """Nothing to match means no scoring work"""

    def test_no_jobs_never_touches_providers(self):
        assert MatchingEngine().match([], ExplodingProviders()) == []

    def test_only_matched_jobs_never_touches_providers(self):
        job = make_job()
        job.assign("someone", 0.9)
        assert MatchingEngine().match([job], ExplodingProviders()) == []

    def test_no_providers(self):
        assert MatchingEngine().match([make_job()], []) == []


class TestAcceptance:
    """Acceptance probability stays within [0.10, 0.95]"""

    def test_upper_clamp(self):
        job = make_job(distance_km=100)
        job.apply_quote(PricingEngine().price(job))
        provider = make_provider(response_time_hours=1)

        assert MatchingEngine().predict_acceptance(job, provider, 1.0) == pytest.approx(0.95)

    def test_lower_clamp(self):
        # A 100 km light-vehicle run pays the provider under 1 per km
        job = make_job(distance_km=100, resource_class="VL")
        job.apply_quote(PricingEngine().price(job))
        provider = make_provider(response_time_hours=24)

        assert MatchingEngine().predict_acceptance(job, provider, 0.2) == pytest.approx(0.10)

    def test_without_price_or_response_time(self):
        provider = make_provider(response_time_hours=None)
        assert MatchingEngine().predict_acceptance(make_job(), provider, 0.8) == pytest.approx(0.8)

    def test_attached_to_pairs(self):
        pairs = MatchingEngine().match([make_job()], [make_provider()])
        assert 0.10 <= pairs[0].acceptance_probability <= 0.95

    def test_zero_priced_distance_uses_default(self):
        job = make_job(pickup=PARIS, delivery=PARIS, distance_km=None)
        quote = PricingEngine().price(job)
        job.apply_quote(quote.model_copy(update={"breakdown": quote.breakdown.model_copy(update={"distance_km": 0.0})}))

        pairs = MatchingEngine().match([job], [make_provider()])

        assert len(pairs) == 1
        assert 0.10 <= pairs[0].acceptance_probability <= 0.95

    def test_intra_city_job_matched_in_cycle(self):
        job = make_job(pickup=PARIS, delivery=PARIS, distance_km=None)
        orchestrator = build_orchestrator(
            state=DispatchState(jobs=[job], providers=[make_provider()]),
            cycle_interval_ms=0,
        )

        report = asyncio.run(orchestrator.run_cycle())

        assert report.failed_units == []
        assert job.price > 0
        assert len(orchestrator.state.matched_pairs) == 1


class TestReturnOpportunity:
    """Follow-up jobs leaving from the delivery city"""

    def test_return_job_attached(self):
        outbound = make_job(pickup=PARIS, delivery=LYON, distance_km=465)
        back = make_job(pickup=Location(city="LYON", latitude=LYON.latitude, longitude=LYON.longitude), delivery=PARIS)

        pairs = MatchingEngine().match([outbound, back], [make_provider()])

        assert len(pairs) == 1
        assert pairs[0].job_id == outbound.id
        opportunity = pairs[0].return_opportunity
        assert opportunity is not None
        assert opportunity.job_id == back.id
        assert opportunity.score >= 0.6
        assert opportunity.empty_distance_saved_km == 465

    def test_no_return_job(self):
        elsewhere = make_job(pickup=MARSEILLE, delivery=PARIS)
        pairs = MatchingEngine().match([make_job(), elsewhere], [make_provider()])

        assert pairs[0].return_opportunity is None

    def test_return_below_threshold(self):
        back = make_job(pickup=LYON, delivery=PARIS)
        engine = MatchingEngine(MatchingConfig(return_min_score=0.95))

        pairs = engine.match([make_job(), back], [make_provider()])

        assert pairs[0].return_opportunity is None
