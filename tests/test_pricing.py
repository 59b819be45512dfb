"""
Pricing Engine Tests

Cost-plus-market pricing: base cost, market adjustments, dynamic margin,
rounding and confidence.
"""

import pytest

from haulmatch.errors import ConfigurationError
from haulmatch.geo import ROAD_DETOUR_FACTOR, haversine_km
from haulmatch.models import Location, MarketSnapshot
from haulmatch.pricing import PricingConfig, PricingEngine, quote_job, round_up_to_ten

from conftest import LYON, PARIS, make_job


class TestReferenceScenario:
    """100 km, class PL, neutral market, 10% margin."""

    def test_price_is_180(self, neutral_market):
        quote = PricingEngine().price(make_job(distance_km=100, resource_class="PL"), neutral_market)

        assert quote.amount == 180
        assert quote.breakdown.base_cost == pytest.approx(158.46, abs=0.01)
        assert quote.breakdown.adjusted_cost == pytest.approx(158.46, abs=0.01)
        assert quote.breakdown.adjustments.total == pytest.approx(1.0)
        assert quote.breakdown.margin == pytest.approx(0.10)

    def test_breakdown_exposes_every_component(self, neutral_market):
        b = PricingEngine().price(make_job(distance_km=100), neutral_market).breakdown

        assert b.distance_cost == pytest.approx(120.0)
        assert b.driver_cost == pytest.approx(25 * 100 / 65)
        assert b.daily_cost == 0
        assert b.days == 1
        assert b.rate_per_km == 1.20
        assert b.avg_speed_kmh == 65
        assert b.raw_price == pytest.approx(158.46 / 0.9, abs=0.01)

    def test_shares_add_up_to_price(self, neutral_market):
        quote = PricingEngine().price(make_job(distance_km=100), neutral_market)

        assert quote.breakdown.platform_share == pytest.approx(18.0)
        assert quote.breakdown.provider_share == pytest.approx(162.0)
        assert quote.breakdown.platform_share + quote.breakdown.provider_share == pytest.approx(quote.amount)

    def test_competitive_range(self, neutral_market):
        quote = PricingEngine().price(make_job(distance_km=100), neutral_market)

        assert quote.competitive_min == 153
        assert quote.competitive_max == 207

    def test_no_market_means_neutral_market(self, neutral_market):
        job = make_job(distance_km=100)
        assert quote_job(job).amount == PricingEngine().price(job, neutral_market).amount


class TestBaseCost:
    """Distance resolution and multi-day surcharge"""

    def test_multi_day_run_adds_daily_cost(self, neutral_market):
        # 1000 km at 65 km/h is about 15.4 h, two driving days
        b = PricingEngine().price(make_job(distance_km=1000), neutral_market).breakdown

        assert b.days == 2
        assert b.daily_cost == pytest.approx(2 * 280)

    def test_single_day_run_has_no_daily_cost(self, neutral_market):
        b = PricingEngine().price(make_job(distance_km=500), neutral_market).breakdown

        assert b.days == 1
        assert b.daily_cost == 0

    def test_distance_estimated_from_coordinates(self, neutral_market):
        b = PricingEngine().price(make_job(distance_km=None), neutral_market).breakdown

        expected = haversine_km(PARIS.latitude, PARIS.longitude, LYON.latitude, LYON.longitude)
        assert b.distance_estimated is True
        assert b.distance_km == pytest.approx(expected * ROAD_DETOUR_FACTOR)

    def test_distance_falls_back_without_coordinates(self, neutral_market):
        job = make_job(
            pickup=Location(city="Paris"),
            delivery=Location(city="Lyon"),
            distance_km=None,
        )
        b = PricingEngine().price(job, neutral_market).breakdown

        assert b.distance_estimated is True
        assert b.distance_km == 100

    def test_same_point_falls_back(self, neutral_market):
        job = make_job(pickup=PARIS, delivery=PARIS, distance_km=None)
        quote = PricingEngine().price(job, neutral_market)

        assert quote.breakdown.distance_km == 100
        assert quote.breakdown.distance_estimated is True
        assert quote.amount > 0
        assert quote.earnings_per_km > 0

    def test_missing_class_uses_default(self, neutral_market):
        b = PricingEngine().price(make_job(resource_class=None), neutral_market).breakdown

        assert b.resource_class == "PL"
        assert b.resource_class_defaulted is True

    def test_unknown_class_uses_default(self, neutral_market):
        b = PricingEngine().price(make_job(resource_class="Hovercraft"), neutral_market).breakdown

        assert b.resource_class == "PL"
        assert b.resource_class_defaulted is True

    def test_specialty_class_uses_its_own_rates(self, neutral_market):
        b = PricingEngine().price(make_job(resource_class="Frigo"), neutral_market).breakdown

        assert b.resource_class == "Frigo"
        assert b.rate_per_km == 1.60


class TestAdjustments:
    """Independent multiplicative market factors"""

    def test_fuel_deviation_is_damped(self, neutral_market):
        market = neutral_market.model_copy(update={"fuel_price": 2.16})
        adj = PricingEngine().price(make_job(), market).breakdown.adjustments

        # +20% fuel, damped by 0.3
        assert adj.fuel == pytest.approx(1.06)

    def test_demand_traffic_weather(self, neutral_market):
        market = neutral_market.model_copy(
            update={"demand_index": 1.0, "traffic_index": 1.0, "weather_alert_count": 2}
        )
        adj = PricingEngine().price(make_job(), market).breakdown.adjustments

        assert adj.demand == pytest.approx(1.1)
        assert adj.traffic == pytest.approx(1.1)
        assert adj.weather == pytest.approx(1.1)
        assert adj.total == pytest.approx(1.1 ** 3)

    def test_zero_traffic_is_neutral(self, neutral_market):
        adj = PricingEngine().price(make_job(), neutral_market).breakdown.adjustments
        assert adj.traffic == 1.0

    def test_urgent_job(self, neutral_market):
        adj = PricingEngine().price(make_job(urgent=True), neutral_market).breakdown.adjustments

        assert adj.urgency == 1.25
        assert adj.total == pytest.approx(1.25)


class TestMargin:
    """Dynamic margin stays within its configured bounds"""

    @pytest.mark.parametrize("demand", [0.0, 0.1, 0.29, 0.3, 0.5, 0.7, 0.71, 0.9, 1.0])
    def test_margin_within_bounds(self, demand):
        engine = PricingEngine()
        margin = engine.dynamic_margin(MarketSnapshot(demand_index=demand))

        assert engine.config.min_margin <= margin <= engine.config.max_margin

    def test_high_demand_raises_margin(self):
        assert PricingEngine().dynamic_margin(MarketSnapshot(demand_index=0.9)) == pytest.approx(0.12)

    def test_low_demand_lowers_margin(self):
        assert PricingEngine().dynamic_margin(MarketSnapshot(demand_index=0.1)) == pytest.approx(0.08)

    def test_clamped_to_tight_bounds(self):
        engine = PricingEngine(PricingConfig(base_margin=0.10, min_margin=0.10, max_margin=0.11))

        assert engine.dynamic_margin(MarketSnapshot(demand_index=0.9)) == pytest.approx(0.11)
        assert engine.dynamic_margin(MarketSnapshot(demand_index=0.1)) == pytest.approx(0.10)


class TestRounding:
    """Prices round up to the next multiple of 10"""

    def test_rounds_up(self):
        assert round_up_to_ten(176.07) == 180
        assert round_up_to_ten(170.0) == 170
        assert round_up_to_ten(0.01) == 10

    @pytest.mark.parametrize("value", [0, 9.99, 176.07, 1234.5, 99999.99])
    def test_idempotent(self, value):
        once = round_up_to_ten(value)
        assert round_up_to_ten(once) == once


class TestConfidence:
    """Confidence starts at 0.9 and drops for estimates and large adjustments"""

    def test_full_information(self, neutral_market):
        assert PricingEngine().price(make_job(), neutral_market).confidence == 0.9

    def test_estimated_distance(self, neutral_market):
        assert PricingEngine().price(make_job(distance_km=None), neutral_market).confidence == 0.8

    def test_defaulted_class(self, neutral_market):
        assert PricingEngine().price(make_job(resource_class=None), neutral_market).confidence == 0.85

    def test_large_adjustment(self, neutral_market):
        assert PricingEngine().price(make_job(urgent=True), neutral_market).confidence == 0.8

    def test_all_penalties(self, neutral_market):
        job = make_job(distance_km=None, resource_class=None, urgent=True)
        assert PricingEngine().price(job, neutral_market).confidence == 0.65


class TestPricingConfig:
    """Invalid pricing configuration fails fast"""

    def test_min_above_base(self):
        with pytest.raises(ConfigurationError):
            PricingConfig(base_margin=0.05, min_margin=0.10, max_margin=0.25)

    def test_max_margin_of_one(self):
        with pytest.raises(ConfigurationError):
            PricingConfig(base_margin=0.10, min_margin=0.05, max_margin=1.0)

    def test_negative_margin(self):
        with pytest.raises(ConfigurationError):
            PricingConfig(base_margin=0.10, min_margin=-0.05, max_margin=0.25)

    def test_default_class_missing_from_table(self):
        with pytest.raises(ConfigurationError):
            PricingConfig(default_class="Hovercraft")

    def test_non_positive_fuel_reference(self):
        with pytest.raises(ConfigurationError):
            PricingConfig(fuel_reference_price=0)
