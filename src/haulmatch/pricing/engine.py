"""
Pricing Engine

Cost-plus-market pricing: a base cost from a per-class cost table, scaled
by live market adjustments, then divided down by a clamped platform margin.
"""

import math
from dataclasses import dataclass, field
from typing import Optional

from ..config import settings, DEFAULT_COST_TABLE
from ..errors import ConfigurationError
from ..geo import ROAD_DETOUR_FACTOR
from ..models import AdjustmentFactors, Job, MarketSnapshot, PriceBreakdown, Quote

# Used when a job has neither a distance nor coordinates on both ends
DEFAULT_DISTANCE_KM = 100.0

# Driving hours per working day
HOURS_PER_DAY = 8

URGENCY_FACTOR = 1.25

# Damping of each market signal
FUEL_SENSITIVITY = 0.3
DEMAND_SENSITIVITY = 0.2
TRAFFIC_SENSITIVITY = 0.1
WEATHER_ALERT_STEP = 0.05

# Margin shifts with demand
HIGH_DEMAND = 0.7
LOW_DEMAND = 0.3
DEMAND_MARGIN_STEP = 0.02

# Confidence model
BASE_CONFIDENCE = 0.9
MIN_CONFIDENCE = 0.5
NORMAL_ADJUSTMENT_RANGE = (0.9, 1.2)


def round_up_to_ten(value: float) -> float:
    """Round up to the next multiple of 10 currency units."""
    return float(math.ceil(value / 10) * 10)


@dataclass
class CostProfile:
    """Base cost model for one resource class."""

    per_km: float
    per_hour: float
    per_day: float
    avg_speed_kmh: float

    def __post_init__(self):
        if self.per_km < 0 or self.per_hour < 0 or self.per_day < 0:
            raise ConfigurationError(f"Cost rates must be non-negative: {self}")
        if self.avg_speed_kmh <= 0:
            raise ConfigurationError(f"Average speed must be positive: {self}")


def default_cost_table() -> dict[str, CostProfile]:
    return {name: CostProfile(**values) for name, values in DEFAULT_COST_TABLE.items()}


@dataclass
class PricingConfig:
    """
    Pricing parameters.

    Margin bounds must satisfy 0 <= min_margin <= base_margin <= max_margin < 1.
    """

    base_margin: float = field(default_factory=lambda: settings.PLATFORM_MARGIN)
    min_margin: float = field(default_factory=lambda: settings.MIN_MARGIN)
    max_margin: float = field(default_factory=lambda: settings.MAX_MARGIN)
    fuel_reference_price: float = field(default_factory=lambda: settings.FUEL_REFERENCE_PRICE)
    default_class: str = field(default_factory=lambda: settings.DEFAULT_RESOURCE_CLASS)
    cost_table: dict[str, CostProfile] = field(default_factory=default_cost_table)

    def __post_init__(self):
        if not (0 <= self.min_margin <= self.base_margin <= self.max_margin < 1):
            raise ConfigurationError(
                "Margins must satisfy 0 <= min <= base <= max < 1, got "
                f"min={self.min_margin}, base={self.base_margin}, max={self.max_margin}"
            )
        if self.fuel_reference_price <= 0:
            raise ConfigurationError("Fuel reference price must be positive")
        if self.default_class not in self.cost_table:
            raise ConfigurationError(f"Default class {self.default_class!r} missing from cost table")


class PricingEngine:
    """
    Prices jobs from a cost table and a market snapshot.

    Steps:
    1. Resolve distance (declared, else great-circle x detour factor)
    2. Base cost = per-km + driver hours + per-day surcharge on multi-day runs
    3. Multiply by fuel, demand, traffic, weather and urgency factors
    4. Divide by (1 - margin), margin moving with demand inside its bounds
    5. Round up to the next 10
    """

    def __init__(self, config: Optional[PricingConfig] = None):
        self.config = config or PricingConfig()

    def resolve_distance(self, job: Job) -> tuple[float, bool]:
        """
        Get the job distance in km.

        Returns:
            Tuple of (distance_km, estimated)
        """
        if job.distance_km:
            return job.distance_km, False

        straight = job.pickup.distance_to(job.delivery)
        # Same point on both ends (e.g. a city centroid) tells us nothing
        if not straight:
            return DEFAULT_DISTANCE_KM, True
        return straight * ROAD_DETOUR_FACTOR, True

    def resolve_profile(self, job: Job) -> tuple[str, CostProfile, bool]:
        """
        Get the cost profile for the job's resource class.

        Unknown or missing classes fall back to the default class.

        Returns:
            Tuple of (class_name, profile, defaulted)
        """
        resource_class = job.resource_class
        if resource_class and resource_class in self.config.cost_table:
            return resource_class, self.config.cost_table[resource_class], False
        default = self.config.default_class
        return default, self.config.cost_table[default], True

    def calculate_adjustments(self, job: Job, market: MarketSnapshot) -> AdjustmentFactors:
        """Independent multiplicative market factors."""
        reference = self.config.fuel_reference_price
        fuel = 1 + (market.fuel_price - reference) / reference * FUEL_SENSITIVITY
        demand = 1 + (market.demand_index - 0.5) * DEMAND_SENSITIVITY
        traffic = 1 + market.traffic_index * TRAFFIC_SENSITIVITY
        weather = 1 + market.weather_alert_count * WEATHER_ALERT_STEP
        urgency = URGENCY_FACTOR if job.urgent else 1.0

        return AdjustmentFactors(
            fuel=fuel,
            demand=demand,
            traffic=traffic,
            weather=weather,
            urgency=urgency,
            total=fuel * demand * traffic * weather * urgency,
        )

    def dynamic_margin(self, market: MarketSnapshot) -> float:
        """Base margin shifted by demand, clamped to the configured bounds."""
        margin = self.config.base_margin
        if market.demand_index > HIGH_DEMAND:
            margin += DEMAND_MARGIN_STEP
        if market.demand_index < LOW_DEMAND:
            margin -= DEMAND_MARGIN_STEP
        return max(self.config.min_margin, min(self.config.max_margin, margin))

    def calculate_confidence(
        self,
        adjustments: AdjustmentFactors,
        distance_estimated: bool,
        class_defaulted: bool,
    ) -> float:
        """Start high, lose confidence for large adjustments and missing inputs."""
        confidence = BASE_CONFIDENCE
        low, high = NORMAL_ADJUSTMENT_RANGE
        if adjustments.total < low or adjustments.total > high:
            confidence -= 0.1
        if distance_estimated:
            confidence -= 0.1
        if class_defaulted:
            confidence -= 0.05
        return round(max(MIN_CONFIDENCE, confidence), 2)

    def neutral_market(self) -> MarketSnapshot:
        """Snapshot under which every adjustment factor is 1.0."""
        return MarketSnapshot(
            demand_index=0.5,
            supply_index=0.5,
            fuel_price=self.config.fuel_reference_price,
            traffic_index=0.0,
            weather_alert_count=0,
        )

    def price(self, job: Job, market: Optional[MarketSnapshot] = None) -> Quote:
        """
        Price a job.

        Args:
            job: Job to price
            market: Current market snapshot (neutral market if None)

        Returns:
            Quote with amount, full breakdown and confidence
        """
        market = market or self.neutral_market()

        distance, distance_estimated = self.resolve_distance(job)
        resource_class, profile, class_defaulted = self.resolve_profile(job)

        # Base cost
        distance_cost = profile.per_km * distance
        hours = distance / profile.avg_speed_kmh
        driver_cost = profile.per_hour * hours
        days = math.ceil(hours / HOURS_PER_DAY)
        daily_cost = profile.per_day * days if days > 1 else 0.0
        base_cost = distance_cost + driver_cost + daily_cost

        # Market
        adjustments = self.calculate_adjustments(job, market)
        adjusted_cost = base_cost * adjustments.total

        # Margin
        margin = self.dynamic_margin(market)
        raw_price = adjusted_cost / (1 - margin)
        price = round_up_to_ten(raw_price)

        breakdown = PriceBreakdown(
            distance_km=distance,
            distance_estimated=distance_estimated,
            resource_class=resource_class,
            resource_class_defaulted=class_defaulted,
            rate_per_km=profile.per_km,
            rate_per_hour=profile.per_hour,
            rate_per_day=profile.per_day,
            avg_speed_kmh=profile.avg_speed_kmh,
            distance_cost=distance_cost,
            estimated_hours=hours,
            driver_cost=driver_cost,
            days=days,
            daily_cost=daily_cost,
            base_cost=base_cost,
            adjustments=adjustments,
            adjusted_cost=adjusted_cost,
            margin=margin,
            raw_price=raw_price,
            price=price,
            platform_share=price * margin,
            provider_share=price * (1 - margin),
        )

        return Quote(
            amount=price,
            breakdown=breakdown,
            confidence=self.calculate_confidence(adjustments, distance_estimated, class_defaulted),
            competitive_min=round(price * 0.85),
            competitive_max=round(price * 1.15),
        )


# =============================================================================
# Convenience Functions
# =============================================================================

def quote_job(job: Job, market: Optional[MarketSnapshot] = None) -> Quote:
    """Price a job with the default configuration."""
    return PricingEngine().price(job, market)
