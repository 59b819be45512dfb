"""Price quote models produced by the pricing engine."""

from pydantic import BaseModel, Field


class AdjustmentFactors(BaseModel):
    """Multiplicative market adjustments applied to the base cost."""

    fuel: float = 1.0
    demand: float = 1.0
    traffic: float = 1.0
    weather: float = 1.0
    urgency: float = 1.0
    total: float = 1.0


class PriceBreakdown(BaseModel):
    """
    Every intermediate quantity of a quote, for audit.

    Monetary amounts are unrounded except `price`.
    """

    # Inputs
    distance_km: float
    distance_estimated: bool = False
    resource_class: str
    resource_class_defaulted: bool = False

    # Base cost model
    rate_per_km: float
    rate_per_hour: float
    rate_per_day: float
    avg_speed_kmh: float
    distance_cost: float
    estimated_hours: float
    driver_cost: float
    days: int
    daily_cost: float
    base_cost: float

    # Market
    adjustments: AdjustmentFactors
    adjusted_cost: float

    # Margin and split
    margin: float
    raw_price: float
    price: float
    platform_share: float
    provider_share: float


class Quote(BaseModel):
    """A priced job."""

    amount: float = Field(..., ge=0)
    breakdown: PriceBreakdown
    confidence: float = Field(..., ge=0, le=1)
    competitive_min: float = 0.0
    competitive_max: float = 0.0

    @property
    def earnings_per_km(self) -> float:
        """Provider earnings per kilometre."""
        if self.breakdown.distance_km <= 0:
            return 0.0
        return self.breakdown.provider_share / self.breakdown.distance_km
