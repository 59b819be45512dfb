"""Pricing for the haulmatch dispatch core."""

from .engine import (
    CostProfile,
    PricingConfig,
    PricingEngine,
    default_cost_table,
    quote_job,
    round_up_to_ten,
)

__all__ = [
    "CostProfile",
    "PricingConfig",
    "PricingEngine",
    "default_cost_table",
    "quote_job",
    "round_up_to_ten",
]
