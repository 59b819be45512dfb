"""Scheduling units for the haulmatch dispatch core."""

from .base import SchedulingUnit, UnitResult
from .pricing_agent import PricingAgent
from .matching_agent import MatchingAgent

__all__ = ["SchedulingUnit", "UnitResult", "PricingAgent", "MatchingAgent"]
