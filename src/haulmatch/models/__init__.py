"""Data models for the haulmatch dispatch core."""

from .enums import (
    JobStatus,
    ProviderStatus,
    MatchStatus,
    InsightType,
    Severity,
)
from .quote import AdjustmentFactors, PriceBreakdown, Quote
from .job import Location, Job
from .provider import PreferredRoute, Provider
from .match import MatchFactors, ReturnOpportunity, MatchedPair
from .market import MarketSnapshot, Insight

__all__ = [
    # Enums
    "JobStatus",
    "ProviderStatus",
    "MatchStatus",
    "InsightType",
    "Severity",
    # Pricing
    "AdjustmentFactors",
    "PriceBreakdown",
    "Quote",
    # Job
    "Location",
    "Job",
    # Provider
    "PreferredRoute",
    "Provider",
    # Matching
    "MatchFactors",
    "ReturnOpportunity",
    "MatchedPair",
    # Market
    "MarketSnapshot",
    "Insight",
]
