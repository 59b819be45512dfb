"""Enumerations for the haulmatch dispatch core."""

from enum import Enum


class JobStatus(str, Enum):
    """Lifecycle of a transport job."""

    PENDING = "pending"
    PRICED = "priced"
    MATCHED = "matched"
    # Terminal states, set outside the core
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


class ProviderStatus(str, Enum):
    """Status of a resource provider (carrier)."""

    ACTIVE = "active"
    QUALIFIED = "qualified"
    UNAVAILABLE = "unavailable"


class MatchStatus(str, Enum):
    """Status of a proposed job/provider pair."""

    PROPOSED = "proposed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class InsightType(str, Enum):
    """Kinds of cross-unit insight."""

    MARKET_OPPORTUNITY = "market_opportunity"
    JOB_BACKLOG = "job_backlog"
    MATCHING_OPPORTUNITY = "matching_opportunity"
    RETURN_LOAD = "return_load"
    RISKY_MATCH = "risky_match"


class Severity(str, Enum):
    """Insight severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
