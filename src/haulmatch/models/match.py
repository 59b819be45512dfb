"""Matched pair model."""

from datetime import datetime
from typing import Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field

from ..clock import utcnow
from .enums import MatchStatus


class MatchFactors(BaseModel):
    """Per-factor scores (0-1) behind a match score."""

    proximity: float = 0.0
    capability: float = 0.0
    history: float = 0.0
    availability: float = 0.0
    reputation: float = 0.0
    route_preference: float = 0.0

    def to_percentages(self) -> dict[str, int]:
        """Rounded percentages for display."""
        return {name: round(value * 100) for name, value in self.model_dump().items()}


class ReturnOpportunity(BaseModel):
    """A follow-up job leaving from the matched job's delivery city."""

    job_id: str
    score: float
    empty_distance_saved_km: float
    combined_earnings: float


class MatchedPair(BaseModel):
    """One job/provider assignment proposed during a cycle."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=lambda: f"match_{uuid.uuid4().hex[:12]}")
    job_id: str
    provider_id: str
    score: float = Field(..., ge=0, le=1)
    factors: MatchFactors
    acceptance_probability: float = Field(default=0.0, ge=0, le=1)
    return_opportunity: Optional[ReturnOpportunity] = None
    status: MatchStatus = MatchStatus.PROPOSED
    created_at: datetime = Field(default_factory=utcnow)
