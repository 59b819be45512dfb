"""Job model: a transport request from pickup to delivery."""

from datetime import datetime
from typing import Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..clock import utcnow
from ..geo import haversine_km
from .enums import JobStatus
from .quote import PriceBreakdown, Quote


class Location(BaseModel):
    """Geographic location for pickup, delivery or a provider's position."""

    city: str = ""
    postal_code: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    def __str__(self) -> str:
        if self.postal_code:
            return f"{self.city} ({self.postal_code})"
        return self.city

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def distance_to(self, other: "Location") -> Optional[float]:
        """Great-circle distance in km, or None when either side lacks coordinates."""
        if not (self.has_coordinates and other.has_coordinates):
            return None
        return haversine_km(self.latitude, self.longitude, other.latitude, other.longitude)


class Job(BaseModel):
    """
    A transport request.

    A job holds at most one active match; `matched=True` always comes with
    a provider reference and a match timestamp.
    """

    model_config = ConfigDict(use_enum_values=True)

    # Identifiers
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    reference: Optional[str] = None

    # Route
    pickup: Location
    delivery: Location
    distance_km: Optional[float] = Field(default=None, gt=0)

    # Requirements
    resource_class: Optional[str] = None
    urgent: bool = False

    # Lifecycle
    status: JobStatus = JobStatus.PENDING

    # Pricing
    price: Optional[float] = Field(default=None, ge=0)
    price_breakdown: Optional[PriceBreakdown] = None
    priced_at: Optional[datetime] = None

    # Assignment
    matched: bool = False
    provider_id: Optional[str] = None
    match_score: Optional[float] = None
    matched_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_match_invariant(self) -> "Job":
        if self.matched and (self.provider_id is None or self.matched_at is None):
            raise ValueError("a matched job needs provider_id and matched_at")
        return self

    @property
    def is_priced(self) -> bool:
        return self.price is not None

    @property
    def is_open(self) -> bool:
        """Job is waiting for a provider."""
        return not self.matched and self.status in (JobStatus.PENDING, JobStatus.PRICED)

    @property
    def route(self) -> str:
        return f"{self.pickup.city} -> {self.delivery.city}"

    def apply_quote(self, quote: Quote) -> None:
        """Attach a price to this job."""
        self.price = quote.amount
        self.price_breakdown = quote.breakdown
        self.priced_at = utcnow()
        if self.status == JobStatus.PENDING:
            self.status = JobStatus.PRICED

    def assign(self, provider_id: str, score: float) -> None:
        """Mark this job as matched to a provider."""
        if self.matched:
            raise ValueError(f"job {self.id} is already matched to {self.provider_id}")
        self.provider_id = provider_id
        self.match_score = score
        self.matched_at = utcnow()
        self.matched = True
        self.status = JobStatus.MATCHED
