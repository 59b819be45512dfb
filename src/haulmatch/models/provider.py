"""Provider model: a carrier holding transport capacity."""

from datetime import datetime
from typing import Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field

from ..config import RESOURCE_CLASS_HIERARCHY
from .enums import ProviderStatus
from .job import Location


class PreferredRoute(BaseModel):
    """A lane the provider declared interest in."""

    from_city: str
    to_city: str

    def matches(self, pickup_city: str, delivery_city: str) -> bool:
        """Case-insensitive substring match on both ends."""
        return (
            self.from_city.lower() in pickup_city.lower()
            and self.to_city.lower() in delivery_city.lower()
        )


class Provider(BaseModel):
    """
    Resource provider record.

    Created and updated outside the core; the core only reads it and stamps
    `last_matched_at`.
    """

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    status: ProviderStatus = ProviderStatus.ACTIVE

    # Position and capacity
    location: Optional[Location] = None
    resource_classes: list[str] = Field(default_factory=list)

    # Track record
    success_rate: Optional[float] = Field(default=None, ge=0, le=1)
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    response_time_hours: Optional[float] = Field(default=None, ge=0)

    # None = unknown
    available: Optional[bool] = None

    preferred_routes: list[PreferredRoute] = Field(default_factory=list)

    # Attached by the external risk service; None = unknown
    risk_score: Optional[float] = Field(default=None, ge=0, le=1)

    last_matched_at: Optional[datetime] = None

    @property
    def is_eligible(self) -> bool:
        """Provider may be considered for matching."""
        return self.status in (ProviderStatus.ACTIVE, ProviderStatus.QUALIFIED)

    def can_serve(self, resource_class: str, hierarchy: Optional[list[str]] = None) -> bool:
        """Provider offers the class or a higher-capacity one."""
        if resource_class in self.resource_classes:
            return True
        hierarchy = hierarchy or RESOURCE_CLASS_HIERARCHY
        if resource_class not in hierarchy:
            return False
        required = hierarchy.index(resource_class)
        return any(
            hierarchy.index(c) > required
            for c in self.resource_classes
            if c in hierarchy
        )
