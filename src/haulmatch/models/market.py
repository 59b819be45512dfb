"""Market snapshot and insight models."""

from datetime import datetime
from typing import Any
import uuid

from pydantic import BaseModel, ConfigDict, Field

from ..clock import utcnow
from .enums import InsightType, Severity


class MarketSnapshot(BaseModel):
    """Exogenous market signals for one cycle. Immutable."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    demand_index: float = Field(default=0.5, ge=0, le=1)
    supply_index: float = Field(default=0.5, ge=0, le=1)
    fuel_price: float = Field(default=1.80, gt=0)
    traffic_index: float = Field(default=0.0, ge=0, le=1)
    weather_alert_count: int = Field(default=0, ge=0)


class Insight(BaseModel):
    """A rule-based observation derived from the end-of-cycle state."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=lambda: f"insight_{uuid.uuid4().hex[:12]}")
    type: InsightType
    severity: Severity
    title: str
    message: str
    action: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
