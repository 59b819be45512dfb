"""
Market Context Provider

Builds the per-cycle market snapshot from the clock, the provider pool
and externally supplied signals (fuel, traffic, weather).
"""

from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..clock import localnow
from ..config import settings
from ..errors import ConfigurationError, MarketContextError
from ..models import MarketSnapshot


@dataclass
class ExternalSignals:
    """Values fetched from outside the core, read-only for a cycle."""

    fuel_price: float = field(default_factory=lambda: settings.DEFAULT_FUEL_PRICE)
    traffic_index: float = field(default_factory=lambda: settings.DEFAULT_TRAFFIC_INDEX)
    weather_alerts: list[str] = field(default_factory=list)


SignalsSource = Callable[[], ExternalSignals]


def default_signals() -> ExternalSignals:
    """Static signals from settings."""
    return ExternalSignals()


class MarketContextProvider:
    """
    Produces a MarketSnapshot once per cycle.

    Demand follows the local time of day and day of week; supply follows
    the number of active providers.
    """

    def __init__(
        self,
        signals_source: Optional[SignalsSource] = None,
        clock: Optional[Callable[[], datetime]] = None,
        timezone: Optional[str] = None,
    ):
        """
        Initialize the provider.

        Args:
            signals_source: Callable returning ExternalSignals (static defaults if None)
            clock: Callable returning "now"; peak hours are read from its
                wall-clock time
            timezone: IANA zone for the default clock (MARKET_TIMEZONE, then
                the host's local zone, if None)

        Raises:
            ConfigurationError: If the time zone is unknown
        """
        self.signals_source = signals_source or default_signals
        if clock is None:
            tz_name = timezone or settings.MARKET_TIMEZONE
            try:
                tz = ZoneInfo(tz_name) if tz_name else None
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ConfigurationError(f"Unknown market time zone: {tz_name!r}") from e
            clock = partial(localnow, tz)
        self.clock = clock

    @staticmethod
    def demand_index(now: datetime) -> float:
        """Higher on weekdays and during the morning and afternoon peaks."""
        base = 0.5
        if now.weekday() < 5:
            base += 0.2
        if 6 <= now.hour <= 10:
            base += 0.15
        if 14 <= now.hour <= 18:
            base += 0.1
        return min(1.0, base)

    @staticmethod
    def supply_index(active_providers: int) -> float:
        """Saturates at 100 active providers."""
        return min(1.0, max(0, active_providers) / 100)

    def refresh(self, active_providers: int = 0) -> MarketSnapshot:
        """
        Build a fresh snapshot.

        Args:
            active_providers: Number of providers currently eligible

        Returns:
            New MarketSnapshot

        Raises:
            MarketContextError: If the external signals cannot be fetched
        """
        now = self.clock()
        try:
            signals = self.signals_source()
        except Exception as e:
            raise MarketContextError(f"external signals unavailable: {e}") from e

        return MarketSnapshot(
            timestamp=now,
            demand_index=self.demand_index(now),
            supply_index=self.supply_index(active_providers),
            fuel_price=signals.fuel_price,
            traffic_index=min(1.0, max(0.0, signals.traffic_index)),
            weather_alert_count=len(signals.weather_alerts),
        )
