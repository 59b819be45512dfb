"""Shared builders for dispatch core tests."""

import pytest

from haulmatch.models import Job, Location, MarketSnapshot, Provider

PARIS = Location(city="Paris", latitude=48.8566, longitude=2.3522)
LYON = Location(city="Lyon", latitude=45.7640, longitude=4.8357)
MARSEILLE = Location(city="Marseille", latitude=43.2965, longitude=5.3698)


def make_job(**overrides) -> Job:
    fields = {
        "pickup": PARIS,
        "delivery": LYON,
        "distance_km": 465,
        "resource_class": "PL",
    }
    fields.update(overrides)
    return Job(**fields)


def make_provider(**overrides) -> Provider:
    """A provider that scores well against make_job()."""
    fields = {
        "name": "Transports Dupont",
        "location": PARIS,
        "resource_classes": ["PL"],
        "success_rate": 0.9,
        "rating": 5,
        "available": True,
    }
    fields.update(overrides)
    return Provider(**fields)


@pytest.fixture
def neutral_market() -> MarketSnapshot:
    """Every pricing adjustment factor is 1.0 under this snapshot."""
    return MarketSnapshot(
        demand_index=0.5,
        supply_index=0.5,
        fuel_price=1.80,
        traffic_index=0.0,
        weather_alert_count=0,
    )
