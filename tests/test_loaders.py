"""CSV Loader Tests"""

import pandas as pd
import pytest

from haulmatch.loaders import detect_columns, jobs_from_frame, load_jobs, load_providers, providers_from_frame
from haulmatch.loaders.csv_loader import JOB_COLUMN_PATTERNS
from haulmatch.models import ProviderStatus

JOBS_CSV = """Job ID,Pickup City,Pickup Lat,Pickup Lng,Delivery City,Distance KM,Resource Class,Urgent
J1,Paris,48.8566,2.3522,Lyon,465,PL,yes
J2,Lyon,,,Paris,,,
,,,,Marseille,,,
"""

PROVIDERS_CSV = """id,name,status,city,latitude,longitude,resource_classes,success_rate,rating,available,preferred_routes,risk_score
P1,Transports Dupont,Active,Paris,48.85,2.35,PL|SPL,0.9,4.5,true,Paris>Lyon|Lyon>Marseille,0.2
P2,Petit Fret,,Lyon,,,VL,,,,,
"""


@pytest.fixture
def jobs_file(tmp_path):
    path = tmp_path / "jobs.csv"
    path.write_text(JOBS_CSV)
    return path


@pytest.fixture
def providers_file(tmp_path):
    path = tmp_path / "providers.csv"
    path.write_text(PROVIDERS_CSV)
    return path


class TestColumnDetection:
    """Column names match regardless of case and separators"""

    def test_spaced_headers(self):
        df = pd.DataFrame(columns=["Job ID", "Pickup City", "Delivery City", "Resource Class"])
        mapping = detect_columns(df, JOB_COLUMN_PATTERNS)

        assert mapping["id"] == "Job ID"
        assert mapping["pickup_city"] == "Pickup City"
        assert mapping["delivery_city"] == "Delivery City"
        assert mapping["resource_class"] == "Resource Class"

    def test_upper_snake_headers(self):
        df = pd.DataFrame(columns=["PICKUP_CITY", "DELIVERY_CITY", "VEHICLE_TYPE"])
        mapping = detect_columns(df, JOB_COLUMN_PATTERNS)

        assert mapping["pickup_city"] == "PICKUP_CITY"
        assert mapping["resource_class"] == "VEHICLE_TYPE"

    def test_unknown_columns_ignored(self):
        df = pd.DataFrame(columns=["pickup_city", "delivery_city", "notes"])
        assert "notes" not in detect_columns(df, JOB_COLUMN_PATTERNS).values()


class TestLoadJobs:
    def test_rows_parsed(self, jobs_file):
        jobs = load_jobs(jobs_file)

        assert [j.id for j in jobs] == ["J1", "J2"]
        first = jobs[0]
        assert first.pickup.city == "Paris"
        assert first.pickup.latitude == pytest.approx(48.8566)
        assert first.delivery.city == "Lyon"
        assert first.distance_km == 465
        assert first.resource_class == "PL"
        assert first.urgent is True

    def test_blank_cells_become_none(self, jobs_file):
        second = load_jobs(jobs_file)[1]

        assert second.distance_km is None
        assert second.resource_class is None
        assert second.urgent is False
        assert second.pickup.latitude is None
        assert second.pickup.has_coordinates is False

    def test_row_without_pickup_skipped(self, jobs_file):
        assert len(load_jobs(jobs_file)) == 2

    def test_id_generated_when_missing(self):
        df = pd.DataFrame({"pickup_city": ["Paris"], "delivery_city": ["Lille"]})
        jobs = jobs_from_frame(df)

        assert len(jobs) == 1
        assert jobs[0].id


class TestLoadProviders:
    def test_rows_parsed(self, providers_file):
        first = load_providers(providers_file)[0]

        assert first.id == "P1"
        assert first.name == "Transports Dupont"
        assert first.status == ProviderStatus.ACTIVE
        assert first.location.city == "Paris"
        assert first.location.has_coordinates
        assert first.resource_classes == ["PL", "SPL"]
        assert first.success_rate == pytest.approx(0.9)
        assert first.rating == pytest.approx(4.5)
        assert first.available is True
        assert first.risk_score == pytest.approx(0.2)

    def test_routes_parsed(self, providers_file):
        routes = load_providers(providers_file)[0].preferred_routes

        assert [(r.from_city, r.to_city) for r in routes] == [("Paris", "Lyon"), ("Lyon", "Marseille")]

    def test_sparse_row(self, providers_file):
        second = load_providers(providers_file)[1]

        assert second.status == ProviderStatus.ACTIVE
        assert second.location.city == "Lyon"
        assert second.location.has_coordinates is False
        assert second.resource_classes == ["VL"]
        assert second.success_rate is None
        assert second.rating is None
        assert second.available is None
        assert second.preferred_routes == []
        assert second.risk_score is None


class TestBadRows:
    """Rows that fail conversion are skipped, the rest still load"""

    def test_unknown_status_skipped(self):
        df = pd.DataFrame({"id": ["p1", "p2"], "status": ["active", "busy"]})
        assert [p.id for p in providers_from_frame(df)] == ["p1"]

    def test_non_numeric_rating_skipped(self):
        df = pd.DataFrame({"id": ["p1", "p2"], "rating": ["4.5", "great"]})
        assert [p.id for p in providers_from_frame(df)] == ["p1"]

    def test_zero_distance_skipped(self):
        df = pd.DataFrame({
            "id": ["J1", "J2"],
            "pickup_city": ["Paris", "Paris"],
            "delivery_city": ["Lyon", "Lille"],
            "distance_km": ["0", "225"],
        })
        assert [j.id for j in jobs_from_frame(df)] == ["J2"]

    def test_bad_row_in_file(self, tmp_path):
        path = tmp_path / "providers.csv"
        path.write_text("id,status,city\nP1,active,Paris\nP2,busy,Lyon\nP3,qualified,Lille\n")

        assert [p.id for p in load_providers(path)] == ["P1", "P3"]


class TestDuplicateIds:
    """A repeated id keeps the last row"""

    def test_provider_last_row_wins(self):
        df = pd.DataFrame({"id": ["x", "y", "x"], "city": ["Paris", "Lyon", "Marseille"]})
        providers = providers_from_frame(df)

        assert sorted(p.id for p in providers) == ["x", "y"]
        assert next(p for p in providers if p.id == "x").location.city == "Marseille"

    def test_job_last_row_wins(self):
        df = pd.DataFrame({
            "id": ["J1", "J1"],
            "pickup_city": ["Paris", "Paris"],
            "delivery_city": ["Lyon", "Lille"],
        })
        jobs = jobs_from_frame(df)

        assert len(jobs) == 1
        assert jobs[0].delivery.city == "Lille"
