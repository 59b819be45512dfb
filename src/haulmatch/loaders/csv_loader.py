"""
CSV Loader - Seed a dispatch state from CSV exports.

Column names are matched case-insensitively against a few spellings, so
exports from different tools load without renaming. List cells are
separated by "|"; a preferred route is written "Paris>Lyon".
"""

import logging
import re
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd
from pydantic import ValidationError

from ..models import Job, Location, PreferredRoute, Provider

logger = logging.getLogger(__name__)

LIST_SEPARATOR = "|"
ROUTE_SEPARATOR = ">"

# Column name patterns for fuzzy matching. Order matters: first match wins.
JOB_COLUMN_PATTERNS = {
    "id": [r"^(job[\s_-]?)?id$"],
    "reference": [r"^ref(erence)?$"],
    "pickup_city": [r"^pickup[\s_-]?city$", r"^(origin|from)[\s_-]?city$", r"^pickup$"],
    "pickup_postal_code": [r"^pickup[\s_-]?(postal|zip)([\s_-]?code)?$"],
    "pickup_lat": [r"^pickup[\s_-]?lat(itude)?$"],
    "pickup_lng": [r"^pickup[\s_-]?(lng|lon|long|longitude)$"],
    "delivery_city": [r"^delivery[\s_-]?city$", r"^(destination|to)[\s_-]?city$", r"^delivery$"],
    "delivery_postal_code": [r"^delivery[\s_-]?(postal|zip)([\s_-]?code)?$"],
    "delivery_lat": [r"^delivery[\s_-]?lat(itude)?$"],
    "delivery_lng": [r"^delivery[\s_-]?(lng|lon|long|longitude)$"],
    "resource_class": [r"^resource[\s_-]?class$", r"^vehicle[\s_-]?type$", r"^class$"],
    "distance_km": [r"^distance([\s_-]?km)?$"],
    "urgent": [r"^urgent$", r"^is[\s_-]?urgent$"],
}

PROVIDER_COLUMN_PATTERNS = {
    "id": [r"^(provider[\s_-]?)?id$"],
    "name": [r"^(company[\s_-]?)?name$"],
    "status": [r"^status$"],
    "city": [r"^city$", r"^location[\s_-]?city$"],
    "lat": [r"^lat(itude)?$"],
    "lng": [r"^(lng|lon|long|longitude)$"],
    "resource_classes": [r"^resource[\s_-]?classes$", r"^vehicle[\s_-]?types$", r"^classes$"],
    "success_rate": [r"^success[\s_-]?rate$"],
    "rating": [r"^rating$", r"^reputation$"],
    "response_time_hours": [r"^response[\s_-]?time([\s_-]?hours)?$"],
    "available": [r"^available$", r"^is[\s_-]?available$"],
    "preferred_routes": [r"^preferred[\s_-]?routes$", r"^routes$"],
    "risk_score": [r"^risk([\s_-]?score)?$"],
}


def detect_columns(df: pd.DataFrame, patterns: dict[str, list[str]]) -> dict[str, str]:
    """
    Map field names to DataFrame columns using the patterns.

    Args:
        df: DataFrame with columns to analyze
        patterns: Field name -> regex list

    Returns:
        Dict of field name -> original column name (unmatched fields omitted)
    """
    mapping: dict[str, str] = {}
    columns_lower = {str(col).lower().strip(): col for col in df.columns}

    for field_name, field_patterns in patterns.items():
        for pattern in field_patterns:
            found = next(
                (orig for low, orig in columns_lower.items() if re.search(pattern, low)),
                None,
            )
            if found is not None:
                mapping[field_name] = found
                break

    return mapping


def _clean(value: Any) -> Optional[Any]:
    """Blank and NaN cells become None, strings are stripped."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if pd.isna(value):
        return None
    return value


def _to_float(value: Any) -> Optional[float]:
    value = _clean(value)
    return None if value is None else float(value)


def _to_bool(value: Any) -> Optional[bool]:
    value = _clean(value)
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("1", "true", "yes", "y", "oui")


def _to_list(value: Any) -> list[str]:
    value = _clean(value)
    if value is None:
        return []
    return [part.strip() for part in str(value).split(LIST_SEPARATOR) if part.strip()]


def _to_routes(value: Any) -> list[PreferredRoute]:
    routes = []
    for item in _to_list(value):
        if ROUTE_SEPARATOR not in item:
            logger.warning("Skipping malformed route %r (expected 'From>To')", item)
            continue
        from_city, to_city = (s.strip() for s in item.split(ROUTE_SEPARATOR, 1))
        routes.append(PreferredRoute(from_city=from_city, to_city=to_city))
    return routes


def _getter(row: pd.Series, mapping: dict[str, str]):
    def get(field_name: str) -> Any:
        column = mapping.get(field_name)
        return None if column is None else _clean(row[column])
    return get


def _job_from_row(get) -> Optional[Job]:
    pickup_city, delivery_city = get("pickup_city"), get("delivery_city")
    if not pickup_city or not delivery_city:
        return None

    fields: dict[str, Any] = {
        "pickup": Location(
            city=str(pickup_city),
            postal_code=None if get("pickup_postal_code") is None else str(get("pickup_postal_code")),
            latitude=_to_float(get("pickup_lat")),
            longitude=_to_float(get("pickup_lng")),
        ),
        "delivery": Location(
            city=str(delivery_city),
            postal_code=None if get("delivery_postal_code") is None else str(get("delivery_postal_code")),
            latitude=_to_float(get("delivery_lat")),
            longitude=_to_float(get("delivery_lng")),
        ),
        "resource_class": get("resource_class"),
        "distance_km": _to_float(get("distance_km")),
        "urgent": bool(_to_bool(get("urgent"))),
        "reference": get("reference"),
    }
    if get("id") is not None:
        fields["id"] = str(get("id"))
    return Job(**fields)


def _provider_from_row(get) -> Provider:
    lat, lng = _to_float(get("lat")), _to_float(get("lng"))
    city = get("city")
    location = None
    if city is not None or (lat is not None and lng is not None):
        location = Location(city=str(city or ""), latitude=lat, longitude=lng)

    fields: dict[str, Any] = {
        "name": str(get("name") or ""),
        "location": location,
        "resource_classes": _to_list(get("resource_classes")),
        "success_rate": _to_float(get("success_rate")),
        "rating": _to_float(get("rating")),
        "response_time_hours": _to_float(get("response_time_hours")),
        "available": _to_bool(get("available")),
        "preferred_routes": _to_routes(get("preferred_routes")),
        "risk_score": _to_float(get("risk_score")),
    }
    if get("id") is not None:
        fields["id"] = str(get("id"))
    if get("status") is not None:
        fields["status"] = str(get("status")).lower()
    return Provider(**fields)


def _keep_last(records: dict, record, kind: str, index) -> None:
    if record.id in records:
        logger.warning("Row %s: duplicate %s id %s replaces the earlier row", index, kind, record.id)
        del records[record.id]
    records[record.id] = record


def jobs_from_frame(df: pd.DataFrame) -> list[Job]:
    """
    Build jobs from a DataFrame.

    Rows without pickup or delivery city, or with values that fail
    validation, are skipped with a warning. A repeated id keeps the last row.
    """
    mapping = detect_columns(df, JOB_COLUMN_PATTERNS)
    jobs: dict[str, Job] = {}

    for index, row in df.iterrows():
        try:
            job = _job_from_row(_getter(row, mapping))
        except (ValueError, ValidationError) as e:
            logger.warning("Row %s skipped: %s", index, e)
            continue
        if job is None:
            logger.warning("Row %s skipped: missing pickup or delivery city", index)
            continue
        _keep_last(jobs, job, "job", index)

    return list(jobs.values())


def providers_from_frame(df: pd.DataFrame) -> list[Provider]:
    """
    Build providers from a DataFrame.

    Rows that fail validation are skipped with a warning. A repeated id
    keeps the last row.
    """
    mapping = detect_columns(df, PROVIDER_COLUMN_PATTERNS)
    providers: dict[str, Provider] = {}

    for index, row in df.iterrows():
        try:
            provider = _provider_from_row(_getter(row, mapping))
        except (ValueError, ValidationError) as e:
            logger.warning("Row %s skipped: %s", index, e)
            continue
        _keep_last(providers, provider, "provider", index)

    return list(providers.values())


def load_jobs(path: Union[str, Path]) -> list[Job]:
    """Read jobs from a CSV file."""
    df = pd.read_csv(path, dtype=str, keep_default_na=True)
    jobs = jobs_from_frame(df)
    logger.info("Loaded %d job(s) from %s", len(jobs), path)
    return jobs


def load_providers(path: Union[str, Path]) -> list[Provider]:
    """Read providers from a CSV file."""
    df = pd.read_csv(path, dtype=str, keep_default_na=True)
    providers = providers_from_frame(df)
    logger.info("Loaded %d provider(s) from %s", len(providers), path)
    return providers
