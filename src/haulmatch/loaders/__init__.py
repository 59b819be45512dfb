"""Data loaders for the haulmatch dispatch core."""

from .csv_loader import (
    detect_columns,
    jobs_from_frame,
    load_jobs,
    load_providers,
    providers_from_frame,
)

__all__ = [
    "detect_columns",
    "jobs_from_frame",
    "load_jobs",
    "load_providers",
    "providers_from_frame",
]
