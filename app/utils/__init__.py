"""Utility functions for hashing and time handling."""

from .hashing import compute_fingerprint, compute_fingerprint_key, compute_job_key, hash_string
from .timestamps import (
    ensure_utc,
    format_db_timestamp,
    format_timestamp_for_log,
    parse_db_timestamp,
    parse_iso_datetime,
    utc_now,
)

__all__ = [
    # Hashing
    "compute_job_key",
    "compute_fingerprint",
    "compute_fingerprint_key",
    "hash_string",
    # Timestamps
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "format_db_timestamp",
    "parse_db_timestamp",
    "format_timestamp_for_log",
]
