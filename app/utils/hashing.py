"""Hashing utilities for job identity.

This module provides deterministic hashing functions for:
- job_key: unique identity from source + provider job id, or from a fingerprint
- fingerprint: content identity from title + company + location when the
  provider has no stable id
"""

import hashlib
import re
from typing import Optional

FINGERPRINT_KEY_PREFIX = "fp"


def compute_job_key(source: str, source_job_id: str) -> str:
    """Compute the identity key for a job with a provider-assigned id.

    The key is a SHA256 hash of ``source:source_job_id``. The source is
    case-folded; the provider id is kept verbatim because some providers use
    case-sensitive ids.

    Args:
        source: Provider name (e.g. "jsearch")
        source_job_id: Job id assigned by the provider

    Returns:
        Hexadecimal SHA256 digest (64 characters)

    Example:
        >>> len(compute_job_key("jsearch", "abc123"))
        64
    """
    composite_key = f"{source.lower().strip()}:{source_job_id.strip()}"
    return hash_string(composite_key)


def compute_fingerprint(title: str, company: str, location: Optional[str] = None) -> str:
    """Compute a content fingerprint for jobs without a provider id.

    Title, company and location are lowercased, trimmed and whitespace-collapsed
    before hashing, so cosmetic differences between fetches collapse to the
    same fingerprint.

    Args:
        title: Job title
        company: Employer name
        location: Optional location text

    Returns:
        Hexadecimal SHA256 digest (64 characters)
    """
    composite = "\n".join(
        [
            _normalize_text(title),
            _normalize_text(company),
            _normalize_text(location) if location else "",
        ]
    )
    return hash_string(composite)


def compute_fingerprint_key(source: str, fingerprint: str) -> str:
    """Compute the identity key for a job identified only by its fingerprint.

    The prefix keeps fingerprint keys from ever colliding with id-based keys.

    Args:
        source: Provider name
        fingerprint: Value returned by compute_fingerprint()

    Returns:
        Hexadecimal SHA256 digest (64 characters)
    """
    return hash_string(f"{FINGERPRINT_KEY_PREFIX}:{source.lower().strip()}:{fingerprint}")


def _normalize_text(text: str) -> str:
    """Lowercase, trim and collapse whitespace."""
    return re.sub(r"\s+", " ", text.lower().strip())


def hash_string(value: str) -> str:
    """Compute SHA256 hash of a string value.

    Args:
        value: String to hash

    Returns:
        Hexadecimal string representation of SHA256 hash (64 characters)
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
