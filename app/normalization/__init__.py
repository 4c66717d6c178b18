"""Normalization layer: derive identity and canonical fields for provider records.

This module provides:
- JobNormalizer: converts RawJob to Job, looking up the stored job by key
- NormalizationResult: the normalized Job plus the job it replaces
- derive_job_key: id-based or fingerprint-based identity
"""

from .models import NormalizationResult
from .service import JobNormalizer, derive_job_key

__all__ = [
    "JobNormalizer",
    "NormalizationResult",
    "derive_job_key",
]
