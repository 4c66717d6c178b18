"""Data models for the normalization layer."""

from dataclasses import dataclass
from typing import Optional

from app.domain.models import Job, RawJob


@dataclass
class NormalizationResult:
    """Result of normalizing a single RawJob.

    Attributes:
        job: Normalized Job ready for persistence (id carried over when known)
        existing_job: Stored job with the same job_key, None if new
        raw_job: Original provider record (kept for debugging)
    """

    job: Job
    existing_job: Optional[Job]
    raw_job: RawJob

    @property
    def is_new(self) -> bool:
        """Whether no job with this identity was stored before."""
        return self.existing_job is None

    @property
    def identified_by_fingerprint(self) -> bool:
        """Whether identity fell back to the content fingerprint."""
        return self.job.source_job_id is None
