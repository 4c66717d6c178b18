"""Job normalization service for converting RawJob to Job domain model.

This module implements the normalization logic that:
1. Derives identity: job_key from (source, source_job_id) when the provider
   supplies an id, otherwise from the title/company/location fingerprint
2. Sanitizes text fields
3. Tracks timestamps (discovered_at inherited, last_seen_at set to fetch time)
4. Carries over operator state (the ignored flag) from the stored job
"""

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from app.domain.models import Job, RawJob
from app.logging import get_logger
from app.utils.hashing import compute_fingerprint, compute_fingerprint_key, compute_job_key
from app.utils.timestamps import ensure_utc, utc_now

from .models import NormalizationResult

if TYPE_CHECKING:
    from app.persistence.repositories import JobRepository

logger = get_logger(__name__, component="normalization")


def derive_job_key(raw_job: RawJob, fingerprint: str) -> str:
    """Return the identity key for a raw job.

    Args:
        raw_job: Provider record
        fingerprint: Value of compute_fingerprint() for the record

    Returns:
        Id-based key when the provider supplied an id, fingerprint key otherwise
    """
    if raw_job.source_job_id:
        return compute_job_key(raw_job.source, raw_job.source_job_id)
    return compute_fingerprint_key(raw_job.source, fingerprint)


class JobNormalizer:
    """Normalizes RawJob instances into canonical Job domain models."""

    def __init__(
        self,
        job_repo: "JobRepository",
        seen_at: Optional[datetime] = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize JobNormalizer.

        Args:
            job_repo: JobRepository used to look up stored jobs by key
            seen_at: Fetch timestamp (UTC) applied to every job. Defaults to utc_now()
            logger_instance: Logger instance (defaults to module logger)
        """
        self.job_repo = job_repo
        self.seen_at = ensure_utc(seen_at or utc_now())
        self.logger = logger_instance or logger

    def normalize(self, raw_job: RawJob) -> NormalizationResult:
        """Normalize a single RawJob into a Job.

        Args:
            raw_job: Record returned by a provider

        Returns:
            NormalizationResult with the Job and the stored job it replaces

        Raises:
            Any exceptions from job_repo lookup are propagated
        """
        title = self._sanitize_text(raw_job.title)
        company = self._sanitize_text(raw_job.company)
        location = self._sanitize_text(raw_job.location) or None
        description = (raw_job.description or "").strip()

        fingerprint = compute_fingerprint(title, company, location)
        job_key = derive_job_key(raw_job, fingerprint)

        existing_job = self.job_repo.get_by_key(job_key)

        if not description:
            self.logger.debug(
                "Job has no description",
                extra={"event": "normalization.job.missing_description", "job_key": job_key},
            )

        job = Job(
            id=existing_job.id if existing_job else None,
            job_key=job_key,
            source=raw_job.source.lower(),
            source_job_id=raw_job.source_job_id,
            fingerprint=fingerprint,
            title=title,
            company=company,
            location=location,
            description=description,
            apply_url=raw_job.apply_url,
            is_remote=raw_job.is_remote,
            employment_type=raw_job.employment_type,
            salary_min=raw_job.salary_min,
            salary_max=raw_job.salary_max,
            salary_period=raw_job.salary_period,
            posted_at=raw_job.posted_at,
            discovered_at=existing_job.discovered_at if existing_job else self.seen_at,
            last_seen_at=self.seen_at,
            ignored=existing_job.ignored if existing_job else False,
        )

        return NormalizationResult(job=job, existing_job=existing_job, raw_job=raw_job)

    @staticmethod
    def _sanitize_text(text: Optional[str]) -> str:
        """Trim and collapse whitespace; None becomes an empty string."""
        if not text:
            return ""
        return re.sub(r"\s+", " ", text.strip())
