"""Job store: dedupe and persist provider records.

Identity is derived by the normalization layer; this module decides between
insert and refresh and reports which one happened.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.domain.models import RawJob
from app.logging import get_logger
from app.normalization.service import JobNormalizer

from .repositories import JobRepository

logger = get_logger(__name__, component="job_store")


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of storing one provider record."""

    job_id: int
    is_new: bool


class JobStore:
    """Upserts raw jobs within the caller's session.

    Example:
        >>> with get_session() as session:
        ...     result = JobStore(session).upsert(raw_job)
    """

    def __init__(self, session: Session, seen_at: Optional[datetime] = None):
        self.repository = JobRepository(session)
        self.normalizer = JobNormalizer(self.repository, seen_at=seen_at)

    def upsert(self, raw_job: RawJob) -> UpsertResult:
        """Insert the job or refresh the stored one with the same identity.

        Raises:
            DataIntegrityError: If a concurrent writer inserted the same job_key
            PersistenceError: On other storage failures
        """
        normalized = self.normalizer.normalize(raw_job)
        job, inserted = self.repository.upsert(normalized.job)

        logger.debug(
            "Stored job",
            extra={
                "event": "job_store.job.upserted",
                "job_key": job.job_key,
                "job_id": job.id,
                "is_new": inserted,
                "by_fingerprint": normalized.identified_by_fingerprint,
            },
        )
        return UpsertResult(job_id=job.id, is_new=inserted)
