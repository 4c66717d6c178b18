"""Data models for recommended pull execution tracking and reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Set

from app.domain.models import RunStatus
from app.persistence.job_store import UpsertResult


@dataclass
class RunCounters:
    """
    Running totals of a pull.

    Attributes:
        total_fetched: Jobs returned by the provider, duplicates included
        new_jobs: Jobs inserted for the first time
        duplicates: Jobs that were already stored (or repeated within the run)
        query_errors: Queries whose fetch failed
        last_query_error: Message of the most recent failed query
        job_ids: Distinct job ids seen in this run, in first-seen order
    """

    total_fetched: int = 0
    new_jobs: int = 0
    duplicates: int = 0
    query_errors: int = 0
    last_query_error: Optional[str] = None
    job_ids: List[int] = field(default_factory=list)
    _seen: Set[int] = field(default_factory=set, repr=False)

    def record(self, result: UpsertResult) -> None:
        self.total_fetched += 1
        if result.is_new:
            self.new_jobs += 1
        else:
            self.duplicates += 1
        self._add_job_id(result.job_id)

    def record_query_error(self, message: str) -> None:
        self.query_errors += 1
        self.last_query_error = message

    def merge(self, other: "RunCounters") -> None:
        """Fold another batch into these totals, keeping job id order."""
        self.total_fetched += other.total_fetched
        self.new_jobs += other.new_jobs
        self.duplicates += other.duplicates
        self.query_errors += other.query_errors
        if other.last_query_error is not None:
            self.last_query_error = other.last_query_error
        for job_id in other.job_ids:
            self._add_job_id(job_id)

    def _add_job_id(self, job_id: int) -> None:
        if job_id not in self._seen:
            self._seen.add(job_id)
            self.job_ids.append(job_id)


@dataclass
class QueryRunStats:
    """
    Statistics for a single query within a pull.

    Attributes:
        query_id: Id of the saved query
        query_text: Free-text search of the query
        fetched_count: Jobs returned by the provider
        new_count: Jobs inserted for the first time
        duplicate_count: Jobs already stored
        matched_count: Retained matches after this query (whole run so far)
        duration_seconds: Time spent on this query
        had_errors: Whether the fetch failed
        error_message: Provider error message when the fetch failed
    """

    query_id: Optional[int]
    query_text: str
    fetched_count: int = 0
    new_count: int = 0
    duplicate_count: int = 0
    matched_count: int = 0
    duration_seconds: float = 0.0
    had_errors: bool = False
    error_message: Optional[str] = None


@dataclass
class PipelineRunResult:
    """
    Outcome of one recommended pull.

    Attributes:
        run_id: Id of the run row
        status: Terminal status written to the run row
        run_started_at: UTC timestamp when execution began
        run_finished_at: UTC timestamp when the run was finalized
        counters: Final totals
        matched_count: Number of match rows after the final reconcile
        query_stats: Per-query statistics, in execution order
        error_message: Error recorded on the run (failed runs only)
    """

    run_id: int
    status: RunStatus
    run_started_at: datetime
    run_finished_at: datetime
    counters: RunCounters = field(default_factory=RunCounters)
    matched_count: int = 0
    query_stats: List[QueryRunStats] = field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def total_duration_seconds(self) -> float:
        return (self.run_finished_at - self.run_started_at).total_seconds()
