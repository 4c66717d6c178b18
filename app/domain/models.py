"""Core domain models for jobs, recommended queries, scoring rules and runs.

This module defines the data structures used throughout the application:
- RawJob: job record as returned by a search provider, before identity is derived
- Job: persisted job posting with identity and tracking metadata
- RecommendedQuery: saved search configuration consumed by the pipeline
- ScoringPattern: relevance rule evaluated by the rule engine
- RunParameters: typed, versioned snapshot of the inputs of a run
- RecommendedRun: one execution of the recommendation pipeline
- RecommendedMatch: a (run, job) pair retained with its score
- Settings: process-wide configuration singleton
"""

from datetime import datetime
from enum import Enum
from typing import ClassVar, List, Optional

from pydantic import BaseModel, Field, field_validator

from app.utils.timestamps import ensure_utc


class RunStatus(str, Enum):
    """Lifecycle states of a recommended run."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PatternEffect(str, Enum):
    """Whether a scoring pattern adds or subtracts its weight."""

    ADD = "+"
    SUBTRACT = "-"


DATE_POSTED_VALUES = ("all", "today", "3days", "week", "month")


class RawJob(BaseModel):
    """Job record from a search provider before normalization.

    Providers return this intermediate structure. The normalization layer
    derives the identity (job_key, fingerprint) and turns it into a Job.
    """

    source: str = Field(..., description="Provider name (e.g. 'jsearch')")
    source_job_id: Optional[str] = Field(None, description="Provider-assigned job id")
    title: str = Field(..., description="Job title")
    company: str = Field(..., description="Employer name")
    location: Optional[str] = Field(None, description="Human-readable location")
    description: str = Field("", description="Full job description text")
    apply_url: Optional[str] = Field(None, description="Link to apply")
    is_remote: bool = Field(False, description="Whether the job is remote")
    employment_type: Optional[str] = Field(None, description="FULLTIME, CONTRACTOR, ...")
    salary_min: Optional[float] = Field(None, description="Lower salary bound")
    salary_max: Optional[float] = Field(None, description="Upper salary bound")
    salary_period: Optional[str] = Field(None, description="YEAR, MONTH, HOUR, ...")
    posted_at: Optional[datetime] = Field(None, description="When the job was posted (UTC)")
    publisher: Optional[str] = Field(None, description="Job board that published the job")

    @field_validator("source", "title", "company")
    @classmethod
    def strip_required(cls, v: str) -> str:
        """Strip whitespace from required string fields."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty or whitespace-only")
        return v.strip()

    @field_validator("source_job_id", "location", "apply_url", "employment_type", "salary_period", "publisher")
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        """Strip optional strings, mapping blank values to None."""
        if v is None:
            return None
        stripped = v.strip()
        return stripped if stripped else None

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: Optional[str]) -> str:
        return (v or "").strip()

    @field_validator("posted_at")
    @classmethod
    def posted_at_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class Job(BaseModel):
    """Persisted job posting.

    Identity is (source, source_job_id) when the provider supplies an id, else
    the content fingerprint. Both collapse into ``job_key``, which is unique.
    ``discovered_at`` is set once on insert and never changes.
    """

    id: Optional[int] = Field(None, description="Database id (None until persisted)")
    job_key: str = Field(..., description="Unique identity hash")
    source: str = Field(..., description="Provider name")
    source_job_id: Optional[str] = Field(None, description="Provider-assigned job id")
    fingerprint: str = Field(..., description="Hash of title + company + location")
    title: str
    company: str
    location: Optional[str] = None
    description: str = ""
    apply_url: Optional[str] = None
    is_remote: bool = False
    employment_type: Optional[str] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_period: Optional[str] = None
    posted_at: Optional[datetime] = None
    discovered_at: datetime = Field(..., description="First time the job was stored (UTC)")
    last_seen_at: datetime = Field(..., description="Last time a provider returned the job (UTC)")
    ignored: bool = False

    @field_validator("posted_at", "discovered_at", "last_seen_at")
    @classmethod
    def timestamps_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def scoring_text(self) -> str:
        """Text the rule engine evaluates patterns against."""
        return f"{self.title} {self.description}"


class RecommendedQuery(BaseModel):
    """Saved search configuration for recommended pulls."""

    id: Optional[int] = None
    query: str = Field(..., min_length=1)
    page: int = Field(1, ge=1, le=50)
    num_pages: int = Field(1, ge=1, le=50)
    country: str = "us"
    language: Optional[str] = None
    date_posted: str = "all"
    work_from_home: bool = False
    employment_types: Optional[str] = None
    job_requirements: Optional[str] = None
    radius: Optional[float] = None
    exclude_job_publishers: Optional[str] = None
    enabled: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("date_posted")
    @classmethod
    def validate_date_posted(cls, v: str) -> str:
        if v not in DATE_POSTED_VALUES:
            raise ValueError(f"date_posted must be one of: {', '.join(DATE_POSTED_VALUES)}")
        return v


class ScoringPattern(BaseModel):
    """Relevance rule evaluated against a job's title and description.

    The pattern is a regular expression matched case-insensitively. A
    disqualifying pattern vetoes the job instead of contributing its weight.
    """

    id: Optional[int] = None
    pattern: str = Field(..., min_length=1)
    weight: float = 10.0
    effect: PatternEffect = PatternEffect.ADD
    count_once: bool = False
    disqualify: bool = False
    enabled: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def sign(self) -> int:
        return 1 if self.effect == PatternEffect.ADD else -1


class RunParameters(BaseModel):
    """Snapshot of the inputs a run was started with.

    Persisted in explicit columns plus an ordered child table, so the record
    stays queryable. Bump CURRENT_VERSION when the shape changes.
    """

    CURRENT_VERSION: ClassVar[int] = 1

    version: int = CURRENT_VERSION
    query_ids: List[int] = Field(default_factory=list)
    query_texts: List[str] = Field(default_factory=list)
    pattern_count: int = 0
    min_score: float = 50.0


class RecommendedRun(BaseModel):
    """One execution of the recommendation pipeline."""

    id: int
    status: RunStatus
    run_at: datetime
    finished_at: Optional[datetime] = None
    total_fetched: int = 0
    new_jobs: int = 0
    duplicates: int = 0
    query_errors: int = 0
    error_message: Optional[str] = None
    last_query_error: Optional[str] = None
    cancel_requested: bool = False
    params: RunParameters = Field(default_factory=RunParameters)

    @field_validator("run_at", "finished_at")
    @classmethod
    def timestamps_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class RecommendedMatch(BaseModel):
    """A job retained by a run, with its computed score."""

    run_id: int
    job_id: int
    score: float
    job: Optional[Job] = None


class Settings(BaseModel):
    """Process-wide settings singleton.

    ``min_recommended_score`` is None until an operator sets it; callers fall
    back to the configured default.
    """

    id: Optional[int] = None
    min_recommended_score: Optional[float] = None
    scoring_model: Optional[str] = None
    recommended_num_pages: int = Field(1, ge=1, le=50)
    updated_at: Optional[datetime] = None

    def effective_min_score(self, default: float) -> float:
        if self.min_recommended_score is None:
            return default
        return self.min_recommended_score
