"""Response and input models for the control surface."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.domain.models import (
    DATE_POSTED_VALUES,
    Job,
    PatternEffect,
    RecommendedMatch,
    RecommendedRun,
)
from app.utils.timestamps import format_timestamp_for_log


@dataclass
class ControlResponse:
    """Status code plus JSON-serializable body, the shape an HTTP route returns."""

    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def error_response(status_code: int, message: str) -> ControlResponse:
    return ControlResponse(status_code, {"error": message})


def run_to_body(run: RecommendedRun) -> Dict[str, Any]:
    """Serialize a run the way status pollers consume it (camelCase keys)."""
    return {
        "status": run.status.value,
        "runId": run.id,
        "runAt": format_timestamp_for_log(run.run_at),
        "finishedAt": format_timestamp_for_log(run.finished_at) or None,
        "totalFetched": run.total_fetched,
        "newJobs": run.new_jobs,
        "duplicates": run.duplicates,
        "queryErrors": run.query_errors,
        "errorMessage": run.error_message,
        "lastQueryError": run.last_query_error,
        "cancelRequested": run.cancel_requested,
    }


def job_to_body(job: Job) -> Dict[str, Any]:
    return {
        "id": job.id,
        "title": job.title,
        "company": job.company,
        "location": job.location,
        "isRemote": job.is_remote,
        "employmentType": job.employment_type,
        "applyUrl": job.apply_url,
        "postedAt": format_timestamp_for_log(job.posted_at) or None,
        "ignored": job.ignored,
    }


def match_to_body(match: RecommendedMatch) -> Dict[str, Any]:
    body: Dict[str, Any] = {"jobId": match.job_id, "score": match.score}
    if match.job is not None:
        body["job"] = job_to_body(match.job)
    return body


class _CamelInput(BaseModel):
    """Accepts snake_case or camelCase keys; unknown keys are rejected."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )


class QueryInput(_CamelInput):
    """Fields of a recommended query, as accepted on create."""

    query: str
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

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("query is required and must be a non-empty string")
        return v.strip()

    @field_validator("date_posted")
    @classmethod
    def date_posted_allowed(cls, v: str) -> str:
        if v not in DATE_POSTED_VALUES:
            raise ValueError(f"datePosted must be one of: {', '.join(DATE_POSTED_VALUES)}")
        return v


class QueryUpdate(QueryInput):
    """Partial update: only fields that are set are applied."""

    query: Optional[str] = None
    page: Optional[int] = Field(None, ge=1, le=50)
    num_pages: Optional[int] = Field(None, ge=1, le=50)
    country: Optional[str] = None
    date_posted: Optional[str] = None
    work_from_home: Optional[bool] = None
    enabled: Optional[bool] = None

    @field_validator("page", "num_pages", "country", "work_from_home", "enabled")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("cannot be null")
        return v


class PatternInput(_CamelInput):
    """Fields of a scoring pattern, as accepted on create."""

    pattern: str
    weight: float = Field(10.0, gt=0)
    effect: PatternEffect = PatternEffect.ADD
    count_once: bool = False
    disqualify: bool = False
    enabled: bool = True

    @field_validator("pattern")
    @classmethod
    def pattern_compiles(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("pattern is required and must be a non-empty string")
        try:
            re.compile(v.strip())
        except re.error as e:
            raise ValueError(f"pattern must be a valid regular expression: {e}") from e
        return v.strip()


class PatternUpdate(PatternInput):
    """Partial update: only fields that are set are applied."""

    pattern: Optional[str] = None
    weight: Optional[float] = Field(None, gt=0)
    effect: Optional[PatternEffect] = None
    count_once: Optional[bool] = None
    disqualify: Optional[bool] = None
    enabled: Optional[bool] = None

    @field_validator("weight", "effect", "count_once", "disqualify", "enabled")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("cannot be null")
        return v


class SettingsUpdate(_CamelInput):
    """Editable settings; unset fields are left alone."""

    min_recommended_score: Optional[float] = Field(None, ge=0)
    scoring_model: Optional[str] = None
    recommended_num_pages: Optional[int] = Field(None, ge=1, le=50)

    @field_validator("recommended_num_pages")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("cannot be null")
        return v
