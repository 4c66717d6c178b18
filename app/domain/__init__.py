"""Domain models for the job recommender."""

from .models import (
    DATE_POSTED_VALUES,
    Job,
    PatternEffect,
    RawJob,
    RecommendedMatch,
    RecommendedQuery,
    RecommendedRun,
    RunParameters,
    RunStatus,
    ScoringPattern,
    Settings,
)

__all__ = [
    "Job",
    "RawJob",
    "RecommendedQuery",
    "ScoringPattern",
    "PatternEffect",
    "RunParameters",
    "RunStatus",
    "RecommendedRun",
    "RecommendedMatch",
    "Settings",
    "DATE_POSTED_VALUES",
]
