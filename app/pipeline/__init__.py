"""Recommended pull orchestration: run coordinator, run registry and result models."""

from .exceptions import NoQueriesConfiguredError, PipelineError, RunAlreadyActiveError
from .models import PipelineRunResult, QueryRunStats, RunCounters
from .registry import RunRegistry
from .runner import RecommendedRunner

__all__ = [
    "RecommendedRunner",
    "RunRegistry",
    "PipelineRunResult",
    "QueryRunStats",
    "RunCounters",
    "PipelineError",
    "NoQueriesConfiguredError",
    "RunAlreadyActiveError",
]
