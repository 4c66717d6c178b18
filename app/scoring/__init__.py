"""Rule engine for scoring jobs against user-defined patterns.

This module provides:
- score_job: pure function mapping a job + patterns to a ScoreResult
- rank_retained: score a batch and keep the threshold-passing jobs, best first
- find_invalid_patterns: patterns whose regular expression does not compile
"""

from .engine import find_invalid_patterns, rank_retained, score_job
from .models import ScoredJob, ScoreResult

__all__ = [
    "score_job",
    "rank_retained",
    "find_invalid_patterns",
    "ScoreResult",
    "ScoredJob",
]
