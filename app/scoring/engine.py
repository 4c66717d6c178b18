"""Pattern-based scoring of job postings.

The rule engine evaluates an ordered list of ScoringPattern rules against the
concatenated title and description of a job:

1. Disabled patterns and patterns whose regex does not compile are skipped
2. Matches are counted case-insensitively
3. A matching disqualifying pattern latches the disqualified flag and
   contributes no weight
4. Other matching patterns contribute weight x (1 if count_once else matches),
   added or subtracted according to their effect
5. The final score is floored at zero; the disqualified flag is reported
   independently of the score

Evaluation has no hidden state: the same job and the same pattern list always
produce the same ScoreResult.
"""

import re
from typing import Iterable, List, Optional, Pattern, Sequence

from app.domain.models import Job, ScoringPattern
from app.logging import get_logger

from .models import ScoredJob, ScoreResult

logger = get_logger(__name__, component="scoring")


def _compile(pattern: ScoringPattern) -> Optional[Pattern[str]]:
    """Compile a pattern case-insensitively, returning None when malformed."""
    try:
        return re.compile(pattern.pattern, re.IGNORECASE)
    except re.error as e:
        logger.debug(
            "Skipping malformed scoring pattern",
            extra={
                "event": "scoring.pattern.invalid",
                "pattern_id": pattern.id,
                "pattern": pattern.pattern,
                "error": str(e),
            },
        )
        return None


def _count_matches(regex: Pattern[str], text: str) -> int:
    return sum(1 for _ in regex.finditer(text))


def score_job(job: Job, patterns: Sequence[ScoringPattern]) -> ScoreResult:
    """Score a single job against an ordered pattern set.

    Args:
        job: Job to evaluate (title and description are used)
        patterns: Patterns in evaluation order

    Returns:
        ScoreResult with the floored score and the disqualified flag
    """
    text = job.scoring_text
    total = 0.0
    disqualified = False
    matched: List[int] = []

    for pattern in patterns:
        if not pattern.enabled:
            continue

        regex = _compile(pattern)
        if regex is None:
            continue

        count = _count_matches(regex, text)
        if count == 0:
            continue

        if pattern.id is not None:
            matched.append(pattern.id)

        if pattern.disqualify:
            disqualified = True
            continue

        multiplier = 1 if pattern.count_once else count
        total += pattern.sign * pattern.weight * multiplier

    return ScoreResult(
        score=max(total, 0.0),
        disqualified=disqualified,
        matched_pattern_ids=tuple(matched),
    )


def rank_retained(
    jobs: Iterable[Job], patterns: Sequence[ScoringPattern], min_score: float
) -> List[ScoredJob]:
    """Score jobs and keep those that pass the threshold and are not disqualified.

    Args:
        jobs: Persisted jobs (must have ids)
        patterns: Patterns in evaluation order
        min_score: Inclusive minimum score

    Returns:
        ScoredJob list sorted by score descending, job id ascending on ties
    """
    retained = []
    for job in jobs:
        result = score_job(job, patterns)
        if result.is_retained(min_score):
            retained.append(ScoredJob(job_id=job.id, score=result.score))

    retained.sort(key=lambda s: (-s.score, s.job_id))
    return retained


def find_invalid_patterns(patterns: Iterable[ScoringPattern]) -> List[ScoringPattern]:
    """Return the patterns whose regular expression does not compile."""
    invalid = []
    for pattern in patterns:
        try:
            re.compile(pattern.pattern)
        except re.error:
            invalid.append(pattern)
    return invalid
