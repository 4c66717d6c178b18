"""Result types produced by the rule engine."""

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of evaluating one job against an ordered pattern set.

    Attributes:
        score: Sum of pattern contributions, floored at zero
        disqualified: True once any disqualifying pattern matched
        matched_pattern_ids: Ids of patterns with at least one match, in evaluation order
    """

    score: float
    disqualified: bool = False
    matched_pattern_ids: Tuple[int, ...] = field(default_factory=tuple)

    def is_retained(self, min_score: float) -> bool:
        """Whether the job belongs in the recommended set for this threshold."""
        return not self.disqualified and self.score >= min_score


@dataclass(frozen=True)
class ScoredJob:
    """A job id paired with its score, as written to the match table."""

    job_id: int
    score: float
