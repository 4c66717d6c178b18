"""Read side of recommended pulls, used by pollers.

Each call opens its own session, so progress committed by a running
background pull is visible between queries.
"""

from typing import List, Optional

from app.domain.models import RecommendedMatch, RecommendedRun
from app.persistence.database import get_session
from app.persistence.repositories import MatchRepository, RunRepository


class RunRegistry:
    """Query runs and their ranked matches."""

    def latest_status(self) -> Optional[RecommendedRun]:
        """Most recently started run, or None when no run exists."""
        with get_session() as session:
            return RunRepository(session).get_latest()

    def get_run(self, run_id: int) -> Optional[RecommendedRun]:
        with get_session() as session:
            return RunRepository(session).get(run_id)

    def list_matches(
        self, run_id: Optional[int] = None, include_ignored: bool = False
    ) -> List[RecommendedMatch]:
        """
        Ranked matches of a run (score descending, job id ascending on ties).

        Args:
            run_id: Run to list; defaults to the latest run
            include_ignored: Include jobs the operator marked as ignored

        Returns:
            Matches with their jobs attached; empty when there is no run
        """
        with get_session() as session:
            if run_id is None:
                latest = RunRepository(session).get_latest()
                if latest is None:
                    return []
                run_id = latest.id
            return MatchRepository(session).list_for_run(run_id, include_ignored=include_ignored)
