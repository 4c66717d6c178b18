"""Control operations for recommended pulls, returned as status code + body."""

from datetime import timedelta
from typing import Optional

from app.logging import get_logger
from app.persistence.database import get_session
from app.persistence.exceptions import PersistenceError
from app.persistence.repositories import JobRepository, MatchRepository, RunRepository
from app.pipeline.exceptions import NoQueriesConfiguredError, RunAlreadyActiveError
from app.pipeline.registry import RunRegistry
from app.pipeline.runner import RecommendedRunner
from app.utils.timestamps import utc_now

from .models import ControlResponse, error_response, match_to_body, run_to_body

logger = get_logger(__name__, component="control")

CLEAR_WHILE_RUNNING = "Cannot clear while a recommended pull is running"


class ControlService:
    """
    Start, observe, cancel and clear recommended pulls.

    Each method mirrors one operator action and maps domain errors to the
    status code an HTTP route would return.
    """

    def __init__(self, runner: RecommendedRunner, registry: Optional[RunRegistry] = None):
        self.runner = runner
        self.registry = registry or RunRegistry()

    def run_recommended(self) -> ControlResponse:
        """Start a pull: 202 on success, 409 if one is running, 400 without queries."""
        try:
            run_id = self.runner.start_pull()
        except RunAlreadyActiveError as e:
            return error_response(409, str(e))
        except NoQueriesConfiguredError as e:
            return error_response(400, str(e))
        except PersistenceError as e:
            logger.error(
                f"Failed to start recommended pull: {e}",
                extra={"event": "control.run.start_failed", "error_type": type(e).__name__},
                exc_info=True,
            )
            return error_response(500, str(e))

        return ControlResponse(202, {"started": True, "runId": run_id})

    def recommended_status(self) -> ControlResponse:
        latest = self.registry.latest_status()
        if latest is None:
            return ControlResponse(200, {"status": "none"})
        return ControlResponse(200, run_to_body(latest))

    def cancel_recommended(self, run_id: Optional[int] = None) -> ControlResponse:
        """Request cancellation of a run (the latest one when run_id is None)."""
        if run_id is None:
            latest = self.registry.latest_status()
            if latest is None:
                return error_response(404, "No recommended run to cancel")
            run_id = latest.id

        if not self.runner.cancel(run_id):
            return error_response(404, f"Run {run_id} not found")
        return ControlResponse(200, {"cancelled": True, "runId": run_id})

    def recommended_matches(
        self, run_id: Optional[int] = None, include_ignored: bool = False
    ) -> ControlResponse:
        if run_id is None:
            latest = self.registry.latest_status()
            run_id = latest.id if latest else None
        elif self.registry.get_run(run_id) is None:
            return error_response(404, f"Run {run_id} not found")

        matches = (
            self.registry.list_matches(run_id, include_ignored=include_ignored)
            if run_id is not None
            else []
        )
        return ControlResponse(
            200, {"runId": run_id, "matches": [match_to_body(m) for m in matches]}
        )

    def clear_recommended(self) -> ControlResponse:
        """Delete every match and run; refused while a pull is running."""
        if self._pull_in_progress():
            return error_response(409, CLEAR_WHILE_RUNNING)

        with get_session() as session:
            matches = MatchRepository(session).delete_all()
            runs = RunRepository(session).delete_all()

        logger.info(
            "Recommended data cleared",
            extra={"event": "control.recommended.cleared", "matches": matches, "runs": runs},
        )
        return ControlResponse(200, {"success": True})

    def clear_jobs(self) -> ControlResponse:
        """Delete every job together with all matches and runs."""
        if self._pull_in_progress():
            return error_response(409, CLEAR_WHILE_RUNNING)

        with get_session() as session:
            MatchRepository(session).delete_all()
            RunRepository(session).delete_all()
            jobs = JobRepository(session).delete_all()

        logger.info(
            "Jobs cleared",
            extra={"event": "control.jobs.cleared", "jobs": jobs},
        )
        return ControlResponse(200, {"success": True})

    def _pull_in_progress(self) -> bool:
        if self.runner.is_active():
            return True
        cutoff = utc_now() - timedelta(
            seconds=self.runner.app_config.recommended.staleness_window_seconds
        )
        with get_session() as session:
            return RunRepository(session).find_active(cutoff) is not None
