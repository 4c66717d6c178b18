"""Recommended pull orchestration.

A pull runs every enabled query against the provider, upserts the returned
jobs, scores the distinct jobs of the run against the enabled patterns and
keeps the run's match rows equal to the retained set. The caller gets the run
id as soon as the run row exists; the work happens on a background thread.
"""

import threading
import time
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

from app.config.models import AppConfig
from app.domain.models import RecommendedQuery, RunParameters, RunStatus, ScoringPattern
from app.logging import get_logger
from app.logging.context import log_context
from app.persistence.database import get_session
from app.persistence.exceptions import DataIntegrityError, PersistenceError
from app.persistence.job_store import JobStore
from app.persistence.repositories import (
    JobRepository,
    MatchRepository,
    PatternRepository,
    QueryRepository,
    RunRepository,
    SettingsRepository,
)
from app.providers.base import BaseProvider
from app.providers.exceptions import ProviderError
from app.scoring import find_invalid_patterns, rank_retained
from app.utils.timestamps import utc_now

from .exceptions import NoQueriesConfiguredError, RunAlreadyActiveError
from .models import PipelineRunResult, QueryRunStats, RunCounters

logger = get_logger(__name__, component="pipeline")


class RecommendedRunner:
    """
    Owns the lifecycle of recommended pulls.

    One pull at a time: a non-blocking in-process lock guards start_pull(), a
    partial unique index allows a single 'running' row, and runs younger than
    the staleness window block new pulls even across processes.
    """

    def __init__(self, app_config: AppConfig, provider: BaseProvider):
        """
        Initialize the runner.

        Args:
            app_config: Application configuration (staleness window, default threshold)
            provider: Job search provider used for every query
        """
        self.app_config = app_config
        self.provider = provider
        self._gate = threading.Lock()
        self._workers: Dict[int, threading.Thread] = {}

    @property
    def staleness_window(self) -> timedelta:
        return timedelta(seconds=self.app_config.recommended.staleness_window_seconds)

    def is_active(self) -> bool:
        """Whether a background pull in this process holds the gate."""
        return self._gate.locked()

    def start_pull(self) -> int:
        """
        Create a run row and start executing it in the background.

        Returns:
            Id of the new run

        Raises:
            RunAlreadyActiveError: If a pull is already running
            NoQueriesConfiguredError: If no enabled query exists
            PersistenceError: If the run could not be created
        """
        if not self._gate.acquire(blocking=False):
            logger.warning(
                "Recommended pull rejected: a pull is running in this process",
                extra={"event": "pipeline.run.rejected", "reason": "gate_held"},
            )
            raise RunAlreadyActiveError()

        try:
            run_id, queries, patterns, min_score = self._create_run()
            worker = threading.Thread(
                target=self._run_worker,
                args=(run_id, queries, patterns, min_score),
                name=f"recommended-run-{run_id}",
                daemon=True,
            )
            self._workers[run_id] = worker
            worker.start()
        except Exception:
            self._gate.release()
            raise

        return run_id

    def cancel(self, run_id: int) -> bool:
        """
        Ask a run to stop before its next query.

        Returns:
            False if the run does not exist
        """
        with get_session() as session:
            run = RunRepository(session).request_cancel(run_id)

        if run is None:
            return False

        logger.info(
            "Cancellation requested",
            extra={
                "event": "pipeline.run.cancel_requested",
                "run_id": run_id,
                "run_status": run.status.value,
            },
        )
        return True

    def wait(self, run_id: int, timeout: Optional[float] = None) -> bool:
        """
        Block until the background worker of a run finishes.

        Returns:
            True if the worker is no longer running
        """
        worker = self._workers.get(run_id)
        if worker is None:
            return True
        worker.join(timeout)
        if worker.is_alive():
            return False
        self._workers.pop(run_id, None)
        return True

    def _create_run(self):
        now = utc_now()
        cutoff = now - self.staleness_window

        with get_session() as session:
            reaped = RunRepository(session).reap_stale(cutoff)
        if reaped:
            logger.warning(
                f"Marked {len(reaped)} abandoned run(s) as failed",
                extra={"event": "pipeline.run.reaped", "run_ids": reaped},
            )

        with get_session() as session:
            runs = RunRepository(session)
            active = runs.find_active(cutoff)
            if active is not None:
                raise RunAlreadyActiveError(run_id=active.id)

            queries = QueryRepository(session).list_enabled()
            if not queries:
                raise NoQueriesConfiguredError()

            patterns = PatternRepository(session).list_enabled()
            settings = SettingsRepository(session).get_or_create()
            min_score = settings.effective_min_score(
                self.app_config.recommended.default_min_score
            )

            params = RunParameters(
                query_ids=[q.id for q in queries],
                query_texts=[q.query for q in queries],
                pattern_count=len(patterns),
                min_score=min_score,
            )
            try:
                run = runs.create(params, run_at=now)
            except DataIntegrityError as e:
                raise RunAlreadyActiveError(
                    "A recommended pull was started concurrently"
                ) from e

        logger.info(
            "Recommended run created",
            extra={
                "event": "pipeline.run.created",
                "run_id": run.id,
                "query_count": len(queries),
                "pattern_count": len(patterns),
                "min_score": min_score,
            },
        )
        return run.id, queries, patterns, min_score

    def _run_worker(
        self,
        run_id: int,
        queries: List[RecommendedQuery],
        patterns: List[ScoringPattern],
        min_score: float,
    ) -> None:
        try:
            self.execute(run_id, queries, patterns, min_score)
        except Exception as e:
            logger.error(
                f"Background pull failed: {e}",
                extra={"event": "pipeline.run.crashed", "run_id": run_id},
                exc_info=True,
            )
        finally:
            # Gate first: wait() treats a missing entry as finished
            self._gate.release()
            self._workers.pop(run_id, None)

    def execute(
        self,
        run_id: int,
        queries: Sequence[RecommendedQuery],
        patterns: Sequence[ScoringPattern],
        min_score: float,
    ) -> PipelineRunResult:
        """
        Execute a run whose row already exists in status 'running'.

        Provider failures are counted per query and never abort the run. Any
        other exception marks the run failed, persists the counters and is
        re-raised.

        Args:
            run_id: Id of the run row
            queries: Enabled queries, most recently created first
            patterns: Scoring patterns in evaluation order
            min_score: Inclusive threshold for retained matches

        Returns:
            PipelineRunResult with the terminal status and totals
        """
        started_at = utc_now()
        counters = RunCounters()
        query_stats: List[QueryRunStats] = []

        with log_context(run_id=run_id):
            logger.info(
                "Recommended run started",
                extra={
                    "event": "pipeline.run.started",
                    "query_count": len(queries),
                    "pattern_count": len(patterns),
                    "min_score": min_score,
                },
            )
            for pattern in find_invalid_patterns(patterns):
                logger.warning(
                    "Scoring pattern does not compile and will be skipped",
                    extra={
                        "event": "pipeline.pattern.invalid",
                        "pattern_id": pattern.id,
                        "pattern": pattern.pattern,
                    },
                )

            try:
                for query in queries:
                    if self._cancel_requested(run_id):
                        logger.info(
                            "Run cancelled; skipping remaining queries",
                            extra={
                                "event": "pipeline.run.cancelling",
                                "remaining_queries": len(queries) - len(query_stats),
                            },
                        )
                        break
                    query_stats.append(
                        self._process_query(run_id, query, counters, patterns, min_score)
                    )

                matched_count = self._reconcile_matches(run_id, counters, patterns, min_score)
                status, error_message = self._finalize(run_id, counters, len(queries))
            except Exception as e:
                self._mark_failed(run_id, counters, e)
                logger.error(
                    f"Recommended run failed: {e}",
                    extra={"event": "pipeline.run.failed", "error_type": type(e).__name__},
                    exc_info=True,
                )
                raise

            result = PipelineRunResult(
                run_id=run_id,
                status=status,
                run_started_at=started_at,
                run_finished_at=utc_now(),
                counters=counters,
                matched_count=matched_count,
                query_stats=query_stats,
                error_message=error_message,
            )

            logger.info(
                "Recommended run finished",
                extra={
                    "event": "pipeline.run.completed",
                    "run_status": status.value,
                    "duration_ms": int(result.total_duration_seconds * 1000),
                    "total_fetched": counters.total_fetched,
                    "new_jobs": counters.new_jobs,
                    "duplicates": counters.duplicates,
                    "query_errors": counters.query_errors,
                    "unique_jobs": len(counters.job_ids),
                    "matched": matched_count,
                },
            )
            return result

    def _process_query(
        self,
        run_id: int,
        query: RecommendedQuery,
        counters: RunCounters,
        patterns: Sequence[ScoringPattern],
        min_score: float,
    ) -> QueryRunStats:
        """Fetch, store and score one query; provider failures are recorded, not raised."""
        query_start = time.time()
        stats = QueryRunStats(query_id=query.id, query_text=query.query)

        with log_context(query_id=query.id):
            try:
                raw_jobs = self.provider.fetch(query)
            except ProviderError as e:
                counters.record_query_error(str(e))
                stats.had_errors = True
                stats.error_message = str(e)
                logger.warning(
                    f"Query failed: {e}",
                    extra={
                        "event": "pipeline.query.failed",
                        "query": query.query,
                        "error_type": type(e).__name__,
                    },
                )
                self._persist_progress(run_id, counters)
                stats.duration_seconds = time.time() - query_start
                return stats

            batch = RunCounters()
            with get_session() as session:
                store = JobStore(session)
                for raw_job in raw_jobs:
                    batch.record(store.upsert(raw_job))
            counters.merge(batch)

            with get_session() as session:
                self._write_progress(RunRepository(session), run_id, counters)
                retained = rank_retained(
                    JobRepository(session).get_many(counters.job_ids), patterns, min_score
                )
                MatchRepository(session).upsert_many(
                    run_id, [(scored.job_id, scored.score) for scored in retained]
                )

            stats.fetched_count = batch.total_fetched
            stats.new_count = batch.new_jobs
            stats.duplicate_count = batch.duplicates
            stats.matched_count = len(retained)
            stats.duration_seconds = time.time() - query_start

            logger.info(
                "Query processed",
                extra={
                    "event": "pipeline.query.completed",
                    "query": query.query,
                    "fetched": stats.fetched_count,
                    "new_jobs": stats.new_count,
                    "duplicates": stats.duplicate_count,
                    "matched": stats.matched_count,
                },
            )
        return stats

    def _reconcile_matches(
        self,
        run_id: int,
        counters: RunCounters,
        patterns: Sequence[ScoringPattern],
        min_score: float,
    ) -> int:
        """Rescore every distinct job of the run and make match rows equal the retained set."""
        with get_session() as session:
            retained = rank_retained(
                JobRepository(session).get_many(counters.job_ids), patterns, min_score
            )
            removed = MatchRepository(session).reconcile(
                run_id, [(scored.job_id, scored.score) for scored in retained]
            )

        logger.debug(
            "Matches reconciled",
            extra={
                "event": "pipeline.matches.reconciled",
                "scored": len(counters.job_ids),
                "retained": len(retained),
                "removed": removed,
            },
        )
        return len(retained)

    def _finalize(self, run_id: int, counters: RunCounters, query_count: int):
        all_failed = (
            counters.total_fetched == 0
            and counters.query_errors > 0
            and counters.query_errors == query_count
        )

        with get_session() as session:
            runs = RunRepository(session)
            self._write_progress(runs, run_id, counters)
            if runs.is_cancel_requested(run_id):
                status, error_message = RunStatus.CANCELLED, None
            elif all_failed:
                status, error_message = RunStatus.FAILED, counters.last_query_error
            else:
                status, error_message = RunStatus.COMPLETED, None
            runs.finalize(run_id, status, error_message=error_message)

        return status, error_message

    def _mark_failed(self, run_id: int, counters: RunCounters, error: Exception) -> None:
        try:
            with get_session() as session:
                runs = RunRepository(session)
                self._write_progress(runs, run_id, counters)
                runs.finalize(run_id, RunStatus.FAILED, error_message=str(error) or type(error).__name__)
        except PersistenceError as e:
            logger.error(
                f"Could not mark run {run_id} as failed: {e}",
                extra={"event": "pipeline.run.finalize_failed"},
            )

    def _cancel_requested(self, run_id: int) -> bool:
        with get_session() as session:
            return RunRepository(session).is_cancel_requested(run_id)

    def _persist_progress(self, run_id: int, counters: RunCounters) -> None:
        with get_session() as session:
            self._write_progress(RunRepository(session), run_id, counters)

    @staticmethod
    def _write_progress(runs: RunRepository, run_id: int, counters: RunCounters) -> None:
        runs.update_progress(
            run_id,
            total_fetched=counters.total_fetched,
            new_jobs=counters.new_jobs,
            duplicates=counters.duplicates,
            query_errors=counters.query_errors,
            last_query_error=counters.last_query_error,
        )
