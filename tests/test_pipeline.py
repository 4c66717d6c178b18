"""Tests for the recommended pull runner.

Pulls run against the YAML-backed FixtureProvider and an in-memory database.
Scores with the default patterns below (min score 50):

    py-1      Senior Python Engineer   110  retained
    py-2      Python Developer          60  retained
    shared-1  Staff Engineer            50  retained (threshold is inclusive)
    de-1      Data Engineer             --  disqualified (clearance)
    (no id)   Analytics Engineer        20  dropped
"""

import threading
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.domain.models import RunParameters, RunStatus
from app.persistence import (
    JobStore,
    MatchRepository,
    RunRepository,
    SettingsRepository,
    get_session,
)
from app.persistence.repositories import ABANDONED_RUN_MESSAGE
from app.pipeline import (
    NoQueriesConfiguredError,
    RecommendedRunner,
    RunAlreadyActiveError,
    RunRegistry,
)
from app.pipeline.models import RunCounters
from app.utils.timestamps import utc_now
from tests.helpers import FixtureProvider, make_raw_job

# Created in this order; the newest query runs first
QUERIES = [{"query": "data engineer"}, {"query": "python backend"}]
PATTERNS = [
    {"pattern": "python", "weight": 30},
    {"pattern": "engineer", "weight": 20, "count_once": True},
    {"pattern": "clearance", "weight": 1, "disqualify": True},
]


@pytest.fixture
def provider():
    return FixtureProvider()


@pytest.fixture
def runner(app_config, provider, temp_database):
    return RecommendedRunner(app_config, provider)


@pytest.fixture
def seeded(seed_catalog):
    return seed_catalog(QUERIES, PATTERNS)


def pull(runner):
    """Start a pull, wait for it and return the stored run."""
    run_id = runner.start_pull()
    assert runner.wait(run_id, timeout=30)
    return RunRegistry().get_run(run_id)


def match_keys(run_id):
    return [
        (m.job.source_job_id, m.score)
        for m in RunRegistry().list_matches(run_id, include_ignored=True)
    ]


def insert_running_run(minutes_ago):
    with get_session() as session:
        return RunRepository(session).create(
            RunParameters(), run_at=utc_now() - timedelta(minutes=minutes_ago)
        )


class TestRecommendedPull:
    def test_full_pull(self, runner, provider, seeded):
        run = pull(runner)

        assert run.status == RunStatus.COMPLETED
        assert provider.fetched == ["python backend", "data engineer"]
        assert run.total_fetched == 6
        assert run.new_jobs == 5
        assert run.duplicates == 1
        assert run.query_errors == 0
        assert run.error_message is None
        assert run.finished_at is not None
        assert match_keys(run.id) == [("py-1", 110), ("py-2", 60), ("shared-1", 50)]

    def test_run_parameters_are_snapshotted(self, runner, seeded):
        run = pull(runner)
        queries, _ = seeded
        assert run.params.query_texts == ["python backend", "data engineer"]
        assert run.params.query_ids == [queries[1].id, queries[0].id]
        assert run.params.pattern_count == 3
        assert run.params.min_score == 50

    def test_settings_threshold_overrides_default(self, runner, seeded):
        with get_session() as session:
            SettingsRepository(session).update({"min_recommended_score": 100})

        run = pull(runner)

        assert match_keys(run.id) == [("py-1", 110)]
        assert run.params.min_score == 100

    def test_every_match_meets_threshold(self, runner, seeded):
        run = pull(runner)
        assert all(score >= 50 for _, score in match_keys(run.id))

    def test_second_pull_counts_duplicates(self, runner, seeded):
        pull(runner)
        run = pull(runner)
        assert run.new_jobs == 0
        assert run.duplicates == 6

    def test_progress_is_visible_between_queries(self, runner, provider, seeded):
        observed = []

        def before_fetch(query):
            if provider.fetched:
                observed.append(RunRegistry().latest_status().total_fetched)

        provider.before_fetch = before_fetch
        pull(runner)

        assert observed == [3]

    def test_matches_are_visible_between_queries(self, runner, provider, seeded):
        observed = []

        def before_fetch(query):
            if provider.fetched:
                observed.extend(
                    (m.job.source_job_id, m.score) for m in RunRegistry().list_matches()
                )

        provider.before_fetch = before_fetch
        pull(runner)

        assert observed == [("py-1", 110), ("py-2", 60), ("shared-1", 50)]

    def test_gate_released_after_pull(self, runner, seeded):
        pull(runner)
        assert runner.is_active() is False

    def test_finished_workers_are_forgotten_without_wait(self, runner, seeded):
        for _ in range(3):
            run_id = runner.start_pull()
            for thread in threading.enumerate():
                if thread.name == f"recommended-run-{run_id}":
                    thread.join(30)

        assert runner._workers == {}
        assert runner.is_active() is False


class TestQueryFailures:
    def test_one_failing_query_does_not_abort(self, runner, seeded):
        runner.provider.failing_queries = {"data engineer"}

        run = pull(runner)

        assert run.status == RunStatus.COMPLETED
        assert run.query_errors == 1
        assert "503" in run.last_query_error
        assert run.total_fetched == 3
        assert run.error_message is None

    def test_all_queries_failing_fails_the_run(self, runner, seeded):
        runner.provider.failing_queries = {"data engineer", "python backend"}

        run = pull(runner)

        assert run.status == RunStatus.FAILED
        assert run.query_errors == 2
        assert run.total_fetched == 0
        assert run.error_message == "HTTP 503: Service Unavailable (data engineer)"
        assert match_keys(run.id) == []

    def test_unexpected_error_marks_run_failed(self, runner, provider, seeded):
        def explode(query):
            raise RuntimeError("kaput")

        provider.before_fetch = explode

        run = pull(runner)

        assert run.status == RunStatus.FAILED
        assert run.error_message == "kaput"
        assert runner.is_active() is False


class TestCancellation:
    def test_cancel_after_first_query(self, runner, provider, seeded):
        def cancel_during_first_fetch(query):
            if not provider.fetched:
                assert runner.cancel(RunRegistry().latest_status().id)

        provider.before_fetch = cancel_during_first_fetch

        run = pull(runner)

        assert run.status == RunStatus.CANCELLED
        assert run.cancel_requested is True
        assert provider.fetched == ["python backend"]
        assert run.total_fetched == 3
        assert match_keys(run.id) == [("py-1", 110), ("py-2", 60), ("shared-1", 50)]

    def test_cancel_unknown_run(self, runner):
        assert runner.cancel(12345) is False

    def test_cancel_finished_run_is_noop(self, runner, seeded):
        run = pull(runner)
        assert runner.cancel(run.id) is True
        assert RunRegistry().get_run(run.id).status == RunStatus.COMPLETED


class TestMutualExclusion:
    def test_no_queries(self, runner, seed_catalog):
        seed_catalog(queries=[], patterns=PATTERNS)

        with pytest.raises(NoQueriesConfiguredError):
            runner.start_pull()

        assert runner.is_active() is False
        assert RunRegistry().latest_status() is None

    def test_disabled_queries_do_not_count(self, runner, seed_catalog):
        seed_catalog(queries=[{"query": "python backend", "enabled": False}])
        with pytest.raises(NoQueriesConfiguredError):
            runner.start_pull()

    def test_in_process_gate(self, runner, seeded):
        runner._gate.acquire()
        try:
            with pytest.raises(RunAlreadyActiveError):
                runner.start_pull()
        finally:
            runner._gate.release()

    def test_recent_running_run_blocks(self, runner, seeded):
        active = insert_running_run(minutes_ago=10)

        with pytest.raises(RunAlreadyActiveError) as exc_info:
            runner.start_pull()

        assert exc_info.value.run_id == active.id
        assert runner.is_active() is False

    def test_stale_running_run_is_reaped(self, runner, seeded):
        stale = insert_running_run(minutes_ago=20)

        run = pull(runner)

        reaped = RunRegistry().get_run(stale.id)
        assert reaped.status == RunStatus.FAILED
        assert reaped.error_message == ABANDONED_RUN_MESSAGE
        assert run.status == RunStatus.COMPLETED

    def test_reap_survives_missing_queries(self, runner, seed_catalog):
        stale = insert_running_run(minutes_ago=20)

        with pytest.raises(NoQueriesConfiguredError):
            runner.start_pull()

        assert RunRegistry().get_run(stale.id).status == RunStatus.FAILED


class TestExecute:
    def test_returns_result_with_query_stats(self, runner, seeded):
        queries, patterns = seeded
        with get_session() as session:
            run = RunRepository(session).create(RunParameters())

        result = runner.execute(run.id, list(reversed(queries)), patterns, min_score=50)

        assert result.status == RunStatus.COMPLETED
        assert result.matched_count == 3
        assert [s.query_text for s in result.query_stats] == ["python backend", "data engineer"]
        assert [s.new_count for s in result.query_stats] == [3, 2]
        assert result.query_stats[1].duplicate_count == 1
        assert result.total_duration_seconds >= 0

    def test_invalid_pattern_is_skipped(self, runner, seed_catalog):
        queries, patterns = seed_catalog(QUERIES, PATTERNS + [{"pattern": "(unclosed", "weight": 5}])
        with get_session() as session:
            run = RunRepository(session).create(RunParameters())

        result = runner.execute(run.id, queries, patterns, min_score=50)

        assert result.status == RunStatus.COMPLETED
        assert result.matched_count == 3

    def test_matches_reconciled_to_final_set(self, runner, seeded):
        queries, patterns = seeded
        with get_session() as session:
            unrelated = JobStore(session).upsert(make_raw_job(source_job_id="elsewhere"))
            run = RunRepository(session).create(RunParameters())
            MatchRepository(session).upsert_many(run.id, [(unrelated.job_id, 999)])

        runner.execute(run.id, queries, patterns, min_score=100)

        assert match_keys(run.id) == [("py-1", 110)]

    def test_mark_failed_tolerates_commit_errors(self, runner, seeded):
        run = insert_running_run(minutes_ago=0)
        locked = OperationalError("COMMIT", None, Exception("database is locked"))

        with patch.object(Session, "commit", side_effect=locked):
            runner._mark_failed(run.id, RunCounters(), RuntimeError("kaput"))

        assert RunRegistry().get_run(run.id).status == RunStatus.RUNNING
