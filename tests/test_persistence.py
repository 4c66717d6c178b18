"""Unit tests for the persistence layer."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.domain.models import (
    Job,
    PatternEffect,
    RecommendedQuery,
    RunParameters,
    RunStatus,
    ScoringPattern,
)
from app.persistence import (
    DatabaseConnectionError,
    DataIntegrityError,
    JobRepository,
    MatchRepository,
    PatternRepository,
    PersistenceError,
    QueryRepository,
    RecordNotFoundError,
    RunRepository,
    SettingsRepository,
    close_database,
    get_engine,
    get_session,
    init_database,
)
from app.persistence.repositories import ABANDONED_RUN_MESSAGE
from app.utils.timestamps import utc_now


def make_job(key="key-1", title="Python Engineer", **overrides):
    now = utc_now()
    fields = dict(
        job_key=key,
        source="jsearch",
        source_job_id=key,
        fingerprint=f"fp-{key}",
        title=title,
        company="Acme",
        discovered_at=now,
        last_seen_at=now,
    )
    fields.update(overrides)
    return Job(**fields)


def insert_jobs(*keys):
    with get_session() as session:
        repo = JobRepository(session)
        return [repo.upsert(make_job(key))[0].id for key in keys]


def create_run(run_at=None, **params):
    with get_session() as session:
        return RunRepository(session).create(RunParameters(**params), run_at=run_at)


class TestDatabaseInitialization:
    def test_file_database_creates_parent_directories(self, tmp_path):
        db_file = tmp_path / "nested" / "dir" / "test.db"
        init_database(f"sqlite:///{db_file}")
        try:
            assert db_file.exists()
            with get_session() as session:
                mode = session.execute(text("PRAGMA journal_mode")).scalar()
            assert mode.lower() == "wal"
        finally:
            close_database()

    def test_creates_all_tables(self, temp_database):
        tables = set(inspect(get_engine()).get_table_names())
        assert {
            "jobs",
            "recommended_queries",
            "scoring_patterns",
            "recommended_runs",
            "recommended_run_queries",
            "recommended_matches",
            "settings",
        } <= tables

    def test_schema_creation_is_idempotent(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'test.db'}"
        init_database(url)
        init_database(url)
        close_database()

    @pytest.mark.parametrize("url", ["", None, "not a url"])
    def test_invalid_url(self, url):
        with pytest.raises(DatabaseConnectionError):
            init_database(url)

    def test_session_requires_initialization(self):
        close_database()
        with pytest.raises(DatabaseConnectionError, match="not initialized"):
            with get_session():
                pass

    def test_session_rolls_back_on_error(self, temp_database):
        with pytest.raises(RuntimeError):
            with get_session() as session:
                JobRepository(session).upsert(make_job("rolled-back"))
                raise RuntimeError("boom")

        with get_session() as session:
            assert JobRepository(session).count() == 0

    def test_commit_errors_are_translated(self, temp_database):
        locked = OperationalError("COMMIT", None, Exception("database is locked"))

        with patch.object(Session, "commit", side_effect=locked):
            with pytest.raises(PersistenceError, match="database is locked"):
                with get_session() as session:
                    JobRepository(session).upsert(make_job("locked"))

        with get_session() as session:
            assert JobRepository(session).count() == 0

    def test_commit_constraint_violation_is_data_integrity_error(self, temp_database):
        duplicate = IntegrityError("COMMIT", None, Exception("UNIQUE constraint failed"))

        with patch.object(Session, "commit", side_effect=duplicate):
            with pytest.raises(DataIntegrityError):
                with get_session():
                    pass


class TestJobRepository:
    def test_insert_then_refresh_preserves_identity(self, temp_database):
        with get_session() as session:
            repo = JobRepository(session)
            first, inserted = repo.upsert(make_job(title="Old title"))
        assert inserted is True

        with get_session() as session:
            repo = JobRepository(session)
            repo.set_ignored(first.id, True)
            later = utc_now() + timedelta(hours=1)
            second, inserted = repo.upsert(
                make_job(title="New title", discovered_at=later, last_seen_at=later)
            )

        assert inserted is False
        assert second.id == first.id
        assert second.title == "New title"
        assert second.discovered_at == first.discovered_at
        assert second.ignored is True

    def test_get_many_ignores_unknown_ids(self, temp_database):
        ids = insert_jobs("a", "b")
        with get_session() as session:
            jobs = JobRepository(session).get_many([ids[1], 999, ids[0]])
        assert [j.id for j in jobs] == sorted(ids)

    def test_set_ignored_missing_job(self, temp_database):
        with pytest.raises(RecordNotFoundError):
            with get_session() as session:
                JobRepository(session).set_ignored(42, True)


class TestCatalogRepositories:
    def test_list_enabled_most_recent_first(self, temp_database):
        with get_session() as session:
            repo = QueryRepository(session)
            first = repo.create(RecommendedQuery(query="first"))
            repo.create(RecommendedQuery(query="disabled", enabled=False))
            third = repo.create(RecommendedQuery(query="third"))

        with get_session() as session:
            enabled = QueryRepository(session).list_enabled()

        assert [q.id for q in enabled] == [third.id, first.id]

    def test_update_toggle_delete(self, temp_database):
        with get_session() as session:
            created = QueryRepository(session).create(RecommendedQuery(query="python"))

        with get_session() as session:
            repo = QueryRepository(session)
            updated = repo.update(created.id, {"query": "golang", "num_pages": 3})
            toggled = repo.toggle(created.id)

        assert updated.query == "golang"
        assert updated.num_pages == 3
        assert toggled.enabled is False

        with get_session() as session:
            QueryRepository(session).delete(created.id)
            assert QueryRepository(session).get(created.id) is None

    def test_missing_record(self, temp_database):
        with pytest.raises(RecordNotFoundError, match="Pattern 5 not found"):
            with get_session() as session:
                PatternRepository(session).toggle(5)

    def test_pattern_effect_round_trips(self, temp_database):
        with get_session() as session:
            created = PatternRepository(session).create(
                ScoringPattern(pattern="java", weight=5, effect=PatternEffect.SUBTRACT)
            )
        with get_session() as session:
            updated = PatternRepository(session).update(created.id, {"effect": PatternEffect.ADD})
        assert created.effect == PatternEffect.SUBTRACT
        assert updated.effect == PatternEffect.ADD


class TestSettingsRepository:
    def test_created_on_first_read(self, temp_database):
        with get_session() as session:
            settings = SettingsRepository(session).get_or_create()
        assert settings.min_recommended_score is None
        assert settings.effective_min_score(50) == 50

    def test_update(self, temp_database):
        with get_session() as session:
            SettingsRepository(session).update({"min_recommended_score": 20})
        with get_session() as session:
            settings = SettingsRepository(session).get_or_create()
        assert settings.effective_min_score(50) == 20


class TestRunRepository:
    def test_create_snapshots_parameters(self, temp_database):
        run = create_run(query_ids=[2, 1], query_texts=["b", "a"], pattern_count=3, min_score=40)
        assert run.status == RunStatus.RUNNING
        assert run.params.query_ids == [2, 1]
        assert run.params.query_texts == ["b", "a"]
        assert run.params.min_score == 40

    def test_single_running_row(self, temp_database):
        create_run()
        with pytest.raises(DataIntegrityError):
            create_run()

    def test_find_active_respects_cutoff(self, temp_database):
        run = create_run(run_at=utc_now() - timedelta(minutes=10))
        with get_session() as session:
            runs = RunRepository(session)
            assert runs.find_active(utc_now() - timedelta(minutes=15)).id == run.id
            assert runs.find_active(utc_now() - timedelta(minutes=5)) is None

    def test_reap_stale(self, temp_database):
        run = create_run(run_at=utc_now() - timedelta(minutes=20))
        with get_session() as session:
            reaped = RunRepository(session).reap_stale(utc_now() - timedelta(minutes=15))
        with get_session() as session:
            stored = RunRepository(session).get(run.id)
        assert reaped == [run.id]
        assert stored.status == RunStatus.FAILED
        assert stored.error_message == ABANDONED_RUN_MESSAGE
        assert stored.finished_at is not None

    def test_cancel_only_flags_running_runs(self, temp_database):
        run = create_run()
        with get_session() as session:
            runs = RunRepository(session)
            runs.finalize(run.id, RunStatus.COMPLETED)
            after = runs.request_cancel(run.id)
            assert after.cancel_requested is False
            assert runs.request_cancel(999) is None

    def test_progress_and_latest(self, temp_database):
        first = create_run(run_at=utc_now() - timedelta(minutes=1))
        with get_session() as session:
            runs = RunRepository(session)
            runs.update_progress(first.id, 5, 3, 2, 1, last_query_error="HTTP 503")
            runs.finalize(first.id, RunStatus.COMPLETED)
        second = create_run()

        with get_session() as session:
            runs = RunRepository(session)
            stored = runs.get(first.id)
            latest = runs.get_latest()

        assert (stored.total_fetched, stored.new_jobs, stored.duplicates) == (5, 3, 2)
        assert stored.query_errors == 1
        assert stored.last_query_error == "HTTP 503"
        assert latest.id == second.id

    def test_finalize_missing_run(self, temp_database):
        with pytest.raises(RecordNotFoundError):
            with get_session() as session:
                RunRepository(session).finalize(1, RunStatus.FAILED)


class TestMatchRepository:
    def test_upsert_overwrites_scores(self, temp_database):
        job_a, job_b = insert_jobs("a", "b")
        run = create_run()
        with get_session() as session:
            matches = MatchRepository(session)
            matches.upsert_many(run.id, [(job_a, 10), (job_b, 30)])
            matches.upsert_many(run.id, [(job_a, 40)])

        with get_session() as session:
            listed = MatchRepository(session).list_for_run(run.id)

        assert [(m.job_id, m.score) for m in listed] == [(job_a, 40), (job_b, 30)]
        assert listed[0].job.job_key == "a"

    def test_reconcile_deletes_rows_outside_set(self, temp_database):
        job_a, job_b, job_c = insert_jobs("a", "b", "c")
        run = create_run()
        with get_session() as session:
            MatchRepository(session).upsert_many(run.id, [(job_a, 10), (job_b, 20)])
        with get_session() as session:
            removed = MatchRepository(session).reconcile(run.id, [(job_c, 50), (job_b, 25)])
        with get_session() as session:
            listed = MatchRepository(session).list_for_run(run.id)

        assert removed == 1
        assert [(m.job_id, m.score) for m in listed] == [(job_c, 50), (job_b, 25)]

    def test_reconcile_to_empty(self, temp_database):
        (job_a,) = insert_jobs("a")
        run = create_run()
        with get_session() as session:
            MatchRepository(session).upsert_many(run.id, [(job_a, 10)])
        with get_session() as session:
            assert MatchRepository(session).reconcile(run.id, []) == 1
            assert MatchRepository(session).list_for_run(run.id) == []

    def test_ties_break_by_job_id_and_ignored_is_hidden(self, temp_database):
        job_a, job_b, job_c = insert_jobs("a", "b", "c")
        run = create_run()
        with get_session() as session:
            MatchRepository(session).upsert_many(run.id, [(job_c, 10), (job_a, 10), (job_b, 10)])
            JobRepository(session).set_ignored(job_b, True)

        with get_session() as session:
            matches = MatchRepository(session)
            visible = [m.job_id for m in matches.list_for_run(run.id)]
            everything = [m.job_id for m in matches.list_for_run(run.id, include_ignored=True)]

        assert visible == [job_a, job_c]
        assert everything == [job_a, job_b, job_c]
