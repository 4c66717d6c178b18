"""Shared pytest fixtures."""

from datetime import datetime, timezone

import pytest

from app.config.models import AppConfig
from app.domain.models import RecommendedQuery, ScoringPattern
from app.logging.context import clear_log_context
from app.persistence import close_database, get_session, init_database
from app.persistence.repositories import PatternRepository, QueryRepository
from tests.helpers import make_raw_job


@pytest.fixture(autouse=True)
def clean_log_context():
    """Clear logging context before and after each test."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Minimal valid environment for load_environment_config()."""
    monkeypatch.setenv("JSEARCH_API_KEY", "test-rapidapi-key")
    for name in ("JSEARCH_API_HOST", "DATABASE_URL", "LOG_LEVEL", "ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_database():
    """Create a temporary in-memory database for testing."""
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture
def app_config():
    """Defaults: min score 50, staleness window 15 minutes."""
    return AppConfig()


@pytest.fixture
def seen_at():
    return datetime(2026, 10, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def raw_job_factory():
    return make_raw_job


@pytest.fixture
def seed_catalog(temp_database):
    """Insert queries and patterns; returns a function taking lists of dicts."""

    def _seed(queries=(), patterns=()):
        with get_session() as session:
            query_repo = QueryRepository(session)
            pattern_repo = PatternRepository(session)
            created_queries = [query_repo.create(RecommendedQuery(**q)) for q in queries]
            created_patterns = [pattern_repo.create(ScoringPattern(**p)) for p in patterns]
        return created_queries, created_patterns

    return _seed
