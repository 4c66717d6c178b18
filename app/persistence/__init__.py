"""Persistence layer for database operations (SQLite by default).

Public API:
    # Database initialization and session management
    - init_database(database_url: str) -> None
    - get_session() -> ContextManager[Session]
    - close_database() -> None
    - get_engine() -> Engine

    # Repository classes
    - JobRepository, QueryRepository, PatternRepository, SettingsRepository
    - RunRepository, MatchRepository

    # Job store
    - JobStore(session).upsert(raw_job) -> UpsertResult(job_id, is_new)

    # Exceptions
    - PersistenceError: Base exception for all persistence errors
    - DatabaseConnectionError: Database connection/initialization failures
    - RecordNotFoundError: Required record not found
    - DataIntegrityError: Constraint violations

Example usage:
    >>> from app.persistence import init_database, get_session, JobStore
    >>> init_database("sqlite:///./data/job_recommender.db")
    >>> with get_session() as session:
    ...     result = JobStore(session).upsert(raw_job)
"""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import (
    JobRepository,
    MatchRepository,
    PatternRepository,
    QueryRepository,
    RunRepository,
    SettingsRepository,
)
from .job_store import JobStore, UpsertResult

__all__ = [
    # Database functions
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    # Repositories
    "JobRepository",
    "QueryRepository",
    "PatternRepository",
    "SettingsRepository",
    "RunRepository",
    "MatchRepository",
    # Job store
    "JobStore",
    "UpsertResult",
    # Exceptions
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
