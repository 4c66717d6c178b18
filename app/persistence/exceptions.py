"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError, so callers that
treat any storage failure as fatal for the current run can catch one type.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""


class DatabaseConnectionError(PersistenceError):
    """Raised when the database cannot be initialized or is not initialized yet."""


class RecordNotFoundError(PersistenceError):
    """Raised when an operation targets a query, pattern or run that does not exist.

    Optional lookups return None instead.
    """


class DataIntegrityError(PersistenceError):
    """Raised on constraint violations.

    Examples:
    - Two jobs with the same job_key inserted concurrently
    - A second run inserted with status 'running'
    - A match row referencing a missing job
    """
