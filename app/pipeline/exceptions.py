"""Exceptions raised when a recommended pull cannot start."""

from typing import Optional


class PipelineError(Exception):
    """Base exception for recommended pull orchestration errors."""


class NoQueriesConfiguredError(PipelineError):
    """Raised when a pull is requested but no enabled query exists."""

    def __init__(
        self,
        message: str = "No recommended queries configured; add and enable a query first",
    ) -> None:
        super().__init__(message)


class RunAlreadyActiveError(PipelineError):
    """Raised when another pull is running (in this process or per the database).

    ``run_id`` is the active run when it is known.
    """

    def __init__(
        self,
        message: str = "A recommended pull is already running",
        run_id: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.run_id = run_id
