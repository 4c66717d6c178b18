"""Data access layer (repositories) for persistence operations.

Repositories wrap a caller-owned Session, return domain models rather than
ORM models, and translate SQLAlchemy errors into PersistenceError subclasses.
They flush but never commit: the transaction boundary is get_session().
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.models import (
    Job,
    RecommendedMatch,
    RecommendedRun,
    RunParameters,
    RunStatus,
    Settings,
)
from app.logging import get_logger
from app.utils.timestamps import format_db_timestamp, utc_now

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import (
    JobModel,
    RecommendedMatchModel,
    RecommendedQueryModel,
    RecommendedRunModel,
    RecommendedRunQueryModel,
    ScoringPatternModel,
    SettingsModel,
)

logger = get_logger(__name__, component="database")

SETTINGS_ID = 1
ABANDONED_RUN_MESSAGE = "Run abandoned: still running after the staleness window"


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Re-raise SQLAlchemy errors as persistence errors describing the action."""
    try:
        yield
    except IntegrityError as e:
        logger.error(
            f"Integrity error while trying to {action}: {e.orig}",
            extra={"event": "database.integrity_error", "action": action},
        )
        raise DataIntegrityError(f"Failed to {action}: constraint violation: {e.orig}") from e
    except SQLAlchemyError as e:
        logger.error(
            f"Database error while trying to {action}: {e}",
            extra={"event": "database.error", "action": action},
            exc_info=True,
        )
        raise PersistenceError(f"Failed to {action}: {e}") from e


class JobRepository:
    """Repository for job postings."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_key(self, job_key: str) -> Optional[Job]:
        """Retrieve a job by its identity key, or None."""
        with _translate_errors("retrieve job by key"):
            stmt = select(JobModel).where(JobModel.job_key == job_key)
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_domain() if model else None

    def get_many(self, job_ids: Iterable[int]) -> List[Job]:
        """Retrieve jobs by id, in id order. Unknown ids are ignored."""
        ids = list(job_ids)
        if not ids:
            return []
        with _translate_errors("retrieve jobs"):
            stmt = select(JobModel).where(JobModel.id.in_(ids)).order_by(JobModel.id)
            return [model.to_domain() for model in self.session.execute(stmt).scalars()]

    def upsert(self, job: Job) -> Tuple[Job, bool]:
        """Insert a new job or refresh the stored one with the same job_key.

        On update, id, discovered_at and ignored are preserved.

        Args:
            job: Normalized job

        Returns:
            Tuple of (persisted Job with id, True if inserted)

        Raises:
            DataIntegrityError: If a concurrent insert claimed the same job_key
            PersistenceError: If another database error occurs
        """
        with _translate_errors(f"upsert job {job.job_key}"):
            stmt = select(JobModel).where(JobModel.job_key == job.job_key)
            existing = self.session.execute(stmt).scalar_one_or_none()

            if existing is not None:
                existing.apply_fetched_fields(job)
                self.session.flush()
                return existing.to_domain(), False

            model = JobModel.from_domain(job.model_copy(update={"id": None}))
            self.session.add(model)
            self.session.flush()
            return model.to_domain(), True

    def set_ignored(self, job_id: int, ignored: bool) -> Job:
        """Set the operator-controlled ignored flag.

        Raises:
            RecordNotFoundError: If the job does not exist
        """
        with _translate_errors(f"update job {job_id}"):
            model = self.session.get(JobModel, job_id)
            if model is None:
                raise RecordNotFoundError(f"Job {job_id} not found")
            model.ignored = ignored
            self.session.flush()
            return model.to_domain()

    def count(self) -> int:
        with _translate_errors("count jobs"):
            return self.session.execute(select(func.count()).select_from(JobModel)).scalar_one()

    def delete_all(self) -> int:
        with _translate_errors("delete jobs"):
            return self.session.execute(delete(JobModel)).rowcount


class _CatalogRepository:
    """Shared CRUD for the operator-managed catalog tables."""

    model: Any = None
    label = "record"

    def __init__(self, session: Session):
        self.session = session

    def list_all(self) -> List[Any]:
        """All rows, most recently created first."""
        with _translate_errors(f"list {self.label}s"):
            stmt = select(self.model).order_by(self.model.created_at.desc(), self.model.id.desc())
            return [row.to_domain() for row in self.session.execute(stmt).scalars()]

    def list_enabled(self) -> List[Any]:
        """Enabled rows, most recently created first (id breaks ties)."""
        with _translate_errors(f"list enabled {self.label}s"):
            stmt = (
                select(self.model)
                .where(self.model.enabled.is_(True))
                .order_by(self.model.created_at.desc(), self.model.id.desc())
            )
            return [row.to_domain() for row in self.session.execute(stmt).scalars()]

    def get(self, record_id: int) -> Optional[Any]:
        with _translate_errors(f"retrieve {self.label} {record_id}"):
            row = self.session.get(self.model, record_id)
            return row.to_domain() if row else None

    def create(self, record: Any) -> Any:
        now = utc_now()
        with _translate_errors(f"create {self.label}"):
            row = self.model.from_domain(
                record.model_copy(update={"id": None, "created_at": now, "updated_at": now})
            )
            self.session.add(row)
            self.session.flush()
            return row.to_domain()

    def update(self, record_id: int, changes: Dict[str, Any]) -> Any:
        """Apply field changes to an existing row.

        Raises:
            RecordNotFoundError: If the row does not exist
        """
        with _translate_errors(f"update {self.label} {record_id}"):
            row = self._require(record_id)
            for name, value in changes.items():
                setattr(row, name, getattr(value, "value", value))
            row.updated_at = format_db_timestamp(utc_now())
            self.session.flush()
            return row.to_domain()

    def toggle(self, record_id: int) -> Any:
        """Flip the enabled flag.

        Raises:
            RecordNotFoundError: If the row does not exist
        """
        with _translate_errors(f"toggle {self.label} {record_id}"):
            row = self._require(record_id)
            row.enabled = not row.enabled
            row.updated_at = format_db_timestamp(utc_now())
            self.session.flush()
            return row.to_domain()

    def delete(self, record_id: int) -> None:
        """Delete a row.

        Raises:
            RecordNotFoundError: If the row does not exist
        """
        with _translate_errors(f"delete {self.label} {record_id}"):
            self.session.delete(self._require(record_id))
            self.session.flush()

    def _require(self, record_id: int) -> Any:
        row = self.session.get(self.model, record_id)
        if row is None:
            raise RecordNotFoundError(f"{self.label.capitalize()} {record_id} not found")
        return row


class QueryRepository(_CatalogRepository):
    """Repository for recommended queries."""

    model = RecommendedQueryModel
    label = "query"


class PatternRepository(_CatalogRepository):
    """Repository for scoring patterns."""

    model = ScoringPatternModel
    label = "pattern"


class SettingsRepository:
    """Repository for the settings singleton."""

    def __init__(self, session: Session):
        self.session = session

    def get_or_create(self) -> Settings:
        """Return the settings row, creating it with defaults on first read."""
        with _translate_errors("load settings"):
            return self._get_or_create_model().to_domain()

    def update(self, changes: Dict[str, Any]) -> Settings:
        with _translate_errors("update settings"):
            model = self._get_or_create_model()
            for name, value in changes.items():
                setattr(model, name, value)
            model.updated_at = format_db_timestamp(utc_now())
            self.session.flush()
            return model.to_domain()

    def _get_or_create_model(self) -> SettingsModel:
        model = self.session.get(SettingsModel, SETTINGS_ID)
        if model is None:
            model = SettingsModel(
                id=SETTINGS_ID,
                recommended_num_pages=1,
                updated_at=format_db_timestamp(utc_now()),
            )
            self.session.add(model)
            self.session.flush()
        return model


class RunRepository:
    """Repository for recommended runs.

    Only one row may be 'running' at a time; create() surfaces a violation of
    that rule as DataIntegrityError.
    """

    def __init__(self, session: Session):
        self.session = session

    def create(self, params: RunParameters, run_at: Optional[datetime] = None) -> RecommendedRun:
        """Insert a new run in status 'running' with its parameter snapshot.

        Raises:
            DataIntegrityError: If another run is already 'running'
        """
        with _translate_errors("create recommended run"):
            model = RecommendedRunModel(
                status=RunStatus.RUNNING.value,
                run_at=format_db_timestamp(run_at or utc_now()),
                total_fetched=0,
                new_jobs=0,
                duplicates=0,
                query_errors=0,
                cancel_requested=False,
                params_version=params.version,
                pattern_count=params.pattern_count,
                min_score=params.min_score,
            )
            model.queries = [
                RecommendedRunQueryModel(position=position, query_id=query_id, query_text=text)
                for position, (query_id, text) in enumerate(zip(params.query_ids, params.query_texts))
            ]
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

    def get(self, run_id: int) -> Optional[RecommendedRun]:
        with _translate_errors(f"retrieve run {run_id}"):
            model = self.session.get(RecommendedRunModel, run_id)
            return model.to_domain() if model else None

    def get_latest(self) -> Optional[RecommendedRun]:
        """Most recent run by run_at (id breaks ties), or None."""
        with _translate_errors("retrieve latest run"):
            stmt = (
                select(RecommendedRunModel)
                .order_by(RecommendedRunModel.run_at.desc(), RecommendedRunModel.id.desc())
                .limit(1)
            )
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_domain() if model else None

    def find_active(self, cutoff: datetime) -> Optional[RecommendedRun]:
        """Return a 'running' run started at or after cutoff."""
        with _translate_errors("find active run"):
            stmt = select(RecommendedRunModel).where(
                RecommendedRunModel.status == RunStatus.RUNNING.value,
                RecommendedRunModel.run_at >= format_db_timestamp(cutoff),
            )
            model = self.session.execute(stmt).scalars().first()
            return model.to_domain() if model else None

    def reap_stale(self, cutoff: datetime) -> List[int]:
        """Mark 'running' runs started before cutoff as failed.

        Returns:
            Ids of the reaped runs
        """
        with _translate_errors("reap stale runs"):
            stmt = select(RecommendedRunModel).where(
                RecommendedRunModel.status == RunStatus.RUNNING.value,
                RecommendedRunModel.run_at < format_db_timestamp(cutoff),
            )
            stale = list(self.session.execute(stmt).scalars())
            finished_at = format_db_timestamp(utc_now())
            for model in stale:
                model.status = RunStatus.FAILED.value
                model.finished_at = finished_at
                model.error_message = ABANDONED_RUN_MESSAGE
            self.session.flush()
            return [model.id for model in stale]

    def update_progress(
        self,
        run_id: int,
        total_fetched: int,
        new_jobs: int,
        duplicates: int,
        query_errors: int,
        last_query_error: Optional[str] = None,
    ) -> None:
        """Persist live counters for a run."""
        with _translate_errors(f"update run {run_id}"):
            self.session.execute(
                update(RecommendedRunModel)
                .where(RecommendedRunModel.id == run_id)
                .values(
                    total_fetched=total_fetched,
                    new_jobs=new_jobs,
                    duplicates=duplicates,
                    query_errors=query_errors,
                    last_query_error=last_query_error,
                )
            )

    def request_cancel(self, run_id: int) -> Optional[RecommendedRun]:
        """Set the cancel flag when the run is still running.

        Returns:
            The run after the update, or None if it does not exist
        """
        with _translate_errors(f"cancel run {run_id}"):
            model = self.session.get(RecommendedRunModel, run_id)
            if model is None:
                return None
            if model.status == RunStatus.RUNNING.value:
                model.cancel_requested = True
                self.session.flush()
            return model.to_domain()

    def is_cancel_requested(self, run_id: int) -> bool:
        with _translate_errors(f"read cancel flag of run {run_id}"):
            stmt = select(RecommendedRunModel.cancel_requested).where(
                RecommendedRunModel.id == run_id
            )
            return bool(self.session.execute(stmt).scalar_one_or_none())

    def finalize(
        self,
        run_id: int,
        status: RunStatus,
        error_message: Optional[str] = None,
        finished_at: Optional[datetime] = None,
    ) -> RecommendedRun:
        """Move a run to a terminal status.

        Raises:
            RecordNotFoundError: If the run does not exist
        """
        with _translate_errors(f"finalize run {run_id}"):
            model = self.session.get(RecommendedRunModel, run_id)
            if model is None:
                raise RecordNotFoundError(f"Run {run_id} not found")
            model.status = RunStatus(status).value
            model.error_message = error_message
            model.finished_at = format_db_timestamp(finished_at or utc_now())
            self.session.flush()
            return model.to_domain()

    def delete_all(self) -> int:
        with _translate_errors("delete runs"):
            self.session.execute(delete(RecommendedRunQueryModel))
            return self.session.execute(delete(RecommendedRunModel)).rowcount


class MatchRepository:
    """Repository for recommended matches of a run."""

    def __init__(self, session: Session):
        self.session = session

    def upsert_many(self, run_id: int, scored: Sequence[Tuple[int, float]]) -> int:
        """Insert or overwrite (job_id, score) rows for a run.

        Returns:
            Number of rows written
        """
        now = format_db_timestamp(utc_now())
        with _translate_errors(f"upsert matches of run {run_id}"):
            existing = {
                model.job_id: model
                for model in self.session.execute(
                    select(RecommendedMatchModel).where(RecommendedMatchModel.run_id == run_id)
                ).scalars()
            }
            for job_id, score in scored:
                model = existing.get(job_id)
                if model is None:
                    model = RecommendedMatchModel(
                        run_id=run_id, job_id=job_id, score=score, created_at=now, updated_at=now
                    )
                    self.session.add(model)
                    existing[job_id] = model
                else:
                    model.score = score
                    model.updated_at = now
            self.session.flush()
            return len(scored)

    def reconcile(self, run_id: int, scored: Sequence[Tuple[int, float]]) -> int:
        """Make the run's match rows exactly the given set.

        Rows for jobs not in ``scored`` are deleted; the rest are upserted.

        Returns:
            Number of rows deleted
        """
        keep = [job_id for job_id, _ in scored]
        with _translate_errors(f"reconcile matches of run {run_id}"):
            stmt = delete(RecommendedMatchModel).where(RecommendedMatchModel.run_id == run_id)
            if keep:
                stmt = stmt.where(RecommendedMatchModel.job_id.not_in(keep))
            removed = self.session.execute(stmt).rowcount
            self.session.expire_all()
        self.upsert_many(run_id, scored)
        return removed

    def list_for_run(self, run_id: int, include_ignored: bool = False) -> List[RecommendedMatch]:
        """Matches of a run, best score first (job id ascending on ties)."""
        with _translate_errors(f"list matches of run {run_id}"):
            stmt = (
                select(RecommendedMatchModel)
                .join(JobModel, JobModel.id == RecommendedMatchModel.job_id)
                .where(RecommendedMatchModel.run_id == run_id)
                .order_by(RecommendedMatchModel.score.desc(), RecommendedMatchModel.job_id.asc())
            )
            if not include_ignored:
                stmt = stmt.where(JobModel.ignored.is_(False))
            return [
                RecommendedMatch(
                    run_id=model.run_id,
                    job_id=model.job_id,
                    score=model.score,
                    job=model.job.to_domain(),
                )
                for model in self.session.execute(stmt).unique().scalars()
            ]

    def delete_all(self) -> int:
        with _translate_errors("delete matches"):
            return self.session.execute(delete(RecommendedMatchModel)).rowcount
