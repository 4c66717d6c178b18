"""Database schema definition and ORM models.

ORM models convert to and from the pydantic domain models with
to_domain()/from_domain(). Timestamps are stored as fixed-width UTC strings
(see app.utils.timestamps) so lexical order is chronological order.
"""

from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    inspect,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship

from app.domain.models import (
    Job,
    RecommendedQuery,
    RecommendedRun,
    RunParameters,
    ScoringPattern,
    Settings,
)
from app.logging import get_logger
from app.utils.timestamps import format_db_timestamp, parse_db_timestamp

logger = get_logger(__name__, component="database")

Base = declarative_base()

RUNNING_STATUS_CLAUSE = text("status = 'running'")


class JobModel(Base):
    """ORM model for the jobs table.

    ``job_key`` is unique; the integer id is what matches reference.
    """

    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_key = Column(String(64), nullable=False, unique=True)

    source = Column(String(50), nullable=False)
    source_job_id = Column(String(255), nullable=True)
    fingerprint = Column(String(64), nullable=False)

    title = Column(Text, nullable=False)
    company = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)
    description = Column(Text, nullable=False, default="")
    apply_url = Column(Text, nullable=True)
    is_remote = Column(Boolean, nullable=False, default=False)
    employment_type = Column(String(50), nullable=True)
    salary_min = Column(Float, nullable=True)
    salary_max = Column(Float, nullable=True)
    salary_period = Column(String(20), nullable=True)

    posted_at = Column(String(50), nullable=True)
    discovered_at = Column(String(50), nullable=False)
    last_seen_at = Column(String(50), nullable=False)

    ignored = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_jobs_source", "source", "source_job_id"),
        Index("idx_jobs_fingerprint", "fingerprint"),
        Index("idx_jobs_last_seen", "last_seen_at"),
    )

    def to_domain(self) -> Job:
        return Job(
            id=self.id,
            job_key=self.job_key,
            source=self.source,
            source_job_id=self.source_job_id,
            fingerprint=self.fingerprint,
            title=self.title,
            company=self.company,
            location=self.location,
            description=self.description,
            apply_url=self.apply_url,
            is_remote=bool(self.is_remote),
            employment_type=self.employment_type,
            salary_min=self.salary_min,
            salary_max=self.salary_max,
            salary_period=self.salary_period,
            posted_at=parse_db_timestamp(self.posted_at),
            discovered_at=parse_db_timestamp(self.discovered_at),
            last_seen_at=parse_db_timestamp(self.last_seen_at),
            ignored=bool(self.ignored),
        )

    @classmethod
    def from_domain(cls, job: Job) -> "JobModel":
        model = cls(id=job.id, job_key=job.job_key, discovered_at=format_db_timestamp(job.discovered_at))
        model.apply_fetched_fields(job)
        model.ignored = job.ignored
        return model

    def apply_fetched_fields(self, job: Job) -> None:
        """Copy the fields a provider may change between fetches.

        id, job_key, discovered_at and ignored are left untouched.
        """
        self.source = job.source
        self.source_job_id = job.source_job_id
        self.fingerprint = job.fingerprint
        self.title = job.title
        self.company = job.company
        self.location = job.location
        self.description = job.description
        self.apply_url = job.apply_url
        self.is_remote = job.is_remote
        self.employment_type = job.employment_type
        self.salary_min = job.salary_min
        self.salary_max = job.salary_max
        self.salary_period = job.salary_period
        self.posted_at = format_db_timestamp(job.posted_at)
        self.last_seen_at = format_db_timestamp(job.last_seen_at)


class RecommendedQueryModel(Base):
    """ORM model for saved recommended searches."""

    __tablename__ = "recommended_queries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    query = Column(Text, nullable=False)
    page = Column(Integer, nullable=False, default=1)
    num_pages = Column(Integer, nullable=False, default=1)
    country = Column(String(10), nullable=False, default="us")
    language = Column(String(10), nullable=True)
    date_posted = Column(String(10), nullable=False, default="all")
    work_from_home = Column(Boolean, nullable=False, default=False)
    employment_types = Column(String(255), nullable=True)
    job_requirements = Column(String(255), nullable=True)
    radius = Column(Float, nullable=True)
    exclude_job_publishers = Column(Text, nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=False)

    __table_args__ = (Index("idx_recommended_queries_enabled", "enabled", "created_at"),)

    _FIELDS = (
        "query", "page", "num_pages", "country", "language", "date_posted",
        "work_from_home", "employment_types", "job_requirements", "radius",
        "exclude_job_publishers", "enabled",
    )

    def to_domain(self) -> RecommendedQuery:
        return RecommendedQuery(
            id=self.id,
            created_at=parse_db_timestamp(self.created_at),
            updated_at=parse_db_timestamp(self.updated_at),
            **{name: getattr(self, name) for name in self._FIELDS},
        )

    @classmethod
    def from_domain(cls, query: RecommendedQuery) -> "RecommendedQueryModel":
        return cls(
            id=query.id,
            created_at=format_db_timestamp(query.created_at),
            updated_at=format_db_timestamp(query.updated_at),
            **{name: getattr(query, name) for name in cls._FIELDS},
        )


class ScoringPatternModel(Base):
    """ORM model for scoring patterns."""

    __tablename__ = "scoring_patterns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pattern = Column(Text, nullable=False)
    weight = Column(Float, nullable=False, default=10.0)
    effect = Column(String(1), nullable=False, default="+")
    count_once = Column(Boolean, nullable=False, default=False)
    disqualify = Column(Boolean, nullable=False, default=False)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=False)

    def to_domain(self) -> ScoringPattern:
        return ScoringPattern(
            id=self.id,
            pattern=self.pattern,
            weight=self.weight,
            effect=self.effect,
            count_once=bool(self.count_once),
            disqualify=bool(self.disqualify),
            enabled=bool(self.enabled),
            created_at=parse_db_timestamp(self.created_at),
            updated_at=parse_db_timestamp(self.updated_at),
        )

    @classmethod
    def from_domain(cls, pattern: ScoringPattern) -> "ScoringPatternModel":
        return cls(
            id=pattern.id,
            pattern=pattern.pattern,
            weight=pattern.weight,
            effect=getattr(pattern.effect, "value", pattern.effect),
            count_once=pattern.count_once,
            disqualify=pattern.disqualify,
            enabled=pattern.enabled,
            created_at=format_db_timestamp(pattern.created_at),
            updated_at=format_db_timestamp(pattern.updated_at),
        )


class RecommendedRunModel(Base):
    """ORM model for recommended runs.

    At most one row may have status 'running' (partial unique index).
    Run parameters live in params_version/pattern_count/min_score plus the
    ordered recommended_run_queries child rows.
    """

    __tablename__ = "recommended_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(String(20), nullable=False)
    run_at = Column(String(50), nullable=False)
    finished_at = Column(String(50), nullable=True)

    total_fetched = Column(Integer, nullable=False, default=0)
    new_jobs = Column(Integer, nullable=False, default=0)
    duplicates = Column(Integer, nullable=False, default=0)
    query_errors = Column(Integer, nullable=False, default=0)

    error_message = Column(Text, nullable=True)
    last_query_error = Column(Text, nullable=True)
    cancel_requested = Column(Boolean, nullable=False, default=False)

    params_version = Column(Integer, nullable=False, default=RunParameters.CURRENT_VERSION)
    pattern_count = Column(Integer, nullable=False, default=0)
    min_score = Column(Float, nullable=False)

    queries = relationship(
        "RecommendedRunQueryModel",
        order_by="RecommendedRunQueryModel.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_recommended_runs_status_run_at", "status", "run_at"),
        Index(
            "uq_recommended_runs_single_running",
            "status",
            unique=True,
            sqlite_where=RUNNING_STATUS_CLAUSE,
            postgresql_where=RUNNING_STATUS_CLAUSE,
        ),
    )

    def to_domain(self) -> RecommendedRun:
        ordered: List[RecommendedRunQueryModel] = list(self.queries)
        return RecommendedRun(
            id=self.id,
            status=self.status,
            run_at=parse_db_timestamp(self.run_at),
            finished_at=parse_db_timestamp(self.finished_at),
            total_fetched=self.total_fetched,
            new_jobs=self.new_jobs,
            duplicates=self.duplicates,
            query_errors=self.query_errors,
            error_message=self.error_message,
            last_query_error=self.last_query_error,
            cancel_requested=bool(self.cancel_requested),
            params=RunParameters(
                version=self.params_version,
                query_ids=[q.query_id for q in ordered],
                query_texts=[q.query_text for q in ordered],
                pattern_count=self.pattern_count,
                min_score=self.min_score,
            ),
        )


class RecommendedRunQueryModel(Base):
    """Ordered snapshot of the queries a run was started with."""

    __tablename__ = "recommended_run_queries"

    run_id = Column(
        Integer, ForeignKey("recommended_runs.id", ondelete="CASCADE"), primary_key=True
    )
    position = Column(Integer, primary_key=True)
    # No foreign key: the query may be deleted after the run
    query_id = Column(Integer, nullable=False)
    query_text = Column(Text, nullable=False)


class RecommendedMatchModel(Base):
    """ORM model for jobs retained by a run."""

    __tablename__ = "recommended_matches"

    run_id = Column(
        Integer, ForeignKey("recommended_runs.id", ondelete="CASCADE"), primary_key=True
    )
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), primary_key=True)
    score = Column(Float, nullable=False)
    created_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=False)

    job = relationship(JobModel, lazy="joined")

    __table_args__ = (Index("idx_recommended_matches_run_score", "run_id", "score"),)


class SettingsModel(Base):
    """Singleton settings row (id is always 1)."""

    __tablename__ = "settings"

    id = Column(Integer, primary_key=True)
    min_recommended_score = Column(Float, nullable=True)
    scoring_model = Column(String(100), nullable=True)
    recommended_num_pages = Column(Integer, nullable=False, default=1)
    updated_at = Column(String(50), nullable=True)

    def to_domain(self) -> Settings:
        return Settings(
            id=self.id,
            min_recommended_score=self.min_recommended_score,
            scoring_model=self.scoring_model,
            recommended_num_pages=self.recommended_num_pages,
            updated_at=parse_db_timestamp(self.updated_at),
        )


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes that do not exist yet (idempotent)."""
    Base.metadata.create_all(engine, checkfirst=True)
    tables: Optional[List[str]] = inspect(engine).get_table_names()
    logger.info(
        "Database schema ready",
        extra={"event": "database.schema.ready", "tables": ",".join(tables or [])},
    )
